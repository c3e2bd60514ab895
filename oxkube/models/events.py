"""Resource kind and change type enumerations."""

from __future__ import annotations

from enum import StrEnum


class ResourceKind(StrEnum):
    """Kubernetes resource kinds mirrored into the CMDB."""

    NAMESPACE = "namespace"
    POD = "pod"
    SERVICE = "service"
    REPLICATION_CONTROLLER = "replicationcontroller"
    PERSISTENT_VOLUME = "persistentvolume"
    RESOURCE_QUOTA = "resourcequota"
    INGRESS = "ingress"

    @classmethod
    def parse(cls, value: str) -> ResourceKind | None:
        """Resolve a ``Change.kind`` value, case-insensitively, or None if unknown."""
        normalised = value.strip().lower()
        normalised = _KIND_ALIASES.get(normalised, normalised)
        try:
            return cls(normalised)
        except ValueError:
            return None


_KIND_ALIASES = {
    # Spelling used by older event emitters.
    "persistenvolume": "persistentvolume",
    # OpenShift routes are mirrored as ingress items.
    "route": "ingress",
}


class ChangeType(StrEnum):
    """Type of change carried by an event."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def parse(cls, value: str) -> ChangeType | None:
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None
