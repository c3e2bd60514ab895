"""Exception hierarchy for OxKube.

Every error raised by the synchronization engine or the CMDB client derives
from OxKubeError so that the webhook layer can map failures to HTTP statuses
in a single place.
"""

from __future__ import annotations


class OxKubeError(Exception):
    """Base class for all OxKube errors."""


class TransportError(OxKubeError):
    """The CMDB call itself failed (network, HTTP status or undecodable body)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MappingError(OxKubeError):
    """The event could not be decoded into an item (missing or malformed fields)."""


class UnsupportedKindError(OxKubeError):
    """No handler exists for the event's kind and change type combination."""

    def __init__(self, kind: str, change_type: str) -> None:
        super().__init__(f"{change_type or '<none>'} of kind '{kind or '<none>'}' is not supported")
        self.kind = kind
        self.change_type = change_type


class ModelBootstrapError(OxKubeError):
    """The KUBE meta-model could not be verified or created in the CMDB."""


class AuthenticationError(OxKubeError):
    """An authentication token could not be acquired."""
