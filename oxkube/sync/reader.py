"""Typed field access over a raw change event.

A change event is a JSON document of the form::

    {
        "Change": {"kind": "Pod", "type": "create", "host": "ocp1"},
        "Object": {
            "metadata": {"name": "p1", "namespace": "ns1", "labels": {...},
                         "annotations": {...}, "creationTimestamp": "..."},
            "spec": {...}
        }
    }

Fields are addressed with dot paths (``Object.metadata.name``).  Annotation
keys contain dots themselves, so they are read from the annotations map
rather than through a path.
"""

from __future__ import annotations

import json
from typing import Any

from oxkube.errors import MappingError
from oxkube.models.cmdb import JSONObject, JSONValue

KIND = "Change.kind"
CHANGE_TYPE = "Change.type"
CLUSTER = "Change.host"
NAME = "Object.metadata.name"
NAMESPACE = "Object.metadata.namespace"
CREATED = "Object.metadata.creationTimestamp"
ANNOTATIONS = "Object.metadata.annotations"
LABELS = "Object.metadata.labels"
SPEC = "Object.spec"
SELECTOR = "Object.spec.selector"

ANNOTATION_NAME = "openshift.io/display-name"
ANNOTATION_DESCRIPTION = "openshift.io/description"
ANNOTATION_REQUESTER = "openshift.io/requester"
ANNOTATION_SCC = "openshift.io/scc"
ANNOTATION_GENERATED_BY = "openshift.io/generated-by"


def as_text(value: JSONValue) -> str:
    """Render a JSON value the way it would appear in the raw document.

    Strings are returned unquoted, absent values as the empty string, and
    containers as compact JSON.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


class EventReader:
    """Read-only accessor over one event document."""

    def __init__(self, document: dict[str, Any]) -> None:
        if not isinstance(document, dict):
            raise MappingError("event must be a JSON object")
        self._doc = document

    @classmethod
    def from_bytes(cls, raw: bytes | str) -> EventReader:
        """Parse a request body.  Raises MappingError for non-JSON input."""
        try:
            document = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as exc:
            raise MappingError(f"event is not valid JSON: {exc}") from exc
        return cls(document)

    @property
    def document(self) -> dict[str, Any]:
        return self._doc

    def get(self, path: str) -> JSONValue:
        """Return the value at a dot path, or None if any segment is missing."""
        node: Any = self._doc
        for segment in path.split("."):
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    def text(self, path: str) -> str:
        return as_text(self.get(path))

    def mapping(self, path: str) -> JSONObject:
        """Return the object at *path*, or an empty dict if absent or not an object."""
        value = self.get(path)
        if isinstance(value, dict):
            return value
        return {}

    # ------------------------------------------------------------------
    # Named fields
    # ------------------------------------------------------------------

    @property
    def kind(self) -> str:
        return self.text(KIND)

    @property
    def change_type(self) -> str:
        return self.text(CHANGE_TYPE)

    @property
    def host(self) -> str:
        return self.text(CLUSTER)

    @property
    def name(self) -> str:
        return self.text(NAME)

    @property
    def namespace(self) -> str | None:
        """Namespace of the object, or None for cluster-scoped objects."""
        value = self.text(NAMESPACE)
        return value or None

    @property
    def created(self) -> str:
        return self.text(CREATED)

    @property
    def annotations(self) -> JSONObject:
        return self.mapping(ANNOTATIONS)

    @property
    def labels(self) -> JSONObject:
        return self.mapping(LABELS)

    @property
    def selector(self) -> JSONObject:
        return self.mapping(SELECTOR)

    def annotation(self, key: str) -> str:
        return as_text(self.annotations.get(key))

    def spec(self) -> JSONObject:
        """Decode the object's spec into a fresh dict.

        The spec may arrive as an embedded object or as a JSON-encoded string.

        Raises:
            MappingError: if the spec is absent or does not decode to an object.
        """
        value = self.get(SPEC)
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError as exc:
                raise MappingError(f"object spec is not valid JSON: {exc}") from exc
        if not isinstance(value, dict):
            raise MappingError(f"object spec is missing or not an object in {self.kind or 'event'} '{self.name}'")
        # Deep copy so the item never aliases the request document.
        return json.loads(json.dumps(value))
