"""CMDB payload data structures.

Items and links are the nodes and edges of the graph kept in the CMDB; item
types, link types, link rules and models form the meta-model they are
validated against.  Every payload serialises to the camelCase JSON the Onix
web API expects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

# Arbitrary JSON document.  Spec copies and selector maps are stored as-is and
# only ever inspected through isinstance checks.
JSONValue = str | int | float | bool | None | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject = dict[str, JSONValue]


class Payload(Protocol):
    """Anything that can be PUT to a CMDB collection."""

    def key_value(self) -> str: ...

    def to_dict(self) -> dict[str, Any]: ...


class Operation(StrEnum):
    """Write operation reported by the CMDB."""

    INSERT = "I"
    UPDATE = "U"
    NONE = ""


@dataclass
class Item:
    """A graph node representing one resource instance."""

    key: str
    type: str
    name: str = ""
    description: str = ""
    meta: JSONObject = field(default_factory=dict)
    attribute: JSONObject = field(default_factory=dict)

    def key_value(self) -> str:
        return self.key

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "meta": self.meta,
            "attribute": self.attribute,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Item:
        return cls(
            key=str(data.get("key", "")),
            type=str(data.get("type", "")),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            meta=data.get("meta") or {},
            attribute=data.get("attribute") or {},
        )


@dataclass
class Link:
    """A directed edge between two items."""

    key: str
    start_item_key: str
    end_item_key: str
    type: str
    description: str = ""

    def key_value(self) -> str:
        return self.key

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "type": self.type,
            "description": self.description,
            "startItemKey": self.start_item_key,
            "endItemKey": self.end_item_key,
            "meta": {},
            "attribute": {},
        }


@dataclass(frozen=True)
class Model:
    """A named group of item and link types."""

    key: str
    name: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "name": self.name, "description": self.description}


@dataclass(frozen=True)
class ItemType:
    key: str
    name: str
    description: str
    model: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "modelKey": self.model,
        }


@dataclass(frozen=True)
class LinkType:
    key: str
    name: str
    description: str
    model: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "modelKey": self.model,
        }


@dataclass(frozen=True)
class LinkRule:
    """Constrains which item type pairs a link type may connect."""

    key: str
    name: str
    description: str
    link_type: str
    start_item_type: str
    end_item_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "linkTypeKey": self.link_type,
            "startItemTypeKey": self.start_item_type,
            "endItemTypeKey": self.end_item_type,
        }


@dataclass(frozen=True)
class ModelData:
    """Batch payload submitted to the ``data`` collection in a single request."""

    models: tuple[Model, ...] = ()
    item_types: tuple[ItemType, ...] = ()
    link_types: tuple[LinkType, ...] = ()
    link_rules: tuple[LinkRule, ...] = ()

    def key_value(self) -> str:
        # The batch endpoint is addressed without a key.
        return ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "models": [m.to_dict() for m in self.models],
            "itemTypes": [t.to_dict() for t in self.item_types],
            "linkTypes": [t.to_dict() for t in self.link_types],
            "linkRules": [r.to_dict() for r in self.link_rules],
        }


@dataclass
class Result:
    """Outcome of a CMDB write.

    ``changed=False`` with ``error=False`` means the stored value already
    matched and the write was a no-op.
    """

    error: bool = False
    changed: bool = False
    operation: Operation = Operation.NONE
    message: str = ""
    ref: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Result:
        raw_op = str(data.get("operation") or "").upper()
        try:
            operation = Operation(raw_op)
        except ValueError:
            operation = Operation.NONE
        return cls(
            error=bool(data.get("error", False)),
            changed=bool(data.get("changed", False)),
            operation=operation,
            message=str(data.get("message") or ""),
            ref=str(data.get("ref") or ""),
        )

    @classmethod
    def failure(cls, message: str, ref: str = "") -> Result:
        return cls(error=True, message=message, ref=ref)

    @classmethod
    def combine(cls, results: list[Result]) -> Result:
        """Fold the results of a multi-step protocol into one outcome.

        The first error wins.  Otherwise the outcome is changed if any step
        changed state, and counts as an insert if any step inserted.
        """
        for result in results:
            if result.error:
                return result
        changed = [r for r in results if r.changed]
        if not changed:
            return cls(message="nothing to update")
        if any(r.operation == Operation.INSERT for r in changed):
            operation = Operation.INSERT
        else:
            operation = Operation.UPDATE
        return cls(changed=True, operation=operation, ref=changed[-1].ref)
