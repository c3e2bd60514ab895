"""Core data structures for OxKube."""

from oxkube.models.cmdb import (
    Item,
    ItemType,
    JSONObject,
    JSONValue,
    Link,
    LinkRule,
    LinkType,
    Model,
    ModelData,
    Operation,
    Payload,
    Result,
)
from oxkube.models.config import OxKubeConfig
from oxkube.models.events import ChangeType, ResourceKind

__all__ = [
    "ChangeType",
    "Item",
    "ItemType",
    "JSONObject",
    "JSONValue",
    "Link",
    "LinkRule",
    "LinkType",
    "Model",
    "ModelData",
    "Operation",
    "OxKubeConfig",
    "Payload",
    "ResourceKind",
    "Result",
]
