"""Shared fixtures for OxKube integration tests.

Provides an in-memory stand-in for the Onix web API with real upsert
semantics (insert, update, no-op) so the synchronization protocols can be
exercised end to end without a CMDB server.
"""

from __future__ import annotations

import copy
from collections import defaultdict
from typing import Any

import pytest

from oxkube.errors import TransportError
from oxkube.models.cmdb import Operation, Payload, Result
from oxkube.sync.reader import EventReader
from oxkube.sync.synchronizer import GraphSynchronizer

_CREATED = "2026-02-18T12:00:00Z"


# ---------------------------------------------------------------------------
# Fake CMDB
# ---------------------------------------------------------------------------


class FakeCMDB:
    """In-memory CMDB.

    Attributes:
        store:        collection -> key -> stored JSON body.
        writes:       ordered (method, collection, key) of every write.
        unreachable:  keys whose writes raise TransportError.
        rejected:     keys whose writes return an error Result.
    """

    def __init__(self) -> None:
        self.store: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.writes: list[tuple[str, str, str]] = []
        self.unreachable: set[str] = set()
        self.rejected: set[str] = set()
        self.query_fails = False

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        stored = self.store[collection].get(key)
        return copy.deepcopy(stored) if stored is not None else None

    async def query(self, collection: str, filters: dict[str, str]) -> list[dict[str, Any]]:
        if self.query_fails:
            raise TransportError("connection refused")
        wanted_type = filters.get("type")
        wanted_attrs = _parse_attrs(filters.get("attrs", ""))
        found = []
        for body in self.store[collection].values():
            if wanted_type and body.get("type") != wanted_type:
                continue
            attrs = body.get("attribute") or {}
            if all(attrs.get(k) == v for k, v in wanted_attrs.items()):
                found.append(copy.deepcopy(body))
        return found

    async def put(self, payload: Payload, collection: str) -> Result:
        key = payload.key_value()
        self.writes.append(("PUT", collection, key))
        if key in self.unreachable:
            raise TransportError("connection refused")
        if key in self.rejected:
            return Result(error=True, message=f"{collection} {key} rejected")

        body = payload.to_dict()
        if collection == "data":
            return self._put_batch(body)
        existing = self.store[collection].get(key)
        self.store[collection][key] = copy.deepcopy(body)
        if existing is None:
            return Result(changed=True, operation=Operation.INSERT, ref=key)
        if existing == body:
            return Result(changed=False, ref=key)
        return Result(changed=True, operation=Operation.UPDATE, ref=key)

    async def delete(self, payload: Payload, collection: str) -> Result:
        key = payload.key_value()
        self.writes.append(("DELETE", collection, key))
        removed = self.store[collection].pop(key, None)
        return Result(changed=removed is not None, ref=key)

    def _put_batch(self, body: dict[str, Any]) -> Result:
        for collection, section in (
            ("model", "models"),
            ("itemtype", "itemTypes"),
            ("linktype", "linkTypes"),
            ("linkrule", "linkRules"),
        ):
            for entry in body.get(section, []):
                self.store[collection][entry["key"]] = entry
        return Result(changed=True, operation=Operation.INSERT)

    def items(self) -> dict[str, dict[str, Any]]:
        return self.store["item"]

    def links(self) -> dict[str, dict[str, Any]]:
        return self.store["link"]


def _parse_attrs(attrs: str) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for pair in filter(None, attrs.split("|")):
        key, _, value = pair.partition(",")
        pairs[key] = value
    return pairs


# ---------------------------------------------------------------------------
# Event factory helpers
# ---------------------------------------------------------------------------


def make_event(
    kind: str = "Pod",
    name: str = "p1",
    namespace: str | None = "ns1",
    host: str = "c1",
    change_type: str = "create",
    spec: dict[str, Any] | None = None,
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
) -> EventReader:
    """Create an EventReader over a change event with sensible defaults."""
    metadata: dict[str, Any] = {
        "name": name,
        "creationTimestamp": _CREATED,
        "annotations": annotations or {},
        "labels": labels or {},
    }
    if namespace is not None:
        metadata["namespace"] = namespace
    return EventReader(
        {
            "Change": {"kind": kind, "type": change_type, "host": host},
            "Object": {"metadata": metadata, "spec": spec if spec is not None else {}},
        }
    )


def make_namespace_event(name: str = "ns1", **kwargs: Any) -> EventReader:
    defaults: dict[str, Any] = {
        "kind": "Namespace",
        "name": name,
        "namespace": None,
        "spec": {"finalizers": ["kubernetes"]},
        "annotations": {
            "openshift.io/display-name": "Team One",
            "openshift.io/description": "Team one workloads",
            "openshift.io/requester": "alice",
        },
    }
    defaults.update(kwargs)
    return make_event(**defaults)


def make_pod_event(name: str = "p1", labels: dict[str, str] | None = None, **kwargs: Any) -> EventReader:
    defaults: dict[str, Any] = {
        "kind": "Pod",
        "name": name,
        "labels": labels if labels is not None else {"app": "x", "tier": "web"},
        "spec": {"containers": [{"name": "web", "image": "nginx:1.25"}]},
        "annotations": {"openshift.io/scc": "restricted"},
    }
    defaults.update(kwargs)
    return make_event(**defaults)


def make_service_event(name: str = "svc1", selector: dict[str, str] | None = None, **kwargs: Any) -> EventReader:
    defaults: dict[str, Any] = {
        "kind": "Service",
        "name": name,
        "spec": {
            "selector": selector if selector is not None else {"app": "x"},
            "ports": [{"port": 80, "targetPort": 8080}],
        },
    }
    defaults.update(kwargs)
    return make_event(**defaults)


def make_rc_event(name: str = "rc1", selector: dict[str, str] | None = None, **kwargs: Any) -> EventReader:
    defaults: dict[str, Any] = {
        "kind": "ReplicationController",
        "name": name,
        "spec": {"replicas": 2, "selector": selector if selector is not None else {"app": "x"}},
    }
    defaults.update(kwargs)
    return make_event(**defaults)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def cmdb() -> FakeCMDB:
    return FakeCMDB()


@pytest.fixture()
def synchronizer(cmdb: FakeCMDB) -> GraphSynchronizer:
    return GraphSynchronizer(cmdb)
