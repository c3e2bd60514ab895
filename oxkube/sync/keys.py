"""Deterministic CMDB keys for Kubernetes resources.

Keys are hierarchical so that re-observing a resource always addresses the
same item::

    k8s:<host>                               cluster
    k8s:<host>:ns:<namespace>                namespace
    k8s:<host>:ns:<namespace>:<kind>:<name>  namespaced object
    k8s:<host>:<kind>:<name>                 cluster-scoped object
    <startKey>-><endKey>                     link
"""

from __future__ import annotations

from oxkube.models.events import ResourceKind

# Short discriminators used as the kind segment of object keys.
KIND_SEGMENTS: dict[ResourceKind, str] = {
    ResourceKind.POD: "pod",
    ResourceKind.SERVICE: "svc",
    ResourceKind.REPLICATION_CONTROLLER: "rc",
    ResourceKind.PERSISTENT_VOLUME: "pv",
    ResourceKind.RESOURCE_QUOTA: "quota",
    ResourceKind.INGRESS: "ing",
}


def cluster_key(host: str) -> str:
    return f"k8s:{host}"


def namespace_key(host: str, namespace: str) -> str:
    return f"{cluster_key(host)}:ns:{namespace}"


def object_key(host: str, namespace: str, kind: str, name: str) -> str:
    return f"{namespace_key(host, namespace)}:{kind}:{name}"


def cluster_object_key(host: str, kind: str, name: str) -> str:
    return f"{cluster_key(host)}:{kind}:{name}"


def link_key(start_key: str, end_key: str) -> str:
    return f"{start_key}->{end_key}"
