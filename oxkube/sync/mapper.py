"""Builds CMDB items and links from change events.

Each ``*_item`` function returns a fully populated Item or raises
MappingError; no partially populated item ever leaves this module.  The
object's spec is copied verbatim into ``Item.meta`` and derived scalars go
into ``Item.attribute``.
"""

from __future__ import annotations

from oxkube.errors import MappingError
from oxkube.models.cmdb import Item, JSONObject, JSONValue, Link
from oxkube.models.events import ResourceKind
from oxkube.sync import keys
from oxkube.sync.model import (
    K8S_CLUSTER,
    K8S_INGRESS,
    K8S_LINK,
    K8S_NAMESPACE,
    K8S_PERSISTENT_VOLUME,
    K8S_POD,
    K8S_REPLICATION_CONTROLLER,
    K8S_RESOURCE_QUOTA,
    K8S_SERVICE,
)
from oxkube.sync.reader import (
    ANNOTATION_DESCRIPTION,
    ANNOTATION_GENERATED_BY,
    ANNOTATION_NAME,
    ANNOTATION_REQUESTER,
    ANNOTATION_SCC,
    EventReader,
    as_text,
)

ITEM_TYPES: dict[ResourceKind, str] = {
    ResourceKind.NAMESPACE: K8S_NAMESPACE,
    ResourceKind.POD: K8S_POD,
    ResourceKind.SERVICE: K8S_SERVICE,
    ResourceKind.REPLICATION_CONTROLLER: K8S_REPLICATION_CONTROLLER,
    ResourceKind.PERSISTENT_VOLUME: K8S_PERSISTENT_VOLUME,
    ResourceKind.RESOURCE_QUOTA: K8S_RESOURCE_QUOTA,
    ResourceKind.INGRESS: K8S_INGRESS,
}


def flatten(mapping: JSONObject) -> str:
    """Render a string map as ``k1=v1,k2=v2`` with keys in sorted order."""
    return ",".join(f"{key}={as_text(mapping[key])}" for key in sorted(mapping))


def _require_host(event: EventReader) -> str:
    host = event.host
    if not host:
        raise MappingError("event has no Change.host")
    return host


def _require_name(event: EventReader) -> str:
    name = event.name
    if not name:
        raise MappingError("event has no Object.metadata.name")
    return name


def namespace_of(event: EventReader) -> str:
    """Namespace segment for the event's key.

    A namespace event carries no ``metadata.namespace``; its own name is the
    namespace.
    """
    namespace = event.namespace
    if namespace:
        return namespace
    if ResourceKind.parse(event.kind) == ResourceKind.NAMESPACE:
        return _require_name(event)
    raise MappingError(f"{event.kind or 'object'} '{event.name}' has no Object.metadata.namespace")


def _namespaced_item(event: EventReader, kind: ResourceKind) -> Item:
    host = _require_host(event)
    name = _require_name(event)
    namespace = namespace_of(event)
    meta = event.spec()
    item = Item(
        key=keys.object_key(host, namespace, keys.KIND_SEGMENTS[kind], name),
        type=ITEM_TYPES[kind],
        name=name,
        description=event.annotation(ANNOTATION_DESCRIPTION),
        meta=meta,
    )
    item.attribute["Created"] = event.created
    item.attribute["namespace"] = namespace
    return item


def cluster_item(event: EventReader) -> Item:
    host = _require_host(event)
    return Item(
        key=keys.cluster_key(host),
        type=K8S_CLUSTER,
        name=f"{host.upper()} Container Platform",
        description="A Kubernetes Cluster instance.",
    )


def namespace_item(event: EventReader) -> Item:
    host = _require_host(event)
    namespace = namespace_of(event)
    meta = event.spec()
    item = Item(
        # The namespace is not repeated as a kind segment in its own key.
        key=keys.namespace_key(host, namespace),
        type=K8S_NAMESPACE,
        name=event.annotation(ANNOTATION_NAME) or namespace,
        description=event.annotation(ANNOTATION_DESCRIPTION),
        meta=meta,
    )
    item.attribute["Created"] = event.created
    item.attribute["namespace"] = namespace
    item.attribute["Requester"] = event.annotation(ANNOTATION_REQUESTER)
    return item


def pod_item(event: EventReader) -> Item:
    item = _namespaced_item(event, ResourceKind.POD)
    # Labels go first so derived attributes are never shadowed by a label.
    labels = {key: as_text(value) for key, value in event.labels.items()}
    item.attribute = {**labels, **item.attribute}
    item.attribute["SCC"] = event.annotation(ANNOTATION_SCC)
    item.attribute["Generated_By"] = event.annotation(ANNOTATION_GENERATED_BY)
    claims = volume_claims(item.meta)
    if claims:
        item.attribute["VolumeClaims"] = ",".join(claims)
    return item


def service_item(event: EventReader) -> Item:
    return _selector_item(event, ResourceKind.SERVICE)


def replication_controller_item(event: EventReader) -> Item:
    return _selector_item(event, ResourceKind.REPLICATION_CONTROLLER)


def _selector_item(event: EventReader, kind: ResourceKind) -> Item:
    item = _namespaced_item(event, kind)
    item.attribute["Generated_By"] = event.annotation(ANNOTATION_GENERATED_BY)
    item.attribute["Selector"] = flatten(event.selector)
    return item


def persistent_volume_item(event: EventReader) -> Item:
    """Persistent volumes are cluster scoped unless the event names a namespace."""
    host = _require_host(event)
    name = _require_name(event)
    segment = keys.KIND_SEGMENTS[ResourceKind.PERSISTENT_VOLUME]
    if event.namespace:
        key = keys.object_key(host, event.namespace, segment, name)
    else:
        key = keys.cluster_object_key(host, segment, name)
    meta = event.spec()
    item = Item(key=key, type=K8S_PERSISTENT_VOLUME, name=name, meta=meta)
    item.attribute["Created"] = event.created
    item.attribute["StorageClass"] = as_text(meta.get("storageClassName"))
    capacity = meta.get("capacity")
    if isinstance(capacity, dict):
        item.attribute["Capacity"] = as_text(capacity.get("storage"))
    claim = meta.get("claimRef")
    if isinstance(claim, dict) and claim.get("name"):
        item.attribute["Claim"] = f"{as_text(claim.get('namespace'))}/{as_text(claim.get('name'))}"
    return item


def resource_quota_item(event: EventReader) -> Item:
    item = _namespaced_item(event, ResourceKind.RESOURCE_QUOTA)
    hard = item.meta.get("hard")
    if isinstance(hard, dict):
        item.attribute["Hard"] = flatten(hard)
    return item


def ingress_item(event: EventReader) -> Item:
    item = _namespaced_item(event, ResourceKind.INGRESS)
    hosts = ingress_hosts(item.meta)
    if hosts:
        item.attribute["Host"] = ",".join(hosts)
    return item


def link(start_key: str, end_key: str) -> Link:
    return Link(
        key=keys.link_key(start_key, end_key),
        start_item_key=start_key,
        end_item_key=end_key,
        type=K8S_LINK,
    )


# ---------------------------------------------------------------------------
# Spec inspection helpers
# ---------------------------------------------------------------------------


def _dicts(value: JSONValue) -> list[JSONObject]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]


def volume_claims(pod_spec: JSONObject) -> list[str]:
    """Names of persistent volume claims mounted by a pod."""
    claims: list[str] = []
    for volume in _dicts(pod_spec.get("volumes")):
        claim = volume.get("persistentVolumeClaim")
        if isinstance(claim, dict) and claim.get("claimName"):
            claims.append(as_text(claim["claimName"]))
    return claims


def _backend_service(backend: JSONValue) -> str:
    if not isinstance(backend, dict):
        return ""
    service = backend.get("service")
    if isinstance(service, dict):
        return as_text(service.get("name"))
    return as_text(backend.get("serviceName"))


def ingress_backend_services(ingress_spec: JSONObject) -> list[str]:
    """Service names an ingress (or an OpenShift route) sends traffic to.

    Understands ``networking.k8s.io/v1`` backends, the older
    ``serviceName`` form and route ``to``/``alternateBackends`` targets.
    """
    names: set[str] = set()
    for key in ("defaultBackend", "backend"):
        names.add(_backend_service(ingress_spec.get(key)))
    for rule in _dicts(ingress_spec.get("rules")):
        http = rule.get("http")
        if isinstance(http, dict):
            for path in _dicts(http.get("paths")):
                names.add(_backend_service(path.get("backend")))
    targets = [ingress_spec.get("to"), *_dicts(ingress_spec.get("alternateBackends"))]
    for target in targets:
        if isinstance(target, dict) and as_text(target.get("kind") or "Service") == "Service":
            names.add(as_text(target.get("name")))
    names.discard("")
    return sorted(names)


def ingress_hosts(ingress_spec: JSONObject) -> list[str]:
    hosts = {as_text(rule.get("host")) for rule in _dicts(ingress_spec.get("rules"))}
    hosts.add(as_text(ingress_spec.get("host")))
    hosts.discard("")
    return sorted(hosts)

