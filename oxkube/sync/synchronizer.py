"""Per-kind upsert protocols.

Every protocol is a strict sequence of writes where each Result gates the
next step.  There is no rollback: when a later step fails, the writes that
already succeeded stay in place and the next event for the same resource
completes the graph.  Keys are deterministic, so replaying an event only
ever updates what is already there.

    namespace  cluster item -> namespace item -> cluster->namespace link
    pod        pod item -> namespace->pod link -> selector links (svc, rc)
    service    service item -> selector links (pods)
    rc         controller item -> selector links (pods)
    pv         volume item
    quota      quota item -> namespace->quota link
    ingress    ingress item -> service->ingress link per known backend
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import structlog

from oxkube.cmdb.client import CMDB
from oxkube.errors import TransportError, UnsupportedKindError
from oxkube.models.cmdb import Item, Payload, Result
from oxkube.models.events import ChangeType, ResourceKind
from oxkube.sync import keys, mapper
from oxkube.sync.linker import SelectorLinker
from oxkube.sync.model import K8S_POD, K8S_REPLICATION_CONTROLLER, K8S_SERVICE
from oxkube.sync.reader import EventReader
from oxkube.sync.writer import put_resource

_log = structlog.get_logger(component="sync.synchronizer")

Handler = Callable[[EventReader], Awaitable[Result]]


class GraphSynchronizer:
    """Mirrors change events into the CMDB graph."""

    def __init__(self, cmdb: CMDB, linker: SelectorLinker | None = None) -> None:
        self._cmdb = cmdb
        self._linker = linker or SelectorLinker(cmdb)
        self._protocols: dict[ResourceKind, Handler] = {
            ResourceKind.NAMESPACE: self.put_namespace,
            ResourceKind.POD: self.put_pod,
            ResourceKind.SERVICE: self.put_service,
            ResourceKind.REPLICATION_CONTROLLER: self.put_replication_controller,
            ResourceKind.PERSISTENT_VOLUME: self.put_persistent_volume,
            ResourceKind.RESOURCE_QUOTA: self.put_resource_quota,
            ResourceKind.INGRESS: self.put_ingress,
        }

    async def process(self, event: EventReader) -> Result:
        """Run the protocol matching the event's kind and change type.

        Raises:
            UnsupportedKindError: for unknown kinds, unknown change types and
                deletions, none of which have a handler.
            MappingError: if the event cannot be mapped to an item.
        """
        kind = ResourceKind.parse(event.kind)
        change = ChangeType.parse(event.change_type)
        if kind is None or change is None or change == ChangeType.DELETE:
            raise UnsupportedKindError(event.kind, event.change_type)

        _log.debug("processing event", kind=str(kind), change_type=str(change), name=event.name)
        return await self._protocols[kind](event)

    async def put_resource(self, payload: Payload, collection: str) -> tuple[str, Result]:
        return await put_resource(self._cmdb, payload, collection)

    # ------------------------------------------------------------------
    # Protocols
    # ------------------------------------------------------------------

    async def put_namespace(self, event: EventReader) -> Result:
        # Both items are mapped up front so a malformed event writes nothing.
        cluster = mapper.cluster_item(event)
        namespace = mapper.namespace_item(event)
        results: list[Result] = []

        cluster_key, result = await self.put_resource(cluster, "item")
        results.append(result)
        if result.error:
            return result

        namespace_key, result = await self.put_resource(namespace, "item")
        results.append(result)
        if result.error:
            return result

        _, result = await self.put_resource(mapper.link(cluster_key, namespace_key), "link")
        results.append(result)
        return Result.combine(results)

    async def put_pod(self, event: EventReader) -> Result:
        item = mapper.pod_item(event)
        results: list[Result] = []

        pod_key, result = await self.put_resource(item, "item")
        results.append(result)
        if result.error:
            return result

        ns_key = keys.namespace_key(event.host, mapper.namespace_of(event))
        _, result = await self.put_resource(mapper.link(ns_key, pod_key), "link")
        results.append(result)
        if result.error:
            return result

        for candidate_type in (K8S_SERVICE, K8S_REPLICATION_CONTROLLER):
            result = await self._linker.link_by_selector(item, candidate_type)
            results.append(result)
            if result.error:
                _log.warning("pod selector linking failed", pod=pod_key, candidate_type=candidate_type)
                return result
        return Result.combine(results)

    async def put_service(self, event: EventReader) -> Result:
        return await self._put_with_selector(mapper.service_item(event))

    async def put_replication_controller(self, event: EventReader) -> Result:
        return await self._put_with_selector(mapper.replication_controller_item(event))

    async def _put_with_selector(self, item: Item) -> Result:
        _, result = await self.put_resource(item, "item")
        if result.error:
            return result
        link_result = await self._linker.link_by_selector(item, K8S_POD)
        return Result.combine([result, link_result])

    async def put_persistent_volume(self, event: EventReader) -> Result:
        _, result = await self.put_resource(mapper.persistent_volume_item(event), "item")
        return result

    async def put_resource_quota(self, event: EventReader) -> Result:
        quota_key, result = await self.put_resource(mapper.resource_quota_item(event), "item")
        if result.error:
            return result
        ns_key = keys.namespace_key(event.host, mapper.namespace_of(event))
        _, link_result = await self.put_resource(mapper.link(ns_key, quota_key), "link")
        return Result.combine([result, link_result])

    async def put_ingress(self, event: EventReader) -> Result:
        item = mapper.ingress_item(event)
        ingress_key, result = await self.put_resource(item, "item")
        if result.error:
            return result

        results = [result]
        namespace = mapper.namespace_of(event)
        for service in mapper.ingress_backend_services(item.meta):
            service_key = keys.object_key(event.host, namespace, keys.KIND_SEGMENTS[ResourceKind.SERVICE], service)
            try:
                exists = await self._cmdb.get("item", service_key) is not None
            except TransportError as exc:
                return Result.failure(str(exc), ref=service_key)
            if not exists:
                # Linked later, when the ingress is next observed.
                _log.debug("ingress backend service not yet known", ingress=ingress_key, service=service_key)
                continue
            _, link_result = await self.put_resource(mapper.link(service_key, ingress_key), "link")
            results.append(link_result)
            if link_result.error:
                return link_result
        return Result.combine(results)
