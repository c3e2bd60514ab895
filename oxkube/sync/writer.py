"""Upsert primitive shared by the synchronizer and the selector linker."""

from __future__ import annotations

import structlog

from oxkube.cmdb.client import CMDB
from oxkube.errors import TransportError
from oxkube.models.cmdb import Payload, Result
from oxkube.observability.metrics import cmdb_writes_total

_log = structlog.get_logger(component="sync.writer")


async def put_resource(cmdb: CMDB, payload: Payload, collection: str) -> tuple[str, Result]:
    """PUT *payload* into *collection*.

    Returns the payload's own key and the write Result.  Transport failures
    are folded into a Result with ``error=True``; this function never raises
    for a failed write.
    """
    key = payload.key_value()
    try:
        result = await cmdb.put(payload, collection)
    except TransportError as exc:
        cmdb_writes_total.labels(collection=collection, outcome="error").inc()
        _log.error("cmdb_put_failed", collection=collection, key=key, error=str(exc))
        return key, Result.failure(str(exc), ref=key)

    if result.error:
        cmdb_writes_total.labels(collection=collection, outcome="rejected").inc()
        _log.error("cmdb_put_rejected", collection=collection, key=key, message=result.message)
    elif result.changed:
        cmdb_writes_total.labels(collection=collection, outcome="changed").inc()
        _log.debug("cmdb_put_changed", collection=collection, key=key, operation=str(result.operation))
    else:
        cmdb_writes_total.labels(collection=collection, outcome="unchanged").inc()
        _log.debug("cmdb_put_unchanged", collection=collection, key=key)
    return key, result
