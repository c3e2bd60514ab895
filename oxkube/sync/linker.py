"""Selector-based link discovery.

Services and replication controllers select pods by label equality, but a
change event for one side says nothing about the other.  The linker closes
the gap by querying the CMDB for items of the opposite kind in the same
namespace and linking every pair whose selector is a subset of the pod's
attributes.  Pods are always the start of the link, whichever side
triggered the search.
"""

from __future__ import annotations

import structlog

from oxkube.cmdb.client import CMDB
from oxkube.errors import TransportError
from oxkube.models.cmdb import Item, JSONObject, JSONValue, Result
from oxkube.sync import mapper
from oxkube.sync.model import K8S_POD
from oxkube.sync.reader import as_text
from oxkube.sync.writer import put_resource

_log = structlog.get_logger(component="sync.linker")

_SCALARS = (str, int, float, bool)


def selector_of(item: Item) -> JSONObject:
    """The selector map stored in an item's meta, or an empty dict."""
    selector = item.meta.get("selector")
    if isinstance(selector, dict):
        return selector
    return {}


def _scalar_text(value: JSONValue) -> str | None:
    if isinstance(value, _SCALARS):
        return as_text(value)
    return None


def selector_matches(selector: JSONObject, attributes: JSONObject) -> bool:
    """True if every selector pair is present with an equal value in *attributes*.

    Comparison is exact string equality.  An empty selector matches nothing,
    and a selector value that is not a scalar never matches.
    """
    if not selector:
        return False
    for key, expected in selector.items():
        wanted = _scalar_text(expected)
        if wanted is None or key not in attributes:
            return False
        if _scalar_text(attributes[key]) != wanted:
            return False
    return True


class SelectorLinker:
    """Creates pod links discovered through label selectors."""

    def __init__(self, cmdb: CMDB) -> None:
        self._cmdb = cmdb

    async def candidates(self, item_type: str, namespace: str) -> list[Item]:
        entries = await self._cmdb.query("item", {"type": item_type, "attrs": f"namespace,{namespace}"})
        return [Item.from_dict(entry) for entry in entries]

    async def link_by_selector(self, subject: Item, candidate_type: str) -> Result:
        """Link *subject* with every matching item of *candidate_type*.

        A pod subject is matched against the selectors of the candidates; any
        other subject's own selector is matched against candidate pods.
        Stops at the first failed link write and returns its Result.
        """
        namespace = as_text(subject.attribute.get("namespace"))
        log = _log.bind(subject=subject.key, candidate_type=candidate_type, namespace=namespace)
        if not namespace:
            log.debug("subject has no namespace attribute; skipping selector linking")
            return Result(message="nothing to link")

        pod_initiated = subject.type == K8S_POD
        if not pod_initiated and not selector_of(subject):
            log.debug("subject has no selector; skipping selector linking")
            return Result(message="nothing to link")

        try:
            candidates = await self.candidates(candidate_type, namespace)
        except TransportError as exc:
            log.error("selector_candidate_query_failed", error=str(exc))
            return Result.failure(str(exc), ref=subject.key)

        results: list[Result] = []
        for candidate in candidates:
            if candidate.key == subject.key:
                continue
            if pod_initiated:
                pod, other = subject, candidate
                matched = selector_matches(selector_of(candidate), subject.attribute)
            else:
                pod, other = candidate, subject
                matched = selector_matches(selector_of(subject), candidate.attribute)
            if not matched:
                continue
            _, result = await put_resource(self._cmdb, mapper.link(pod.key, other.key), "link")
            if result.error:
                log.warning("selector_link_failed", pod=pod.key, target=other.key, message=result.message)
                return result
            results.append(result)

        log.debug("selector linking done", candidates=len(candidates), links=len(results))
        return Result.combine(results)
