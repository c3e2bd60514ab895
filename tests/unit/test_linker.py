"""Unit tests for selector matching and the selector linker."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from hypothesis import given
from hypothesis import strategies as st

from oxkube.errors import TransportError
from oxkube.models.cmdb import Item, Operation, Result
from oxkube.sync.linker import SelectorLinker, selector_matches, selector_of
from oxkube.sync.model import K8S_POD, K8S_SERVICE

_labels = st.dictionaries(
    st.text(alphabet="abcdefghij", min_size=1, max_size=4),
    st.text(alphabet="xyz0123", max_size=4),
    max_size=6,
)


def _pod(key: str = "k8s:c1:ns:ns1:pod:p1", **labels: str) -> Item:
    return Item(key=key, type=K8S_POD, attribute={"namespace": "ns1", **labels})


def _service(key: str = "k8s:c1:ns:ns1:svc:s1", selector: dict | None = None) -> Item:
    return Item(
        key=key,
        type=K8S_SERVICE,
        meta={"selector": selector} if selector is not None else {},
        attribute={"namespace": "ns1"},
    )


def _cmdb(candidates: list[Item]) -> AsyncMock:
    cmdb = AsyncMock()
    cmdb.query.return_value = [c.to_dict() for c in candidates]
    cmdb.put.return_value = Result(changed=True, operation=Operation.INSERT)
    return cmdb


# =====================================================================
# selector_matches
# =====================================================================


class TestSelectorMatches:
    @pytest.mark.parametrize(
        ("selector", "attributes", "expected"),
        [
            ({"app": "x"}, {"app": "x", "tier": "web"}, True),
            ({"app": "x", "tier": "web"}, {"app": "x", "tier": "web"}, True),
            ({"app": "x", "tier": "db"}, {"app": "x", "tier": "web"}, False),
            ({"app": "x"}, {"tier": "web"}, False),
            ({"app": "X"}, {"app": "x"}, False),
            ({}, {"app": "x"}, False),
            ({}, {}, False),
            ({"app": {"nested": "x"}}, {"app": {"nested": "x"}}, False),
            ({"replicas": 2}, {"replicas": "2"}, True),
        ],
    )
    def test_cases(self, selector: dict, attributes: dict, expected: bool) -> None:
        assert selector_matches(selector, attributes) is expected

    @given(labels=_labels, data=st.data())
    def test_any_non_empty_subset_of_labels_matches(self, labels: dict[str, str], data: st.DataObject) -> None:
        keys = data.draw(st.sets(st.sampled_from(sorted(labels)), min_size=1) if labels else st.just(set()))
        selector = {k: labels[k] for k in keys}

        assert selector_matches(selector, labels) is bool(selector)

    @given(labels=_labels)
    def test_extra_key_never_matches(self, labels: dict[str, str]) -> None:
        selector = {**labels, "zz-missing": "v"}

        assert selector_matches(selector, labels) is False

    def test_selector_of_ignores_non_objects(self) -> None:
        item = Item(key="k", type=K8S_SERVICE, meta={"selector": "app=x"})

        assert selector_of(item) == {}


# =====================================================================
# SelectorLinker
# =====================================================================


class TestSelectorLinker:
    async def test_candidates_are_queried_by_type_and_namespace(self) -> None:
        cmdb = _cmdb([])
        linker = SelectorLinker(cmdb)

        await linker.link_by_selector(_pod(app="x"), K8S_SERVICE)

        cmdb.query.assert_awaited_once_with("item", {"type": K8S_SERVICE, "attrs": "namespace,ns1"})

    async def test_pod_links_to_matching_services(self) -> None:
        cmdb = _cmdb(
            [
                _service("k8s:c1:ns:ns1:svc:match", {"app": "x"}),
                _service("k8s:c1:ns:ns1:svc:other", {"app": "y"}),
                _service("k8s:c1:ns:ns1:svc:empty", {}),
            ]
        )
        linker = SelectorLinker(cmdb)

        result = await linker.link_by_selector(_pod(app="x"), K8S_SERVICE)

        assert result.changed is True
        assert result.operation == Operation.INSERT
        assert cmdb.put.await_count == 1
        link, collection = cmdb.put.await_args.args
        assert collection == "link"
        assert link.start_item_key == "k8s:c1:ns:ns1:pod:p1"
        assert link.end_item_key == "k8s:c1:ns:ns1:svc:match"

    async def test_service_links_matching_pods_with_pod_as_start(self) -> None:
        cmdb = _cmdb([_pod("k8s:c1:ns:ns1:pod:a", app="x"), _pod("k8s:c1:ns:ns1:pod:b", app="y")])
        linker = SelectorLinker(cmdb)

        await linker.link_by_selector(_service(selector={"app": "x"}), K8S_POD)

        link, _ = cmdb.put.await_args.args
        assert link.key == "k8s:c1:ns:ns1:pod:a->k8s:c1:ns:ns1:svc:s1"

    async def test_subject_without_selector_skips_query(self) -> None:
        cmdb = _cmdb([_pod(app="x")])
        linker = SelectorLinker(cmdb)

        result = await linker.link_by_selector(_service(selector=None), K8S_POD)

        assert result.error is False
        assert result.changed is False
        cmdb.query.assert_not_awaited()

    async def test_subject_without_namespace_skips_query(self) -> None:
        cmdb = _cmdb([])
        linker = SelectorLinker(cmdb)
        subject = Item(key="k8s:c1:pv:pv1", type=K8S_POD)

        result = await linker.link_by_selector(subject, K8S_SERVICE)

        assert result.error is False
        cmdb.query.assert_not_awaited()

    async def test_query_failure_is_an_error_result(self) -> None:
        cmdb = AsyncMock()
        cmdb.query.side_effect = TransportError("connection refused")
        linker = SelectorLinker(cmdb)

        result = await linker.link_by_selector(_pod(app="x"), K8S_SERVICE)

        assert result.error is True
        assert "connection refused" in result.message
        cmdb.put.assert_not_awaited()

    async def test_stops_at_first_failed_link(self) -> None:
        cmdb = _cmdb(
            [
                _service("k8s:c1:ns:ns1:svc:a", {"app": "x"}),
                _service("k8s:c1:ns:ns1:svc:b", {"app": "x"}),
            ]
        )
        cmdb.put.return_value = Result(error=True, message="link rule violated")
        linker = SelectorLinker(cmdb)

        result = await linker.link_by_selector(_pod(app="x"), K8S_SERVICE)

        assert result.error is True
        assert result.message == "link rule violated"
        assert cmdb.put.await_count == 1

    async def test_subject_is_never_linked_to_itself(self) -> None:
        pod = _pod(app="x")
        pod_as_candidate = Item(key=pod.key, type=K8S_POD, meta={"selector": {"app": "x"}}, attribute=pod.attribute)
        cmdb = _cmdb([pod_as_candidate])
        linker = SelectorLinker(cmdb)

        result = await linker.link_by_selector(pod, K8S_POD)

        assert result.changed is False
        cmdb.put.assert_not_awaited()
