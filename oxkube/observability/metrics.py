"""Prometheus counters for OxKube.

events_total      -- webhook events by kind, change type and outcome.
cmdb_writes_total -- CMDB PUT requests by collection and outcome.
"""

from __future__ import annotations

from prometheus_client import Counter

events_total = Counter(
    "oxkube_events_total",
    "Change events processed by the webhook.",
    ["kind", "change_type", "outcome"],
)

cmdb_writes_total = Counter(
    "oxkube_cmdb_writes_total",
    "Writes issued to the Onix CMDB.",
    ["collection", "outcome"],
)
