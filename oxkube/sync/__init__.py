"""Event-to-graph synchronization engine.

Submodules:
    reader       -- EventReader: dot-path field access over raw events.
    keys         -- Deterministic item and link keys.
    mapper       -- Builds items and links from events.
    writer       -- put_resource upsert primitive.
    linker       -- SelectorLinker: label-selector link discovery.
    synchronizer -- GraphSynchronizer: per-kind upsert protocols.
    model        -- KUBE meta-model and ensure_model bootstrap.
"""

from oxkube.sync.linker import SelectorLinker, selector_matches
from oxkube.sync.model import ensure_model, kube_model
from oxkube.sync.reader import EventReader
from oxkube.sync.synchronizer import GraphSynchronizer

__all__ = [
    "EventReader",
    "GraphSynchronizer",
    "SelectorLinker",
    "ensure_model",
    "kube_model",
    "selector_matches",
]
