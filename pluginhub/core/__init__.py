"""
Storage, linking and deduplication core for PluginHub.
"""

from pluginhub.core.content_store import ContentStore, compute_content_hash
from pluginhub.core.deduplicator import DuplicateAnalyzer
from pluginhub.core.hub import PluginHub
from pluginhub.core.link_engine import LinkEngine, LinkKind, LinkStatus
from pluginhub.core.optimizer import OptimizationPlanner
from pluginhub.core.plugin_index import (
    IndexBackend,
    JsonFileIndexBackend,
    MemoryIndexBackend,
    PluginIndex,
)

__all__ = [
    "ContentStore",
    "compute_content_hash",
    "DuplicateAnalyzer",
    "PluginHub",
    "LinkEngine",
    "LinkKind",
    "LinkStatus",
    "OptimizationPlanner",
    "IndexBackend",
    "JsonFileIndexBackend",
    "MemoryIndexBackend",
    "PluginIndex",
]
