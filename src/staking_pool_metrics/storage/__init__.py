"""Record stores for aggregates and snapshots."""

from staking_pool_metrics.storage.sql import SqlRecordStore
from staking_pool_metrics.storage.store import InMemoryRecordStore, RecordStore

__all__ = [
    "InMemoryRecordStore",
    "RecordStore",
    "SqlRecordStore",
]
