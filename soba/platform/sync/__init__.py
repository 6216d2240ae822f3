"""Form-engine synchronization of claimed outbox records."""

from soba.platform.sync.engine import EngineAdapterResolver, SyncEngine
from soba.platform.sync.errors import (
    AdapterTimeoutError,
    EngineResolutionError,
    InvalidEngineResponseError,
    SyncError,
    UnsupportedAggregateError,
)

__all__ = [
    "AdapterTimeoutError",
    "EngineAdapterResolver",
    "EngineResolutionError",
    "InvalidEngineResponseError",
    "SyncEngine",
    "SyncError",
    "UnsupportedAggregateError",
]
