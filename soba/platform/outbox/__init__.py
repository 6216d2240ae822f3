"""Transactional outbox models and helpers."""

from soba.platform.outbox.models import OutboxRecord
from soba.platform.outbox.schemas import EventPayloadError, QueueEvent, decode_event, encode_payload
from soba.platform.outbox.services import (
    OutboxStats,
    claim_batch,
    compute_backoff,
    enqueue,
    mark_failed,
    mark_succeeded,
    outbox_stats,
    reclaim_stale_leases,
)

__all__ = [
    "EventPayloadError",
    "OutboxRecord",
    "OutboxStats",
    "QueueEvent",
    "claim_batch",
    "compute_backoff",
    "decode_event",
    "encode_payload",
    "enqueue",
    "mark_failed",
    "mark_succeeded",
    "outbox_stats",
    "reclaim_stale_leases",
]
