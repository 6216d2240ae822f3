"""Outbox store: enqueue, lease-based claiming and status transitions."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func, or_

from soba.core.utils.clock import utcnow
from soba.extensions import db
from soba.platform.outbox.models import OutboxRecord
from soba.platform.outbox.schemas import QueueEvent, encode_payload

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_DONE = "done"
OUTBOX_STATUSES = (STATUS_PENDING, STATUS_PROCESSING, STATUS_DONE)

BACKOFF_STEP = timedelta(minutes=1)
BACKOFF_CAP = timedelta(minutes=10)
LAST_ERROR_MAX_LENGTH = 1000


def compute_backoff(attempt_count_before: int) -> timedelta:
    """Linear backoff: one more minute per failed attempt, capped at ten minutes."""
    attempts = max(int(attempt_count_before), 0) + 1
    # Compare before multiplying so huge attempt counts cannot overflow timedelta.
    if attempts >= BACKOFF_CAP // BACKOFF_STEP:
        return BACKOFF_CAP
    return BACKOFF_STEP * attempts


def truncate_error(message: Optional[str], limit: int = LAST_ERROR_MAX_LENGTH) -> str:
    return (message or "")[:limit]


def enqueue(event: QueueEvent | dict) -> OutboxRecord:
    """
    Stage an event in the outbox. Caller commits alongside the entity change.
    """
    if not isinstance(event, QueueEvent):
        event = QueueEvent.model_validate(event)
    payload = encode_payload(event.aggregate_type, event.payload)
    now = utcnow()
    record = OutboxRecord(
        topic=event.topic,
        aggregate_type=event.aggregate_type,
        aggregate_id=event.aggregate_id,
        workspace_id=event.workspace_id,
        payload=payload,
        status=STATUS_PENDING,
        attempt_count=0,
        created_at=now,
        updated_at=now,
        created_by=event.actor_id,
        updated_by=event.actor_id,
    )
    db.session.add(record)
    db.session.flush()
    logger.debug(
        "Staged outbox record id=%s topic=%s aggregate=%s:%s",
        record.id,
        record.topic,
        record.aggregate_type,
        record.aggregate_id,
    )
    return record


def _select_eligible_ids(session, limit: int, now: datetime) -> List[str]:
    query = (
        session.query(OutboxRecord.id)
        .filter(
            OutboxRecord.status == STATUS_PENDING,
            or_(OutboxRecord.next_attempt_at.is_(None), OutboxRecord.next_attempt_at <= now),
        )
        .order_by(OutboxRecord.created_at.asc(), OutboxRecord.id.asc())
        .with_for_update(skip_locked=True)
        .limit(limit)
    )
    return [row[0] for row in query.all()]


def _acquire_lease(session, ids: Sequence[str], token: str, now: datetime) -> List[OutboxRecord]:
    """Flip still-pending rows to processing under `token`; return what we got."""
    if not ids:
        return []
    session.query(OutboxRecord).filter(
        OutboxRecord.id.in_(list(ids)),
        OutboxRecord.status == STATUS_PENDING,
    ).update(
        {
            "status": STATUS_PROCESSING,
            "locked_by": token,
            "locked_at": now,
            "updated_at": now,
        },
        synchronize_session=False,
    )
    return (
        session.query(OutboxRecord)
        .filter(OutboxRecord.locked_by == token, OutboxRecord.status == STATUS_PROCESSING)
        .order_by(OutboxRecord.created_at.asc(), OutboxRecord.id.asc())
        .populate_existing()
        .all()
    )


def claim_batch(limit: int = 25, *, now: Optional[datetime] = None, session=None) -> List[OutboxRecord]:
    """
    Lease up to `limit` due records, oldest first, and mark them processing.

    Rows already leased by a concurrent claimer are skipped, never waited on.
    The transaction commits before returning so no lock outlives the claim.
    """
    session = session or db.session
    now = now or utcnow()
    token = uuid.uuid4().hex
    try:
        ids = _select_eligible_ids(session, max(int(limit), 1), now)
        claimed = _acquire_lease(session, ids, token, now)
        session.commit()
    except Exception:
        session.rollback()
        raise
    if claimed:
        logger.debug("Claimed %s outbox record(s) under lease %s", len(claimed), token)
    return claimed


def _leased(session, record_id: str, lease_token: Optional[str]):
    query = session.query(OutboxRecord).filter(
        OutboxRecord.id == record_id,
        OutboxRecord.status == STATUS_PROCESSING,
    )
    if lease_token is not None:
        query = query.filter(OutboxRecord.locked_by == lease_token)
    return query


def mark_succeeded(
    record_id: str,
    actor_id: Optional[str] = None,
    *,
    lease_token: Optional[str] = None,
    session=None,
) -> bool:
    """
    Settle a leased record as done. Returns False when the lease was lost,
    in which case nothing is written.
    """
    session = session or db.session
    updated = _leased(session, record_id, lease_token).update(
        {
            "status": STATUS_DONE,
            "last_error": None,
            "locked_by": None,
            "locked_at": None,
            "updated_at": utcnow(),
            "updated_by": actor_id,
        },
        synchronize_session=False,
    )
    session.commit()
    if not updated:
        logger.info("Outbox record %s is no longer leased by %s; success not recorded", record_id, lease_token)
        return False
    return True


def mark_failed(
    record_id: str,
    message: Optional[str],
    attempt_count_before: int,
    actor_id: Optional[str] = None,
    *,
    lease_token: Optional[str] = None,
    now: Optional[datetime] = None,
    session=None,
) -> Optional[datetime]:
    """
    Return a leased record to pending with backoff and return the next
    attempt time, or None when the lease was lost.
    """
    session = session or db.session
    now = now or utcnow()
    next_attempt_at = now + compute_backoff(attempt_count_before)
    updated = _leased(session, record_id, lease_token).update(
        {
            "status": STATUS_PENDING,
            "attempt_count": int(attempt_count_before) + 1,
            "next_attempt_at": next_attempt_at,
            "last_error": truncate_error(message),
            "locked_by": None,
            "locked_at": None,
            "updated_at": now,
            "updated_by": actor_id,
        },
        synchronize_session=False,
    )
    session.commit()
    if not updated:
        logger.info("Outbox record %s is no longer leased by %s; failure not recorded", record_id, lease_token)
        return None
    return next_attempt_at


@dataclass
class OutboxStats:
    """Point-in-time view of the outbox for operators."""

    by_status: Dict[str, int] = field(default_factory=dict)
    retrying: int = 0
    stale_leases: int = 0

    @property
    def healthy(self) -> bool:
        return self.retrying == 0 and self.stale_leases == 0


def outbox_stats(
    *,
    now: Optional[datetime] = None,
    retry_alert_attempts: int = 10,
    stale_after: timedelta = timedelta(minutes=15),
) -> OutboxStats:
    now = now or utcnow()
    rows = db.session.query(OutboxRecord.status, func.count(OutboxRecord.id)).group_by(OutboxRecord.status).all()
    by_status = {status: 0 for status in OUTBOX_STATUSES}
    for status, count in rows:
        by_status[status] = count

    retrying = (
        db.session.query(func.count(OutboxRecord.id))
        .filter(
            OutboxRecord.status == STATUS_PENDING,
            OutboxRecord.attempt_count >= retry_alert_attempts,
        )
        .scalar()
    )
    stale = (
        db.session.query(func.count(OutboxRecord.id))
        .filter(
            OutboxRecord.status == STATUS_PROCESSING,
            or_(OutboxRecord.locked_at.is_(None), OutboxRecord.locked_at < now - stale_after),
        )
        .scalar()
    )
    return OutboxStats(by_status=by_status, retrying=retrying or 0, stale_leases=stale or 0)


def reclaim_stale_leases(
    older_than: timedelta,
    *,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Return processing records whose lease is older than `older_than` to pending.

    Operator action only; the worker never calls this. Attempt counts are left
    untouched because the interrupted attempt did not report a failure.
    """
    now = now or utcnow()
    updated = (
        db.session.query(OutboxRecord)
        .filter(
            OutboxRecord.status == STATUS_PROCESSING,
            or_(OutboxRecord.locked_at.is_(None), OutboxRecord.locked_at < now - older_than),
        )
        .update(
            {
                "status": STATUS_PENDING,
                "next_attempt_at": None,
                "locked_by": None,
                "locked_at": None,
                "updated_at": now,
                "updated_by": actor_id,
            },
            synchronize_session=False,
        )
    )
    db.session.commit()
    if updated:
        logger.warning("Reclaimed %s stale outbox lease(s) older than %s", updated, older_than)
    return updated


__all__ = [
    "BACKOFF_CAP",
    "OutboxStats",
    "STATUS_DONE",
    "STATUS_PENDING",
    "STATUS_PROCESSING",
    "claim_batch",
    "compute_backoff",
    "enqueue",
    "mark_failed",
    "mark_succeeded",
    "outbox_stats",
    "reclaim_stale_leases",
]
