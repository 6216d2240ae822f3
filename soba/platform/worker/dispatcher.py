"""Outbox worker: claims due records and hands them to the sync engine."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from soba.extensions import db
from soba.platform.outbox.models import OutboxRecord
from soba.platform.outbox.services import claim_batch, mark_failed, mark_succeeded
from soba.platform.worker.config import WorkerConfig

logger = logging.getLogger(__name__)


class StoreUnavailableError(RuntimeError):
    """The outbox store cannot be reached; the worker must stop."""


@dataclass
class BatchResult:
    claimed: int = 0
    succeeded: int = 0
    failed: int = 0

    def __add__(self, other: "BatchResult") -> "BatchResult":
        return BatchResult(
            claimed=self.claimed + other.claimed,
            succeeded=self.succeeded + other.succeeded,
            failed=self.failed + other.failed,
        )


def ping_store(session=None) -> None:
    """Raise StoreUnavailableError unless a trivial query round-trips."""
    session = session or db.session
    try:
        session.execute(text("SELECT 1"))
        session.rollback()
    except SQLAlchemyError as exc:
        raise StoreUnavailableError(f"Outbox store is unreachable: {exc}") from exc


def process_record(sync_engine, record: OutboxRecord, config: WorkerConfig, session=None) -> bool:
    """
    Sync one claimed record and settle its outbox status.

    Any exception from the sync engine requeues the record with backoff.
    Status writes only land while this worker still holds the record's lease;
    a record reclaimed by an operator in the meantime is left to its new owner.
    Errors raised by the status writes themselves propagate.
    """
    session = session or db.session
    # Rollback expires the instance, so capture what the failure path needs first.
    record_id = record.id
    attempts_before = record.attempt_count or 0
    topic = record.topic
    lease_token = record.locked_by

    try:
        sync_engine.process(record)
    except Exception as exc:
        session.rollback()
        message = str(exc) or exc.__class__.__name__
        next_attempt_at = mark_failed(
            record_id,
            message,
            attempts_before,
            config.system_actor_id,
            lease_token=lease_token,
            session=session,
        )
        if next_attempt_at is None:
            logger.warning("Lease on outbox record %s (%s) was lost before its failure was recorded", record_id, topic)
            return False
        attempts = attempts_before + 1
        logger.warning(
            "Outbox record %s (%s) failed on attempt %s, retrying at %s: %s",
            record_id,
            topic,
            attempts,
            next_attempt_at.isoformat(),
            message,
        )
        if attempts >= config.retry_alert_attempts:
            logger.warning(
                "Outbox record %s has failed %s times and is still being retried",
                record_id,
                attempts,
            )
        return False

    if not mark_succeeded(record_id, config.system_actor_id, lease_token=lease_token, session=session):
        logger.warning("Lease on outbox record %s (%s) was lost before it was marked done", record_id, topic)
        return False
    logger.debug("Outbox record %s (%s) done", record_id, topic)
    return True


def run_once(sync_engine, config: WorkerConfig, session=None) -> BatchResult:
    """Claim one batch and process every record in it independently."""
    session = session or db.session
    records = claim_batch(config.batch_size, session=session)
    result = BatchResult(claimed=len(records))
    for record in records:
        if process_record(sync_engine, record, config, session=session):
            result.succeeded += 1
        else:
            result.failed += 1
    if result.claimed:
        logger.info(
            "Outbox batch processed (claimed=%s, succeeded=%s, failed=%s)",
            result.claimed,
            result.succeeded,
            result.failed,
        )
    return result


def _rollback_quietly(session) -> None:
    try:
        session.rollback()
    except SQLAlchemyError:
        logger.exception("Rollback after failed outbox iteration also failed")


def run_worker(
    sync_engine,
    config: WorkerConfig,
    *,
    iterations: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
    session=None,
) -> BatchResult:
    """
    Run the worker loop forever, or `iterations` times when given.

    A failed iteration is logged and the loop carries on. If the store can no
    longer be reached afterwards, StoreUnavailableError is raised.
    """
    session = session or db.session
    total = BatchResult()

    logger.info(
        "Starting outbox worker (batch_size=%s, poll_interval=%sms, adapter_timeout=%ss)",
        config.batch_size,
        config.poll_interval_ms,
        config.adapter_timeout,
    )

    completed = 0
    try:
        while iterations is None or completed < iterations:
            completed += 1
            try:
                result = run_once(sync_engine, config, session=session)
            except SQLAlchemyError:
                logger.exception("Database error while processing outbox batch")
                _rollback_quietly(session)
                ping_store(session)
                result = BatchResult()
            except Exception:
                logger.exception("Unexpected error while processing outbox batch")
                _rollback_quietly(session)
                result = BatchResult()
            total = total + result

            if iterations is not None and completed >= iterations:
                break
            if result.claimed == 0:
                sleep(config.poll_interval)
            else:
                sleep(min(0.1, config.poll_interval))
    except KeyboardInterrupt:
        logger.info("Outbox worker stopped by user")
    return total


__all__ = [
    "BatchResult",
    "StoreUnavailableError",
    "ping_store",
    "process_record",
    "run_once",
    "run_worker",
]
