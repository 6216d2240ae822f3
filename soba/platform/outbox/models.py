"""Transactional outbox record model."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column

from soba.core.utils.clock import utcnow
from soba.extensions import db


def _new_id() -> str:
    return str(uuid.uuid4())


class OutboxRecord(db.Model):
    __tablename__ = "integration_outbox"
    __table_args__ = (
        db.Index("integration_outbox_status_workspace_idx", "status", "workspace_id"),
        db.Index("integration_outbox_status_next_attempt_idx", "status", "next_attempt_at"),
        db.Index("integration_outbox_aggregate_idx", "aggregate_type", "aggregate_id"),
        db.CheckConstraint("attempt_count >= 0", name="integration_outbox_attempt_count_nonneg"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=_new_id)
    workspace_id: Mapped[str] = mapped_column(db.String(36), nullable=False)
    topic: Mapped[str] = mapped_column(db.Text, nullable=False)
    aggregate_type: Mapped[str] = mapped_column(db.String(64), nullable=False)
    aggregate_id: Mapped[str] = mapped_column(db.String(36), nullable=False)
    payload: Mapped[dict] = mapped_column(db.JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(db.String(32), nullable=False, default="pending")
    attempt_count: Mapped[int] = mapped_column(nullable=False, default=0)
    next_attempt_at: Mapped[datetime | None] = mapped_column()
    last_error: Mapped[str | None] = mapped_column(db.Text)
    # Lease held while status is "processing".
    locked_by: Mapped[str | None] = mapped_column(db.String(64))
    locked_at: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    created_by: Mapped[str | None] = mapped_column(db.String(64))
    updated_by: Mapped[str | None] = mapped_column(db.String(64))

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<OutboxRecord id={self.id} agg={self.aggregate_type}:{self.aggregate_id} "
            f"status={self.status} attempts={self.attempt_count}>"
        )
