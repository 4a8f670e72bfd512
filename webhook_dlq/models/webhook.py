"""
Webhook queue model.

One row per delivery lineage: retries mutate the same row.
"""
import uuid
import enum
from datetime import datetime
from sqlalchemy import String, Text, Integer, DateTime, Index, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from webhook_dlq.models.base import Base, utcnow


class WebhookEventType(str, enum.Enum):
    """Closed set of event kinds producers may enqueue."""
    SUBMISSION_CREATED = "submission.created"
    SUBMISSION_UPDATED = "submission.updated"
    STATUS_UPDATED = "status_updated"
    MESSAGE_SENT = "message.sent"
    MESSAGE_READ = "message.read"
    SPEAKER_REPLY = "speaker.reply"
    CONSENT_REVOKED = "consent.revoked"
    PROFILE_UPDATED = "profile.updated"


class WebhookStatus(str, enum.Enum):
    """Delivery status. dead_letter and success are terminal."""
    PENDING_RETRY = "pending_retry"
    DEAD_LETTER = "dead_letter"
    SUCCESS = "success"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class WebhookQueueEntry(Base):
    """
    A queued outbound webhook delivery.
    
    attempt counts finished attempts; next_retry_at is None once the
    entry is terminal. claimed_until is the lease held by the worker
    currently attempting the entry.
    """
    __tablename__ = "webhook_queue"
    __table_args__ = (
        Index("ix_webhook_queue_status_next_retry_at", "status", "next_retry_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    event_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    webhook_type: Mapped[WebhookEventType] = mapped_column(
        SQLEnum(WebhookEventType, native_enum=False, values_callable=_enum_values, length=32),
        nullable=False
    )
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    webhook_url: Mapped[str] = mapped_column(Text, nullable=False)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_attempt_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    next_retry_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    status: Mapped[WebhookStatus] = mapped_column(
        SQLEnum(WebhookStatus, native_enum=False, values_callable=_enum_values, length=20),
        nullable=False,
        default=WebhookStatus.PENDING_RETRY
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    claimed_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self):
        return (
            f"<WebhookQueueEntry(id={self.id}, type={self.webhook_type}, "
            f"status={self.status}, attempt={self.attempt})>"
        )
