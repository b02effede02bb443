import uuid
from datetime import datetime, date, timezone

from sqlalchemy import (
    String,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from mirage.persistence.base import Base


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class UsageRecord(Base):
    """
    Records a single served mock request.

    Used for:
    - quota enforcement (monthly request counter)
    - analytics

    Rows are append-only.
    """

    __tablename__ = "api_usage"

    # ─────────────────────────────────────────────
    # Primary Key
    # ─────────────────────────────────────────────

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # ─────────────────────────────────────────────
    # Ownership
    # ─────────────────────────────────────────────

    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        doc="Survives user deletion as NULL so analytics keep the row"
    )

    endpoint_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("mock_endpoints.id", ondelete="SET NULL"),
        nullable=True
    )

    # ─────────────────────────────────────────────
    # Request Details
    # ─────────────────────────────────────────────

    method: Mapped[str] = mapped_column(String(10), nullable=False)

    url_pattern: Mapped[str] = mapped_column(String(500), nullable=False)

    response_status_code: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True
    )

    processing_time_ms: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True
    )

    # ─────────────────────────────────────────────
    # Metadata
    # ─────────────────────────────────────────────

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    date_key: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        default=utc_today,
        doc="UTC day, used for monthly rollups"
    )

    __table_args__ = (
        Index(
            "ix_api_usage_user_date",
            "user_id",
            "date_key"
        ),
    )
