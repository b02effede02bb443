import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    String,
    Text,
    Boolean,
    Integer,
    DateTime,
    ForeignKey,
    Index,
    CheckConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from mirage.persistence.base import Base


HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")


class MockEndpoint(Base):
    """
    A stored (method, url_pattern) -> canned response definition.

    Rows are never physically deleted; `is_active` is the soft-delete flag.
    Among one owner's active rows, (method, url_pattern) is unique.
    """

    __tablename__ = "mock_endpoints"

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

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # ─────────────────────────────────────────────
    # Description
    # ─────────────────────────────────────────────

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # ─────────────────────────────────────────────
    # Matching
    # ─────────────────────────────────────────────

    method: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        index=True
    )

    url_pattern: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        doc="Path template, e.g. /api/users/{id} or /api/posts/*"
    )

    request_schema: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB,
        nullable=True
    )

    # ─────────────────────────────────────────────
    # Canned response
    # ─────────────────────────────────────────────

    response_data: Mapped[Any] = mapped_column(JSONB, nullable=False)

    response_status_code: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=200
    )

    response_delay_ms: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        index=True
    )

    # ─────────────────────────────────────────────
    # Timestamps
    # ─────────────────────────────────────────────

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index(
            "uq_mock_endpoints_owner_active",
            "user_id",
            "method",
            "url_pattern",
            unique=True,
            postgresql_where=text("is_active"),
        ),
        CheckConstraint(
            f"method IN ({', '.join(repr(m) for m in HTTP_METHODS)})",
            name="ck_mock_endpoints_method",
        ),
        CheckConstraint(
            "response_status_code >= 100 AND response_status_code < 600",
            name="ck_mock_endpoints_status_code",
        ),
        CheckConstraint(
            "response_delay_ms >= 0",
            name="ck_mock_endpoints_delay",
        ),
    )
