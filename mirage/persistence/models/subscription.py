import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String,
    Text,
    Boolean,
    Integer,
    Numeric,
    DateTime,
    ForeignKey,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from mirage.persistence.base import Base


class SubscriptionPlan(Base):
    """
    A purchasable plan and the limits it grants.
    """

    __tablename__ = "subscription_plans"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        doc="free, pro, enterprise"
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    price_monthly: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00")
    )

    # ─────────────────────────────────────────────
    # Limits
    # ─────────────────────────────────────────────

    max_endpoints: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=10
    )

    max_requests_per_month: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=10
    )

    max_request_delay_ms: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=5000
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )


class Subscription(Base):
    """
    Links a user to a plan.

    Subscriptions are time-bound and historical.
    Only ONE subscription should be current at a time.
    """

    __tablename__ = "user_subscriptions"

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

    plan_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("subscription_plans.id"),
        nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        doc="active, canceled, expired, suspended"
    )

    # ─────────────────────────────────────────────
    # Validity Window
    # ─────────────────────────────────────────────

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    # ─────────────────────────────────────────────
    # Relationships
    # ─────────────────────────────────────────────

    plan = relationship(
        "SubscriptionPlan",
        lazy="selectin"
    )

    __table_args__ = (
        Index(
            "ix_user_subscriptions_user_status",
            "user_id",
            "status"
        ),
    )
