import uuid
from datetime import datetime

from sqlalchemy import (
    String,
    Boolean,
    DateTime,
    ForeignKey,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from mirage.persistence.base import Base


class ApiKey(Base):
    """
    A long-lived credential (`mk_...`) for calling mock endpoints.

    Only the sha256 of the raw key is stored.
    """

    __tablename__ = "user_api_keys"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    key_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True
    )

    key_prefix: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        doc="First 8 characters, for display"
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    permissions: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=lambda: ["read", "write"]
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False
    )

    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
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
