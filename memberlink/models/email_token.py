"""Email token model - single-use member claim links.

Each row grants one member permission to perform one action once. Only the
SHA-256 hash of the bearer secret is stored; the plain secret exists only in
the emailed claim URL.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from memberlink.models.base import Base

_DEFAULT_UUID = text("gen_random_uuid()")


class EmailToken(Base):
    """Single-use, expiring, purpose-scoped claim token.

    Attributes:
        id: UUID primary key.
        member_id: Member the link was issued for.
        purpose: ``"document_upload"`` or ``"declaration_signature"``.
        token_hash: SHA-256 hex digest of the bearer secret.
        email_sent_to: Address the link was sent to.
        sent_by_user_id: Staff user who requested the link.
        issued_at: Issue timestamp.
        expires_at: Fixed at issue time, never extended.
        used_at: Set once when the claim completes. NULL = unused.
        used_from_ip: Client address seen by the server at consumption.
        is_live: False once superseded or revoked.
        superseded_reason: Why the token stopped being live (not via use).
        superseded_at: When the token stopped being live.
    """

    __tablename__ = "email_tokens"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    member_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
    )
    purpose: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )
    token_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )
    email_sent_to: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    sent_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
    )
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    used_from_ip: Mapped[str | None] = mapped_column(
        String(45),
        nullable=True,
    )
    is_live: Mapped[bool] = mapped_column(
        Boolean,
        server_default=text("true"),
        nullable=False,
    )
    superseded_reason: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    superseded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(
            "purpose IN ('document_upload', 'declaration_signature')",
            name="ck_email_tokens_purpose",
        ),
        # At most one live token per member + purpose. A concurrent second
        # issuance hits this index instead of leaving two live links.
        Index(
            "uq_email_tokens_live_member_purpose",
            "member_id",
            "purpose",
            unique=True,
            postgresql_where=text("is_live"),
        ),
        Index("idx_email_tokens_member_id", "member_id"),
    )
