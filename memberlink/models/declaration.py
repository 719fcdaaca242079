"""Declaration model - signed medical consent and terms declarations."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from memberlink.models.base import Base

_DEFAULT_UUID = text("gen_random_uuid()")


class Declaration(Base):
    """Declarations signed by a member through a claim link.

    Attributes:
        id: UUID primary key.
        member_id: Signing member.
        medical_consent: Medical consent declaration accepted.
        terms_accepted: Terms and conditions declaration accepted.
        signature_text: Typed signature exactly as entered.
        signed_at: Signing timestamp.
        signed_from_ip: Client address seen by the server.
    """

    __tablename__ = "declarations"

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
    medical_consent: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
    )
    terms_accepted: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
    )
    signature_text: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    signed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    signed_from_ip: Mapped[str | None] = mapped_column(
        String(45),
        nullable=True,
    )
