"""Member model - the person a claim link is issued for.

Only the columns the claim-link subsystem reads are mapped here; the rest of
the membership record is owned by the back-office CRUD screens.
"""

import uuid

from sqlalchemy import String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from memberlink.models.base import Base, TimestampMixin

_DEFAULT_UUID = text("gen_random_uuid()")


class Member(Base, TimestampMixin):
    """Funeral-plan member.

    Attributes:
        id: UUID primary key.
        first_name: Given name, used for the signature match.
        last_name: Family name, used for the signature match.
        email: Address claim links are sent to.
    """

    __tablename__ = "members"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
