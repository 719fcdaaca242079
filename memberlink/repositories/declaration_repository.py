"""Repository for signed declarations."""

import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from memberlink.models.declaration import Declaration


class DeclarationRepository:
    """Stateless repository for Declaration table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        member_id: uuid.UUID,
        medical_consent: bool,
        terms_accepted: bool,
        signature_text: str,
        signed_at: datetime,
        signed_from_ip: str | None,
    ) -> Declaration:
        """Insert a signed declaration record."""
        declaration = Declaration(
            member_id=member_id,
            medical_consent=medical_consent,
            terms_accepted=terms_accepted,
            signature_text=signature_text,
            signed_at=signed_at,
            signed_from_ip=signed_from_ip,
        )
        db.add(declaration)
        await db.flush()
        return declaration

    @staticmethod
    async def has_signed(db: AsyncSession, member_id: uuid.UUID) -> bool:
        """True if the member has a declaration with both consents given."""
        stmt = (
            select(func.count())
            .select_from(Declaration)
            .where(
                Declaration.member_id == member_id,
                Declaration.medical_consent.is_(True),
                Declaration.terms_accepted.is_(True),
            )
        )
        result = await db.execute(stmt)
        return result.scalar_one() > 0
