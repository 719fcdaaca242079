"""Repository for Member lookups used by the claim-link subsystem."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from memberlink.models.member import Member


class MemberRepository:
    """Stateless repository for Member reads.

    All methods are static; no instance state.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, member_id: uuid.UUID) -> Member | None:
        """Look up a member by id.

        Args:
            db: Async database session.
            member_id: Member UUID.

        Returns:
            Member if found, None otherwise.
        """
        result = await db.execute(select(Member).where(Member.id == member_id))
        return result.scalar_one_or_none()
