"""Repository for the member activity log."""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from memberlink.models.activity import ActivityLog


class ActivityRepository:
    """Stateless repository for ActivityLog inserts.

    All methods are static; no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        member_id: uuid.UUID,
        action_type: str,
        description: str,
        entity_type: str | None = None,
        performed_by: uuid.UUID | None = None,
    ) -> ActivityLog:
        """Append an activity entry.

        Args:
            db: Async database session.
            member_id: Member the activity relates to.
            action_type: Machine-readable action.
            description: Human-readable summary.
            entity_type: Kind of record touched.
            performed_by: Staff user, None for member self-service.

        Returns:
            Created ActivityLog.
        """
        entry = ActivityLog(
            member_id=member_id,
            action_type=action_type,
            entity_type=entity_type,
            description=description,
            performed_by=performed_by,
        )
        db.add(entry)
        await db.flush()
        return entry
