"""Repository for EmailToken operations.

Claim tokens are looked up by the SHA-256 hash of their secret. Lifecycle
writes (supersede, mark used) are conditional UPDATEs so concurrent callers
cannot both win.
"""

import uuid
from datetime import datetime
from typing import Any, cast

from sqlalchemy import select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from memberlink.models.email_token import EmailToken


class EmailTokenRepository:
    """Stateless repository for EmailToken table operations.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        member_id: uuid.UUID,
        purpose: str,
        token_hash: str,
        email_sent_to: str,
        sent_by_user_id: uuid.UUID | None,
        issued_at: datetime,
        expires_at: datetime,
    ) -> EmailToken:
        """Insert a new live token.

        Args:
            db: Async database session.
            member_id: Member the link is for.
            purpose: Token purpose value.
            token_hash: SHA-256 hash of the plain secret.
            email_sent_to: Delivery address.
            sent_by_user_id: Issuing staff user.
            issued_at: Issue timestamp.
            expires_at: Expiry timestamp.

        Returns:
            Created EmailToken with database-generated fields.

        Raises:
            IntegrityError: If another live token exists for the pair.
        """
        token = EmailToken(
            member_id=member_id,
            purpose=purpose,
            token_hash=token_hash,
            email_sent_to=email_sent_to,
            sent_by_user_id=sent_by_user_id,
            issued_at=issued_at,
            expires_at=expires_at,
            is_live=True,
        )
        db.add(token)
        await db.flush()
        await db.refresh(token)
        return token

    @staticmethod
    async def get_by_id(db: AsyncSession, token_id: uuid.UUID) -> EmailToken | None:
        """Look up a token by id.

        Always re-reads the row: another session may have consumed or
        superseded it since this session loaded it.

        Args:
            db: Async database session.
            token_id: Token UUID.

        Returns:
            EmailToken if found, None otherwise.
        """
        stmt = (
            select(EmailToken)
            .where(EmailToken.id == token_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_hash(db: AsyncSession, token_hash: str) -> EmailToken | None:
        """Look up a token by secret hash.

        Args:
            db: Async database session.
            token_hash: SHA-256 hash of the plain secret.

        Returns:
            EmailToken if found, None otherwise.
        """
        stmt = select(EmailToken).where(EmailToken.token_hash == token_hash)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_live(
        db: AsyncSession,
        *,
        member_id: uuid.UUID,
        purpose: str,
    ) -> list[EmailToken]:
        """List live tokens for a member + purpose.

        Normally zero or one row; more only if the live index was bypassed.
        """
        stmt = select(EmailToken).where(
            EmailToken.member_id == member_id,
            EmailToken.purpose == purpose,
            EmailToken.is_live.is_(True),
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def latest_for_member(
        db: AsyncSession,
        *,
        member_id: uuid.UUID,
        purpose: str,
    ) -> EmailToken | None:
        """Most recently issued token for a member + purpose, live or not."""
        stmt = (
            select(EmailToken)
            .where(
                EmailToken.member_id == member_id,
                EmailToken.purpose == purpose,
            )
            .order_by(EmailToken.issued_at.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def supersede(
        db: AsyncSession,
        token_id: uuid.UUID,
        *,
        reason: str,
        superseded_at: datetime,
    ) -> bool:
        """Mark a live token non-live.

        No-op for tokens that are already non-live, so re-running after a
        partial failure is safe.

        Returns:
            True if the row transitioned, False if it was already non-live.
        """
        stmt = (
            update(EmailToken)
            .where(EmailToken.id == token_id, EmailToken.is_live.is_(True))
            .values(
                is_live=False,
                superseded_reason=reason,
                superseded_at=superseded_at,
            )
        )
        result = cast(CursorResult[Any], await db.execute(stmt))
        rows_updated: int = result.rowcount
        return rows_updated > 0

    @staticmethod
    async def mark_used_if_live(
        db: AsyncSession,
        token_id: uuid.UUID,
        *,
        used_at: datetime,
        used_from_ip: str | None,
    ) -> bool:
        """Atomically consume a token.

        Uses WHERE used_at IS NULL AND is_live so only one completion is
        authoritative and a superseded token cannot be consumed.

        Returns:
            True if this call consumed the token, False otherwise.
        """
        stmt = (
            update(EmailToken)
            .where(
                EmailToken.id == token_id,
                EmailToken.used_at.is_(None),
                EmailToken.is_live.is_(True),
            )
            .values(used_at=used_at, used_from_ip=used_from_ip)
        )
        result = cast(CursorResult[Any], await db.execute(stmt))
        rows_updated: int = result.rowcount
        return rows_updated > 0
