"""Issue and revoke single-use claim tokens.

Issuing a token for a (member, purpose) pair supersedes every live token of
that pair first, so at most one link per pair is ever usable. Each step is
idempotent, which makes a partially failed issuance safe to retry.

Order of operations:
1. Supersede live tokens of the pair ("new token issued")
2. Generate a fresh secret (256 bits)
3. Insert the live token, expiring after the configured TTL
4. Append an email_sent activity (best effort)
5. Commit and return the claim URL
"""

import logging
import secrets
import uuid
from datetime import datetime, timedelta

from memberlink.core.config import settings
from memberlink.core.errors import ConflictError, NotFoundError
from memberlink.services.activity_logger import (
    EMAIL_SENT,
    TOKEN_REVOKED,
    log_activity,
)
from memberlink.services.token_types import (
    Clock,
    IssuedToken,
    MemberRecord,
    TokenPurpose,
    TokenRecord,
    hash_secret,
    utc_now,
)
from memberlink.stores.base import LiveTokenConflictError, StoreBundle

logger = logging.getLogger(__name__)

SUPERSEDED_BY_NEW_TOKEN = "new token issued"
DEFAULT_REVOKE_REASON = "revoked by staff"

# token_urlsafe(32) -> 32 random bytes, 43 URL-safe characters
_SECRET_BYTES = 32


def build_claim_url(frontend_url: str, purpose: TokenPurpose, secret: str) -> str:
    """Member-facing URL carrying the plain secret."""
    return f"{frontend_url.rstrip('/')}/{purpose.claim_path}?token={secret}"


class TokenIssuer:
    """Creates and revokes claim tokens for staff.

    Attributes are injected so tests can pin the clock and TTL.
    """

    def __init__(
        self,
        stores: StoreBundle,
        *,
        clock: Clock = utc_now,
        ttl_days: int | None = None,
        frontend_url: str | None = None,
    ) -> None:
        self._stores = stores
        self._clock = clock
        self._ttl = timedelta(
            days=ttl_days if ttl_days is not None else settings.token_ttl_days
        )
        self._frontend_url = frontend_url or settings.frontend_url

    async def issue(
        self,
        member_id: uuid.UUID,
        purpose: TokenPurpose,
        actor_id: uuid.UUID | None,
    ) -> IssuedToken:
        """Issue a new claim token for a member.

        Args:
            member_id: Member the link is for.
            purpose: Action the link authorizes.
            actor_id: Issuing staff user.

        Returns:
            IssuedToken with the plain secret and claim URL.

        Raises:
            NotFoundError: If the member does not exist.
            ConflictError: If concurrent issuances kept colliding.
            StoreUnavailableError: If the store failed.
        """
        member = await self._stores.records.get_member(member_id)
        if member is None:
            raise NotFoundError("Member", str(member_id))

        secret = secrets.token_urlsafe(_SECRET_BYTES)
        token = await self._supersede_and_insert(member, purpose, secret, actor_id)

        await log_activity(
            self._stores.activity,
            member.id,
            EMAIL_SENT,
            f"Sent {purpose.label} email to {member.email}",
            entity_type="email_token",
            performed_by=actor_id,
        )
        await self._stores.transaction.commit()

        logger.info(
            "Issued %s token %s for member %s", purpose.value, token.id, member.id
        )
        return IssuedToken(
            token_id=token.id,
            member=member,
            purpose=purpose,
            secret=secret,
            claim_url=build_claim_url(self._frontend_url, purpose, secret),
            expires_at=token.expires_at,
        )

    async def _supersede_and_insert(
        self,
        member: MemberRecord,
        purpose: TokenPurpose,
        secret: str,
        actor_id: uuid.UUID | None,
    ) -> TokenRecord:
        # Second attempt covers an issuance that raced us between the
        # supersede and the insert.
        for attempt in range(2):
            now = self._clock()
            await self._supersede_live(member.id, purpose, now)
            try:
                return await self._stores.tokens.insert(
                    member_id=member.id,
                    purpose=purpose,
                    token_hash=hash_secret(secret),
                    email_sent_to=member.email,
                    sent_by_user_id=actor_id,
                    issued_at=now,
                    expires_at=now + self._ttl,
                )
            except LiveTokenConflictError:
                logger.warning(
                    "Concurrent %s issuance for member %s (attempt %d)",
                    purpose.value,
                    member.id,
                    attempt + 1,
                )
        raise ConflictError(
            code="CONCURRENT_ISSUANCE",
            message="Another link is being issued for this member. Please try again.",
        )

    async def _supersede_live(
        self, member_id: uuid.UUID, purpose: TokenPurpose, now: datetime
    ) -> None:
        live = await self._stores.tokens.find_live_by_member_and_purpose(
            member_id, purpose
        )
        for token in live:
            await self._stores.tokens.supersede(
                token.id, reason=SUPERSEDED_BY_NEW_TOKEN, superseded_at=now
            )

    async def revoke(
        self,
        token_id: uuid.UUID,
        *,
        reason: str | None,
        actor_id: uuid.UUID | None,
    ) -> TokenRecord:
        """Administratively revoke a token.

        Revoking a token that is already non-live is a no-op.

        Raises:
            NotFoundError: If the token does not exist.
            ConflictError: TOKEN_ALREADY_USED if the member already claimed it.
        """
        token = await self._stores.tokens.get_by_id(token_id)
        if token is None:
            raise NotFoundError("Email token", str(token_id))
        if token.is_used:
            raise ConflictError(
                code="TOKEN_ALREADY_USED",
                message="This link has already been used and cannot be revoked",
            )
        if not token.is_live:
            return token

        revoked = await self._stores.tokens.supersede(
            token.id,
            reason=reason or DEFAULT_REVOKE_REASON,
            superseded_at=self._clock(),
        )
        if revoked:
            await log_activity(
                self._stores.activity,
                token.member_id,
                TOKEN_REVOKED,
                f"Revoked {token.purpose.label} link: {reason or DEFAULT_REVOKE_REASON}",
                entity_type="email_token",
                performed_by=actor_id,
            )
        await self._stores.transaction.commit()

        current = await self._stores.tokens.get_by_id(token.id)
        return current or token
