"""Classify a claim secret for an expected purpose.

Validation is read-only and may run any number of times for the same link
(page reloads, link previews). Precedence is fixed so a token that is both
used and expired always reads as used:

    not found / wrong purpose -> already used -> expired -> revoked -> valid
"""

import logging

from memberlink.services.token_types import (
    Clock,
    OutcomeKind,
    TokenPurpose,
    ValidationOutcome,
    utc_now,
)
from memberlink.stores.base import MemberRecordStore, TokenStore

logger = logging.getLogger(__name__)


class TokenValidator:
    """Resolves a bearer secret to a ValidationOutcome.

    Store failures propagate as StoreUnavailableError; the caller decides
    how to present them.
    """

    def __init__(
        self,
        tokens: TokenStore,
        records: MemberRecordStore,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._tokens = tokens
        self._records = records
        self._clock = clock

    async def validate(
        self, secret: str, expected_purpose: TokenPurpose
    ) -> ValidationOutcome:
        """Classify a secret.

        Args:
            secret: Plain secret from the claim URL.
            expected_purpose: Purpose of the page the link was opened on.

        Returns:
            Exactly one outcome. Only VALID carries the token and member.
        """
        token = await self._tokens.find_by_secret(secret)

        # A link for the other page is indistinguishable from a bad link
        if token is None or token.purpose != expected_purpose:
            return ValidationOutcome.of(OutcomeKind.NOT_FOUND)

        if token.is_used:
            return ValidationOutcome.of(OutcomeKind.ALREADY_USED)

        if token.is_expired(self._clock()):
            return ValidationOutcome.of(OutcomeKind.EXPIRED)

        if not token.is_live:
            return ValidationOutcome.of(OutcomeKind.REVOKED)

        member = await self._records.get_member(token.member_id)
        if member is None:
            logger.warning("Token %s references a missing member", token.id)
            return ValidationOutcome.of(OutcomeKind.NOT_FOUND)

        return ValidationOutcome.valid(token, member)
