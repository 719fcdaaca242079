"""Staff-facing status of a member's claim links.

Summarizes the latest token per purpose together with whether the records
the link collects are actually on file.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from memberlink.services.token_types import TokenPurpose, TokenRecord
from memberlink.stores.base import StoreBundle


class TokenStatus(str, Enum):
    """Display status of the latest token for a purpose."""

    NOT_SENT = "not_sent"
    PENDING = "pending"
    EXPIRED = "expired"
    INVALIDATED = "invalidated"
    COMPLETED = "completed"


def summarize_token(token: TokenRecord | None, now: datetime) -> TokenStatus:
    """Status precedence: completed, invalidated, expired, pending."""
    if token is None:
        return TokenStatus.NOT_SENT
    if token.is_used:
        return TokenStatus.COMPLETED
    if not token.is_live:
        return TokenStatus.INVALIDATED
    if token.is_expired(now):
        return TokenStatus.EXPIRED
    return TokenStatus.PENDING


@dataclass(frozen=True)
class PurposeStatus:
    """Latest-link status for one purpose.

    Attributes:
        purpose: Token purpose.
        status: Display status.
        token_id: Latest token id, None when never sent.
        email_sent_to: Delivery address of the latest token.
        sent_at: Issue time of the latest token.
        expires_at: Expiry of the latest token.
        used_at: Consumption time, if used.
        records_on_file: Whether the member has the records this link collects.
    """

    purpose: TokenPurpose
    status: TokenStatus
    records_on_file: bool
    token_id: uuid.UUID | None = None
    email_sent_to: str | None = None
    sent_at: datetime | None = None
    expires_at: datetime | None = None
    used_at: datetime | None = None


async def member_token_statuses(
    stores: StoreBundle, member_id: uuid.UUID, now: datetime
) -> list[PurposeStatus]:
    """Build the status of every purpose for one member, in enum order."""
    on_file = {
        TokenPurpose.DOCUMENT_UPLOAD: await stores.records.has_documents(member_id),
        TokenPurpose.DECLARATION_SIGNATURE: await stores.records.has_declaration(
            member_id
        ),
    }
    statuses = []
    for purpose in TokenPurpose:
        token = await stores.tokens.latest_for_member(member_id, purpose)
        statuses.append(
            PurposeStatus(
                purpose=purpose,
                status=summarize_token(token, now),
                records_on_file=on_file[purpose],
                token_id=token.id if token else None,
                email_sent_to=token.email_sent_to if token else None,
                sent_at=token.issued_at if token else None,
                expires_at=token.expires_at if token else None,
                used_at=token.used_at if token else None,
            )
        )
    return statuses
