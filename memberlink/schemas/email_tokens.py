"""Staff-facing email token schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from memberlink.services.token_status import PurposeStatus, TokenStatus
from memberlink.services.token_types import IssuedToken, TokenPurpose, TokenRecord


class IssueTokenRequest(BaseModel):
    """Request body for POST /members/{member_id}/email-tokens."""

    model_config = ConfigDict(extra="forbid")

    purpose: TokenPurpose


class RevokeTokenRequest(BaseModel):
    """Request body for POST /email-tokens/{token_id}/revoke."""

    model_config = ConfigDict(extra="forbid")

    reason: str | None = Field(default=None, max_length=200)


class IssuedTokenResponse(BaseModel):
    """A freshly issued claim link.

    Attributes:
        token_id: Token id for later revocation.
        purpose: Authorized action.
        secret: Plain secret, only ever returned here.
        claim_url: Member-facing URL.
        expires_at: Link expiry.
    """

    token_id: uuid.UUID
    purpose: TokenPurpose
    secret: str
    claim_url: str
    expires_at: datetime

    @classmethod
    def from_issued(cls, issued: IssuedToken) -> "IssuedTokenResponse":
        return cls(
            token_id=issued.token_id,
            purpose=issued.purpose,
            secret=issued.secret,
            claim_url=issued.claim_url,
            expires_at=issued.expires_at,
        )


class TokenResponse(BaseModel):
    """Token audit view. Never includes the secret or its hash."""

    id: uuid.UUID
    member_id: uuid.UUID
    purpose: TokenPurpose
    email_sent_to: str
    issued_at: datetime
    expires_at: datetime
    used_at: datetime | None
    is_live: bool
    superseded_reason: str | None
    superseded_at: datetime | None

    @classmethod
    def from_record(cls, token: TokenRecord) -> "TokenResponse":
        return cls(
            id=token.id,
            member_id=token.member_id,
            purpose=token.purpose,
            email_sent_to=token.email_sent_to,
            issued_at=token.issued_at,
            expires_at=token.expires_at,
            used_at=token.used_at,
            is_live=token.is_live,
            superseded_reason=token.superseded_reason,
            superseded_at=token.superseded_at,
        )


class PurposeStatusResponse(BaseModel):
    """Latest link status for one purpose."""

    purpose: TokenPurpose
    status: TokenStatus
    records_on_file: bool
    token_id: uuid.UUID | None
    email_sent_to: str | None
    sent_at: datetime | None
    expires_at: datetime | None
    used_at: datetime | None

    @classmethod
    def from_status(cls, status: PurposeStatus) -> "PurposeStatusResponse":
        return cls(
            purpose=status.purpose,
            status=status.status,
            records_on_file=status.records_on_file,
            token_id=status.token_id,
            email_sent_to=status.email_sent_to,
            sent_at=status.sent_at,
            expires_at=status.expires_at,
            used_at=status.used_at,
        )


class MemberTokenStatusResponse(BaseModel):
    """Response for GET /members/{member_id}/email-tokens.

    Attributes:
        member_id: Member the summary is for.
        has_documents: Both identity documents are on file.
        has_declaration: A declaration with both consents is on file.
        links: Per-purpose latest link status.
    """

    member_id: uuid.UUID
    has_documents: bool
    has_declaration: bool
    links: list[PurposeStatusResponse]
