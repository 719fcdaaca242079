"""Pydantic request/response schemas for API endpoints."""

from memberlink.schemas.claims import (
    ClaimStatusResponse,
    SignDeclarationsRequest,
    StatusMessageResponse,
)
from memberlink.schemas.email_tokens import (
    IssuedTokenResponse,
    IssueTokenRequest,
    MemberTokenStatusResponse,
    PurposeStatusResponse,
    RevokeTokenRequest,
    TokenResponse,
)

__all__ = [
    # Claim pages
    "ClaimStatusResponse",
    "SignDeclarationsRequest",
    "StatusMessageResponse",
    # Staff email tokens
    "IssueTokenRequest",
    "IssuedTokenResponse",
    "MemberTokenStatusResponse",
    "PurposeStatusResponse",
    "RevokeTokenRequest",
    "TokenResponse",
]
