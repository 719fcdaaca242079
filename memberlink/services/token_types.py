"""Shared types for the claim-link token lifecycle.

Store-agnostic value objects passed between the token stores, the issuer,
the validator and the claim flow. Stores convert their own row types into
these so services never depend on the ORM.
"""

import hashlib
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime (default clock)."""
    return datetime.now(UTC)


class TokenPurpose(str, Enum):
    """Action a claim token authorizes.

    Values match the database check constraint on email_tokens.purpose.
    """

    DOCUMENT_UPLOAD = "document_upload"
    DECLARATION_SIGNATURE = "declaration_signature"

    @property
    def claim_path(self) -> str:
        """URL path segment of the member-facing page for this purpose."""
        return _CLAIM_PATHS[self]

    @property
    def label(self) -> str:
        """Human-readable name used in activity descriptions."""
        return _LABELS[self]

    @classmethod
    def from_claim_path(cls, path: str) -> "TokenPurpose":
        """Resolve a claim URL path segment to its purpose.

        Args:
            path: ``"upload-documents"`` or ``"sign-declarations"``.

        Returns:
            The matching TokenPurpose.

        Raises:
            ValueError: If the path is not a claim page.
        """
        for purpose, claim_path in _CLAIM_PATHS.items():
            if claim_path == path:
                return purpose
        raise ValueError(f"Unknown claim path: '{path}'")


_CLAIM_PATHS: dict[TokenPurpose, str] = {
    TokenPurpose.DOCUMENT_UPLOAD: "upload-documents",
    TokenPurpose.DECLARATION_SIGNATURE: "sign-declarations",
}

_LABELS: dict[TokenPurpose, str] = {
    TokenPurpose.DOCUMENT_UPLOAD: "document upload",
    TokenPurpose.DECLARATION_SIGNATURE: "declarations signature",
}


def hash_secret(secret: str) -> str:
    """Hash a bearer secret for storage and lookup.

    Args:
        secret: Plain secret from the claim URL.

    Returns:
        SHA-256 hex digest.
    """
    return hashlib.sha256(secret.encode()).hexdigest()


@dataclass(frozen=True)
class TokenRecord:
    """Snapshot of one email token row.

    Attributes:
        id: Token id.
        member_id: Owning member.
        purpose: Authorized action.
        token_hash: SHA-256 of the secret.
        email_sent_to: Delivery address.
        sent_by_user_id: Issuing staff user.
        issued_at: Issue timestamp.
        expires_at: Expiry timestamp (fixed at issue).
        used_at: Consumption timestamp, None while unused.
        used_from_ip: Server-observed client address at consumption.
        is_live: False after supersession or revocation.
        superseded_reason: Reason recorded when is_live went false.
        superseded_at: When is_live went false.
    """

    id: uuid.UUID
    member_id: uuid.UUID
    purpose: TokenPurpose
    token_hash: str
    email_sent_to: str
    sent_by_user_id: uuid.UUID | None
    issued_at: datetime
    expires_at: datetime
    used_at: datetime | None = None
    used_from_ip: str | None = None
    is_live: bool = True
    superseded_reason: str | None = None
    superseded_at: datetime | None = None

    @property
    def is_used(self) -> bool:
        """True once the claim flow has consumed the token."""
        return self.used_at is not None

    def is_expired(self, now: datetime) -> bool:
        """True when ``now`` is strictly past the expiry."""
        return now > self.expires_at


@dataclass(frozen=True)
class MemberRecord:
    """Member fields the claim flow needs."""

    id: uuid.UUID
    first_name: str
    last_name: str
    email: str

    @property
    def full_name(self) -> str:
        """Name the typed signature must match."""
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class IssuedToken:
    """Result of issuing a claim token.

    The plain secret only exists here and in the emailed URL.
    """

    token_id: uuid.UUID
    member: MemberRecord
    purpose: TokenPurpose
    secret: str
    claim_url: str
    expires_at: datetime


class OutcomeKind(Enum):
    """Validation outcome classes, in precedence order."""

    NOT_FOUND = "not_found"
    ALREADY_USED = "already_used"
    EXPIRED = "expired"
    REVOKED = "revoked"
    VALID = "valid"


@dataclass(frozen=True)
class ValidationOutcome:
    """Classification of a bearer secret.

    ``token`` and ``member`` are only populated for VALID outcomes.
    """

    kind: OutcomeKind
    token: TokenRecord | None = None
    member: MemberRecord | None = None

    @property
    def is_valid(self) -> bool:
        """True when the claim flow may proceed."""
        return self.kind is OutcomeKind.VALID

    @classmethod
    def of(cls, kind: OutcomeKind) -> "ValidationOutcome":
        """Build a non-valid outcome."""
        return cls(kind=kind)

    @classmethod
    def valid(cls, token: TokenRecord, member: MemberRecord) -> "ValidationOutcome":
        """Build a valid outcome carrying the resolved token and member."""
        return cls(kind=OutcomeKind.VALID, token=token, member=member)
