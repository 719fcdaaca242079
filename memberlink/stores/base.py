"""Abstract store interfaces for the claim-link subsystem.

WHY ABSTRACT STORES:
- The token lifecycle only needs a handful of operations with clear
  atomicity rules; everything else about persistence is replaceable
- Services and the claim flow can be exercised without a database
- The conditional consume (mark_used_if_live) is the single place where
  concurrent sessions are arbitrated, so it gets its own contract
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from memberlink.services.claim_types import DocumentType, SelectedFile, SignedDeclaration
from memberlink.services.token_types import MemberRecord, TokenPurpose, TokenRecord


class LiveTokenConflictError(Exception):
    """Insert collided with another live token for the same member + purpose.

    Raised when a concurrent issuance inserted first. The issuer reacts by
    re-running supersede + insert.
    """


class Transaction(Protocol):
    """Commit boundary shared by the stores of one request.

    ``AsyncSession`` satisfies this structurally.
    """

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class TokenStore(ABC):
    """Durable record of issued claim tokens.

    All failures to reach the backing store surface as
    ``StoreUnavailableError``.
    """

    @abstractmethod
    async def find_by_secret(self, secret: str) -> TokenRecord | None:
        """Look up the token a plain secret belongs to."""
        ...

    @abstractmethod
    async def find_live_by_member_and_purpose(
        self, member_id: uuid.UUID, purpose: TokenPurpose
    ) -> list[TokenRecord]:
        """All live tokens for a member + purpose (normally zero or one)."""
        ...

    @abstractmethod
    async def insert(
        self,
        *,
        member_id: uuid.UUID,
        purpose: TokenPurpose,
        token_hash: str,
        email_sent_to: str,
        sent_by_user_id: uuid.UUID | None,
        issued_at: datetime,
        expires_at: datetime,
    ) -> TokenRecord:
        """Insert a new live token.

        Raises:
            LiveTokenConflictError: If another live token exists for the pair.
        """
        ...

    @abstractmethod
    async def supersede(
        self, token_id: uuid.UUID, *, reason: str, superseded_at: datetime
    ) -> bool:
        """Mark a live token non-live. No-op (False) if already non-live."""
        ...

    @abstractmethod
    async def mark_used_if_live(
        self,
        token_id: uuid.UUID,
        *,
        used_at: datetime,
        used_from_ip: str | None,
    ) -> bool:
        """Consume a token only if it is unused and still live.

        This is a compare-and-set: of any number of concurrent callers, at
        most one gets True.
        """
        ...

    @abstractmethod
    async def get_by_id(self, token_id: uuid.UUID) -> TokenRecord | None:
        """Look up a token by id."""
        ...

    @abstractmethod
    async def latest_for_member(
        self, member_id: uuid.UUID, purpose: TokenPurpose
    ) -> TokenRecord | None:
        """Most recently issued token for a member + purpose."""
        ...


class MemberRecordStore(ABC):
    """Member data the claim flow reads and the records it writes."""

    @abstractmethod
    async def get_member(self, member_id: uuid.UUID) -> MemberRecord | None:
        """Look up a member."""
        ...

    @abstractmethod
    async def store_uploaded_file(
        self,
        member_id: uuid.UUID,
        document_type: DocumentType,
        upload: SelectedFile,
    ) -> str:
        """Persist uploaded bytes and return their location handle."""
        ...

    @abstractmethod
    async def record_document(
        self,
        member_id: uuid.UUID,
        document_type: DocumentType,
        location: str,
    ) -> None:
        """Record that a stored file is the member's document of this type."""
        ...

    @abstractmethod
    async def record_declaration(
        self,
        member_id: uuid.UUID,
        declaration: SignedDeclaration,
        *,
        signed_at: datetime,
    ) -> None:
        """Persist a signed declaration."""
        ...

    @abstractmethod
    async def has_documents(self, member_id: uuid.UUID) -> bool:
        """True once both identity document types are on file."""
        ...

    @abstractmethod
    async def has_declaration(self, member_id: uuid.UUID) -> bool:
        """True once a declaration with both consents is on file."""
        ...


class ActivityStore(ABC):
    """Member audit trail."""

    @abstractmethod
    async def append_activity(
        self,
        member_id: uuid.UUID,
        action_type: str,
        description: str,
        *,
        entity_type: str | None = None,
        performed_by: uuid.UUID | None = None,
    ) -> None:
        """Append an audit entry.

        Implementations must not leave the surrounding transaction unusable
        when the append itself fails.
        """
        ...


@dataclass
class StoreBundle:
    """Stores for one request, sharing one commit boundary."""

    tokens: TokenStore
    records: MemberRecordStore
    activity: ActivityStore
    transaction: Transaction
