"""In-memory stores for testing and local experiments.

WHY IN-MEMORY:
- Service and claim-flow tests shouldn't need PostgreSQL
- Deterministic: callers control the clock and every stored row
- Can simulate store outages per operation

All stores of one bundle share its InMemoryTransaction, the same way the SQL
stores share one session. Rollback undoes only that transaction's writes
since its last commit, so concurrent bundles over one MemoryState behave
like concurrent sessions.
"""

import dataclasses
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from memberlink.core.errors import StoreUnavailableError
from memberlink.services.claim_types import DocumentType, SelectedFile, SignedDeclaration
from memberlink.services.token_types import (
    MemberRecord,
    TokenPurpose,
    TokenRecord,
    hash_secret,
)
from memberlink.stores.base import (
    ActivityStore,
    LiveTokenConflictError,
    MemberRecordStore,
    StoreBundle,
    TokenStore,
)


class MemoryState:
    """Rows shared by the in-memory stores.

    Attributes:
        members: Members by id.
        tokens: Tokens by id.
        files: Stored uploads by location.
        documents: (member_id, document_type, location) rows.
        declarations: (member_id, SignedDeclaration, signed_at) rows.
        activities: Appended audit entries.
        writes: Number of successful mutating store calls.
        failing: Operation names that raise StoreUnavailableError.
    """

    def __init__(self) -> None:
        self.members: dict[uuid.UUID, MemberRecord] = {}
        self.tokens: dict[uuid.UUID, TokenRecord] = {}
        self.files: dict[str, SelectedFile] = {}
        self.documents: list[tuple[uuid.UUID, DocumentType, str]] = []
        self.declarations: list[tuple[uuid.UUID, SignedDeclaration, datetime]] = []
        self.activities: list[dict[str, Any]] = []
        self.writes = 0
        self.failing: set[str] = set()

    def add_member(
        self,
        first_name: str,
        last_name: str,
        email: str,
        member_id: uuid.UUID | None = None,
    ) -> MemberRecord:
        """Seed a member row."""
        member = MemberRecord(
            id=member_id or uuid.uuid4(),
            first_name=first_name,
            last_name=last_name,
            email=email,
        )
        self.members[member.id] = member
        return member

    def fail(self, *operations: str) -> None:
        """Make the named store operations raise StoreUnavailableError."""
        self.failing.update(operations)

    def check(self, operation: str) -> None:
        if operation in self.failing:
            raise StoreUnavailableError(operation)


class InMemoryTransaction:
    """Commit boundary that journals undo steps for its own writes.

    Attributes:
        commits: Number of commit() calls.
        rollbacks: Number of rollback() calls.
    """

    def __init__(self, state: MemoryState) -> None:
        self._state = state
        self._undo: list[Callable[[], None]] = []
        self.commits = 0
        self.rollbacks = 0

    def put(self, rows: dict[Any, Any], key: Any, value: Any) -> None:
        """Set a keyed row, remembering the previous value."""
        missing = object()
        previous = rows.get(key, missing)
        rows[key] = value
        if previous is missing:
            self._undo.append(lambda: rows.pop(key, None))
        else:
            self._undo.append(lambda: rows.__setitem__(key, previous))
        self._state.writes += 1

    def append(self, rows: list[Any], value: Any) -> None:
        """Append a row, remembering to remove it on rollback."""
        rows.append(value)
        self._undo.append(lambda: rows.remove(value))
        self._state.writes += 1

    async def commit(self) -> None:
        self._state.check("commit")
        self._undo.clear()
        self.commits += 1

    async def rollback(self) -> None:
        while self._undo:
            self._undo.pop()()
        self.rollbacks += 1


class InMemoryTokenStore(TokenStore):
    """TokenStore with the same conditional-write semantics as SQL."""

    def __init__(self, state: MemoryState, transaction: InMemoryTransaction) -> None:
        self._state = state
        self._tx = transaction

    async def find_by_secret(self, secret: str) -> TokenRecord | None:
        self._state.check("find_by_secret")
        token_hash = hash_secret(secret)
        for token in self._state.tokens.values():
            if token.token_hash == token_hash:
                return token
        return None

    async def find_live_by_member_and_purpose(
        self, member_id: uuid.UUID, purpose: TokenPurpose
    ) -> list[TokenRecord]:
        self._state.check("find_live_by_member_and_purpose")
        return [
            t
            for t in self._state.tokens.values()
            if t.member_id == member_id and t.purpose == purpose and t.is_live
        ]

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
        self._state.check("insert")
        if await self.find_live_by_member_and_purpose(member_id, purpose):
            raise LiveTokenConflictError(str(member_id))
        token = TokenRecord(
            id=uuid.uuid4(),
            member_id=member_id,
            purpose=purpose,
            token_hash=token_hash,
            email_sent_to=email_sent_to,
            sent_by_user_id=sent_by_user_id,
            issued_at=issued_at,
            expires_at=expires_at,
        )
        self._tx.put(self._state.tokens, token.id, token)
        return token

    async def supersede(
        self, token_id: uuid.UUID, *, reason: str, superseded_at: datetime
    ) -> bool:
        self._state.check("supersede")
        token = self._state.tokens.get(token_id)
        if token is None or not token.is_live:
            return False
        self._tx.put(
            self._state.tokens,
            token_id,
            dataclasses.replace(
                token,
                is_live=False,
                superseded_reason=reason,
                superseded_at=superseded_at,
            ),
        )
        return True

    async def mark_used_if_live(
        self,
        token_id: uuid.UUID,
        *,
        used_at: datetime,
        used_from_ip: str | None,
    ) -> bool:
        self._state.check("mark_used_if_live")
        token = self._state.tokens.get(token_id)
        if token is None or token.is_used or not token.is_live:
            return False
        self._tx.put(
            self._state.tokens,
            token_id,
            dataclasses.replace(token, used_at=used_at, used_from_ip=used_from_ip),
        )
        return True

    async def get_by_id(self, token_id: uuid.UUID) -> TokenRecord | None:
        self._state.check("get_by_id")
        return self._state.tokens.get(token_id)

    async def latest_for_member(
        self, member_id: uuid.UUID, purpose: TokenPurpose
    ) -> TokenRecord | None:
        self._state.check("latest_for_member")
        matching = [
            t
            for t in self._state.tokens.values()
            if t.member_id == member_id and t.purpose == purpose
        ]
        return max(matching, key=lambda t: t.issued_at, default=None)


class InMemoryMemberRecordStore(MemberRecordStore):
    """Members, uploaded files, documents and declarations."""

    def __init__(self, state: MemoryState, transaction: InMemoryTransaction) -> None:
        self._state = state
        self._tx = transaction

    async def get_member(self, member_id: uuid.UUID) -> MemberRecord | None:
        self._state.check("get_member")
        return self._state.members.get(member_id)

    async def store_uploaded_file(
        self,
        member_id: uuid.UUID,
        document_type: DocumentType,
        upload: SelectedFile,
    ) -> str:
        self._state.check("store_uploaded_file")
        location = f"{member_id}/{document_type.value}_{uuid.uuid4().hex}_{upload.file_name}"
        self._tx.put(self._state.files, location, upload)
        return location

    async def record_document(
        self,
        member_id: uuid.UUID,
        document_type: DocumentType,
        location: str,
    ) -> None:
        self._state.check("record_document")
        self._tx.append(self._state.documents, (member_id, document_type, location))

    async def record_declaration(
        self,
        member_id: uuid.UUID,
        declaration: SignedDeclaration,
        *,
        signed_at: datetime,
    ) -> None:
        self._state.check("record_declaration")
        self._tx.append(self._state.declarations, (member_id, declaration, signed_at))

    async def has_documents(self, member_id: uuid.UUID) -> bool:
        self._state.check("has_documents")
        on_file = {d for m, d, _ in self._state.documents if m == member_id}
        return on_file == set(DocumentType)

    async def has_declaration(self, member_id: uuid.UUID) -> bool:
        self._state.check("has_declaration")
        return any(
            m == member_id and d.medical_consent and d.terms_accepted
            for m, d, _ in self._state.declarations
        )


class InMemoryActivityStore(ActivityStore):
    """Append-only audit list."""

    def __init__(self, state: MemoryState, transaction: InMemoryTransaction) -> None:
        self._state = state
        self._tx = transaction

    async def append_activity(
        self,
        member_id: uuid.UUID,
        action_type: str,
        description: str,
        *,
        entity_type: str | None = None,
        performed_by: uuid.UUID | None = None,
    ) -> None:
        self._state.check("append_activity")
        self._tx.append(
            self._state.activities,
            {
                "member_id": member_id,
                "action_type": action_type,
                "description": description,
                "entity_type": entity_type,
                "performed_by": performed_by,
            },
        )


def memory_stores(state: MemoryState) -> StoreBundle:
    """Build a store bundle over shared in-memory rows.

    Each call gets its own transaction, like one request's session.
    """
    transaction = InMemoryTransaction(state)
    return StoreBundle(
        tokens=InMemoryTokenStore(state, transaction),
        records=InMemoryMemberRecordStore(state, transaction),
        activity=InMemoryActivityStore(state, transaction),
        transaction=transaction,
    )
