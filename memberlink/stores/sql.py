"""PostgreSQL-backed stores built on the repositories.

Every store method translates driver failures into StoreUnavailableError so
the services can tell "store down" from a business outcome. Inserts that may
legitimately collide, and audit appends that must never poison the request
transaction, run inside a SAVEPOINT.
"""

import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from functools import wraps
from typing import ParamSpec, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from memberlink.core.errors import StoreUnavailableError
from memberlink.core.file_validation import sanitize_filename
from memberlink.models.email_token import EmailToken
from memberlink.repositories.activity_repository import ActivityRepository
from memberlink.repositories.declaration_repository import DeclarationRepository
from memberlink.repositories.document_repository import DocumentRepository
from memberlink.repositories.email_token_repository import EmailTokenRepository
from memberlink.repositories.member_repository import MemberRepository
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

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


def _store_operation(
    name: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Translate SQLAlchemy and connection errors into StoreUnavailableError."""

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return await func(*args, **kwargs)
            except (SQLAlchemyError, OSError) as exc:
                logger.error("Store operation %s failed", name, exc_info=True)
                raise StoreUnavailableError(name) from exc

        return wrapper

    return decorator


def _to_record(row: EmailToken) -> TokenRecord:
    return TokenRecord(
        id=row.id,
        member_id=row.member_id,
        purpose=TokenPurpose(row.purpose),
        token_hash=row.token_hash,
        email_sent_to=row.email_sent_to,
        sent_by_user_id=row.sent_by_user_id,
        issued_at=row.issued_at,
        expires_at=row.expires_at,
        used_at=row.used_at,
        used_from_ip=row.used_from_ip,
        is_live=row.is_live,
        superseded_reason=row.superseded_reason,
        superseded_at=row.superseded_at,
    )


class SqlTokenStore(TokenStore):
    """TokenStore over the email_tokens table."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    @_store_operation("find_by_secret")
    async def find_by_secret(self, secret: str) -> TokenRecord | None:
        row = await EmailTokenRepository.get_by_hash(self._db, hash_secret(secret))
        return _to_record(row) if row else None

    @_store_operation("find_live_by_member_and_purpose")
    async def find_live_by_member_and_purpose(
        self, member_id: uuid.UUID, purpose: TokenPurpose
    ) -> list[TokenRecord]:
        rows = await EmailTokenRepository.list_live(
            self._db, member_id=member_id, purpose=purpose.value
        )
        return [_to_record(row) for row in rows]

    @_store_operation("insert")
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
        try:
            async with self._db.begin_nested():
                row = await EmailTokenRepository.create(
                    self._db,
                    member_id=member_id,
                    purpose=purpose.value,
                    token_hash=token_hash,
                    email_sent_to=email_sent_to,
                    sent_by_user_id=sent_by_user_id,
                    issued_at=issued_at,
                    expires_at=expires_at,
                )
        except IntegrityError as exc:
            # uq_email_tokens_live_member_purpose: a concurrent issuance won
            raise LiveTokenConflictError(str(member_id)) from exc
        return _to_record(row)

    @_store_operation("supersede")
    async def supersede(
        self, token_id: uuid.UUID, *, reason: str, superseded_at: datetime
    ) -> bool:
        return await EmailTokenRepository.supersede(
            self._db, token_id, reason=reason, superseded_at=superseded_at
        )

    @_store_operation("mark_used_if_live")
    async def mark_used_if_live(
        self,
        token_id: uuid.UUID,
        *,
        used_at: datetime,
        used_from_ip: str | None,
    ) -> bool:
        return await EmailTokenRepository.mark_used_if_live(
            self._db, token_id, used_at=used_at, used_from_ip=used_from_ip
        )

    @_store_operation("get_by_id")
    async def get_by_id(self, token_id: uuid.UUID) -> TokenRecord | None:
        row = await EmailTokenRepository.get_by_id(self._db, token_id)
        return _to_record(row) if row else None

    @_store_operation("latest_for_member")
    async def latest_for_member(
        self, member_id: uuid.UUID, purpose: TokenPurpose
    ) -> TokenRecord | None:
        row = await EmailTokenRepository.latest_for_member(
            self._db, member_id=member_id, purpose=purpose.value
        )
        return _to_record(row) if row else None


class SqlMemberRecordStore(MemberRecordStore):
    """Member reads plus document and declaration writes."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    @_store_operation("get_member")
    async def get_member(self, member_id: uuid.UUID) -> MemberRecord | None:
        member = await MemberRepository.get_by_id(self._db, member_id)
        if member is None:
            return None
        return MemberRecord(
            id=member.id,
            first_name=member.first_name,
            last_name=member.last_name,
            email=member.email,
        )

    @_store_operation("store_uploaded_file")
    async def store_uploaded_file(
        self,
        member_id: uuid.UUID,
        document_type: DocumentType,
        upload: SelectedFile,
    ) -> str:
        # Unique per upload even when the same file is sent twice
        path = (
            f"{member_id}/{document_type.value}_{uuid.uuid4().hex}_"
            f"{sanitize_filename(upload.file_name)}"
        )
        stored = await DocumentRepository.store_file(
            self._db,
            member_id=member_id,
            path=path,
            content_type=upload.content_type,
            content=upload.content,
        )
        return stored.path

    @_store_operation("record_document")
    async def record_document(
        self,
        member_id: uuid.UUID,
        document_type: DocumentType,
        location: str,
    ) -> None:
        await DocumentRepository.create_document(
            self._db,
            member_id=member_id,
            document_type=document_type.value,
            file_path=location,
        )

    @_store_operation("record_declaration")
    async def record_declaration(
        self,
        member_id: uuid.UUID,
        declaration: SignedDeclaration,
        *,
        signed_at: datetime,
    ) -> None:
        await DeclarationRepository.create(
            self._db,
            member_id=member_id,
            medical_consent=declaration.medical_consent,
            terms_accepted=declaration.terms_accepted,
            signature_text=declaration.signature_text,
            signed_at=signed_at,
            signed_from_ip=declaration.signed_from_ip,
        )

    @_store_operation("has_documents")
    async def has_documents(self, member_id: uuid.UUID) -> bool:
        on_file = await DocumentRepository.document_types_for_member(
            self._db, member_id
        )
        return {d.value for d in DocumentType} <= on_file

    @_store_operation("has_declaration")
    async def has_declaration(self, member_id: uuid.UUID) -> bool:
        return await DeclarationRepository.has_signed(self._db, member_id)


class SqlActivityStore(ActivityStore):
    """Activity log appends isolated in a SAVEPOINT."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    @_store_operation("append_activity")
    async def append_activity(
        self,
        member_id: uuid.UUID,
        action_type: str,
        description: str,
        *,
        entity_type: str | None = None,
        performed_by: uuid.UUID | None = None,
    ) -> None:
        async with self._db.begin_nested():
            await ActivityRepository.create(
                self._db,
                member_id=member_id,
                action_type=action_type,
                description=description,
                entity_type=entity_type,
                performed_by=performed_by,
            )


def sql_stores(db: AsyncSession) -> StoreBundle:
    """Build the store bundle for one database session."""
    return StoreBundle(
        tokens=SqlTokenStore(db),
        records=SqlMemberRecordStore(db),
        activity=SqlActivityStore(db),
        transaction=db,
    )
