"""Repository for stored files and member document records."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from memberlink.models.document import MemberDocument, StoredFile


class DocumentRepository:
    """Stateless repository for StoredFile and MemberDocument tables.

    All methods are static; no instance state.
    """

    @staticmethod
    async def store_file(
        db: AsyncSession,
        *,
        member_id: uuid.UUID,
        path: str,
        content_type: str,
        content: bytes,
    ) -> StoredFile:
        """Store uploaded bytes under a location handle.

        Args:
            db: Async database session.
            member_id: Owning member.
            path: Location handle (unique).
            content_type: Detected MIME type.
            content: File bytes.

        Returns:
            Created StoredFile.
        """
        stored = StoredFile(
            member_id=member_id,
            path=path,
            content_type=content_type,
            file_size_bytes=len(content),
            file_binary=content,
        )
        db.add(stored)
        await db.flush()
        return stored

    @staticmethod
    async def create_document(
        db: AsyncSession,
        *,
        member_id: uuid.UUID,
        document_type: str,
        file_path: str,
    ) -> MemberDocument:
        """Record an identity document referencing a stored file."""
        document = MemberDocument(
            member_id=member_id,
            document_type=document_type,
            file_path=file_path,
        )
        db.add(document)
        await db.flush()
        return document

    @staticmethod
    async def document_types_for_member(
        db: AsyncSession,
        member_id: uuid.UUID,
    ) -> set[str]:
        """Distinct document types on file for a member."""
        stmt = (
            select(MemberDocument.document_type)
            .where(MemberDocument.member_id == member_id)
            .distinct()
        )
        result = await db.execute(stmt)
        return set(result.scalars().all())
