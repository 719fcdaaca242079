"""Create members, email tokens and the records claim links collect.

Revision ID: 001_members_and_claim_links
Revises: 000_enable_extensions
Create Date: 2026-10-19

Tables:
- members: people claim links are issued for
- email_tokens: single-use claim links (hash of the secret only)
- stored_files: uploaded document bytes (BYTEA)
- documents: identity documents on file per member
- declarations: signed medical consent and terms declarations
- activity_log: member audit trail
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_members_and_claim_links"
down_revision: str | None = "000_enable_extensions"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        sa.UUID(),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _member_fk() -> sa.Column:
    return sa.Column(
        "member_id",
        sa.UUID(),
        sa.ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
    )


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    op.create_table(
        "members",
        _id_column(),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        _created_at(),
        _created_at("updated_at"),
    )

    op.create_table(
        "email_tokens",
        _id_column(),
        _member_fk(),
        sa.Column("purpose", sa.String(30), nullable=False),
        sa.Column("token_hash", sa.String(64), nullable=False, unique=True),
        sa.Column("email_sent_to", sa.String(255), nullable=False),
        sa.Column("sent_by_user_id", sa.UUID(), nullable=True),
        _created_at("issued_at"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("used_from_ip", sa.String(45), nullable=True),
        sa.Column("is_live", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("superseded_reason", sa.String(255), nullable=True),
        sa.Column("superseded_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "purpose IN ('document_upload', 'declaration_signature')",
            name="ck_email_tokens_purpose",
        ),
    )
    op.create_index("idx_email_tokens_member_id", "email_tokens", ["member_id"])
    # Only one live link per member + purpose; a racing second issuance
    # fails here instead of leaving two usable links.
    op.create_index(
        "uq_email_tokens_live_member_purpose",
        "email_tokens",
        ["member_id", "purpose"],
        unique=True,
        postgresql_where="is_live",
    )

    op.create_table(
        "stored_files",
        _id_column(),
        _member_fk(),
        sa.Column("path", sa.String(255), nullable=False, unique=True),
        sa.Column("content_type", sa.String(100), nullable=False),
        sa.Column("file_size_bytes", sa.Integer(), nullable=False),
        sa.Column("file_binary", sa.LargeBinary(), nullable=False),
        _created_at("uploaded_at"),
    )

    op.create_table(
        "documents",
        _id_column(),
        _member_fk(),
        sa.Column("document_type", sa.String(30), nullable=False),
        sa.Column("file_path", sa.String(255), nullable=False),
        _created_at(),
        sa.CheckConstraint(
            "document_type IN ('photo_id', 'proof_of_address')",
            name="ck_documents_document_type",
        ),
    )

    op.create_table(
        "declarations",
        _id_column(),
        _member_fk(),
        sa.Column("medical_consent", sa.Boolean(), nullable=False),
        sa.Column("terms_accepted", sa.Boolean(), nullable=False),
        sa.Column("signature_text", sa.Text(), nullable=False),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("signed_from_ip", sa.String(45), nullable=True),
    )

    op.create_table(
        "activity_log",
        _id_column(),
        _member_fk(),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("performed_by", sa.UUID(), nullable=True),
        _created_at(),
    )


def downgrade() -> None:
    op.drop_table("activity_log")
    op.drop_table("declarations")
    op.drop_table("documents")
    op.drop_table("stored_files")
    op.drop_index("uq_email_tokens_live_member_purpose", table_name="email_tokens")
    op.drop_index("idx_email_tokens_member_id", table_name="email_tokens")
    op.drop_table("email_tokens")
    op.drop_table("members")
