"""SQLAlchemy ORM models for memberlink.

All models are exported from this module for convenient imports:
    from memberlink.models import Member, EmailToken, ...

Models are organized by domain:
- member.py: Member
- email_token.py: EmailToken (single-use claim links)
- document.py: StoredFile, MemberDocument
- declaration.py: Declaration
- activity.py: ActivityLog
"""

from memberlink.models.activity import ActivityLog
from memberlink.models.base import Base, TimestampMixin
from memberlink.models.declaration import Declaration
from memberlink.models.document import MemberDocument, StoredFile
from memberlink.models.email_token import EmailToken
from memberlink.models.member import Member

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Members
    "Member",
    # Claim links
    "EmailToken",
    # Member records
    "StoredFile",
    "MemberDocument",
    "Declaration",
    "ActivityLog",
]
