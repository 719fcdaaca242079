"""Best-effort member audit trail.

Audit entries never decide the outcome of the action they describe: a failed
append is logged and the caller carries on.
"""

import asyncio
import logging
import uuid

from memberlink.stores.base import ActivityStore

logger = logging.getLogger(__name__)

EMAIL_SENT = "email_sent"
TOKEN_REVOKED = "token_revoked"
DOCUMENT_UPLOADED = "document_uploaded"
DECLARATIONS_SIGNED = "declarations_signed"


async def log_activity(
    activity: ActivityStore,
    member_id: uuid.UUID,
    action_type: str,
    description: str,
    *,
    entity_type: str | None = None,
    performed_by: uuid.UUID | None = None,
    timeout: float | None = None,
) -> bool:
    """Append an activity entry, swallowing failures.

    Args:
        activity: Activity store to append to.
        member_id: Member the entry belongs to.
        action_type: Machine-readable action (e.g. "email_sent").
        description: Human-readable description.
        entity_type: Optional kind of record the action touched.
        performed_by: Staff user, None for member-initiated actions.
        timeout: Optional bound on the append in seconds.

    Returns:
        True if the entry was written, False if the append failed.
    """
    try:
        async with asyncio.timeout(timeout):
            await activity.append_activity(
                member_id,
                action_type,
                description,
                entity_type=entity_type,
                performed_by=performed_by,
            )
    except Exception:
        logger.warning(
            "Failed to log %s activity for member %s",
            action_type,
            member_id,
            exc_info=True,
        )
        return False
    return True
