"""Claim link email delivery via Resend API.

Simple HTTP POST to Resend with a plain-text body. This is the notification
dispatcher for issued claim links; templating beyond plain text is left to
the email provider.
"""

import logging
from datetime import datetime

import httpx

from memberlink.core.config import settings
from memberlink.services.token_types import TokenPurpose

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0

_SUBJECTS: dict[TokenPurpose, str] = {
    TokenPurpose.DOCUMENT_UPLOAD: "Please upload your identity documents",
    TokenPurpose.DECLARATION_SIGNATURE: "Please sign your membership declarations",
}

_ACTIONS: dict[TokenPurpose, str] = {
    TokenPurpose.DOCUMENT_UPLOAD: (
        "upload a photo ID and a proof of address for your membership"
    ),
    TokenPurpose.DECLARATION_SIGNATURE: (
        "review and sign the medical consent and terms declarations"
    ),
}


async def send_claim_link_email(
    *,
    to_email: str,
    first_name: str,
    purpose: TokenPurpose,
    claim_url: str,
    expires_at: datetime,
) -> None:
    """Send a single-use claim link email via Resend.

    Delivery failures are logged and swallowed: the link has already been
    issued and staff can resend it from the member record.

    Args:
        to_email: Recipient email address.
        first_name: Member first name for the greeting.
        purpose: Which action the link authorizes.
        claim_url: Full claim URL containing the plain secret.
        expires_at: Link expiry, shown to the member.
    """
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={
                    "Authorization": f"Bearer {settings.resend_api_key.get_secret_value()}",
                },
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": _SUBJECTS[purpose],
                    "text": (
                        f"Dear {first_name},\n\n"
                        f"Please use the secure link below to {_ACTIONS[purpose]}:\n\n"
                        f"{claim_url}\n\n"
                        "The link can be used once and expires on "
                        f"{expires_at:%d %B %Y}. If it has expired, please "
                        "contact us and we will send you a new one."
                    ),
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except Exception:
        logger.warning("Failed to send claim link email", exc_info=True)
