"""Member-facing status text for claim pages.

Each terminal state renders an icon, a title and a description; titles and
descriptions differ slightly between the upload and declaration pages.
"""

from dataclasses import dataclass

from memberlink.services.claim_types import ClaimState
from memberlink.services.token_types import MemberRecord, TokenPurpose

VERIFY_FAILED = "Something went wrong while verifying your link."
LINK_SUPERSEDED = (
    "A newer link has been sent to you, so this one can no longer be used. "
    "Please use the most recent email from the committee."
)

_CONTACT_US = "Please try again or contact us."


@dataclass(frozen=True)
class StatusMessage:
    """Icon, title and description for a claim page state."""

    icon: str
    title: str
    description: str


def submit_failed(purpose: TokenPurpose) -> str:
    """Generic submission failure text."""
    if purpose is TokenPurpose.DOCUMENT_UPLOAD:
        return f"Upload failed. {_CONTACT_US}"
    return f"Submission failed. {_CONTACT_US}"


def status_message(
    state: ClaimState,
    purpose: TokenPurpose,
    *,
    member: MemberRecord | None = None,
    error_message: str | None = None,
) -> StatusMessage | None:
    """Text for a state, or None when the page shows a form instead.

    Args:
        state: Current claim state.
        purpose: Page purpose.
        member: Resolved member, used to greet on success.
        error_message: Specific error text for the ERROR state.
    """
    uploading = purpose is TokenPurpose.DOCUMENT_UPLOAD

    if state is ClaimState.INVALID:
        return StatusMessage(
            icon="❌",
            title="Invalid Link",
            description=(
                "This link is not valid. It may have been tampered with or does "
                "not exist. Please contact the committee for a new link."
            ),
        )
    if state is ClaimState.EXPIRED:
        return StatusMessage(
            icon="⏰",
            title="Link Expired",
            description=(
                "This link has expired. Please contact the committee and they "
                "can send you a fresh one."
            ),
        )
    if state is ClaimState.ALREADY_USED:
        if uploading:
            return StatusMessage(
                icon="🔒",
                title="Already Used",
                description=(
                    "This link has already been used. Each link can only be used "
                    "once for security. If you need to upload again, please "
                    "contact the committee."
                ),
            )
        return StatusMessage(
            icon="🔒",
            title="Already Signed",
            description=(
                "You have already signed the declarations using this link. Each "
                "link can only be used once. Contact the committee if you need "
                "anything changed."
            ),
        )
    if state is ClaimState.SUCCESS:
        greeting = f"Thank you, {member.first_name}. " if member else "Thank you. "
        if uploading:
            return StatusMessage(
                icon="✅",
                title="Documents Uploaded!",
                description=(
                    f"{greeting}Your Photo ID and Proof of Address have been "
                    "received successfully. The committee will review them shortly."
                ),
            )
        return StatusMessage(
            icon="✅",
            title="Declarations Signed!",
            description=(
                f"{greeting}Both declarations have been recorded. The committee "
                "will review and activate your membership shortly."
            ),
        )
    if state is ClaimState.ERROR:
        return StatusMessage(
            icon="⚠️",
            title="Something Went Wrong",
            description=error_message or submit_failed(purpose),
        )
    return None
