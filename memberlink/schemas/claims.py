"""Member-facing claim page schemas."""

from pydantic import BaseModel, ConfigDict, Field

from memberlink.services.claim_flow import ClaimSession
from memberlink.services.claim_types import ClaimState
from memberlink.services.token_types import TokenPurpose


class SignDeclarationsRequest(BaseModel):
    """Request body for POST /claims/sign-declarations."""

    model_config = ConfigDict(extra="forbid")

    token: str | None = None
    medical_consent: bool = False
    terms_accepted: bool = False
    signature: str = ""


class StatusMessageResponse(BaseModel):
    """Icon, title and description shown for a terminal state."""

    icon: str
    title: str
    description: str


class ClaimStatusResponse(BaseModel):
    """State of a claim page after link-open or submission.

    Attributes:
        state: Claim state.
        purpose: Page purpose.
        first_name: Member first name, only when the form is shown.
        last_name: Member last name, only when the form is shown.
        message: Status text for terminal states.
        field_errors: Messages for fields the member must correct.
    """

    state: ClaimState
    purpose: TokenPurpose
    first_name: str | None = None
    last_name: str | None = None
    message: StatusMessageResponse | None = None
    field_errors: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_session(cls, session: ClaimSession) -> "ClaimStatusResponse":
        show_name = session.state is ClaimState.READY and session.member is not None
        message = session.status_message()
        return cls(
            state=session.state,
            purpose=session.purpose,
            first_name=session.member.first_name if show_name else None,
            last_name=session.member.last_name if show_name else None,
            message=(
                StatusMessageResponse(
                    icon=message.icon,
                    title=message.title,
                    description=message.description,
                )
                if message
                else None
            ),
            field_errors=dict(session.payload.field_errors),
        )
