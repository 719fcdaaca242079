"""Staff endpoints for member claim links.

Endpoints:
- POST /members/{member_id}/email-tokens: issue (or re-issue) a claim link
- GET /members/{member_id}/email-tokens: latest link status per purpose
- POST /email-tokens/{token_id}/revoke: revoke an unused link
"""

import logging
import uuid

from fastapi import APIRouter, BackgroundTasks, status

from memberlink.api.deps import CurrentStaffId, Stores
from memberlink.core.email import send_claim_link_email
from memberlink.core.errors import NotFoundError
from memberlink.core.responses import DataResponse
from memberlink.schemas.email_tokens import (
    IssuedTokenResponse,
    IssueTokenRequest,
    MemberTokenStatusResponse,
    PurposeStatusResponse,
    RevokeTokenRequest,
    TokenResponse,
)
from memberlink.services.token_issuer import TokenIssuer
from memberlink.services.token_status import member_token_statuses
from memberlink.services.token_types import TokenPurpose, utc_now

logger = logging.getLogger(__name__)

members_router = APIRouter()
email_tokens_router = APIRouter()


# =============================================================================
# POST /members/{member_id}/email-tokens
# =============================================================================


@members_router.post(
    "/{member_id}/email-tokens", status_code=status.HTTP_201_CREATED
)
async def issue_email_token(
    member_id: uuid.UUID,
    body: IssueTokenRequest,
    background_tasks: BackgroundTasks,
    staff_id: CurrentStaffId,
    stores: Stores,
) -> DataResponse[IssuedTokenResponse]:
    """Issue a claim link and email it to the member.

    Any live link of the same purpose stops working immediately. The email
    is sent as a background task after the token is committed.

    Raises:
        NotFoundError: If the member does not exist.
        StoreUnavailableError: If the store failed.
    """
    issued = await TokenIssuer(stores).issue(member_id, body.purpose, staff_id)

    background_tasks.add_task(
        send_claim_link_email,
        to_email=issued.member.email,
        first_name=issued.member.first_name,
        purpose=issued.purpose,
        claim_url=issued.claim_url,
        expires_at=issued.expires_at,
    )

    return DataResponse(data=IssuedTokenResponse.from_issued(issued))


# =============================================================================
# GET /members/{member_id}/email-tokens
# =============================================================================


@members_router.get("/{member_id}/email-tokens")
async def get_email_token_status(
    member_id: uuid.UUID,
    _staff_id: CurrentStaffId,
    stores: Stores,
) -> DataResponse[MemberTokenStatusResponse]:
    """Latest claim link status per purpose, with records on file."""
    member = await stores.records.get_member(member_id)
    if member is None:
        raise NotFoundError("Member", str(member_id))

    statuses = await member_token_statuses(stores, member_id, utc_now())
    on_file = {s.purpose: s.records_on_file for s in statuses}

    return DataResponse(
        data=MemberTokenStatusResponse(
            member_id=member_id,
            has_documents=on_file[TokenPurpose.DOCUMENT_UPLOAD],
            has_declaration=on_file[TokenPurpose.DECLARATION_SIGNATURE],
            links=[PurposeStatusResponse.from_status(s) for s in statuses],
        )
    )


# =============================================================================
# POST /email-tokens/{token_id}/revoke
# =============================================================================


@email_tokens_router.post("/{token_id}/revoke")
async def revoke_email_token(
    token_id: uuid.UUID,
    body: RevokeTokenRequest,
    staff_id: CurrentStaffId,
    stores: Stores,
) -> DataResponse[TokenResponse]:
    """Revoke an unused claim link.

    Raises:
        NotFoundError: If the token does not exist.
        ConflictError: TOKEN_ALREADY_USED if the member already used it.
    """
    token = await TokenIssuer(stores).revoke(
        token_id, reason=body.reason, actor_id=staff_id
    )
    logger.info("Staff %s revoked token %s", staff_id, token_id)
    return DataResponse(data=TokenResponse.from_record(token))
