"""Member-facing claim endpoints.

Endpoints:
- GET /claims/{upload-documents|sign-declarations}?token=: open a link
- POST /claims/upload-documents: submit photo ID and proof of address
- POST /claims/sign-declarations: submit signed declarations

No authentication: possession of the link secret is the credential. Link
problems are reported as a claim state with status text, never as an HTTP
error, so an invalid secret and an unknown one look the same.

Rate limit: settings.rate_limit_claims per IP on every endpoint.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, File, Form, Query, Request, UploadFile

from memberlink.api.deps import ClientIp, Stores
from memberlink.core.config import settings
from memberlink.core.errors import NotFoundError, ValidationError
from memberlink.core.file_validation import (
    read_file_with_size_limit,
    validate_file_content,
)
from memberlink.core.rate_limiting import limiter
from memberlink.core.responses import DataResponse
from memberlink.schemas.claims import ClaimStatusResponse, SignDeclarationsRequest
from memberlink.services.claim_flow import (
    ClaimPayload,
    ClaimSession,
    DeclarationPayload,
    DocumentUploadPayload,
)
from memberlink.services.claim_types import ClaimState, DocumentType, SelectedFile
from memberlink.services.token_types import TokenPurpose

logger = logging.getLogger(__name__)

router = APIRouter()

_FALLBACK_FILENAME = "upload"


def _payload_for(purpose: TokenPurpose) -> ClaimPayload:
    if purpose is TokenPurpose.DOCUMENT_UPLOAD:
        return DocumentUploadPayload()
    return DeclarationPayload()


# =============================================================================
# GET /claims/{claim_path}
# =============================================================================


@router.get("/{claim_path}")
@limiter.limit(settings.rate_limit_claims)
async def open_claim_link(
    request: Request,  # noqa: ARG001
    claim_path: str,
    stores: Stores,
    token: Annotated[str | None, Query()] = None,
) -> DataResponse[ClaimStatusResponse]:
    """Resolve a claim link to the page state.

    Read-only: opening a link any number of times never changes it.

    Raises:
        NotFoundError: If the path is not a claim page.
    """
    try:
        purpose = TokenPurpose.from_claim_path(claim_path)
    except ValueError as exc:
        raise NotFoundError("Claim page", claim_path) from exc

    session = ClaimSession(_payload_for(purpose), stores)
    await session.start(token)
    return DataResponse(data=ClaimStatusResponse.from_session(session))


# =============================================================================
# POST /claims/upload-documents
# =============================================================================


async def _select_upload(
    payload: DocumentUploadPayload,
    document_type: DocumentType,
    upload: UploadFile | None,
) -> None:
    if upload is None:
        return
    filename = upload.filename or _FALLBACK_FILENAME
    try:
        # Size is enforced while reading, before the bytes are kept
        content = await read_file_with_size_limit(upload, payload.max_file_size)
        content_type = validate_file_content(content, filename)
    except ValidationError as exc:
        payload.reject_selection(document_type, exc.message)
        return
    payload.select_file(
        document_type,
        SelectedFile(file_name=filename, content_type=content_type, content=content),
    )


@router.post("/upload-documents")
@limiter.limit(settings.rate_limit_claims)
async def upload_documents(
    request: Request,  # noqa: ARG001
    stores: Stores,
    client_ip: ClientIp,
    token: Annotated[str | None, Form()] = None,
    photo_id: Annotated[UploadFile | None, File()] = None,
    proof_of_address: Annotated[UploadFile | None, File()] = None,
) -> DataResponse[ClaimStatusResponse]:
    """Upload photo ID and proof of address through a claim link.

    Missing, oversized or unsupported files come back as field errors with
    state ``ready``; the link stays usable.
    """
    payload = DocumentUploadPayload()
    session = ClaimSession(payload, stores)

    if await session.start(token) is ClaimState.READY:
        await _select_upload(payload, DocumentType.PHOTO_ID, photo_id)
        await _select_upload(payload, DocumentType.PROOF_OF_ADDRESS, proof_of_address)
        await session.submit(client_ip)

    return DataResponse(data=ClaimStatusResponse.from_session(session))


# =============================================================================
# POST /claims/sign-declarations
# =============================================================================


@router.post("/sign-declarations")
@limiter.limit(settings.rate_limit_claims)
async def sign_declarations(
    request: Request,  # noqa: ARG001
    body: SignDeclarationsRequest,
    stores: Stores,
    client_ip: ClientIp,
) -> DataResponse[ClaimStatusResponse]:
    """Sign the medical consent and terms declarations through a claim link.

    Unticked declarations or a signature that does not match the member's
    name come back as field errors with state ``ready``.
    """
    payload = DeclarationPayload(
        medical_consent=body.medical_consent,
        terms_accepted=body.terms_accepted,
        signature=body.signature,
    )
    session = ClaimSession(payload, stores)

    if await session.start(body.token) is ClaimState.READY:
        await session.submit(client_ip)

    return DataResponse(data=ClaimStatusResponse.from_session(session))
