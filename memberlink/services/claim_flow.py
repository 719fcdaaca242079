"""Claim flow state machine for member-facing links.

One ClaimSession is built per request and never persisted. The same engine
serves both claim pages; the payload type supplies what differs:

- DocumentUploadPayload: two file slots, each capped in size at selection
- DeclarationPayload: two consent checkboxes and a typed signature

Transitions:
    LOADING -> INVALID | EXPIRED | ALREADY_USED | READY | ERROR
    READY -> SUBMITTING -> SUCCESS | ERROR

Submission writes the purpose record first and consumes the token second,
so a token is only ever marked used once its record exists. The consume is a
conditional update: if another session already used the token this session
still reports SUCCESS; if the token was superseded meanwhile the purpose
write is rolled back and the session ends in ERROR.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from datetime import datetime
from typing import ClassVar, Generic, TypeVar

from memberlink.core.config import settings
from memberlink.core.errors import StoreUnavailableError
from memberlink.services import claim_messages
from memberlink.services.activity_logger import (
    DECLARATIONS_SIGNED,
    DOCUMENT_UPLOADED,
    log_activity,
)
from memberlink.services.claim_types import (
    ClaimState,
    DocumentType,
    SelectedFile,
    SignedDeclaration,
)
from memberlink.services.token_types import (
    Clock,
    MemberRecord,
    OutcomeKind,
    TokenPurpose,
    TokenRecord,
    utc_now,
)
from memberlink.services.token_validator import TokenValidator
from memberlink.stores.base import MemberRecordStore, StoreBundle

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Anything else cannot have been issued by us (token_urlsafe alphabet)
_SECRET_PATTERN = re.compile(r"[A-Za-z0-9_-]{16,256}")

_OUTCOME_STATES: dict[OutcomeKind, ClaimState] = {
    OutcomeKind.NOT_FOUND: ClaimState.INVALID,
    OutcomeKind.REVOKED: ClaimState.INVALID,
    OutcomeKind.EXPIRED: ClaimState.EXPIRED,
    OutcomeKind.ALREADY_USED: ClaimState.ALREADY_USED,
    OutcomeKind.VALID: ClaimState.READY,
}

_TRANSITIONS: dict[ClaimState, frozenset[ClaimState]] = {
    ClaimState.LOADING: frozenset(
        {
            ClaimState.INVALID,
            ClaimState.EXPIRED,
            ClaimState.ALREADY_USED,
            ClaimState.READY,
            ClaimState.ERROR,
        }
    ),
    ClaimState.READY: frozenset({ClaimState.SUBMITTING}),
    ClaimState.SUBMITTING: frozenset({ClaimState.SUCCESS, ClaimState.ERROR}),
}


class InvalidTransitionError(Exception):
    """A session operation was attempted from a state that does not allow it."""

    def __init__(self, current: ClaimState, target: ClaimState) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot move claim session from {current.value} to {target.value}")


def is_well_formed_secret(secret: str) -> bool:
    """True when a secret could have been issued; checked before any lookup."""
    return _SECRET_PATTERN.fullmatch(secret) is not None


def signature_matches(signature: str, member: MemberRecord) -> bool:
    """Typed signature equals the member's full name, ignoring case and padding."""
    return signature.strip().casefold() == member.full_name.casefold()


# =============================================================================
# Payloads
# =============================================================================


class ClaimPayload(ABC):
    """Purpose-specific form state edited while the session is READY.

    Attributes:
        field_errors: Field name -> message for the member to correct.
    """

    purpose: ClassVar[TokenPurpose]
    action_type: ClassVar[str]
    entity_type: ClassVar[str]

    def __init__(self) -> None:
        self.field_errors: dict[str, str] = {}

    @abstractmethod
    def is_complete(self, member: MemberRecord) -> bool:
        """Check the payload can be submitted, recording field errors if not."""

    @abstractmethod
    async def write(
        self,
        records: MemberRecordStore,
        member: MemberRecord,
        *,
        now: datetime,
        client_ip: str | None,
    ) -> None:
        """Persist the purpose record."""

    @abstractmethod
    def activity_description(self, member: MemberRecord) -> str:
        """Audit text recorded after a successful claim."""


class DocumentUploadPayload(ClaimPayload):
    """Photo ID and proof of address selections."""

    purpose = TokenPurpose.DOCUMENT_UPLOAD
    action_type = DOCUMENT_UPLOADED
    entity_type = "document"

    def __init__(self, max_file_size: int | None = None) -> None:
        super().__init__()
        self.max_file_size = (
            max_file_size
            if max_file_size is not None
            else settings.claim_max_file_size_mb * 1024 * 1024
        )
        self.files: dict[DocumentType, SelectedFile] = {}

    def select_file(self, document_type: DocumentType, upload: SelectedFile) -> bool:
        """Fill a slot. Oversized files are rejected and leave the slot empty.

        Returns:
            True if the file was accepted.
        """
        if upload.size > self.max_file_size:
            self.files.pop(document_type, None)
            self.field_errors[document_type.value] = (
                f"File must be under {self.max_file_size // (1024 * 1024)}MB"
            )
            return False
        self.files[document_type] = upload
        self.field_errors.pop(document_type.value, None)
        return True

    def reject_selection(self, document_type: DocumentType, message: str) -> None:
        """Empty a slot whose file failed a check before it could be selected."""
        self.files.pop(document_type, None)
        self.field_errors[document_type.value] = message

    def is_complete(self, member: MemberRecord) -> bool:
        for document_type in DocumentType:
            if document_type not in self.files:
                self.field_errors.setdefault(
                    document_type.value, "Please select a file"
                )
        return all(d in self.files for d in DocumentType)

    async def write(
        self,
        records: MemberRecordStore,
        member: MemberRecord,
        *,
        now: datetime,
        client_ip: str | None,
    ) -> None:
        for document_type in DocumentType:
            location = await records.store_uploaded_file(
                member.id, document_type, self.files[document_type]
            )
            await records.record_document(member.id, document_type, location)

    def activity_description(self, member: MemberRecord) -> str:
        return "Member uploaded Photo ID and Proof of Address via secure email link"


class DeclarationPayload(ClaimPayload):
    """Medical consent, terms acceptance and typed signature."""

    purpose = TokenPurpose.DECLARATION_SIGNATURE
    action_type = DECLARATIONS_SIGNED
    entity_type = "declaration"

    def __init__(
        self,
        medical_consent: bool = False,
        terms_accepted: bool = False,
        signature: str = "",
    ) -> None:
        super().__init__()
        self.medical_consent = medical_consent
        self.terms_accepted = terms_accepted
        self.signature = signature

    def is_complete(self, member: MemberRecord) -> bool:
        self.field_errors.clear()
        if not (self.medical_consent and self.terms_accepted):
            self.field_errors["declarations"] = (
                "You must agree to both declarations before signing."
            )
            return False
        if not signature_matches(self.signature, member):
            self.field_errors["signature"] = (
                f"Please type your full name exactly: {member.full_name}"
            )
            return False
        return True

    async def write(
        self,
        records: MemberRecordStore,
        member: MemberRecord,
        *,
        now: datetime,
        client_ip: str | None,
    ) -> None:
        await records.record_declaration(
            member.id,
            SignedDeclaration(
                medical_consent=self.medical_consent,
                terms_accepted=self.terms_accepted,
                signature_text=self.signature,
                signed_from_ip=client_ip,
            ),
            signed_at=now,
        )

    def activity_description(self, member: MemberRecord) -> str:
        return (
            "Declarations signed by member via secure email link. "
            f'Digital signature: "{self.signature}"'
        )


P = TypeVar("P", bound=ClaimPayload)


# =============================================================================
# Session
# =============================================================================


class ClaimSession(Generic[P]):
    """State of one claim page request.

    Attributes:
        payload: Purpose-specific form state.
        state: Current ClaimState.
        member: Resolved member once READY.
        token: Resolved token once READY.
        error_message: Member-facing text when the state is ERROR.
    """

    def __init__(
        self,
        payload: P,
        stores: StoreBundle,
        *,
        clock: Clock = utc_now,
        timeout_seconds: float | None = None,
    ) -> None:
        self.payload = payload
        self.state = ClaimState.LOADING
        self.member: MemberRecord | None = None
        self.token: TokenRecord | None = None
        self.error_message: str | None = None
        self._stores = stores
        self._clock = clock
        self._timeout = (
            timeout_seconds
            if timeout_seconds is not None
            else settings.store_timeout_seconds
        )
        self._validator = TokenValidator(stores.tokens, stores.records, clock=clock)

    @property
    def purpose(self) -> TokenPurpose:
        """Purpose served by this session."""
        return self.payload.purpose

    def _move(self, target: ClaimState) -> ClaimState:
        if target not in _TRANSITIONS.get(self.state, frozenset()):
            raise InvalidTransitionError(self.state, target)
        self.state = target
        return target

    async def _bounded(self, call: Awaitable[T]) -> T:
        async with asyncio.timeout(self._timeout):
            return await call

    async def start(self, secret: str | None) -> ClaimState:
        """Resolve the link secret. Performs at most one validation.

        Args:
            secret: Raw ``token`` query parameter, possibly absent.

        Returns:
            The state after link-open.
        """
        if self.state is not ClaimState.LOADING:
            raise InvalidTransitionError(self.state, ClaimState.LOADING)

        if secret is None or not is_well_formed_secret(secret):
            return self._move(ClaimState.INVALID)

        try:
            outcome = await self._bounded(
                self._validator.validate(secret, self.purpose)
            )
        except (StoreUnavailableError, TimeoutError):
            logger.error("Claim link validation failed", exc_info=True)
            self.error_message = claim_messages.VERIFY_FAILED
            return self._move(ClaimState.ERROR)

        if outcome.is_valid:
            self.token = outcome.token
            self.member = outcome.member
        return self._move(_OUTCOME_STATES[outcome.kind])

    async def submit(self, client_ip: str | None) -> ClaimState:
        """Submit the payload and consume the token.

        An incomplete payload leaves the session READY with field errors.

        Args:
            client_ip: Client address observed by the server.

        Returns:
            READY, SUCCESS or ERROR.
        """
        if self.state is not ClaimState.READY:
            raise InvalidTransitionError(self.state, ClaimState.SUBMITTING)
        assert self.member is not None and self.token is not None

        if not self.payload.is_complete(self.member):
            return self.state

        self._move(ClaimState.SUBMITTING)
        try:
            return await self._submit(client_ip)
        except Exception:
            logger.exception(
                "Claim submission failed for token %s", self.token.id
            )
            await self._rollback()
            self.error_message = claim_messages.submit_failed(self.purpose)
            return self._move(ClaimState.ERROR)

    async def _submit(self, client_ip: str | None) -> ClaimState:
        assert self.member is not None and self.token is not None
        now = self._clock()

        await self._bounded(
            self.payload.write(
                self._stores.records, self.member, now=now, client_ip=client_ip
            )
        )
        consumed = await self._bounded(
            self._stores.tokens.mark_used_if_live(
                self.token.id, used_at=now, used_from_ip=client_ip
            )
        )

        if not consumed:
            current = await self._bounded(self._stores.tokens.get_by_id(self.token.id))
            if current is None or not current.is_used:
                await self._rollback()
                logger.warning(
                    "Token %s was superseded before it was used", self.token.id
                )
                self.error_message = claim_messages.LINK_SUPERSEDED
                return self._move(ClaimState.ERROR)
            # Another session claimed this link first; keep this submission too
            logger.info("Token %s was claimed by a concurrent session", self.token.id)

        await log_activity(
            self._stores.activity,
            self.member.id,
            self.payload.action_type,
            self.payload.activity_description(self.member),
            entity_type=self.payload.entity_type,
            timeout=self._timeout,
        )
        await self._bounded(self._stores.transaction.commit())
        logger.info("Token %s claimed for %s", self.token.id, self.purpose.value)
        return self._move(ClaimState.SUCCESS)

    async def _rollback(self) -> None:
        try:
            await self._bounded(self._stores.transaction.rollback())
        except Exception:
            logger.error("Claim rollback failed", exc_info=True)

    def status_message(self) -> claim_messages.StatusMessage | None:
        """Icon/title/description for the current state."""
        return claim_messages.status_message(
            self.state,
            self.purpose,
            member=self.member,
            error_message=self.error_message,
        )
