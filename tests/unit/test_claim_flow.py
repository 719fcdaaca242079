"""Tests for the claim flow state machine.

Sessions are driven against in-memory stores. Staff issuance goes through
its own store bundle, the way a separate request would.
"""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from memberlink.services import claim_messages
from memberlink.services.claim_flow import (
    ClaimSession,
    DeclarationPayload,
    DocumentUploadPayload,
    InvalidTransitionError,
    is_well_formed_secret,
    signature_matches,
)
from memberlink.services.claim_types import ClaimState, DocumentType, SelectedFile
from memberlink.services.token_issuer import TokenIssuer
from memberlink.services.token_types import (
    IssuedToken,
    MemberRecord,
    OutcomeKind,
    TokenPurpose,
)
from memberlink.services.token_validator import TokenValidator
from memberlink.stores.memory import MemoryState, memory_stores
from tests.conftest import FakeClock

_UPLOAD = TokenPurpose.DOCUMENT_UPLOAD
_DECLARE = TokenPurpose.DECLARATION_SIGNATURE
_IP = "203.0.113.7"


async def _issue(
    state: MemoryState, clock: FakeClock, member: MemberRecord, purpose: TokenPurpose
) -> IssuedToken:
    return await TokenIssuer(memory_stores(state), clock=clock).issue(
        member.id, purpose, None
    )


def _declaration_session(
    state: MemoryState,
    clock: FakeClock,
    signature: str = "Jane Doe",
    **kwargs,
) -> ClaimSession[DeclarationPayload]:
    payload = DeclarationPayload(
        medical_consent=True, terms_accepted=True, signature=signature
    )
    return ClaimSession(payload, memory_stores(state), clock=clock, **kwargs)


def _file(name: str, size: int = 1024) -> SelectedFile:
    return SelectedFile(
        file_name=name, content_type="application/pdf", content=b"x" * size
    )


# =============================================================================
# Helpers
# =============================================================================


class TestSignatureMatches:
    """Typed signature comparison."""

    @pytest.mark.parametrize(
        "signature", ["Jane Doe", "  jane DOE  ", "JANE DOE", "jane doe\n"]
    )
    def test_matches_ignoring_case_and_padding(
        self, member: MemberRecord, signature: str
    ) -> None:
        assert signature_matches(signature, member)

    @pytest.mark.parametrize("signature", ["Jane D", "Jane  Doe", "", "Doe Jane"])
    def test_rejects_other_text(self, member: MemberRecord, signature: str) -> None:
        assert not signature_matches(signature, member)


class TestSecretShape:
    """Secrets are checked for shape before any lookup."""

    @pytest.mark.parametrize(
        "secret", ["", " ", "short", "has spaces in it here", "a" * 257, "abc$%^&*()def1234"]
    )
    def test_malformed(self, secret: str) -> None:
        assert not is_well_formed_secret(secret)

    def test_issued_shape(self) -> None:
        assert is_well_formed_secret("Xq3_-" + "a" * 38)


# =============================================================================
# Link open
# =============================================================================


class TestStart:
    """LOADING resolves to exactly one state."""

    async def test_valid_link_is_ready(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _DECLARE)
        session = _declaration_session(state, clock)

        assert await session.start(issued.secret) is ClaimState.READY
        assert session.member == member
        assert session.token is not None
        assert session.status_message() is None

    @pytest.mark.parametrize("secret", [None, "", "   "])
    async def test_blank_secret_is_invalid_without_lookup(
        self, state: MemoryState, clock: FakeClock, secret: str | None
    ) -> None:
        stores = memory_stores(state)
        stores.tokens.find_by_secret = AsyncMock()
        session = ClaimSession(DeclarationPayload(), stores, clock=clock)

        assert await session.start(secret) is ClaimState.INVALID
        stores.tokens.find_by_secret.assert_not_awaited()

    async def test_unknown_secret_is_invalid(
        self, state: MemoryState, clock: FakeClock
    ) -> None:
        session = _declaration_session(state, clock)

        assert await session.start("a" * 43) is ClaimState.INVALID
        assert session.status_message().title == "Invalid Link"

    async def test_superseded_link_is_invalid(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        first = await _issue(state, clock, member, _DECLARE)
        await _issue(state, clock, member, _DECLARE)
        session = _declaration_session(state, clock)

        assert await session.start(first.secret) is ClaimState.INVALID

    async def test_expired_link(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _UPLOAD)
        clock.advance(days=8)
        session = ClaimSession(DocumentUploadPayload(), memory_stores(state), clock=clock)

        assert await session.start(issued.secret) is ClaimState.EXPIRED
        assert session.status_message().icon == "⏰"

    async def test_link_for_other_page_is_invalid(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _UPLOAD)
        session = _declaration_session(state, clock)

        assert await session.start(issued.secret) is ClaimState.INVALID

    async def test_store_failure_is_error(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _DECLARE)
        state.fail("find_by_secret")
        session = _declaration_session(state, clock)

        assert await session.start(issued.secret) is ClaimState.ERROR
        assert session.error_message == claim_messages.VERIFY_FAILED
        assert session.status_message().description == claim_messages.VERIFY_FAILED

    async def test_slow_store_times_out_to_error(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _DECLARE)
        stores = memory_stores(state)

        async def hang(secret: str) -> None:
            await asyncio.sleep(10)

        stores.tokens.find_by_secret = hang
        session = ClaimSession(
            DeclarationPayload(), stores, clock=clock, timeout_seconds=0.01
        )

        assert await session.start(issued.secret) is ClaimState.ERROR
        assert session.error_message == claim_messages.VERIFY_FAILED

    async def test_cannot_start_twice(
        self, state: MemoryState, clock: FakeClock
    ) -> None:
        session = _declaration_session(state, clock)
        await session.start(None)

        with pytest.raises(InvalidTransitionError):
            await session.start("a" * 43)


# =============================================================================
# Declarations
# =============================================================================


class TestDeclarationSubmit:
    """Signing declarations through a claim link."""

    async def test_full_lifecycle(
        self, state: MemoryState, member: MemberRecord
    ) -> None:
        clock = FakeClock(datetime(2024, 1, 1, tzinfo=UTC))
        issued = await _issue(state, clock, member, _DECLARE)
        clock.set(datetime(2024, 1, 3, tzinfo=UTC))
        session = _declaration_session(state, clock, signature="  jane DOE  ")
        await session.start(issued.secret)

        assert await session.submit(_IP) is ClaimState.SUCCESS

        assert len(state.declarations) == 1
        member_id, declaration, signed_at = state.declarations[0]
        assert member_id == member.id
        assert declaration.signature_text == "  jane DOE  "
        assert declaration.signed_from_ip == _IP
        assert signed_at == datetime(2024, 1, 3, tzinfo=UTC)

        token = state.tokens[issued.token_id]
        assert token.used_at == datetime(2024, 1, 3, tzinfo=UTC)
        assert token.used_from_ip == _IP

        validator = TokenValidator(
            memory_stores(state).tokens, memory_stores(state).records, clock=clock
        )
        outcome = await validator.validate(issued.secret, _DECLARE)
        assert outcome.kind is OutcomeKind.ALREADY_USED

    async def test_success_message_greets_member(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _DECLARE)
        session = _declaration_session(state, clock)
        await session.start(issued.secret)
        await session.submit(_IP)

        message = session.status_message()

        assert message.title == "Declarations Signed!"
        assert "Thank you, Jane." in message.description

    async def test_reopening_used_link_shows_already_signed(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _DECLARE)
        first = _declaration_session(state, clock)
        await first.start(issued.secret)
        await first.submit(_IP)

        second = _declaration_session(state, clock)

        assert await second.start(issued.secret) is ClaimState.ALREADY_USED
        assert second.status_message().title == "Already Signed"

    async def test_logs_declarations_signed_activity(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _DECLARE)
        session = _declaration_session(state, clock)
        await session.start(issued.secret)
        await session.submit(_IP)

        entry = state.activities[-1]
        assert entry["action_type"] == "declarations_signed"
        assert entry["entity_type"] == "declaration"
        assert entry["performed_by"] is None
        assert entry["description"] == (
            "Declarations signed by member via secure email link. "
            'Digital signature: "Jane Doe"'
        )

    async def test_mismatched_signature_stays_ready(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _DECLARE)
        session = _declaration_session(state, clock, signature="Jane D")
        await session.start(issued.secret)
        writes_before = state.writes

        assert await session.submit(_IP) is ClaimState.READY
        assert session.payload.field_errors == {
            "signature": "Please type your full name exactly: Jane Doe"
        }
        assert state.writes == writes_before
        assert state.tokens[issued.token_id].used_at is None

    async def test_missing_consent_stays_ready(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _DECLARE)
        payload = DeclarationPayload(medical_consent=True, signature="Jane Doe")
        session = ClaimSession(payload, memory_stores(state), clock=clock)
        await session.start(issued.secret)

        assert await session.submit(_IP) is ClaimState.READY
        assert "declarations" in payload.field_errors

    async def test_corrected_payload_can_resubmit(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _DECLARE)
        session = _declaration_session(state, clock, signature="nope")
        await session.start(issued.secret)
        await session.submit(_IP)

        session.payload.signature = "Jane Doe"

        assert await session.submit(_IP) is ClaimState.SUCCESS
        assert session.payload.field_errors == {}

    async def test_activity_failure_does_not_fail_claim(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _DECLARE)
        state.fail("append_activity")
        session = _declaration_session(state, clock)
        await session.start(issued.secret)

        assert await session.submit(_IP) is ClaimState.SUCCESS
        assert state.tokens[issued.token_id].used_at is not None

    async def test_write_failure_leaves_token_unused(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _DECLARE)
        state.fail("record_declaration")
        session = _declaration_session(state, clock)
        await session.start(issued.secret)

        assert await session.submit(_IP) is ClaimState.ERROR
        assert session.error_message == "Submission failed. Please try again or contact us."
        assert state.tokens[issued.token_id].used_at is None

    async def test_commit_failure_rolls_back_record_and_consume(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _DECLARE)
        state.fail("commit")
        session = _declaration_session(state, clock)
        await session.start(issued.secret)

        assert await session.submit(_IP) is ClaimState.ERROR
        assert state.declarations == []
        assert state.tokens[issued.token_id].used_at is None

    async def test_submit_requires_ready(
        self, state: MemoryState, clock: FakeClock
    ) -> None:
        session = _declaration_session(state, clock)
        await session.start(None)

        with pytest.raises(InvalidTransitionError):
            await session.submit(_IP)


# =============================================================================
# Races
# =============================================================================


class TestConcurrentSessions:
    """Two sessions holding the same link."""

    async def test_second_submitter_keeps_its_record(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _DECLARE)
        first = _declaration_session(state, clock, signature="Jane Doe")
        second = _declaration_session(state, clock, signature="  JANE DOE ")
        await first.start(issued.secret)
        await second.start(issued.secret)

        assert await first.submit(_IP) is ClaimState.SUCCESS
        assert await second.submit("198.51.100.2") is ClaimState.SUCCESS

        signatures = [d.signature_text for _, d, _ in state.declarations]
        assert signatures == ["Jane Doe", "  JANE DOE "]
        assert state.tokens[issued.token_id].used_from_ip == _IP
        assert [a["action_type"] for a in state.activities].count(
            "declarations_signed"
        ) == 2

    async def test_link_superseded_mid_session_errors(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _DECLARE)
        session = _declaration_session(state, clock)
        await session.start(issued.secret)

        await _issue(state, clock, member, _DECLARE)

        assert await session.submit(_IP) is ClaimState.ERROR
        assert session.error_message == claim_messages.LINK_SUPERSEDED
        assert state.declarations == []
        assert state.tokens[issued.token_id].used_at is None


# =============================================================================
# Document upload
# =============================================================================


class TestDocumentUpload:
    """Uploading identity documents through a claim link."""

    def test_oversized_file_is_rejected_at_selection(self) -> None:
        payload = DocumentUploadPayload(max_file_size=5 * 1024 * 1024)

        accepted = payload.select_file(
            DocumentType.PHOTO_ID, _file("id.pdf", 5 * 1024 * 1024 + 1)
        )

        assert accepted is False
        assert DocumentType.PHOTO_ID not in payload.files
        assert payload.field_errors == {"photo_id": "File must be under 5MB"}

    def test_file_at_limit_is_accepted(self) -> None:
        payload = DocumentUploadPayload(max_file_size=5 * 1024 * 1024)

        assert payload.select_file(
            DocumentType.PHOTO_ID, _file("id.pdf", 5 * 1024 * 1024)
        )

    def test_reselecting_clears_error(self) -> None:
        payload = DocumentUploadPayload(max_file_size=10)
        payload.select_file(DocumentType.PHOTO_ID, _file("big.pdf", 11))

        payload.select_file(DocumentType.PHOTO_ID, _file("small.pdf", 10))

        assert payload.field_errors == {}

    async def test_missing_slot_stays_ready(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _UPLOAD)
        payload = DocumentUploadPayload()
        payload.select_file(DocumentType.PHOTO_ID, _file("id.pdf"))
        session = ClaimSession(payload, memory_stores(state), clock=clock)
        await session.start(issued.secret)

        assert await session.submit(_IP) is ClaimState.READY
        assert payload.field_errors == {"proof_of_address": "Please select a file"}

    async def test_upload_records_both_documents(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _UPLOAD)
        payload = DocumentUploadPayload()
        payload.select_file(DocumentType.PHOTO_ID, _file("id.pdf"))
        payload.select_file(DocumentType.PROOF_OF_ADDRESS, _file("bill.pdf"))
        stores = memory_stores(state)
        session = ClaimSession(payload, stores, clock=clock)
        await session.start(issued.secret)

        assert await session.submit(_IP) is ClaimState.SUCCESS

        assert {d for _, d, _ in state.documents} == set(DocumentType)
        assert len(state.files) == 2
        assert await stores.records.has_documents(member.id)
        assert state.activities[-1]["action_type"] == "document_uploaded"
        assert session.status_message().title == "Documents Uploaded!"

    async def test_storage_failure_is_upload_failed(
        self, state: MemoryState, clock: FakeClock, member: MemberRecord
    ) -> None:
        issued = await _issue(state, clock, member, _UPLOAD)
        state.fail("store_uploaded_file")
        payload = DocumentUploadPayload()
        payload.select_file(DocumentType.PHOTO_ID, _file("id.pdf"))
        payload.select_file(DocumentType.PROOF_OF_ADDRESS, _file("bill.pdf"))
        session = ClaimSession(payload, memory_stores(state), clock=clock)
        await session.start(issued.secret)

        assert await session.submit(_IP) is ClaimState.ERROR
        assert session.error_message == "Upload failed. Please try again or contact us."
        assert state.tokens[issued.token_id].used_at is None
