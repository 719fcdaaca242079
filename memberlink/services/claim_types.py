"""Payload types and session states for the member claim flow."""

from dataclasses import dataclass
from enum import Enum


class DocumentType(str, Enum):
    """Identity documents collected through the upload link.

    Values match the database check constraint on documents.document_type.
    """

    PHOTO_ID = "photo_id"
    PROOF_OF_ADDRESS = "proof_of_address"


@dataclass(frozen=True)
class SelectedFile:
    """A file the member picked for one document slot.

    Attributes:
        file_name: Client-supplied filename (untrusted).
        content_type: MIME type detected from the content.
        content: File bytes.
    """

    file_name: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        """Size in bytes."""
        return len(self.content)


@dataclass(frozen=True)
class SignedDeclaration:
    """Fields persisted when a member signs their declarations.

    Attributes:
        medical_consent: Medical consent checkbox.
        terms_accepted: Terms and conditions checkbox.
        signature_text: Typed signature exactly as entered.
        signed_from_ip: Server-observed client address.
    """

    medical_consent: bool
    terms_accepted: bool
    signature_text: str
    signed_from_ip: str | None = None


class ClaimState(str, Enum):
    """States of one claim page session.

    LOADING -> {INVALID, EXPIRED, ALREADY_USED, READY, ERROR}
    READY -> SUBMITTING -> {SUCCESS, ERROR}
    """

    LOADING = "loading"
    INVALID = "invalid"
    EXPIRED = "expired"
    ALREADY_USED = "already_used"
    READY = "ready"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        """True for states with no outgoing transitions."""
        return self not in (ClaimState.LOADING, ClaimState.READY, ClaimState.SUBMITTING)
