"""Tests for file validation utilities.

Security: Tests for magic byte validation, size limits, and filename sanitization.
"""

from unittest.mock import AsyncMock, patch

import pytest

from memberlink.core.errors import ValidationError
from memberlink.core.file_validation import (
    MAX_FILE_SIZE_BYTES,
    read_file_with_size_limit,
    sanitize_filename,
    validate_file_content,
)

_PATCH_MAGIC = "memberlink.core.file_validation.magic.from_buffer"


class TestReadFileWithSizeLimit:
    """Tests for read_file_with_size_limit function."""

    async def test_reads_file_within_limit(self) -> None:
        """Should read file content when under size limit."""
        content = b"Hello, World!"
        mock_file = AsyncMock()
        mock_file.read = AsyncMock(side_effect=[content, b""])

        result = await read_file_with_size_limit(mock_file)

        assert result == content

    async def test_reads_file_in_chunks(self) -> None:
        """Should read file in chunks."""
        chunk1 = b"A" * 1000
        chunk2 = b"B" * 1000
        mock_file = AsyncMock()
        mock_file.read = AsyncMock(side_effect=[chunk1, chunk2, b""])

        result = await read_file_with_size_limit(mock_file)

        assert result == chunk1 + chunk2

    async def test_rejects_file_exceeding_limit(self) -> None:
        """Should raise ValidationError naming the limit in megabytes."""
        large_chunk = b"X" * (MAX_FILE_SIZE_BYTES + 1)
        mock_file = AsyncMock()
        mock_file.read = AsyncMock(side_effect=[large_chunk])

        with pytest.raises(ValidationError) as exc_info:
            await read_file_with_size_limit(mock_file)

        assert exc_info.value.message == "File must be under 5MB"
        assert exc_info.value.details[0]["error"] == "FILE_TOO_LARGE"

    async def test_file_exactly_at_limit_is_read(self) -> None:
        """The limit itself is allowed."""
        content = b"X" * MAX_FILE_SIZE_BYTES
        mock_file = AsyncMock()
        mock_file.read = AsyncMock(side_effect=[content, b""])

        assert await read_file_with_size_limit(mock_file) == content

    async def test_respects_custom_size_limit(self) -> None:
        """Should use custom size limit when provided."""
        content = b"X" * (2 * 1024 * 1024 + 1)
        mock_file = AsyncMock()
        mock_file.read = AsyncMock(side_effect=[content])

        with pytest.raises(ValidationError) as exc_info:
            await read_file_with_size_limit(mock_file, max_size=2 * 1024 * 1024)

        assert exc_info.value.message == "File must be under 2MB"


class TestValidateFileContent:
    """Tests for validate_file_content function."""

    @pytest.mark.parametrize("mime", ["application/pdf", "image/jpeg", "image/png"])
    def test_accepts_identity_document_types(self, mime: str) -> None:
        """Scans and phone photos are accepted and their MIME returned."""
        with patch(_PATCH_MAGIC) as mock_magic:
            mock_magic.return_value = mime
            result = validate_file_content(b"content", "passport.bin")

        assert result == mime

    def test_rejects_executable(self) -> None:
        """Should reject executable files even with PDF extension."""
        with patch(_PATCH_MAGIC) as mock_magic:
            mock_magic.return_value = "application/x-dosexec"

            with pytest.raises(ValidationError) as exc_info:
                validate_file_content(b"MZ executable content", "passport.pdf")

            assert "Invalid file type" in exc_info.value.message
            # Security: MIME type must NOT leak in client-facing error
            assert "application/x-dosexec" not in exc_info.value.message
            assert exc_info.value.details[0]["error"] == "INVALID_FILE_CONTENT"

    def test_rejects_html(self) -> None:
        """Should reject HTML files disguised as documents."""
        with patch(_PATCH_MAGIC) as mock_magic:
            mock_magic.return_value = "text/html"

            with pytest.raises(ValidationError) as exc_info:
                validate_file_content(b"<html><script></script></html>", "bill.png")

            assert "text/html" not in exc_info.value.message


class TestSanitizeFilename:
    """Tests for sanitize_filename function."""

    def test_passes_safe_filename(self) -> None:
        """Should pass through safe filenames unchanged."""
        assert sanitize_filename("passport.pdf") == "passport.pdf"
        assert sanitize_filename("bill_2024-01.png") == "bill_2024-01.png"

    def test_replaces_path_separators(self) -> None:
        """Members cannot steer the storage location."""
        result = sanitize_filename("../../etc/passwd")

        assert "/" not in result
        assert not result.startswith(".")

    def test_replaces_spaces_and_quotes(self) -> None:
        assert sanitize_filename('my "id" card.jpg') == "my__id__card.jpg"

    def test_preserves_extension_when_truncating(self) -> None:
        """Should preserve file extension when truncating."""
        result = sanitize_filename("a" * 250 + ".jpeg")

        assert len(result) == 100
        assert result.endswith(".jpeg")

    def test_handles_empty_after_sanitization(self) -> None:
        """Should fall back to 'upload' if nothing usable is left."""
        assert sanitize_filename("...") == "upload"
        assert sanitize_filename("") == "upload"
