"""
Unit tests for the exception hierarchy.
"""

import pytest

from egkreader.exceptions import (
    CardNotFoundError,
    CardStatusError,
    ConfigurationError,
    EgkError,
    EncodingFault,
    FormatError,
    ReaderNotFoundError,
    TLVParseError,
    TransportError,
)


class TestHierarchy:
    """Test exception base classes."""

    @pytest.mark.parametrize("error", [
        EncodingFault("x"),
        TransportError("x"),
        CardStatusError(0x6A82),
        FormatError("x"),
        ConfigurationError("x"),
    ])
    def test_all_are_egk_errors(self, error):
        """Test every error can be caught as EgkError."""
        assert isinstance(error, EgkError)

    def test_reader_errors_are_transport_errors(self):
        """Test reader and card absence are transport failures."""
        assert isinstance(ReaderNotFoundError(), TransportError)
        assert isinstance(CardNotFoundError("Reader"), TransportError)

    def test_tlv_error_is_format_error(self):
        """Test TLV errors are format errors."""
        assert isinstance(TLVParseError("x", 3), FormatError)


class TestCardStatusError:
    """Test status word errors."""

    def test_status_bytes(self):
        """Test SW1 and SW2 accessors."""
        error = CardStatusError(0x6A82, status_message="Error: File or application not found")

        assert error.sw1 == 0x6A
        assert error.sw2 == 0x82
        assert "SW=6A82" in error.message
        assert error.partial_data is None

    def test_hint_in_str(self):
        """Test known status words carry a hint."""
        error = CardStatusError(0x6982)
        assert "Hint:" in str(error)

    def test_no_hint_for_unknown(self):
        """Test unknown status words have no hint."""
        error = CardStatusError(0x6F12)

        assert error.hint is None
        assert str(error) == error.message
        assert "Unknown status: 6F12" in error.message

    def test_command_in_message(self):
        """Test failing command is named."""
        error = CardStatusError(0x6B00, command=bytes.fromhex("00B0FFFF000000"))
        assert "00B0FFFF000000" in error.message


class TestOtherErrors:
    """Test message formatting of the remaining errors."""

    def test_encoding_fault(self):
        """Test encoding fault keeps its reason."""
        error = EncodingFault("length 70000 out of range")
        assert error.reason == "length 70000 out of range"

    def test_reader_not_found_named(self):
        """Test reader name in message."""
        error = ReaderNotFoundError("SCM")
        assert "reader not found: SCM" in error.message
        assert error.reader_name == "SCM"

    def test_tlv_offset(self):
        """Test TLV offset in reason."""
        error = TLVParseError("Unexpected end of data", 4)
        assert error.reason == "Unexpected end of data at offset 4"

    def test_configuration_path(self):
        """Test file path in configuration errors."""
        error = ConfigurationError("bad", "layout.yaml")
        assert error.message == "Configuration error in layout.yaml: bad"
