"""Exception hierarchy for the eGK reader.

This module defines all exceptions raised by the reader with helpful
error messages and troubleshooting hints.
"""

from typing import Optional


class EgkError(Exception):
    """Base exception for all eGK reader errors.

    All reader-specific exceptions inherit from this class,
    allowing code to catch all reader errors with a single handler.

    Attributes:
        message: Human-readable error description.
        hint: Optional troubleshooting hint.
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


# =============================================================================
# Encoding Faults
# =============================================================================


class EncodingFault(EgkError):
    """Raised when an APDU cannot be encoded or a response cannot be split.

    This is a programming error: lengths and header bytes handed to the
    codec are produced by this package, never by the card.
    """

    def __init__(self, reason: str):
        super().__init__(f"APDU encoding fault: {reason}")
        self.reason = reason


# =============================================================================
# Transport Errors
# =============================================================================


class TransportError(EgkError):
    """Raised when the channel to the card fails.

    The underlying reader error is chained as ``__cause__``.
    """

    def __init__(self, reason: str, command: Optional[bytes] = None):
        message = f"Transport error: {reason}"
        if command:
            message = f"Transport error for command {command.hex().upper()[:20]}: {reason}"
        hint = (
            "Check that:\n"
            "  - The card is still inserted\n"
            "  - The reader is connected"
        )
        super().__init__(message, hint)
        self.reason = reason
        self.command = command


class ReaderNotFoundError(TransportError):
    """Raised when no PC/SC reader is found.

    This typically occurs when:
    - No smart card reader is connected
    - pcscd service is not running (Linux)
    - pyscard is not installed
    """

    def __init__(self, reader_name: Optional[str] = None):
        if reader_name:
            reason = f"reader not found: {reader_name}"
        else:
            reason = "no PC/SC readers found"
        super().__init__(reason)
        self.hint = (
            "Check that:\n"
            "  - Smart card reader is connected\n"
            "  - On Linux: pcscd service is running (sudo systemctl start pcscd)\n"
            "  - pyscard is installed (pip install egkreader[pcsc])"
        )
        self.reader_name = reader_name


class CardNotFoundError(TransportError):
    """Raised when no card is present in the reader."""

    def __init__(self, reader_name: str):
        super().__init__(f"no card present in reader: {reader_name}")
        self.hint = "Insert the health insurance card into the reader and try again."
        self.reader_name = reader_name


# =============================================================================
# Card Status Errors
# =============================================================================


class CardStatusError(EgkError):
    """Raised when the card answers with a status word other than 9000.

    Attributes:
        sw: Status word as 16-bit integer.
        command: The APDU command that failed, if known.
        status_message: Human-readable status description.
        partial_data: Bytes read before the failure. Only populated when a
            caller asked FileAccess.read_full to keep them.
    """

    def __init__(
        self,
        sw: int,
        command: Optional[bytes] = None,
        status_message: Optional[str] = None,
    ):
        self.sw = sw
        self.command = command
        self.status_message = status_message or f"Unknown status: {sw:04X}"
        self.partial_data: Optional[bytes] = None

        message = f"Card error: SW={sw:04X} ({self.status_message})"
        if command:
            message = (
                f"Card error for command {command.hex().upper()[:20]}: "
                f"SW={sw:04X} ({self.status_message})"
            )

        super().__init__(message, self._get_hint_for_sw(sw))

    @property
    def sw1(self) -> int:
        """First status byte."""
        return (self.sw >> 8) & 0xFF

    @property
    def sw2(self) -> int:
        """Second status byte."""
        return self.sw & 0xFF

    @staticmethod
    def _get_hint_for_sw(sw: int) -> Optional[str]:
        """Get troubleshooting hint for common status words."""
        if sw == 0x6982:
            return "Security status not satisfied - the file needs a PIN or C2C authentication."
        elif sw == 0x6A82:
            return "File or application not found - check AID and SFID."
        elif sw == 0x6A83:
            return "Record not found - the file has fewer records."
        elif sw == 0x6B00:
            return "Offset outside the file."
        elif sw == 0x6D00:
            return "Instruction not supported - check card generation."
        return None


# =============================================================================
# Format Errors
# =============================================================================


class FormatError(EgkError):
    """Raised when a payload violates its structural layout."""

    def __init__(self, reason: str, data: Optional[bytes] = None):
        self.reason = reason
        self.data = data
        message = f"Format error: {reason}"
        if data:
            message += f" (data: {data.hex()[:40]}...)"
        super().__init__(message)


class TLVParseError(FormatError):
    """Raised when TLV parsing fails."""

    def __init__(self, reason: str, offset: Optional[int] = None, data: Optional[bytes] = None):
        self.offset = offset
        if offset is not None:
            reason = f"{reason} at offset {offset}"
        super().__init__(reason, data)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(EgkError):
    """Raised when the card layout configuration is invalid."""

    def __init__(self, reason: str, path: Optional[str] = None):
        self.reason = reason
        self.path = path
        message = f"Configuration error: {reason}"
        if path:
            message = f"Configuration error in {path}: {reason}"
        super().__init__(message)
