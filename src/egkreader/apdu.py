"""APDU encoding and decoding.

This module builds ISO 7816-4 command APDUs in short and extended
length form and splits response APDUs into payload and status word.
It performs no I/O.

Length semantics of ``le``:
    0                       no Le field
    1..65536                literal expected length
    LE_WILDCARD             all available data, short or extended framing
    LE_WILDCARD_EXTENDED    all available data, forces extended framing
"""

from typing import Dict, Tuple

from egkreader.exceptions import EncodingFault


APDU_MAX_SHORT = 0xFF + 1
APDU_MAX_EXTENDED = 0xFFFF + 1

LE_WILDCARD = -1
LE_WILDCARD_EXTENDED = -2

SW_SUCCESS = 0x9000
SW_WRONG_PARAMETERS = 0x6B00


# =============================================================================
# Command Encoding
# =============================================================================


def encode_length(n: int, extended: bool, first: bool) -> bytes:
    """Encode an Lc or Le field.

    Args:
        n: Length value, 0 for an absent field, or a wildcard sentinel.
        extended: Use extended (2 or 3 byte) framing.
        first: This is the first length field of the frame.

    Returns:
        Encoded length field (possibly empty).

    Raises:
        EncodingFault: If the length is out of range.
    """
    if n in (LE_WILDCARD, LE_WILDCARD_EXTENDED):
        if extended:
            return b"\x00\x00\x00" if first else b"\x00\x00"
        return b"\x00"

    if n < 0 or n > APDU_MAX_EXTENDED:
        raise EncodingFault(f"length {n} out of range")

    if n == 0:
        return b""

    if not extended:
        # 0x00 stands for 256
        return bytes([n & 0xFF])

    encoded = b"\x00" if first else b""
    if n == APDU_MAX_EXTENDED:
        return encoded + b"\x00\x00"
    return encoded + bytes([(n >> 8) & 0xFF, n & 0xFF])


def encode_command(
    cla: int,
    ins: int,
    p1: int,
    p2: int,
    data: bytes = b"",
    le: int = 0,
) -> bytes:
    """Encode a command APDU.

    Extended framing is selected when the data or the expected length
    does not fit a short APDU, or when ``le`` is LE_WILDCARD_EXTENDED.

    Args:
        cla: Class byte.
        ins: Instruction byte.
        p1: Parameter 1.
        p2: Parameter 2.
        data: Command data.
        le: Expected response length (see module docstring).

    Returns:
        APDU as bytes.

    Raises:
        EncodingFault: If a header byte or length is out of range.
    """
    for name, value in (("CLA", cla), ("INS", ins), ("P1", p1), ("P2", p2)):
        if not 0 <= value <= 0xFF:
            raise EncodingFault(f"{name} byte {value} out of range")

    if len(data) > APDU_MAX_EXTENDED:
        raise EncodingFault(f"command data too long ({len(data)} bytes)")

    extended = (
        len(data) > APDU_MAX_SHORT - 1
        or le > APDU_MAX_SHORT - 1
        or le == LE_WILDCARD_EXTENDED
    )

    apdu = bytes([cla, ins, p1, p2])
    apdu += encode_length(len(data), extended, True)
    apdu += data
    apdu += encode_length(le, extended, len(data) == 0)

    return apdu


# =============================================================================
# Response Decoding
# =============================================================================


def decode_response(raw: bytes) -> Tuple[int, bytes]:
    """Split a response APDU into status word and payload.

    Args:
        raw: Response bytes as received from the card.

    Returns:
        Tuple of (status word, payload).

    Raises:
        EncodingFault: If the response is shorter than 2 bytes.
    """
    if len(raw) < 2:
        raise EncodingFault(f"response APDU too short ({len(raw)} bytes)")

    sw = (raw[-2] << 8) | raw[-1]
    return sw, bytes(raw[:-2])


# =============================================================================
# Status Word Decoder
# =============================================================================


class SWDecoder:
    """Decoder for ISO 7816-4 status words."""

    STATUS_WORDS: Dict[int, str] = {
        # Success
        0x9000: "Success",
        # Warnings (62xx)
        0x6200: "Warning: No information given",
        0x6281: "Warning: Part of returned data may be corrupted",
        0x6282: "Warning: End of file/record before Le bytes",
        0x6283: "Warning: Selected file invalidated",
        0x6284: "Warning: FCI not formatted correctly",
        # Execution errors (64xx, 65xx)
        0x6400: "Error: Execution error",
        0x6500: "Error: No information given",
        0x6581: "Error: Memory failure",
        # Wrong length (67xx)
        0x6700: "Error: Wrong length",
        # CLA errors (68xx)
        0x6800: "Error: Functions in CLA not supported",
        0x6881: "Error: Logical channel not supported",
        0x6882: "Error: Secure messaging not supported",
        # Command not allowed (69xx)
        0x6900: "Error: Command not allowed",
        0x6981: "Error: Command incompatible with file structure",
        0x6982: "Error: Security status not satisfied",
        0x6985: "Error: Conditions of use not satisfied",
        0x6986: "Error: Command not allowed (no current EF)",
        # Wrong parameters (6Axx)
        0x6A00: "Error: No information given",
        0x6A80: "Error: Incorrect parameters in data field",
        0x6A81: "Error: Function not supported",
        0x6A82: "Error: File or application not found",
        0x6A83: "Error: Record not found",
        0x6A86: "Error: Incorrect parameters P1-P2",
        0x6A88: "Error: Referenced data not found",
        # Wrong P1-P2 (6Bxx)
        0x6B00: "Error: Wrong parameters P1-P2 (offset outside file)",
        # INS not supported (6Dxx)
        0x6D00: "Error: Instruction not supported or invalid",
        # CLA not supported (6Exx)
        0x6E00: "Error: Class not supported",
        # Internal error (6Fxx)
        0x6F00: "Error: No precise diagnosis",
    }

    @classmethod
    def decode(cls, sw1: int, sw2: int) -> str:
        """Decode status word to human-readable message.

        Args:
            sw1: First status byte.
            sw2: Second status byte.

        Returns:
            Human-readable status message.
        """
        sw = (sw1 << 8) | sw2

        if sw in cls.STATUS_WORDS:
            return cls.STATUS_WORDS[sw]

        if sw1 == 0x61:
            return f"More data available ({sw2} bytes)"

        if sw1 == 0x6C:
            return f"Wrong Le field ({sw2} bytes available)"

        if sw1 == 0x63 and (sw2 & 0xF0) == 0xC0:
            return f"Verification failed ({sw2 & 0x0F} retries remaining)"

        base_sw = sw1 << 8
        if base_sw in cls.STATUS_WORDS:
            return f"{cls.STATUS_WORDS[base_sw]} (SW2={sw2:02X})"

        return f"Unknown status: {sw:04X}"

    @classmethod
    def decode_sw(cls, sw: int) -> str:
        """Decode a 16-bit status word."""
        return cls.decode((sw >> 8) & 0xFF, sw & 0xFF)
