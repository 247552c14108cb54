"""Decoders for eGK file payloads.

This module turns the bytes returned by FileAccess into typed records:
BCD numbers and versions, the card serial number, the status record of
the insurance data, EF.DIR entries, and the framing around the embedded
documents and certificates.

Decoders either return a complete record or raise FormatError; the only
exception are the BCD helpers, which report invalid digits through a
sentinel.
"""

from typing import Optional, Tuple

from cryptography import x509

from egkreader.exceptions import FormatError
from egkreader.models import ICCSN, DirEntry, StatusRecord
from egkreader.tlv_parser import TLVParser, Tags


INVALID_VERSION = "<invalid>"

GDO_LENGTH = 12
ICCSN_LENGTH = 10
STATUS_RECORD_LENGTH = 25
VERSION_LENGTH = 5


# =============================================================================
# BCD
# =============================================================================


def is_bcd(raw: bytes) -> bool:
    """Check that every nibble of ``raw`` is a decimal digit."""
    return all((b >> 4) <= 9 and (b & 0x0F) <= 9 for b in raw)


def decode_bcd_digits(raw: bytes) -> Optional[int]:
    """Decode packed BCD, two digits per byte, high nibble first.

    Args:
        raw: BCD bytes.

    Returns:
        Decoded integer, or None if a nibble is above 9.
    """
    if not is_bcd(raw):
        return None

    value = 0
    for b in raw:
        value = value * 100 + (b >> 4) * 10 + (b & 0x0F)
    return value


def decode_bcd_version(raw: bytes) -> str:
    """Decode a 5 byte BCD version as ``major.minor.revision``.

    The ten digits are grouped 3/3/4, e.g. ``00 40 00 00 01`` is
    ``4.0.1``.

    Args:
        raw: Version bytes.

    Returns:
        Version string, or INVALID_VERSION if ``raw`` is not 5 valid BCD bytes.
    """
    if len(raw) != VERSION_LENGTH:
        return INVALID_VERSION

    value = decode_bcd_digits(raw)
    if value is None:
        return INVALID_VERSION

    return f"{value // 10**7}.{(value // 10**4) % 1000}.{value % 10**4}"


# =============================================================================
# Card Serial Number
# =============================================================================


def decode_iccsn(raw: bytes) -> ICCSN:
    """Decode the ICCSN value.

    Byte 0 is the major industry identifier; the remaining 9 bytes hold
    18 BCD digits: 3 digit country code, 5 digit issuer, 10 digit serial.

    Args:
        raw: 10 byte ICCSN value.

    Returns:
        Decoded ICCSN.

    Raises:
        FormatError: On wrong length or non-BCD digits.
    """
    if len(raw) != ICCSN_LENGTH:
        raise FormatError(f"ICCSN must be {ICCSN_LENGTH} bytes, got {len(raw)}", raw)

    value = decode_bcd_digits(raw[1:])
    if value is None:
        raise FormatError("ICCSN contains non-BCD digits", raw)

    return ICCSN(
        major_industry_identifier=raw[0],
        country_code=value // 10**15,
        issuer_identifier=(value // 10**10) % 10**5,
        serial_number=value % 10**10,
    )


def decode_gdo(raw: bytes) -> ICCSN:
    """Decode EF.GDO, a single ``5A 0A <ICCSN>`` data object.

    Args:
        raw: 12 byte EF.GDO contents.

    Returns:
        Decoded ICCSN.

    Raises:
        FormatError: On wrong length, tag or length byte.
    """
    if len(raw) != GDO_LENGTH:
        raise FormatError(f"EF.GDO must be {GDO_LENGTH} bytes, got {len(raw)}", raw)

    if raw[0] != Tags.ICCSN:
        raise FormatError(f"bad tag ({raw[0]:02x})", raw)

    if raw[1] != ICCSN_LENGTH:
        raise FormatError(f"invalid length ({raw[1]:02x})", raw)

    return decode_iccsn(raw[2:])


# =============================================================================
# Status Record
# =============================================================================


def decode_status_record(raw: bytes) -> StatusRecord:
    """Decode EF.StatusVD.

    Layout: status (1 ASCII char), timestamp (14 ASCII chars),
    BCD version (5 bytes), reserved (5 bytes).

    Args:
        raw: 25 byte record.

    Returns:
        Decoded StatusRecord.

    Raises:
        FormatError: On wrong length or non-ASCII text fields.
    """
    if len(raw) != STATUS_RECORD_LENGTH:
        raise FormatError(
            f"status record must be {STATUS_RECORD_LENGTH} bytes, got {len(raw)}", raw
        )

    try:
        status = raw[0:1].decode("ascii")
        timestamp = raw[1:15].decode("ascii")
    except UnicodeDecodeError as e:
        raise FormatError(f"status record text is not ASCII: {e}", raw) from e

    return StatusRecord(
        status=status,
        timestamp=timestamp,
        version=decode_bcd_version(raw[15:20]),
        reserved=bytes(raw[20:25]),
    )


# =============================================================================
# EF.DIR
# =============================================================================


def decode_dir_record(raw: bytes) -> DirEntry:
    """Decode one EF.DIR record (application template ``61``).

    Raises:
        FormatError: If the record holds no application template with an AID.
    """
    template, _ = TLVParser.parse_one(raw)
    if template.tag != Tags.APPLICATION_TEMPLATE:
        raise FormatError(f"bad tag ({template.tag:02x})", raw)

    aid = template.find(Tags.APPLICATION_ID)
    if aid is None:
        raise FormatError("application template without AID", raw)

    label = template.find(Tags.APPLICATION_LABEL)
    return DirEntry(
        aid=aid.value,
        label=label.value.decode("ascii", errors="replace") if label else "",
    )


# =============================================================================
# Framing
# =============================================================================


def slice_length_prefixed(buffer: bytes, prefix_width: int = 2) -> bytes:
    """Return the region announced by a big-endian length prefix.

    Args:
        buffer: Buffer starting with the length prefix.
        prefix_width: Width of the prefix in bytes.

    Returns:
        The ``length`` bytes following the prefix.

    Raises:
        FormatError: If the buffer is too short for the prefix or the
            declared length.
    """
    if len(buffer) < prefix_width:
        raise FormatError(f"data too short for {prefix_width} byte length prefix", buffer)

    length = int.from_bytes(buffer[:prefix_width], "big")
    available = len(buffer) - prefix_width
    if length > available:
        raise FormatError(f"invalid length {length} (avail {available})", buffer)

    return bytes(buffer[prefix_width : prefix_width + length])


def slice_offset_pair(buffer: bytes, start_pos: int, end_pos: int) -> bytes:
    """Return the region delimited by two stored big-endian offsets.

    Args:
        buffer: Buffer holding both the offsets and the region.
        start_pos: Position of the 2 byte start offset.
        end_pos: Position of the 2 byte end offset (exclusive).

    Returns:
        ``buffer[start:end]``.

    Raises:
        FormatError: If an offset cannot be read, ``end < start`` or
            ``end`` lies beyond the buffer.
    """
    for pos in (start_pos, end_pos):
        if pos < 0 or pos + 2 > len(buffer):
            raise FormatError(f"offset field at {pos} outside data ({len(buffer)} bytes)", buffer)

    start = int.from_bytes(buffer[start_pos : start_pos + 2], "big")
    end = int.from_bytes(buffer[end_pos : end_pos + 2], "big")

    if end < start or end > len(buffer):
        raise FormatError(f"invalid start/end offset {start}/{end} (avail {len(buffer)})", buffer)

    return bytes(buffer[start:end])


def split_insurance_data(buffer: bytes) -> Tuple[bytes, bytes]:
    """Split EF.VD into its VD and GVD documents.

    EF.VD starts with the start/end offsets of VD followed by the
    start/end offsets of GVD.

    Returns:
        Tuple of (VD bytes, GVD bytes).
    """
    if len(buffer) < 8:
        raise FormatError(f"EF.VD too short ({len(buffer)} bytes)", buffer)

    return slice_offset_pair(buffer, 0, 2), slice_offset_pair(buffer, 4, 6)


# =============================================================================
# Certificates
# =============================================================================


def extract_certificate_payload(raw: bytes) -> bytes:
    """Cut the DER value off the zero fill of a certificate file.

    Args:
        raw: File contents starting with one DER encoded value.

    Returns:
        The DER encoding of that value.

    Raises:
        FormatError: If the value does not parse or a trailing byte is
            not zero.
    """
    _, end = TLVParser.value_bounds(raw)

    if any(raw[end:]):
        raise FormatError("non-zero trailing bytes in cert", raw[end : end + 20])

    return bytes(raw[:end])


def load_certificate(raw: bytes) -> x509.Certificate:
    """Load the X.509 certificate stored in a certificate file.

    Only the encoding is checked; signatures are not verified.

    Raises:
        FormatError: If the file does not hold a DER certificate.
    """
    der = extract_certificate_payload(raw)
    try:
        return x509.load_der_x509_certificate(der)
    except ValueError as e:
        raise FormatError(f"invalid certificate: {e}", der) from e
