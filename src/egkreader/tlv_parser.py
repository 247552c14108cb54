"""BER-TLV parsing for eGK files.

The card stores several BER-TLV objects: the application templates of
EF.DIR, the ICCSN object of EF.GDO and, as the outer frame, the DER
encoded certificates of DF.ESIGN. Only decoding is needed; the reader
never builds TLV structures.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from egkreader.exceptions import TLVParseError


# Tags of at most 3 bytes and length fields of at most 4 bytes
MAX_TAG = 0xFFFFFF
MAX_LENGTH_BYTES = 4

# Fill bytes between objects in record and transparent files
PADDING = (0x00, 0xFF)

# Nesting limit for constructed values
MAX_DEPTH = 32


@dataclass
class TLV:
    """One decoded data object.

    Attributes:
        tag: Tag as integer (up to 3 bytes, e.g. 0x5F20).
        value: Contents octets.
        children: Objects nested in a constructed value.
        raw: Tag, length and value exactly as they appeared in the input.
    """

    tag: int
    value: bytes = b""
    children: List["TLV"] = field(default_factory=list)
    raw: bytes = b""

    @property
    def length(self) -> int:
        """Number of contents octets."""
        return len(self.value)

    @property
    def is_constructed(self) -> bool:
        """Check the constructed bit (0x20) of the leading tag byte."""
        leading = self.tag
        while leading > 0xFF:
            leading >>= 8
        return (leading & 0x20) != 0

    def find(self, tag: int) -> Optional["TLV"]:
        """Return the first direct child with ``tag``, or None."""
        return next((child for child in self.children if child.tag == tag), None)


class TLVParser:
    """Decoder for BER-TLV data objects.

    Example:
        ```python
        tlv, consumed = TLVParser.parse_one(bytes.fromhex("4F07D2760001448000"))
        assert tlv.value == bytes.fromhex("D2760001448000")
        ```
    """

    @staticmethod
    def read_header(data: bytes, offset: int = 0) -> Tuple[int, int, int]:
        """Decode the tag and length fields of the object at ``offset``.

        Args:
            data: Input buffer.
            offset: Position of the first tag byte.

        Returns:
            Tuple of (tag, value length, offset of the first value byte).

        Raises:
            TLVParseError: If the header is truncated or uses an
                unsupported form.
        """
        if offset >= len(data):
            raise TLVParseError("no data object", offset, data)

        pos = offset
        tag = data[pos]
        pos += 1

        # Low five bits all set: tag continues while bit 8 is set
        if tag & 0x1F == 0x1F:
            while True:
                if pos >= len(data):
                    raise TLVParseError("truncated tag", pos, data)
                tag = (tag << 8) | data[pos]
                pos += 1
                if tag > MAX_TAG:
                    raise TLVParseError("tag longer than 3 bytes", offset, data)
                if not data[pos - 1] & 0x80:
                    break

        if pos >= len(data):
            raise TLVParseError("missing length", pos, data)

        length = data[pos]
        pos += 1
        if length & 0x80:
            count = length & 0x7F
            if count == 0:
                raise TLVParseError("indefinite length", pos - 1, data)
            if count > MAX_LENGTH_BYTES:
                raise TLVParseError(f"length field of {count} bytes", pos - 1, data)
            if pos + count > len(data):
                raise TLVParseError("truncated length", pos, data)
            length = int.from_bytes(data[pos : pos + count], "big")
            pos += count

        return tag, length, pos

    @staticmethod
    def _locate(data: bytes, offset: int) -> Tuple[int, int, int]:
        tag, length, start = TLVParser.read_header(data, offset)
        end = start + length
        if end > len(data):
            raise TLVParseError(
                f"value of {length} bytes exceeds data ({len(data) - start} left)", start, data
            )
        return tag, start, end

    @staticmethod
    def value_bounds(data: bytes, offset: int = 0) -> Tuple[int, int]:
        """Locate the value of the object at ``offset`` without decoding it.

        Returns:
            Tuple of (offset of the first value byte, offset past the value).

        Raises:
            TLVParseError: If the header is malformed or the value extends
                past the end of ``data``.
        """
        _, start, end = TLVParser._locate(data, offset)
        return start, end

    @staticmethod
    def parse_one(data: bytes, offset: int = 0, depth: int = 0) -> Tuple[TLV, int]:
        """Decode the data object starting at ``offset``.

        Constructed values are decoded into ``children``, at most
        MAX_DEPTH levels deep.

        Returns:
            Tuple of (TLV, number of bytes it occupies).

        Raises:
            TLVParseError: If the object is malformed, nested too deeply
                or extends past the end of ``data``.
        """
        if depth > MAX_DEPTH:
            raise TLVParseError(f"nesting deeper than {MAX_DEPTH} levels", offset, data)

        tag, start, end = TLVParser._locate(data, offset)

        tlv = TLV(tag=tag, value=bytes(data[start:end]), raw=bytes(data[offset:end]))
        if tlv.is_constructed and end > start:
            tlv.children = TLVParser.parse_all(tlv.value, depth + 1)

        return tlv, end - offset

    @staticmethod
    def parse_all(data: bytes, depth: int = 0) -> List[TLV]:
        """Decode consecutive data objects, skipping 00 and FF fill bytes.

        Raises:
            TLVParseError: If any object is malformed.
        """
        objects = []
        pos = 0
        while pos < len(data):
            if data[pos] in PADDING:
                pos += 1
                continue
            tlv, size = TLVParser.parse_one(data, pos, depth)
            objects.append(tlv)
            pos += size
        return objects


class Tags:
    """Tags used in eGK files."""

    APPLICATION_TEMPLATE = 0x61
    APPLICATION_ID = 0x4F
    APPLICATION_LABEL = 0x50
    ICCSN = 0x5A
    SEQUENCE = 0x30
