"""
Unit tests for TLV Parser.

Tests the TLVParser class with simple and constructed tags, the
length encodings found on the card, padding and malformed input.
"""

import pytest

from egkreader.exceptions import FormatError, TLVParseError
from egkreader.tlv_parser import MAX_DEPTH, TLV, TLVParser, Tags


class TestTLVDataclass:
    """Test TLV dataclass properties and methods."""

    def test_length(self):
        """Test length of the value."""
        tlv = TLV(tag=0x4F, value=bytes.fromhex("D27600000102"))
        assert tlv.length == 6

    def test_is_constructed(self):
        """Test bit 6 of the first tag byte."""
        assert TLV(tag=0x61).is_constructed
        assert TLV(tag=0x30).is_constructed
        assert TLV(tag=0xBF0C).is_constructed
        assert not TLV(tag=0x5A).is_constructed

    def test_find(self):
        """Test finding a direct child."""
        parent = TLV(tag=0x61, children=[TLV(tag=0x4F, value=b"a"), TLV(tag=0x50, value=b"b")])

        assert parent.find(0x50).value == b"b"
        assert parent.find(0x99) is None


class TestTLVParser:
    """Test parsing TLV structures."""

    def test_read_header(self):
        """Test tag, length and value offset of a long-form header."""
        tag, length, start = TLVParser.read_header(bytes.fromhex("308201000201") + bytes(254))

        assert tag == Tags.SEQUENCE
        assert length == 256
        assert start == 4

    def test_parse_primitive(self):
        """Test primitive TLV and consumed count."""
        tlv, consumed = TLVParser.parse_one(bytes.fromhex("5A0A80276001234512345678"))

        assert tlv.tag == Tags.ICCSN
        assert tlv.length == 10
        assert consumed == 12
        assert tlv.raw == bytes.fromhex("5A0A80276001234512345678")

    def test_parse_at_offset(self):
        """Test parsing from an offset."""
        data = bytes.fromhex("FFFF4F02AABB")
        tlv, consumed = TLVParser.parse_one(data, 2)

        assert tlv.tag == 0x4F
        assert tlv.value == bytes.fromhex("AABB")
        assert consumed == 4

    def test_parse_constructed(self):
        """Test children of an application template."""
        data = bytes.fromhex("610C4F07D27600014480005001 41".replace(" ", ""))

        tlv, _ = TLVParser.parse_one(data)

        assert tlv.tag == Tags.APPLICATION_TEMPLATE
        assert [c.tag for c in tlv.children] == [Tags.APPLICATION_ID, Tags.APPLICATION_LABEL]

    def test_parse_long_form_lengths(self):
        """Test 81 and 82 length prefixes."""
        tlv, consumed = TLVParser.parse_one(bytes.fromhex("0481FF") + bytes(255))
        assert tlv.length == 255
        assert consumed == 258

        tlv, consumed = TLVParser.parse_one(bytes.fromhex("04820100") + bytes(256))
        assert tlv.length == 256
        assert consumed == 260

    def test_parse_multi_byte_tag(self):
        """Test two byte tag."""
        tlv, consumed = TLVParser.parse_one(bytes.fromhex("5F2001AA"))

        assert tlv.tag == 0x5F20
        assert tlv.value == b"\xAA"
        assert consumed == 4

    def test_parse_all_skips_padding(self):
        """Test 00 and FF between objects are skipped."""
        tlvs = TLVParser.parse_all(bytes.fromhex("00 4F01AA FF 5001BB 0000".replace(" ", "")))

        assert [t.tag for t in tlvs] == [0x4F, 0x50]

    def test_value_beyond_data(self):
        """Test truncated value."""
        with pytest.raises(TLVParseError):
            TLVParser.parse_one(bytes.fromhex("4F05AABB"))

    def test_indefinite_length(self):
        """Test indefinite length is rejected."""
        with pytest.raises(TLVParseError):
            TLVParser.parse_one(bytes.fromhex("3080020105"))

    def test_missing_length(self):
        """Test tag without a length byte."""
        with pytest.raises(TLVParseError):
            TLVParser.parse_one(bytes.fromhex("4F"))

    def test_empty_input(self):
        """Test empty input."""
        with pytest.raises(TLVParseError) as exc_info:
            TLVParser.parse_one(b"")
        assert exc_info.value.offset == 0

    def test_parse_error_is_format_error(self):
        """Test TLV errors can be handled as format errors."""
        with pytest.raises(FormatError):
            TLVParser.parse_one(bytes.fromhex("5F"))

    def test_nesting_limit(self):
        """Test nesting up to the limit parses and one level more fails."""
        def nest(levels):
            value = bytes.fromhex("020105")
            for _ in range(levels):
                value = bytes([0x30, len(value)]) + value
            return value

        tlv, _ = TLVParser.parse_one(nest(MAX_DEPTH))
        assert tlv.tag == Tags.SEQUENCE

        with pytest.raises(TLVParseError) as exc_info:
            TLVParser.parse_one(nest(MAX_DEPTH + 1))
        assert "nesting" in exc_info.value.reason

    def test_value_bounds(self):
        """Test value position without decoding children."""
        assert TLVParser.value_bounds(bytes.fromhex("3003020105FF")) == (2, 5)

        with pytest.raises(TLVParseError):
            TLVParser.value_bounds(bytes.fromhex("3005020105"))
