"""Data models for the eGK reader.

This module defines all data classes and enumerations used throughout
the reader for APDU exchanges and decoded card records.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, Optional

from egkreader.apdu import SWDecoder, decode_response, encode_command


# =============================================================================
# APDU Models
# =============================================================================


class INS(IntEnum):
    """ISO 7816-4 instruction bytes used by the reader."""

    SELECT = 0xA4
    READ_BINARY = 0xB0
    READ_RECORD = 0xB2


@dataclass(frozen=True)
class APDUCommand:
    """APDU command structure.

    Attributes:
        cla: Class byte.
        ins: Instruction byte.
        p1: Parameter 1.
        p2: Parameter 2.
        data: Command data (Lc field will be computed).
        le: Expected response length (0 = no Le, see egkreader.apdu).
    """

    cla: int
    ins: int
    p1: int
    p2: int
    data: bytes = b""
    le: int = 0

    def to_bytes(self) -> bytes:
        """Convert to byte array for transmission.

        Returns:
            APDU as bytes in short or extended format.
        """
        return encode_command(self.cla, self.ins, self.p1, self.p2, self.data, self.le)

    def to_hex(self) -> str:
        """Convert to hex string."""
        return self.to_bytes().hex().upper()


@dataclass(frozen=True)
class APDUResponse:
    """APDU response structure.

    Attributes:
        data: Response data.
        sw: Status word as 16-bit integer.
    """

    data: bytes
    sw: int

    @classmethod
    def from_bytes(cls, raw: bytes) -> "APDUResponse":
        """Parse a raw response APDU."""
        sw, data = decode_response(raw)
        return cls(data=data, sw=sw)

    @property
    def sw1(self) -> int:
        """First status byte."""
        return (self.sw >> 8) & 0xFF

    @property
    def sw2(self) -> int:
        """Second status byte."""
        return self.sw & 0xFF

    @property
    def is_success(self) -> bool:
        """Check if command succeeded (SW=9000)."""
        return self.sw == 0x9000

    @property
    def status_message(self) -> str:
        """Human-readable status word."""
        return SWDecoder.decode(self.sw1, self.sw2)

    def to_hex(self) -> str:
        """Convert response to hex string."""
        return (self.data + bytes([self.sw1, self.sw2])).hex().upper()


@dataclass
class APDULogEntry:
    """Entry in the APDU trace.

    Attributes:
        timestamp: When the exchange occurred.
        direction: "command" or "response".
        data: APDU bytes.
        decoded: Human-readable decoded representation.
        duration_ms: Duration in milliseconds (for responses).
    """

    timestamp: datetime
    direction: str  # "command" or "response"
    data: bytes
    decoded: str = ""
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "direction": self.direction,
            "data": self.data.hex(),
            "decoded": self.decoded,
            "duration_ms": self.duration_ms,
        }


# =============================================================================
# Card Records
# =============================================================================


@dataclass(frozen=True)
class ICCSN:
    """Integrated circuit card serial number (EF.GDO).

    Attributes:
        major_industry_identifier: MII byte (0x80 for health cards).
        country_code: Three digit numeric country code (276 = Germany).
        issuer_identifier: Five digit issuer number.
        serial_number: Ten digit card serial number.
    """

    major_industry_identifier: int
    country_code: int
    issuer_identifier: int
    serial_number: int

    def __str__(self) -> str:
        return (
            f"{self.major_industry_identifier:02X}"
            f"{self.country_code:03d}"
            f"{self.issuer_identifier:05d}"
            f"{self.serial_number:010d}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class StatusRecord:
    """Contents of EF.StatusVD.

    Attributes:
        status: "1" while an update transaction is open, "0" otherwise.
        timestamp: Last update as YYYYMMDDhhmmss.
        version: Schema version of the insurance data.
        reserved: Reserved trailing bytes.
    """

    status: str
    timestamp: str
    version: str
    reserved: bytes

    @property
    def transaction_open(self) -> bool:
        """Check if an update of the insurance data was interrupted."""
        return self.status == "1"

    @property
    def updated_at(self) -> Optional[datetime]:
        """Timestamp as datetime, None if it does not parse."""
        try:
            return datetime.strptime(self.timestamp, "%Y%m%d%H%M%S")
        except ValueError:
            return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "version": self.version,
            "reserved": self.reserved.hex(),
        }


@dataclass(frozen=True)
class DirEntry:
    """Application template from an EF.DIR record."""

    aid: bytes
    label: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {"aid": self.aid.hex().upper(), "label": self.label}


# =============================================================================
# Insurance Documents
# =============================================================================


@dataclass
class Address:
    """Postal address (street or post box)."""

    postal_code: str = ""
    city: str = ""
    country_code: str = ""
    post_box: str = ""
    street: str = ""
    house_number: str = ""
    addition: str = ""


@dataclass
class PersonalData:
    """Insured person's data (EF.PD)."""

    cdm_version: str = ""
    insurant_id: str = ""
    birth_date: str = ""
    first_name: str = ""
    last_name: str = ""
    gender: str = ""
    name_prefix: str = ""
    name_suffix: str = ""
    title: str = ""
    street_address: Address = field(default_factory=Address)
    post_box_address: Address = field(default_factory=Address)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class InsuranceData:
    """General insurance data (VD part of EF.VD)."""

    cdm_version: str = ""
    coverage_start: str = ""
    coverage_end: str = ""
    payer_id: str = ""
    payer_country_code: str = ""
    payer_name: str = ""
    billing_payer_id: str = ""
    billing_payer_name: str = ""
    legal_scope: str = ""
    insurant_type: str = ""
    rsa_status: str = ""
    reimbursement_outpatient: str = ""
    reimbursement_inpatient: str = ""
    wop: str = ""
    pkv_tariff: str = ""
    allowance_marker: str = ""
    inpatient_accommodation: str = ""
    inpatient_accommodation_percent: str = ""
    inpatient_accommodation_max_rate: str = ""
    inpatient_physician: str = ""
    inpatient_physician_percent: str = ""
    clinic_card: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class ProtectedInsuranceData:
    """Protected insurance data (GVD part of EF.VD)."""

    cdm_version: str = ""
    copayment_status: str = ""
    copayment_valid_until: str = ""
    special_group: str = ""
    dmp_marker: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)
