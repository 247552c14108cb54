"""eGK Reader - Read the German health insurance card via PC/SC.

This package reads the publicly readable files of an eGK (elektronische
Gesundheitskarte) and decodes them into typed records.

Core Components:
    - encode_command / decode_response: ISO 7816-4 APDU framing
    - PCSCTransport, TracingTransport: Card transports
    - FileAccess: SELECT, READ BINARY, READ RECORD and chained reads
    - Decoders: BCD, ICCSN, status record, EF.VD framing, certificates
    - CardDumper: Complete read sequence over MF, DF.HCA and DF.ESIGN

Example:
    ```python
    from egkreader import CardDumper, FileAccess, PCSCTransport

    with PCSCTransport.connect() as card:
        dump = CardDumper(FileAccess(card)).dump()

    for app in dump.applications:
        for result in app.files:
            print(result.name, result.value or result.error)
    ```
"""

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

from egkreader.apdu import (
    APDU_MAX_EXTENDED,
    APDU_MAX_SHORT,
    LE_WILDCARD,
    LE_WILDCARD_EXTENDED,
    SWDecoder,
    decode_response,
    encode_command,
)

from egkreader.models import (
    APDUCommand,
    APDULogEntry,
    APDUResponse,
    Address,
    DirEntry,
    ICCSN,
    INS,
    InsuranceData,
    PersonalData,
    ProtectedInsuranceData,
    StatusRecord,
)

from egkreader.transport import (
    CardTransport,
    PCSCTransport,
    TracingTransport,
)

from egkreader.file_access import (
    FileAccess,
    ReadState,
)

from egkreader.tlv_parser import (
    TLV,
    TLVParser,
    Tags,
)

from egkreader.decoders import (
    INVALID_VERSION,
    decode_bcd_digits,
    decode_bcd_version,
    decode_dir_record,
    decode_gdo,
    decode_iccsn,
    decode_status_record,
    extract_certificate_payload,
    load_certificate,
    slice_length_prefixed,
    slice_offset_pair,
    split_insurance_data,
)

from egkreader.documents import (
    decompress_document,
    parse_insurance_data,
    parse_personal_data,
    parse_protected_insurance_data,
)

from egkreader.config import (
    ApplicationIds,
    CardLayout,
    ShortFileIds,
    load_layout,
)

from egkreader.dumper import (
    ApplicationResult,
    CardDump,
    CardDumper,
    FileResult,
)

__version__ = "0.1.0"

__all__ = [
    # Exceptions
    "EgkError",
    "EncodingFault",
    "TransportError",
    "ReaderNotFoundError",
    "CardNotFoundError",
    "CardStatusError",
    "FormatError",
    "TLVParseError",
    "ConfigurationError",
    # APDU
    "APDU_MAX_SHORT",
    "APDU_MAX_EXTENDED",
    "LE_WILDCARD",
    "LE_WILDCARD_EXTENDED",
    "SWDecoder",
    "encode_command",
    "decode_response",
    # Models
    "APDUCommand",
    "APDUResponse",
    "APDULogEntry",
    "INS",
    "ICCSN",
    "StatusRecord",
    "DirEntry",
    "Address",
    "PersonalData",
    "InsuranceData",
    "ProtectedInsuranceData",
    # Transport
    "CardTransport",
    "PCSCTransport",
    "TracingTransport",
    # File access
    "FileAccess",
    "ReadState",
    # TLV
    "TLV",
    "TLVParser",
    "Tags",
    # Decoders
    "INVALID_VERSION",
    "decode_bcd_digits",
    "decode_bcd_version",
    "decode_iccsn",
    "decode_gdo",
    "decode_status_record",
    "decode_dir_record",
    "slice_length_prefixed",
    "slice_offset_pair",
    "split_insurance_data",
    "extract_certificate_payload",
    "load_certificate",
    # Documents
    "decompress_document",
    "parse_personal_data",
    "parse_insurance_data",
    "parse_protected_insurance_data",
    # Configuration
    "ApplicationIds",
    "ShortFileIds",
    "CardLayout",
    "load_layout",
    # Dumper
    "CardDumper",
    "CardDump",
    "ApplicationResult",
    "FileResult",
]
