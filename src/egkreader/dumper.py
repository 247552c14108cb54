"""Card dump sequence.

This module reads the publicly readable content of an eGK: the master
file (ATR, DIR, GDO, versions and CA/CVC certificates), the health care
application (status, personal and insurance data) and the eSign
application (holder certificates).

Each file is read and decoded independently. A card error or malformed
payload is recorded on the file's result and the dump continues; a
transport error ends the dump.

Example:
    ```python
    dumper = CardDumper(FileAccess(transport))
    dump = dumper.dump()
    for app in dump.applications:
        print(app.name, [f.name for f in app.files])
    ```
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from cryptography import x509

from egkreader.apdu import LE_WILDCARD, LE_WILDCARD_EXTENDED
from egkreader.config import CardLayout
from egkreader.decoders import (
    decode_bcd_version,
    decode_dir_record,
    decode_gdo,
    decode_status_record,
    load_certificate,
    slice_length_prefixed,
    split_insurance_data,
)
from egkreader.documents import (
    parse_insurance_data,
    parse_personal_data,
    parse_protected_insurance_data,
)
from egkreader.exceptions import CardStatusError, FormatError
from egkreader.file_access import FileAccess

logger = logging.getLogger(__name__)


# =============================================================================
# Results
# =============================================================================


@dataclass
class FileResult:
    """Outcome of reading and decoding one file or record.

    Attributes:
        name: File name, e.g. ``ef.gdo`` or ``ef.dir[3]``.
        raw: Bytes read from the card (None if the read failed).
        value: Decoded value (None if not decoded or decoding failed).
        error: Error message (None on success).
    """

    name: str
    raw: Optional[bytes] = None
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """Check if the file was read and decoded."""
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        value = self.value
        if hasattr(value, "to_dict"):
            value = value.to_dict()
        elif isinstance(value, (list, tuple)):
            value = [v.to_dict() if hasattr(v, "to_dict") else v for v in value]

        return {
            "name": self.name,
            "raw": self.raw.hex() if self.raw is not None else None,
            "value": value,
            "error": self.error,
        }


@dataclass
class ApplicationResult:
    """Outcome of selecting one application and reading its files."""

    name: str
    aid: bytes
    error: Optional[str] = None
    files: List[FileResult] = field(default_factory=list)

    @property
    def selected(self) -> bool:
        """Check if the application could be selected."""
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "aid": self.aid.hex().upper(),
            "error": self.error,
            "files": [f.to_dict() for f in self.files],
        }


@dataclass
class CardDump:
    """Everything read from a card."""

    applications: List[ApplicationResult] = field(default_factory=list)

    def get(self, name: str) -> Optional[ApplicationResult]:
        """Get an application result by name."""
        for app in self.applications:
            if app.name == name:
                return app
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {"applications": [app.to_dict() for app in self.applications]}


def describe_certificate(cert: x509.Certificate) -> Dict[str, Any]:
    """Summarize an X.509 certificate for display."""
    return {
        "subject": cert.subject.rfc4514_string(),
        "issuer": cert.issuer.rfc4514_string(),
        "serial_number": f"{cert.serial_number:X}",
        "not_before": cert.not_valid_before_utc.isoformat(),
        "not_after": cert.not_valid_after_utc.isoformat(),
    }


# =============================================================================
# Dumper
# =============================================================================


class CardDumper:
    """Reads all public files of an eGK."""

    def __init__(self, files: FileAccess, layout: Optional[CardLayout] = None):
        """Initialize dumper.

        Args:
            files: File access over the card transport.
            layout: Card layout (default: G2 layout).
        """
        self._files = files
        self._layout = layout or CardLayout()

    def dump(self) -> CardDump:
        """Read all applications in card order.

        Returns:
            CardDump with one ApplicationResult per application.

        Raises:
            TransportError: If the card or reader goes away.
        """
        aids = self._layout.aids
        steps = [
            ("mf", aids.root, self._dump_root),
            ("hca", aids.hca, self._dump_hca),
            ("qes", aids.qes, None),
            ("esign", aids.esign, self._dump_esign),
        ]

        dump = CardDump()
        for name, aid, reader in steps:
            app = ApplicationResult(name=name, aid=aid)
            dump.applications.append(app)

            logger.info(f"Selecting {name}: {aid.hex().upper()}")
            try:
                self._files.select_by_aid(aid)
            except CardStatusError as e:
                logger.warning(f"Cannot select {name}: {e.message}")
                app.error = e.message
                continue

            if reader is not None:
                reader(app)

        return dump

    def _read(
        self,
        app: ApplicationResult,
        name: str,
        read: Callable[[], bytes],
        decode: Optional[Callable[[bytes], Any]] = None,
    ) -> FileResult:
        """Read and decode one file, recording the outcome on ``app``."""
        result = FileResult(name=f"{app.name}/{name}")
        app.files.append(result)

        try:
            result.raw = read()
        except CardStatusError as e:
            logger.warning(f"{result.name}: {e.message}")
            result.error = e.message
            return result

        if decode is None:
            return result

        try:
            result.value = decode(result.raw)
        except FormatError as e:
            logger.warning(f"{result.name}: {e.message}")
            result.error = e.message

        return result

    def _dump_root(self, app: ApplicationResult) -> None:
        files = self._files
        sfids = self._layout.sfids

        self._read(app, "ef.atr", lambda: files.read_binary_sfid(sfids.atr, 0, LE_WILDCARD))

        for i in range(1, self._layout.dir_records + 1):
            self._read(
                app,
                f"ef.dir[{i}]",
                lambda i=i: files.read_record_sfid(sfids.dir, i, LE_WILDCARD),
                decode_dir_record,
            )

        self._read(
            app,
            "ef.gdo",
            lambda: files.read_binary_sfid(sfids.gdo, 0, LE_WILDCARD),
            decode_gdo,
        )

        for i in range(1, self._layout.version_records + 1):
            self._read(
                app,
                f"ef.version[{i}]",
                lambda i=i: files.read_record_sfid(sfids.version, i, LE_WILDCARD),
                decode_bcd_version,
            )

        certificates = [
            ("ef.c.ca_egk.cs.r2048", sfids.ca_egk_cs_r2048),
            ("ef.c.ca_egk.cs.e256", sfids.ca_egk_cs_e256),
            ("ef.c.ca_egk.cs.e384", sfids.ca_egk_cs_e384),
            ("ef.c.egk.aut_cvc.r2048", sfids.egk_aut_cvc_r2048),
            ("ef.c.egk.aut_cvc.e256", sfids.egk_aut_cvc_e256),
            ("ef.c.egk.aut_cvc.e384", sfids.egk_aut_cvc_e384),
        ]
        # Card verifiable certificates are kept raw
        for name, sfid in certificates:
            self._read(
                app, name, lambda sfid=sfid: files.read_binary_sfid(sfid, 0, LE_WILDCARD_EXTENDED)
            )

    def _dump_hca(self, app: ApplicationResult) -> None:
        files = self._files
        sfids = self._layout.sfids

        self._read(
            app,
            "ef.statusvd",
            lambda: files.read_binary_sfid(sfids.status_vd, 0, LE_WILDCARD_EXTENDED),
            decode_status_record,
        )

        self._read(
            app,
            "ef.pd",
            lambda: files.read_binary_sfid(sfids.pd, 0, LE_WILDCARD_EXTENDED),
            lambda raw: parse_personal_data(slice_length_prefixed(raw)),
        )

        vd = self._read(
            app, "ef.vd", lambda: files.read_binary_sfid(sfids.vd, 0, LE_WILDCARD_EXTENDED)
        )
        if vd.raw is None:
            return

        try:
            vd_raw, gvd_raw = split_insurance_data(vd.raw)
        except FormatError as e:
            logger.warning(f"{vd.name}: {e.message}")
            vd.error = e.message
            return

        self._read(app, "ef.vd/vd", lambda: vd_raw, parse_insurance_data)
        self._read(app, "ef.vd/gvd", lambda: gvd_raw, parse_protected_insurance_data)

    def _dump_esign(self, app: ApplicationResult) -> None:
        files = self._files
        sfids = self._layout.sfids

        for name, sfid in (("ef.c.ch.aut", sfids.c_ch_aut), ("ef.c.ch.enc", sfids.c_ch_enc)):
            self._read(
                app,
                name,
                lambda sfid=sfid: files.read_full(sfid),
                lambda raw: describe_certificate(load_certificate(raw)),
            )
