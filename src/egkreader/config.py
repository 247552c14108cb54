"""Card layout configuration.

This module defines where the eGK applications and files live: the AIDs
of the applications and the short file identifiers of the elementary
files read by the dumper. The defaults describe a G2 card; a YAML file
can override any of them.

Example YAML:
    ```yaml
    aids:
      hca: D27600000102
    sfids:
      status_vd: 0x0C
    dir_records: 8
    ```
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from egkreader.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class ApplicationIds:
    """AIDs of the card applications."""

    root: bytes = bytes.fromhex("D2760001448000")
    hca: bytes = bytes.fromhex("D27600000102")
    qes: bytes = bytes.fromhex("D27600006601")
    esign: bytes = bytes.fromhex("A000000167455349474E")


@dataclass
class ShortFileIds:
    """Short file identifiers of the elementary files.

    Identifiers are only unique within their application: MF files,
    DF.HCA files and DF.ESIGN files reuse the same numbers.
    """

    # MF
    atr: int = 0x1D
    dir: int = 0x1E
    gdo: int = 0x02
    version: int = 0x10
    ca_egk_cs_r2048: int = 0x04
    ca_egk_cs_e256: int = 0x07
    ca_egk_cs_e384: int = 0x0D
    egk_aut_cvc_r2048: int = 0x03
    egk_aut_cvc_e256: int = 0x06
    egk_aut_cvc_e384: int = 0x0C
    # DF.HCA
    status_vd: int = 0x0C
    pd: int = 0x01
    vd: int = 0x02
    # DF.ESIGN
    c_ch_aut: int = 0x01
    c_ch_enc: int = 0x02


@dataclass
class CardLayout:
    """Complete layout of the card as read by the dumper.

    Attributes:
        aids: Application identifiers.
        sfids: Short file identifiers.
        dir_records: Number of EF.DIR records to read.
        version_records: Number of EF.Version records to read.
    """

    aids: ApplicationIds = field(default_factory=ApplicationIds)
    sfids: ShortFileIds = field(default_factory=ShortFileIds)
    dir_records: int = 10
    version_records: int = 4

    def validate(self) -> None:
        """Validate the layout.

        Raises:
            ConfigurationError: If an identifier is out of range.
        """
        for f in fields(self.aids):
            aid = getattr(self.aids, f.name)
            if not 5 <= len(aid) <= 16:
                raise ConfigurationError(f"AID {f.name} must be 5-16 bytes, got {len(aid)}")

        for f in fields(self.sfids):
            sfid = getattr(self.sfids, f.name)
            if not 0 <= sfid <= 30:
                raise ConfigurationError(f"SFID {f.name} must be 0-30, got {sfid}")

        for name in ("dir_records", "version_records"):
            count = getattr(self, name)
            if not 0 <= count <= 254:
                raise ConfigurationError(f"{name} must be 0-254, got {count}")


def layout_from_dict(data: Dict[str, Any]) -> CardLayout:
    """Build a layout from a dictionary, starting from the defaults.

    Args:
        data: Mapping with optional ``aids``, ``sfids``, ``dir_records``
            and ``version_records`` keys. AIDs are hex strings.

    Returns:
        Validated CardLayout.

    Raises:
        ConfigurationError: On unknown keys or invalid values.
    """
    layout = CardLayout()

    unknown = set(data) - {"aids", "sfids", "dir_records", "version_records"}
    if unknown:
        raise ConfigurationError(f"unknown keys: {', '.join(sorted(unknown))}")

    for name, value in (data.get("aids") or {}).items():
        if not hasattr(layout.aids, name):
            raise ConfigurationError(f"unknown application: {name}")
        try:
            setattr(layout.aids, name, bytes.fromhex(str(value).replace(" ", "")))
        except ValueError as e:
            raise ConfigurationError(f"AID {name} is not hex: {value}") from e

    for name, value in (data.get("sfids") or {}).items():
        if not hasattr(layout.sfids, name):
            raise ConfigurationError(f"unknown file: {name}")
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"SFID {name} must be an integer, got {value!r}")
        setattr(layout.sfids, name, value)

    for name in ("dir_records", "version_records"):
        if name in data:
            if isinstance(data[name], bool) or not isinstance(data[name], int):
                raise ConfigurationError(f"{name} must be an integer, got {data[name]!r}")
            setattr(layout, name, data[name])

    layout.validate()
    return layout


def load_layout(path: Union[str, Path]) -> CardLayout:
    """Load a layout from a YAML file.

    Args:
        path: YAML file path.

    Returns:
        Validated CardLayout.

    Raises:
        ConfigurationError: If the file cannot be read or is invalid.
    """
    path = Path(path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"cannot read file: {e}", str(path)) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML: {e}", str(path)) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("top level must be a mapping", str(path))

    try:
        layout = layout_from_dict(data)
    except ConfigurationError as e:
        raise ConfigurationError(e.reason, str(path)) from e

    logger.debug(f"Loaded card layout from {path}")
    return layout
