"""File access commands for the eGK.

This module implements the plaintext read commands of ISO 7816-4 used
by the health insurance card: SELECT by AID, READ BINARY and READ
RECORD (by absolute position or short file identifier), plus a chained
reader for files longer than one extended READ BINARY.

Example:
    ```python
    from egkreader.file_access import FileAccess

    files = FileAccess(transport)
    files.select_by_aid("D27600000102")
    status = files.read_binary_sfid(0x0C, 0, LE_WILDCARD_EXTENDED)
    ```
"""

import logging
from enum import Enum
from typing import Union

from egkreader.apdu import (
    APDU_MAX_EXTENDED,
    LE_WILDCARD_EXTENDED,
    SW_SUCCESS,
    SW_WRONG_PARAMETERS,
    SWDecoder,
)
from egkreader.exceptions import CardStatusError, EncodingFault
from egkreader.models import APDUCommand, APDUResponse, INS
from egkreader.transport import CardTransport

logger = logging.getLogger(__name__)


MAX_SFID = 30


class ReadState(Enum):
    """States of a chained full-file read."""

    START = "start"
    READING = "reading"
    DONE = "done"
    FAILED = "failed"


class FileAccess:
    """Read access to card files over a single transport.

    One instance serves one card session; calls must not overlap.
    """

    def __init__(self, transport: CardTransport):
        """Initialize file access.

        Args:
            transport: Transport connected to the card.
        """
        self._transport = transport

    @property
    def transport(self) -> CardTransport:
        """Transport used for all commands."""
        return self._transport

    def _exchange(self, command: APDUCommand) -> bytes:
        """Send a command and return its payload.

        Raises:
            CardStatusError: If the status word is not 9000.
            TransportError: If the transport fails.
        """
        request = command.to_bytes()
        response = APDUResponse.from_bytes(self._transport.transmit(request))

        if response.sw != SW_SUCCESS:
            logger.debug(f"{command.to_hex()} failed: SW={response.sw:04X}")
            raise CardStatusError(
                response.sw,
                command=request,
                status_message=SWDecoder.decode(response.sw1, response.sw2),
            )

        logger.debug(f"{command.to_hex()}: {len(response.data)} bytes")
        return response.data

    # =========================================================================
    # Commands
    # =========================================================================

    def select_by_aid(self, aid: Union[bytes, str]) -> None:
        """Select an application by AID without returning FCI.

        Args:
            aid: Application Identifier as bytes or hex string.

        Raises:
            CardStatusError: If the application cannot be selected.
        """
        if isinstance(aid, str):
            aid = bytes.fromhex(aid.replace(" ", ""))

        logger.debug(f"SELECT {aid.hex().upper()}")
        self._exchange(APDUCommand(0x00, INS.SELECT, 0x04, 0x0C, data=aid))

    def read_binary(self, offset: int, le: int) -> bytes:
        """Read binary data from the current EF.

        Args:
            offset: Absolute offset (P1-P2).
            le: Expected length or wildcard.

        Returns:
            Data read.
        """
        if not 0 <= offset <= 0xFFFF:
            raise EncodingFault(f"offset {offset} out of range")

        return self._exchange(
            APDUCommand(0x00, INS.READ_BINARY, (offset >> 8) & 0xFF, offset & 0xFF, le=le)
        )

    def read_binary_sfid(self, sfid: int, offset: int, le: int) -> bytes:
        """Read binary data from the EF named by a short file identifier.

        Args:
            sfid: Short file identifier (0-30).
            offset: Offset within the file (0-255).
            le: Expected length or wildcard.

        Returns:
            Data read.
        """
        _check_sfid(sfid)
        if not 0 <= offset <= 0xFF:
            raise EncodingFault(f"SFID offset {offset} out of range")

        return self._exchange(APDUCommand(0x00, INS.READ_BINARY, 0x80 | sfid, offset, le=le))

    def read_record(self, index: int, le: int) -> bytes:
        """Read a record of the current EF.

        Args:
            index: Record number (1-based).
            le: Expected length or wildcard.

        Returns:
            Record contents.
        """
        _check_record(index)
        return self._exchange(APDUCommand(0x00, INS.READ_RECORD, index, 0x04, le=le))

    def read_record_sfid(self, sfid: int, index: int, le: int) -> bytes:
        """Read a record of the EF named by a short file identifier.

        Args:
            sfid: Short file identifier (0-30).
            index: Record number (1-based).
            le: Expected length or wildcard.

        Returns:
            Record contents.
        """
        _check_sfid(sfid)
        _check_record(index)
        return self._exchange(APDUCommand(0x00, INS.READ_RECORD, index, (sfid << 3) | 0x04, le=le))

    # =========================================================================
    # Chained Read
    # =========================================================================

    def read_full(self, sfid: int, keep_partial: bool = False) -> bytes:
        """Read a transparent EF of any size up to 64 KiB.

        The first chunk is read through the short file identifier, which
        also selects the file. Further chunks are read at the absolute
        offset following the data received so far. The card signals the
        end of the file with SW 6B00, which ends the read successfully,
        as does an empty chunk or reaching 65536 bytes.

        Args:
            sfid: Short file identifier of the file.
            keep_partial: Attach the bytes read so far to a raised
                CardStatusError as ``partial_data``.

        Returns:
            The file contents.

        Raises:
            CardStatusError: If any read fails with a status word other
                than 9000 or 6B00.
        """
        state = ReadState.START
        raw = b""

        while state in (ReadState.START, ReadState.READING):
            try:
                if state is ReadState.START:
                    chunk = self.read_binary_sfid(sfid, 0, LE_WILDCARD_EXTENDED)
                else:
                    chunk = self.read_binary(len(raw), LE_WILDCARD_EXTENDED)
            except CardStatusError as e:
                if e.sw == SW_WRONG_PARAMETERS:
                    state = ReadState.DONE
                    break
                state = ReadState.FAILED
                logger.debug(f"Full read of SFID {sfid:02X} failed after {len(raw)} bytes")
                if keep_partial:
                    e.partial_data = raw
                raise

            if not chunk:
                state = ReadState.DONE
                break

            raw += chunk
            state = ReadState.READING
            if len(raw) >= APDU_MAX_EXTENDED:
                state = ReadState.DONE

        logger.debug(f"Full read of SFID {sfid:02X}: {len(raw)} bytes ({state.value})")
        return raw


def _check_sfid(sfid: int) -> None:
    if not 0 <= sfid <= MAX_SFID:
        raise EncodingFault(f"SFID {sfid} out of range")


def _check_record(index: int) -> None:
    if not 0 <= index <= 0xFF:
        raise EncodingFault(f"record number {index} out of range")
