"""Card transports.

A transport moves raw APDU bytes to the card and back. Anything with a
``transmit(bytes) -> bytes`` method qualifies, so a real reader, a test
double and the tracing decorator are interchangeable.

Example:
    ```python
    from egkreader.transport import PCSCTransport, TracingTransport

    with PCSCTransport.connect() as card:
        transport = TracingTransport(card)
        rapdu = transport.transmit(bytes.fromhex("00A4040C07D2760001448000"))
    ```
"""

import logging
import sys
import time
from collections import deque
from datetime import datetime
from typing import Any, Deque, List, Optional, Protocol, TextIO, Union

from egkreader.apdu import SWDecoder
from egkreader.exceptions import (
    CardNotFoundError,
    ReaderNotFoundError,
    TransportError,
)
from egkreader.models import APDULogEntry

logger = logging.getLogger(__name__)

# Command and response entries kept by TracingTransport
MAX_TRACE_ENTRIES = 1000


# =============================================================================
# Transport Protocol
# =============================================================================


class CardTransport(Protocol):
    """Minimal capability needed to talk to a card."""

    def transmit(self, request: bytes) -> bytes:
        """Send a command APDU and return the raw response APDU.

        Raises:
            TransportError: If the channel fails.
        """
        ...


# =============================================================================
# PC/SC Transport
# =============================================================================


class PCSCTransport:
    """Transport over a pyscard card connection.

    The reader session itself (context, sharing mode, protocol) belongs to
    pyscard; this class only adapts its ``transmit`` to raw bytes and maps
    its exceptions to TransportError.

    Attributes:
        reader_name: Name of the reader the card sits in.
    """

    def __init__(self, connection: Any, reader_name: str = ""):
        """Initialize transport.

        Args:
            connection: A connected pyscard ``CardConnection``.
            reader_name: Reader name for log and error messages.
        """
        self._connection = connection
        self.reader_name = reader_name

    @classmethod
    def connect(cls, reader: Union[str, int, None] = None) -> "PCSCTransport":
        """Connect to a card.

        Args:
            reader: Reader name (partial match), index, or None for the
                first reader holding a card.

        Returns:
            Connected PCSCTransport.

        Raises:
            ReaderNotFoundError: If pyscard or the reader is missing.
            CardNotFoundError: If the reader holds no card.
            TransportError: If the connection fails.
        """
        try:
            from smartcard.System import readers as get_readers
            from smartcard.Exceptions import (
                CardConnectionException,
                NoCardException,
                NoReadersException,
            )
        except ImportError as e:
            raise ReaderNotFoundError() from e

        try:
            reader_list = get_readers()
        except NoReadersException:
            reader_list = []
        except Exception as e:
            raise TransportError(f"failed to list readers: {e}") from e

        if not reader_list:
            raise ReaderNotFoundError()

        if isinstance(reader, int):
            if not 0 <= reader < len(reader_list):
                raise ReaderNotFoundError(f"index {reader}")
            candidates = [reader_list[reader]]
        elif reader is not None:
            name_lower = reader.lower()
            candidates = [r for r in reader_list if name_lower in str(r).lower()]
            if not candidates:
                raise ReaderNotFoundError(reader)
        else:
            candidates = list(reader_list)

        last_name = ""
        for candidate in candidates:
            last_name = str(candidate)
            connection = candidate.createConnection()
            try:
                connection.connect()
            except NoCardException:
                logger.debug(f"No card in {last_name}")
                continue
            except CardConnectionException as e:
                if reader is not None:
                    raise TransportError(f"card connection failed: {e}") from e
                logger.debug(f"Cannot connect to {last_name}: {e}")
                continue

            transport = cls(connection, last_name)
            logger.info(f"Connected to card in {last_name} (ATR: {transport.atr.hex().upper()})")
            return transport

        raise CardNotFoundError(last_name)

    @staticmethod
    def list_readers() -> List[str]:
        """List the names of available PC/SC readers.

        Raises:
            ReaderNotFoundError: If pyscard is not installed.
            TransportError: If PC/SC is not available.
        """
        try:
            from smartcard.System import readers as get_readers
            from smartcard.Exceptions import NoReadersException
        except ImportError as e:
            raise ReaderNotFoundError() from e

        try:
            return [str(r) for r in get_readers()]
        except NoReadersException:
            return []
        except Exception as e:
            raise TransportError(f"failed to list readers: {e}") from e

    @property
    def atr(self) -> bytes:
        """Answer-To-Reset of the connected card."""
        return bytes(self._connection.getATR())

    def transmit(self, request: bytes) -> bytes:
        """Transmit a command APDU.

        Args:
            request: Command APDU.

        Returns:
            Response APDU including the status word.

        Raises:
            TransportError: If pyscard reports a failure.
        """
        try:
            data, sw1, sw2 = self._connection.transmit(list(request))
        except Exception as e:
            raise TransportError(str(e), request) from e

        response = bytes(data) + bytes([sw1, sw2])
        logger.debug(f"APDU: {request.hex().upper()} -> {response.hex().upper()}")
        return response

    def disconnect(self) -> None:
        """Disconnect from the card.

        Safe to call even if already disconnected.
        """
        if self._connection is None:
            return

        try:
            self._connection.disconnect()
        except Exception as e:
            logger.debug(f"Error during disconnect: {e}")

        self._connection = None
        logger.debug("Disconnected from card")

    def __enter__(self) -> "PCSCTransport":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - release the card."""
        self.disconnect()


# =============================================================================
# Tracing Transport
# =============================================================================


class TracingTransport:
    """Transport decorator that traces every exchange.

    Each outgoing frame is written to the sink as ``c-apdu: <hex>`` before
    it is sent, each incoming frame as ``r-apdu: <hex>``. Errors from the
    wrapped transport propagate unchanged; no response line is written
    for them.

    Attributes:
        entries: The most recent exchanges as APDULogEntry items, oldest
            first. At most ``max_entries`` are kept.
    """

    def __init__(
        self,
        transport: CardTransport,
        sink: Optional[TextIO] = None,
        max_entries: int = MAX_TRACE_ENTRIES,
    ):
        """Initialize tracing transport.

        Args:
            transport: Transport to wrap.
            sink: Writable text stream (default: sys.stdout).
            max_entries: Number of log entries kept; older ones are dropped.
        """
        self._transport = transport
        self._sink = sink if sink is not None else sys.stdout
        self.entries: Deque[APDULogEntry] = deque(maxlen=max_entries)

    def transmit(self, request: bytes) -> bytes:
        """Transmit through the wrapped transport, tracing both frames."""
        self._sink.write(f"c-apdu: {request.hex()}\n")
        self.entries.append(
            APDULogEntry(timestamp=datetime.now(), direction="command", data=bytes(request))
        )

        start = time.perf_counter()
        response = self._transport.transmit(request)
        duration_ms = (time.perf_counter() - start) * 1000

        self._sink.write(f"r-apdu: {response.hex()}\n")
        self.entries.append(
            APDULogEntry(
                timestamp=datetime.now(),
                direction="response",
                data=bytes(response),
                decoded=self._describe(response),
                duration_ms=duration_ms,
            )
        )
        return response

    @staticmethod
    def _describe(response: bytes) -> str:
        if len(response) < 2:
            return "Malformed response"
        return SWDecoder.decode(response[-2], response[-1])

    def clear(self) -> None:
        """Drop all recorded entries."""
        self.entries.clear()
