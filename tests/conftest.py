"""
Pytest configuration and fixtures for egkreader tests.

This module provides shared fixtures for testing egkreader components,
including mocks for PC/SC hardware and a scripted card transport.
"""

import datetime
from typing import Dict, List, Optional, Union
from unittest.mock import Mock

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


# ============================================================================
# Scripted Card
# ============================================================================


class ScriptedCard:
    """Card double answering command APDUs from a lookup table.

    Commands are matched by their hex encoding (upper case). Unknown
    commands answer 6A82. Every command sent is recorded in ``sent``.
    """

    def __init__(self, responses: Optional[Dict[str, Union[str, bytes, List]]] = None):
        self.responses: Dict[str, Union[str, bytes, List]] = dict(responses or {})
        self.sent: List[bytes] = []

    def add(self, command: str, response: Union[str, bytes]) -> None:
        """Register the response for a command."""
        self.responses[command.replace(" ", "").upper()] = response

    def transmit(self, request: bytes) -> bytes:
        self.sent.append(bytes(request))
        response = self.responses.get(request.hex().upper(), "6A82")
        if isinstance(response, list):
            response = response.pop(0)
        if isinstance(response, str):
            response = bytes.fromhex(response.replace(" ", ""))
        return response


@pytest.fixture
def scripted_card():
    """
    Empty scripted card; tests register their command/response pairs.

    Returns:
        ScriptedCard: Card double with an empty response table
    """
    return ScriptedCard()


@pytest.fixture
def mock_transport():
    """
    Mock transport whose transmit answers 9000 by default.

    Returns:
        Mock: Transport mock, set ``transmit.side_effect`` for sequences
    """
    transport = Mock()
    transport.transmit = Mock(return_value=bytes.fromhex("9000"))
    return transport


# ============================================================================
# PC/SC Mocking
# ============================================================================


@pytest.fixture
def mock_smartcard_connection():
    """
    Mock smartcard.CardConnection for APDU transmission testing.

    Returns:
        Mock: A configured mock connection with transmit capability
    """
    connection = Mock()

    # ATR of a G2 eGK
    connection.getATR = Mock(return_value=[
        0x3B, 0xD3, 0x96, 0xFF, 0x81, 0xB1, 0xFE, 0x45,
        0x1F, 0x07, 0x80, 0x81, 0x05, 0x2D,
    ])

    connection.transmit = Mock(return_value=([], 0x90, 0x00))
    connection.connect = Mock()
    connection.disconnect = Mock()

    return connection


@pytest.fixture
def mock_smartcard_reader(mock_smartcard_connection):
    """
    Mock smartcard reader that creates the mock connection.

    Args:
        mock_smartcard_connection: Injected mock connection

    Returns:
        Mock: A reader whose str() is its name
    """
    reader = Mock()
    reader.__str__ = Mock(return_value="Mock PC/SC Reader 00 00")
    reader.createConnection = Mock(return_value=mock_smartcard_connection)
    return reader


# ============================================================================
# Certificates
# ============================================================================


@pytest.fixture(scope="session")
def der_certificate() -> bytes:
    """
    Self-signed EC certificate in DER form.

    Returns:
        bytes: DER encoded X.509 certificate
    """
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "DE"),
        x509.NameAttribute(NameOID.COMMON_NAME, "Erika Mustermann"),
    ])
    not_before = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)

    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(0x1234)
        .not_valid_before(not_before)
        .not_valid_after(not_before + datetime.timedelta(days=5 * 365))
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.DER)
