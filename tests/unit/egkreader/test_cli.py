"""
Unit tests for the egk-dump command line.

The reader is replaced by a PCSCTransport over a mocked pyscard
connection that forwards to a scripted card.
"""

import json

import pytest
from click.testing import CliRunner
from unittest.mock import Mock, patch

from egkreader.cli import cli
from egkreader.exceptions import CardNotFoundError, ReaderNotFoundError
from egkreader.transport import PCSCTransport


@pytest.fixture
def card_transport(scripted_card, mock_smartcard_connection):
    """PCSCTransport whose connection answers from the scripted card."""
    scripted_card.add("00A4040C07D2760001448000", "9000")
    scripted_card.add("00B0820000", "5A0A80276001234512345678 9000")

    def transmit(apdu):
        response = scripted_card.transmit(bytes(apdu))
        return list(response[:-2]), response[-2], response[-1]

    mock_smartcard_connection.transmit = Mock(side_effect=transmit)
    return PCSCTransport(mock_smartcard_connection, "Mock PC/SC Reader 00 00")


@pytest.fixture
def runner():
    return CliRunner()


class TestReadersCommand:
    """Test the readers command."""

    def test_lists_readers(self, runner):
        """Test readers are printed with their index."""
        with patch.object(PCSCTransport, "list_readers", return_value=["Reader A", "Reader B"]):
            result = runner.invoke(cli, ["readers"])

        assert result.exit_code == 0
        assert "0  Reader A" in result.output
        assert "1  Reader B" in result.output

    def test_no_readers(self, runner):
        """Test message when no reader is attached."""
        with patch.object(PCSCTransport, "list_readers", return_value=[]):
            result = runner.invoke(cli, ["readers"])

        assert result.exit_code == 0
        assert "No readers found" in result.output

    def test_pcsc_unavailable(self, runner):
        """Test error exit when pyscard is missing."""
        with patch.object(PCSCTransport, "list_readers", side_effect=ReaderNotFoundError()):
            result = runner.invoke(cli, ["readers"])

        assert result.exit_code == 1
        assert "Error:" in result.output


class TestDumpCommand:
    """Test the dump command."""

    def test_dump_tables(self, runner, card_transport):
        """Test table output."""
        with patch.object(PCSCTransport, "connect", return_value=card_transport):
            result = runner.invoke(cli, ["dump"])

        assert result.exit_code == 0, result.output
        assert "reader: Mock PC/SC Reader 00 00" in result.output
        assert "country_code: 276" in result.output
        assert "hca" in result.output

    def test_dump_json(self, runner, card_transport):
        """Test JSON output."""
        with patch.object(PCSCTransport, "connect", return_value=card_transport):
            result = runner.invoke(cli, ["dump", "--json"])

        assert result.exit_code == 0, result.output
        output = result.output
        data = json.loads(output[output.index('{\n  "applications"'):])

        mf = data["applications"][0]
        gdo = next(f for f in mf["files"] if f["name"] == "mf/ef.gdo")
        assert gdo["value"]["country_code"] == 276
        assert data["applications"][1]["error"] is not None

    def test_trace(self, runner, card_transport):
        """Test APDU trace lines."""
        with patch.object(PCSCTransport, "connect", return_value=card_transport):
            result = runner.invoke(cli, ["dump", "--trace"])

        assert result.exit_code == 0, result.output
        assert "c-apdu: 00a4040c07d2760001448000" in result.output
        assert "r-apdu: 9000" in result.output

    def test_reader_index(self, runner, card_transport):
        """Test numeric reader argument is passed as index."""
        with patch.object(PCSCTransport, "connect", return_value=card_transport) as connect:
            runner.invoke(cli, ["dump", "--reader", "1"])

        connect.assert_called_once_with(1)

    def test_reader_name(self, runner, card_transport):
        """Test reader name is passed through."""
        with patch.object(PCSCTransport, "connect", return_value=card_transport) as connect:
            runner.invoke(cli, ["dump", "-r", "SCM"])

        connect.assert_called_once_with("SCM")

    def test_disconnects(self, runner, card_transport, mock_smartcard_connection):
        """Test the card is released after the dump."""
        with patch.object(PCSCTransport, "connect", return_value=card_transport):
            runner.invoke(cli, ["dump", "--json"])

        mock_smartcard_connection.disconnect.assert_called_once()

    def test_no_card(self, runner):
        """Test error exit without a card."""
        error = CardNotFoundError("Mock PC/SC Reader 00 00")
        with patch.object(PCSCTransport, "connect", side_effect=error):
            result = runner.invoke(cli, ["dump"])

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "no card present" in result.output

    def test_layout(self, runner, card_transport, tmp_path):
        """Test a layout file is applied."""
        path = tmp_path / "layout.yaml"
        path.write_text("dir_records: 0\nversion_records: 0\n")

        with patch.object(PCSCTransport, "connect", return_value=card_transport):
            result = runner.invoke(cli, ["dump", "--json", "--layout", str(path)])

        assert result.exit_code == 0, result.output
        output = result.output
        data = json.loads(output[output.index('{\n  "applications"'):])
        names = [f["name"] for f in data["applications"][0]["files"]]
        assert not any(n.startswith("mf/ef.dir[") for n in names)

    def test_invalid_layout(self, runner, tmp_path):
        """Test invalid layout file exits with an error."""
        path = tmp_path / "layout.yaml"
        path.write_text("sfids:\n  pd: 99\n")

        with patch.object(PCSCTransport, "connect") as connect:
            result = runner.invoke(cli, ["dump", "--layout", str(path)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output
        connect.assert_not_called()
