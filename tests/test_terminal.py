"""
Tests for CitizenTerminal against the simulated card.

Tests cover:
- Connection lifecycle and applet selection
- PIN verification, lockout and change
- Balance, top-up and payment results
- Chunked photo transfer
- Challenge-response card authentication
"""

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from citizencard.core.base import (
    ConnectionState,
    MalformedResponse,
    NotConnected,
    PaymentDeclined,
    ProtocolFailure,
    TransportUnavailable,
)
from citizencard.core.citizen import (
    Blocked,
    CitizenTerminal,
    GetBalanceMessage,
    PaymentError,
    Rejected,
    Verified,
)
from citizencard.core.citizen.constants import INS, PHOTO_CHUNK_SIZE, SW

from conftest import CARD_ID


class TestConnection:
    """Tests for connect/disconnect."""

    def test_connect_selects_applet(self, card):
        term = CitizenTerminal(card)
        term.connect()
        assert term.connected
        assert term.state is ConnectionState.CONNECTED
        assert card.commands[0][1] == INS.SELECT

    def test_wrong_aid(self, card):
        term = CitizenTerminal(card, aid=bytes.fromhex("A000000000"))
        with pytest.raises(ProtocolFailure) as exc_info:
            term.connect()
        assert exc_info.value.sw == SW.FILE_NOT_FOUND
        assert not term.connected
        assert not card.connected

    def test_no_card(self, card):
        card.present = False
        term = CitizenTerminal(card)
        with pytest.raises(TransportUnavailable):
            term.connect()
        assert term.state is ConnectionState.DISCONNECTED

    def test_operation_before_connect(self, card):
        term = CitizenTerminal(card)
        with pytest.raises(NotConnected):
            term.get_balance()
        assert card.commands == []

    def test_operation_after_disconnect(self, terminal):
        terminal.disconnect()
        with pytest.raises(NotConnected):
            terminal.verify_pin("1234")

    def test_disconnect_idempotent(self, terminal):
        terminal.disconnect()
        terminal.disconnect()
        assert terminal.state is ConnectionState.DISCONNECTED

    def test_card_removed_marks_suspect(self, terminal, card):
        card.connected = False
        with pytest.raises(TransportUnavailable):
            terminal.get_balance()
        assert terminal.suspect
        with pytest.raises(NotConnected):
            terminal.get_balance()

    def test_reconnect_clears_suspect(self, terminal):
        terminal.mark_suspect()
        assert not terminal.connected
        terminal.connect()
        assert terminal.connected
        assert terminal.get_balance() == 100

    def test_message_dispatch(self, terminal):
        assert GetBalanceMessage in terminal.supported_messages
        assert terminal.send(GetBalanceMessage()).balance == 100
        assert GetBalanceMessage().operation == "GetBalance"

    def test_unsupported_message(self, terminal):
        with pytest.raises(ValueError):
            terminal.send(object())


class TestPin:
    """Tests for PIN operations."""

    def test_verify(self, terminal):
        assert terminal.verify_pin("1234") == Verified()

    def test_lockout(self, terminal, card):
        """Three wrong PINs block the card; the right PIN stays blocked."""
        assert terminal.verify_pin("0000") == Rejected(remaining_tries=2)
        assert terminal.verify_pin("0000") == Rejected(remaining_tries=1)
        assert terminal.verify_pin("0000") == Blocked()
        assert terminal.verify_pin("1234") == Blocked()
        assert card.tries == 0

    def test_success_resets_counter(self, terminal, card):
        terminal.verify_pin("9999")
        assert terminal.verify_pin("1234") == Verified()
        assert terminal.verify_pin("9999") == Rejected(remaining_tries=2)

    def test_bad_pin_format(self, terminal, card):
        with pytest.raises(ValueError):
            terminal.verify_pin("12")
        assert len(card.commands) == 1

    def test_change_pin(self, terminal, card):
        assert terminal.change_pin("1234", "4321")
        assert card.pin == "4321"
        assert terminal.verify_pin("4321") == Verified()

    def test_change_pin_wrong_old(self, terminal, card):
        assert not terminal.change_pin("0000", "4321")
        assert card.pin == "1234"

    def test_pin_sent_as_ascii(self, terminal, card):
        terminal.verify_pin("0042")
        assert card.commands[-1] == bytes([0x00, 0x20, 0x00, 0x00, 0x04]) + b"0042"


class TestInitialize:
    """Tests for card personalization."""

    def test_initialize(self, blank_card):
        term = CitizenTerminal(blank_card)
        term.connect()
        assert term.initialize("2468") == CARD_ID
        assert term.verify_pin("2468") == Verified()

    def test_already_initialized(self, terminal):
        with pytest.raises(ProtocolFailure) as exc_info:
            terminal.initialize("2468")
        assert exc_info.value.sw == SW.CONDITIONS_NOT_SATISFIED

    def test_card_id(self, terminal):
        assert terminal.get_card_id() == CARD_ID


class TestPayments:
    """Tests for balance, top-up and payment."""

    def test_balance(self, terminal):
        assert terminal.get_balance() == 100

    def test_top_up(self, terminal, card):
        result = terminal.top_up(50)
        assert result.ok
        assert result.balance == 150
        assert card.balance == 150

    def test_payment(self, terminal):
        terminal.verify_pin("1234")
        result = terminal.make_payment(30)
        assert result.ok
        assert result.unwrap() == 70

    def test_insufficient_funds(self, terminal, card):
        """An overdraft is a result value and leaves the balance alone."""
        terminal.verify_pin("1234")
        result = terminal.make_payment(101)
        assert not result.ok
        assert result.error is PaymentError.INSUFFICIENT_FUNDS
        assert result.balance is None
        assert result.sw == SW.CONDITIONS_NOT_SATISFIED
        assert card.balance == 100
        assert terminal.get_balance() == 100

    def test_payment_without_pin(self, terminal):
        result = terminal.make_payment(10)
        assert result.error is PaymentError.DECLINED
        assert result.sw == SW.SECURITY_STATUS_NOT_SATISFIED

    def test_unwrap_declined(self, terminal):
        result = terminal.make_payment(10)
        with pytest.raises(PaymentDeclined) as exc_info:
            result.unwrap()
        assert exc_info.value.sw == SW.SECURITY_STATUS_NOT_SATISFIED

    def test_amount_out_of_range(self, terminal):
        with pytest.raises(ValueError):
            terminal.top_up(1 << 32)


class TestPhoto:
    """Tests for chunked photo transfer."""

    def test_round_trip(self, terminal, card, jpeg_photo):
        chunks = terminal.upload_photo(jpeg_photo)
        assert chunks == -(-len(jpeg_photo) // PHOTO_CHUNK_SIZE)
        assert card.photo == jpeg_photo
        assert terminal.download_photo() == jpeg_photo

    def test_upload_chunk_layout(self, terminal, card):
        photo = bytes(range(250))
        terminal.upload_photo(photo)
        first, last = card.commands[-2], card.commands[-1]
        assert first[1] == INS.UPLOAD_PHOTO
        assert first[3] == 0x80
        assert first[5:9] == bytes([0x00, 0xFA, 0x00, 0x00])
        assert last[3] == 0x00
        assert last[5:9] == bytes([0x00, 0xFA, 0x00, 0xC8])

    def test_no_photo(self, terminal):
        assert terminal.download_photo() is None

    def test_over_budget(self, card):
        term = CitizenTerminal(card, photo_budget=100)
        term.connect()
        with pytest.raises(ValueError):
            term.upload_photo(bytes(101))
        assert card.photo is None

    def test_empty_photo(self, terminal):
        with pytest.raises(ValueError):
            terminal.upload_photo(b"")

    def test_card_refuses_chunk(self, card):
        term = CitizenTerminal(card, photo_budget=20000)
        term.connect()
        with pytest.raises(ProtocolFailure) as exc_info:
            term.upload_photo(bytes(16000))
        assert exc_info.value.sw == SW.FILE_FULL

    def test_short_download_chunk(self, terminal, card, monkeypatch):
        card.photo = b"x" * 300
        monkeypatch.setattr(card, "_download_photo", lambda p1, p2, data: b"\x01\x90\x00")
        with pytest.raises(MalformedResponse):
            terminal.download_photo()

    def test_truncated_download_chunk(self, terminal, card, monkeypatch):
        card.photo = b"x" * 300
        monkeypatch.setattr(
            card,
            "_download_photo",
            lambda p1, p2, data: bytes([0x01, 0x2C, 0x00, 0xC8]) + b"x" * 10 + b"\x90\x00",
        )
        with pytest.raises(MalformedResponse):
            terminal.download_photo()


class TestAuthenticate:
    """Tests for challenge-response card authentication."""

    def test_with_exported_key(self, terminal):
        assert terminal.authenticate_card()

    def test_with_key_on_record(self, terminal, private_key):
        assert terminal.authenticate_card(private_key.public_key())

    def test_wrong_key(self, terminal):
        other = rsa.generate_private_key(public_exponent=65537, key_size=1024)
        assert not terminal.authenticate_card(other.public_key())

    def test_challenge_is_hex_text(self, terminal, card):
        terminal.authenticate_card()
        sign = card.commands[-1]
        assert sign[1] == INS.SIGN_CHALLENGE
        challenge = sign[5 : 5 + sign[4]]
        assert len(challenge) == 32
        assert challenge == challenge.upper()
        bytes.fromhex(challenge.decode("ascii"))

    def test_fresh_challenge(self, terminal, card):
        terminal.authenticate_card()
        first = card.commands[-1]
        terminal.authenticate_card()
        assert card.commands[-1] != first

    def test_empty_signature(self, terminal, card, monkeypatch):
        monkeypatch.setattr(card, "_sign_challenge", lambda p1, p2, data: b"\x90\x00")
        with pytest.raises(MalformedResponse):
            terminal.authenticate_card()
