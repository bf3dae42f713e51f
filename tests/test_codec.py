"""
Tests for APDU framing.

Tests cover:
- Command encoding (header, Lc, data limits)
- Response decoding and status words
- Amount, PIN and card id payloads
"""

import pytest

from citizencard.core.base import MalformedResponse
from citizencard.core.citizen import codec
from citizencard.core.citizen.constants import APPLET_AID, INS, SW
from citizencard.core.smartcard import APDU, Response


class TestEncode:
    """Tests for command encoding."""

    def test_header_only(self):
        """A command without data is the bare 4-byte header."""
        assert codec.encode(INS.GET_BALANCE) == bytes([0x00, 0x40, 0x00, 0x00])

    def test_with_data(self):
        """Data is preceded by its length."""
        raw = codec.encode(INS.VERIFY_PIN, b"1234")
        assert raw == bytes([0x00, 0x20, 0x00, 0x00, 0x04]) + b"1234"

    def test_parameters(self):
        """P1 and P2 are placed after INS."""
        raw = codec.encode(INS.DOWNLOAD_PHOTO, p1=0x01, p2=0x90)
        assert raw == bytes([0x00, 0x51, 0x01, 0x90])

    def test_select(self):
        """SELECT by name carries the AID."""
        raw = codec.encode_select(APPLET_AID)
        assert raw[:5] == bytes([0x00, 0xA4, 0x04, 0x00, len(APPLET_AID)])
        assert raw[5:] == APPLET_AID

    def test_max_data(self):
        """255 bytes is the largest payload."""
        raw = codec.encode(INS.UPLOAD_PHOTO, bytes(255))
        assert raw[4] == 255
        assert len(raw) == 5 + 255

    def test_data_too_long(self):
        """256 bytes is rejected before anything is sent."""
        with pytest.raises(ValueError):
            codec.encode(INS.UPLOAD_PHOTO, bytes(256))

    def test_apdu_repr(self):
        """APDU repr is spaced hex."""
        assert repr(APDU(0x00, 0x30, 0x00, 0x00)) == "00 30 00 00"


class TestDecode:
    """Tests for response decoding."""

    @pytest.mark.parametrize("length", [0, 1, 17, 255])
    def test_recovers_payload(self, length):
        """Payload and status word come back exactly."""
        payload = bytes(range(length % 256))[:length]
        resp = codec.decode(payload + bytes([0x63, 0x02]))
        assert resp.data == payload
        assert resp.sw == 0x6302
        assert resp.sw1 == 0x63
        assert resp.sw2 == 0x02

    @pytest.mark.parametrize("raw", [b"", b"\x90"])
    def test_too_short(self, raw):
        """Fewer than 2 bytes is malformed."""
        with pytest.raises(MalformedResponse):
            codec.decode(raw)

    def test_malformed_is_value_error(self):
        """MalformedResponse can be caught as ValueError."""
        with pytest.raises(ValueError):
            codec.decode(b"\x90")

    def test_success(self):
        """9000 is success, anything else is not."""
        assert codec.is_success(codec.decode(b"\x90\x00"))
        assert not codec.is_success(codec.decode(b"\x69\x85"))
        assert Response(b"", 0x90, 0x00).success

    def test_response_round_trip(self):
        """Response.to_bytes is the raw form."""
        resp = Response(b"\x01\x02", 0x90, 0x00)
        assert codec.decode(resp.to_bytes()) == resp


class TestAmount:
    """Tests for 32-bit amount encoding."""

    def test_encode(self):
        assert codec.encode_amount(500) == bytes([0x00, 0x00, 0x01, 0xF4])

    def test_negative(self):
        """Amounts are signed."""
        assert codec.decode_amount(codec.encode_amount(-1)) == -1

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            codec.encode_amount(1 << 31)

    def test_decode_uses_first_four_bytes(self):
        assert codec.decode_amount(bytes([0, 0, 0, 100, 0xFF])) == 100

    def test_decode_short(self):
        with pytest.raises(MalformedResponse):
            codec.decode_amount(b"\x00\x01")


class TestPinAndCardId:
    """Tests for PIN and card id payloads."""

    def test_pin_ascii_digits(self):
        """The PIN travels as its ASCII digits."""
        assert codec.encode_pin("0000") == b"0000"

    @pytest.mark.parametrize("pin", ["123", "12345", "12a4", "", "١٢٣٤"])
    def test_bad_pin(self, pin):
        with pytest.raises(ValueError):
            codec.encode_pin(pin)

    def test_card_id_strips_padding(self):
        assert codec.decode_card_id(b"CC-42\x00\x00\x00") == "CC-42"
        assert codec.decode_card_id(b"  CC-42  ") == "CC-42"

    def test_status_words(self):
        """Status word constants match the card program."""
        assert SW.CONDITIONS_NOT_SATISFIED == 0x6985
        assert SW.AUTH_BLOCKED == 0x6983
