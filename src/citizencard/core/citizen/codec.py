"""APDU framing for the citizen card protocol.

Pure functions: no I/O, no state. Commands always use CLA 00 and short
encoding; responses are ``payload || SW1 SW2``.
"""

from __future__ import annotations

from citizencard.core.base.errors import MalformedResponse
from citizencard.core.citizen.constants import CLA, INS, PIN_LENGTH, SELECT_BY_NAME, SW
from citizencard.core.smartcard.types import APDU, Response

AMOUNT_LENGTH = 4
_INT32_MIN = -(1 << 31)
_INT32_MAX = (1 << 31) - 1


def encode(ins: int, data: bytes | None = None, *, p1: int = 0x00, p2: int = 0x00) -> bytes:
    """Build a command: 4-byte header, plus Lc and data when data is non-empty.

    Raises ValueError if data exceeds 255 bytes.
    """
    return APDU(cla=CLA, ins=ins, p1=p1, p2=p2, data=bytes(data or b"")).to_bytes()


def encode_select(aid: bytes) -> bytes:
    """SELECT by name (00 A4 04 00)."""
    return encode(INS.SELECT, aid, p1=SELECT_BY_NAME)


def decode(raw: bytes) -> Response:
    """Split a raw response into payload and status word."""
    if len(raw) < 2:
        raise MalformedResponse(f"response too short: {len(raw)} bytes")
    return Response(data=bytes(raw[:-2]), sw1=raw[-2], sw2=raw[-1])


def is_success(response: Response) -> bool:
    return response.sw == SW.SUCCESS


def encode_amount(amount: int) -> bytes:
    """Encode a signed 32-bit amount as 4 big-endian bytes."""
    if not _INT32_MIN <= amount <= _INT32_MAX:
        raise ValueError(f"amount out of 32-bit range: {amount}")
    return amount.to_bytes(AMOUNT_LENGTH, "big", signed=True)


def decode_amount(data: bytes) -> int:
    """Decode a signed 32-bit big-endian amount from the start of data."""
    if len(data) < AMOUNT_LENGTH:
        raise MalformedResponse(
            f"amount payload too short: {len(data)} bytes (need {AMOUNT_LENGTH})"
        )
    return int.from_bytes(data[:AMOUNT_LENGTH], "big", signed=True)


def encode_pin(pin: str) -> bytes:
    """The PIN's ASCII digit characters, sent as-is."""
    if len(pin) != PIN_LENGTH or not pin.isascii() or not pin.isdigit():
        raise ValueError(f"PIN must be {PIN_LENGTH} digits")
    return pin.encode("ascii")


def decode_card_id(data: bytes) -> str:
    """Card identifier text without trailing/leading space or NUL padding."""
    return data.decode("ascii", errors="replace").strip(" \x00")
