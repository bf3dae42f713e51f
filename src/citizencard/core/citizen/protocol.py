"""Citizen card protocol operations.

Translates card operations into APDUs. Each method that maps to a single
command uses the ``send_`` prefix; multi-command sequences (chunked photo
transfer) are plain methods.

The protocol class is standalone: it receives the terminal's ``exchange``
callable and has no other dependencies on the framework.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from citizencard.core.base.errors import MalformedResponse, ProtocolFailure
from citizencard.core.citizen import codec
from citizencard.core.citizen.constants import INS, PHOTO_CHUNK_SIZE, PHOTO_MORE_CHUNKS
from citizencard.core.smartcard.logging import PROTOCOL, RESET, color_sw
from citizencard.core.smartcard.types import Response

lg = logging.getLogger(__name__)

_CHUNK_HEADER = 4
_MAX_PHOTO_LENGTH = 0xFFFF


class CitizenProtocol:
    """Protocol operations for the citizen card applet."""

    def __init__(self, exchange: Callable[[bytes], bytes]) -> None:
        self._exchange = exchange

    def _send(self, label: str, raw: bytes) -> Response:
        resp = codec.decode(self._exchange(raw))
        lg.log(PROTOCOL, "%s %s%04X%s", label, color_sw(resp.sw), resp.sw, RESET)
        return resp

    # -- commands --

    def send_select(self, aid: bytes) -> Response:
        """SELECT (00 A4 04 00)."""
        return self._send(f"SELECT {aid.hex().upper()}", codec.encode_select(aid))

    def send_initialize(self, pin: str) -> Response:
        """INITIALIZE (00 10), data = PIN digits."""
        return self._send("INITIALIZE", codec.encode(INS.INITIALIZE, codec.encode_pin(pin)))

    def send_verify_pin(self, pin: str) -> Response:
        """VERIFY PIN (00 20), data = PIN digits."""
        return self._send("VERIFY PIN", codec.encode(INS.VERIFY_PIN, codec.encode_pin(pin)))

    def send_change_pin(self, old_pin: str, new_pin: str) -> Response:
        """CHANGE PIN (00 21), data = old || new."""
        data = codec.encode_pin(old_pin) + codec.encode_pin(new_pin)
        return self._send("CHANGE PIN", codec.encode(INS.CHANGE_PIN, data))

    def send_get_card_id(self) -> Response:
        """GET CARD ID (00 30)."""
        return self._send("GET CARD ID", codec.encode(INS.GET_CARD_ID))

    def send_get_public_key(self) -> Response:
        """GET PUBLIC KEY (00 31)."""
        return self._send("GET PUBLIC KEY", codec.encode(INS.GET_PUBLIC_KEY))

    def send_sign_challenge(self, challenge: bytes) -> Response:
        """SIGN CHALLENGE (00 32), card returns SHA1withRSA signature."""
        return self._send("SIGN CHALLENGE", codec.encode(INS.SIGN_CHALLENGE, challenge))

    def send_get_balance(self) -> Response:
        """GET BALANCE (00 40)."""
        return self._send("GET BALANCE", codec.encode(INS.GET_BALANCE))

    def send_top_up(self, amount: int) -> Response:
        """TOP UP (00 41), data = amount (int32 BE)."""
        return self._send(
            f"TOP UP {amount}", codec.encode(INS.TOP_UP, codec.encode_amount(amount))
        )

    def send_payment(self, amount: int) -> Response:
        """PAYMENT (00 42), data = amount (int32 BE)."""
        return self._send(
            f"PAYMENT {amount}", codec.encode(INS.PAYMENT, codec.encode_amount(amount))
        )

    def send_upload_chunk(self, total: int, offset: int, chunk: bytes, more: bool) -> Response:
        """UPLOAD PHOTO (00 50), data = totalLen(2) || offset(2) || chunk."""
        data = total.to_bytes(2, "big") + offset.to_bytes(2, "big") + chunk
        p2 = PHOTO_MORE_CHUNKS if more else 0x00
        return self._send(
            f"UPLOAD PHOTO offset={offset:04X} len={len(chunk):02X}",
            codec.encode(INS.UPLOAD_PHOTO, data, p2=p2),
        )

    def send_download_chunk(self, offset: int) -> Response:
        """DOWNLOAD PHOTO (00 51), P1|P2 = offset."""
        return self._send(
            f"DOWNLOAD PHOTO offset={offset:04X}",
            codec.encode(INS.DOWNLOAD_PHOTO, p1=(offset >> 8) & 0xFF, p2=offset & 0xFF),
        )

    # -- operations --

    def upload_photo(
        self,
        photo: bytes,
        between: Callable[[], None] = lambda: None,
        chunk_size: int = PHOTO_CHUNK_SIZE,
    ) -> int:
        """Send photo in chunks. Returns the number of chunks sent.

        ``between`` runs before every chunk (cancellation checkpoint).
        """
        if not photo:
            raise ValueError("photo is empty")
        if len(photo) > _MAX_PHOTO_LENGTH:
            raise ValueError(f"photo too large for transfer: {len(photo)} bytes")
        total = len(photo)
        sent = 0
        for offset in range(0, total, chunk_size):
            between()
            chunk = photo[offset : offset + chunk_size]
            more = offset + len(chunk) < total
            resp = self.send_upload_chunk(total, offset, chunk, more)
            if not resp.success:
                raise ProtocolFailure("UPLOAD PHOTO", resp.sw, f"chunk {sent + 1} at offset {offset}")
            sent += 1
        return sent

    def download_photo(self, between: Callable[[], None] = lambda: None) -> bytes | None:
        """Fetch the stored photo chunk by chunk. None if the card holds none."""
        buf = bytearray()
        total = None
        while total is None or len(buf) < total:
            between()
            offset = len(buf)
            resp = self.send_download_chunk(offset)
            if not resp.success:
                if offset == 0:
                    lg.info("no photo stored on card")
                    return None
                raise ProtocolFailure("DOWNLOAD PHOTO", resp.sw, f"at offset {offset}")

            data = resp.data
            if len(data) < _CHUNK_HEADER:
                raise MalformedResponse(f"photo chunk too short: {len(data)} bytes")
            chunk_total = int.from_bytes(data[0:2], "big")
            chunk_len = int.from_bytes(data[2:4], "big")
            if total is None:
                if chunk_total == 0:
                    lg.info("no photo stored on card")
                    return None
                total = chunk_total
            elif chunk_total != total:
                raise MalformedResponse(
                    f"photo length changed mid-transfer: {total} -> {chunk_total}"
                )
            if chunk_len == 0:
                raise MalformedResponse(f"empty photo chunk at offset {offset} of {total}")
            if len(data) < _CHUNK_HEADER + chunk_len:
                raise MalformedResponse(
                    f"photo chunk truncated: expected {chunk_len}, got {len(data) - _CHUNK_HEADER}"
                )
            if offset + chunk_len > total:
                raise MalformedResponse(
                    f"photo chunk overruns length: {offset} + {chunk_len} > {total}"
                )
            buf.extend(data[_CHUNK_HEADER : _CHUNK_HEADER + chunk_len])
        return bytes(buf)
