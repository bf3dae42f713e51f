from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from smartcard.CardConnection import CardConnection
from smartcard.System import readers

if TYPE_CHECKING:
    from smartcard.reader.Reader import Reader

lg = logging.getLogger(__name__)

PROTOCOLS = {
    "T0": CardConnection.T0_protocol,
    "T1": CardConnection.T1_protocol,
}


class Card:
    """Wrapper around pyscard for smartcard communication."""

    def __init__(self, protocol: str | None = None) -> None:
        self._connection: CardConnection | None = None
        self._protocol = PROTOCOLS[protocol] if protocol else None
        self._reader_name: str | None = None

    @property
    def connected(self) -> bool:
        return self._connection is not None

    @property
    def reader_name(self) -> str | None:
        return self._reader_name

    @staticmethod
    def list_readers() -> list[Reader]:
        return readers()

    def connect(self, reader: Reader) -> None:
        connection = reader.createConnection()
        connection.connect(self._protocol)
        self._connection = connection
        self._reader_name = str(reader)

    def disconnect(self) -> None:
        if self._connection is not None:
            try:
                self._connection.disconnect()
            finally:
                self._connection = None
                self._reader_name = None

    def get_atr(self) -> bytes:
        if self._connection is None:
            raise RuntimeError("not connected to a card")
        return bytes(self._connection.getATR())

    def transmit(self, raw: bytes) -> bytes:
        """Send a raw command APDU, return response data followed by SW1 SW2."""
        if self._connection is None:
            raise RuntimeError("not connected to a card")
        data, sw1, sw2 = self._connection.transmit(list(raw))
        return bytes(data) + bytes([sw1, sw2])
