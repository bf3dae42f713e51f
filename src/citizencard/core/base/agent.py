from __future__ import annotations

import logging
from typing import Protocol

from smartcard.Exceptions import CardConnectionException, NoCardException, SmartcardException

from citizencard.core.base.errors import TransportUnavailable
from citizencard.core.smartcard import Card

lg = logging.getLogger(__name__)


class Transport(Protocol):
    """Half-duplex byte channel to a card: one command outstanding at a time."""

    def connect(self) -> None: ...
    def transmit(self, raw: bytes) -> bytes: ...
    def disconnect(self) -> None: ...


class Agent:
    """PC/SC transport: discovers a reader with a card and moves raw APDUs.

    pyscard exceptions are translated to TransportUnavailable; nothing is
    retried here.
    """

    def __init__(self, card: Card, reader: str | None = None) -> None:
        self._card = card
        self._reader = reader

    def connect(self) -> None:
        """Discover a reader with a card present and connect."""
        try:
            available = Card.list_readers()
        except SmartcardException as exc:
            raise TransportUnavailable(f"PC/SC unavailable: {exc}") from exc
        if self._reader is not None:
            available = [r for r in available if self._reader in str(r)]
        if not available:
            raise TransportUnavailable("no card terminal found")
        for reader in available:
            try:
                self._card.connect(reader)
                lg.info("connected to %s (ATR %s)", self._card.reader_name, self.get_atr().hex(" ").upper())
                return
            except (NoCardException, CardConnectionException):
                lg.debug("no card on %s", reader)
        raise TransportUnavailable("no card present in any terminal")

    def disconnect(self) -> None:
        """Disconnect from the card."""
        try:
            self._card.disconnect()
        except SmartcardException as exc:
            lg.warning("error while disconnecting: %s", exc)

    def get_atr(self) -> bytes:
        """Return the ATR of the connected card."""
        return self._card.get_atr()

    def transmit(self, raw: bytes) -> bytes:
        """Send raw command bytes, return raw response bytes."""
        try:
            return self._card.transmit(raw)
        except SmartcardException as exc:
            raise TransportUnavailable(f"transmit failed: {exc}") from exc
        except RuntimeError as exc:
            raise TransportUnavailable(str(exc)) from exc
