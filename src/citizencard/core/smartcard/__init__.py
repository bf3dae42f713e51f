from citizencard.core.smartcard.card import Card
from citizencard.core.smartcard.logging import PROTOCOL, TRACE
from citizencard.core.smartcard.types import APDU, Response

__all__ = ["APDU", "Card", "PROTOCOL", "Response", "TRACE"]
