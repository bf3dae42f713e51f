"""Citizen card messages and results.

Each operation has a Message/Result pair. Messages carry the inputs,
results the typed output. Expected refusals (wrong PIN, payment declined)
are carried in the result, not raised.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from cryptography.hazmat.primitives.asymmetric import rsa

from citizencard.core.base import Message, PaymentDeclined, Result
from citizencard.core.citizen.pin import PinOutcome


class PaymentError(enum.Enum):
    INSUFFICIENT_FUNDS = "insufficient funds"
    DECLINED = "declined"


@dataclass
class InitializeMessage(Message):
    """Personalize a blank card with its first PIN."""

    pin: str


@dataclass
class InitializeResult(Result):
    card_id: str


@dataclass
class VerifyPinMessage(Message):
    pin: str


@dataclass
class VerifyPinResult(Result):
    outcome: PinOutcome
    sw: int


@dataclass
class ChangePinMessage(Message):
    old_pin: str
    new_pin: str


@dataclass
class ChangePinResult(Result):
    success: bool
    sw: int


@dataclass
class GetCardIdMessage(Message):
    pass


@dataclass
class GetCardIdResult(Result):
    card_id: str


@dataclass
class GetPublicKeyMessage(Message):
    """Fetch the raw public key export."""


@dataclass
class GetPublicKeyResult(Result):
    data: bytes


@dataclass
class SignChallengeMessage(Message):
    challenge: bytes


@dataclass
class SignChallengeResult(Result):
    signature: bytes


@dataclass
class AuthenticateCardMessage(Message):
    """Challenge-response check of the card's private key.

    ``public_key`` is the key on record for this card; when omitted the
    key exported by the card itself is used.
    """

    public_key: rsa.RSAPublicKey | None = None


@dataclass
class AuthenticateCardResult(Result):
    authenticated: bool
    challenge: bytes


@dataclass
class GetBalanceMessage(Message):
    pass


@dataclass
class GetBalanceResult(Result):
    balance: int


@dataclass
class TopUpMessage(Message):
    amount: int


@dataclass
class PaymentMessage(Message):
    amount: int


@dataclass
class PaymentResult(Result):
    """New balance on success, otherwise the reason it was refused."""

    balance: int | None
    error: PaymentError | None
    sw: int
    operation: str = "PAYMENT"

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> int:
        if self.error is not None:
            raise PaymentDeclined(self.operation, self.sw, self.error.value)
        return self.balance


@dataclass
class UploadPhotoMessage(Message):
    """Store an already-compressed photo on the card."""

    photo: bytes


@dataclass
class UploadPhotoResult(Result):
    chunks_sent: int
    length: int


@dataclass
class DownloadPhotoMessage(Message):
    pass


@dataclass
class DownloadPhotoResult(Result):
    photo: bytes | None
