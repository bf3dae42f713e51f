"""Citizen card terminal: the protocol client for the citizen applet.

connect() selects the applet; every other operation is a Message/Result
pair dispatched through Terminal.send(), which rejects it unless the
terminal is connected and holds the lock while the commands run. The
convenience methods (verify_pin(), top_up(), ...) wrap send() for callers
that just want the value.
"""

from __future__ import annotations

import logging
import os

from cryptography.hazmat.primitives.asymmetric import rsa

from citizencard.core.base import MalformedResponse, ProtocolFailure, Terminal, Transport
from citizencard.core.base.terminal import handles
from citizencard.core.citizen import codec, keys
from citizencard.core.citizen.constants import APPLET_AID, CHALLENGE_LENGTH, PHOTO_BUDGET, SW
from citizencard.core.citizen.messages import (
    AuthenticateCardMessage,
    AuthenticateCardResult,
    ChangePinMessage,
    ChangePinResult,
    DownloadPhotoMessage,
    DownloadPhotoResult,
    GetBalanceMessage,
    GetBalanceResult,
    GetCardIdMessage,
    GetCardIdResult,
    GetPublicKeyMessage,
    GetPublicKeyResult,
    InitializeMessage,
    InitializeResult,
    PaymentError,
    PaymentMessage,
    PaymentResult,
    SignChallengeMessage,
    SignChallengeResult,
    TopUpMessage,
    UploadPhotoMessage,
    UploadPhotoResult,
    VerifyPinMessage,
    VerifyPinResult,
)
from citizencard.core.citizen.pin import PinOutcome, interpret as interpret_pin
from citizencard.core.citizen.protocol import CitizenProtocol
from citizencard.core.smartcard.types import Response

lg = logging.getLogger(__name__)


def _payment_result(resp: Response, operation: str) -> PaymentResult:
    if resp.success:
        return PaymentResult(
            balance=codec.decode_amount(resp.data), error=None, sw=resp.sw, operation=operation
        )
    if resp.sw == SW.CONDITIONS_NOT_SATISFIED:
        error = PaymentError.INSUFFICIENT_FUNDS
    else:
        error = PaymentError.DECLINED
    lg.warning("%s refused: %s (SW=%04X)", operation, error.value, resp.sw)
    return PaymentResult(balance=None, error=error, sw=resp.sw, operation=operation)


class CitizenTerminal(Terminal):
    """Terminal for the citizen card applet."""

    def __init__(
        self,
        transport: Transport,
        aid: bytes = APPLET_AID,
        photo_budget: int = PHOTO_BUDGET,
    ) -> None:
        super().__init__(transport)
        self._aid = aid
        self._photo_budget = photo_budget
        self._proto = CitizenProtocol(self.exchange)

    @property
    def photo_budget(self) -> int:
        return self._photo_budget

    def _on_connect(self) -> None:
        resp = self._proto.send_select(self._aid)
        if not resp.success:
            raise ProtocolFailure("SELECT", resp.sw, "applet not selected")

    # -- handlers --

    @handles(InitializeMessage)
    def _initialize(self, message: InitializeMessage) -> InitializeResult:
        resp = self._proto.send_initialize(message.pin)
        if not resp.success:
            raise ProtocolFailure("INITIALIZE", resp.sw, "card may already be initialized")
        return InitializeResult(card_id=codec.decode_card_id(resp.data))

    @handles(VerifyPinMessage)
    def _verify_pin(self, message: VerifyPinMessage) -> VerifyPinResult:
        resp = self._proto.send_verify_pin(message.pin)
        outcome = interpret_pin(resp)
        lg.info("PIN verification: %s", outcome)
        return VerifyPinResult(outcome=outcome, sw=resp.sw)

    @handles(ChangePinMessage)
    def _change_pin(self, message: ChangePinMessage) -> ChangePinResult:
        resp = self._proto.send_change_pin(message.old_pin, message.new_pin)
        return ChangePinResult(success=resp.success, sw=resp.sw)

    @handles(GetCardIdMessage)
    def _get_card_id(self, message: GetCardIdMessage) -> GetCardIdResult:
        resp = self._proto.send_get_card_id()
        if not resp.success:
            raise ProtocolFailure("GET CARD ID", resp.sw)
        return GetCardIdResult(card_id=codec.decode_card_id(resp.data))

    @handles(GetPublicKeyMessage)
    def _get_public_key(self, message: GetPublicKeyMessage) -> GetPublicKeyResult:
        resp = self._proto.send_get_public_key()
        if not resp.success:
            raise ProtocolFailure("GET PUBLIC KEY", resp.sw)
        return GetPublicKeyResult(data=resp.data)

    @handles(SignChallengeMessage)
    def _sign_challenge(self, message: SignChallengeMessage) -> SignChallengeResult:
        resp = self._proto.send_sign_challenge(message.challenge)
        if not resp.success:
            raise ProtocolFailure("SIGN CHALLENGE", resp.sw)
        if not resp.data:
            raise MalformedResponse("card returned an empty signature")
        return SignChallengeResult(signature=resp.data)

    @handles(AuthenticateCardMessage)
    def _authenticate_card(self, message: AuthenticateCardMessage) -> AuthenticateCardResult:
        # The card signs the hex text of the challenge
        challenge = os.urandom(CHALLENGE_LENGTH).hex().upper().encode("ascii")
        public_key = message.public_key
        if public_key is None:
            exported = self._get_public_key(GetPublicKeyMessage()).data
            public_key = keys.to_public_key(keys.parse_public_key(exported))
        self.check_cancelled()
        signature = self._sign_challenge(SignChallengeMessage(challenge=challenge)).signature
        valid = keys.verify_signature(signature, public_key, challenge)
        if not valid:
            lg.warning("card authentication FAILED: invalid signature")
        return AuthenticateCardResult(authenticated=valid, challenge=challenge)

    @handles(GetBalanceMessage)
    def _get_balance(self, message: GetBalanceMessage) -> GetBalanceResult:
        resp = self._proto.send_get_balance()
        if not resp.success:
            raise ProtocolFailure("GET BALANCE", resp.sw)
        return GetBalanceResult(balance=codec.decode_amount(resp.data))

    @handles(TopUpMessage)
    def _top_up(self, message: TopUpMessage) -> PaymentResult:
        return _payment_result(self._proto.send_top_up(message.amount), "TOP UP")

    @handles(PaymentMessage)
    def _payment(self, message: PaymentMessage) -> PaymentResult:
        return _payment_result(self._proto.send_payment(message.amount), "PAYMENT")

    @handles(UploadPhotoMessage)
    def _upload_photo(self, message: UploadPhotoMessage) -> UploadPhotoResult:
        if len(message.photo) > self._photo_budget:
            raise ValueError(
                f"photo too large: {len(message.photo)} bytes (max {self._photo_budget})"
            )
        chunks = self._proto.upload_photo(message.photo, between=self.check_cancelled)
        lg.info("photo uploaded: %d bytes in %d chunks", len(message.photo), chunks)
        return UploadPhotoResult(chunks_sent=chunks, length=len(message.photo))

    @handles(DownloadPhotoMessage)
    def _download_photo(self, message: DownloadPhotoMessage) -> DownloadPhotoResult:
        photo = self._proto.download_photo(between=self.check_cancelled)
        if photo is not None:
            lg.info("photo downloaded: %d bytes", len(photo))
        return DownloadPhotoResult(photo=photo)

    # -- convenience --

    def initialize(self, pin: str) -> str:
        return self.send(InitializeMessage(pin=pin)).card_id

    def verify_pin(self, pin: str) -> PinOutcome:
        return self.send(VerifyPinMessage(pin=pin)).outcome

    def change_pin(self, old_pin: str, new_pin: str) -> bool:
        return self.send(ChangePinMessage(old_pin=old_pin, new_pin=new_pin)).success

    def get_card_id(self) -> str:
        return self.send(GetCardIdMessage()).card_id

    def get_public_key_bytes(self) -> bytes:
        return self.send(GetPublicKeyMessage()).data

    def sign_challenge(self, challenge: bytes) -> bytes:
        return self.send(SignChallengeMessage(challenge=challenge)).signature

    def authenticate_card(self, public_key: rsa.RSAPublicKey | None = None) -> bool:
        return self.send(AuthenticateCardMessage(public_key=public_key)).authenticated

    def get_balance(self) -> int:
        return self.send(GetBalanceMessage()).balance

    def top_up(self, amount: int) -> PaymentResult:
        return self.send(TopUpMessage(amount=amount))

    def make_payment(self, amount: int) -> PaymentResult:
        return self.send(PaymentMessage(amount=amount))

    def upload_photo(self, photo: bytes) -> int:
        return self.send(UploadPhotoMessage(photo=photo)).chunks_sent

    def download_photo(self) -> bytes | None:
        return self.send(DownloadPhotoMessage()).photo
