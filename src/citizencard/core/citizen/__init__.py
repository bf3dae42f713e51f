from citizencard.core.citizen.constants import APPLET_AID, INS, PHOTO_BUDGET, SW, TRANSFER_TIMEOUT
from citizencard.core.citizen.keys import PublicKeyMaterial
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
from citizencard.core.citizen.pin import Blocked, PinOutcome, Rejected, Verified
from citizencard.core.citizen.session import CardSession
from citizencard.core.citizen.terminal import CitizenTerminal

__all__ = [
    "APPLET_AID",
    "AuthenticateCardMessage",
    "AuthenticateCardResult",
    "Blocked",
    "CardSession",
    "ChangePinMessage",
    "ChangePinResult",
    "CitizenTerminal",
    "DownloadPhotoMessage",
    "DownloadPhotoResult",
    "GetBalanceMessage",
    "GetBalanceResult",
    "GetCardIdMessage",
    "GetCardIdResult",
    "GetPublicKeyMessage",
    "GetPublicKeyResult",
    "INS",
    "InitializeMessage",
    "InitializeResult",
    "PHOTO_BUDGET",
    "PaymentError",
    "PaymentMessage",
    "PaymentResult",
    "PinOutcome",
    "PublicKeyMaterial",
    "Rejected",
    "SW",
    "SignChallengeMessage",
    "SignChallengeResult",
    "TRANSFER_TIMEOUT",
    "TopUpMessage",
    "UploadPhotoMessage",
    "UploadPhotoResult",
    "VerifyPinMessage",
    "VerifyPinResult",
    "Verified",
]
