"""
Pytest configuration and fixtures for citizen card tests.

SimulatedCard stands in for a PC/SC reader with the citizen applet
installed: it implements the Transport interface and answers raw command
bytes the way the card program does.
"""

import threading
import time

import pytest
from PIL import Image
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from citizencard.core.base import TransportUnavailable
from citizencard.core.citizen import APPLET_AID, CardSession, CitizenTerminal
from citizencard.core.citizen.constants import INS, PHOTO_BUDGET, PHOTO_CHUNK_SIZE, SW
from citizencard.core.citizen.keys import material_from_key, serialize_public_key
from citizencard.core.citizen.photo import compress_to_budget


CARD_ID = "CC-0001-2024"
CARD_ID_LENGTH = 16
MAX_TRIES = 3


def _reply(sw, data=b""):
    return bytes(data) + sw.to_bytes(2, "big")


class SimulatedCard:
    """In-memory citizen applet behind the Transport interface."""

    def __init__(self, private_key, pin=None, balance=0, tries=MAX_TRIES):
        self.private_key = private_key
        self.pin = pin
        self.tries = tries
        self.balance = balance
        self.photo = None
        self.verified = False
        self.connected = False
        self.selected = False
        self.present = True
        self.delay = 0.0
        self.commands = []
        self.chunk_seen = threading.Event()
        self._upload = bytearray()

    # -- Transport --

    def connect(self):
        if not self.present:
            raise TransportUnavailable("no card present in any terminal")
        self.connected = True
        self.selected = False
        self.verified = False

    def disconnect(self):
        self.connected = False
        self.selected = False
        self.verified = False

    def transmit(self, raw):
        if not self.connected:
            raise TransportUnavailable("card removed")
        if self.delay:
            time.sleep(self.delay)
        self.commands.append(bytes(raw))
        ins, p1, p2 = raw[1], raw[2], raw[3]
        data = bytes(raw[5 : 5 + raw[4]]) if len(raw) > 4 else b""
        return self._dispatch(ins, p1, p2, data)

    # -- applet --

    def _dispatch(self, ins, p1, p2, data):
        if ins == INS.SELECT:
            if p1 == 0x04 and data == APPLET_AID:
                self.selected = True
                return _reply(SW.SUCCESS)
            return _reply(SW.FILE_NOT_FOUND)
        if not self.selected:
            return _reply(SW.CONDITIONS_NOT_SATISFIED)

        handler = {
            INS.INITIALIZE: self._initialize,
            INS.VERIFY_PIN: self._verify_pin,
            INS.CHANGE_PIN: self._change_pin,
            INS.GET_CARD_ID: self._get_card_id,
            INS.GET_PUBLIC_KEY: self._get_public_key,
            INS.SIGN_CHALLENGE: self._sign_challenge,
            INS.GET_BALANCE: self._get_balance,
            INS.TOP_UP: self._top_up,
            INS.PAYMENT: self._payment,
            INS.UPLOAD_PHOTO: self._upload_photo,
            INS.DOWNLOAD_PHOTO: self._download_photo,
        }.get(ins)
        if handler is None:
            return _reply(SW.INS_NOT_SUPPORTED)
        return handler(p1, p2, data)

    def _padded_id(self):
        return CARD_ID.encode("ascii").ljust(CARD_ID_LENGTH, b"\x00")

    def _initialize(self, p1, p2, data):
        if self.pin is not None:
            return _reply(SW.CONDITIONS_NOT_SATISFIED)
        if len(data) != 4:
            return _reply(SW.WRONG_LENGTH)
        self.pin = data.decode("ascii")
        self.tries = MAX_TRIES
        return _reply(SW.SUCCESS, self._padded_id())

    def _verify_pin(self, p1, p2, data):
        if self.tries == 0:
            return _reply(SW.AUTH_BLOCKED)
        if data.decode("ascii") == self.pin:
            self.tries = MAX_TRIES
            self.verified = True
            return _reply(SW.SUCCESS)
        self.tries -= 1
        self.verified = False
        return _reply(SW.PIN_MISMATCH, bytes([self.tries]))

    def _change_pin(self, p1, p2, data):
        if len(data) != 8:
            return _reply(SW.WRONG_LENGTH)
        if self.tries == 0:
            return _reply(SW.AUTH_BLOCKED)
        if data[:4].decode("ascii") != self.pin:
            self.tries -= 1
            return _reply(SW.PIN_MISMATCH, bytes([self.tries]))
        self.pin = data[4:].decode("ascii")
        return _reply(SW.SUCCESS)

    def _get_card_id(self, p1, p2, data):
        return _reply(SW.SUCCESS, self._padded_id())

    def _get_public_key(self, p1, p2, data):
        material = material_from_key(self.private_key.public_key())
        return _reply(SW.SUCCESS, serialize_public_key(material))

    def _sign_challenge(self, p1, p2, data):
        signature = self.private_key.sign(data, padding.PKCS1v15(), hashes.SHA1())
        return _reply(SW.SUCCESS, signature)

    def _get_balance(self, p1, p2, data):
        return _reply(SW.SUCCESS, self.balance.to_bytes(4, "big", signed=True))

    def _top_up(self, p1, p2, data):
        amount = int.from_bytes(data, "big", signed=True)
        if amount <= 0:
            return _reply(SW.CONDITIONS_NOT_SATISFIED)
        self.balance += amount
        return _reply(SW.SUCCESS, self.balance.to_bytes(4, "big", signed=True))

    def _payment(self, p1, p2, data):
        if not self.verified:
            return _reply(SW.SECURITY_STATUS_NOT_SATISFIED)
        amount = int.from_bytes(data, "big", signed=True)
        if amount <= 0 or amount > self.balance:
            return _reply(SW.CONDITIONS_NOT_SATISFIED)
        self.balance -= amount
        return _reply(SW.SUCCESS, self.balance.to_bytes(4, "big", signed=True))

    def _upload_photo(self, p1, p2, data):
        if len(data) < 4:
            return _reply(SW.WRONG_LENGTH)
        total = int.from_bytes(data[0:2], "big")
        offset = int.from_bytes(data[2:4], "big")
        chunk = data[4:]
        if total > PHOTO_BUDGET:
            return _reply(SW.FILE_FULL)
        if offset == 0:
            self._upload = bytearray()
        if offset != len(self._upload) or offset + len(chunk) > total:
            return _reply(SW.WRONG_LENGTH)
        self._upload.extend(chunk)
        self.chunk_seen.set()
        if p2 != 0x80 and len(self._upload) == total:
            self.photo = bytes(self._upload)
        return _reply(SW.SUCCESS)

    def _download_photo(self, p1, p2, data):
        if self.photo is None:
            return _reply(SW.FILE_NOT_FOUND)
        offset = (p1 << 8) | p2
        chunk = self.photo[offset : offset + PHOTO_CHUNK_SIZE]
        header = len(self.photo).to_bytes(2, "big") + len(chunk).to_bytes(2, "big")
        return _reply(SW.SUCCESS, header + chunk)


@pytest.fixture(scope="session")
def private_key():
    """RSA key pair held by the simulated card."""
    return rsa.generate_private_key(public_exponent=65537, key_size=1024)


@pytest.fixture
def card(private_key):
    """An initialized card with PIN 1234 and a balance of 100."""
    return SimulatedCard(private_key, pin="1234", balance=100)


@pytest.fixture
def blank_card(private_key):
    """A card that has not been personalized yet."""
    return SimulatedCard(private_key)


@pytest.fixture
def terminal(card):
    """A terminal connected to the simulated card."""
    term = CitizenTerminal(card)
    term.connect()
    yield term
    term.disconnect()


@pytest.fixture
def session(terminal):
    """A CardSession over the connected terminal."""
    with CardSession(terminal, transfer_timeout=5.0) as s:
        yield s


@pytest.fixture
def jpeg_photo():
    """A small JPEG spanning several upload chunks."""
    image = Image.new("RGB", (120, 160))
    image.putdata([(x % 256, (x * 7) % 256, (x * 13) % 256) for x in range(120 * 160)])
    return compress_to_budget(image)
