"""Card session, PIN and balance commands.

Each ``cmd_*`` function is registered as a REPL/script command named
after the function minus the ``cmd_`` prefix. Operations go through the
runner's CardSession and wait on the returned future.
"""

from __future__ import annotations

import logging

from citizencard.core.citizen import Blocked, Rejected, Verified
from citizencard.core.citizen.keys import parse_public_key

lg = logging.getLogger(__name__)

# PINs and amounts are parsed here, never auto-converted (keeps "0000" intact).
_raw_commands: set[str] = {
    "initialize", "verify_pin", "change_pin", "top_up", "pay",
}


def cmd_connect(runner) -> bool:
    """Connect to the card and select the applet."""
    runner.session.connect().result()
    return True


def cmd_disconnect(runner) -> bool:
    """Disconnect from the card."""
    runner.session.disconnect().result()
    runner.info.card_id = None
    runner.info.public_key = None
    return True


def cmd_reconnect(runner) -> bool:
    """Disconnect and reconnect the card."""
    runner.session.disconnect().result()
    runner.session.connect().result()
    return True


def cmd_initialize(runner, *, pin: str) -> bool:
    """Personalize a blank card with its first PIN."""
    card_id = runner.session.initialize(pin).result()
    runner.info.card_id = card_id
    lg.info("card initialized: %s", card_id)
    return True


def cmd_verify_pin(runner, *, pin: str) -> bool:
    """Verify the card PIN."""
    outcome = runner.session.verify_pin(pin).result()
    match outcome:
        case Verified():
            lg.info("PIN verified")
            return True
        case Rejected(remaining_tries=n):
            lg.error("wrong PIN, %d tries remaining", n)
        case Blocked():
            lg.error("PIN blocked")
    return False


def cmd_change_pin(runner, *, old: str, new: str) -> bool:
    """Change the PIN (old=PIN new=PIN)."""
    if not runner.session.change_pin(old, new).result():
        lg.error("PIN change refused")
        return False
    lg.info("PIN changed")
    return True


def cmd_card_id(runner) -> bool:
    """Read the card identifier."""
    runner.info.card_id = runner.session.get_card_id().result()
    lg.info("card id: %s", runner.info.card_id)
    return True


def cmd_public_key(runner) -> bool:
    """Read the card's RSA public key."""
    material = parse_public_key(runner.session.get_public_key_bytes().result())
    runner.info.public_key = material
    lg.info("public key: RSA-%d e=%d", material.key_size, material.e)
    return True


def cmd_authenticate(runner) -> bool:
    """Challenge the card to prove it holds its private key."""
    if not runner.session.authenticate_card().result():
        lg.error("card authentication failed")
        return False
    lg.info("card authenticated")
    return True


def cmd_balance(runner) -> bool:
    """Read the balance."""
    lg.info("balance: %d", runner.session.get_balance().result())
    return True


def cmd_top_up(runner, *, amount: str) -> bool:
    """Add amount to the balance."""
    result = runner.session.top_up(int(amount)).result()
    if not result.ok:
        lg.error("top-up refused: %s (SW=%04X)", result.error.value, result.sw)
        return False
    lg.info("balance: %d", result.balance)
    return True


def cmd_pay(runner, *, amount: str) -> bool:
    """Pay amount from the balance."""
    result = runner.session.make_payment(int(amount)).result()
    if not result.ok:
        lg.error("payment refused: %s (SW=%04X)", result.error.value, result.sw)
        return False
    lg.info("balance: %d", result.balance)
    return True
