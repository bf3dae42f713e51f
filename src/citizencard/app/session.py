"""Citizen card session orchestrator.

Constructs the full stack (Card -> Agent -> CitizenTerminal -> CardSession
-> Runner), connects, runs the command file or REPL, and disconnects.
"""

from __future__ import annotations

import logging
from concurrent.futures import TimeoutError as FutureTimeoutError

from citizencard.app.commands import COMMAND_MODULES
from citizencard.app.runner import Runner
from citizencard.core.base import Agent
from citizencard.core.citizen import APPLET_AID, PHOTO_BUDGET, TRANSFER_TIMEOUT, CardSession, CitizenTerminal
from citizencard.core.smartcard import Card

lg = logging.getLogger(__name__)

# Seconds to wait for the worker to release the card on exit
DISCONNECT_TIMEOUT = 5.0


def session(
    file: str | None = None,
    aid: bytes = APPLET_AID,
    budget: int = PHOTO_BUDGET,
    timeout: float = TRANSFER_TIMEOUT,
    reader: str | None = None,
    protocol: str | None = None,
) -> bool:
    """Open a citizen card session. Returns False if a command file failed.

    The disconnect on exit is queued behind any operation the worker is
    still running (e.g. a transfer abandoned after a timeout). If the worker
    does not get to it within DISCONNECT_TIMEOUT the session exits anyway
    and the card is left to the worker.
    """
    card = Card(protocol)
    agent = Agent(card, reader=reader)
    terminal = CitizenTerminal(agent, aid=aid, photo_budget=budget)
    ok = True

    with CardSession(terminal, transfer_timeout=timeout) as card_session:
        runner = Runner(card_session, COMMAND_MODULES)
        try:
            card_session.connect().result()
            if file:
                ok = runner.run_file(file)
            else:
                runner.run_interactive()
        except Exception as exc:
            terminal.on_error(exc)
            ok = False
        finally:
            try:
                card_session.disconnect().result(timeout=DISCONNECT_TIMEOUT)
            except FutureTimeoutError:
                lg.warning("card still busy after %gs; exiting without disconnect", DISCONNECT_TIMEOUT)
            except Exception as exc:
                terminal.on_error(exc)
    return ok
