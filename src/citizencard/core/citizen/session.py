"""Background execution of card operations.

A CardSession runs every operation of one terminal on a single worker
thread and hands back a Future, so the initiating thread (a UI loop, the
REPL) never blocks on transport I/O. Photo transfers run under a watchdog:
past the bound the future fails with Timeout, cancellation is requested,
and the terminal is marked suspect so it must reconnect before further use.
The worker itself cannot be killed mid-command.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from cryptography.hazmat.primitives.asymmetric import rsa

from citizencard.core.base.errors import Cancelled, Timeout
from citizencard.core.citizen.constants import TRANSFER_TIMEOUT
from citizencard.core.citizen.messages import PaymentResult
from citizencard.core.citizen.pin import PinOutcome
from citizencard.core.citizen.terminal import CitizenTerminal

lg = logging.getLogger(__name__)


class CardSession:
    """Serializes one terminal's operations onto a dedicated worker thread."""

    def __init__(self, terminal: CitizenTerminal, transfer_timeout: float = TRANSFER_TIMEOUT) -> None:
        self._terminal = terminal
        self._transfer_timeout = transfer_timeout
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="CardSession")
        self._lock = threading.Lock()

    @property
    def terminal(self) -> CitizenTerminal:
        return self._terminal

    def __enter__(self) -> CardSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Run fn(*args) on the session worker."""
        return self._executor.submit(fn, *args)

    def submit_watched(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Run fn(*args) on the worker, failing with Timeout past the bound.

        The bound is measured from when the worker starts the operation.
        """
        outer: Future = Future()
        outer.set_running_or_notify_cancel()

        def expire() -> None:
            with self._lock:
                if outer.done():
                    return
                lg.warning("operation timed out after %gs; abandoning", self._transfer_timeout)
                # Suspect before the caller sees the Timeout
                self._terminal.cancel()
                self._terminal.mark_suspect()
                outer.set_exception(
                    Timeout(f"{getattr(fn, '__name__', 'operation')} exceeded {self._transfer_timeout:g}s")
                )

        timer = threading.Timer(self._transfer_timeout, expire)
        timer.daemon = True

        def finish(done: Future) -> None:
            timer.cancel()
            with self._lock:
                if outer.done():
                    return
                if done.cancelled():
                    outer.set_exception(Cancelled("session closed before the operation ran"))
                    return
                exc = done.exception()
                if exc is not None:
                    outer.set_exception(exc)
                else:
                    outer.set_result(done.result())

        def run() -> Any:
            timer.start()
            return fn(*args)

        self._executor.submit(run).add_done_callback(finish)
        return outer

    def cancel(self) -> None:
        """Request cooperative cancellation of the in-flight operation.

        Operations still queued behind it are not affected; use close() to
        drop those.
        """
        self._terminal.cancel()

    def close(self) -> None:
        """Stop accepting work; queued operations are dropped."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    # -- operations --

    def connect(self) -> Future[None]:
        return self.submit(self._terminal.connect)

    def disconnect(self) -> Future[None]:
        return self.submit(self._terminal.disconnect)

    def initialize(self, pin: str) -> Future[str]:
        return self.submit(self._terminal.initialize, pin)

    def verify_pin(self, pin: str) -> Future[PinOutcome]:
        return self.submit(self._terminal.verify_pin, pin)

    def change_pin(self, old_pin: str, new_pin: str) -> Future[bool]:
        return self.submit(self._terminal.change_pin, old_pin, new_pin)

    def get_card_id(self) -> Future[str]:
        return self.submit(self._terminal.get_card_id)

    def get_public_key_bytes(self) -> Future[bytes]:
        return self.submit(self._terminal.get_public_key_bytes)

    def authenticate_card(self, public_key: rsa.RSAPublicKey | None = None) -> Future[bool]:
        return self.submit(self._terminal.authenticate_card, public_key)

    def get_balance(self) -> Future[int]:
        return self.submit(self._terminal.get_balance)

    def top_up(self, amount: int) -> Future[PaymentResult]:
        return self.submit(self._terminal.top_up, amount)

    def make_payment(self, amount: int) -> Future[PaymentResult]:
        return self.submit(self._terminal.make_payment, amount)

    def upload_photo(self, photo: bytes) -> Future[int]:
        return self.submit_watched(self._terminal.upload_photo, photo)

    def download_photo(self) -> Future[bytes | None]:
        return self.submit_watched(self._terminal.download_photo)
