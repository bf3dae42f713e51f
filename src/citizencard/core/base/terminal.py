from __future__ import annotations

import enum
import logging
import threading
from typing import Callable

from citizencard.core.base.agent import Transport
from citizencard.core.base.errors import Cancelled, NotConnected, TransportUnavailable
from citizencard.core.base.message import Message, Result
from citizencard.core.smartcard.logging import log_hex

lg = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


def handles(message_cls: type[Message]) -> Callable:
    """Decorator that registers a method as handler for a message type."""

    def decorator(method: Callable) -> Callable:
        method._handles_message = message_cls
        return method

    return decorator


class Terminal:
    """Base terminal that owns one transport and its connection state.

    The app layer sends Message objects via send() and receives Result
    objects. Subclasses register handlers with the @handles decorator.
    send() holds the terminal lock for the whole operation, so commands
    from concurrent callers never interleave on the channel.
    """

    _handlers: dict[type[Message], str]

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        cls._handlers = {}
        for base in reversed(cls.__mro__):
            if hasattr(base, "_handlers"):
                cls._handlers.update(base._handlers)
        for name in vars(cls):
            method = getattr(cls, name)
            if callable(method) and hasattr(method, "_handles_message"):
                cls._handlers[method._handles_message] = name

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._state = ConnectionState.DISCONNECTED
        self._suspect = False
        self._lock = threading.RLock()
        self._cancel = threading.Event()

    # -- connection state --

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED and not self._suspect

    @property
    def suspect(self) -> bool:
        return self._suspect

    def connect(self) -> None:
        """Connect the transport and run the subclass session setup.

        The state becomes CONNECTED only if setup succeeds; otherwise the
        transport is released and the error propagates.
        """
        with self._lock:
            if self.connected:
                return
            self._release()
            self._transport.connect()
            try:
                self._on_connect()
            except BaseException:
                self._transport.disconnect()
                raise
            self._state = ConnectionState.CONNECTED
            self._suspect = False
            lg.info("session established")

    def disconnect(self) -> None:
        """Release the transport. Safe to call in any state."""
        with self._lock:
            self._release()

    def mark_suspect(self) -> None:
        """Refuse further operations until the connection is re-established."""
        if self._state is ConnectionState.CONNECTED and not self._suspect:
            lg.warning("connection marked suspect; reconnect before further use")
        self._suspect = True

    def _release(self) -> None:
        if self._state is ConnectionState.DISCONNECTED:
            return
        try:
            self._transport.disconnect()
        finally:
            self._state = ConnectionState.DISCONNECTED
            self._suspect = False
            lg.info("disconnected")

    def _on_connect(self) -> None:
        """Session setup after the transport connects (e.g. SELECT)."""

    # -- cancellation --

    def cancel(self) -> None:
        """Request cooperative cancellation of the in-flight operation.

        Only the operation already running is affected. A request made while
        nothing is running is discarded when the next operation starts.
        """
        self._cancel.set()

    def check_cancelled(self) -> None:
        """Raise Cancelled if a cancellation was requested. Call between steps."""
        if self._cancel.is_set():
            self._cancel.clear()
            raise Cancelled("operation cancelled")

    # -- transmission --

    def exchange(self, raw: bytes) -> bytes:
        """Move one command through the transport and return the raw response."""
        log_hex(lg, ">> ", raw)
        try:
            resp = self._transport.transmit(raw)
        except TransportUnavailable:
            self.mark_suspect()
            raise
        log_hex(lg, "<< ", resp)
        return resp

    # -- dispatch --

    def send(self, message: Message) -> Result:
        """Dispatch a message to the registered handler."""
        handler_name = self._handlers.get(type(message))
        if handler_name is None:
            raise ValueError(f"unsupported message: {message}")
        with self._lock:
            if self._state is not ConnectionState.CONNECTED:
                raise NotConnected("not connected to a card")
            if self._suspect:
                raise NotConnected("connection is suspect; reconnect first")
            # Stale cancel requests do not carry over to this operation
            self._cancel.clear()
            lg.debug("-> %s", message.operation)
            return getattr(self, handler_name)(message)

    @property
    def supported_messages(self) -> list[type[Message]]:
        """Return the message types this terminal can handle."""
        return list(self._handlers.keys())

    def on_error(self, error: Exception) -> None:
        """Handle an error during a session."""
        lg.error("terminal error: %s", error)
