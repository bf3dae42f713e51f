"""Error kinds raised by the card core.

Expected outcomes (wrong PIN, refused payment) are result values, not
exceptions; see ``PinOutcome`` and ``PaymentResult``.
"""

from __future__ import annotations


class CitizenCardError(Exception):
    """Base class for all card core errors."""


class NotConnected(CitizenCardError):
    """Operation issued without an established (and trusted) connection."""


class TransportUnavailable(CitizenCardError):
    """No reader, no card, or the channel dropped. Retry after user action."""


class MalformedResponse(CitizenCardError, ValueError):
    """A response or exported buffer violates its length invariants."""


class ProtocolFailure(CitizenCardError):
    """Non-success status word on an operation expected to succeed."""

    def __init__(self, label: str, sw: int, detail: str = "") -> None:
        self.label = label
        self.sw = sw
        self.detail = detail
        msg = f"{label} failed: SW={sw:04X}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


class PaymentDeclined(ProtocolFailure):
    """A top-up or payment was refused by the card."""


class CannotFitBudget(CitizenCardError):
    """The photo cannot be compressed under the byte budget."""

    def __init__(self, max_bytes: int, smallest: int) -> None:
        self.max_bytes = max_bytes
        self.smallest = smallest
        super().__init__(
            f"cannot compress photo to {max_bytes} bytes (smallest attempt: {smallest} bytes)"
        )


class Timeout(CitizenCardError, TimeoutError):
    """A long-running operation exceeded its time bound."""


class Cancelled(CitizenCardError):
    """The in-flight operation observed a cancellation request."""
