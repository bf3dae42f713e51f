"""PIN verification outcomes.

The retry counter lives on the card. These outcomes are derived fresh from
each VERIFY PIN response and are never cached or counted locally.
"""

from __future__ import annotations

from dataclasses import dataclass

from citizencard.core.citizen.codec import is_success
from citizencard.core.smartcard.types import Response


@dataclass(frozen=True)
class Verified:
    pass


@dataclass(frozen=True)
class Rejected:
    remaining_tries: int


@dataclass(frozen=True)
class Blocked:
    pass


PinOutcome = Verified | Rejected | Blocked


def interpret(response: Response) -> PinOutcome:
    """Translate a VERIFY PIN response into an outcome.

    A failure without a counter byte, or with a counter of zero, means the
    card has locked the PIN.
    """
    if is_success(response):
        return Verified()
    if response.data:
        remaining = response.data[0]
        if remaining == 0:
            return Blocked()
        return Rejected(remaining_tries=remaining)
    return Blocked()
