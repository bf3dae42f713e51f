"""Operation envelopes exchanged with a Terminal.

A message carries the inputs of one card operation and a result its typed
output. Terminal.send() routes a message by its exact type.
"""

from __future__ import annotations

from dataclasses import dataclass

_SUFFIX = "Message"


@dataclass
class Message:
    """An operation request for a terminal."""

    @property
    def operation(self) -> str:
        """Operation name, e.g. ``VerifyPin`` for VerifyPinMessage."""
        name = type(self).__name__
        return name[: -len(_SUFFIX)] if name.endswith(_SUFFIX) else name


@dataclass
class Result:
    """Typed output of one terminal operation."""
