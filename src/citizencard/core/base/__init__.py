from citizencard.core.base.agent import Agent, Transport
from citizencard.core.base.errors import (
    Cancelled,
    CannotFitBudget,
    CitizenCardError,
    MalformedResponse,
    NotConnected,
    PaymentDeclined,
    ProtocolFailure,
    Timeout,
    TransportUnavailable,
)
from citizencard.core.base.message import Message, Result
from citizencard.core.base.terminal import ConnectionState, Terminal

__all__ = [
    "Agent",
    "Cancelled",
    "CannotFitBudget",
    "CitizenCardError",
    "ConnectionState",
    "MalformedResponse",
    "Message",
    "NotConnected",
    "PaymentDeclined",
    "ProtocolFailure",
    "Result",
    "Terminal",
    "Timeout",
    "Transport",
    "TransportUnavailable",
]
