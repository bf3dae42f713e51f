from __future__ import annotations

import logging

TRACE = 15
PROTOCOL = 18
logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(PROTOCOL, "PROTOCOL")

LINE_BYTES = 16

GREEN = "\033[32m"
RED = "\033[31m"
RESET = "\033[0m"


def _trace(self, message, *args, **kwargs):
    if self.isEnabledFor(TRACE):
        self._log(TRACE, message, args, **kwargs)


logging.Logger.trace = _trace


def color_sw(sw: int) -> str:
    """Return ANSI color for a status word: green for success, red for error."""
    if (sw >> 8) in (0x90, 0x61):
        return GREEN
    return RED


def log_hex(logger: logging.Logger, prefix: str, data: bytes) -> None:
    """Log hex data at TRACE, wrapping at LINE_BYTES bytes per line."""
    if not logger.isEnabledFor(TRACE):
        return
    pad = " " * len(prefix)
    for i in range(0, len(data), LINE_BYTES):
        chunk = data[i : i + LINE_BYTES].hex(" ").upper()
        logger.trace("%s%s", prefix if i == 0 else pad, chunk)
