from __future__ import annotations

from dataclasses import dataclass

MAX_SHORT_DATA = 255
SW_SUCCESS = 0x9000


@dataclass
class APDU:
    """ISO 7816 short command APDU (no Le, at most 255 data bytes)."""

    cla: int
    ins: int
    p1: int
    p2: int
    data: bytes = b""

    def to_bytes(self) -> bytes:
        if len(self.data) > MAX_SHORT_DATA:
            raise ValueError(
                f"command data too long: {len(self.data)} bytes (max {MAX_SHORT_DATA})"
            )
        buf = bytearray([self.cla, self.ins, self.p1, self.p2])
        if self.data:
            buf.append(len(self.data))
            buf.extend(self.data)
        return bytes(buf)

    def __repr__(self) -> str:
        return self.to_bytes().hex(" ").upper()


@dataclass
class Response:
    """ISO 7816 response APDU."""

    data: bytes
    sw1: int
    sw2: int

    @property
    def sw(self) -> int:
        return (self.sw1 << 8) | self.sw2

    @property
    def success(self) -> bool:
        return self.sw == SW_SUCCESS

    def to_bytes(self) -> bytes:
        return self.data + bytes([self.sw1, self.sw2])

    def __repr__(self) -> str:
        sw = f"SW={self.sw:04X}"
        if self.data:
            return f"{self.data.hex(' ').upper()} {sw}"
        return sw
