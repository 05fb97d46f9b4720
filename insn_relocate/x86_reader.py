"""A little-endian byte reader over one x86 instruction window."""

from __future__ import annotations

__all__ = ["InsnReader", "MAX_INSN_LENGTH", "FILL_BYTE"]

MAX_INSN_LENGTH = 15
FILL_BYTE = 0xCC
_BUFFER_SIZE = 20


class InsnReader:
    """Reads the bytes of a single instruction.

    At most ``window`` bytes of ``data`` are taken. A window shorter than
    twenty bytes is padded with 0xCC, so reads past the supplied data
    yield that filler rather than failing; reading past the padded
    buffer raises ValueError.
    """

    def __init__(self, data: bytes, window: int = MAX_INSN_LENGTH) -> None:
        if window < 0:
            raise ValueError("window must not be negative")
        chunk = bytes(data[:window])
        self._buffer = chunk.ljust(_BUFFER_SIZE, bytes([FILL_BYTE]))
        self._cursor = 0

    @property
    def offset(self) -> int:
        """Number of bytes consumed so far."""
        return self._cursor

    def _take(self, size: int) -> bytes:
        end = self._cursor + size
        if end > len(self._buffer):
            raise ValueError(f"read of {size} bytes at offset {self._cursor} passes the instruction buffer")
        chunk = self._buffer[self._cursor : end]
        self._cursor = end
        return chunk

    def peek_byte(self) -> int:
        """The next byte, without consuming it."""
        if self._cursor >= len(self._buffer):
            raise ValueError("peek passes the instruction buffer")
        return self._buffer[self._cursor]

    def read_byte(self) -> int:
        return self._take(1)[0]

    def read_word(self) -> int:
        return int.from_bytes(self._take(2), "little")

    def read_dword(self) -> int:
        return int.from_bytes(self._take(4), "little")

    def read_qword(self) -> int:
        return int.from_bytes(self._take(8), "little")

    def read_number(self, bits: int) -> int:
        """Read an unsigned little-endian number of 8, 16, 32 or 64 bits."""
        readers = {
            8: self.read_byte,
            16: self.read_word,
            32: self.read_dword,
            64: self.read_qword,
        }
        try:
            reader = readers[bits]
        except KeyError:
            raise ValueError(f"unsupported number width {bits}") from None
        return reader()