"""Sequential, alignment-aware decoding of native structs from remote memory."""

from __future__ import annotations

from typing import Callable

from .constants import SUPPORTED_POINTER_WIDTHS
from .memory import MemoryAccessor


def align_up(address: int, alignment: int) -> int:
    return (address + alignment - 1) & ~(alignment - 1)


class StructCursor:
    """Walks a struct field by field using the target's natural alignment.

    Each ``read_*`` aligns the cursor to the field size, issues one read,
    and advances past the field whether or not the read succeeded. A
    failed read returns ``None``. ``skip_*`` does the same bookkeeping
    without touching memory.
    """

    def __init__(self, accessor: MemoryAccessor, address: int):
        pointer_size = accessor.pointer_width()
        if pointer_size not in SUPPORTED_POINTER_WIDTHS:
            raise ValueError(f"Accessor reports unsupported pointer width {pointer_size}")
        self.accessor = accessor
        self.address = address
        self.pointer_size = pointer_size

    def align(self, alignment: int) -> int:
        self.address = align_up(self.address, alignment)
        return self.address

    def _read(self, size: int, reader: Callable[[int], int | float | None]):
        self.align(size)
        result = reader(self.address)
        self.address += size
        return result

    def _skip(self, size: int) -> None:
        self.align(size)
        self.address += size

    def read_byte(self) -> int | None:
        result = self.accessor.read_byte(self.address)
        self.address += 1
        return result

    def read_short(self) -> int | None:
        return self._read(2, self.accessor.read_short)

    def read_int(self) -> int | None:
        return self._read(4, self.accessor.read_int)

    def read_uint(self) -> int | None:
        return self._read(4, self.accessor.read_uint)

    def read_long(self) -> int | None:
        return self._read(8, self.accessor.read_long)

    def read_ulong(self) -> int | None:
        return self._read(8, self.accessor.read_ulong)

    def read_double(self) -> float | None:
        return self._read(8, self.accessor.read_double)

    def read_pointer(self) -> int | None:
        if self.pointer_size == 4:
            return self.read_uint()
        return self.read_ulong()

    def skip_byte(self) -> None:
        self.address += 1

    def skip_short(self) -> None:
        self._skip(2)

    def skip_int(self) -> None:
        self._skip(4)

    def skip_uint(self) -> None:
        self._skip(4)

    def skip_long(self) -> None:
        self._skip(8)

    def skip_ulong(self) -> None:
        self._skip(8)

    def skip_pointer(self) -> None:
        self._skip(self.pointer_size)

    def skip_common_header(self) -> None:
        """Skip Lua's ``CommonHeader``: ``next`` pointer, ``tt`` and ``marked`` bytes."""
        self.skip_pointer()
        self.skip_byte()
        self.skip_byte()
