"""The MemoryAccessor capability and an in-memory process image."""

from __future__ import annotations

import logging
import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .constants import SUPPORTED_POINTER_WIDTHS

logger = logging.getLogger(__name__)


# ── ReadResult: "read failed" vs. "legitimately absent" ─────────


class ReadStatus(Enum):
    OK = "ok"
    READ_FAILED = "read_failed"
    NOT_PRESENT = "not_present"


@dataclass(frozen=True)
class ReadResult:
    """Outcome of a lookup that may fail or find nothing."""

    status: ReadStatus
    value: Any = None

    @classmethod
    def ok(cls, value: Any) -> ReadResult:
        return cls(status=ReadStatus.OK, value=value)

    @classmethod
    def read_failed(cls) -> ReadResult:
        return cls(status=ReadStatus.READ_FAILED)

    @classmethod
    def not_present(cls) -> ReadResult:
        return cls(status=ReadStatus.NOT_PRESENT)

    @property
    def is_ok(self) -> bool:
        return self.status == ReadStatus.OK


# ── MemoryAccessor ───────────────────────────────────────────────


class MemoryAccessor(ABC):
    """Raw byte access to a debugged process.

    Subclasses provide the four primitives; typed reads and writes are
    built on top of them. Every typed read issues exactly one
    ``read_bytes`` call of the type's size and returns ``None`` when it
    fails.
    """

    byte_order: str = "little"

    @abstractmethod
    def read_bytes(
        self, address: int, length: int, allow_partial: bool = False
    ) -> bytes | None:
        """Read *length* bytes, or the readable prefix when *allow_partial* is set."""
        ...

    @abstractmethod
    def write_bytes(self, address: int, data: bytes) -> bool:
        ...

    @abstractmethod
    def pointer_width(self) -> int:
        """Size of a target pointer in bytes: 4 or 8."""
        ...

    @abstractmethod
    def read_cstring(self, address: int, max_length: int) -> bytes | None:
        """Read up to the first NUL (exclusive) or *max_length* bytes.

        Returns the readable prefix when memory ends before the
        terminator, ``b""`` for an empty string and ``None`` when not
        even the first byte is readable.
        """
        ...

    # ── Typed reads ──────────────────────────────────────────────

    def _format(self, code: str) -> str:
        return (">" if self.byte_order == "big" else "<") + code

    def _unpack(self, code: str, address: int) -> Any:
        fmt = self._format(code)
        data = self.read_bytes(address, struct.calcsize(fmt))
        if data is None:
            return None
        return struct.unpack(fmt, data)[0]

    def _pack(self, code: str, address: int, value: Any) -> bool:
        try:
            data = struct.pack(self._format(code), value)
        except struct.error:
            logger.debug("Value %r does not fit format %s", value, code)
            return False
        return self.write_bytes(address, data)

    def read_byte(self, address: int) -> int | None:
        return self._unpack("B", address)

    def read_short(self, address: int) -> int | None:
        return self._unpack("h", address)

    def read_int(self, address: int) -> int | None:
        return self._unpack("i", address)

    def read_uint(self, address: int) -> int | None:
        return self._unpack("I", address)

    def read_long(self, address: int) -> int | None:
        return self._unpack("q", address)

    def read_ulong(self, address: int) -> int | None:
        return self._unpack("Q", address)

    def read_float(self, address: int) -> float | None:
        return self._unpack("f", address)

    def read_double(self, address: int) -> float | None:
        return self._unpack("d", address)

    def read_pointer(self, address: int) -> int | None:
        if self.pointer_width() == 4:
            return self.read_uint(address)
        return self.read_ulong(address)

    def read_string(self, address: int, max_length: int) -> str | None:
        """Read a NUL-terminated UTF-8 string, best-effort."""
        data = self.read_cstring(address, max_length)
        if data is None:
            return None
        return data.decode("utf-8", errors="replace")

    # ── Typed writes ─────────────────────────────────────────────

    def write_byte(self, address: int, value: int) -> bool:
        return self._pack("B", address, value)

    def write_short(self, address: int, value: int) -> bool:
        return self._pack("h", address, value)

    def write_int(self, address: int, value: int) -> bool:
        return self._pack("i", address, value)

    def write_uint(self, address: int, value: int) -> bool:
        return self._pack("I", address, value)

    def write_long(self, address: int, value: int) -> bool:
        return self._pack("q", address, value)

    def write_ulong(self, address: int, value: int) -> bool:
        return self._pack("Q", address, value)

    def write_float(self, address: int, value: float) -> bool:
        return self._pack("f", address, value)

    def write_double(self, address: int, value: float) -> bool:
        return self._pack("d", address, value)

    def write_pointer(self, address: int, value: int) -> bool:
        if self.pointer_width() == 4:
            return self.write_uint(address, value & 0xFFFFFFFF)
        return self.write_ulong(address, value)


# ── ProcessImage: in-memory accessor ─────────────────────────────


class ProcessImage(MemoryAccessor):
    """A fake process made of mapped byte regions.

    Every access is recorded as ``(address, length)`` in ``reads`` /
    ``writes`` so callers can assert exactly what was touched.
    """

    def __init__(self, pointer_width: int = 8, byte_order: str = "little"):
        if pointer_width not in SUPPORTED_POINTER_WIDTHS:
            raise ValueError(
                f"Unsupported pointer width {pointer_width}; "
                f"expected one of {SUPPORTED_POINTER_WIDTHS}"
            )
        if byte_order not in ("little", "big"):
            raise ValueError(f"Unknown byte order: {byte_order!r}")
        self._pointer_width = pointer_width
        self.byte_order = byte_order
        self._regions: dict[int, bytearray] = {}
        self.reads: list[tuple[int, int]] = []
        self.writes: list[tuple[int, int]] = []

    def map(self, address: int, data: bytes) -> None:
        """Make *data* readable at *address*, replacing any region starting there."""
        self._regions[address] = bytearray(data)

    def unmap(self, address: int) -> None:
        self._regions.pop(address, None)

    def pointer_width(self) -> int:
        return self._pointer_width

    def _region_at(self, address: int) -> tuple[int, bytearray] | None:
        for start, data in self._regions.items():
            if start <= address < start + len(data):
                return start, data
        return None

    def _readable_prefix(self, address: int, length: int) -> bytes:
        out = bytearray()
        cursor = address
        while len(out) < length:
            found = self._region_at(cursor)
            if found is None:
                break
            start, data = found
            offset = cursor - start
            chunk = data[offset : offset + length - len(out)]
            out += chunk
            cursor += len(chunk)
        return bytes(out)

    def read_bytes(
        self, address: int, length: int, allow_partial: bool = False
    ) -> bytes | None:
        self.reads.append((address, length))
        data = self._readable_prefix(address, length)
        if len(data) == length:
            return data
        if allow_partial and data:
            return data
        return None

    def write_bytes(self, address: int, data: bytes) -> bool:
        self.writes.append((address, len(data)))
        if len(self._readable_prefix(address, len(data))) != len(data):
            return False
        cursor = address
        remaining = bytes(data)
        while remaining:
            start, region = self._region_at(cursor)
            offset = cursor - start
            chunk = remaining[: len(region) - offset]
            region[offset : offset + len(chunk)] = chunk
            cursor += len(chunk)
            remaining = remaining[len(chunk) :]
        return True

    def read_cstring(self, address: int, max_length: int) -> bytes | None:
        self.reads.append((address, max_length))
        data = self._readable_prefix(address, max_length)
        terminator = data.find(b"\x00")
        if terminator >= 0:
            return data[:terminator]
        if not data and max_length > 0:
            return None
        return data
