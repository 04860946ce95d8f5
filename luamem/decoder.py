"""TValue decoder: turns a remote Lua value cell into exactly one LuaValue variant."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from . import constants
from .constants import make_variant
from .layout import DEFAULT_LAYOUT, LuaLayout, LuaVersion
from .memory import MemoryAccessor
from .struct_cursor import StructCursor
from .value_types import (
    ExtendedType,
    LuaBool,
    LuaError,
    LuaExternalClosure,
    LuaExternalFunction,
    LuaFunction,
    LuaLightUserData,
    LuaNil,
    LuaNumber,
    LuaString,
    LuaTable,
    LuaThread,
    LuaUserData,
    LuaValue,
)

logger = logging.getLogger(__name__)

_LONG_STRING_TAG = make_variant(constants.LUA_TSTRING, 1)


# ── Strings ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class StringHeader:
    """Length and payload location of a TString."""

    length: int
    data_address: int
    is_long: bool


def read_string_header(
    accessor: MemoryAccessor,
    layout: LuaLayout,
    address: int,
    is_long: bool | None = None,
) -> StringHeader | None:
    """Read the TString header at *address*.

    When *is_long* is not supplied it comes from the header's own ``tt``
    byte (5.2+) or from the length threshold (5.1, which has a single
    string kind).
    """
    legacy = layout.version in (LuaVersion.LUA_51, LuaVersion.LUA_52)
    cursor = StructCursor(accessor, address)
    cursor.skip_pointer()  # next
    if is_long is None and layout.version != LuaVersion.LUA_51:
        tt = cursor.read_byte()
        if tt is None:
            return None
        is_long = (tt & constants.TAG_VARIANT_MASK) == _LONG_STRING_TAG
    else:
        cursor.skip_byte()
    cursor.skip_byte()  # marked
    cursor.skip_byte()  # reserved / extra

    if legacy:
        cursor.skip_uint()  # hash
        length = cursor.read_pointer()
    else:
        short_length = cursor.read_byte()
        cursor.skip_uint()  # hash
        if is_long:
            length = cursor.read_pointer()  # u.lnglen
        else:
            cursor.skip_pointer()  # u.hnext
            length = short_length
    if length is None:
        return None

    if layout.aligned_string_payload:
        cursor.align(constants.MAX_ALIGNMENT)
    if is_long is None:
        is_long = length > layout.short_string_limit
    return StringHeader(length=length, data_address=cursor.address, is_long=is_long)


def read_string_object(
    accessor: MemoryAccessor,
    layout: LuaLayout,
    address: int,
    is_long: bool | None = None,
    original_address: int = 0,
) -> LuaString | LuaError:
    """Decode the TString at *address*; a partially readable payload is truncated."""
    header = read_string_header(accessor, layout, address, is_long)
    if header is None:
        logger.debug("Unreadable string header at 0x%x", address)
        return LuaError(message=f"failed to read string header at 0x{address:x}")

    length = min(header.length, layout.max_string_length)
    if length < header.length:
        logger.debug(
            "String at 0x%x truncated from %d to %d bytes",
            address,
            header.length,
            length,
        )
    data = (
        accessor.read_bytes(header.data_address, length, allow_partial=True)
        if length
        else b""
    )
    if data is None:
        logger.debug("Unreadable string data at 0x%x", header.data_address)
        return LuaError(message=f"failed to read string data at 0x{address:x}")

    return LuaString(
        value=data.decode("utf-8", errors="replace"),
        target_address=address,
        extended_type=(
            ExtendedType.LONG_STRING if header.is_long else ExtendedType.SHORT_STRING
        ),
        original_address=original_address,
    )


# ── Tables ───────────────────────────────────────────────────────


def read_table_metatable(
    accessor: MemoryAccessor, layout: LuaLayout, table_address: int
) -> int | None:
    cursor = StructCursor(accessor, table_address)
    cursor.skip_common_header()
    cursor.skip_byte()  # flags
    cursor.skip_byte()  # lsizenode
    if layout.version in (LuaVersion.LUA_53, LuaVersion.LUA_54):
        cursor.skip_uint()  # sizearray / alimit
        cursor.skip_pointer()  # array
        cursor.skip_pointer()  # node
        cursor.skip_pointer()  # lastfree
    return cursor.read_pointer()


# ── Per-tag handlers ─────────────────────────────────────────────


@dataclass(frozen=True)
class _Cell:
    """A TValue being decoded; the Value union sits at ``address``."""

    accessor: MemoryAccessor
    layout: LuaLayout
    address: int
    tag: int


def _failure(cell: _Cell, what: str) -> LuaError:
    logger.debug("Failed to read %s of value at 0x%x", what, cell.address)
    return LuaError(message=f"failed to read {what} at 0x{cell.address:x}")


def _nil(cell: _Cell) -> LuaValue:
    return LuaNil(original_address=cell.address)


def _bool_payload(cell: _Cell) -> LuaValue:
    value = cell.accessor.read_int(cell.address)
    if value is None:
        return _failure(cell, "boolean")
    return LuaBool(value=value != 0, original_address=cell.address)


def _false(cell: _Cell) -> LuaValue:
    return LuaBool(value=False, original_address=cell.address)


def _true(cell: _Cell) -> LuaValue:
    return LuaBool(value=True, original_address=cell.address)


def _light_user_data(cell: _Cell) -> LuaValue:
    value = cell.accessor.read_pointer(cell.address)
    if value is None:
        return _failure(cell, "light userdata")
    return LuaLightUserData(value=value, original_address=cell.address)


def _float(cell: _Cell) -> LuaValue:
    value = cell.accessor.read_double(cell.address)
    if value is None:
        return _failure(cell, "number")
    return LuaNumber.of_float(value, original_address=cell.address)


def _integer(cell: _Cell) -> LuaValue:
    value = cell.accessor.read_long(cell.address)
    if value is None:
        return _failure(cell, "integer")
    return LuaNumber.of_integer(value, original_address=cell.address)


def _string(is_long: bool | None) -> Callable[[_Cell], LuaValue]:
    def handler(cell: _Cell) -> LuaValue:
        target = cell.accessor.read_pointer(cell.address)
        if target is None:
            return _failure(cell, "string pointer")
        return read_string_object(
            cell.accessor, cell.layout, target, is_long, original_address=cell.address
        )

    return handler


def _reference(variant: type) -> Callable[[_Cell], LuaValue]:
    def handler(cell: _Cell) -> LuaValue:
        target = cell.accessor.read_pointer(cell.address)
        if target is None:
            return _failure(cell, f"{variant.__name__} pointer")
        return variant(target_address=target, original_address=cell.address)

    return handler


def _table(cell: _Cell) -> LuaValue:
    target = cell.accessor.read_pointer(cell.address)
    if target is None:
        return _failure(cell, "table pointer")
    metatable = None
    if cell.layout.read_table_metatables:
        metatable = read_table_metatable(cell.accessor, cell.layout, target)
        if metatable is None:
            logger.debug("Unreadable metatable of table 0x%x", target)
    return LuaTable(
        target_address=target,
        metatable_address=metatable,
        original_address=cell.address,
    )


def _closure_by_header(cell: _Cell) -> LuaValue:
    """5.1 marks C closures with ``isC`` in the shared closure header."""
    target = cell.accessor.read_pointer(cell.address)
    if target is None:
        return _failure(cell, "closure pointer")
    cursor = StructCursor(cell.accessor, target)
    cursor.skip_common_header()
    is_c = cursor.read_byte()
    if is_c is None:
        logger.debug("Unreadable closure header at 0x%x", target)
        return LuaError(message=f"failed to read closure header at 0x{target:x}")
    if is_c:
        return LuaExternalClosure(target_address=target, original_address=cell.address)
    return LuaFunction(target_address=target, original_address=cell.address)


Handler = Callable[[_Cell], LuaValue]

_SHARED: dict[int, Handler] = {
    constants.LUA_TNIL: _nil,
    constants.LUA_TLIGHTUSERDATA: _light_user_data,
    constants.LUA_TTABLE: _table,
    constants.LUA_TUSERDATA: _reference(LuaUserData),
    constants.LUA_TTHREAD: _reference(LuaThread),
}

_VARIANT_FUNCTIONS: dict[int, Handler] = {
    make_variant(constants.LUA_TSTRING, 0): _string(is_long=False),
    make_variant(constants.LUA_TSTRING, 1): _string(is_long=True),
    make_variant(constants.LUA_TFUNCTION, 0): _reference(LuaFunction),
    make_variant(constants.LUA_TFUNCTION, 1): _reference(LuaExternalFunction),
    make_variant(constants.LUA_TFUNCTION, 2): _reference(LuaExternalClosure),
}

_LUA_52: dict[int, Handler] = {
    **_SHARED,
    **_VARIANT_FUNCTIONS,
    constants.LUA_TBOOLEAN: _bool_payload,
    constants.LUA_TNUMBER: _float,
}

HANDLERS: dict[LuaVersion, dict[int, Handler]] = {
    LuaVersion.LUA_51: {
        **_SHARED,
        constants.LUA_TBOOLEAN: _bool_payload,
        constants.LUA_TNUMBER: _float,
        constants.LUA_TSTRING: _string(is_long=None),
        constants.LUA_TFUNCTION: _closure_by_header,
    },
    LuaVersion.LUA_52: _LUA_52,
    LuaVersion.LUA_53: {
        **_LUA_52,
        make_variant(constants.LUA_TNUMBER, 0): _float,
        make_variant(constants.LUA_TNUMBER, 1): _integer,
    },
    LuaVersion.LUA_54: {
        **_SHARED,
        **_VARIANT_FUNCTIONS,
        make_variant(constants.LUA_TNIL, 1): _nil,  # empty slot
        make_variant(constants.LUA_TNIL, 2): _nil,  # absent key
        make_variant(constants.LUA_TBOOLEAN, 0): _false,
        make_variant(constants.LUA_TBOOLEAN, 1): _true,
        make_variant(constants.LUA_TNUMBER, 0): _integer,
        make_variant(constants.LUA_TNUMBER, 1): _float,
    },
}


# ── Entry points ─────────────────────────────────────────────────


def read_value_tag(
    accessor: MemoryAccessor, layout: LuaLayout, address: int
) -> int | None:
    cursor = StructCursor(accessor, address)
    cursor.skip_ulong()  # Value union
    if layout.byte_tag:
        return cursor.read_byte()
    return cursor.read_int()


def decode_value(
    accessor: MemoryAccessor, address: int, layout: LuaLayout = DEFAULT_LAYOUT
) -> LuaValue:
    """Decode the TValue cell at *address*.

    Never raises for remote failures: unreadable or inconsistent cells
    come back as ``LuaError``.
    """
    tag = read_value_tag(accessor, layout, address)
    if tag is None:
        logger.debug("Unreadable value tag at 0x%x", address)
        return LuaError(message=f"failed to read value tag at 0x{address:x}")

    variant = tag
    if layout.version != LuaVersion.LUA_51:
        variant = tag & constants.TAG_VARIANT_MASK
    handler = HANDLERS[layout.version].get(variant)
    if handler is None:
        logger.debug(
            "Unknown type tag 0x%x at 0x%x (Lua %s)",
            tag,
            address,
            layout.version.value,
        )
        return LuaError(message=f"unknown type tag 0x{tag:x} at 0x{address:x}")
    return handler(_Cell(accessor=accessor, layout=layout, address=address, tag=tag))


def decode_values(
    accessor: MemoryAccessor,
    first_address: int,
    count: int,
    layout: LuaLayout = DEFAULT_LAYOUT,
) -> list[LuaValue]:
    """Decode *count* consecutive cells; each fails independently."""
    return [
        decode_value(accessor, first_address + i * constants.TVALUE_SIZE, layout)
        for i in range(count)
    ]
