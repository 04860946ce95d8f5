"""Shared builders for fake Lua process images.

Struct layouts are spelled out with explicit ``struct`` formats (no
native alignment) so the offsets the tests rely on are visible here.
"""

import struct

from luamem.layout import LuaVersion
from luamem.memory import ProcessImage

LONG_STRING_TAG = 0x14
COLLECTABLE = 0x40


def make_image(pointer_width: int = 8) -> ProcessImage:
    return ProcessImage(pointer_width=pointer_width)


def _ptr(pointer_width: int) -> str:
    return "Q" if pointer_width == 8 else "I"


def pointer_bytes(value: int, pointer_width: int = 8) -> bytes:
    return struct.pack("<" + _ptr(pointer_width), value)


def tvalue_bytes(
    payload: bytes, tag: int, version: LuaVersion = LuaVersion.LUA_53
) -> bytes:
    """A 16-byte TValue: 8-byte Value union then the tag."""
    value = payload.ljust(8, b"\x00")
    if version == LuaVersion.LUA_54:
        return value + struct.pack("<B7x", tag)
    return value + struct.pack("<i4x", tag)


def tstring_bytes(
    text: bytes,
    version: LuaVersion = LuaVersion.LUA_53,
    pointer_width: int = 8,
    is_long: bool = False,
) -> bytes:
    """Header + payload + NUL. The payload starts at 24 (64-bit) or 16 (32-bit)."""
    ptr = _ptr(pointer_width)
    if version in (LuaVersion.LUA_51, LuaVersion.LUA_52):
        tt = LONG_STRING_TAG if is_long and version == LuaVersion.LUA_52 else 0x04
        header = struct.pack(f"<{ptr}BBBxI{ptr}", 0, tt, 0, 0, 0, len(text))
    else:
        tt = LONG_STRING_TAG if is_long else 0x04
        shrlen = 0 if is_long else len(text)
        lnglen = len(text) if is_long else 0
        header = struct.pack(f"<{ptr}BBBBI{ptr}", 0, tt, 0, 0, shrlen, 0, lnglen)
    return header + text + b"\x00"


def table_53_bytes(metatable: int = 0) -> bytes:
    """64-bit 5.3 Table; metatable pointer at offset 40."""
    return struct.pack("<QBBBBIQQQQQ", 0, 0x05, 0, 0, 0, 0, 0, 0, 0, metatable, 0)


def table_51_bytes(metatable: int = 0) -> bytes:
    """64-bit 5.1 Table; metatable pointer at offset 16."""
    return struct.pack("<QBBBB4xQ", 0, 0x05, 0, 0, 0, metatable)


def lclosure_53_bytes(proto: int, pointer_width: int = 8) -> bytes:
    if pointer_width == 8:
        return struct.pack("<QBBB5xQQ", 0, 0x06, 0, 0, 0, proto)
    return struct.pack("<IBBBxII", 0, 0x06, 0, 0, 0, proto)


def closure_51_bytes(proto: int, is_c: bool = False) -> bytes:
    """64-bit 5.1 closure: isC at 10, env at 24, Proto pointer at 32."""
    return struct.pack("<QBBBB4xQQQ", 0, 0x06, 0, int(is_c), 0, 0, 0, proto)


def proto_53_bytes(
    pointer_width: int = 8,
    numparams: int = 0,
    is_vararg: int = 0,
    maxstack: int = 2,
    sizes: tuple[int, ...] = (0, 0, 0, 0, 0, 0),
    linedefined: int = 0,
    lastlinedefined: int = 0,
    pointers: tuple[int, ...] = (0, 0, 0, 0, 0, 0),
    source: int = 0,
) -> bytes:
    """5.3 Proto.

    *sizes*: upvalues, k, code, lineinfo, p, locvars.
    *pointers*: k, code, p, lineinfo, locvars, upvalues.
    64-bit: counts at 16, k at 48, p at 64, locvars at 80, source at 104.
    """
    ptr = _ptr(pointer_width)
    return struct.pack(
        f"<{ptr}BBBBB3x8i9{ptr}",
        0,
        0x09,
        0,
        numparams,
        is_vararg,
        maxstack,
        *sizes,
        linedefined,
        lastlinedefined,
        *pointers,
        0,  # cache
        source,
        0,  # gclist
    )


def proto_51_bytes(
    numparams: int = 0,
    is_vararg: int = 0,
    maxstack: int = 2,
    sizes: tuple[int, ...] = (0, 0, 0, 0, 0, 0),
    linedefined: int = 0,
    lastlinedefined: int = 0,
    pointers: tuple[int, ...] = (0, 0, 0, 0, 0, 0),
    source: int = 0,
) -> bytes:
    """64-bit 5.1 Proto: pointers from 16, source at 64, counts at 72, flags at 113."""
    return struct.pack(
        "<QBB6x7Q8iQBBBB",
        0,
        0x09,
        0,
        *pointers,
        source,
        *sizes,
        linedefined,
        lastlinedefined,
        0,  # gclist
        0,  # nups
        numparams,
        is_vararg,
        maxstack,
    )


def proto_54_bytes(
    numparams: int = 0,
    is_vararg: int = 0,
    maxstack: int = 2,
    sizes: tuple[int, ...] = (0, 0, 0, 0, 0, 0, 0),
    linedefined: int = 0,
    lastlinedefined: int = 0,
    pointers: tuple[int, ...] = (0, 0, 0, 0, 0, 0, 0),
    source: int = 0,
) -> bytes:
    """64-bit 5.4 Proto.

    *sizes*: upvalues, k, code, lineinfo, p, locvars, abslineinfo.
    *pointers*: k, code, p, upvalues, lineinfo, abslineinfo, locvars.
    Source pointer at 112.
    """
    return struct.pack(
        "<QBBBBB3x9i4x8Q",
        0,
        0x0A,
        0,
        numparams,
        is_vararg,
        maxstack,
        *sizes,
        linedefined,
        lastlinedefined,
        *pointers,
        source,
    )


def locvar_bytes(name: int, start_pc: int, end_pc: int) -> bytes:
    """64-bit LocVar: 16 bytes."""
    return struct.pack("<Qii", name, start_pc, end_pc)
