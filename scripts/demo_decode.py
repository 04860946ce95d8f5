"""Demo: decode a few Lua 5.3 values out of a hand-built 64-bit process image."""

import logging
import struct

from luamem import (
    LuaLayout,
    LuaVersion,
    ProcessImage,
    SymbolStore,
    decode_values,
    describe_value,
    register_closure,
)

logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

STATE = 0x10000
STACK = 0x1000
STRING = 0x2000
CLOSURE = 0x3000
PROTO = 0x4000
SOURCE = 0x5000
TABLE = 0x6000


def _tvalue(payload: bytes, tag: int) -> bytes:
    return payload.ljust(8, b"\x00") + struct.pack("<i4x", tag)


def _tstring(text: bytes) -> bytes:
    return struct.pack("<QBBBBIQ", 0, 0x04, 0, 0, len(text), 0, 0) + text + b"\x00"


def _build_image() -> ProcessImage:
    image = ProcessImage(pointer_width=8)
    image.map(
        STACK,
        _tvalue(struct.pack("<q", 42), 0x13)
        + _tvalue(struct.pack("<d", 0.5), 0x03)
        + _tvalue(struct.pack("<i", 1), 0x01)
        + _tvalue(struct.pack("<Q", STRING), 0x44)
        + _tvalue(struct.pack("<Q", TABLE), 0x45)
        + _tvalue(struct.pack("<Q", CLOSURE), 0x46)
        + _tvalue(b"", 0x00)
        + _tvalue(b"", 0x0F),
    )
    image.map(STRING, _tstring(b"hello"))
    image.map(TABLE, struct.pack("<QBBBBIQQQQQ", 0, 0x05, 0, 0, 0, 0, 0, 0, 0, 0, 0))
    image.map(CLOSURE, struct.pack("<QBBB5xQQ", 0, 0x06, 0, 0, 0, PROTO))
    image.map(
        PROTO,
        struct.pack(
            "<QBBBBB3x8i9Q",
            *(0, 0x09, 0, 1, 0, 2),
            *(0, 0, 0, 0, 0, 0, 7, 12),
            *(0, 0, 0, 0, 0, 0, 0, SOURCE, 0),
        ),
    )
    image.map(SOURCE, _tstring(b"@demo/main.lua"))
    return image


def main():
    layout = LuaLayout(version=LuaVersion.LUA_53)
    image = _build_image()
    store = SymbolStore()

    values = decode_values(image, STACK, 8, layout)
    for value in values:
        register_closure(store, image, STATE, value, layout)

    symbols = store.fetch_or_create(STATE)
    print("=" * 60)
    for index, value in enumerate(values):
        text = describe_value(value, symbols, image, layout, radix=16)
        print(f"  [{index}] {value.lua_type():<14} {text}")
    print("=" * 60)
    print(f"Sources known: {sorted(symbols.known_sources)}")
    print(f"Memory reads issued: {len(image.reads)}")


if __name__ == "__main__":
    main()
