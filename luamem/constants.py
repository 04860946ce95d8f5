"""Named constants: Lua runtime tags, sizes and limits."""

from __future__ import annotations

# Tag bits shared by 5.2+ (lobject.h)
TAG_VARIANT_MASK = 0x3F

# Base type tags (lua.h)
LUA_TNIL = 0
LUA_TBOOLEAN = 1
LUA_TLIGHTUSERDATA = 2
LUA_TNUMBER = 3
LUA_TSTRING = 4
LUA_TTABLE = 5
LUA_TFUNCTION = 6
LUA_TUSERDATA = 7
LUA_TTHREAD = 8


def make_variant(base: int, variant: int) -> int:
    return base | (variant << 4)


# 8-byte Value union followed by the tag, padded to 8
TVALUE_SIZE = 16

# L_Umaxalign: string payloads in 5.1-5.3 follow the header at this alignment
MAX_ALIGNMENT = 8

DEFAULT_MAX_STRING_LENGTH = 1 << 20
DEFAULT_SHORT_STRING_LIMIT = 40  # LUAI_MAXSHORTLEN
CHUNK_ID_LENGTH = 60  # LUA_IDSIZE

SUPPORTED_POINTER_WIDTHS: tuple[int, ...] = (4, 8)

LUA_TYPE_ERROR = "error"
LUA_TYPE_NIL = "nil"
LUA_TYPE_BOOL = "bool"
LUA_TYPE_LIGHT_USER_DATA = "light_user_data"
LUA_TYPE_INT = "int"
LUA_TYPE_DOUBLE = "double"
LUA_TYPE_SHORT_STRING = "short_string"
LUA_TYPE_LONG_STRING = "long_string"
LUA_TYPE_TABLE = "table"
LUA_TYPE_LUA_FUNCTION = "lua_function"
LUA_TYPE_C_FUNCTION = "c_function"
LUA_TYPE_C_CLOSURE = "c_closure"
LUA_TYPE_USER_DATA = "user_data"
LUA_TYPE_THREAD = "thread"
