"""Lua value model. Data types for decoded runtime values, with no remote access."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, Flag, auto
from typing import Any, Callable, Union

from . import constants

# ── Type tags ────────────────────────────────────────────────────


class BaseType(Enum):
    """The type tags the Lua runtime itself distinguishes."""

    NIL = constants.LUA_TNIL
    BOOLEAN = constants.LUA_TBOOLEAN
    LIGHT_USER_DATA = constants.LUA_TLIGHTUSERDATA
    NUMBER = constants.LUA_TNUMBER
    STRING = constants.LUA_TSTRING
    TABLE = constants.LUA_TTABLE
    FUNCTION = constants.LUA_TFUNCTION
    USER_DATA = constants.LUA_TUSERDATA
    THREAD = constants.LUA_TTHREAD


class ExtendedType(Enum):
    """Finer classification recovered at decode time."""

    NIL = "nil"
    BOOLEAN = "boolean"
    LIGHT_USER_DATA = "light_user_data"
    FLOAT_NUMBER = "float_number"
    INTEGER_NUMBER = "integer_number"
    SHORT_STRING = "short_string"
    LONG_STRING = "long_string"
    TABLE = "table"
    LUA_FUNCTION = "lua_function"
    EXTERNAL_FUNCTION = "external_function"
    EXTERNAL_CLOSURE = "external_closure"
    USER_DATA = "user_data"
    THREAD = "thread"


BASE_TYPE_OF: dict[ExtendedType, BaseType] = {
    ExtendedType.NIL: BaseType.NIL,
    ExtendedType.BOOLEAN: BaseType.BOOLEAN,
    ExtendedType.LIGHT_USER_DATA: BaseType.LIGHT_USER_DATA,
    ExtendedType.FLOAT_NUMBER: BaseType.NUMBER,
    ExtendedType.INTEGER_NUMBER: BaseType.NUMBER,
    ExtendedType.SHORT_STRING: BaseType.STRING,
    ExtendedType.LONG_STRING: BaseType.STRING,
    ExtendedType.TABLE: BaseType.TABLE,
    ExtendedType.LUA_FUNCTION: BaseType.FUNCTION,
    ExtendedType.EXTERNAL_FUNCTION: BaseType.FUNCTION,
    ExtendedType.EXTERNAL_CLOSURE: BaseType.FUNCTION,
    ExtendedType.USER_DATA: BaseType.USER_DATA,
    ExtendedType.THREAD: BaseType.THREAD,
}


class DisplayFlags(Flag):
    NONE = 0
    IS_BUILTIN_TYPE = auto()
    READ_ONLY = auto()
    BOOLEAN = auto()
    BOOLEAN_TRUE = auto()


BUILTIN_FLAGS = DisplayFlags.IS_BUILTIN_TYPE | DisplayFlags.READ_ONLY

# ── Variants ─────────────────────────────────────────────────────


@dataclass(frozen=True, kw_only=True)
class LuaValueBase:
    """Fields every decoded value carries.

    ``original_address`` is the remote cell the value was read from, or 0
    for values built locally (errors, comparison literals).
    """

    extended_type: ExtendedType
    flags: DisplayFlags = BUILTIN_FLAGS
    original_address: int = 0

    @property
    def base_type(self) -> BaseType:
        return BASE_TYPE_OF[self.extended_type]

    def lua_type(self) -> str:
        return _LUA_TYPE_NAMES[type(self)](self)

    def as_simple_display_string(self, radix: int = 10) -> str:
        return _DISPLAY[type(self)](self, radix)

    def lua_compare(self, other: Any) -> bool:
        if type(other) is not type(self):
            return False
        key = _COMPARE_KEY[type(self)]
        return key(self) == key(other)


@dataclass(frozen=True, kw_only=True)
class LuaError(LuaValueBase):
    """A decode failure carried in place of the value."""

    message: str
    extended_type: ExtendedType = ExtendedType.NIL
    flags: DisplayFlags = DisplayFlags.READ_ONLY


@dataclass(frozen=True, kw_only=True)
class LuaNil(LuaValueBase):
    extended_type: ExtendedType = ExtendedType.NIL


@dataclass(frozen=True, kw_only=True)
class LuaBool(LuaValueBase):
    value: bool
    extended_type: ExtendedType = ExtendedType.BOOLEAN
    flags: DisplayFlags = BUILTIN_FLAGS | DisplayFlags.BOOLEAN

    def __post_init__(self):
        if self.value:
            object.__setattr__(self, "flags", self.flags | DisplayFlags.BOOLEAN_TRUE)


@dataclass(frozen=True, kw_only=True)
class LuaLightUserData(LuaValueBase):
    value: int
    extended_type: ExtendedType = ExtendedType.LIGHT_USER_DATA


@dataclass(frozen=True, kw_only=True)
class LuaNumber(LuaValueBase):
    """Integer-sourced numbers keep an exact ``int`` payload, floats a ``float``."""

    value: int | float
    extended_type: ExtendedType = ExtendedType.FLOAT_NUMBER

    @classmethod
    def of_integer(cls, value: int, original_address: int = 0) -> LuaNumber:
        return cls(
            value=int(value),
            extended_type=ExtendedType.INTEGER_NUMBER,
            original_address=original_address,
        )

    @classmethod
    def of_float(cls, value: float, original_address: int = 0) -> LuaNumber:
        return cls(
            value=float(value),
            extended_type=ExtendedType.FLOAT_NUMBER,
            original_address=original_address,
        )

    @property
    def is_integer(self) -> bool:
        return self.extended_type == ExtendedType.INTEGER_NUMBER


@dataclass(frozen=True, kw_only=True)
class LuaString(LuaValueBase):
    """``target_address`` is the TString itself; ``original_address`` the cell pointing at it."""

    value: str
    target_address: int = 0
    extended_type: ExtendedType = ExtendedType.SHORT_STRING


@dataclass(frozen=True, kw_only=True)
class LuaTable(LuaValueBase):
    target_address: int
    metatable_address: int | None = None  # None: not read or unreadable
    extended_type: ExtendedType = ExtendedType.TABLE
    flags: DisplayFlags = DisplayFlags.NONE

    @property
    def has_metatable(self) -> bool:
        return bool(self.metatable_address)


@dataclass(frozen=True, kw_only=True)
class LuaFunction(LuaValueBase):
    target_address: int
    extended_type: ExtendedType = ExtendedType.LUA_FUNCTION
    flags: DisplayFlags = DisplayFlags.NONE


@dataclass(frozen=True, kw_only=True)
class LuaExternalFunction(LuaValueBase):
    """A light C function; ``target_address`` is the C function pointer."""

    target_address: int
    extended_type: ExtendedType = ExtendedType.EXTERNAL_FUNCTION
    flags: DisplayFlags = DisplayFlags.NONE


@dataclass(frozen=True, kw_only=True)
class LuaExternalClosure(LuaValueBase):
    target_address: int
    extended_type: ExtendedType = ExtendedType.EXTERNAL_CLOSURE
    flags: DisplayFlags = DisplayFlags.NONE


@dataclass(frozen=True, kw_only=True)
class LuaUserData(LuaValueBase):
    target_address: int
    extended_type: ExtendedType = ExtendedType.USER_DATA
    flags: DisplayFlags = DisplayFlags.NONE


@dataclass(frozen=True, kw_only=True)
class LuaThread(LuaValueBase):
    target_address: int
    extended_type: ExtendedType = ExtendedType.THREAD
    flags: DisplayFlags = DisplayFlags.NONE


LuaValue = Union[
    LuaError,
    LuaNil,
    LuaBool,
    LuaLightUserData,
    LuaNumber,
    LuaString,
    LuaTable,
    LuaFunction,
    LuaExternalFunction,
    LuaExternalClosure,
    LuaUserData,
    LuaThread,
]

LUA_VALUE_VARIANTS: tuple[type, ...] = LuaValue.__args__

REFERENCE_VARIANTS: tuple[type, ...] = (
    LuaTable,
    LuaFunction,
    LuaExternalFunction,
    LuaExternalClosure,
    LuaUserData,
    LuaThread,
)

# ── Per-variant dispatch tables ──────────────────────────────────


def _integer_display(value: int, radix: int) -> str:
    if radix == 16:
        return format(value & 0xFFFFFFFFFFFFFFFF if value < 0 else value, "x")
    return str(value)


def _number_display(v: LuaNumber, radix: int) -> str:
    if v.is_integer:
        return _integer_display(int(v.value), radix)
    return repr(float(v.value))


def _address_display(v: Any, radix: int) -> str:
    return f"0x{v.target_address:x}"


_LUA_TYPE_NAMES: dict[type, Callable[[Any], str]] = {
    LuaError: lambda v: constants.LUA_TYPE_ERROR,
    LuaNil: lambda v: constants.LUA_TYPE_NIL,
    LuaBool: lambda v: constants.LUA_TYPE_BOOL,
    LuaLightUserData: lambda v: constants.LUA_TYPE_LIGHT_USER_DATA,
    LuaNumber: lambda v: (
        constants.LUA_TYPE_INT if v.is_integer else constants.LUA_TYPE_DOUBLE
    ),
    LuaString: lambda v: (
        constants.LUA_TYPE_SHORT_STRING
        if v.extended_type == ExtendedType.SHORT_STRING
        else constants.LUA_TYPE_LONG_STRING
    ),
    LuaTable: lambda v: constants.LUA_TYPE_TABLE,
    LuaFunction: lambda v: constants.LUA_TYPE_LUA_FUNCTION,
    LuaExternalFunction: lambda v: constants.LUA_TYPE_C_FUNCTION,
    LuaExternalClosure: lambda v: constants.LUA_TYPE_C_CLOSURE,
    LuaUserData: lambda v: constants.LUA_TYPE_USER_DATA,
    LuaThread: lambda v: constants.LUA_TYPE_THREAD,
}

_DISPLAY: dict[type, Callable[[Any, int], str]] = {
    LuaError: lambda v, radix: v.message,
    LuaNil: lambda v, radix: "nil",
    LuaBool: lambda v, radix: "true" if v.value else "false",
    LuaLightUserData: lambda v, radix: f"0x{v.value:x}",
    LuaNumber: _number_display,
    LuaString: lambda v, radix: f'"{v.value}"',
    LuaTable: _address_display,
    LuaFunction: _address_display,
    LuaExternalFunction: _address_display,
    LuaExternalClosure: _address_display,
    LuaUserData: _address_display,
    LuaThread: _address_display,
}

# Value equality for scalars, identity for heap objects
_COMPARE_KEY: dict[type, Callable[[Any], Any]] = {
    LuaError: lambda v: v.message,
    LuaNil: lambda v: None,
    LuaBool: lambda v: v.value,
    LuaLightUserData: lambda v: v.value,
    LuaNumber: lambda v: v.value,
    LuaString: lambda v: v.value,
    **{variant: (lambda v: v.target_address) for variant in REFERENCE_VARIANTS},
}

for _table in (_LUA_TYPE_NAMES, _DISPLAY, _COMPARE_KEY):
    assert set(_table) == set(LUA_VALUE_VARIANTS), "variant missing from dispatch table"
