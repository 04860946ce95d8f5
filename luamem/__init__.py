"""Lua VM memory inspection: value decoding and symbol caching."""

from .api import (  # noqa: F401
    decode_value,
    decode_values,
    register_closure,
    describe_value,
)
from .layout import LuaLayout, LuaVersion  # noqa: F401
from .memory import MemoryAccessor, ProcessImage  # noqa: F401
from .symbols import SymbolStore  # noqa: F401
