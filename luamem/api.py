"""Composable entry points for decoding values and resolving function symbols.

Each function takes the memory accessor explicitly so callers decide
which process (or process image) is inspected.
"""

from __future__ import annotations

import logging

from .decoder import decode_value, decode_values
from .function_data import LuaFunctionData, read_closure_proto
from .layout import DEFAULT_LAYOUT, LuaLayout
from .memory import MemoryAccessor
from .symbols import StateSymbols, SymbolStore
from .value_types import LuaExternalFunction, LuaFunction, LuaValue

logger = logging.getLogger(__name__)

__all__ = ["decode_value", "decode_values", "register_closure", "describe_value"]


def register_closure(
    store: SymbolStore,
    accessor: MemoryAccessor,
    state_address: int,
    value: LuaValue,
    layout: LuaLayout = DEFAULT_LAYOUT,
) -> LuaFunctionData | None:
    """Register the prototype behind a Lua closure value with the VM's symbols.

    Args:
        store: The session's symbol store.
        accessor: Memory of the debugged process.
        state_address: Base address of the owning Lua VM.
        value: A decoded value; only ``LuaFunction`` values are registered.
        layout: Build parameters of the target runtime.

    Returns:
        The function metadata held by the store for that prototype (the
        first one registered), or None when the closure, its prototype or
        its source could not be read.
    """
    if not isinstance(value, LuaFunction):
        return None

    proto_address = read_closure_proto(accessor, value.target_address, layout)
    if not proto_address:
        logger.debug("No prototype for closure 0x%x", value.target_address)
        return None

    function = LuaFunctionData.read(accessor, proto_address, layout)
    if function is None:
        return None

    symbols = store.fetch_or_create(state_address)
    symbols.add_source_from_function(accessor, function)
    return symbols.find_function(proto_address)


def describe_value(
    value: LuaValue,
    symbols: StateSymbols | None = None,
    accessor: MemoryAccessor | None = None,
    layout: LuaLayout = DEFAULT_LAYOUT,
    radix: int = 10,
) -> str:
    """Render *value*, naming functions the symbols already know about."""
    if symbols is not None and isinstance(value, LuaExternalFunction):
        name = symbols.fetch_function_name(value.target_address)
        if name is not None:
            return name
    if symbols is not None and accessor is not None and isinstance(value, LuaFunction):
        proto_address = read_closure_proto(accessor, value.target_address, layout)
        function = symbols.find_function(proto_address) if proto_address else None
        if function is not None:
            return symbols.function_display_name(function)
    return value.as_simple_display_string(radix)
