"""Reading Lua ``Proto`` records out of remote memory."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from .decoder import read_string_object
from .layout import DEFAULT_LAYOUT, LuaLayout, LuaVersion
from .memory import MemoryAccessor, ReadResult
from .struct_cursor import StructCursor
from .value_types import LuaError

logger = logging.getLogger(__name__)

# Upper bound on entries walked in any prototype array
MAX_PROTO_ARRAY_ENTRIES = 1 << 16


class FunctionMetadata(ABC):
    """What the symbol store needs from a decoded function.

    Implementations expose ``original_address`` (the prototype address,
    0 while unset), ``source`` / ``source_address`` (populated by
    ``read_source``, ``source`` stays ``None`` on failure) and
    ``definition_start_line``.
    """

    @abstractmethod
    def read_source(self, accessor: MemoryAccessor) -> None:
        ...

    @abstractmethod
    def read_local_functions(self, accessor: MemoryAccessor) -> None:
        ...


# ── Proto field order per version (lobject.h) ────────────────────
# A ``None`` name means the field is skipped.

_PROTO_FIELDS: dict[LuaVersion, tuple[tuple[str | None, str], ...]] = {
    LuaVersion.LUA_51: (
        ("constant_data_address", "pointer"),
        ("code_data_address", "pointer"),
        ("local_function_data_address", "pointer"),
        ("line_info_data_address", "pointer"),
        ("local_variable_data_address", "pointer"),
        ("upvalue_data_address", "pointer"),
        ("source_pointer", "pointer"),
        ("upvalue_size", "int"),
        ("constant_size", "int"),
        ("code_size", "int"),
        ("line_info_size", "int"),
        ("local_function_size", "int"),
        ("local_variable_size", "int"),
        ("definition_start_line", "int"),
        ("definition_end_line", "int"),
        (None, "pointer"),  # gclist
        (None, "byte"),  # nups
        ("argument_count", "byte"),
        ("is_vararg", "byte"),
        ("max_stack_size", "byte"),
    ),
    LuaVersion.LUA_52: (
        ("constant_data_address", "pointer"),
        ("code_data_address", "pointer"),
        ("local_function_data_address", "pointer"),
        ("line_info_data_address", "pointer"),
        ("local_variable_data_address", "pointer"),
        ("upvalue_data_address", "pointer"),
        (None, "pointer"),  # cache
        ("source_pointer", "pointer"),
        ("upvalue_size", "int"),
        ("constant_size", "int"),
        ("code_size", "int"),
        ("line_info_size", "int"),
        ("local_function_size", "int"),
        ("local_variable_size", "int"),
        ("definition_start_line", "int"),
        ("definition_end_line", "int"),
        (None, "pointer"),  # gclist
        ("argument_count", "byte"),
        ("is_vararg", "byte"),
        ("max_stack_size", "byte"),
    ),
    LuaVersion.LUA_53: (
        ("argument_count", "byte"),
        ("is_vararg", "byte"),
        ("max_stack_size", "byte"),
        ("upvalue_size", "int"),
        ("constant_size", "int"),
        ("code_size", "int"),
        ("line_info_size", "int"),
        ("local_function_size", "int"),
        ("local_variable_size", "int"),
        ("definition_start_line", "int"),
        ("definition_end_line", "int"),
        ("constant_data_address", "pointer"),
        ("code_data_address", "pointer"),
        ("local_function_data_address", "pointer"),
        ("line_info_data_address", "pointer"),
        ("local_variable_data_address", "pointer"),
        ("upvalue_data_address", "pointer"),
        (None, "pointer"),  # cache
        ("source_pointer", "pointer"),
    ),
    LuaVersion.LUA_54: (
        ("argument_count", "byte"),
        ("is_vararg", "byte"),
        ("max_stack_size", "byte"),
        ("upvalue_size", "int"),
        ("constant_size", "int"),
        ("code_size", "int"),
        ("line_info_size", "int"),
        ("local_function_size", "int"),
        ("local_variable_size", "int"),
        ("abs_line_info_size", "int"),
        ("definition_start_line", "int"),
        ("definition_end_line", "int"),
        ("constant_data_address", "pointer"),
        ("code_data_address", "pointer"),
        ("local_function_data_address", "pointer"),
        ("upvalue_data_address", "pointer"),
        ("line_info_data_address", "pointer"),
        ("abs_line_info_data_address", "pointer"),
        ("local_variable_data_address", "pointer"),
        ("source_pointer", "pointer"),
    ),
}


def _read_fields(
    cursor: StructCursor, layout: tuple[tuple[str | None, str], ...]
) -> dict[str, int] | None:
    values: dict[str, int] = {}
    missing: list[str] = []
    for name, kind in layout:
        if name is None:
            getattr(cursor, f"skip_{kind}")()
            continue
        value = getattr(cursor, f"read_{kind}")()
        if value is None:
            missing.append(name)
        values[name] = value
    if missing:
        logger.debug("Unreadable prototype fields: %s", ", ".join(missing))
        return None
    return values


def _bounded(count: int, what: str, address: int) -> int:
    if count > MAX_PROTO_ARRAY_ENTRIES:
        logger.debug(
            "Prototype 0x%x claims %d %s; reading the first %d",
            address,
            count,
            what,
            MAX_PROTO_ARRAY_ENTRIES,
        )
        return MAX_PROTO_ARRAY_ENTRIES
    return max(count, 0)


@dataclass
class LocalVariable:
    name: str | None
    start_pc: int
    end_pc: int


@dataclass
class LuaFunctionData(FunctionMetadata):
    """Header of a Lua function prototype plus what has been resolved from it."""

    layout: LuaLayout = DEFAULT_LAYOUT
    original_address: int = 0

    argument_count: int = 0
    is_vararg: bool = False
    max_stack_size: int = 0

    upvalue_size: int = 0
    constant_size: int = 0
    code_size: int = 0
    line_info_size: int = 0
    abs_line_info_size: int = 0
    local_function_size: int = 0
    local_variable_size: int = 0

    definition_start_line: int = 0
    definition_end_line: int = 0

    constant_data_address: int = 0
    code_data_address: int = 0
    local_function_data_address: int = 0
    line_info_data_address: int = 0
    abs_line_info_data_address: int = 0
    local_variable_data_address: int = 0
    upvalue_data_address: int = 0

    source_pointer: int = 0
    source: str | None = None
    source_address: int = 0
    source_result: ReadResult | None = None  # None until read_source runs

    local_functions: list[LuaFunctionData] = field(default_factory=list)
    local_functions_read: bool = False
    local_variables: list[LocalVariable] = field(default_factory=list)

    @classmethod
    def read(
        cls,
        accessor: MemoryAccessor,
        address: int,
        layout: LuaLayout = DEFAULT_LAYOUT,
    ) -> LuaFunctionData | None:
        """Read the prototype header at *address*; ``None`` if any field is unreadable."""
        cursor = StructCursor(accessor, address)
        cursor.skip_common_header()
        fields = _read_fields(cursor, _PROTO_FIELDS[layout.version])
        if fields is None:
            logger.debug("Unreadable prototype at 0x%x", address)
            return None
        fields["is_vararg"] = bool(fields["is_vararg"])
        return cls(layout=layout, original_address=address, **fields)

    @property
    def is_main_chunk(self) -> bool:
        return self.definition_start_line == 0

    def read_source(self, accessor: MemoryAccessor) -> None:
        if self.source_result is not None and self.source_result.is_ok:
            return
        if not self.source_pointer:
            self.source_result = ReadResult.not_present()
            return
        value = read_string_object(accessor, self.layout, self.source_pointer)
        if isinstance(value, LuaError):
            logger.debug(
                "Source of prototype 0x%x unreadable: %s",
                self.original_address,
                value.message,
            )
            self.source_result = ReadResult.read_failed()
            return
        self.source = value.value
        self.source_address = self.source_pointer
        self.source_result = ReadResult.ok(value.value)

    def read_local_functions(self, accessor: MemoryAccessor) -> None:
        """Read the prototypes of functions defined directly inside this one."""
        if self.local_functions_read:
            return
        count = _bounded(
            self.local_function_size, "nested functions", self.original_address
        )
        cursor = StructCursor(accessor, self.local_function_data_address)
        for index in range(count):
            pointer = cursor.read_pointer()
            if pointer is None:
                logger.debug(
                    "Nested function %d of 0x%x unreadable", index, self.original_address
                )
                continue
            nested = LuaFunctionData.read(accessor, pointer, self.layout)
            if nested is not None:
                self.local_functions.append(nested)
        self.local_functions_read = True

    def read_local_variables(self, accessor: MemoryAccessor) -> None:
        """Read ``LocVar`` records: name, first and last active instruction."""
        count = _bounded(
            self.local_variable_size, "local variables", self.original_address
        )
        cursor = StructCursor(accessor, self.local_variable_data_address)
        variables: list[LocalVariable] = []
        for _ in range(count):
            name_pointer = cursor.read_pointer()
            start_pc = cursor.read_int()
            end_pc = cursor.read_int()
            if start_pc is None or end_pc is None:
                continue
            name = None
            if name_pointer:
                decoded = read_string_object(accessor, self.layout, name_pointer)
                if not isinstance(decoded, LuaError):
                    name = decoded.value
            variables.append(LocalVariable(name=name, start_pc=start_pc, end_pc=end_pc))
        self.local_variables = variables


def read_closure_proto(
    accessor: MemoryAccessor,
    closure_address: int,
    layout: LuaLayout = DEFAULT_LAYOUT,
) -> int | None:
    """Return the ``Proto`` pointer held by the Lua closure at *closure_address*."""
    cursor = StructCursor(accessor, closure_address)
    cursor.skip_common_header()
    if layout.version == LuaVersion.LUA_51:
        cursor.skip_byte()  # isC
        cursor.skip_byte()  # nupvalues
        cursor.skip_pointer()  # gclist
        cursor.skip_pointer()  # env
    else:
        cursor.skip_byte()  # nupvalues
        cursor.skip_pointer()  # gclist
    return cursor.read_pointer()
