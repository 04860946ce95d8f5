"""Per-VM caches of sources, functions, names and script text."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .constants import CHUNK_ID_LENGTH
from .function_data import FunctionMetadata
from .memory import MemoryAccessor

logger = logging.getLogger(__name__)

_STRING_CHUNK_OVERHEAD = len('[string "..."]')


def resolve_source_name(source: str) -> str:
    """Display name for a chunk source, following Lua's chunk-id rules.

    ``@file.lua`` names a file, ``=name`` is used verbatim, and anything
    else is the chunk text itself.
    """
    if source.startswith(("@", "=")):
        return source[1:]
    first_line, newline, _ = source.partition("\n")
    limit = CHUNK_ID_LENGTH - _STRING_CHUNK_OVERHEAD
    if newline or len(first_line) > limit:
        return f'[string "{first_line[:limit]}..."]'
    return f'[string "{first_line}"]'


# ── Data types ───────────────────────────────────────────────────


@dataclass
class ScriptSymbols:
    """Text of a chunk with no file behind it (``load``/``loadstring``)."""

    source_file_name: str
    script_content: str
    resolved_file_name: str = ""


@dataclass
class SourceSymbols:
    source_file_name: str
    address: int = 0
    resolved_file_name: str = ""
    # prototype address → function; the first registration is kept
    known_functions: dict[int, FunctionMetadata] = field(default_factory=dict)


@dataclass
class StateSymbols:
    """Everything known about one Lua VM instance."""

    known_sources: dict[str, SourceSymbols] = field(default_factory=dict)
    function_names: dict[int, str] = field(default_factory=dict)
    known_scripts: dict[str, ScriptSymbols] = field(default_factory=dict)

    def add_source_from_function(
        self, accessor: MemoryAccessor, function: FunctionMetadata
    ) -> bool:
        """Register *function* under its source.

        Returns True when the function was newly registered. Functions
        whose source cannot be read are not registered; a function
        already known at the same address is left untouched.
        """
        if function.original_address == 0:
            raise ValueError("Initialize function data before adding to symbol store")

        function.read_source(accessor)
        if function.source is None:
            return False

        source = self.known_sources.get(function.source)
        if source is None:
            source = SourceSymbols(
                source_file_name=function.source,
                address=function.source_address,
                resolved_file_name=resolve_source_name(function.source),
            )
            self.known_sources[function.source] = source
            logger.debug(
                "New source %s at 0x%x", source.resolved_file_name, source.address
            )

        if function.original_address in source.known_functions:
            return False
        source.known_functions[function.original_address] = function

        if function.definition_start_line == 0:
            function.read_local_functions(accessor)
        return True

    def fetch_source(self, source_name: str) -> SourceSymbols | None:
        return self.known_sources.get(source_name)

    def find_function(self, address: int) -> FunctionMetadata | None:
        for source in self.known_sources.values():
            function = source.known_functions.get(address)
            if function is not None:
                return function
        return None

    def add_function_name(self, address: int, name: str) -> None:
        self.function_names[address] = name

    def fetch_function_name(self, address: int) -> str | None:
        return self.function_names.get(address)

    def add_script_source(self, script_name: str, script_content: str) -> None:
        self.known_scripts[script_name] = ScriptSymbols(
            source_file_name=script_name,
            script_content=script_content,
            resolved_file_name=resolve_source_name(script_name),
        )

    def fetch_script_source(self, script_name: str) -> ScriptSymbols | None:
        return self.known_scripts.get(script_name)

    def function_display_name(self, function: FunctionMetadata) -> str:
        name = self.fetch_function_name(function.original_address)
        if name is not None:
            return name
        if function.source is not None:
            return (
                f"{resolve_source_name(function.source)}:"
                f"{function.definition_start_line}"
            )
        return f"0x{function.original_address:x}"


@dataclass
class SymbolStore:
    """Process-wide registry of per-VM symbols, keyed by VM base address."""

    known_states: dict[int, StateSymbols] = field(default_factory=dict)

    def fetch_or_create(self, state_address: int) -> StateSymbols:
        symbols = self.known_states.get(state_address)
        if symbols is None:
            symbols = StateSymbols()
            self.known_states[state_address] = symbols
            logger.info("Tracking Lua state 0x%x", state_address)
        return symbols

    def remove(self, state_address: int) -> None:
        if self.known_states.pop(state_address, None) is not None:
            logger.info("Dropped symbols of Lua state 0x%x", state_address)

    def __contains__(self, state_address: int) -> bool:
        return state_address in self.known_states

    def __len__(self) -> int:
        return len(self.known_states)
