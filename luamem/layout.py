"""Which Lua build the target process hosts."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .constants import DEFAULT_MAX_STRING_LENGTH, DEFAULT_SHORT_STRING_LIMIT


class LuaVersion(str, Enum):
    LUA_51 = "5.1"
    LUA_52 = "5.2"
    LUA_53 = "5.3"
    LUA_54 = "5.4"


class LuaLayout(BaseModel):
    """Build parameters the decoder needs; pointer width always comes from the accessor."""

    model_config = ConfigDict(frozen=True)

    version: LuaVersion = LuaVersion.LUA_53
    max_string_length: int = Field(default=DEFAULT_MAX_STRING_LENGTH, gt=0)
    short_string_limit: int = Field(default=DEFAULT_SHORT_STRING_LIMIT, ge=0)
    read_table_metatables: bool = True

    @property
    def byte_tag(self) -> bool:
        """5.4 stores the TValue tag as ``lu_byte``; earlier versions use ``int``."""
        return self.version == LuaVersion.LUA_54

    @property
    def aligned_string_payload(self) -> bool:
        """5.1-5.3 place string bytes after the header padded to ``L_Umaxalign``."""
        return self.version != LuaVersion.LUA_54


DEFAULT_LAYOUT = LuaLayout()
