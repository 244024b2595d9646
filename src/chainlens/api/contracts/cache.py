"""Cache inspection contracts."""

from pydantic import BaseModel, Field

from ...domain.domain_type import CacheBackend


class CacheStatsResponse(BaseModel):
    """Store sizes and tool cache counters."""

    backend: CacheBackend
    sessions: int = Field(ge=0)
    conversations: int = Field(ge=0)
    tool_results: int = Field(ge=0)
    tool_hits: int = Field(ge=0)
    tool_misses: int = Field(ge=0)


class SessionEndedResponse(BaseModel):
    session_id: str
    removed: bool
