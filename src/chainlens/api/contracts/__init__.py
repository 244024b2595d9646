from .cache import CacheStatsResponse, SessionEndedResponse
from .chat import ChatRequest, ChatResponse, ToolUseResponse
from .health import HealthResponse

__all__ = [
    "CacheStatsResponse",
    "ChatRequest",
    "ChatResponse",
    "HealthResponse",
    "SessionEndedResponse",
    "ToolUseResponse",
]
