"""API router exports"""

from .cache import router as cache_router
from .chat import router as chat_router
from .health import router as health_router

__all__ = ["cache_router", "chat_router", "health_router"]
