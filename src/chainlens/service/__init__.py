"""Infrastructure services and port adapters."""

from .chat import CacheStats, ChatService, create_chat_service

__all__ = ["CacheStats", "ChatService", "create_chat_service"]
