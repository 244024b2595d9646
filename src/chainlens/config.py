"""Application Configuration

Type-safe configuration using Pydantic Settings for environment variable handling.

Patterns:
- One aliased field per environment variable, grouped by concern
- Sensible defaults so the memory backend runs with no environment at all
- Lists and mappings are read from JSON-encoded variables
  (e.g. CORE_TOOLS='["getBalance","getGasPrice"]')
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

from .domain.conversation_cache import DEFAULT_CORE_TOOLS, DEFAULT_FALLBACK_TOOLS
from .domain.domain_type import CacheBackend, Intent, ToolCategory
from .domain.intent import DEFAULT_INTENT_KEYWORDS, DEFAULT_INTENT_PRIORITY
from .domain.tool_cache import DEFAULT_CATEGORY_TTLS

_DOMAIN_DIR = Path(__file__).parent / "domain"


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # =============================================================================
    # APPLICATION
    # =============================================================================

    app_name: str = Field(default="chainlens", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    app_description: str = Field(
        default="Turn-processing core for an Arbitrum analytics chat agent",
        alias="APP_DESCRIPTION",
    )
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # =============================================================================
    # API CONFIGURATION
    # =============================================================================

    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # CORS Settings
    cors_origins: str = Field(default="", alias="CORS_ORIGINS")
    cors_credentials: bool = Field(default=False, alias="CORS_CREDENTIALS")
    cors_methods: str = Field(default="*", alias="CORS_METHODS")
    cors_headers: str = Field(default="*", alias="CORS_HEADERS")

    # =============================================================================
    # CACHE & SESSION STORAGE
    # =============================================================================

    cache_backend: CacheBackend = Field(default=CacheBackend.MEMORY, alias="CACHE_BACKEND")
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    redis_socket_timeout: float = Field(default=2.0, alias="REDIS_SOCKET_TIMEOUT")
    cache_prefix: str = Field(default="chainlens:", alias="CACHE_PREFIX")

    session_ttl: int = Field(default=3600, gt=0, alias="SESSION_TTL")
    session_capacity: int = Field(default=10_000, gt=0, alias="SESSION_CAPACITY")
    tool_cache_capacity: int = Field(default=1000, gt=0, alias="TOOL_CACHE_CAPACITY")
    cache_shards: int = Field(default=8, ge=1, alias="CACHE_SHARDS")
    sweep_interval_seconds: float = Field(default=60.0, gt=0, alias="SWEEP_INTERVAL_SECONDS")

    tool_default_ttl: int = Field(default=300, gt=0, alias="TOOL_DEFAULT_TTL")
    tool_category_ttls: dict[ToolCategory, int] = Field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_TTLS),
        alias="TOOL_CATEGORY_TTLS",
    )

    # =============================================================================
    # CONVERSATION STATE
    # =============================================================================

    history_limit: int = Field(default=10, ge=2, alias="HISTORY_LIMIT")
    max_active_entities: int = Field(default=8, ge=1, alias="MAX_ACTIVE_ENTITIES")
    max_tool_history: int = Field(default=3, ge=1, alias="MAX_TOOL_HISTORY")
    intent_shift_threshold: int = Field(default=2, ge=1, alias="INTENT_SHIFT_THRESHOLD")

    # Diversity policy
    min_diversity: int = Field(default=8, ge=1, alias="MIN_DIVERSITY")
    max_diversity: int = Field(default=15, ge=1, alias="MAX_DIVERSITY")
    core_tools: list[str] = Field(default_factory=lambda: list(DEFAULT_CORE_TOOLS), alias="CORE_TOOLS")
    fallback_tools: list[str] = Field(default_factory=lambda: list(DEFAULT_FALLBACK_TOOLS), alias="FALLBACK_TOOLS")

    # Intent inference
    intent_keywords: dict[Intent, list[str]] = Field(
        default_factory=lambda: {intent: list(words) for intent, words in DEFAULT_INTENT_KEYWORDS.items()},
        alias="INTENT_KEYWORDS",
    )
    intent_priority: list[Intent] = Field(
        default_factory=lambda: list(DEFAULT_INTENT_PRIORITY),
        alias="INTENT_PRIORITY",
    )

    # Personas
    persona_catalog_path: str = Field(default=str(_DOMAIN_DIR / "personas.json"), alias="PERSONA_CATALOG_PATH")

    # =============================================================================
    # LLM CONFIGURATION
    # =============================================================================

    llm_model: str = Field(default="anthropic:claude-sonnet-4-5", alias="LLM_MODEL")
    llm_timeout: float = Field(default=30.0, gt=0, alias="LLM_TIMEOUT")
    llm_temperature: float = Field(default=0.2, ge=0, alias="LLM_TEMPERATURE")
    llm_max_tokens: int = Field(default=1024, gt=0, alias="LLM_MAX_TOKENS")

    # =============================================================================
    # TOOL PROVIDER (MCP)
    # =============================================================================

    mcp_server_url: str = Field(default="http://localhost:3001", alias="MCP_SERVER_URL")
    mcp_timeout: float = Field(default=30.0, gt=0, alias="MCP_TIMEOUT")
    mcp_catalog_ttl: float = Field(default=300.0, ge=0, alias="MCP_CATALOG_TTL")
    tool_catalog_path: str = Field(default=str(_DOMAIN_DIR / "tool_catalog.json"), alias="TOOL_CATALOG_PATH")

    # =============================================================================
    # ANALYTICS
    # =============================================================================

    analytics_enabled: bool = Field(default=False, alias="ANALYTICS_ENABLED")
    qdrant_url: str = Field(default="http://localhost:6333", alias="QDRANT_URL")
    qdrant_collection: str = Field(default="tool_invocations", alias="QDRANT_COLLECTION")
    ollama_base_url: str = Field(default="http://localhost:11434", alias="OLLAMA_BASE_URL")
    ollama_embedding_model: str = Field(default="nomic-embed-text", alias="OLLAMA_EMBEDDING_MODEL")

    model_config = {"env_file": ".env", "case_sensitive": False, "extra": "ignore", "populate_by_name": True}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.model_validate({})


settings = get_settings()
