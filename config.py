"""
Configuration for the Task Orchestrator.

Environment Variables:
    ANTHROPIC_API_KEY   - Primary: Your Anthropic/Claude API key
    OPENAI_API_KEY      - Fallback: Your OpenAI API key (if no Anthropic key)
    TAVILY_API_KEY      - Optional: Tavily API key for the "search" action
    LLM_MODEL           - Optional: LLM model (default: claude-sonnet-4-20250514)
    LLM_PROVIDER        - Optional: LLM provider (default: anthropic)
    AGENT_MOCK_MODE     - Optional: "true" to use canned outputs, no network
    CACHE_DB_PATH       - Optional: SQLite file for the response cache

Create a .env file in this directory with:

    ANTHROPIC_API_KEY=sk-ant-your-key-here
    TAVILY_API_KEY=tvly-your-key-here
    LLM_MODEL=claude-sonnet-4-20250514
"""

import os
from dataclasses import dataclass
from typing import Optional

# Loop budgets for the session driver
DEFAULT_MAX_LOOPS_FREE = 4
DEFAULT_MAX_LOOPS_PAID = 16
DEFAULT_MAX_LOOPS_CUSTOM_API_KEY = 50

DEFAULT_MAX_TOKENS = 400
DEFAULT_TEMPERATURE = 0.9


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Application configuration."""

    # LLM Settings (Claude/Anthropic is primary)
    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None  # Fallback
    tavily_api_key: Optional[str] = None
    llm_model: str = "claude-sonnet-4-20250514"
    llm_provider: str = "anthropic"
    llm_temperature: float = DEFAULT_TEMPERATURE
    llm_max_tokens: int = DEFAULT_MAX_TOKENS
    language: str = "English"

    # Agent Settings
    mock_mode: bool = False
    max_loops: int = DEFAULT_MAX_LOOPS_FREE
    max_retries: int = 3
    retry_initial_delay: float = 1.0

    # Response cache
    cache_db_path: str = ".cache/responses.sqlite3"
    cache_flag_path: str = ".cache/memory-only.flag"
    cache_ttl_seconds: int = 3600
    cache_op_timeout_seconds: float = 3.0

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        # Auto-detect provider based on available keys
        anthropic_key = os.getenv("ANTHROPIC_API_KEY")
        openai_key = os.getenv("OPENAI_API_KEY")

        if anthropic_key:
            provider = "anthropic"
            default_model = "claude-sonnet-4-20250514"
        elif openai_key:
            provider = "openai"
            default_model = "gpt-4o-mini"
        else:
            provider = "anthropic"
            default_model = "claude-sonnet-4-20250514"

        return cls(
            anthropic_api_key=anthropic_key,
            openai_api_key=openai_key,
            tavily_api_key=os.getenv("TAVILY_API_KEY"),
            llm_model=os.getenv("LLM_MODEL", default_model),
            llm_provider=os.getenv("LLM_PROVIDER", provider),
            llm_temperature=float(os.getenv("LLM_TEMPERATURE", str(DEFAULT_TEMPERATURE))),
            llm_max_tokens=int(os.getenv("LLM_MAX_TOKENS", str(DEFAULT_MAX_TOKENS))),
            language=os.getenv("AGENT_LANGUAGE", "English"),
            mock_mode=_env_flag("AGENT_MOCK_MODE"),
            max_loops=int(os.getenv("MAX_LOOPS", str(DEFAULT_MAX_LOOPS_FREE))),
            max_retries=int(os.getenv("MAX_RETRIES", "3")),
            retry_initial_delay=float(os.getenv("RETRY_INITIAL_DELAY", "1.0")),
            cache_db_path=os.getenv("CACHE_DB_PATH", ".cache/responses.sqlite3"),
            cache_flag_path=os.getenv("CACHE_FLAG_PATH", ".cache/memory-only.flag"),
            cache_ttl_seconds=int(os.getenv("CACHE_TTL_SECONDS", "3600")),
            cache_op_timeout_seconds=float(os.getenv("CACHE_OP_TIMEOUT_SECONDS", "3.0")),
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=int(os.getenv("API_PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def validate(self) -> bool:
        """Check if required configuration is present."""
        return self.mock_mode or bool(self.anthropic_api_key or self.openai_api_key)

    def get_api_key(self) -> Optional[str]:
        """Get the appropriate API key based on provider."""
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return self.openai_api_key


# Global config instance
config = Config.from_env()
