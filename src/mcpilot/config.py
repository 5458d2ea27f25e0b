"""Configuration settings for mcpilot."""

from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # Planning
    PLANNING_MODE: str = "minimal"  # Options: minimal, balanced, full

    # LLM Configuration
    LLM_PROVIDER: str = "openai"  # Options: openai, anthropic
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4.1"
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"

    # MCP servers, e.g. MCP_SERVERS='["http://localhost:9000/mcp"]'
    MCP_SERVERS: List[str] = []
    MCP_TIMEOUT: float = 30.0

    # Runtime diagnostics
    DEBUG_MCP: bool = False
    DEBUG_PROMPT: bool = False
    OBSERVATION_LIMIT: int = 500

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
