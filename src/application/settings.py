"""Application settings configuration."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings, loaded from the environment or a .env file.

    Values are read once and handed to the services through their
    constructors; nothing reads them as globals at call time.
    """

    # Application Configuration
    app_name: str = "Agent Playground"
    app_version: str = "0.1.0"
    app_host: str = "127.0.0.1"
    app_port: int = 8080
    debug: bool = False

    # Logging Configuration
    log_level: str = "INFO"
    log_to_file: bool = False
    log_filename: str = "logs/debug.log"
    log_libraries: list[str] = ["asyncio", "httpx", "httpcore"]
    log_libraries_level: str = "WARNING"

    # Conversation Configuration
    max_iterations: int = 10  # Model round-trips allowed per user submission
    max_parallel_tool_calls: int = 5  # Tool calls executing at the same time within one dispatch
    tool_finish_reasons: list[str] = ["tool_calls", "function_call"]

    # Provider Configuration
    provider_timeout: float = 120.0  # HTTP timeout for provider requests (streams included)

    # Tool Execution Configuration
    tool_timeout: float = 30.0  # HTTP timeout for a single tool request
    proxy_url: Optional[str] = None  # Route tool requests through the passthrough proxy when set
    proxy_timeout: float = 30.0

    # Generators
    title_max_length: int = 50

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables


app_settings = Settings()
