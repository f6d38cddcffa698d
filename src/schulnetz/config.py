"""Client configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings


class PortalConfig(BaseSettings):
    """SchulNetz client configuration loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # Portal account
    schulnetz_provider: str = Field(
        default="",
        description="Portal host without scheme, e.g. 'schulnetz.example.ch'",
    )
    schulnetz_user: str = Field(
        default="",
        description="Portal username",
    )
    schulnetz_pass: str = Field(
        default="",
        description="Portal password",
    )

    # HTTP
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Per-request timeout for the HTTP transport",
    )
    user_agent: str = Field(
        default="schulnetz-client",
        description="User-Agent header sent with every request",
    )

    # Session settings
    heartbeat_interval_seconds: float = Field(
        default=25 * 60,
        description="Interval between reset_timeout requests while logged in",
    )

    # Parsing
    timezone: str = Field(
        default="Europe/Zurich",
        description="Time zone the portal prints its dates in",
    )

    # Paths
    snapshot_dir: str = Field(
        default="data/snapshots",
        description="Directory for fetched snapshots used by --diff",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


_config: PortalConfig | None = None


def get_config() -> PortalConfig:
    """Get the client configuration singleton.

    Returns:
        PortalConfig: Client configuration instance
    """
    global _config
    if _config is None:
        _config = PortalConfig()
    return _config
