"""Configuration management for HttpQ control."""

from pydantic import BaseModel
from pydantic_settings import BaseSettings

from httpq.models import ConnectionParams


class HttpQConfig(BaseModel):
    """HttpQ plugin connection settings."""

    host: str = "127.0.0.1"
    port: int = 4800
    password: str = "pass"
    timeout: float = 5.0

    def connection_params(self) -> ConnectionParams:
        return ConnectionParams(host=self.host, port=self.port, password=self.password)


class SyncConfig(BaseModel):
    """Polling and reconciliation settings."""

    poll_interval: float = 1.0
    pending_ttl_ms: int = 5000
    fail_streak_threshold: int = 5
    previous_restarts_track: bool = True
    restart_threshold_ms: int = 3000


class ServerConfig(BaseModel):
    """HTTP API server settings."""

    host: str = "0.0.0.0"
    port: int = 9200


class Settings(BaseSettings):
    """Application settings loaded from environment or config file."""

    httpq: HttpQConfig = HttpQConfig()
    sync: SyncConfig = SyncConfig()
    server: ServerConfig = ServerConfig()

    model_config = {
        "env_prefix": "HTTPQ_",
        "env_nested_delimiter": "__",
    }


def load_settings() -> Settings:
    """Load settings from environment variables.

    Environment variable examples:
        HTTPQ_HTTPQ__HOST=winamp.local
        HTTPQ_SYNC__POLL_INTERVAL=0.5
        HTTPQ_SERVER__PORT=8000
    """
    return Settings()


# Default settings instance
settings = load_settings()
