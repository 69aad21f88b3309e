import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

# ---- Runtime environment ----
# "production" hides downstream error messages from API responses.
ENVIRONMENT = os.getenv("ENVIRONMENT") or os.getenv("NODE_ENV", "development")

# ---- HTTP surface ----
PROXY_PATH = os.getenv("PROXY_PATH", "/api/proxy")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

# ---- MongoDB client timeouts (milliseconds) ----
SERVER_SELECTION_TIMEOUT_MS = int(os.getenv("SERVER_SELECTION_TIMEOUT_MS", "5000"))
CONNECT_TIMEOUT_MS = int(os.getenv("CONNECT_TIMEOUT_MS", "5000"))
SOCKET_TIMEOUT_MS = int(os.getenv("SOCKET_TIMEOUT_MS", "30000"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

VERSION = "1.0.0"


@dataclass(frozen=True)
class Settings:
    """Read-only per-process settings handed to the request handler."""

    environment: str = "development"
    server_selection_timeout_ms: int = SERVER_SELECTION_TIMEOUT_MS
    connect_timeout_ms: int = CONNECT_TIMEOUT_MS
    socket_timeout_ms: int = SOCKET_TIMEOUT_MS

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=ENVIRONMENT,
            server_selection_timeout_ms=SERVER_SELECTION_TIMEOUT_MS,
            connect_timeout_ms=CONNECT_TIMEOUT_MS,
            socket_timeout_ms=SOCKET_TIMEOUT_MS,
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
