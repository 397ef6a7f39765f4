from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List

from dotenv import load_dotenv

DEFAULT_MONGO_URL = "mongodb://localhost:27017/todo-backend"


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables (and a local .env file).

    Env vars:
    - PERSISTENCE_BACKEND: 'mongo' (default) or 'memory'
    - MONGO_URL: MongoDB connection string. Default 'mongodb://localhost:27017/todo-backend'
    - MONGO_CONNECT_TIMEOUT_MS / MONGO_SOCKET_TIMEOUT_MS / MONGO_SERVER_SELECTION_TIMEOUT_MS:
      driver timeouts in milliseconds
    - HOST: bind address for the HTTP server (default: 0.0.0.0)
    - PORT: listen port (default: 5000)
    - API_PREFIX: base path of the todo routes (default: /api/todos)
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: root logging level (default: INFO)
    """

    persistence_backend: str
    mongo_url: str
    mongo_url_configured: bool
    mongo_connect_timeout_ms: int
    mongo_socket_timeout_ms: int
    mongo_server_selection_timeout_ms: int
    host: str
    port: int
    api_prefix: str
    cors_allow_origins: List[str]
    log_level: str


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_int(value: str, default: int) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def _normalize_prefix(prefix: str) -> str:
    p = "/" + prefix.strip().strip("/")
    return p if p != "/" else "/api/todos"


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    load_dotenv(override=False)

    backend = _get_env("PERSISTENCE_BACKEND", "mongo").strip().lower()
    if backend not in {"mongo", "memory"}:
        backend = "mongo"

    raw_url = os.getenv("MONGO_URL", "").strip()

    return Settings(
        persistence_backend=backend,
        mongo_url=raw_url or DEFAULT_MONGO_URL,
        mongo_url_configured=bool(raw_url),
        mongo_connect_timeout_ms=_parse_int(_get_env("MONGO_CONNECT_TIMEOUT_MS", "10000"), 10000),
        mongo_socket_timeout_ms=_parse_int(_get_env("MONGO_SOCKET_TIMEOUT_MS", "45000"), 45000),
        mongo_server_selection_timeout_ms=_parse_int(
            _get_env("MONGO_SERVER_SELECTION_TIMEOUT_MS", "5000"), 5000
        ),
        host=_get_env("HOST", "0.0.0.0").strip(),
        port=_parse_int(_get_env("PORT", "5000"), 5000),
        api_prefix=_normalize_prefix(_get_env("API_PREFIX", "/api/todos")),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
    )
