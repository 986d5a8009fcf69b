from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


# Load environment variables from a local .env file if present.
load_dotenv()


@dataclass(frozen=True)
class GatewayConfig:
    base_url: str
    timeout_seconds: float
    max_retries: int
    backoff_base_seconds: float
    backoff_cap_seconds: float
    use_mock: bool
    mock_delay_scale: float


@dataclass(frozen=True)
class StorageConfig:
    storage_type: str
    data_dir: Path
    database_url: str


@dataclass(frozen=True)
class ServerSettings:
    version: str
    cors_allow_origins: list[str]
    host: str
    port: int


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_float(value: str | None, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _default_data_dir() -> Path:
    override = os.getenv("RAIDESK_DATA_DIR")
    if override:
        return Path(override).expanduser()
    if sys.platform == "win32":
        root = Path(os.getenv("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
        return root / "RAiDesk"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "RAiDesk"
    root = Path(os.getenv("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return root / "raidesk"


def get_gateway_config() -> GatewayConfig:
    base_url = os.getenv("RAIDESK_API_URL", "http://localhost:8000").strip() or "http://localhost:8000"
    timeout_seconds = _parse_float(os.getenv("RAIDESK_API_TIMEOUT"), 30.0)
    if timeout_seconds <= 0:
        timeout_seconds = 30.0
    mock_delay_scale = max(_parse_float(os.getenv("RAIDESK_MOCK_DELAY_SCALE"), 1.0), 0.0)
    return GatewayConfig(
        base_url=base_url.rstrip("/"),
        timeout_seconds=timeout_seconds,
        max_retries=max(_parse_int(os.getenv("RAIDESK_API_MAX_RETRIES"), 3), 0),
        backoff_base_seconds=1.0,
        backoff_cap_seconds=5.0,
        use_mock=_parse_bool(os.getenv("RAIDESK_USE_MOCK"), False),
        mock_delay_scale=mock_delay_scale,
    )


def get_storage_config() -> StorageConfig:
    storage_type = os.getenv("RAIDESK_STORAGE_TYPE", "local").strip().lower()
    if storage_type not in {"local", "sql"}:
        storage_type = "local"
    return StorageConfig(
        storage_type=storage_type,
        data_dir=_default_data_dir(),
        database_url=os.getenv("DATABASE_URL", "").strip(),
    )


def get_server_settings() -> ServerSettings:
    cors_raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    cors_allow_origins = [origin.strip() for origin in cors_raw.split(",") if origin.strip()]
    if "*" in cors_allow_origins:
        raise ValueError("CORS_ALLOW_ORIGINS must not include wildcard '*'")
    return ServerSettings(
        version=os.getenv("RAIDESK_VERSION", "0.1.0"),
        cors_allow_origins=cors_allow_origins,
        host=os.getenv("RAIDESK_HOST", "127.0.0.1"),
        port=_parse_int(os.getenv("RAIDESK_PORT"), 8080),
    )
