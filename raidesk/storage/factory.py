from __future__ import annotations

from ..config.runtime import StorageConfig, get_storage_config
from .base import SessionStorage
from .local_store import LocalSessionStore
from .sql_adapter import SQLSessionAdapter


def create_storage(storage_type: str | None = None, config: StorageConfig | None = None) -> SessionStorage:
    config = config or get_storage_config()
    selected = (storage_type or config.storage_type).strip().lower()
    if selected == "sql":
        return SQLSessionAdapter(config.database_url)
    return LocalSessionStore(config.data_dir / "sessions")
