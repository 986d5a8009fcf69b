from __future__ import annotations

import os
from typing import List, Optional

from ..core.logging.logger import get_logger
from ..core.schemas import Session
from .base import SessionStorage


class SQLSessionAdapter(SessionStorage):
    """Relational session storage placeholder.

    Writes fail fast with ``NotImplementedError``. Reads behave like an empty
    store so callers can switch to it during an incremental rollout.

    Planned layout: a ``sessions`` table keyed by ``session_id`` holding the
    session JSON, with an index on ``updated_at``.
    """

    def __init__(self, database_url: str | None = None) -> None:
        self.database_url = database_url or os.getenv("DATABASE_URL", "")
        self._logger = get_logger("storage")

    def save(self, session: Session) -> None:
        self._logger.warning("SQLSessionAdapter.save is not implemented")
        raise NotImplementedError("SQL storage is not implemented; use the local session store.")

    def load(self, session_id: str) -> Optional[Session]:
        self._logger.warning("SQLSessionAdapter.load is not implemented")
        return None

    def delete(self, session_id: str) -> None:
        self._logger.warning("SQLSessionAdapter.delete is not implemented")
        raise NotImplementedError("SQL storage is not implemented; use the local session store.")

    def list_sessions(self) -> List[str]:
        self._logger.warning("SQLSessionAdapter.list_sessions is not implemented")
        return []
