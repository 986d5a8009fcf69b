from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ..core.errors import StorageError
from ..core.logging.logger import get_logger
from ..core.schemas import Session
from .base import SessionStorage

INDEX_FILE = "sessions.json"

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class LocalSessionStore(SessionStorage):
    """One JSON file per session plus an index of known session ids."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._logger = get_logger("storage")

    def _session_path(self, session_id: str) -> Path:
        if not _SAFE_ID.match(session_id):
            raise StorageError(f"Invalid session id: {session_id!r}")
        return self.directory / f"session_{session_id}.json"

    @property
    def _index_path(self) -> Path:
        return self.directory / INDEX_FILE

    def save(self, session: Session) -> None:
        payload = session.model_dump(mode="json", by_alias=True)
        try:
            self._write_json(self._session_path(session.session_id), payload)
            sessions = self.list_sessions()
            if session.session_id not in sessions:
                sessions.append(session.session_id)
                self._write_json(self._index_path, sessions)
        except OSError as exc:
            self._logger.error("Failed to save session %s: %s", session.session_id, exc)
            raise StorageError("Failed to save session to local storage") from exc

    def load(self, session_id: str) -> Optional[Session]:
        try:
            path = self._session_path(session_id)
        except StorageError:
            return None
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return Session.model_validate(payload)
        except (OSError, ValueError, ValidationError) as exc:
            self._logger.error("Failed to load session %s: %s", session_id, exc)
            return None

    def delete(self, session_id: str) -> None:
        try:
            path = self._session_path(session_id)
            path.unlink(missing_ok=True)
            sessions = self.list_sessions()
            if session_id in sessions:
                self._write_json(self._index_path, [sid for sid in sessions if sid != session_id])
        except OSError as exc:
            self._logger.error("Failed to delete session %s: %s", session_id, exc)
            raise StorageError("Failed to delete session from local storage") from exc

    def list_sessions(self) -> List[str]:
        if not self._index_path.exists():
            return []
        try:
            payload = json.loads(self._index_path.read_text(encoding="utf-8") or "[]")
        except (OSError, ValueError) as exc:
            self._logger.error("Failed to list sessions: %s", exc)
            return []
        if not isinstance(payload, list):
            return []
        return [str(item) for item in payload]

    @staticmethod
    def _write_json(path: Path, payload: object) -> None:
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp_path, path)
