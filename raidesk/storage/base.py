from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from ..core.schemas import Session


class SessionStorage(ABC):
    """Persistence for serialized sessions, keyed by session id."""

    @abstractmethod
    def save(self, session: Session) -> None:
        raise NotImplementedError

    @abstractmethod
    def load(self, session_id: str) -> Optional[Session]:
        raise NotImplementedError

    @abstractmethod
    def delete(self, session_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_sessions(self) -> List[str]:
        raise NotImplementedError
