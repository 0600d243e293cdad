from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

"""
Сессии пользователей.
Сессия - явный объект с временем истечения, хранилище сессий передается
в обработчики через middleware.
"""


@dataclass(frozen=True)
class UserSession:
    """Сессия вошедшего пользователя."""
    user_id: int
    user_name: str
    telegram_id: int
    created_at: datetime
    expires_at: datetime

    @classmethod
    def start(cls, user_id: int, user_name: str, telegram_id: int, now: datetime, ttl: timedelta) -> "UserSession":
        return cls(
            user_id=user_id,
            user_name=user_name,
            telegram_id=telegram_id,
            created_at=now,
            expires_at=now + ttl,
        )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class SessionStore:
    """
    Хранилище сессий в памяти процесса, ключ - Telegram ID.
    """
    def __init__(self):
        self._sessions: Dict[int, UserSession] = {}

    def put(self, session: UserSession) -> None:
        self._sessions[session.telegram_id] = session

    def get(self, telegram_id: int, now: datetime) -> Optional[UserSession]:
        """
        Возвращает активную сессию; истекшая удаляется.
        """
        session = self._sessions.get(telegram_id)
        if session is None:
            return None
        if session.is_expired(now):
            del self._sessions[telegram_id]
            return None
        return session

    def remove(self, telegram_id: int) -> bool:
        return self._sessions.pop(telegram_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)
