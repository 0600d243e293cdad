from datetime import datetime
from typing import Dict, Any, Callable, Awaitable, List, Optional
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject, User, Message, CallbackQuery
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stockbot.core.session import SessionStore
from stockbot.filters.admin import is_admin_user


def _event_user(event: TelegramObject) -> Optional[User]:
    if isinstance(event, (Message, CallbackQuery)):
        return event.from_user
    return None


class AdminMiddleware(BaseMiddleware):
    """
    Проверка админ прав добавление флага is_admin в handler
    """
    def __init__(self, admin_ids: List[int]):
        self.admin_ids = set(admin_ids)

    async def __call__(
            self,
            handler: Callable[[TelegramObject, Dict[str,Any]], Awaitable[Any]],
            event: TelegramObject,
            data: Dict[str,Any]
    ) -> Any:
        user = _event_user(event)
        data["is_admin"] = is_admin_user(user, self.admin_ids)
        return await handler(event, data)


class UserSessionMiddleware(BaseMiddleware):
    """
    Добавляет в handler хранилище сессий (session_store)
    и текущую сессию пользователя (user_session или None)
    """
    def __init__(self, session_store: SessionStore):
        self.session_store = session_store

    async def __call__(
            self,
            handler: Callable[[TelegramObject, Dict[str,Any]], Awaitable[Any]],
            event: TelegramObject,
            data: Dict[str,Any]
    ) -> Any:
        user = _event_user(event)
        data["session_store"] = self.session_store
        data["user_session"] = self.session_store.get(user.id, datetime.now()) if user else None
        return await handler(event, data)


class DatabaseSessionMiddleware(BaseMiddleware):
    """
    Управление сессиями бд
    Добавляет сессию в контекст handler'а и закрывает ее после выполнения.
    Фабрику сессий (session_factory) тоже передаем - ее использует поиск.
    """
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        # Создаем новую сессию для каждого запроса
        async with self.session_factory() as session:
            data["session"] = session
            data["session_factory"] = self.session_factory
            return await handler(event, data)
