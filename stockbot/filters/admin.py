from typing import Iterable, Optional, Union

from aiogram import types
from aiogram.filters import BaseFilter

from stockbot.config.settings import settings

"""
Доступ к админ-панели (импорт, пользователи, статистика).
Админ - Telegram ID из TG_ADMIN_IDS, вход по логину для этого не нужен.
"""


def is_admin_user(user: Optional[types.User], admin_ids: Iterable[int]) -> bool:
    return user is not None and user.id in set(admin_ids)


class AdminFilter(BaseFilter):
    """
    Пропускает в роутер только админов, для сообщений и для callback.
    """
    def __init__(self, admin_ids: Optional[Iterable[int]] = None):
        self.admin_ids = frozenset(settings.admin_ids if admin_ids is None else admin_ids)

    async def __call__(self, event: Union[types.Message, types.CallbackQuery]) -> bool:
        return is_admin_user(event.from_user, self.admin_ids)
