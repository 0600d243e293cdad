import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stockbot.core.exceptions import AuthenticationError
from stockbot.core.session import SessionStore, UserSession
from stockbot.database.models import User
from stockbot.database.repositories import UserRepository

logger = logging.getLogger(__name__)

HASH_ALGORITHM = "pbkdf2_sha256"
HASH_ITERATIONS = 260_000
MIN_PASSWORD_LENGTH = 4


def hash_password(password: str, salt: Optional[str] = None, iterations: int = HASH_ITERATIONS) -> str:
    """
    Хеш пароля в формате pbkdf2_sha256$iterations$salt$hash
    """
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    return f"{HASH_ALGORITHM}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """
    Проверка пароля против сохраненного хеша (сравнение за постоянное время)
    """
    try:
        algorithm, iterations, salt, _ = encoded.split("$", 3)
        iterations_count = int(iterations)
    except ValueError:
        return False
    if algorithm != HASH_ALGORITHM:
        return False
    expected = hash_password(password, salt=salt, iterations=iterations_count)
    return hmac.compare_digest(expected, encoded)


class AuthService:
    """
    Сервис аутентификации: вход, выход, смена пароля
    """
    def __init__(self, session: AsyncSession, session_store: SessionStore, ttl_hours: int = 24):
        self.session = session
        self.user_repo = UserRepository(session)
        self.session_store = session_store
        self.ttl = timedelta(hours=ttl_hours)

    async def authenticate(self, name: str, password: str, telegram_id: int,
                           now: Optional[datetime] = None) -> UserSession:
        """
        Проверяет имя и пароль, создает сессию.

        Raises:
            AuthenticationError: неверные данные или пользователь не активен
        """
        name = (name or "").strip()
        if not name or not password:
            raise AuthenticationError("Имя пользователя и пароль обязательны")

        user = await self.user_repo.get_active_by_name(name)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning(f"Неудачная попытка входа: пользователь '{name}', Telegram ID {telegram_id}")
            raise AuthenticationError("Неверное имя пользователя или пароль")

        user_session = UserSession.start(
            user_id=user.id,
            user_name=user.name,
            telegram_id=telegram_id,
            now=now or datetime.now(),
            ttl=self.ttl,
        )
        self.session_store.put(user_session)
        logger.info(f"Пользователь '{user.name}' вошел (Telegram ID {telegram_id})")
        return user_session

    def logout(self, telegram_id: int) -> bool:
        removed = self.session_store.remove(telegram_id)
        if removed:
            logger.info(f"Сессия Telegram ID {telegram_id} закрыта")
        return removed

    async def change_password(self, user_id: int, old_password: str, new_password: str) -> None:
        """
        Смена пароля с проверкой старого.

        Raises:
            AuthenticationError: старый пароль неверен или новый слишком короткий
        """
        user = await self.user_repo.get_by_id(user_id)
        if user is None or not user.active or not verify_password(old_password, user.password_hash):
            raise AuthenticationError("Текущий пароль неверен")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise AuthenticationError(f"Новый пароль должен содержать минимум {MIN_PASSWORD_LENGTH} символа")

        await self.user_repo.update_password(user_id, hash_password(new_password))
        logger.info(f"Пароль пользователя {user.name} изменен")

    async def create_user(self, name: str, password: str, active: bool = True) -> User:
        """
        Создать пользователя (используется админом)
        """
        name = name.strip()
        if not name or len(name) > 255:
            raise AuthenticationError("Имя пользователя должно быть от 1 до 255 символов")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthenticationError(f"Пароль должен содержать минимум {MIN_PASSWORD_LENGTH} символа")
        user = await self.user_repo.create(name, hash_password(password), active=active)
        logger.info(f"Создан пользователь '{name}'")
        return user
