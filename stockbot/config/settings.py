import os
from typing import List
from dotenv import load_dotenv

"""
Файл конфигурации.
Создает класс Settings, который хранит:
- настройки базы данных
- токен тг
- список админов
- параметры поиска, импорта и пользовательских сессий
"""

load_dotenv()


def _parse_admin_ids(raw: str) -> List[int]:
    """Парсит список ID админов, убирая комментарии (все после #)"""
    clean = raw.split('#')[0].strip()
    return [int(item.strip()) for item in clean.split(",") if item.strip().isdigit()]


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Инициализация из .env
    """
    def __init__(self):
        # Токен Telegram бота
        self.bot_token = os.getenv("TG_BOT_TOKEN")

        # Настройки базы данных
        self.db_url_override = os.getenv("DATABASE_URL")
        self.db_host = os.getenv("DB_HOST", "localhost")
        self.db_port = int(os.getenv("DB_PORT", "3306"))
        self.db_user = os.getenv("DB_USER", "root")
        self.db_pass = os.getenv("DB_PASS", "")
        self.db_name = os.getenv("DB_NAME", "")
        self.db_echo = _parse_bool(os.getenv("DB_ECHO", "false"))

        # Список ID администраторов
        self.admin_ids = _parse_admin_ids(os.getenv("TG_ADMIN_IDS", ""))

        # Поиск
        self.search_page_size = int(os.getenv("SEARCH_PAGE_SIZE", "10"))
        self.store_timeout = float(os.getenv("STORE_TIMEOUT", "5.0"))

        # Сессии пользователей и импорт
        self.session_ttl_hours = int(os.getenv("SESSION_TTL_HOURS", "24"))
        self.import_batch_size = int(os.getenv("IMPORT_BATCH_SIZE", "500"))

    def validate(self) -> None:
        """
        Проверка обязательных параметров перед запуском бота
        """
        if not self.bot_token:
            raise ValueError("TG_BOT_TOKEN is required")
        if not self.db_url_override and not self.db_name:
            raise ValueError("DB_NAME or DATABASE_URL is required")
        if self.search_page_size < 1:
            raise ValueError("SEARCH_PAGE_SIZE must be >= 1")
        if self.import_batch_size < 1:
            raise ValueError("IMPORT_BATCH_SIZE must be >= 1")

    # превращает метод в атрибут: settings.database_url() -> settings.database_url
    @property
    def database_url(self) -> str:
        """Формирует строку подключения к базе данных"""
        if self.db_url_override:
            return self.db_url_override
        return f"mysql+aiomysql://{self.db_user}:{self.db_pass}@{self.db_host}:{self.db_port}/{self.db_name}"

# Создаем экземпляр настроек для использования в приложении
settings = Settings()

DATABASE_URL = settings.database_url
