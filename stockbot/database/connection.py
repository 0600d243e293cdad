from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from stockbot.config.settings import DATABASE_URL, settings

"""
Установка и инициализация подключения к бд с использованием SQLAlchemy
"""

# создание асинхронного движка для работы с бд
engine = create_async_engine(DATABASE_URL, echo = settings.db_echo, pool_pre_ping = True)

# фабрика генерации асинхронных сессий
AsyncSessionLocal = async_sessionmaker(
    bind = engine, expire_on_commit = False, class_ = AsyncSession)

# Базовый класс для ORM модели
Base = declarative_base()

async def init_db():
    """
    Инициализация бд, создание таблиц, определенных в models.py
    """
    # регистрация моделей в metadata
    from stockbot.database import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
