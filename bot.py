import asyncio
import datetime
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from sqlalchemy import text

from stockbot.config.settings import settings
from stockbot.core.session import SessionStore
from stockbot.database.connection import init_db, AsyncSessionLocal
from stockbot.database.repositories import ProductRepository, EquivalenceRepository
from stockbot.handlers import register_all_handlers
from stockbot.middlewares.auth import AdminMiddleware, DatabaseSessionMiddleware, UserSessionMiddleware

"""
bot.py:
Инициализация базы данных, запуск бота,
уведомления админам что бот поднялся
"""

debug_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
logging.basicConfig(level = logging.INFO, format = debug_format)
logger = logging.getLogger(__name__)

async def check_system_status() -> dict:
    """
    Проверяет статус базы данных и каталога
    Возвращает словарь со статусами
    """
    status = {
        'database': '🔴 Не подключена',
        'catalog': '🔴 Нет данных',
    }

    async with AsyncSessionLocal() as session:
        try:
            await session.execute(text("SELECT 1"))  # Простой тест запрос
            status['database'] = '🟢 Подключена'
            products = await ProductRepository(session).count()
            equivalences = await EquivalenceRepository(session).count()
            status['catalog'] = f'🟢 {products} продуктов, {equivalences} эквивалентов'
        except Exception as e:
            logger.error(f"Проверка базы данных не прошла: {e}")
            status['database'] = f'🔴 Ошибка: {str(e)[:50]}'

    return status

def format_startup_status_for_telegram(status: dict) -> str:
    """
    Форматирует статус запуска для отправки в Telegram
    """
    now = datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')

    message = f"<b>🤖 Бот запущен! {now}</b>\n\n"
    message += f"🔧 <b>Статус систем:</b>\n"
    message += f"База данных: {status['database']}\n"
    message += f"Каталог: {status['catalog']}\n\n"

    all_ready = all('🟢' in status_text for status_text in status.values())
    if all_ready:
        message += "🟢 <b>Все системы работают!</b>"
    else:
        message += "🟡 <b>Некоторые системы требуют проверки</b>"

    return message

async def main():
    settings.validate()

    logger.info("Запуск Telegram бота")
    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML)
    )

    # создаем объект Dispatcher, который отвечает за обработку входящих запросов
    dp = Dispatcher()

    async def on_startup():
        # Инициализируем базу данных
        await init_db()
        system_status = await check_system_status()
        logger.info(f"Статус систем: {system_status}")

        # Отправляем уведомление админам о запуске
        startup_message = format_startup_status_for_telegram(system_status)
        for admin_id in settings.admin_ids:
            try:
                await bot.send_message(admin_id, startup_message, parse_mode='HTML')
                logger.info(f"Статус запуска отправлен администратору {admin_id}")
            except Exception as e:
                logger.error(f"Ошибка отправки статуса админу {admin_id}: {e}")

    dp.startup.register(on_startup)

    # middleware - промежуточный код, который выполняется до того, как запрос будет обработан handler'ом
    session_store = SessionStore()

    # является ли юзер админом? добавляем is_admin в обработчик
    dp.message.middleware(AdminMiddleware(settings.admin_ids))
    dp.callback_query.middleware(AdminMiddleware(settings.admin_ids))

    # сессия пользователя (вход по логину) - user_session и session_store
    dp.message.middleware(UserSessionMiddleware(session_store))
    dp.callback_query.middleware(UserSessionMiddleware(session_store))

    # управление бд, каждый раз создает новую сессию с бд и закрывает ее после выполнения запроса
    dp.message.middleware(DatabaseSessionMiddleware(AsyncSessionLocal))
    dp.callback_query.middleware(DatabaseSessionMiddleware(AsyncSessionLocal))

    # Подключение роутеров(группа обработчиков) к dispatcher
    register_all_handlers(dp)

    # не отвечаем на ожидающие ответа сообщения
    await bot.delete_webhook(drop_pending_updates=True)
    await dp.start_polling(bot)


if __name__ == '__main__':
    asyncio.run(main())
