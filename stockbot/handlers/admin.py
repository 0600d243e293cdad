import logging
from typing import Optional

from aiogram import Bot, F, Router, types
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stockbot.config.settings import settings
from stockbot.core.exceptions import AuthenticationError
from stockbot.core.session import SessionStore
from stockbot.core.utils import esc
from stockbot.database.repositories import ProductRepository, EquivalenceRepository, UserRepository
from stockbot.filters.admin import AdminFilter
from stockbot.handlers.common import SERVICE_UNAVAILABLE_TEXT, edit_or_answer
from stockbot.handlers.states import ImportProducts, ImportEquivalences, AddUser
from stockbot.keyboards.admin import get_admin_main_menu_keyboard, get_back_to_admin_keyboard
from stockbot.services.auth_service import AuthService
from stockbot.services.import_service import ImportService, ImportResult

"""
Административная логика бота.
Все админские функции используют фильтр:
router.message.filter(AdminFilter())
"""
router = Router()
router.message.filter(AdminFilter())
router.callback_query.filter(AdminFilter())
logger = logging.getLogger(__name__)

ADMIN_TEXT = (
    '<b>🛠️ Панель администратора</b>\n\n'
    '📋 Выберите действие:'
)

# лимит на размер загружаемого файла
MAX_IMPORT_FILE_SIZE = 20 * 1024 * 1024
SHOWN_ERRORS = 15

PRODUCTS_HELP = (
    "📦 <b>Импорт продуктов</b>\n\n"
    "Отправьте файл .csv/.txt или вставьте текст.\n"
    "Одна строка - один продукт, поля через <code>;</code>:\n"
    "<code>код;остаток;цена;применение</code>\n\n"
    "Пример:\n<code>13E;25;149,90;Gol 1.0 2010</code>"
)

EQUIVALENCES_HELP = (
    "🔗 <b>Импорт эквивалентов</b>\n\n"
    "Отправьте файл .csv/.txt или вставьте текст.\n"
    "Одна строка - одна пара, поля через <code>;</code>:\n"
    "<code>код_продукта;код_эквивалента</code>\n\n"
    "Пример:\n<code>13E;EQV13E</code>"
)


def decode_upload(raw: bytes) -> str:
    """
    Текст файла импорта: UTF-8 (с BOM или без), иначе cp1252
    """
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("cp1252", errors="replace")


def format_import_result(title: str, result: ImportResult) -> str:
    """
    Отчет об импорте для отправки админу
    """
    status = "✅" if not result.errors else ("⚠️" if result.success else "❌")
    text = (
        f"{status} <b>{title}</b>\n\n"
        f"Всего строк: {result.total}\n"
        f"Загружено: {result.success}\n"
        f"Ошибок: {len(result.errors)}\n"
    )
    if result.errors:
        text += "\n" + "\n".join(f"• {esc(error)}" for error in result.errors[:SHOWN_ERRORS])
        if len(result.errors) > SHOWN_ERRORS:
            text += f"\n… и еще {len(result.errors) - SHOWN_ERRORS}"
    return text


async def read_import_text(message: types.Message, bot: Bot) -> Optional[str]:
    """
    Текст из документа или из сообщения. None - если данных нет или файл слишком большой
    """
    if message.document:
        if (message.document.file_size or 0) > MAX_IMPORT_FILE_SIZE:
            return None
        buffer = await bot.download(message.document)
        if buffer is None:
            return None
        return decode_upload(buffer.read())
    return message.text


@router.message(Command('admin'))
async def cmd_admin(message: types.Message, state: FSMContext):
    await state.clear()
    await message.answer(ADMIN_TEXT, reply_markup=get_admin_main_menu_keyboard(), parse_mode='HTML')

@router.callback_query(lambda c: c.data == 'admin:menu')
async def admin_menu_callback(callback: types.CallbackQuery, state: FSMContext):
    """Обработчик возврата в админское меню"""
    # Очищаем состояние при возврате в меню
    await state.clear()
    await edit_or_answer(callback, ADMIN_TEXT, get_admin_main_menu_keyboard())
    await callback.answer()

@router.callback_query(lambda c: c.data == 'admin:import_products')
async def admin_import_products_callback(callback: types.CallbackQuery, state: FSMContext):
    await state.set_state(ImportProducts.waiting_data)
    await edit_or_answer(callback, PRODUCTS_HELP, get_back_to_admin_keyboard())
    await callback.answer()

@router.callback_query(lambda c: c.data == 'admin:import_equivalences')
async def admin_import_equivalences_callback(callback: types.CallbackQuery, state: FSMContext):
    await state.set_state(ImportEquivalences.waiting_data)
    await edit_or_answer(callback, EQUIVALENCES_HELP, get_back_to_admin_keyboard())
    await callback.answer()

@router.callback_query(lambda c: c.data == 'admin:stats')
async def admin_stats_callback(callback: types.CallbackQuery, session: AsyncSession):
    try:
        products = await ProductRepository(session).count()
        equivalences = await EquivalenceRepository(session).count()
        users = await UserRepository(session).count()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Ошибка получения статистики: {e}")
        await edit_or_answer(callback, SERVICE_UNAVAILABLE_TEXT, get_back_to_admin_keyboard())
        await callback.answer()
        return

    await edit_or_answer(
        callback,
        f"📊 <b>Статистика</b>\n\nПродуктов: {products}\nПар эквивалентов: {equivalences}\n"
        f"Пользователей: {users}",
        get_back_to_admin_keyboard(),
    )
    await callback.answer()


@router.message(ImportProducts.waiting_data, F.document | F.text)
async def process_products_import(message: types.Message, state: FSMContext, session: AsyncSession, bot: Bot):
    """Импорт продуктов из файла или текста"""
    text = await read_import_text(message, bot)
    if not text or not text.strip():
        await message.answer("❌ Нет данных для импорта (или файл больше 20 МБ). Отправьте файл или текст:",
                             reply_markup=get_back_to_admin_keyboard())
        return

    await state.clear()
    await message.answer("⏳ Импорт продуктов...")
    result = await ImportService(session, batch_size=settings.import_batch_size).import_products(text)
    logger.info(f"Импорт продуктов от {message.from_user.id if message.from_user else '?'}: "
                f"{result.success}/{result.total}")
    await message.answer(format_import_result("Импорт продуктов", result),
                         reply_markup=get_admin_main_menu_keyboard(), parse_mode='HTML')

@router.message(ImportEquivalences.waiting_data, F.document | F.text)
async def process_equivalences_import(message: types.Message, state: FSMContext, session: AsyncSession, bot: Bot):
    """Импорт эквивалентов из файла или текста"""
    text = await read_import_text(message, bot)
    if not text or not text.strip():
        await message.answer("❌ Нет данных для импорта (или файл больше 20 МБ). Отправьте файл или текст:",
                             reply_markup=get_back_to_admin_keyboard())
        return

    await state.clear()
    await message.answer("⏳ Импорт эквивалентов...")
    result = await ImportService(session, batch_size=settings.import_batch_size).import_equivalences(text)
    logger.info(f"Импорт эквивалентов от {message.from_user.id if message.from_user else '?'}: "
                f"{result.success}/{result.total}")
    await message.answer(format_import_result("Импорт эквивалентов", result),
                         reply_markup=get_admin_main_menu_keyboard(), parse_mode='HTML')


@router.callback_query(lambda c: c.data == 'admin:add_user')
async def admin_add_user_callback(callback: types.CallbackQuery, state: FSMContext):
    await state.set_state(AddUser.waiting_name)
    await edit_or_answer(callback, "👤 <b>Новый пользователь</b>\n\nВведите имя пользователя:",
                         get_back_to_admin_keyboard())
    await callback.answer()

@router.message(AddUser.waiting_name)
async def process_new_user_name(message: types.Message, state: FSMContext):
    name = (message.text or "").strip()
    if not name:
        await message.answer("❌ Имя не может быть пустым. Введите имя пользователя:",
                             reply_markup=get_back_to_admin_keyboard())
        return
    await state.update_data(new_user_name=name)
    await state.set_state(AddUser.waiting_password)
    await message.answer("Введите пароль для нового пользователя:", reply_markup=get_back_to_admin_keyboard())

@router.message(AddUser.waiting_password)
async def process_new_user_password(message: types.Message, state: FSMContext, session: AsyncSession,
                                    session_store: SessionStore):
    password = message.text or ""
    data = await state.get_data()
    await state.clear()
    try:
        await message.delete()
    except TelegramBadRequest:
        logger.debug("Не удалось удалить сообщение с паролем")

    try:
        user = await AuthService(session, session_store).create_user(data.get("new_user_name", ""), password)
    except AuthenticationError as e:
        await message.answer(f"❌ {esc(str(e))}", reply_markup=get_admin_main_menu_keyboard(), parse_mode='HTML')
        return
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Ошибка создания пользователя: {e}")
        await message.answer("❌ Не удалось создать пользователя (возможно, имя занято).",
                             reply_markup=get_admin_main_menu_keyboard())
        return

    await message.answer(f"✅ Пользователь <b>{esc(user.name)}</b> создан.",
                         reply_markup=get_admin_main_menu_keyboard(), parse_mode='HTML')
