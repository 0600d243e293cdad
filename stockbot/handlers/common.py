from typing import Optional

from aiogram import Router, types
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, InlineKeyboardMarkup

from stockbot.core.session import UserSession
from stockbot.core.utils import esc
from stockbot.keyboards.user import get_main_menu_keyboard, get_back_to_menu_keyboard

"""
Содержит базовые команды и навигацию по боту:
- /start, /help
- возврат в главное меню
- возможности бота
- ответ на сообщения вне сценариев
"""


router = Router()

SERVICE_UNAVAILABLE_TEXT = "⚠️ База данных временно недоступна, попробуйте позже."

HELP_TEXT = (
    '<b>👤 Возможности пользователей:</b>\n\n'
    '• Вход по имени и паролю (/login), выход (/logout)\n'
    '• Поиск по коду детали или его части (/search код)\n'
    '• Поиск по альтернативному (эквивалентному) коду\n'
    '• Карточка детали: остаток, цена, применение, эквиваленты\n'
    '• Смена пароля (/password)\n'
    '\n<b>🛠️ Возможности администраторов:</b>\n\n'
    '• Панель администратора по команде /admin\n'
    '• Импорт продуктов: <code>код;остаток;цена;применение</code>\n'
    '• Импорт эквивалентов: <code>код_продукта;код_эквивалента</code>\n'
    '• Добавление пользователей\n'
)


def main_menu_text(user_session: Optional[UserSession]) -> str:
    if user_session:
        return f'<b>Главное меню</b>\n\nВы вошли как <b>{esc(user_session.user_name)}</b>. Выберите действие:'
    return '<b>Главное меню</b>\n\nДля поиска по складу войдите в систему.'


async def edit_or_answer(callback: types.CallbackQuery, text: str,
                         reply_markup: Optional[InlineKeyboardMarkup] = None) -> None:
    """
    Редактирует сообщение с кнопкой, а если не получилось
    (например, сообщение с медиа) - отправляет новое
    """
    if not callback.message or not isinstance(callback.message, Message):
        return
    try:
        await callback.message.edit_text(text, reply_markup=reply_markup, parse_mode='HTML')
    except TelegramBadRequest:
        await callback.message.answer(text, reply_markup=reply_markup, parse_mode='HTML')


@router.message(Command('start'))
async def cmd_start(message: types.Message, state: FSMContext, user_session: Optional[UserSession] = None):
    """Обработчик команды /start"""
    await state.clear() # очистка состояния FSM
    await message.answer(
        '<b>Автозапчасти - склад</b>\n'
        'Бот для проверки наличия и цен по коду детали\n\n'
        + main_menu_text(user_session),
        reply_markup=get_main_menu_keyboard(logged_in=user_session is not None), parse_mode='HTML'
    )

@router.message(Command('help'))
async def cmd_help(message: types.Message):
    await message.answer(HELP_TEXT, reply_markup=get_back_to_menu_keyboard(), parse_mode='HTML')

@router.callback_query(lambda c: c.data == 'menu:main')
async def main_menu(callback: types.CallbackQuery, state: FSMContext, user_session: Optional[UserSession] = None):
    """Возврат в главное меню"""
    await state.clear()
    await edit_or_answer(
        callback,
        main_menu_text(user_session),
        get_main_menu_keyboard(logged_in=user_session is not None),
    )
    await callback.answer()

@router.callback_query(lambda c: c.data == 'menu:features')
async def features(callback: types.CallbackQuery):
    """Описание возможностей бота"""
    await edit_or_answer(callback, HELP_TEXT, get_back_to_menu_keyboard())
    await callback.answer()

@router.message(Command('admin'))
async def cmd_admin_denied(message: types.Message, is_admin: bool = False):
    """/admin для не-админов (админов перехватывает admin router)"""
    if is_admin:
        return
    await message.answer(
        "🔴 У вас нет прав администратора.\n"
        f"Ваш ID: {message.from_user.id if message.from_user else 'Unknown'}\n\n"
        "💡 Для получения помощи используйте команду /help",
        reply_markup=get_main_menu_keyboard()
    )

@router.message()
async def fallback(message: types.Message, user_session: Optional[UserSession] = None):
    """Сообщения вне сценариев. NOTE: роутер подключается последним"""
    hint = 'Используйте /search код или кнопку поиска в меню.' if user_session else 'Сначала войдите: /login'
    await message.answer(hint, reply_markup=get_main_menu_keyboard(logged_in=user_session is not None))
