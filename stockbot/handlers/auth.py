import logging
from typing import Optional

from aiogram import Router, types
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stockbot.config.settings import settings
from stockbot.core.exceptions import AuthenticationError
from stockbot.core.session import SessionStore, UserSession
from stockbot.core.utils import esc
from stockbot.handlers.common import SERVICE_UNAVAILABLE_TEXT, edit_or_answer, main_menu_text
from stockbot.handlers.states import Login, ChangePassword
from stockbot.keyboards.user import get_main_menu_keyboard, get_back_to_menu_keyboard
from stockbot.services.auth_service import AuthService

"""
Вход, выход и смена пароля.
Сессия пользователя хранится в SessionStore и попадает в handler
через UserSessionMiddleware (user_session).
"""

router = Router()
logger = logging.getLogger(__name__)


async def _delete_secret(message: types.Message) -> None:
    """Удаляем сообщение с паролем из чата"""
    try:
        await message.delete()
    except TelegramBadRequest:
        logger.debug("Не удалось удалить сообщение с паролем")


async def _ask_name(state: FSMContext) -> str:
    await state.set_state(Login.waiting_name)
    return '<b>🔐 Вход</b>\n\nВведите имя пользователя:'


@router.message(Command('login'))
async def cmd_login(message: types.Message, state: FSMContext):
    await message.answer(await _ask_name(state), reply_markup=get_back_to_menu_keyboard(), parse_mode='HTML')

@router.callback_query(lambda c: c.data == 'menu:login')
async def login_callback(callback: types.CallbackQuery, state: FSMContext):
    await edit_or_answer(callback, await _ask_name(state), get_back_to_menu_keyboard())
    await callback.answer()

@router.message(Login.waiting_name)
async def process_login_name(message: types.Message, state: FSMContext):
    name = (message.text or "").strip()
    if not name:
        await message.answer("Имя не может быть пустым. Введите имя пользователя:")
        return
    await state.update_data(login_name=name)
    await state.set_state(Login.waiting_password)
    await message.answer("Введите пароль:", reply_markup=get_back_to_menu_keyboard())

@router.message(Login.waiting_password)
async def process_login_password(message: types.Message, state: FSMContext, session: AsyncSession,
                                 session_store: SessionStore):
    password = message.text or ""
    await _delete_secret(message)
    data = await state.get_data()
    await state.clear()

    if not message.from_user:
        return

    auth_service = AuthService(session, session_store, ttl_hours=settings.session_ttl_hours)
    try:
        user_session = await auth_service.authenticate(data.get("login_name", ""), password, message.from_user.id)
    except AuthenticationError as e:
        await message.answer(
            f"❌ {esc(str(e))}\n\nПопробуйте еще раз: /login",
            reply_markup=get_main_menu_keyboard(logged_in=False),
            parse_mode='HTML'
        )
        return
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Ошибка базы данных при входе: {e}")
        await message.answer(SERVICE_UNAVAILABLE_TEXT, reply_markup=get_main_menu_keyboard(logged_in=False))
        return

    await message.answer(
        f"✅ Добро пожаловать, <b>{esc(user_session.user_name)}</b>!\n"
        f"Сессия действует до {user_session.expires_at:%d.%m.%Y %H:%M}.",
        reply_markup=get_main_menu_keyboard(logged_in=True),
        parse_mode='HTML'
    )


@router.message(Command('logout'))
async def cmd_logout(message: types.Message, state: FSMContext, session: AsyncSession, session_store: SessionStore):
    await state.clear()
    if message.from_user:
        AuthService(session, session_store).logout(message.from_user.id)
    await message.answer("Вы вышли из системы.", reply_markup=get_main_menu_keyboard(logged_in=False))

@router.callback_query(lambda c: c.data == 'menu:logout')
async def logout_callback(callback: types.CallbackQuery, state: FSMContext, session: AsyncSession,
                          session_store: SessionStore):
    await state.clear()
    AuthService(session, session_store).logout(callback.from_user.id)
    await edit_or_answer(callback, "Вы вышли из системы.\n\n" + main_menu_text(None), get_main_menu_keyboard(logged_in=False))
    await callback.answer()


async def _start_password_change(state: FSMContext, user_session: Optional[UserSession]) -> str:
    if user_session is None:
        return "Сначала войдите: /login"
    await state.set_state(ChangePassword.waiting_old_password)
    return '<b>🔑 Смена пароля</b>\n\nВведите текущий пароль:'

@router.message(Command('password'))
async def cmd_password(message: types.Message, state: FSMContext, user_session: Optional[UserSession] = None):
    text = await _start_password_change(state, user_session)
    await message.answer(text, reply_markup=get_back_to_menu_keyboard(), parse_mode='HTML')

@router.callback_query(lambda c: c.data == 'menu:password')
async def password_callback(callback: types.CallbackQuery, state: FSMContext,
                            user_session: Optional[UserSession] = None):
    text = await _start_password_change(state, user_session)
    await edit_or_answer(callback, text, get_back_to_menu_keyboard())
    await callback.answer()

@router.message(ChangePassword.waiting_old_password)
async def process_old_password(message: types.Message, state: FSMContext):
    await state.update_data(old_password=message.text or "")
    await _delete_secret(message)
    await state.set_state(ChangePassword.waiting_new_password)
    await message.answer("Введите новый пароль:", reply_markup=get_back_to_menu_keyboard())

@router.message(ChangePassword.waiting_new_password)
async def process_new_password(message: types.Message, state: FSMContext, session: AsyncSession,
                               session_store: SessionStore, user_session: Optional[UserSession] = None):
    new_password = message.text or ""
    await _delete_secret(message)
    data = await state.get_data()
    await state.clear()

    if user_session is None:
        await message.answer("Сессия истекла, войдите снова: /login")
        return

    auth_service = AuthService(session, session_store)
    try:
        await auth_service.change_password(user_session.user_id, data.get("old_password", ""), new_password)
    except AuthenticationError as e:
        await message.answer(f"❌ {esc(str(e))}", reply_markup=get_main_menu_keyboard(logged_in=True), parse_mode='HTML')
        return
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Ошибка базы данных при смене пароля: {e}")
        await message.answer(SERVICE_UNAVAILABLE_TEXT, reply_markup=get_main_menu_keyboard(logged_in=True))
        return

    await message.answer("✅ Пароль изменен.", reply_markup=get_main_menu_keyboard(logged_in=True))
