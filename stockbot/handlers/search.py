import logging
from typing import Optional

from aiogram import Router, types
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stockbot.config.settings import settings
from stockbot.core.session import UserSession
from stockbot.core.utils import esc, format_codes, format_price
from stockbot.handlers.common import edit_or_answer
from stockbot.handlers.states import SearchProduct
from stockbot.keyboards.user import (
    get_back_to_menu_keyboard,
    get_main_menu_keyboard,
    get_product_card_keyboard,
    get_search_results_keyboard,
)
from stockbot.services.search import (
    EquivalenceResolver,
    EquivalenceSearchService,
    Page,
    SearchResult,
    SqlEquivalenceStore,
    SqlProductStore,
)

router = Router()
logger = logging.getLogger(__name__)

"""
Функциональность поиска продуктов по коду.
Прямые совпадения + продукты с эквивалентными кодами, постраничный вывод.
Последний запрос хранится в данных FSM (search_query).
"""

NOT_LOGGED_IN_TEXT = "🔐 Поиск доступен только после входа: /login"
ASK_QUERY_TEXT = (
    "<b>🔍 Поиск продуктов</b>\n\n"
    "Введите код детали или его часть.\n"
    "💡 <i>Можно искать и по альтернативному (эквивалентному) коду</i>"
)


def create_search_service(session_factory: async_sessionmaker[AsyncSession]) -> EquivalenceSearchService:
    """
    Создает поисковый сервис поверх фабрики сессий.

    Args:
        session_factory: Фабрика сессий бд (каждый запрос к хранилищу - своя сессия)

    Returns:
        Настроенный экземпляр EquivalenceSearchService
    """
    product_store = SqlProductStore(session_factory, timeout=settings.store_timeout)
    equivalence_store = SqlEquivalenceStore(session_factory, timeout=settings.store_timeout)
    return EquivalenceSearchService(product_store, EquivalenceResolver(equivalence_store))


def format_results_text(page: Page) -> str:
    """
    Текст со списком результатов текущей страницы
    """
    text = f"<b>Результаты поиска по запросу:</b> {esc(page.query)}\n"
    text += f"Найдено: {page.total_count}"
    if page.total_pages > 1:
        text += f" · страница {page.page} из {page.total_pages}"
    text += "\n\n"

    for item in page.items:
        product = item.product
        text += f"• <b>{esc(product.code)}</b> - {product.stock} шт. - {format_price(product.price)}\n"
        if item.related_codes:
            text += f"   <i>эквиваленты: {format_codes(item.related_codes, limit=5)}</i>\n"

    text += "\nВыберите продукт для просмотра подробной информации:"
    return text


def format_product_card(item: SearchResult) -> str:
    """
    Карточка продукта
    """
    product = item.product
    return (
        f"<b>📦 {esc(product.code)}</b>\n\n"
        f"<b>Остаток:</b> {product.stock} шт.\n"
        f"<b>Цена:</b> {format_price(product.price)}\n"
        f"<b>Применение:</b> {esc(product.application)}\n\n"
        f"<b>Эквивалентные коды:</b> {format_codes(item.related_codes)}"
    )


async def _run_search(session_factory: async_sessionmaker[AsyncSession], query: str, page_number: int) -> Page:
    search_service = create_search_service(session_factory)
    return await search_service.search(query, page=page_number, page_size=settings.search_page_size)


async def _send_results(message: types.Message, state: FSMContext,
                        session_factory: async_sessionmaker[AsyncSession], query: str) -> None:
    """
    Выполняет поиск (страница 1), сохраняет запрос в FSM и отправляет результат
    """
    # выходим из состояния ожидания, данные FSM сохраняются
    await state.set_state(None)
    await state.update_data(search_query=query)

    page = await _run_search(session_factory, query, 1)
    if not page.items:
        await message.answer(
            f"По запросу '{esc(query)}' ничего не найдено.\n"
            "Попробуйте другой код или его часть.",
            reply_markup=types.InlineKeyboardMarkup(inline_keyboard=[[
                types.InlineKeyboardButton(text="🔍 Новый поиск", callback_data="search:new"),
                types.InlineKeyboardButton(text="⬅️ Главное меню", callback_data="menu:main"),
            ]]),
            parse_mode="HTML"
        )
        return

    await message.answer(
        format_results_text(page),
        reply_markup=get_search_results_keyboard(page),
        parse_mode="HTML"
    )


@router.callback_query(lambda c: c.data in ('menu:search', 'search:new'))
async def new_search(callback: types.CallbackQuery, state: FSMContext, user_session: Optional[UserSession] = None):
    """
    Новый запрос на поиск.

    Перевод бота в состояние ожидания нового запроса.
    """
    if user_session is None:
        await callback.answer(NOT_LOGGED_IN_TEXT, show_alert=True)
        return

    await state.set_state(SearchProduct.waiting_query)
    await edit_or_answer(callback, ASK_QUERY_TEXT, get_back_to_menu_keyboard())
    await callback.answer()


@router.message(Command('search'))
async def cmd_search(message: types.Message, command: CommandObject, state: FSMContext,
                     session_factory: async_sessionmaker[AsyncSession],
                     user_session: Optional[UserSession] = None):
    """/search код - поиск сразу из команды"""
    if user_session is None:
        await message.answer(NOT_LOGGED_IN_TEXT, reply_markup=get_main_menu_keyboard(logged_in=False))
        return

    query = (command.args or "").strip()
    if not query:
        await state.set_state(SearchProduct.waiting_query)
        await message.answer(ASK_QUERY_TEXT, reply_markup=get_back_to_menu_keyboard(), parse_mode="HTML")
        return

    await _send_results(message, state, session_factory, query)


@router.message(SearchProduct.waiting_query)
async def process_search_query(message: types.Message, state: FSMContext,
                               session_factory: async_sessionmaker[AsyncSession],
                               user_session: Optional[UserSession] = None):
    """
    Обработка поискового запроса.

    - Проверка сессии и текста
    - Поиск с эквивалентами, первая страница
    """
    if user_session is None:
        await state.clear()
        await message.answer(NOT_LOGGED_IN_TEXT, reply_markup=get_main_menu_keyboard(logged_in=False))
        return

    query = (message.text or "").strip()
    if not query:
        await message.answer(
            "Запрос не может быть пустым. Введите код детали:",
            reply_markup=get_back_to_menu_keyboard()
        )
        return

    await _send_results(message, state, session_factory, query)


@router.callback_query(lambda c: c.data and c.data.startswith('search:page:'))
async def change_page(callback: types.CallbackQuery, state: FSMContext,
                      session_factory: async_sessionmaker[AsyncSession],
                      user_session: Optional[UserSession] = None):
    """
    Переход на другую страницу результатов (и возврат из карточки продукта)
    """
    if user_session is None:
        await callback.answer(NOT_LOGGED_IN_TEXT, show_alert=True)
        return

    query = (await state.get_data()).get("search_query")
    try:
        page_number = max(1, int((callback.data or "").rsplit(':', 1)[1]))
    except (IndexError, ValueError):
        page_number = 1
    if not query:
        await callback.answer("Поисковый запрос устарел, начните новый поиск", show_alert=True)
        return

    page = await _run_search(session_factory, query, page_number)
    if not page.items:
        await edit_or_answer(
            callback,
            f"По запросу '{esc(query)}' больше нет результатов.",
            get_back_to_menu_keyboard(),
        )
    else:
        await edit_or_answer(callback, format_results_text(page), get_search_results_keyboard(page))
    await callback.answer()


@router.callback_query(lambda c: c.data and c.data.startswith('product:'))
async def show_product(callback: types.CallbackQuery, state: FSMContext,
                       session_factory: async_sessionmaker[AsyncSession],
                       user_session: Optional[UserSession] = None):
    """
    Карточка продукта из результатов поиска.
    Повторяем поиск той же страницы: так эквиваленты считаются тем же способом.
    """
    if user_session is None:
        await callback.answer(NOT_LOGGED_IN_TEXT, show_alert=True)
        return

    try:
        _, product_id, page_number = (callback.data or "").split(':', 2)
        page_number_int = max(1, int(page_number))
    except ValueError:
        await callback.answer("Некорректный запрос")
        return

    query = (await state.get_data()).get("search_query")
    if not query:
        await callback.answer("Поисковый запрос устарел, начните новый поиск", show_alert=True)
        return

    page = await _run_search(session_factory, query, page_number_int)
    item = next((item for item in page.items if str(item.product.id) == product_id), None)
    if item is None:
        await callback.answer("Продукт не найден", show_alert=True)
        return

    await edit_or_answer(callback, format_product_card(item), get_product_card_keyboard(page_number_int))
    await callback.answer()


@router.callback_query(lambda c: c.data == 'search:noop')
async def noop(callback: types.CallbackQuery):
    await callback.answer()
