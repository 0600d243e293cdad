from aiogram.utils.keyboard import InlineKeyboardBuilder
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from stockbot.core.utils import truncate
from stockbot.services.search import Page

def get_main_menu_keyboard(logged_in: bool = False) -> InlineKeyboardMarkup:
    """
    Клавиатура главного меню для пользователя
    """
    builder = InlineKeyboardBuilder()
    if logged_in:
        builder.button(text='🔍 Поиск по коду', callback_data='menu:search')
        builder.button(text='🔑 Сменить пароль', callback_data='menu:password')
        builder.button(text='🚪 Выйти', callback_data='menu:logout')
    else:
        builder.button(text='🔐 Войти', callback_data='menu:login')
    builder.button(text='❔ Помощь', callback_data='menu:features')

    builder.adjust(1)

    return builder.as_markup()


def get_back_to_menu_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="⬅️ Главное меню", callback_data="menu:main")
    ]])


def get_search_results_keyboard(page: Page) -> InlineKeyboardMarkup:
    """
    Список найденных продуктов + навигация по страницам.
    Запрос хранится в FSM, в callback_data только номер страницы.
    """
    builder = InlineKeyboardBuilder()
    for item in page.items:
        product = item.product
        builder.row(InlineKeyboardButton(
            text=truncate(f"{product.code} · {product.stock} шт."),
            callback_data=f"product:{product.id}:{page.page}"
        ))

    navigation = []
    if page.has_previous:
        navigation.append(InlineKeyboardButton(text="◀️", callback_data=f"search:page:{page.page - 1}"))
    if page.total_pages > 1:
        navigation.append(InlineKeyboardButton(
            text=f"{page.page}/{page.total_pages}", callback_data="search:noop"
        ))
    if page.has_next:
        navigation.append(InlineKeyboardButton(text="▶️", callback_data=f"search:page:{page.page + 1}"))
    if navigation:
        builder.row(*navigation)

    builder.row(
        InlineKeyboardButton(text="🔍 Новый поиск", callback_data="search:new"),
        InlineKeyboardButton(text="⬅️ Главное меню", callback_data="menu:main"),
    )
    return builder.as_markup()


def get_product_card_keyboard(page_number: int) -> InlineKeyboardMarkup:
    """
    Клавиатура карточки продукта
    """
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="⬅️ К результатам", callback_data=f"search:page:{page_number}")],
        [
            InlineKeyboardButton(text="🔍 Новый поиск", callback_data="search:new"),
            InlineKeyboardButton(text="Главное меню", callback_data="menu:main"),
        ],
    ])
