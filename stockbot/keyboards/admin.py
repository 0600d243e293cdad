from aiogram.utils.keyboard import InlineKeyboardBuilder
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

def get_admin_main_menu_keyboard() -> InlineKeyboardMarkup:
    """
    Создает клавиатуру главного меню для администратора

    Returns:
        Разметка с админскими кнопками
    """
    builder = InlineKeyboardBuilder()
    builder.button(text="📦 Импорт продуктов", callback_data="admin:import_products")
    builder.button(text="🔗 Импорт эквивалентов", callback_data="admin:import_equivalences")
    builder.button(text="👤 Добавить пользователя", callback_data="admin:add_user")
    builder.button(text="📊 Статистика", callback_data="admin:stats")
    builder.button(text="Главное меню", callback_data="menu:main")
    builder.adjust(1)
    return builder.as_markup()


def get_back_to_admin_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="⬅️ Назад в админ-меню", callback_data="admin:menu")
    ]])
