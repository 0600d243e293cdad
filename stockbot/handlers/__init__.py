from aiogram import Dispatcher
from .common import router as common_router
from .auth import router as auth_router
from .search import router as search_router
from .admin import router as admin_router

def register_all_handlers(dp: Dispatcher) -> None:
    """
    registering all handlers
    """
    dp.include_router(admin_router) # админ-панель и импорт
    dp.include_router(auth_router) # вход, выход, смена пароля
    dp.include_router(search_router) # поисковик
    dp.include_router(common_router) # NOTE: ВСЕГДА В КОНЦЕ
