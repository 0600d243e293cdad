from aiogram.fsm.state import StatesGroup, State

"""
FSM (Finite State Machine) - механизм, позволяющий боту помнить
в каком состоянии находится разговор с пользователем.
"""

class Login(StatesGroup):
    """
    Вход по имени и паролю
    """
    waiting_name = State()
    waiting_password = State()


class ChangePassword(StatesGroup):
    """
    Смена пароля
    """
    waiting_old_password = State()
    waiting_new_password = State()


class SearchProduct(StatesGroup):
    """
    Состояние для поиска продуктов
    """
    waiting_query = State()


class ImportProducts(StatesGroup):
    """
    Импорт продуктов: ожидание файла или текста
    """
    waiting_data = State()


class ImportEquivalences(StatesGroup):
    """
    Импорт эквивалентностей: ожидание файла или текста
    """
    waiting_data = State()


class AddUser(StatesGroup):
    """
    Добавление пользователя админом
    """
    waiting_name = State()
    waiting_password = State()
