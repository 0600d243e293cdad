"""
Иерархия исключений приложения.

Отсутствие данных ошибкой не считается: репозитории и хранилища
возвращают пустые коллекции или None.
"""


class StockBotError(Exception):
    """Базовое исключение приложения."""


class StoreError(StockBotError):
    """Ошибка хранилища данных."""


class StoreUnavailable(StoreError):
    """Хранилище недоступно: нет соединения или истек таймаут."""


class StoreQueryError(StoreError):
    """Хранилище отклонило запрос."""


class ImportFormatError(StockBotError):
    """Некорректная строка файла импорта."""

    def __init__(self, line_no: int, message: str):
        super().__init__(f"Строка {line_no}: {message}")
        self.line_no = line_no


class AuthenticationError(StockBotError):
    """Неверные учетные данные или неактивный пользователь."""
