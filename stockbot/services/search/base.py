from abc import ABC, abstractmethod
from typing import AbstractSet, List

from .result import ProductItem, EquivalencePair


class BaseProductStore(ABC):
    """
    Базовый абстрактный класс хранилища продуктов.
    Определяет интерфейс чтения, который нужен поиску.
    """

    @abstractmethod
    async def find_by_code_substring(self, substring: str) -> List[ProductItem]:
        """
        Регистронезависимый поиск по подстроке в коде продукта.

        Args:
            substring: Подстрока кода

        Returns:
            Все найденные продукты, без пагинации

        Raises:
            StoreError: при ошибке хранилища
        """
        pass

    @abstractmethod
    async def find_by_codes(self, codes: AbstractSet[str]) -> List[ProductItem]:
        """
        Продукты, код которых входит в множество codes.

        Raises:
            StoreError: при ошибке хранилища
        """
        pass


class BaseEquivalenceStore(ABC):
    """
    Базовый абстрактный класс хранилища эквивалентностей.
    """

    @abstractmethod
    async def find_by_either_code(self, code: str) -> List[EquivalencePair]:
        """
        Пары, в которых code стоит в любой из колонок.

        Raises:
            StoreError: при ошибке хранилища
        """
        pass

    async def find_by_any_code(self, codes: AbstractSet[str]) -> List[EquivalencePair]:
        """
        Пары, в которых любой из codes стоит в любой из колонок.
        По умолчанию - запрос на каждый код; SQL-хранилище делает один запрос.

        Raises:
            StoreError: при ошибке хранилища
        """
        pairs: List[EquivalencePair] = []
        for code in sorted(codes):
            pairs.extend(await self.find_by_either_code(code))
        return pairs
