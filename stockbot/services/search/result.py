"""Domain records returned by the search layer."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import FrozenSet, Optional, Tuple, Union

MAX_STOCK = 2_147_483_647
MAX_PRICE = Decimal("99999999.99")


@dataclass(frozen=True)
class ProductItem:
    """Продукт в том виде, в котором его видит поиск (read-only)."""
    id: Union[int, str]
    code: str
    stock: int = 0
    price: Decimal = Decimal("0")
    application: Optional[str] = None


@dataclass(frozen=True)
class EquivalencePair:
    """Пара взаимозаменяемых кодов."""
    product_code: str
    equivalent_code: str

    def other(self, code: str) -> Optional[str]:
        """
        Код с противоположной стороны пары, или None если code в паре нет.
        Регистр не учитывается, как при сравнении кодов в MySQL.
        """
        key = code.casefold()
        if self.product_code.casefold() == key:
            return self.equivalent_code
        if self.equivalent_code.casefold() == key:
            return self.product_code
        return None


@dataclass(frozen=True)
class SearchResult:
    """Продукт с кодами-эквивалентами на расстоянии одного шага."""
    product: ProductItem
    related_codes: FrozenSet[str] = frozenset()

    @property
    def code(self) -> str:
        return self.product.code


@dataclass(frozen=True)
class Page:
    """Страница результатов поиска."""
    items: Tuple[SearchResult, ...] = ()
    total_count: int = 0
    page: int = 1
    page_size: int = 10
    query: str = field(default="", compare=False)

    @classmethod
    def empty(cls, page: int = 1, page_size: int = 10, query: str = "") -> "Page":
        return cls(items=(), total_count=0, page=page, page_size=page_size, query=query)

    @property
    def total_pages(self) -> int:
        if self.total_count == 0:
            return 0
        return (self.total_count + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1 and self.total_count > 0
