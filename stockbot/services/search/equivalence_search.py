import asyncio
import logging
from typing import Dict, Iterable, List

from stockbot.core.exceptions import StoreError
from .base import BaseProductStore
from .resolver import EquivalenceResolver
from .result import Page, ProductItem, SearchResult

logger = logging.getLogger(__name__)


def merge_unique_by_code(*groups: Iterable[ProductItem]) -> List[ProductItem]:
    """
    Объединяет группы продуктов, оставляя первое вхождение каждого кода,
    и сортирует результат по коду (стабильно, по кодовым точкам).
    """
    seen: Dict[str, ProductItem] = {}
    for group in groups:
        for product in group:
            if product.code not in seen:
                seen[product.code] = product
    # dict хранит порядок вставки, sorted стабилен
    return sorted(seen.values(), key=lambda product: product.code)


class EquivalenceSearchService:
    """
    Поиск продуктов с учетом эквивалентных кодов.

    Алгоритм работы:
    1. Пустой запрос - пустая страница (поиск никогда не означает "показать все")
    2. Прямые совпадения: подстрока запроса в коде, без учета регистра
    3. Если прямые совпадения есть - добавляем продукты с кодами-эквивалентами
       всех найденных кодов (один шаг)
    4. Если прямых совпадений нет - считаем сам запрос кодом и раскрываем его
    5. Объединение без дублей по коду, сортировка по коду
    6. Пагинация применяется к итоговому объединенному списку
    7. Каждому продукту на странице добавляются его эквиваленты

    Ошибки хранилища в шагах 2-4 превращаются в пустую страницу.
    """

    def __init__(self, product_store: BaseProductStore, resolver: EquivalenceResolver):
        self.product_store = product_store
        self.resolver = resolver

    async def search(self, query: str, page: int = 1, page_size: int = 10) -> Page:
        """
        Выполняет поиск и возвращает запрошенную страницу.

        Args:
            query: Поисковый запрос (код или его часть)
            page: Номер страницы, начиная с 1
            page_size: Размер страницы

        Returns:
            Страница результатов; total_count - размер объединенного списка

        Raises:
            ValueError: если page или page_size меньше 1
        """
        query = (query or "").strip()
        if not query:
            return Page.empty(page=page, page_size=page_size)

        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")

        try:
            merged = await self._collect(query)
        except StoreError as e:
            logger.error(f"Поиск '{query}' не выполнен, хранилище недоступно: {e}")
            return Page.empty(page=page, page_size=page_size, query=query)

        start = (page - 1) * page_size
        window = merged[start:start + page_size]
        items = await self._with_related_codes(window)

        logger.info(
            f"Поиск '{query}': найдено {len(merged)}, "
            f"страница {page} ({len(items)} шт.)"
        )
        return Page(
            items=tuple(items),
            total_count=len(merged),
            page=page,
            page_size=page_size,
            query=query,
        )

    async def _collect(self, query: str) -> List[ProductItem]:
        """
        Шаги 2-6: прямые совпадения, раскрытие эквивалентов, слияние.
        """
        direct = await self.product_store.find_by_code_substring(query)

        if direct:
            related_codes = await self.resolver.resolve_many(product.code for product in direct)
        else:
            # запрос может быть альтернативным кодом, которого нет в products
            related_codes = await self.resolver.resolve(query)

        expanded = await self.product_store.find_by_codes(related_codes) if related_codes else []

        logger.debug(
            f"'{query}': прямых совпадений {len(direct)}, "
            f"эквивалентов {len(related_codes)}, продуктов по эквивалентам {len(expanded)}"
        )
        return merge_unique_by_code(direct, expanded)

    async def _with_related_codes(self, products: List[ProductItem]) -> List[SearchResult]:
        """
        Шаг 7: эквиваленты для каждого продукта страницы (запросы параллельно).
        """
        related = await asyncio.gather(*(self.resolver.resolve(product.code) for product in products))
        return [
            SearchResult(product=product, related_codes=frozenset(codes - {product.code}))
            for product, codes in zip(products, related)
        ]
