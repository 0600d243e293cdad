import asyncio
import logging
from decimal import Decimal
from typing import AbstractSet, Awaitable, Callable, List, TypeVar

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stockbot.core.exceptions import StoreQueryError, StoreUnavailable
from stockbot.database.models import Equivalence, Product
from stockbot.database.repositories import EquivalenceRepository, ProductRepository
from .base import BaseEquivalenceStore, BaseProductStore
from .result import EquivalencePair, ProductItem

logger = logging.getLogger(__name__)

"""
Адаптеры хранилищ поверх SQLAlchemy.

Каждый вызов открывает свою сессию, поэтому вызовы можно выполнять
параллельно. Строки ORM переводятся в доменные записи в одном месте
(product_to_domain / equivalence_to_domain).
"""

T = TypeVar("T")

CODES_PER_QUERY = 400


def product_to_domain(row: Product) -> ProductItem:
    """Перевод строки таблицы products в ProductItem"""
    return ProductItem(
        id=row.id,
        code=row.product or "",
        stock=int(row.stock or 0),
        price=Decimal(row.price) if row.price is not None else Decimal("0"),
        application=row.application or None,
    )


def equivalence_to_domain(row: Equivalence) -> EquivalencePair:
    """Перевод строки таблицы equivalences в EquivalencePair"""
    return EquivalencePair(
        product_code=row.product_code,
        equivalent_code=row.equivalent_code,
    )


class _SqlStore:
    """
    Общая часть адаптеров: сессия на вызов, таймаут и перевод ошибок.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], timeout: float = 5.0):
        self.session_factory = session_factory
        self.timeout = timeout

    async def _call(self, operation: str, func: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async def run() -> T:
            async with self.session_factory() as session:
                return await func(session)

        try:
            return await asyncio.wait_for(run(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"{operation}: таймаут {self.timeout}с")
            raise StoreUnavailable(f"{operation}: timed out after {self.timeout}s") from e
        except (OperationalError, InterfaceError, DisconnectionError) as e:
            logger.warning(f"{operation}: хранилище недоступно: {e}")
            raise StoreUnavailable(f"{operation}: {e}") from e
        except SQLAlchemyError as e:
            logger.warning(f"{operation}: запрос отклонен: {e}")
            raise StoreQueryError(f"{operation}: {e}") from e


class SqlProductStore(_SqlStore, BaseProductStore):
    """Хранилище продуктов на таблице products."""

    async def find_by_code_substring(self, substring: str) -> List[ProductItem]:
        async def query(session: AsyncSession) -> List[ProductItem]:
            rows = await ProductRepository(session).search_by_code(substring)
            return [product_to_domain(row) for row in rows]

        return await self._call("find_by_code_substring", query)

    async def find_by_codes(self, codes: AbstractSet[str]) -> List[ProductItem]:
        if not codes:
            return []

        async def query(session: AsyncSession) -> List[ProductItem]:
            rows = await ProductRepository(session).get_by_codes(sorted(codes))
            return [product_to_domain(row) for row in rows]

        return await self._call("find_by_codes", query)


class SqlEquivalenceStore(_SqlStore, BaseEquivalenceStore):
    """Хранилище эквивалентностей на таблице equivalences."""

    async def find_by_either_code(self, code: str) -> List[EquivalencePair]:
        async def query(session: AsyncSession) -> List[EquivalencePair]:
            rows = await EquivalenceRepository(session).get_by_either_code(code)
            return [equivalence_to_domain(row) for row in rows]

        return await self._call("find_by_either_code", query)

    async def find_by_any_code(self, codes: AbstractSet[str]) -> List[EquivalencePair]:
        if not codes:
            return []
        ordered = sorted(codes)

        async def query(session: AsyncSession) -> List[EquivalencePair]:
            repo = EquivalenceRepository(session)
            pairs: List[EquivalencePair] = []
            # частями, чтобы не упереться в лимит параметров запроса
            for start in range(0, len(ordered), CODES_PER_QUERY):
                rows = await repo.get_by_any_code(ordered[start:start + CODES_PER_QUERY])
                pairs.extend(equivalence_to_domain(row) for row in rows)
            return pairs

        return await self._call("find_by_any_code", query)
