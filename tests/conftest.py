"""Shared fixtures: in-memory stores and a throwaway SQLite database."""

import os

# настройки читаются при импорте stockbot.config.settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("TG_BOT_TOKEN", "123456:TEST")

from decimal import Decimal
from typing import AbstractSet, FrozenSet, Iterable, List, Optional, Tuple

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from stockbot.core.exceptions import StoreError, StoreUnavailable
from stockbot.database.connection import Base
from stockbot.database import models  # noqa: F401
from stockbot.services.search import (
    BaseEquivalenceStore,
    BaseProductStore,
    EquivalencePair,
    EquivalenceResolver,
    EquivalenceSearchService,
    ProductItem,
)


def make_product(product_id, code: str, stock: int = 1, price: str = "10.00",
                 application: Optional[str] = None) -> ProductItem:
    return ProductItem(id=product_id, code=code, stock=stock, price=Decimal(price), application=application)


class InMemoryProductStore(BaseProductStore):
    def __init__(self, products: Iterable[ProductItem] = (), error: Optional[StoreError] = None):
        self.products = list(products)
        self.error = error
        self.calls: List[Tuple[str, object]] = []

    async def find_by_code_substring(self, substring: str) -> List[ProductItem]:
        self.calls.append(("substring", substring))
        if self.error:
            raise self.error
        needle = substring.lower()
        return [p for p in self.products if needle in p.code.lower()]

    async def find_by_codes(self, codes: AbstractSet[str]) -> List[ProductItem]:
        self.calls.append(("codes", frozenset(codes)))
        if self.error:
            raise self.error
        return [p for p in self.products if p.code in codes]


class InMemoryEquivalenceStore(BaseEquivalenceStore):
    """
    case_insensitive=True сравнивает коды как MySQL с collation по умолчанию.
    """
    def __init__(self, pairs: Iterable[Tuple[str, str]] = (), error: Optional[StoreError] = None,
                 case_insensitive: bool = False):
        self.pairs = [EquivalencePair(a, b) for a, b in pairs]
        self.error = error
        self.case_insensitive = case_insensitive
        self.calls: List[str] = []
        self.bulk_calls: List[FrozenSet[str]] = []

    def _key(self, code: str) -> str:
        return code.casefold() if self.case_insensitive else code

    def _matches(self, pair: EquivalencePair, keys: AbstractSet[str]) -> bool:
        return self._key(pair.product_code) in keys or self._key(pair.equivalent_code) in keys

    async def find_by_either_code(self, code: str) -> List[EquivalencePair]:
        self.calls.append(code)
        if self.error:
            raise self.error
        return [p for p in self.pairs if self._matches(p, {self._key(code)})]

    async def find_by_any_code(self, codes: AbstractSet[str]) -> List[EquivalencePair]:
        self.bulk_calls.append(frozenset(codes))
        if self.error:
            raise self.error
        keys = {self._key(code) for code in codes}
        return [p for p in self.pairs if self._matches(p, keys)]


@pytest.fixture
def catalog():
    """Каталог из примера: 13E, 14E, EQV13E и пара 13E-EQV13E."""
    products = InMemoryProductStore([
        make_product(1, "13E"),
        make_product(2, "14E"),
        make_product(3, "EQV13E"),
    ])
    equivalences = InMemoryEquivalenceStore([("13E", "EQV13E")])
    return products, equivalences


def build_service(products: BaseProductStore, equivalences: BaseEquivalenceStore) -> EquivalenceSearchService:
    return EquivalenceSearchService(products, EquivalenceResolver(equivalences))


@pytest.fixture
def unavailable():
    return StoreUnavailable("connection refused")


@pytest.fixture
async def session_factory(tmp_path):
    """SQLite в файле: у каждой сессии свое соединение, как в production."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'stock.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
    yield factory
    await engine.dispose()
