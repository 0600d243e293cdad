"""Tests for the SQLAlchemy store adapters (SQLite via aiosqlite)."""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError, ProgrammingError

from stockbot.core.exceptions import StoreQueryError, StoreUnavailable
from stockbot.database.models import Equivalence, Product
from stockbot.database.repositories import ProductRepository, escape_like
from stockbot.services.search import (
    EquivalenceResolver,
    EquivalenceSearchService,
    SqlEquivalenceStore,
    SqlProductStore,
    stores,
)


async def seed(session_factory, products, pairs=()):
    async with session_factory() as session:
        for code, stock, price, application in products:
            session.add(Product(product=code, stock=stock, price=Decimal(price), application=application))
        for product_code, equivalent_code in pairs:
            session.add(Equivalence(product_code=product_code, equivalent_code=equivalent_code))
        await session.commit()


@pytest.fixture
async def seeded(session_factory):
    await seed(
        session_factory,
        [
            ("13E", 5, "19.90", "Gol 1.0"),
            ("14E", 0, "21.00", None),
            ("EQV13E", 2, "17.50", ""),
            ("50%OFF", 1, "1.00", None),
            ("A_B", 1, "1.00", None),
        ],
        [("13E", "EQV13E"), ("13E", "EQV13E"), ("X1", "13E")],
    )
    return session_factory


class TestSqlProductStore:

    async def test_substring_is_case_insensitive(self, seeded):
        store = SqlProductStore(seeded)
        found = await store.find_by_code_substring("13e")
        assert sorted(p.code for p in found) == ["13E", "EQV13E"]

    async def test_rows_translated_to_domain(self, seeded):
        store = SqlProductStore(seeded)
        (product,) = await store.find_by_code_substring("14E")
        assert product.code == "14E"
        assert product.stock == 0
        assert product.price == Decimal("21.00")
        assert product.application is None

    async def test_empty_application_becomes_none(self, seeded):
        (product,) = await SqlProductStore(seeded).find_by_code_substring("EQV")
        assert product.application is None

    async def test_like_wildcards_are_literal(self, seeded):
        store = SqlProductStore(seeded)
        assert [p.code for p in await store.find_by_code_substring("%")] == ["50%OFF"]
        assert [p.code for p in await store.find_by_code_substring("_")] == ["A_B"]

    async def test_find_by_codes(self, seeded):
        store = SqlProductStore(seeded)
        found = await store.find_by_codes({"13E", "14E", "MISSING"})
        assert sorted(p.code for p in found) == ["13E", "14E"]

    async def test_find_by_codes_empty_set(self, seeded):
        assert await SqlProductStore(seeded).find_by_codes(set()) == []

    async def test_timeout_maps_to_unavailable(self, seeded, monkeypatch):
        async def slow(self, substring):
            await asyncio.sleep(1)
            return []

        monkeypatch.setattr(ProductRepository, "search_by_code", slow)
        store = SqlProductStore(seeded, timeout=0.01)
        with pytest.raises(StoreUnavailable):
            await store.find_by_code_substring("13E")

    async def test_connection_error_maps_to_unavailable(self, seeded, monkeypatch):
        async def broken(self, substring):
            raise OperationalError("SELECT 1", {}, Exception("server has gone away"))

        monkeypatch.setattr(ProductRepository, "search_by_code", broken)
        with pytest.raises(StoreUnavailable):
            await SqlProductStore(seeded).find_by_code_substring("13E")

    async def test_rejected_query_maps_to_query_error(self, seeded, monkeypatch):
        async def rejected(self, substring):
            raise ProgrammingError("SELECT", {}, Exception("syntax error"))

        monkeypatch.setattr(ProductRepository, "search_by_code", rejected)
        with pytest.raises(StoreQueryError):
            await SqlProductStore(seeded).find_by_code_substring("13E")


class TestSqlEquivalenceStore:

    async def test_either_column(self, seeded):
        store = SqlEquivalenceStore(seeded)
        pairs = await store.find_by_either_code("13E")
        assert len(pairs) == 3

    async def test_resolver_over_sql(self, seeded):
        resolver = EquivalenceResolver(SqlEquivalenceStore(seeded))
        assert await resolver.resolve("13E") == {"EQV13E", "X1"}
        assert await resolver.resolve("EQV13E") == {"13E"}

    async def test_any_code_matches_either_column(self, seeded):
        store = SqlEquivalenceStore(seeded)
        pairs = await store.find_by_any_code({"EQV13E", "X1", "MISSING"})
        assert sorted((p.product_code, p.equivalent_code) for p in pairs) == [
            ("13E", "EQV13E"), ("13E", "EQV13E"), ("X1", "13E"),
        ]

    async def test_any_code_split_into_chunks(self, seeded, monkeypatch):
        monkeypatch.setattr(stores, "CODES_PER_QUERY", 2)
        codes = {"EQV13E", "X1", "A", "B", "C"}
        pairs = await SqlEquivalenceStore(seeded).find_by_any_code(codes)
        assert len(pairs) == 3

    async def test_any_code_empty_set(self, seeded):
        assert await SqlEquivalenceStore(seeded).find_by_any_code(set()) == []

    async def test_resolve_many_over_sql(self, seeded):
        resolver = EquivalenceResolver(SqlEquivalenceStore(seeded))
        assert await resolver.resolve_many(["EQV13E", "X1"]) == {"13E"}


class TestSearchOverSql:

    async def test_end_to_end(self, seeded):
        service = EquivalenceSearchService(
            SqlProductStore(seeded),
            EquivalenceResolver(SqlEquivalenceStore(seeded)),
        )
        page = await service.search("13E", 1, 10)

        assert [item.code for item in page.items] == ["13E", "EQV13E"]
        assert page.total_count == 2
        assert page.items[0].related_codes == frozenset({"EQV13E", "X1"})

    async def test_search_by_alternate_code_only_in_equivalences(self, seeded):
        service = EquivalenceSearchService(
            SqlProductStore(seeded),
            EquivalenceResolver(SqlEquivalenceStore(seeded)),
        )
        page = await service.search("X1", 1, 10)
        assert [item.code for item in page.items] == ["13E"]


class TestEscapeLike:

    def test_escape(self):
        assert escape_like("a%b_c\\d") == "a\\%b\\_c\\\\d"
        assert escape_like("13E") == "13E"
