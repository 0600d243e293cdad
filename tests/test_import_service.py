"""Tests for bulk import parsing and batched writes."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from stockbot.core.exceptions import ImportFormatError
from stockbot.database.repositories import EquivalenceRepository, ProductRepository
from stockbot.services.import_service import (
    ImportService,
    parse_equivalence_line,
    parse_lines,
    parse_price,
    parse_product_line,
    parse_stock,
)


class TestParsePrice:

    @pytest.mark.parametrize("raw,expected", [
        ("10.5", Decimal("10.50")),
        ("10,5", Decimal("10.50")),
        ("1.234,56", Decimal("1234.56")),
        ("", Decimal("0.00")),
        ("  7 ", Decimal("7.00")),
    ])
    def test_accepted_formats(self, raw, expected):
        assert parse_price(raw, 1) == expected

    @pytest.mark.parametrize("raw", ["abc", "-1", "100000000", "NaN", "Infinity"])
    def test_rejected(self, raw):
        with pytest.raises(ImportFormatError):
            parse_price(raw, 3)

    def test_error_carries_line_number(self):
        with pytest.raises(ImportFormatError) as exc_info:
            parse_price("x", 42)
        assert exc_info.value.line_no == 42
        assert str(exc_info.value).startswith("Строка 42:")


class TestParseStock:

    def test_blank_is_zero(self):
        assert parse_stock(" ", 1) == 0

    @pytest.mark.parametrize("raw,expected", [("5", 5), ("5.0", 5), ("5,00", 5), (" 12 ", 12)])
    def test_integral_values(self, raw, expected):
        assert parse_stock(raw, 1) == expected

    @pytest.mark.parametrize("raw", ["1.5", "-3", "2147483648", "много", "NaN"])
    def test_rejected(self, raw):
        with pytest.raises(ImportFormatError):
            parse_stock(raw, 1)


class TestParseProductLine:

    def test_full_line(self):
        row = parse_product_line("13E; 5 ;19,90;Gol 1.0; Palio", 1)
        assert row == {
            "product": "13E",
            "stock": 5,
            "price": Decimal("19.90"),
            "application": "Gol 1.0; Palio",
        }

    def test_without_application(self):
        row = parse_product_line("14E;0;21.00", 1)
        assert row["application"] is None

    def test_too_few_fields(self):
        with pytest.raises(ImportFormatError):
            parse_product_line("13E;5", 1)

    def test_code_required(self):
        with pytest.raises(ImportFormatError):
            parse_product_line(" ;5;1.00", 1)

    def test_code_length_limit(self):
        with pytest.raises(ImportFormatError):
            parse_product_line("X" * 256 + ";1;1.00", 1)


class TestParseEquivalenceLine:

    def test_pair(self):
        assert parse_equivalence_line(" 13E ;EQV13E", 1) == {"product_code": "13E", "equivalent_code": "EQV13E"}

    @pytest.mark.parametrize("line", ["13E", ";EQV13E", "13E; ", "13E;13E"])
    def test_rejected(self, line):
        with pytest.raises(ImportFormatError):
            parse_equivalence_line(line, 1)


class TestParseLines:

    def test_blank_lines_skipped_and_numbered(self):
        text = "13E;1;1.00\n\n14E;x;1.00\n   \nEQV13E;2;2,00\n"
        rows, errors, total = parse_lines(text, parse_product_line)

        assert total == 3
        assert [row["product"] for row in rows] == ["13E", "EQV13E"]
        assert len(errors) == 1
        assert errors[0].startswith("Строка 3:")

    def test_empty_text(self):
        assert parse_lines("", parse_product_line) == ([], [], 0)


class TestImportService:

    async def test_import_products(self, session_factory):
        async with session_factory() as session:
            result = await ImportService(session).import_products(
                "13E;5;19,90;Gol\n14E;0;21.00\nbad line\n"
            )
            assert result.total == 3
            assert result.success == 2
            assert result.failed == 1
            assert result.errors == ["Строка 3: Неверный формат. Ожидается: код;остаток;цена;применение"]

        async with session_factory() as session:
            repo = ProductRepository(session)
            assert await repo.count() == 2
            (product,) = await repo.search_by_code("13E")
            assert product.price == Decimal("19.90")

    async def test_import_equivalences(self, session_factory):
        async with session_factory() as session:
            result = await ImportService(session).import_equivalences("13E;EQV13E\nX1;X1\n")
            assert (result.total, result.success) == (2, 1)

        async with session_factory() as session:
            pairs = await EquivalenceRepository(session).get_by_either_code("EQV13E")
            assert [(p.product_code, p.equivalent_code) for p in pairs] == [("13E", "EQV13E")]

    async def test_written_in_batches(self, session_factory, monkeypatch):
        batches = []
        original = ProductRepository.add_many

        async def recording(self, rows):
            batches.append(len(rows))
            return await original(self, rows)

        monkeypatch.setattr(ProductRepository, "add_many", recording)
        text = "\n".join(f"P{i};1;1.00" for i in range(5))
        async with session_factory() as session:
            result = await ImportService(session, batch_size=2).import_products(text)

        assert batches == [2, 2, 1]
        assert result.success == 5

    async def test_failed_batch_rolled_back_others_kept(self, session_factory, monkeypatch):
        original = ProductRepository.add_many

        async def second_fails(self, rows):
            if rows[0]["product"] == "P2":
                raise IntegrityError("INSERT", {}, Exception("duplicate"))
            return await original(self, rows)

        monkeypatch.setattr(ProductRepository, "add_many", second_fails)
        text = "\n".join(f"P{i};1;1.00" for i in range(5))
        async with session_factory() as session:
            result = await ImportService(session, batch_size=2).import_products(text)

        assert result.total == 5
        assert result.success == 3
        assert result.errors == ["Пакет 2: IntegrityError"]

        async with session_factory() as session:
            found = await ProductRepository(session).search_by_code("P")
            assert sorted(p.product for p in found) == ["P0", "P1", "P4"]

    async def test_nothing_to_import(self, session_factory):
        async with session_factory() as session:
            result = await ImportService(session).import_products("\n \n")
        assert (result.total, result.success, result.errors) == (0, 0, [])
