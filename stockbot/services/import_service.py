import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stockbot.core.exceptions import ImportFormatError
from stockbot.database.repositories import ProductRepository, EquivalenceRepository
from stockbot.services.search.result import MAX_PRICE, MAX_STOCK

logger = logging.getLogger(__name__)

"""
Массовый импорт продуктов и эквивалентностей из текста.

Формат: одна запись на строку, поля через ';', пустые строки пропускаются.
- продукты: код;остаток;цена[;применение]
- эквивалентности: код_продукта;код_эквивалента
"""

FIELD_SEPARATOR = ";"


@dataclass
class ImportResult:
    """Итог импорта"""
    total: int = 0
    success: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.total - self.success


def _data_lines(text: str) -> List[Tuple[int, str]]:
    """Непустые строки с номерами (с 1)"""
    return [
        (number, line)
        for number, line in enumerate(text.splitlines(), start=1)
        if line.strip()
    ]


def parse_price(raw: str, line_no: int) -> Decimal:
    """
    Цена с точкой или запятой: '10.5', '10,5', '1.234,56'
    """
    value = raw.strip() or "0"
    if "," in value:
        value = value.replace(".", "").replace(",", ".")
    try:
        price = Decimal(value)
    except InvalidOperation:
        raise ImportFormatError(line_no, f"Цена должна быть числом ({raw.strip()})")
    if not price.is_finite():
        raise ImportFormatError(line_no, f"Цена должна быть числом ({raw.strip()})")
    if price < 0:
        raise ImportFormatError(line_no, "Цена не может быть отрицательной")
    if price > MAX_PRICE:
        raise ImportFormatError(line_no, "Цена не может превышать 99.999.999,99")
    return price.quantize(Decimal("0.01"))


def parse_stock(raw: str, line_no: int) -> int:
    """
    Целый остаток; '5.0' и '5,0' из выгрузок читаются как 5
    """
    value = raw.strip() or "0"
    try:
        number = Decimal(value.replace(",", "."))
    except InvalidOperation:
        raise ImportFormatError(line_no, f"Остаток должен быть целым числом ({raw.strip()})")
    if not number.is_finite() or number != number.to_integral_value():
        raise ImportFormatError(line_no, f"Остаток должен быть целым числом ({raw.strip()})")
    stock = int(number)
    if stock < 0:
        raise ImportFormatError(line_no, "Остаток не может быть отрицательным")
    if stock > MAX_STOCK:
        raise ImportFormatError(line_no, "Остаток не может превышать 2.147.483.647")
    return stock


def parse_product_line(line: str, line_no: int) -> Dict[str, Any]:
    """
    Разбор строки 'код;остаток;цена[;применение]'
    """
    parts = line.split(FIELD_SEPARATOR)
    if len(parts) < 3:
        raise ImportFormatError(line_no, "Неверный формат. Ожидается: код;остаток;цена;применение")

    code = parts[0].strip()
    if not code:
        raise ImportFormatError(line_no, "Код продукта обязателен")
    if len(code) > 255:
        raise ImportFormatError(line_no, "Код продукта длиннее 255 символов")

    application = FIELD_SEPARATOR.join(parts[3:]).strip() if len(parts) > 3 else ""
    return {
        "product": code,
        "stock": parse_stock(parts[1], line_no),
        "price": parse_price(parts[2], line_no),
        "application": application or None,
    }


def parse_equivalence_line(line: str, line_no: int) -> Dict[str, Any]:
    """
    Разбор строки 'код_продукта;код_эквивалента'
    """
    parts = line.split(FIELD_SEPARATOR)
    if len(parts) < 2:
        raise ImportFormatError(line_no, "Неверный формат. Ожидается: код_продукта;код_эквивалента")

    product_code = parts[0].strip()
    equivalent_code = parts[1].strip()
    if not product_code:
        raise ImportFormatError(line_no, "Код продукта обязателен")
    if not equivalent_code:
        raise ImportFormatError(line_no, "Код эквивалента обязателен")
    if product_code == equivalent_code:
        raise ImportFormatError(line_no, "Код продукта и код эквивалента не могут совпадать")
    return {"product_code": product_code, "equivalent_code": equivalent_code}


def parse_lines(text: str, parse_line: Callable[[str, int], Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], List[str], int]:
    """
    Разбирает весь текст; возвращает (валидные строки, ошибки, всего строк)
    """
    rows: List[Dict[str, Any]] = []
    errors: List[str] = []
    lines = _data_lines(text)
    for line_no, line in lines:
        try:
            rows.append(parse_line(line, line_no))
        except ImportFormatError as e:
            errors.append(str(e))
    return rows, errors, len(lines)


class ImportService:
    """
    Сервис массового импорта. Пишет валидные строки пакетами,
    ошибочный пакет откатывается, остальные продолжают загружаться.
    """
    def __init__(self, session: AsyncSession, batch_size: int = 500):
        self.session = session
        self.batch_size = batch_size
        self.product_repo = ProductRepository(session)
        self.equivalence_repo = EquivalenceRepository(session)

    async def import_products(self, text: str) -> ImportResult:
        rows, errors, total = parse_lines(text, parse_product_line)
        result = ImportResult(total=total, errors=errors)
        await self._write_batches(rows, self.product_repo.add_many, result, "продукты")
        return result

    async def import_equivalences(self, text: str) -> ImportResult:
        rows, errors, total = parse_lines(text, parse_equivalence_line)
        result = ImportResult(total=total, errors=errors)
        await self._write_batches(rows, self.equivalence_repo.add_many, result, "эквивалентности")
        return result

    async def _write_batches(self, rows: Sequence[Dict[str, Any]], add_many, result: ImportResult, kind: str) -> None:
        if not rows:
            logger.info(f"Импорт ({kind}): нет валидных строк, ошибок {len(result.errors)}")
            return

        for start in range(0, len(rows), self.batch_size):
            batch = rows[start:start + self.batch_size]
            batch_no = start // self.batch_size + 1
            try:
                written = await add_many(batch)
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error(f"Импорт ({kind}): пакет {batch_no} не записан: {e}")
                result.errors.append(f"Пакет {batch_no}: {e.__class__.__name__}")
                continue
            result.success += written

        logger.info(
            f"Импорт ({kind}): всего {result.total}, загружено {result.success}, "
            f"ошибок {len(result.errors)}"
        )
