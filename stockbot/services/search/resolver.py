import asyncio
import logging
from typing import Iterable, Set

from stockbot.core.exceptions import StoreError
from .base import BaseEquivalenceStore
from .result import EquivalencePair

logger = logging.getLogger(__name__)


class EquivalenceResolver:
    """
    Раскрывает код в множество эквивалентных кодов на расстоянии одного шага.

    Пары хранятся направленно, но читаются в обе стороны: для пары (A, B)
    resolve("A") == {"B"} и resolve("B") == {"A"}. Цепочки не раскрываются:
    при A-B и B-C код C для A не возвращается.
    """

    def __init__(self, equivalence_store: BaseEquivalenceStore, max_concurrency: int = 8):
        self.equivalence_store = equivalence_store
        # ограничение числа одновременных запросов к хранилищу
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def resolve(self, code: str) -> Set[str]:
        """
        Эквиваленты кода без самого кода. Ошибка хранилища дает пустое множество.
        """
        if not code or not code.strip():
            return set()

        try:
            async with self._semaphore:
                pairs = await self.equivalence_store.find_by_either_code(code)
        except StoreError as e:
            logger.warning(f"Эквиваленты для '{code}' недоступны: {e}")
            return set()

        key = code.casefold()
        related = set()
        for pair in pairs:
            other = pair.other(code)
            if other is not None and other.casefold() != key:
                related.add(other)
        return related

    async def resolve_many(self, codes: Iterable[str]) -> Set[str]:
        """
        Объединение resolve() по всем кодам, одним запросом к хранилищу.
        """
        unique = {code for code in codes if code and code.strip()}
        if not unique:
            return set()

        try:
            async with self._semaphore:
                pairs = await self.equivalence_store.find_by_any_code(unique)
        except StoreError as e:
            logger.warning(f"Эквиваленты для {len(unique)} кодов недоступны: {e}")
            return set()

        return _related_codes(pairs, unique)


def _related_codes(pairs: Iterable[EquivalencePair], codes: Iterable[str]) -> Set[str]:
    """
    Вторые стороны пар для кодов codes, как объединение resolve() по каждому.
    """
    keys = {code.casefold() for code in codes}
    related = set()
    for pair in pairs:
        left, right = pair.product_code.casefold(), pair.equivalent_code.casefold()
        if left == right:
            continue
        if left in keys:
            related.add(pair.equivalent_code)
        if right in keys:
            related.add(pair.product_code)
    return related
