"""
Модуль поиска продуктов.

Поиск по коду с раскрытием эквивалентов:
1. Прямой поиск по подстроке кода
2. Продукты с эквивалентными кодами (один шаг)
3. Слияние без дублей и пагинация итогового списка
"""

from .base import BaseProductStore, BaseEquivalenceStore
from .result import ProductItem, EquivalencePair, SearchResult, Page
from .resolver import EquivalenceResolver
from .equivalence_search import EquivalenceSearchService
from .stores import SqlProductStore, SqlEquivalenceStore

# При импорте модуля будет доступно то что написано снизу
__all__ = [
    'BaseProductStore',
    'BaseEquivalenceStore',
    'ProductItem',
    'EquivalencePair',
    'SearchResult',
    'Page',
    'EquivalenceResolver',
    'EquivalenceSearchService',
    'SqlProductStore',
    'SqlEquivalenceStore',
]
