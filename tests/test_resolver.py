"""Tests for one-hop equivalence resolution."""

import pytest

from conftest import InMemoryEquivalenceStore
from stockbot.services.search import EquivalencePair, EquivalenceResolver


class TestResolve:

    async def test_both_directions(self):
        resolver = EquivalenceResolver(InMemoryEquivalenceStore([("A", "B"), ("C", "A")]))
        assert await resolver.resolve("A") == {"B", "C"}
        assert await resolver.resolve("B") == {"A"}

    async def test_duplicate_pairs_collapse(self):
        resolver = EquivalenceResolver(InMemoryEquivalenceStore([("A", "B"), ("A", "B")]))
        assert await resolver.resolve("A") == {"B"}

    async def test_no_transitive_closure(self):
        resolver = EquivalenceResolver(InMemoryEquivalenceStore([("A", "B"), ("B", "C")]))
        assert await resolver.resolve("A") == {"B"}
        assert await resolver.resolve("B") == {"A", "C"}

    async def test_excludes_own_code(self):
        store = InMemoryEquivalenceStore()
        # самопара могла попасть в базу в обход импорта
        store.pairs.append(EquivalencePair("A", "A"))
        resolver = EquivalenceResolver(store)
        assert await resolver.resolve("A") == set()

    @pytest.mark.parametrize("code", ["", "   ", None])
    async def test_empty_code(self, code):
        store = InMemoryEquivalenceStore([("A", "B")])
        resolver = EquivalenceResolver(store)
        assert await resolver.resolve(code) == set()
        assert store.calls == []

    async def test_unknown_code(self):
        resolver = EquivalenceResolver(InMemoryEquivalenceStore([("A", "B")]))
        assert await resolver.resolve("Z") == set()

    async def test_store_error_degrades_to_empty(self, unavailable):
        resolver = EquivalenceResolver(InMemoryEquivalenceStore([("A", "B")], error=unavailable))
        assert await resolver.resolve("A") == set()


class TestResolveMany:

    async def test_union_over_codes(self):
        resolver = EquivalenceResolver(InMemoryEquivalenceStore([("A", "B"), ("C", "D"), ("A", "D")]))
        assert await resolver.resolve_many(["A", "C"]) == {"B", "D"}

    async def test_input_codes_equivalent_to_each_other_are_kept(self):
        resolver = EquivalenceResolver(InMemoryEquivalenceStore([("A", "B")]))
        assert await resolver.resolve_many(["A", "B"]) == {"A", "B"}

    async def test_single_bulk_query(self):
        store = InMemoryEquivalenceStore([("A", "B")])
        resolver = EquivalenceResolver(store)
        await resolver.resolve_many(["A", "A", "B"])
        assert store.bulk_calls == [frozenset({"A", "B"})]
        assert store.calls == []

    async def test_store_error_degrades_to_empty(self, unavailable):
        store = InMemoryEquivalenceStore([("A", "B")], error=unavailable)
        assert await EquivalenceResolver(store).resolve_many(["A"]) == set()

    async def test_empty_input(self):
        store = InMemoryEquivalenceStore([("A", "B")])
        assert await EquivalenceResolver(store).resolve_many([]) == set()
        assert store.calls == []
        assert store.bulk_calls == []


class TestCaseInsensitiveStore:
    """Хранилище сравнивает коды без учета регистра, как MySQL."""

    async def test_resolve_code_typed_in_other_case(self):
        resolver = EquivalenceResolver(InMemoryEquivalenceStore([("13E", "X1")], case_insensitive=True))
        assert await resolver.resolve("x1") == {"13E"}
        assert await resolver.resolve("13e") == {"X1"}

    async def test_same_code_in_other_case_is_not_an_equivalent(self):
        resolver = EquivalenceResolver(InMemoryEquivalenceStore([("13E", "13e")], case_insensitive=True))
        assert await resolver.resolve("13E") == set()

    async def test_resolve_many(self):
        store = InMemoryEquivalenceStore([("13E", "X1"), ("y2", "14E")], case_insensitive=True)
        assert await EquivalenceResolver(store).resolve_many(["13e", "Y2"]) == {"X1", "14E"}


class TestEquivalencePair:

    def test_other(self):
        pair = EquivalencePair("13E", "EQV13E")
        assert pair.other("13E") == "EQV13E"
        assert pair.other("EQV13E") == "13E"
        assert pair.other("14E") is None

    def test_other_ignores_case(self):
        pair = EquivalencePair("13E", "EQV13E")
        assert pair.other("eqv13e") == "13E"
        assert pair.other("13e") == "EQV13E"
