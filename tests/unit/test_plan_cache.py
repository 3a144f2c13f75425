"""Unit tests for PlanCache and plan keys."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from map_compiler.core.cache import PlanCache, plan_key
from map_compiler.core.config import GeneratorConfig
from map_compiler.core.descriptors import TypeDescriptor
from map_compiler.core.directives import MappingDirective
from map_compiler.core.enums import TypeKind

DIRECTIVE = MappingDirective(source="shop.Order", target="shop.OrderDto")
ORDER = TypeDescriptor(name="Order", module="shop", kind=TypeKind.CLASS)


def _key(
    directive: MappingDirective = DIRECTIVE, closure=(ORDER,), directive_set: str = "", config=None
) -> str:
    return plan_key(directive, closure, directive_set, (config or GeneratorConfig()).fingerprint())


class TestPlanKey:
    def test_stable(self) -> None:
        assert _key() == _key()

    def test_directive_changes_key(self) -> None:
        changed = MappingDirective(source="shop.Order", target="shop.OrderDto", bidirectional=True)
        assert _key() != _key(changed)

    def test_closure_changes_key(self) -> None:
        changed = TypeDescriptor(name="Order", module="shop", kind=TypeKind.RECORD)
        assert _key() != _key(closure=(changed,))

    def test_directive_set_changes_key(self) -> None:
        assert _key() != _key(directive_set="other")

    def test_config_changes_key(self) -> None:
        assert _key() != _key(config=GeneratorConfig(enum_equivalence_groups=(("A", "B"),)))


class TestPlanCache:
    def test_miss_then_hit(self) -> None:
        cache = PlanCache()
        assert cache.get("k") is None
        cache.put("k", (None, ()))
        assert cache.get("k") == (None, ())
        assert (cache.hits, cache.misses) == (1, 1)

    def test_lru_eviction(self) -> None:
        cache = PlanCache(maxsize=2)
        cache.put("a", (None, ()))
        cache.put("b", (None, ()))
        cache.get("a")
        cache.put("c", (None, ()))
        assert "a" in cache
        assert "b" not in cache
        assert len(cache) == 2

    def test_zero_size_disables(self) -> None:
        cache = PlanCache(maxsize=0)
        cache.put("a", (None, ()))
        assert len(cache) == 0

    def test_clear(self) -> None:
        cache = PlanCache()
        cache.put("a", (None, ()))
        cache.get("a")
        cache.clear()
        assert len(cache) == 0
        assert cache.hits == 0

    def test_concurrent_puts(self) -> None:
        cache = PlanCache(maxsize=1000)
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda i: cache.put(str(i), (None, ())), range(500)))
        assert len(cache) == 500
