"""Content-hash plan cache.

Plans are pure functions of their directive, the descriptors it can reach,
the rest of the directive set and the configuration. The cache keys on a
digest of all four, so a pass over unchanged inputs reuses every plan.
"""

from __future__ import annotations

import hashlib
import threading
from collections import OrderedDict
from collections.abc import Iterable
from typing import TYPE_CHECKING

from map_compiler.core.descriptors import TypeDescriptor
from map_compiler.core.diagnostics import Diagnostic
from map_compiler.core.directives import MappingDirective

if TYPE_CHECKING:
    from map_compiler.mapping.plan import Plan

CacheEntry = tuple["Plan | None", tuple[Diagnostic, ...]]


def plan_key(
    directive: MappingDirective,
    closure: Iterable[TypeDescriptor],
    directive_set: str,
    config: str,
) -> str:
    """SHA-256 digest identifying the inputs of one plan."""
    digest = hashlib.sha256()
    digest.update(repr(directive).encode())
    for descriptor in closure:
        digest.update(b"\0")
        digest.update(repr(descriptor).encode())
    digest.update(b"\0")
    digest.update(directive_set.encode())
    digest.update(b"\0")
    digest.update(config.encode())
    return digest.hexdigest()


class PlanCache:
    """Thread-safe LRU cache of (plan, diagnostics) by content hash.

    Args:
        maxsize: Maximum number of entries; 0 disables caching.
    """

    def __init__(self, maxsize: int = 256) -> None:
        self._maxsize = maxsize
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry

    def put(self, key: str, entry: CacheEntry) -> None:
        if self._maxsize <= 0:
            return
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            while len(self._entries) > self._maxsize:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
