"""
Explicit cache for derived dashboard views.

Entries are keyed by (domain, kind, filter signature) and stored in Redis
under a per-(domain, kind) generation number:

    views:<domain>:<kind>:generation          -> int
    views:<domain>:<kind>:g<generation>:<sig> -> JSON value

Invalidating a kind is a single INCR of its generation; entries written
under older generations are never read again and expire on their TTL.

Mutations go through `mutation()`:

    async with view_cache.mutation(domain, kinds) as scope:
        record = await service.create(...)
        scope.committed = True

From the moment the block is entered until it exits, reads of that domain
bypass the cache and never write to it, and the affected handles report
stale. On exit the listed kinds are invalidated when anything was
committed; a mutation that committed nothing leaves the cache alone.
"""

import time
from collections import Counter, OrderedDict
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Generic, Protocol, TypeVar

from pydantic import TypeAdapter, ValidationError

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.records import RecordDomain
from app.models.domain.views import ViewKey, ViewKind, ViewState
from app.services.redis_client import fast_redis

logger = get_logger(__name__)

T = TypeVar("T")


class CacheBackend(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set_with_ttl(self, key: str, value: str, ttl_s: int | None = None) -> bool: ...

    async def incr_with_ttl(self, key: str, ttl_s: int | None = None) -> int | None: ...


@dataclass
class ViewHandle(Generic[T]):
    """What an observer sees for one view: tri-state plus last value."""

    key: ViewKey
    state: ViewState = ViewState.LOADING
    value: T | None = None
    error: str | None = None
    stale: bool = False
    updated_at: datetime | None = None

    def start_loading(self) -> None:
        self.state = ViewState.LOADING
        self.error = None

    def resolve(self, value: T, *, stale: bool = False) -> None:
        self.state = ViewState.READY
        self.value = value
        self.error = None
        self.stale = stale
        self.updated_at = datetime.now(UTC)

    def fail(self, error: BaseException) -> None:
        self.state = ViewState.ERROR
        self.error = str(error) or type(error).__name__
        self.updated_at = datetime.now(UTC)


@dataclass
class MutationScope:
    domain: RecordDomain
    kinds: frozenset[ViewKind]
    committed: bool = False


@dataclass
class _Bypass:
    until: float = 0.0


class ViewCache:
    def __init__(
        self,
        backend: CacheBackend | None = None,
        ttl_seconds: int | None = None,
        max_handles: int | None = None,
    ):
        self._backend = backend or fast_redis
        self._ttl = ttl_seconds or settings.VIEW_CACHE_TTL_SECONDS
        self._max_handles = max_handles or settings.VIEW_HANDLE_LIMIT
        # Least recently used first
        self._handles: OrderedDict[ViewKey, ViewHandle[Any]] = OrderedDict()
        self._in_flight: Counter[RecordDomain] = Counter()
        self._in_flight_kinds: Counter[tuple[RecordDomain, ViewKind]] = Counter()
        self._local_generations: Counter[tuple[RecordDomain, ViewKind]] = Counter()
        self._bypass: dict[tuple[RecordDomain, ViewKind], _Bypass] = {}

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def handle(self, key: ViewKey) -> ViewHandle[Any]:
        handle = self._handles.get(key)
        if handle is not None:
            self._handles.move_to_end(key)
            return handle

        handle = self._handles[key] = ViewHandle(
            key=key, stale=self._in_flight_kinds[(key.domain, key.kind)] > 0
        )
        while len(self._handles) > self._max_handles:
            evicted, _ = self._handles.popitem(last=False)
            logger.debug("Evicted view handle", key=evicted.cache_key())
        return handle

    def handles_for(self, domain: RecordDomain, kinds: Iterable[ViewKind]) -> list[ViewHandle[Any]]:
        wanted = set(kinds)
        return [
            handle
            for key, handle in self._handles.items()
            if key.domain == domain and key.kind in wanted
        ]

    def mutation_in_flight(self, domain: RecordDomain) -> bool:
        return self._in_flight[domain] > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def read(
        self,
        key: ViewKey,
        loader: Callable[[], Awaitable[T]],
        adapter: TypeAdapter[T],
    ) -> T:
        """Cached value for `key`, or the loader's fresh value (stored when still current)."""
        handle = self.handle(key)
        slot = (key.domain, key.kind)
        local_generation = self._local_generations[slot]
        cacheable = not self.mutation_in_flight(key.domain) and not self._bypassed(slot)

        storage_key = None
        if cacheable:
            generation = await self._remote_generation(key)
            storage_key = f"{ViewKey.kind_prefix(key.domain, key.kind)}g{generation}:{key.signature}"
            cached = await self._backend.get(storage_key)
            if cached is not None:
                try:
                    value = adapter.validate_json(cached)
                except ValidationError as e:
                    logger.warning("Discarding undecodable cached view", key=storage_key, error=str(e))
                else:
                    handle.resolve(value)
                    return value

        handle.start_loading()
        try:
            value = await loader()
        except Exception as e:
            handle.fail(e)
            raise

        still_current = (
            self._local_generations[slot] == local_generation
            and not self.mutation_in_flight(key.domain)
        )
        if storage_key and still_current:
            await self._backend.set_with_ttl(
                storage_key, adapter.dump_json(value).decode("utf-8"), self._ttl
            )
        elif not still_current:
            logger.debug("View read overlapped a mutation, not caching", key=key.cache_key())

        handle.resolve(value, stale=not still_current)
        return value

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def mutation(
        self, domain: RecordDomain, kinds: Iterable[ViewKind]
    ) -> AsyncIterator[MutationScope]:
        scope = MutationScope(domain=domain, kinds=frozenset(kinds))
        self.begin_mutation(scope.domain, scope.kinds)
        try:
            yield scope
        finally:
            await self.end_mutation(scope.domain, scope.kinds, committed=scope.committed)

    def begin_mutation(self, domain: RecordDomain, kinds: Iterable[ViewKind]) -> None:
        """Called before the store call: no read of `domain` caches until the matching end."""
        kinds = frozenset(kinds)
        self._in_flight[domain] += 1
        for kind in kinds:
            self._in_flight_kinds[(domain, kind)] += 1
            self._local_generations[(domain, kind)] += 1
        for handle in self.handles_for(domain, kinds):
            handle.stale = True

    async def end_mutation(
        self, domain: RecordDomain, kinds: Iterable[ViewKind], *, committed: bool
    ) -> None:
        kinds = frozenset(kinds)
        self._in_flight[domain] -= 1
        if self._in_flight[domain] <= 0:
            del self._in_flight[domain]
        settled = set()
        for kind in kinds:
            slot = (domain, kind)
            self._in_flight_kinds[slot] -= 1
            if self._in_flight_kinds[slot] <= 0:
                del self._in_flight_kinds[slot]
                settled.add(kind)

        if not committed:
            # Store unchanged; views another mutation still touches stay stale
            for handle in self.handles_for(domain, settled):
                if handle.state == ViewState.READY:
                    handle.stale = False
            return

        await self.invalidate(domain, kinds)

    async def invalidate(self, domain: RecordDomain, kinds: Iterable[ViewKind]) -> None:
        """Drop every cached entry of the given kinds, whatever their signature."""
        kinds = frozenset(kinds)
        for kind in kinds:
            slot = (domain, kind)
            self._local_generations[slot] += 1
            generation = await self._backend.incr_with_ttl(self._generation_key(domain, kind))
            if generation is None:
                # Could not bump the shared generation: skip the cache until old entries expire
                self._bypass.setdefault(slot, _Bypass()).until = time.monotonic() + self._ttl
                logger.error(
                    "View invalidation failed, bypassing cache",
                    domain=str(domain),
                    kind=str(kind),
                    bypass_seconds=self._ttl,
                )

        for handle in self.handles_for(domain, kinds):
            handle.stale = True

        logger.info("Views invalidated", domain=str(domain), kinds=sorted(str(k) for k in kinds))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _generation_key(domain: RecordDomain, kind: ViewKind) -> str:
        return f"{ViewKey.kind_prefix(domain, kind)}generation"

    async def _remote_generation(self, key: ViewKey) -> int:
        raw = await self._backend.get(self._generation_key(key.domain, key.kind))
        try:
            return int(raw) if raw is not None else 0
        except ValueError:
            logger.warning("Invalid view generation in cache", key=key.cache_key(), value=raw)
            return 0

    def _bypassed(self, slot: tuple[RecordDomain, ViewKind]) -> bool:
        bypass = self._bypass.get(slot)
        if bypass is None:
            return False
        if time.monotonic() >= bypass.until:
            del self._bypass[slot]
            return False
        return True


view_cache = ViewCache()
