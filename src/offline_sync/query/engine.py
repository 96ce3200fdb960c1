from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from offline_sync.cache.models import CacheEntry, CacheStatus
from offline_sync.cache.store import CacheStore
from offline_sync.core.clock import Clock, SystemClock
from offline_sync.core.errors import NetworkUnreachable, SerializationFault
from offline_sync.core.retry import RetryPolicy, call_with_retry
from offline_sync.monitors.focus import FocusMonitor
from offline_sync.monitors.network import NetworkMonitor
from offline_sync.query.models import Fetcher, QueryOptions, QuerySnapshot, ReadResult, SnapshotListener

logger = logging.getLogger(__name__)

_NOTHING_DELIVERED = object()


@dataclass(slots=True)
class _QueryState:
    fetcher: Optional[Fetcher] = None
    options: QueryOptions = QueryOptions()
    subscribers: list[SnapshotListener] = field(default_factory=list)
    task: Optional[asyncio.Task] = None
    error: Optional[BaseException] = None
    # Transition epoch at which the entry was last fetched, written or loaded.
    validated_epoch: int = 0
    # Bumped on every value commit, removal and clear.
    revision: int = 0
    awaiting_online: bool = False
    last_delivered: Any = _NOTHING_DELIVERED


def _error_key(error: Optional[BaseException]) -> Optional[tuple[str, str]]:
    if error is None:
        return None
    return type(error).__name__, str(error)


def _log_refetch_result(task: asyncio.Task) -> None:
    try:
        task.result()
    except asyncio.CancelledError:
        return
    except Exception:
        logger.exception("Query refetch task failed unexpectedly.")


class QueryEngine:
    """
    Serves cache reads immediately and keeps entries fresh in the background.

    A read returns whatever is cached (even stale) and, when the entry is absent, stale,
    invalid, or predates the last online/foreground transition, starts one refetch for the
    key. Nothing is fetched while the network monitor reports offline; such keys are
    fetched once when connectivity returns. Successful fetches are written through to the
    CacheStore and pushed to subscribers.
    """

    def __init__(
        self,
        *,
        cache_store: CacheStore,
        network: NetworkMonitor,
        focus: FocusMonitor,
        clock: Optional[Clock] = None,
        default_stale_after: float = 300.0,
        gc_after: float = 86400.0,
        retry_policy: RetryPolicy = RetryPolicy(),
    ) -> None:
        self._cache_store = cache_store
        self._network = network
        self._focus = focus
        self._clock = clock or SystemClock()
        self._default_stale_after = default_stale_after
        self._gc_after = gc_after
        self._retry_policy = retry_policy

        self._entries: Dict[str, CacheEntry] = {}
        self._states: Dict[str, _QueryState] = {}
        self._loaded: set[str] = set()
        self._dirty: set[str] = set()
        self._epoch = 0
        self._unsubscribers: list[Callable[[], None]] = []

    async def start(self) -> None:
        """Hydrate the in-memory index from the store and follow monitor transitions."""
        if not self._unsubscribers:
            self._unsubscribers.append(self._network.subscribe(self._on_network_change))
            self._unsubscribers.append(self._focus.subscribe(self._on_focus_change))

        try:
            keys = await self._cache_store.keys()
        except Exception:
            logger.exception("Failed to enumerate persisted cache keys, starting with an empty cache.")
            return
        for key in keys:
            await self._ensure_loaded(key)
        logger.info("Query cache hydrated. entries=%d", len(self._entries))

    async def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        await self._cancel_tasks(self._states.values())

    async def read(
        self,
        key: str,
        fetcher: Fetcher,
        options: Optional[QueryOptions] = None,
    ) -> ReadResult:
        state = self._state(key)
        state.fetcher = fetcher
        if options is not None:
            state.options = options
        await self._ensure_loaded(key)
        task = self._maybe_refetch(key, state)
        return ReadResult(snapshot=self.peek(key), refetch=task)

    def peek(self, key: str) -> QuerySnapshot:
        entry = self._entries.get(key)
        state = self._states.get(key)
        error = state.error if state is not None else None
        if entry is None:
            return QuerySnapshot(key=key, error=error)
        return QuerySnapshot(
            key=key,
            value=entry.value,
            status=entry.current_status(self._clock.now()),
            fetched_at=entry.fetched_at,
            error=error,
        )

    async def write(self, key: str, value: Any, *, stale_after: Optional[float] = None) -> QuerySnapshot:
        """Commit a value locally without contacting the network."""
        state = self._state(key)
        await self._ensure_loaded(key)
        now = self._clock.now()
        current = self._entries.get(key)
        fetched_at = max(now, current.fetched_at) if current is not None else now
        entry = CacheEntry(
            key=key,
            value=value,
            fetched_at=fetched_at,
            stale_after=self._stale_after_for(state, stale_after),
            status=CacheStatus.FRESH,
        )
        self._entries[key] = entry
        state.revision += 1
        state.error = None
        state.validated_epoch = self._epoch
        await self._persist(entry)
        self._notify(key, state)
        return self.peek(key)

    async def invalidate(self, key: str) -> None:
        state = self._state(key)
        entry = await self._ensure_loaded(key)
        if entry is not None and entry.status is not CacheStatus.INVALID:
            entry.status = CacheStatus.INVALID
            await self._persist(entry)
            logger.debug("Cache entry invalidated. key=%s", key)
        if state.subscribers:
            self._start_refetch(key, state)

    def subscribe(self, key: str, callback: SnapshotListener) -> Callable[[], None]:
        state = self._state(key)
        state.subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in state.subscribers:
                state.subscribers.remove(callback)

        return _unsubscribe

    async def remove(self, key: str) -> None:
        state = self._state(key)
        await self._cancel_tasks([state])
        self._loaded.add(key)
        self._dirty.discard(key)
        removed = self._entries.pop(key, None)
        state.revision += 1
        state.error = None
        state.awaiting_online = False
        try:
            await self._cache_store.remove(key)
        except Exception:
            logger.exception("Failed to remove persisted cache entry. key=%s", key)
        if removed is not None:
            self._notify(key, state)

    async def clear(self) -> None:
        """Drop every entry, in memory and on disk. Used on sign-out."""
        await self._cancel_tasks(self._states.values())
        keys = list(self._entries.keys())
        self._entries.clear()
        self._dirty.clear()
        for state in self._states.values():
            state.revision += 1
            state.error = None
            state.awaiting_online = False
        try:
            await self._cache_store.clear()
        except Exception:
            logger.exception("Failed to clear the persisted cache.")
        for key in keys:
            state = self._states.get(key)
            if state is not None:
                self._notify(key, state)
        logger.info("Query cache cleared. entries=%d", len(keys))

    async def mutate(self, mutation: Callable[[], Awaitable[Any]], *, invalidates: Iterable[str] = ()) -> Any:
        """
        Run a server write exactly once.

        Writes are never retried here; the caller owns idempotency. On success the listed
        keys are invalidated so their next read refetches.
        """
        if not self._network.online:
            raise NetworkUnreachable("Device is offline, the write was not sent.")
        result = await mutation()
        for key in invalidates:
            await self.invalidate(key)
        return result

    def _state(self, key: str) -> _QueryState:
        state = self._states.get(key)
        if state is None:
            state = _QueryState()
            self._states[key] = state
        return state

    def _stale_after_for(self, state: _QueryState, override: Optional[float] = None) -> float:
        if override is not None:
            return override
        if state.options.stale_after is not None:
            return state.options.stale_after
        return self._default_stale_after

    async def _ensure_loaded(self, key: str) -> Optional[CacheEntry]:
        if key in self._loaded:
            return self._entries.get(key)
        self._loaded.add(key)
        try:
            entry = await self._cache_store.load(key)
        except Exception:
            logger.exception("Failed to load persisted cache entry, treating as a miss. key=%s", key)
            return self._entries.get(key)
        if entry is None or key in self._entries:
            return self._entries.get(key)
        if entry.age(self._clock.now()) >= self._gc_after:
            logger.debug("Dropping expired cache entry. key=%s", key)
            try:
                await self._cache_store.remove(key)
            except Exception:
                logger.exception("Failed to remove expired cache entry. key=%s", key)
            return None
        self._entries[key] = entry
        self._state(key).validated_epoch = self._epoch
        return entry

    def _needs_refetch(self, key: str, state: _QueryState) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return True
        if entry.needs_refetch(self._clock.now()):
            return True
        return state.validated_epoch < self._epoch

    def _maybe_refetch(self, key: str, state: _QueryState) -> Optional[asyncio.Task]:
        if state.task is not None and not state.task.done():
            return state.task
        if not self._needs_refetch(key, state):
            return None
        return self._start_refetch(key, state)

    def _start_refetch(self, key: str, state: _QueryState) -> Optional[asyncio.Task]:
        if state.task is not None and not state.task.done():
            return state.task
        if state.fetcher is None:
            return None
        if not self._network.online:
            if not state.awaiting_online:
                logger.debug("Refetch deferred until the device is online. key=%s", key)
            state.awaiting_online = True
            return None
        state.awaiting_online = False
        state.task = asyncio.create_task(self._refetch(key, state, state.fetcher))
        state.task.add_done_callback(_log_refetch_result)
        return state.task

    async def _refetch(self, key: str, state: _QueryState, fetcher: Fetcher) -> QuerySnapshot:
        policy = state.options.retry_policy or self._retry_policy
        issued_at = self._clock.now()
        issued_epoch = self._epoch
        issued_revision = state.revision
        try:
            value = await call_with_retry(
                fetcher,
                policy=policy,
                clock=self._clock,
                is_online=lambda: self._network.online,
                label=key,
            )
        except NetworkUnreachable as e:
            logger.info("Refetch stopped because the device is offline. key=%s", key)
            state.awaiting_online = True
            self._record_error(key, state, e)
            return self.peek(key)
        except Exception as e:
            logger.warning("Refetch failed. key=%s error_type=%s error=%s", key, type(e).__name__, e)
            self._record_error(key, state, e)
            return self.peek(key)

        current = self._entries.get(key)
        if state.revision != issued_revision or (current is not None and issued_at < current.fetched_at):
            logger.debug("Discarding response older than the committed entry. key=%s", key)
            return self.peek(key)

        entry = CacheEntry(
            key=key,
            value=value,
            fetched_at=issued_at,
            stale_after=self._stale_after_for(state),
            status=CacheStatus.FRESH,
        )
        self._entries[key] = entry
        state.revision += 1
        state.error = None
        state.validated_epoch = issued_epoch
        await self._persist(entry)
        self._notify(key, state)
        return self.peek(key)

    def _record_error(self, key: str, state: _QueryState, error: BaseException) -> None:
        state.error = error
        self._notify(key, state)

    async def _persist(self, entry: CacheEntry) -> None:
        # Entries whose earlier save failed ride along with the next successful write.
        self._dirty.discard(entry.key)
        pending = [entry.key] + sorted(self._dirty)
        for key in pending:
            current = self._entries.get(key)
            if current is None:
                self._dirty.discard(key)
                continue
            try:
                await self._cache_store.save(current)
            except SerializationFault as e:
                logger.warning("Cache entry cannot be persisted, keeping it in memory only. key=%s error=%s", key, e)
                self._dirty.discard(key)
            except Exception as e:
                logger.warning("Failed to persist cache entry, will retry on next write. key=%s error=%s", key, e)
                self._dirty.add(key)
            else:
                self._dirty.discard(key)

    def _notify(self, key: str, state: _QueryState) -> None:
        snapshot = self.peek(key)
        fingerprint = (snapshot.is_absent, snapshot.value, _error_key(snapshot.error))
        if state.last_delivered is not _NOTHING_DELIVERED and state.last_delivered == fingerprint:
            return
        state.last_delivered = fingerprint
        for callback in list(state.subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Query subscriber failed. key=%s", key)

    def _on_network_change(self, online: bool) -> None:
        if not online:
            return
        self._on_transition("online")

    def _on_focus_change(self, focused: bool) -> None:
        if not focused:
            return
        self._on_transition("focus")

    def _on_transition(self, reason: str) -> None:
        self._epoch += 1
        started = 0
        now = self._clock.now()
        for key, state in self._states.items():
            if state.fetcher is None:
                continue
            if not (state.subscribers or state.awaiting_online):
                continue
            entry = self._entries.get(key)
            if not state.awaiting_online and entry is not None and not entry.needs_refetch(now):
                continue
            if self._start_refetch(key, state) is not None:
                started += 1
        logger.info("Refetch triggered by transition. reason=%s keys=%d", reason, started)

    async def _cancel_tasks(self, states: Iterable[_QueryState]) -> None:
        tasks = []
        for state in states:
            if state.task is not None and not state.task.done():
                state.task.cancel()
                tasks.append(state.task)
            state.task = None
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
