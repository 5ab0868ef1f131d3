"""Session controller: the single owner of the live lottery aggregate."""

from __future__ import annotations

import logging
import random
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Iterable, NamedTuple, Optional

from .db.utils import now_millis
from .models.prize import DrawHistoryEntry, LotteryAggregate, Prize
from .prize_draw.engine import DrawEngine
from .prize_draw.registry import PrizeRegistry
from .storage.channel import SnapshotChannel
from .storage.store import StateStore

logger = logging.getLogger(__name__)

StateListener = Callable[[LotteryAggregate], None]


class PrizeSeed(NamedTuple):
    name: str
    count: int
    description: Optional[str] = None


DEFAULT_PRIZES: tuple[PrizeSeed, ...] = (
    PrizeSeed("Smile - 帆布袋", 300),
    PrizeSeed("Smile - 精美故宫文创", 5),
    PrizeSeed("Smile - 帽子", 20),
    PrizeSeed("Smile - 文创", 30),
    PrizeSeed("Smile - 扇子", 26),
    PrizeSeed("Smile - 火锅筷", 7),
    PrizeSeed("课代表立正 - Hoodie", 50),
    PrizeSeed("大统华 - T&T Gift Card", 46),
    PrizeSeed("大统华 - 新年冰箱贴", 15),
    PrizeSeed("大统华 - 新年贴纸", 5),
    PrizeSeed("大统华 - 钥匙串", 5),
    PrizeSeed("RC医美 - 美妆礼品袋", 30),
    PrizeSeed("佳遇十番 - 小马挂件", 50),
)


def build_aggregate(seeds: Iterable[PrizeSeed]) -> LotteryAggregate:
    """Return a fresh aggregate holding ``seeds`` at full inventory with new ids."""
    registry = PrizeRegistry()
    for seed in seeds:
        registry.add(seed.name, seed.count, seed.description)
    return LotteryAggregate(prizes=registry.list())


class LotteryController:
    """Orchestrates the registry, the draw engine and the store.

    Every command runs under one lock against the last known aggregate,
    replaces that aggregate wholesale on success and hands the new value to
    the store on a single background worker. The caller sees success as soon
    as the in-memory state is replaced; :meth:`flush` waits for the save.

    Remote updates arrive through a :class:`SnapshotChannel` opened by
    :meth:`start_sync`. Pending snapshots are applied at the start of every
    command and by :meth:`apply_pending`, last writer wins.
    """

    def __init__(
        self,
        store: StateStore,
        *,
        default_prizes: Iterable[PrizeSeed] = DEFAULT_PRIZES,
        rng: Optional[random.Random] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        """Create a controller and load the initial aggregate.

        Parameters
        ----------
        store : StateStore
            Persistence and replication service.
        default_prizes : Iterable[PrizeSeed], default: DEFAULT_PRIZES
            Prize set used when nothing is cached, and by :meth:`restore_defaults`.
        rng : Optional[random.Random], default: None
            Random source passed to every :class:`DrawEngine`.
        executor : Optional[ThreadPoolExecutor], default: None
            Executor running saves. When omitted, a single-worker executor
            owned by the controller is created and shut down by :meth:`close`.
        """
        self._store = store
        self._default_prizes = tuple(PrizeSeed(*seed) for seed in default_prizes)
        self._rng = rng or random.Random()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="lottery-save"
        )
        self._lock = threading.RLock()
        self._listeners: list[StateListener] = []
        self._channel: Optional[SnapshotChannel] = None
        self._last_save: Optional[Future] = None
        self._closed = False

        loaded = store.load()
        if loaded is None:
            logger.info("No cached lottery state; starting from the default prize set")
            loaded = build_aggregate(self._default_prizes)
        self._state = loaded

    # -------- state --------
    @property
    def state(self) -> LotteryAggregate:
        return self._state

    @property
    def last_save(self) -> Optional[Future]:
        """Future of the most recently scheduled save, if any."""
        return self._last_save

    def subscribe_state(self, listener: StateListener) -> Callable[[], None]:
        """Invoke ``listener`` after every replacement of the aggregate.

        Returns an unsubscribe callable that can be called repeatedly.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: LotteryAggregate) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception(f"State listener {listener!r} failed")

    def _commit(self, state: LotteryAggregate) -> None:
        if self._closed:
            raise RuntimeError("Controller is closed")
        future = self._executor.submit(self._store.save, state)
        future.add_done_callback(_log_save_failure)
        self._last_save = future
        self._set_state(state)

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for the latest save; re-raise its :class:`PersistenceError`."""
        future = self._last_save
        if future is not None:
            future.result(timeout=timeout)

    # -------- commands --------
    def add_prize(self, name: Any, count: Any, description: Any = None) -> Prize:
        with self._lock:
            self._begin_locked()
            registry = PrizeRegistry(self._state.prizes)
            prize = registry.add(name, count, description)
            self._commit(self._state.evolve(prizes=registry.list()))
            return prize

    def update_prize(self, prize_id: Any, new_remaining_count: Any) -> Prize:
        with self._lock:
            self._begin_locked()
            registry = PrizeRegistry(self._state.prizes)
            prize = registry.update(prize_id, new_remaining_count)
            self._commit(self._state.evolve(prizes=registry.list()))
            return prize

    def remove_prize(self, prize_id: Any) -> Prize:
        with self._lock:
            self._begin_locked()
            state = self._state
            registry = PrizeRegistry(state.prizes)
            removed = registry.remove(prize_id)
            current = state.current_result
            if current is not None and current.id == removed.id:
                current = None
            self._commit(state.evolve(prizes=registry.list(), current_result=current))
            return removed

    def decrement_prize(self, prize_id: Any) -> Prize:
        """Take one unit of a prize without drawing (administrative adjustment)."""
        with self._lock:
            self._begin_locked()
            engine = DrawEngine(self._state.prizes, rng=self._rng)
            prize = engine.decrement(prize_id)
            self._commit(self._state.evolve(prizes=engine.prizes))
            return prize

    def draw(self) -> Optional[Prize]:
        """Draw one prize, record it in the history and return it.

        Returns ``None`` without touching the state when nothing is left.
        """
        with self._lock:
            self._begin_locked()
            state = self._state
            engine = DrawEngine(state.prizes, rng=self._rng)
            if not engine.has_available():
                return None

            self._set_state(state.evolve(is_drawing=True))
            try:
                prize = engine.draw()
            except Exception:
                self._set_state(state)
                raise
            if prize is None:
                self._set_state(state)
                return None

            entry = DrawHistoryEntry(
                timestamp=now_millis(),
                prize_name=prize.name,
                remaining_inventory={p.name: p.remaining_count for p in engine.prizes},
            )
            self._commit(
                LotteryAggregate(
                    prizes=engine.prizes,
                    current_result=prize,
                    is_drawing=False,
                    total_drawn=state.total_drawn + 1,
                    history=state.history + (entry,),
                )
            )
            logger.info(f"Drew '{prize.name}' ({prize.remaining_count} left)")
            return prize

    def reset(self) -> None:
        """Restock every prize and clear the result, counters and history."""
        with self._lock:
            self._begin_locked()
            engine = DrawEngine(self._state.prizes, rng=self._rng)
            engine.reset_all()
            self._commit(LotteryAggregate(prizes=engine.prizes))

    def restore_defaults(self) -> None:
        """Replace the prize pool with the default prize set (fresh ids)."""
        with self._lock:
            self._begin_locked()
            self._commit(build_aggregate(self._default_prizes))

    def clear(self) -> None:
        """Erase the persisted state and hold the empty aggregate.

        Raises
        ------
        PersistenceError
            If the local cache entry could not be removed. The held state is
            left unchanged in that case.
        """
        with self._lock:
            self._begin_locked()
            # Run behind queued saves so none of them lands after the clear.
            self._executor.submit(self._store.clear).result()
            self._set_state(LotteryAggregate.empty())

    # -------- synchronisation --------
    def start_sync(self, *, poll: bool = True) -> SnapshotChannel:
        """Open the remote snapshot channel (idempotent).

        With ``poll=False`` the underlying watch is not started and has to be
        driven through ``channel.subscription.watch.poll_once()``.
        """
        with self._lock:
            if self._channel is None or self._channel.closed:
                self._channel = self._store.open_channel(start=poll)
            return self._channel

    def stop_sync(self) -> None:
        with self._lock:
            if self._channel is not None:
                self._channel.close()
                self._channel = None

    def apply_pending(self) -> int:
        """Apply every queued remote snapshot; return how many were applied."""
        with self._lock:
            return self._apply_pending_locked()

    def wait_for_update(self, timeout: Optional[float] = None) -> bool:
        """Block until a remote snapshot arrives, apply it and return ``True``.

        Returns ``False`` on timeout or when sync is not running.
        """
        channel = self._channel
        if channel is None:
            return False
        snapshot = channel.get(timeout=timeout)
        if snapshot is None:
            return False
        with self._lock:
            self._set_state(snapshot)
            self._apply_pending_locked()
        return True

    def _begin_locked(self) -> None:
        if self._closed:
            raise RuntimeError("Controller is closed")
        self._apply_pending_locked()

    def _apply_pending_locked(self) -> int:
        if self._channel is None:
            return 0
        snapshots = self._channel.drain()
        for snapshot in snapshots:
            self._set_state(snapshot)
        if snapshots:
            logger.debug(f"Applied {len(snapshots)} remote snapshot(s)")
        return len(snapshots)

    # -------- lifecycle --------
    def close(self) -> None:
        """Stop syncing, wait for outstanding saves and release resources."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self.stop_sync()
            self._listeners.clear()
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "LotteryController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _log_save_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error(f"Background save failed: {exc}")


__all__ = [
    "DEFAULT_PRIZES",
    "LotteryController",
    "PrizeSeed",
    "build_aggregate",
]
