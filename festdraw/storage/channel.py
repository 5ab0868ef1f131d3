"""Subscription handles and the snapshot channel fed by remote updates."""

from __future__ import annotations

import queue
import threading
from typing import TYPE_CHECKING, Callable, Iterator, Optional

from ..models.prize import LotteryAggregate

if TYPE_CHECKING:
    from .remote import DocumentWatch


class Subscription:
    """Handle returned by :meth:`StateStore.subscribe`.

    Calling the handle, or :meth:`close`, stops further callbacks at once and
    releases the underlying watch. Both are safe to call any number of times.
    """

    def __init__(
        self,
        release: Callable[[], None],
        watch: Optional["DocumentWatch"] = None,
    ) -> None:
        self._release = release
        self.watch = watch
        self._lock = threading.Lock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def close(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._release()

    __call__ = close

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


_CLOSED = object()


class SnapshotChannel:
    """Stream of full aggregates pushed by the remote tier.

    Producers call :meth:`put`; a single consumer reads with :meth:`get`,
    :meth:`drain` or by iterating. Iteration ends once the channel is closed.
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._subscription: Optional[Subscription] = None
        self._closed = threading.Event()

    def bind(self, subscription: Subscription) -> None:
        self._subscription = subscription

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def put(self, aggregate: LotteryAggregate) -> None:
        if not self.closed:
            self._queue.put(aggregate)

    def get(self, timeout: Optional[float] = None) -> Optional[LotteryAggregate]:
        """Block for the next snapshot; ``None`` on timeout or once closed."""
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            # Leave the marker for any other waiting reader.
            self._queue.put(_CLOSED)
            return None
        return item  # type: ignore[return-value]

    def drain(self) -> list[LotteryAggregate]:
        """Return every snapshot queued so far without blocking."""
        items: list[LotteryAggregate] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return items
            if item is _CLOSED:
                self._queue.put(_CLOSED)
                return items
            items.append(item)  # type: ignore[arg-type]

    def __iter__(self) -> Iterator[LotteryAggregate]:
        while True:
            item = self.get()
            if item is None:
                return
            yield item

    def close(self) -> None:
        if self.closed:
            return
        self._closed.set()
        if self._subscription is not None:
            self._subscription.close()
        self._queue.put(_CLOSED)

    def __enter__(self) -> "SnapshotChannel":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["SnapshotChannel", "Subscription"]
