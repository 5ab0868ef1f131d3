"""Persistence and replication of the lottery aggregate."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable, Hashable, Optional

from ..config import DEFAULT_DOC_KEY
from ..errors import PersistenceError
from ..models.prize import LotteryAggregate
from .channel import SnapshotChannel, Subscription
from .local import LocalTier
from .remote import RemoteBackend
from .schema import Accepted, parse_aggregate, parse_aggregate_text

logger = logging.getLogger(__name__)


class StateStore:
    """Writes the aggregate to a local cache and an authoritative remote tier.

    The remote tier is the source of truth: its failures are raised as
    :class:`~festdraw.errors.PersistenceError`. The local tier only speeds up
    the next :meth:`load`; its failures are logged and otherwise ignored,
    except in :meth:`clear`.
    """

    def __init__(
        self,
        remote: RemoteBackend,
        local: Optional[LocalTier] = None,
        *,
        key: str = DEFAULT_DOC_KEY,
        poll_interval: float = 1.0,
    ) -> None:
        self.remote = remote
        self.local = local
        self.key = key
        self.poll_interval = poll_interval
        self._written_lock = threading.Lock()
        # Markers returned by our own remote writes, oldest first, not yet seen by a watch.
        self._own_markers: deque = deque(maxlen=32)

    # -------- local tier --------
    def _local_ready(self) -> bool:
        if self.local is None:
            return False
        if not self.local.is_available():
            logger.debug(f"Local cache unavailable; skipping '{self.key}'")
            return False
        return True

    def _cache_write(self, text: str) -> None:
        if not self._local_ready():
            return
        try:
            self.local.write(self.key, text)
        except (OSError, ValueError) as exc:
            logger.warning(f"Local cache write for '{self.key}' failed: {exc}")

    def _cache_delete_quietly(self) -> None:
        if self.local is None:
            return
        try:
            self.local.delete(self.key)
        except (OSError, ValueError) as exc:
            logger.warning(f"Local cache delete for '{self.key}' failed: {exc}")

    def prime_cache(self, aggregate: LotteryAggregate) -> None:
        """Write ``aggregate`` to the local tier only (best-effort)."""
        self._cache_write(aggregate.to_json_str())

    # -------- remote tier --------
    def _remote_write(self, document: dict) -> None:
        # Held across the write so a watch cannot judge the new marker before it is recorded.
        with self._written_lock:
            marker = self.remote.write(self.key, document)
            self._own_markers.append(marker)

    def _is_own_echo(self, marker: Optional[Hashable]) -> bool:
        """Consume ``marker`` if this store wrote it.

        Older own markers are dropped along with it, since the remote has
        moved past them. A foreign marker drops every recorded marker for
        the same reason.
        """
        with self._written_lock:
            if marker is not None and marker in self._own_markers:
                while self._own_markers.popleft() != marker:
                    pass
                return True
            self._own_markers.clear()
            return False

    # -------- operations --------
    def save(self, aggregate: LotteryAggregate) -> None:
        """Persist ``aggregate`` to both tiers.

        Raises
        ------
        PersistenceError
            If the remote write fails. The local write is attempted first and
            never prevents the remote write.
        """
        self._cache_write(aggregate.to_json_str())
        try:
            self._remote_write(aggregate.to_json())
        except PersistenceError as exc:
            logger.error(f"Remote save of '{self.key}' failed: {exc}")
            raise

    def load(self) -> Optional[LotteryAggregate]:
        """Return the cached aggregate, or ``None`` if absent or unusable.

        A cached value that is not valid JSON or fails schema validation is
        deleted. This method never raises.
        """
        if self.local is None:
            return None
        try:
            text = self.local.read(self.key)
        except (OSError, ValueError) as exc:
            logger.warning(f"Local cache read for '{self.key}' failed: {exc}")
            return None
        if text is None:
            return None

        result = parse_aggregate_text(text)
        if isinstance(result, Accepted):
            return result.aggregate
        logger.warning(f"Discarding cached '{self.key}': {result.reason}")
        self._cache_delete_quietly()
        return None

    def load_remote(self) -> Optional[LotteryAggregate]:
        """Read and validate the authoritative copy.

        An invalid remote document is logged and reported as ``None``; it is
        not deleted, since other replicas may still be writing to it.
        """
        document = self.remote.read(self.key)
        if document is None:
            return None
        result = parse_aggregate(document)
        if isinstance(result, Accepted):
            return result.aggregate
        logger.warning(f"Remote document '{self.key}' rejected: {result.reason}")
        return None

    def subscribe(
        self,
        on_update: Callable[[LotteryAggregate], None],
        *,
        start: bool = True,
    ) -> Subscription:
        """Call ``on_update`` with the full aggregate on every remote change.

        Changes whose revision marker came from this store's own writes are
        not delivered; any other change is, even when its content matches
        something this store wrote earlier.
        Each delivered snapshot is also written to the local cache.

        Parameters
        ----------
        on_update : Callable[[LotteryAggregate], None]
            Receiver of each new aggregate. Exceptions it raises are logged
            by the watch and do not stop later deliveries.
        start : bool, default: True
            Start the background polling thread. Pass ``False`` to drive the
            watch manually through ``subscription.watch.poll_once()``.
        """
        subscription: Optional[Subscription] = None

        def deliver(document: Optional[dict], marker: Optional[Hashable]) -> None:
            if subscription is None or not subscription.active:
                return
            if self._is_own_echo(marker):
                return
            if document is None:
                logger.debug(f"Remote document '{self.key}' disappeared; ignoring")
                return
            result = parse_aggregate(document)
            if not isinstance(result, Accepted):
                logger.warning(f"Skipping remote snapshot of '{self.key}': {result.reason}")
                return
            self._cache_write(result.aggregate.to_json_str())
            on_update(result.aggregate)

        watch = self.remote.watch(self.key, deliver, self.poll_interval)
        subscription = Subscription(watch.stop, watch)
        if start:
            watch.start()
        return subscription

    def open_channel(self, *, start: bool = True) -> SnapshotChannel:
        """Message-passing form of :meth:`subscribe`."""
        channel = SnapshotChannel()
        channel.bind(self.subscribe(channel.put, start=start))
        return channel

    def clear(self) -> None:
        """Reset the remote document to the empty aggregate and drop the cache.

        A remote failure is only logged. A local failure raises
        :class:`~festdraw.errors.PersistenceError`.
        """
        try:
            self._remote_write(LotteryAggregate.empty().to_json())
        except PersistenceError as exc:
            logger.error(f"Failed to clear remote '{self.key}': {exc}")

        if self.local is None:
            return
        try:
            self.local.delete(self.key)
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Failed to clear local cache '{self.key}': {exc}") from exc


__all__ = ["StateStore"]
