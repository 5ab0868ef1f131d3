from __future__ import annotations

import json
import tempfile
import threading
import unittest
from pathlib import Path
from typing import Optional

from festdraw.db.engine import make_engine
from festdraw.errors import PersistenceError
from festdraw.models import Base, DrawHistoryEntry, LotteryAggregate, Prize
from festdraw.storage import (
    LocalCache,
    MemoryCache,
    RemoteBackend,
    SqlDocumentBackend,
    StateStore,
)

KEY = "lottery_state"


def sample_aggregate(total_drawn: int = 2) -> LotteryAggregate:
    first = Prize(id="prize-1", name="一等奖", total_count=1, remaining_count=0, description="iPhone")
    second = Prize(id="prize-2", name="二等奖", total_count=3, remaining_count=2)
    history = (
        DrawHistoryEntry(1707000000000, "一等奖", {"一等奖": 0, "二等奖": 3}),
        DrawHistoryEntry(1707000000500, "二等奖", {"一等奖": 0, "二等奖": 2}),
    )
    return LotteryAggregate(
        prizes=(first, second),
        current_result=second.with_remaining(2),
        is_drawing=False,
        total_drawn=total_drawn,
        history=history,
    )


class BrokenCache(MemoryCache):
    """Local tier whose every operation fails like an unavailable disk."""

    def read(self, key: str) -> Optional[str]:
        raise OSError("storage unavailable")

    def write(self, key: str, text: str) -> None:
        raise OSError("quota exceeded")

    def delete(self, key: str) -> None:
        raise OSError("storage unavailable")


class UnavailableCache(MemoryCache):
    """Local tier that reports itself unusable, like disabled browser storage."""

    def is_available(self) -> bool:
        return False


class BrokenRemote(RemoteBackend):
    def read(self, key: str) -> Optional[dict]:
        raise PersistenceError("remote unreachable")

    def write(self, key: str, document: dict) -> None:
        raise PersistenceError("remote unreachable")

    def revision(self, key: str):
        return None


class StoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.remote = SqlDocumentBackend(self.engine)
        self._tmp = tempfile.TemporaryDirectory()
        self.cache = LocalCache(Path(self._tmp.name) / "cache")
        self.store = StateStore(self.remote, self.cache, key=KEY)

    def tearDown(self) -> None:
        self._tmp.cleanup()
        self.engine.dispose()


class SaveLoadTests(StoreTestCase):
    def test_round_trip(self) -> None:
        aggregate = sample_aggregate()
        self.store.save(aggregate)
        loaded = self.store.load()
        self.assertEqual(loaded, aggregate)
        assert loaded is not None
        self.assertEqual(
            [entry.timestamp for entry in loaded.history],
            [entry.timestamp for entry in aggregate.history],
        )
        self.assertEqual(self.store.load_remote(), aggregate)

    def test_load_without_cache(self) -> None:
        self.assertIsNone(self.store.load())
        self.assertIsNone(StateStore(self.remote, None, key=KEY).load())

    def test_save_bumps_remote_revision(self) -> None:
        self.store.save(sample_aggregate(1))
        self.assertEqual(self.remote.revision(KEY), 1)
        self.store.save(sample_aggregate(2))
        self.assertEqual(self.remote.revision(KEY), 2)
        self.assertEqual(self.remote.read(KEY)["totalDrawn"], 2)

    def test_corrupted_cache_is_discarded(self) -> None:
        bad_prizes = sample_aggregate().to_json()
        bad_prizes["prizes"] = "not a list"
        missing_id = sample_aggregate().to_json()
        del missing_id["prizes"][0]["id"]

        for text in ("invalid json {", json.dumps(bad_prizes), json.dumps(missing_id)):
            with self.subTest(text=text[:20]):
                self.cache.write(KEY, text)
                self.assertIsNone(self.store.load())
                self.assertIsNone(self.cache.read(KEY))

    def test_local_failures_never_block_save(self) -> None:
        store = StateStore(self.remote, BrokenCache(), key=KEY)
        aggregate = sample_aggregate()
        with self.assertLogs("festdraw.storage.store", level="WARNING"):
            store.save(aggregate)
        self.assertEqual(store.load_remote(), aggregate)
        # load swallows the read failure
        self.assertIsNone(store.load())

    def test_remote_failure_is_raised_after_caching(self) -> None:
        store = StateStore(BrokenRemote(), self.cache, key=KEY)
        aggregate = sample_aggregate()
        with self.assertRaises(PersistenceError):
            store.save(aggregate)
        self.assertEqual(store.load(), aggregate)

    def test_unavailable_cache_is_skipped(self) -> None:
        cache = UnavailableCache()
        store = StateStore(self.remote, cache, key=KEY)
        aggregate = sample_aggregate()
        store.save(aggregate)
        store.prime_cache(aggregate)
        self.assertIsNone(cache.read(KEY))
        self.assertEqual(store.load_remote(), aggregate)

    def test_file_cache_availability_creates_directory(self) -> None:
        directory = Path(self._tmp.name) / "nested" / "cache"
        cache = LocalCache(directory)
        self.assertFalse(directory.exists())
        self.assertTrue(cache.is_available())
        self.assertTrue(directory.is_dir())

    def test_invalid_remote_document_reads_as_absent(self) -> None:
        self.remote.write(KEY, {"prizes": "oops"})
        self.assertIsNone(self.store.load_remote())


class ClearTests(StoreTestCase):
    def test_clear_resets_both_tiers(self) -> None:
        self.store.save(sample_aggregate())
        self.store.clear()
        self.assertEqual(self.remote.read(KEY), LotteryAggregate.empty().to_json())
        self.assertIsNone(self.cache.read(KEY))
        self.assertEqual(self.store.load_remote(), LotteryAggregate.empty())

    def test_remote_failure_is_only_logged(self) -> None:
        store = StateStore(BrokenRemote(), self.cache, key=KEY)
        self.cache.write(KEY, sample_aggregate().to_json_str())
        with self.assertLogs("festdraw.storage.store", level="ERROR"):
            store.clear()
        self.assertIsNone(self.cache.read(KEY))

    def test_local_failure_is_raised(self) -> None:
        store = StateStore(self.remote, BrokenCache(), key=KEY)
        with self.assertRaises(PersistenceError):
            store.clear()
        self.assertEqual(self.remote.read(KEY), LotteryAggregate.empty().to_json())


class SubscriptionTests(StoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.replica_cache = MemoryCache()
        self.replica = StateStore(SqlDocumentBackend(self.engine), self.replica_cache, key=KEY)

    def test_remote_change_is_delivered_once(self) -> None:
        received: list[LotteryAggregate] = []
        subscription = self.replica.subscribe(received.append, start=False)
        watch = subscription.watch
        assert watch is not None

        self.assertFalse(watch.poll_once())
        aggregate = sample_aggregate()
        self.store.save(aggregate)
        self.assertTrue(watch.poll_once())
        self.assertFalse(watch.poll_once())
        self.assertEqual(received, [aggregate])
        # delivered snapshots are written through to the replica's cache
        self.assertEqual(self.replica.load(), aggregate)
        subscription.close()

    def test_unsubscribe_is_immediate_and_idempotent(self) -> None:
        received: list[LotteryAggregate] = []
        subscription = self.replica.subscribe(received.append, start=False)
        watch = subscription.watch
        assert watch is not None

        subscription()
        subscription.close()
        self.assertFalse(subscription.active)
        self.store.save(sample_aggregate())
        self.assertFalse(watch.poll_once())
        self.assertEqual(received, [])

    def test_own_writes_are_not_echoed(self) -> None:
        received: list[LotteryAggregate] = []
        with self.store.subscribe(received.append, start=False) as subscription:
            self.store.save(sample_aggregate(1))
            assert subscription.watch is not None
            self.assertTrue(subscription.watch.poll_once())
        self.assertEqual(received, [])

    def test_same_content_from_another_writer_is_delivered(self) -> None:
        received: list[LotteryAggregate] = []
        subscription = self.store.subscribe(received.append, start=False)
        watch = subscription.watch
        assert watch is not None

        restocked = sample_aggregate(0)
        drawn = sample_aggregate(1)
        # our own writes, the first one never observed by the watch
        self.store.save(restocked)
        self.store.save(drawn)
        self.assertTrue(watch.poll_once())
        self.assertEqual(received, [])

        # another replica writes content identical to our earlier write
        self.replica.save(restocked)
        self.assertTrue(watch.poll_once())
        self.assertEqual(received, [restocked])

        # and the same again after a clear on both sides
        self.store.clear()
        watch.poll_once()
        self.replica.save(drawn)
        self.replica.clear()
        self.assertTrue(watch.poll_once())
        self.assertEqual(received, [restocked, LotteryAggregate.empty()])
        subscription.close()

    def test_failing_subscriber_keeps_receiving(self) -> None:
        received: list[LotteryAggregate] = []

        def on_update(aggregate: LotteryAggregate) -> None:
            received.append(aggregate)
            if len(received) == 1:
                raise ValueError("subscriber bug")

        subscription = self.replica.subscribe(on_update, start=False)
        watch = subscription.watch
        assert watch is not None

        self.store.save(sample_aggregate(1))
        with self.assertLogs("festdraw.storage.remote", level="ERROR"):
            self.assertTrue(watch.poll_once())
        self.store.save(sample_aggregate(2))
        self.assertTrue(watch.poll_once())
        self.assertEqual([a.total_drawn for a in received], [1, 2])
        self.assertTrue(subscription.active)
        subscription.close()

    def test_invalid_snapshot_is_skipped(self) -> None:
        received: list[LotteryAggregate] = []
        subscription = self.replica.subscribe(received.append, start=False)
        self.remote.write(KEY, {"prizes": [{"name": "no id"}], "isDrawing": False, "totalDrawn": 0})
        with self.assertLogs("festdraw.storage.store", level="WARNING"):
            assert subscription.watch is not None
            subscription.watch.poll_once()
        self.assertEqual(received, [])
        subscription.close()

    def test_channel_collects_snapshots(self) -> None:
        channel = self.replica.open_channel(start=False)
        subscription = channel.subscription
        assert subscription is not None and subscription.watch is not None

        first = sample_aggregate(1)
        second = sample_aggregate(2)
        self.store.save(first)
        subscription.watch.poll_once()
        self.store.save(second)
        subscription.watch.poll_once()

        self.assertEqual(channel.drain(), [first, second])
        self.assertEqual(channel.drain(), [])
        channel.close()
        channel.close()
        self.assertTrue(channel.closed)
        self.assertFalse(subscription.active)
        self.assertIsNone(channel.get(timeout=0.01))
        self.assertEqual(list(channel), [])


class BackgroundPollingTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        db_path = Path(self._tmp.name) / "lottery.db"
        self.engine = make_engine(f"sqlite:///{db_path}")
        Base.metadata.create_all(self.engine)

    def tearDown(self) -> None:
        self.engine.dispose()
        self._tmp.cleanup()

    def test_polling_thread_feeds_channel(self) -> None:
        writer = StateStore(SqlDocumentBackend(self.engine), MemoryCache(), key=KEY)
        reader = StateStore(
            SqlDocumentBackend(self.engine), MemoryCache(), key=KEY, poll_interval=0.01
        )
        aggregate = sample_aggregate()
        with reader.open_channel() as channel:
            writer.save(aggregate)
            self.assertEqual(channel.get(timeout=5), aggregate)

    def test_polling_survives_subscriber_error(self) -> None:
        writer = StateStore(SqlDocumentBackend(self.engine), MemoryCache(), key=KEY)
        reader = StateStore(
            SqlDocumentBackend(self.engine), MemoryCache(), key=KEY, poll_interval=0.01
        )
        received: list[LotteryAggregate] = []
        first_seen = threading.Event()
        second_seen = threading.Event()

        def on_update(aggregate: LotteryAggregate) -> None:
            received.append(aggregate)
            if len(received) == 1:
                first_seen.set()
                raise ValueError("subscriber bug")
            second_seen.set()

        with self.assertLogs("festdraw.storage.remote", level="ERROR"):
            with reader.subscribe(on_update) as subscription:
                writer.save(sample_aggregate(1))
                self.assertTrue(first_seen.wait(timeout=5))
                writer.save(sample_aggregate(2))
                self.assertTrue(second_seen.wait(timeout=5))
                self.assertTrue(subscription.active)
        self.assertEqual([a.total_drawn for a in received], [1, 2])


if __name__ == "__main__":
    unittest.main()
