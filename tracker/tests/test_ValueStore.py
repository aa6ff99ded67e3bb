"""Unit tests for ValueStore."""

import dataclasses
import threading

import pytest

from tracker.src.ValueStore import TimedSample, ValueStore

NOW = 1_700_000_000.0


class TestValueStoreSamples:
    """Test sample commit and queries."""

    def test_latest_empty(self) -> None:
        """Unknown request has no latest sample."""
        assert ValueStore().latest(1) is None

    def test_commit_returns_sample(self) -> None:
        """commit() returns the stored sample."""
        sample = ValueStore().commit(1, 5, created=NOW)
        assert sample == TimedSample(value=5.0, created=NOW)

    def test_commit_defaults_to_now(self) -> None:
        """commit() without timestamp uses the current time."""
        sample = ValueStore().commit(1, 5.0)
        assert sample.created > NOW

    def test_latest_by_timestamp(self) -> None:
        """latest() follows creation time, not commit order."""
        store = ValueStore()
        store.commit(1, 2.0, created=NOW)
        store.commit(1, 1.0, created=NOW - 60)
        assert store.latest(1).value == 2.0

    def test_requests_are_separate(self) -> None:
        """Samples of different requests do not mix."""
        store = ValueStore()
        store.commit(1, 1.0, created=NOW)
        store.commit(2, 2.0, created=NOW)
        assert store.latest(1).value == 1.0
        assert store.latest(2).value == 2.0
        assert store.request_ids() == [1, 2]

    def test_samples_are_immutable(self) -> None:
        """TimedSample cannot be modified."""
        sample = ValueStore().commit(1, 1.0, created=NOW)
        with pytest.raises(dataclasses.FrozenInstanceError):
            sample.value = 2.0  # type: ignore[misc]


class TestValueStoreWindow:
    """Test samples_in_window()."""

    def test_window_bounds(self) -> None:
        """Window is (now - duration, now]."""
        store = ValueStore()
        for offset in (0, 10, 20, 30):
            store.commit(1, float(offset), created=NOW - offset)

        vals = [s.value for s in store.samples_in_window(1, NOW, 20)]
        assert vals == [10.0, 0.0]

    def test_excludes_future_samples(self) -> None:
        """Samples after now are not returned."""
        store = ValueStore()
        store.commit(1, 1.0, created=NOW)
        store.commit(1, 2.0, created=NOW + 100)
        assert [s.value for s in store.samples_in_window(1, NOW, 60)] == [1.0]

    def test_unknown_request(self) -> None:
        """Unknown request gives an empty window."""
        assert ValueStore().samples_in_window(9, NOW, 60) == []


class TestValueStoreRetention:
    """Test pruning of old samples."""

    def test_invalid_retention(self) -> None:
        """Retention must be positive."""
        with pytest.raises(ValueError, match="retention_seconds must be positive"):
            ValueStore(retention_seconds=0)

    def test_old_samples_pruned(self) -> None:
        """Samples older than retention relative to the newest are dropped."""
        store = ValueStore(retention_seconds=100)
        store.commit(1, 1.0, created=NOW - 500)
        store.commit(1, 2.0, created=NOW - 50)
        store.commit(1, 3.0, created=NOW)
        vals = [s.value for s in store.samples_in_window(1, NOW, 1000)]
        assert vals == [2.0, 3.0]


class TestValueStoreState:
    """Test keyed tracker state."""

    def test_put_get(self) -> None:
        """put() values are returned by get()."""
        store = ValueStore()
        store.put("gas", 42)
        assert store.get("gas") == 42

    def test_get_default(self) -> None:
        """Missing keys return the default."""
        assert ValueStore().get("missing", 0) == 0

    def test_append_keeps_newest(self) -> None:
        """append() drops the oldest items beyond the limit."""
        store = ValueStore()
        for i in range(5):
            store.append("flags", i, limit=3)
        assert store.get("flags") == [2, 3, 4]

    def test_append_invalid_limit(self) -> None:
        """A limit below one is rejected."""
        with pytest.raises(ValueError, match="limit must be positive"):
            ValueStore().append("flags", 1, limit=0)

    def test_concurrent_appends(self) -> None:
        """Appends from many threads are not lost."""
        store = ValueStore()

        def worker() -> None:
            for i in range(100):
                store.append("flags", i, limit=10_000)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store.get("flags")) == 800


class TestValueStoreConcurrency:
    """Test concurrent access."""

    def test_concurrent_commits(self) -> None:
        """Commits from many threads are all kept."""
        store = ValueStore()

        def worker(offset: int) -> None:
            for i in range(100):
                store.commit(1, 1.0, created=NOW + offset * 1000 + i)
                store.samples_in_window(1, NOW + 10_000, 10_000)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store.samples_in_window(1, NOW + 10_000, 10_001)) == 800
