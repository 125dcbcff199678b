"""
Unit tests for SnapshotStore.

Tests wholesale replacement, history side effects and read views.
"""

from queuewatch.core.types import QueueSnapshot, SnapshotSource
from queuewatch.store.snapshot import SnapshotStore
from tests.mocks.upstream import make_snapshot


class TestSnapshotStore:
    """Tests for SnapshotStore."""

    def test_initialization(self, store: SnapshotStore) -> None:
        """Test empty store."""
        view = store.read()

        assert view.snapshot is None
        assert not view.has_data
        assert view.histories == {}
        assert view.write_count == 0
        assert view.last_write_at is None

    def test_write_then_read(self, store: SnapshotStore, scraped_snapshot: QueueSnapshot) -> None:
        """Test a read returns exactly what was written, with its source."""
        store.write(scraped_snapshot)

        view = store.read()
        assert view.snapshot == scraped_snapshot
        assert view.snapshot is not None
        assert view.snapshot.source is SnapshotSource.SCRAPED
        assert view.has_data
        assert view.write_count == 1
        assert view.last_write_at is not None

    def test_last_write_wins(self, store: SnapshotStore) -> None:
        """Test writes replace the snapshot without timestamp checks."""
        newer = make_snapshot(4016, source=SnapshotSource.STREAMING)
        older = make_snapshot(
            4015, source=SnapshotSource.SIMULATED, fetched_at=newer.fetched_at.replace(year=2000)
        )

        store.write(newer)
        store.write(older)

        assert store.snapshot == older

    def test_write_updates_history(self, store: SnapshotStore) -> None:
        """Test every write records the counter's serving number."""
        store.write(make_snapshot(4015, "2"))
        store.write(make_snapshot(4015, "2"))
        store.write(make_snapshot(4016, "2"))

        history = store.history("2")
        assert history is not None
        assert history.current == 4016
        assert [entry.queue_no for entry in history.completed] == [4015]
        assert store.counter_count == 1

    def test_write_without_counter_skips_history(self, store: SnapshotStore) -> None:
        """Test snapshots with unknown counter or number keep histories intact."""
        store.write(make_snapshot(None, "2"))
        store.write(make_snapshot(4015, None))

        assert store.histories() == {}
        assert store.write_count == 2
        assert store.has_data

    def test_has_data_never_reverts(self, store: SnapshotStore) -> None:
        """Test has_data stays true once set."""
        store.write(make_snapshot())
        store.write(make_snapshot(None, None, ()))

        assert store.has_data
        assert store.read().has_data

    def test_read_returns_history_copies(self, store: SnapshotStore) -> None:
        """Test mutating a view does not touch the store."""
        store.write(make_snapshot(4015, "2"))

        view = store.read()
        view.histories["2"].current = 1

        history = store.history("2")
        assert history is not None
        assert history.current == 4015
