from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from thyme.errors import DuplicateTimestamp
from thyme.models import Snapshot, Stream, UsageRecord, WindowInfo


class TestWindowInfo:
    def test_key_is_process_and_title(self, editor: WindowInfo) -> None:
        assert editor.key == ("editor", "notes.txt - Editor")

    def test_structural_equality_ignores_identity(self) -> None:
        first = WindowInfo(title="a", process_name="p", desktop_id=1)
        second = WindowInfo(title="a", process_name="p", desktop_id=1)
        assert first == second
        assert len({first, second}) == 1

    def test_is_immutable(self, editor: WindowInfo) -> None:
        with pytest.raises(FrozenInstanceError):
            editor.title = "changed"  # type: ignore[misc]


class TestSnapshot:
    def test_naive_time_is_treated_as_utc(self) -> None:
        snapshot = Snapshot(time=datetime(2025, 1, 1, 9, 0, 0))
        assert snapshot.time.tzinfo == timezone.utc

    def test_collections_become_frozensets(self, editor: WindowInfo) -> None:
        snapshot = Snapshot(
            time=datetime(2025, 1, 1, tzinfo=timezone.utc),
            open_windows=[editor],  # type: ignore[arg-type]
            visible_windows=[editor],  # type: ignore[arg-type]
        )
        assert snapshot.open_windows == frozenset({editor})
        assert isinstance(snapshot.visible_windows, frozenset)

    def test_active_window_must_be_open(self, editor: WindowInfo, browser: WindowInfo) -> None:
        with pytest.raises(ValueError, match="active window"):
            Snapshot(
                time=datetime(2025, 1, 1, tzinfo=timezone.utc),
                open_windows=frozenset({editor}),
                active_window=browser,
            )

    def test_visible_windows_must_be_open(self, editor: WindowInfo, browser: WindowInfo) -> None:
        with pytest.raises(ValueError, match="subset"):
            Snapshot(
                time=datetime(2025, 1, 1, tzinfo=timezone.utc),
                open_windows=frozenset({editor}),
                visible_windows=frozenset({editor, browser}),
            )

    def test_active_window_may_be_absent(self, editor: WindowInfo) -> None:
        snapshot = Snapshot(
            time=datetime(2025, 1, 1, tzinfo=timezone.utc),
            open_windows=frozenset({editor}),
        )
        assert snapshot.active_window is None


class TestStream:
    def test_empty_stream(self) -> None:
        stream = Stream()
        assert len(stream) == 0
        assert stream.first is None
        assert stream.last is None
        assert stream.elapsed == timedelta(0)
        assert list(stream.intervals()) == []

    def test_append_keeps_time_order(self, make_snapshot) -> None:
        stream = Stream()
        stream.append(make_snapshot(20))
        stream.append(make_snapshot(0))
        stream.append(make_snapshot(10))
        assert [s.time for s in stream] == sorted(s.time for s in stream)
        assert stream.elapsed == timedelta(seconds=20)

    def test_duplicate_timestamp_is_rejected(self, make_snapshot, editor: WindowInfo) -> None:
        stream = Stream()
        stream.append(make_snapshot(0))
        with pytest.raises(DuplicateTimestamp):
            stream.append(make_snapshot(0, [editor], active=editor))
        assert len(stream) == 1
        assert stream[0].active_window is None

    def test_from_snapshots_sorts(self, make_snapshot) -> None:
        stream = Stream.from_snapshots([make_snapshot(5), make_snapshot(1), make_snapshot(3)])
        assert [s.time for s in stream] == [make_snapshot(t).time for t in (1, 3, 5)]

    def test_from_snapshots_rejects_duplicates(self, make_snapshot) -> None:
        with pytest.raises(DuplicateTimestamp):
            Stream.from_snapshots([make_snapshot(1), make_snapshot(2), make_snapshot(1)])

    def test_intervals_partition_elapsed_time(self, make_snapshot) -> None:
        stream = Stream.from_snapshots([make_snapshot(t) for t in (0, 3, 4, 9.5, 30)])
        deltas = [delta for _, delta in stream.intervals()]
        assert len(deltas) == len(stream) - 1
        assert sum(deltas, timedelta(0)) == stream.last.time - stream.first.time

    def test_intervals_use_left_snapshot(self, make_snapshot, editor: WindowInfo) -> None:
        stream = Stream.from_snapshots(
            [make_snapshot(0, [editor], active=editor), make_snapshot(10)]
        )
        ((snapshot, delta),) = list(stream.intervals())
        assert snapshot.active_window == editor
        assert delta == timedelta(seconds=10)


def test_usage_record_properties() -> None:
    record = UsageRecord(key=("firefox", "Example"), active_duration=timedelta(seconds=3))
    assert record.process_name == "firefox"
    assert record.title == "Example"
    assert record.open_duration == timedelta(0)
