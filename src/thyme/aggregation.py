"""Turn a snapshot stream into per-window usage durations.

Each snapshot is assumed to describe the window state from its own
timestamp until the next sample (left-closed attribution). Two consequences
are intentional and surfaced to users rather than corrected here:

* A long gap between samples (sleep, tracker not running) is credited in
  full to whatever was recorded just before the gap.
* An interval whose snapshot has no active window adds no active time to
  any window, so total active time can be less than the elapsed time.

Windows are matched across samples by ``(process_name, title)``; two
distinct windows sharing both values are merged.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterator, Optional

from .models import Stream, UsageRecord, WindowInfo, WindowKey


@dataclass(frozen=True, slots=True)
class StatsResult:
    """Aggregated usage, ordered by active time (longest first)."""

    records: tuple[UsageRecord, ...]
    total_elapsed: timedelta
    unattributed_active: timedelta

    @property
    def total_active(self) -> timedelta:
        return sum((record.active_duration for record in self.records), timedelta(0))

    def as_mapping(self) -> dict[WindowKey, UsageRecord]:
        return {record.key: record for record in self.records}

    def __len__(self) -> int:
        return len(self.records)


def stats(stream: Stream) -> StatsResult:
    """Attribute every sampling interval of ``stream`` to its windows.

    Streams with fewer than two snapshots produce an empty result.
    """
    active: defaultdict[WindowKey, timedelta] = defaultdict(timedelta)
    opened: defaultdict[WindowKey, timedelta] = defaultdict(timedelta)
    visible: defaultdict[WindowKey, timedelta] = defaultdict(timedelta)
    unattributed = timedelta(0)

    for snapshot, delta in stream.intervals():
        # Same-key windows count once per interval.
        for key in {window.key for window in snapshot.open_windows}:
            opened[key] += delta
        for key in {window.key for window in snapshot.visible_windows}:
            visible[key] += delta
        if snapshot.active_window is None:
            unattributed += delta
        else:
            active[snapshot.active_window.key] += delta

    records = [
        UsageRecord(
            key=key,
            active_duration=active.get(key, timedelta(0)),
            open_duration=duration,
            visible_duration=visible.get(key, timedelta(0)),
        )
        for key, duration in opened.items()
    ]
    records.sort(key=lambda record: (-record.active_duration, record.key))
    return StatsResult(
        records=tuple(records),
        total_elapsed=stream.elapsed,
        unattributed_active=unattributed,
    )


class ActiveListing:
    """Chronological view of the active window at each sample.

    Iterating is lazy and can be repeated; each pass walks the stream afresh.
    """

    def __init__(self, stream: Stream) -> None:
        self._stream = stream

    def __iter__(self) -> Iterator[tuple[datetime, Optional[WindowInfo]]]:
        for snapshot in self._stream:
            yield snapshot.time, snapshot.active_window

    def __len__(self) -> int:
        return len(self._stream)


def listing(stream: Stream) -> ActiveListing:
    return ActiveListing(stream)
