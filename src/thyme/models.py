"""Domain models for recorded window state."""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Iterator, Optional

from .errors import DuplicateTimestamp

WindowKey = tuple[str, str]


@dataclass(frozen=True, slots=True)
class WindowInfo:
    """One on-screen window as reported by a platform tracker."""

    title: str
    process_name: str
    desktop_id: Optional[int] = None

    @property
    def key(self) -> WindowKey:
        return (self.process_name, self.title)


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Window state observed at a single point in time."""

    time: datetime
    open_windows: frozenset[WindowInfo] = field(default_factory=frozenset)
    visible_windows: frozenset[WindowInfo] = field(default_factory=frozenset)
    active_window: Optional[WindowInfo] = None

    def __post_init__(self) -> None:
        if self.time.tzinfo is None:
            object.__setattr__(self, "time", self.time.replace(tzinfo=timezone.utc))
        object.__setattr__(self, "open_windows", frozenset(self.open_windows))
        object.__setattr__(self, "visible_windows", frozenset(self.visible_windows))
        if not self.visible_windows <= self.open_windows:
            raise ValueError("visible windows must be a subset of open windows")
        if self.active_window is not None and self.active_window not in self.open_windows:
            raise ValueError("active window must be one of the open windows")


class Stream:
    """Time-ordered sequence of snapshots with unique timestamps."""

    def __init__(self) -> None:
        self._snapshots: list[Snapshot] = []

    @classmethod
    def from_snapshots(cls, snapshots: Iterable[Snapshot]) -> "Stream":
        # Input order is not trusted; concurrent writers may interleave rows.
        stream = cls()
        ordered = sorted(snapshots, key=lambda snap: snap.time)
        for previous, current in zip(ordered, ordered[1:]):
            if previous.time == current.time:
                raise DuplicateTimestamp(current.time)
        stream._snapshots = ordered
        return stream

    def append(self, snapshot: Snapshot) -> None:
        index = bisect.bisect_left(self._snapshots, snapshot.time, key=lambda snap: snap.time)
        if index < len(self._snapshots) and self._snapshots[index].time == snapshot.time:
            raise DuplicateTimestamp(snapshot.time)
        self._snapshots.insert(index, snapshot)

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[Snapshot]:
        return iter(self._snapshots)

    def __getitem__(self, index: int) -> Snapshot:
        return self._snapshots[index]

    @property
    def first(self) -> Optional[Snapshot]:
        return self._snapshots[0] if self._snapshots else None

    @property
    def last(self) -> Optional[Snapshot]:
        return self._snapshots[-1] if self._snapshots else None

    @property
    def elapsed(self) -> timedelta:
        if len(self._snapshots) < 2:
            return timedelta(0)
        return self._snapshots[-1].time - self._snapshots[0].time

    def intervals(self) -> Iterator[tuple[Snapshot, timedelta]]:
        """Yield each snapshot with the time until the next sample.

        The last snapshot has no successor and is never yielded.
        """
        for current, following in zip(self._snapshots, self._snapshots[1:]):
            yield current, following.time - current.time


@dataclass(frozen=True, slots=True)
class UsageRecord:
    """Accumulated durations for one (process, title) pair."""

    key: WindowKey
    active_duration: timedelta = timedelta(0)
    open_duration: timedelta = timedelta(0)
    visible_duration: timedelta = timedelta(0)

    @property
    def process_name(self) -> str:
        return self.key[0]

    @property
    def title(self) -> str:
        return self.key[1]
