from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

import pytest

from thyme.models import Snapshot, WindowInfo

BASE_TIME = datetime(2025, 1, 1, 9, 0, 0, tzinfo=timezone.utc)

SnapshotFactory = Callable[..., Snapshot]


@pytest.fixture
def editor() -> WindowInfo:
    return WindowInfo(title="notes.txt - Editor", process_name="editor", desktop_id=0)


@pytest.fixture
def browser() -> WindowInfo:
    return WindowInfo(title="Example Domain", process_name="firefox", desktop_id=0)


@pytest.fixture
def make_snapshot() -> SnapshotFactory:
    """Build a snapshot ``seconds`` after a fixed base time.

    Visible windows default to all open windows.
    """

    def factory(
        seconds: float,
        open_windows: Iterable[WindowInfo] = (),
        active: Optional[WindowInfo] = None,
        visible: Optional[Iterable[WindowInfo]] = None,
    ) -> Snapshot:
        opened = frozenset(open_windows)
        return Snapshot(
            time=BASE_TIME + timedelta(seconds=seconds),
            open_windows=opened,
            visible_windows=opened if visible is None else frozenset(visible),
            active_window=active,
        )

    return factory
