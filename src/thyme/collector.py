"""Platform trackers that capture one snapshot of window state."""

from __future__ import annotations

import ctypes
import logging
import re
import subprocess
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

import psutil

from .errors import CaptureFailure
from .models import Snapshot, WindowInfo

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT_SECONDS = 5.0


class Tracker(Protocol):
    """Captures the current window state of one platform."""

    def snap(self) -> Snapshot: ...

    def deps(self) -> str: ...


def run_command(args: list[str]) -> str:
    """Run an external helper and return its stdout."""
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            check=True,
            timeout=COMMAND_TIMEOUT_SECONDS,
        )
    except FileNotFoundError as exc:
        raise CaptureFailure(f"{args[0]} is not installed; run `thyme deps`") from exc
    except subprocess.CalledProcessError as exc:
        message = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
        raise CaptureFailure(f"{args[0]} failed: {message}") from exc
    except subprocess.TimeoutExpired as exc:
        raise CaptureFailure(f"{args[0]} timed out") from exc
    return result.stdout


def process_name_for_pid(pid: Optional[int]) -> Optional[str]:
    if not pid:
        return None
    try:
        return psutil.Process(pid).name()
    except (psutil.Error, ProcessLookupError):
        return None


class LinuxTracker:
    """Reads EWMH properties from the X server with ``xprop``."""

    STICKY_DESKTOP = 0xFFFFFFFF

    _PROPERTY = re.compile(r"^(?P<name>\w+)(?:\((?P<type>\w+)\))?\s*[=:]\s*(?P<value>.*)$")
    _WINDOW_ID = re.compile(r"0x[0-9a-fA-F]+")
    _QUOTED = re.compile(r'"((?:[^"\\]|\\.)*)"')
    _MISSING = re.compile(r"^\w+:\s+(?:not found|no such atom on any window)\.$")

    def snap(self) -> Snapshot:
        now = datetime.now(timezone.utc)
        root = self._properties(
            ["xprop", "-root", "_NET_CLIENT_LIST", "_NET_ACTIVE_WINDOW", "_NET_CURRENT_DESKTOP"]
        )
        if "_NET_CLIENT_LIST" not in root:
            raise CaptureFailure("window manager does not publish _NET_CLIENT_LIST")
        client_ids = self._WINDOW_ID.findall(root["_NET_CLIENT_LIST"])
        active_ids = self._WINDOW_ID.findall(root.get("_NET_ACTIVE_WINDOW", ""))
        active_id = int(active_ids[0], 16) if active_ids else 0
        current_desktop = self._cardinal(root.get("_NET_CURRENT_DESKTOP"))

        open_windows: set[WindowInfo] = set()
        visible_windows: set[WindowInfo] = set()
        active_window: Optional[WindowInfo] = None
        for raw_id in client_ids:
            described = self._describe(raw_id, current_desktop)
            if described is None:
                continue
            window, visible = described
            open_windows.add(window)
            if visible:
                visible_windows.add(window)
            if int(raw_id, 16) == active_id:
                active_window = window

        return Snapshot(
            time=now,
            open_windows=frozenset(open_windows),
            visible_windows=frozenset(visible_windows),
            active_window=active_window,
        )

    def deps(self) -> str:
        return (
            "Thyme on Linux reads window information from an EWMH-compliant window\n"
            "manager through xprop. Install it with your package manager, e.g.\n\n"
            "  sudo apt-get install x11-utils     # Debian/Ubuntu\n"
            "  sudo dnf install xprop            # Fedora\n"
            "  sudo pacman -S xorg-xprop         # Arch\n"
        )

    def _describe(
        self, raw_id: str, current_desktop: Optional[int]
    ) -> Optional[tuple[WindowInfo, bool]]:
        try:
            props = self._properties(
                ["xprop", "-id", raw_id, "_NET_WM_NAME", "WM_NAME", "_NET_WM_DESKTOP",
                 "_NET_WM_PID", "_NET_WM_STATE", "WM_CLASS"]
            )
        except CaptureFailure as exc:
            # The window may have closed after the client list was read.
            logger.debug("Skipping window %s: %s", raw_id, exc)
            return None
        title = self._string(props.get("_NET_WM_NAME")) or self._string(props.get("WM_NAME")) or ""
        pid = self._cardinal(props.get("_NET_WM_PID"))
        wm_class = self._QUOTED.findall(props.get("WM_CLASS", ""))
        process_name = (
            process_name_for_pid(pid)
            or (wm_class[-1] if wm_class else None)
            or "unknown"
        )

        desktop = self._cardinal(props.get("_NET_WM_DESKTOP"))
        sticky = desktop == self.STICKY_DESKTOP
        hidden = "_NET_WM_STATE_HIDDEN" in props.get("_NET_WM_STATE", "")
        on_current = sticky or desktop is None or desktop == current_desktop
        window = WindowInfo(
            title=title,
            process_name=process_name,
            desktop_id=None if sticky else desktop,
        )
        return window, on_current and not hidden

    def _properties(self, args: list[str]) -> dict[str, str]:
        props: dict[str, str] = {}
        for line in run_command(args).splitlines():
            line = line.strip()
            if self._MISSING.match(line):
                continue
            match = self._PROPERTY.match(line)
            if not match:
                continue
            props[match.group("name")] = match.group("value").strip()
        return props

    def _string(self, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        match = self._QUOTED.search(value)
        if not match:
            return None
        return re.sub(r"\\(.)", r"\1", match.group(1))

    @staticmethod
    def _cardinal(value: Optional[str]) -> Optional[int]:
        if not value:
            return None
        head = value.split(",")[0].strip()
        try:
            return int(head, 0)
        except ValueError:
            return None


class DarwinTracker:
    """Lists application windows through System Events with ``osascript``."""

    FIELD_SEPARATOR = "\t"

    SCRIPT = """
set output to ""
tell application "System Events"
    set frontName to name of first application process whose frontmost is true
    set output to frontName & linefeed
    repeat with proc in (every application process whose background only is false)
        set procName to name of proc
        set procVisible to visible of proc
        repeat with win in (every window of proc)
            set output to output & procName & tab & (name of win as text) & tab & procVisible & linefeed
        end repeat
    end repeat
end tell
return output
"""

    def snap(self) -> Snapshot:
        now = datetime.now(timezone.utc)
        lines = run_command(["osascript", "-e", self.SCRIPT]).splitlines()
        if not lines:
            raise CaptureFailure("osascript returned no window information")
        front_process = lines[0].strip()

        open_windows: set[WindowInfo] = set()
        visible_windows: set[WindowInfo] = set()
        active_window: Optional[WindowInfo] = None
        for line in lines[1:]:
            # Titles may contain tabs; the process name and flag never do.
            head, _, visible = line.rpartition(self.FIELD_SEPARATOR)
            process_name, separator, title = head.partition(self.FIELD_SEPARATOR)
            if not separator:
                continue
            window = WindowInfo(title=title, process_name=process_name)
            open_windows.add(window)
            if visible.strip() == "true":
                visible_windows.add(window)
            # System Events lists windows front to back.
            if active_window is None and process_name == front_process:
                active_window = window

        return Snapshot(
            time=now,
            open_windows=frozenset(open_windows),
            visible_windows=frozenset(visible_windows),
            active_window=active_window,
        )

    def deps(self) -> str:
        return (
            "Thyme on macOS uses AppleScript (osascript), which ships with the OS.\n"
            "Grant your terminal access under System Settings > Privacy & Security >\n"
            "Accessibility so that window titles can be read.\n"
        )


class WindowsTracker:
    """Enumerates top-level windows with the Win32 API."""

    def __init__(self) -> None:
        self._user32 = None

    @property
    def user32(self):
        if self._user32 is None:
            try:
                self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]
            except AttributeError as exc:
                raise CaptureFailure("Win32 API is not available on this system") from exc
        return self._user32

    def snap(self) -> Snapshot:
        from ctypes import wintypes

        now = datetime.now(timezone.utc)
        user32 = self.user32
        handles: list[int] = []

        enum_proc = ctypes.WINFUNCTYPE(wintypes.BOOL, wintypes.HWND, wintypes.LPARAM)

        def collect(hwnd, _lparam):
            if user32.IsWindowVisible(hwnd) and user32.GetWindowTextLengthW(hwnd) > 0:
                handles.append(hwnd)
            return True

        if not user32.EnumWindows(enum_proc(collect), 0):
            raise CaptureFailure(f"EnumWindows failed: {ctypes.WinError()}")  # type: ignore[attr-defined]

        foreground = user32.GetForegroundWindow()
        open_windows: set[WindowInfo] = set()
        visible_windows: set[WindowInfo] = set()
        active_window: Optional[WindowInfo] = None
        for hwnd in handles:
            window = self._describe(hwnd, wintypes)
            open_windows.add(window)
            if not user32.IsIconic(hwnd):
                visible_windows.add(window)
            if hwnd == foreground:
                active_window = window

        return Snapshot(
            time=now,
            open_windows=frozenset(open_windows),
            visible_windows=frozenset(visible_windows),
            active_window=active_window,
        )

    def deps(self) -> str:
        return "Thyme on Windows uses only built-in Win32 APIs; nothing else to install.\n"

    def _describe(self, hwnd, wintypes) -> WindowInfo:
        length = self.user32.GetWindowTextLengthW(hwnd)
        buffer = ctypes.create_unicode_buffer(length + 1)
        self.user32.GetWindowTextW(hwnd, buffer, length + 1)

        pid = wintypes.DWORD()
        self.user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
        process_name = process_name_for_pid(pid.value) or "unknown"
        return WindowInfo(title=buffer.value.strip(), process_name=process_name)


TRACKERS: dict[str, Callable[[], Tracker]] = {
    "linux": LinuxTracker,
    "darwin": DarwinTracker,
    "windows": WindowsTracker,
}


def get_tracker(system: str) -> Tracker:
    """Return the tracker for ``system``; unknown systems use the X11 tracker."""
    factory = TRACKERS.get(system.lower())
    if factory is None:
        logger.debug("No tracker registered for %r; using the Linux tracker.", system)
        factory = LinuxTracker
    return factory()


def capture(tracker: Tracker) -> Snapshot:
    """Take one snapshot, surfacing platform failures as ``CaptureFailure``."""
    try:
        snapshot = tracker.snap()
    except OSError as exc:
        raise CaptureFailure(str(exc)) from exc
    logger.debug(
        "Captured %d open, %d visible windows; active=%s",
        len(snapshot.open_windows),
        len(snapshot.visible_windows),
        snapshot.active_window.key if snapshot.active_window else None,
    )
    return snapshot
