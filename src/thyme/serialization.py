"""JSON record format for snapshots and exported streams."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .errors import MalformedRecord
from .models import Snapshot, Stream, WindowInfo

STREAM_KEY = "Snapshots"


class _Record(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class WindowRecord(_Record):
    title: str
    process_name: str
    desktop_id: Optional[int] = None

    @classmethod
    def from_window(cls, window: WindowInfo) -> "WindowRecord":
        return cls(
            title=window.title,
            process_name=window.process_name,
            desktop_id=window.desktop_id,
        )

    def to_window(self) -> WindowInfo:
        return WindowInfo(
            title=self.title,
            process_name=self.process_name,
            desktop_id=self.desktop_id,
        )


class SnapshotRecord(_Record):
    time: datetime
    open_windows: list[WindowRecord] = Field(default_factory=list)
    visible_windows: list[WindowRecord] = Field(default_factory=list)
    active_window: Optional[WindowRecord] = None

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "SnapshotRecord":
        # Sets have no order; sort so identical snapshots encode identically.
        def ordered(windows: frozenset[WindowInfo]) -> list[WindowRecord]:
            return [
                WindowRecord.from_window(window)
                for window in sorted(
                    windows, key=lambda w: (w.process_name, w.title, w.desktop_id or 0)
                )
            ]

        return cls(
            time=snapshot.time,
            open_windows=ordered(snapshot.open_windows),
            visible_windows=ordered(snapshot.visible_windows),
            active_window=(
                WindowRecord.from_window(snapshot.active_window)
                if snapshot.active_window is not None
                else None
            ),
        )

    def to_snapshot(self) -> Snapshot:
        return Snapshot(
            time=self.time,
            open_windows=frozenset(w.to_window() for w in self.open_windows),
            visible_windows=frozenset(w.to_window() for w in self.visible_windows),
            active_window=self.active_window.to_window() if self.active_window else None,
        )


class StreamDocument(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    snapshots: list[SnapshotRecord] = Field(default_factory=list, alias=STREAM_KEY)


def snapshot_to_dict(snapshot: Snapshot) -> dict:
    return SnapshotRecord.from_snapshot(snapshot).model_dump(mode="json", by_alias=True)


def dump_snapshot(snapshot: Snapshot, *, indent: Optional[int] = None) -> str:
    return SnapshotRecord.from_snapshot(snapshot).model_dump_json(by_alias=True, indent=indent)


def load_snapshot(raw: str | bytes, key: object = None) -> Snapshot:
    """Decode one snapshot record, raising ``MalformedRecord`` on any defect."""
    try:
        return SnapshotRecord.model_validate_json(raw).to_snapshot()
    except ValidationError as exc:
        raise MalformedRecord(key, _summarize(exc)) from exc
    except ValueError as exc:
        raise MalformedRecord(key, str(exc)) from exc


def dump_stream(stream: Stream, *, indent: Optional[int] = None) -> str:
    document = StreamDocument(
        snapshots=[SnapshotRecord.from_snapshot(snapshot) for snapshot in stream]
    )
    return document.model_dump_json(by_alias=True, indent=indent)


def load_stream_document(raw: str | bytes) -> Stream:
    """Decode an exported stream document.

    The whole document is rejected if any record is invalid; records are never
    skipped.
    """
    try:
        document = StreamDocument.model_validate_json(raw)
    except ValidationError as exc:
        raise MalformedRecord(STREAM_KEY, _summarize(exc)) from exc
    snapshots = []
    for index, record in enumerate(document.snapshots):
        try:
            snapshots.append(record.to_snapshot())
        except ValueError as exc:
            raise MalformedRecord(index, str(exc)) from exc
    return Stream.from_snapshots(snapshots)


def load_any(raw: str | bytes) -> Stream:
    """Decode either a stream document or a single snapshot record."""
    try:
        return load_stream_document(raw)
    except MalformedRecord as stream_error:
        try:
            snapshot = load_snapshot(raw)
        except MalformedRecord:
            raise stream_error from None
    return Stream.from_snapshots([snapshot])


def _summarize(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "<root>"
    return f"{location}: {first['msg']} ({exc.error_count()} error(s))"
