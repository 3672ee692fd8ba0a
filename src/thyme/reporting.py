"""Render listings and usage statistics for the console or a browser."""

from __future__ import annotations

import html
import logging
from datetime import timedelta
from string import Template

from .aggregation import ActiveListing, StatsResult, listing, stats
from .config import DEFAULT_SHOW_MODE, SHOW_MODES
from .models import Stream

logger = logging.getLogger(__name__)

_HTML_PAGE = Template(
    """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>thyme usage</title>
<style>
body { font-family: sans-serif; margin: 2em; }
table { border-collapse: collapse; }
th, td { padding: 0.25em 0.75em; border-bottom: 1px solid #ddd; text-align: left; }
td.duration { font-family: monospace; text-align: right; }
</style>
</head>
<body>
<h1>Window usage</h1>
<p>$summary</p>
<table>
<thead><tr><th>Process</th><th>Window</th><th>Active</th><th>Visible</th><th>Open</th></tr></thead>
<tbody>
$rows
</tbody>
</table>
<p><small>$notice</small></p>
</body>
</html>
"""
)

LIMITATIONS_NOTICE = (
    "Each sample is assumed to hold until the next one, so gaps such as sleep are "
    "credited to the window active before them; samples without an active window "
    "count toward no window."
)


def format_duration(duration: timedelta) -> str:
    total_seconds = int(round(duration.total_seconds()))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def render_listing(entries: ActiveListing) -> str:
    lines = []
    for time, window in entries:
        stamp = time.astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")
        if window is None:
            lines.append(f"{stamp}  (no active window)")
        else:
            lines.append(f"{stamp}  {window.process_name:<20} {window.title}")
    return "\n".join(lines)


def render_stats(result: StatsResult) -> str:
    if not result.records:
        return "No usage to report; at least two snapshots with open windows are needed."

    lines = [
        f"Elapsed:      {format_duration(result.total_elapsed)}",
        f"Active:       {format_duration(result.total_active)}",
        f"Unattributed: {format_duration(result.unattributed_active)}",
        "",
        f"  {'Process':<20} {'Window':<45} {'Active':>9} {'Visible':>9} {'Open':>9}",
    ]
    for record in result.records:
        label = record.title or "(untitled)"
        lines.append(
            f"  {record.process_name[:20]:<20} {label[:45]:<45} "
            f"{format_duration(record.active_duration):>9} "
            f"{format_duration(record.visible_duration):>9} "
            f"{format_duration(record.open_duration):>9}"
        )
    return "\n".join(lines)


def render_stats_html(result: StatsResult) -> str:
    rows = "\n".join(
        "<tr><td>{}</td><td>{}</td>"
        '<td class="duration">{}</td><td class="duration">{}</td><td class="duration">{}</td></tr>'.format(
            html.escape(record.process_name),
            html.escape(record.title or "(untitled)"),
            format_duration(record.active_duration),
            format_duration(record.visible_duration),
            format_duration(record.open_duration),
        )
        for record in result.records
    )
    summary = (
        f"Elapsed {format_duration(result.total_elapsed)}, "
        f"active {format_duration(result.total_active)}, "
        f"unattributed {format_duration(result.unattributed_active)}."
    )
    return _HTML_PAGE.substitute(
        summary=summary,
        rows=rows,
        notice=html.escape(LIMITATIONS_NOTICE),
    )


def resolve_mode(what: str) -> str:
    """Map a mode selector onto a known mode.

    Unknown values behave like ``list`` instead of failing, which also means a
    misspelled ``stats`` quietly shows the listing.
    """
    mode = (what or DEFAULT_SHOW_MODE).strip().lower()
    if mode not in SHOW_MODES:
        logger.warning("Unknown show mode %r; showing the list instead.", what)
        return DEFAULT_SHOW_MODE
    return mode


def render_show(stream: Stream, what: str = DEFAULT_SHOW_MODE, *, as_html: bool = False) -> str:
    if resolve_mode(what) == "stats":
        result = stats(stream)
        return render_stats_html(result) if as_html else render_stats(result)
    return render_listing(listing(stream))
