"""Shared utilities for visualizer views."""

from datetime import datetime, timezone
from typing import Optional

STATUS_STYLES = {
	"intake": "cyan",
	"planning": "blue",
	"awaiting_approval": "yellow",
	"executing": "magenta",
	"delivering": "magenta",
	"completed": "green",
	"failed": "red",
}


def format_duration_ms(duration_ms: Optional[float]) -> str:
	"""Format a millisecond duration for display. e.g. '45ms', '1.2s', '2m 3s'."""
	if duration_ms is None:
		return ""
	seconds = duration_ms / 1000
	if seconds < 0.001:
		return "<1ms"
	if seconds < 1.0:
		return f"{duration_ms:.0f}ms"
	if seconds < 60.0:
		return f"{seconds:.1f}s"
	minutes = int(seconds // 60)
	return f"{minutes}m {seconds % 60:.0f}s"


def format_timestamp(dt: datetime, now: Optional[datetime] = None) -> str:
	"""Format a timestamp as relative time (e.g. '2m ago'), falling back to absolute."""
	if dt.tzinfo is None:
		dt = dt.replace(tzinfo=timezone.utc)
	now = now or datetime.now(timezone.utc)
	total_secs = int((now - dt).total_seconds())

	if total_secs < 0:
		return dt.isoformat()[:19]
	if total_secs < 60:
		return f"{total_secs}s ago"
	if total_secs < 3600:
		return f"{total_secs // 60}m ago"
	if total_secs < 86400:
		return f"{total_secs // 3600}h ago"
	return f"{total_secs // 86400}d ago"


def styled_status(status: str) -> str:
	"""Rich markup for a session status."""
	style = STATUS_STYLES.get(status, "white")
	return f"[{style}]{status}[/{style}]"
