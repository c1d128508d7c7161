"""Rich view for a session's audit log."""

from typing import Optional

from rich.console import Console
from rich.table import Table

from ..audit.models import ActionResult, AuditLogEntry
from .utils import format_duration_ms

RESULT_STYLES = {
	ActionResult.SUCCESS: "green",
	ActionResult.FAILURE: "red",
	ActionResult.SKIPPED: "dim",
	ActionResult.PENDING: "yellow",
}


def render_audit_log(
	session_id: str,
	entries: list[AuditLogEntry],
	console: Optional[Console] = None,
	limit: int = 0,
) -> None:
	"""Audit entries in insertion order; limit keeps only the newest N."""
	console = console or Console()

	if not entries:
		console.print(f"[dim]No audit entries for session {session_id}.[/dim]")
		return

	shown = entries[-limit:] if limit > 0 else entries
	table = Table(title=f"Audit log for {session_id} ({len(shown)}/{len(entries)})")
	table.add_column("Time")
	table.add_column("Phase")
	table.add_column("Action", style="cyan")
	table.add_column("Result", justify="center")
	table.add_column("Duration", justify="right")
	table.add_column("Detail")

	for e in shown:
		style = RESULT_STYLES.get(e.result, "white")
		table.add_row(
			e.timestamp.strftime("%H:%M:%S"),
			e.phase.value,
			e.action,
			f"[{style}]{e.result.value}[/{style}]",
			format_duration_ms(e.duration_ms),
			e.detail if len(e.detail) <= 60 else e.detail[:57] + "...",
		)
	console.print(table)
