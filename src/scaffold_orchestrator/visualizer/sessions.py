"""Rich views for sessions and their plans."""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ..sessions.models import Session
from .utils import format_timestamp, styled_status


def render_session_list(sessions: list[Session], console: Optional[Console] = None) -> None:
	"""Table of sessions, in the order given."""
	console = console or Console()

	if not sessions:
		console.print("[dim]No sessions yet.[/dim]")
		return

	table = Table(title=f"Sessions ({len(sessions)})")
	table.add_column("ID", style="cyan")
	table.add_column("User")
	table.add_column("Project")
	table.add_column("Status")
	table.add_column("Messages", justify="right")
	table.add_column("Last activity")

	for s in sessions:
		table.add_row(
			s.id,
			s.user_id or "-",
			s.project_name or "-",
			styled_status(s.status.value),
			str(len(s.messages)),
			format_timestamp(s.last_activity_at),
		)
	console.print(table)


def render_session_detail(session: Session, console: Optional[Console] = None) -> None:
	"""Session header, plan steps and delivery card."""
	console = console or Console()

	header = (
		f"[bold]{session.project_name or '(no project yet)'}[/bold]  {styled_status(session.status.value)}\n"
		f"[dim]id {session.id}, user {session.user_id or '-'}, "
		f"created {format_timestamp(session.created_at)}[/dim]"
	)
	console.print(Panel(header, title="Session", border_style="cyan"))

	plan = session.plan
	if plan is None:
		console.print("[dim]No plan yet.[/dim]")
	else:
		progress = plan.get_progress()
		tree = Tree(
			f"[bold]Plan {plan.id}[/bold]  "
			f"[dim]({progress['completed_steps']}/{progress['total_steps']} steps, "
			f"{progress['percent_complete']:.0f}%)[/dim]"
		)
		for step in plan.steps:
			icon = "[green][x][/green]" if step.is_completed else "[dim][ ][/dim]"
			branch = tree.add(f"{icon} {step.number}. {step.description} [dim]({step.operation})[/dim]")
			if step.result:
				branch.add(f"[dim]{step.result}[/dim]")
		console.print(tree)

		failed = [r for r in plan.policy_results if not r.passed]
		if failed:
			console.print(f"[yellow]{len(failed)} policy check(s) failed:[/yellow]")
			for r in failed:
				console.print(f"  - {r.policy_name}: {r.message}")

	if session.delivery_result is not None:
		style = "green" if session.delivery_result.success else "red"
		console.print(Panel(session.delivery_result.summary_card, title="Delivery", border_style=style))
