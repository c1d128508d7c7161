"""Rich views for the policy and module catalogs."""

from typing import Iterable, Optional

from rich.console import Console
from rich.table import Table

from ..modules.base import ScaffoldModule
from ..plans.models import PolicySeverity
from ..policy.engine import PolicyDefinition

SEVERITY_STYLES = {
	PolicySeverity.ERROR: "red",
	PolicySeverity.WARNING: "yellow",
	PolicySeverity.INFO: "dim",
}


def render_policies(policies: list[PolicyDefinition], console: Optional[Console] = None) -> None:
	"""Table of the active policy catalog."""
	console = console or Console()

	table = Table(title=f"Policies ({len(policies)})")
	table.add_column("ID", style="cyan")
	table.add_column("Name")
	table.add_column("Category")
	table.add_column("Severity")
	table.add_column("Enabled", justify="center")

	for p in policies:
		style = SEVERITY_STYLES.get(p.severity, "white")
		table.add_row(
			p.id,
			p.name,
			p.category.value,
			f"[{style}]{p.severity.value}[/{style}]",
			"yes" if p.enabled else "[dim]no[/dim]",
		)
	console.print(table)


def render_modules(
	modules: Iterable[ScaffoldModule],
	disabled: Iterable[str] = (),
	console: Optional[Console] = None,
) -> None:
	"""Table of registered modules in run order."""
	console = console or Console()
	disabled_ids = {d.lower() for d in disabled}

	ordered = sorted(modules, key=lambda m: m.order)
	table = Table(title=f"Modules ({len(ordered)})")
	table.add_column("Order", justify="right")
	table.add_column("ID", style="cyan")
	table.add_column("Name")
	table.add_column("Enabled", justify="center")

	for m in ordered:
		enabled = m.id.lower() not in disabled_ids
		table.add_row(str(m.order), m.id, m.display_name, "yes" if enabled else "[dim]no[/dim]")
	console.print(table)
