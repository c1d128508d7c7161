"""
Decision records - collected during a run, rendered as ADR markdown at the end.

Modules call DecisionCollector.record() whenever they make a choice worth
explaining later. After orchestration, render_decision_records() writes one
MADR-style file per decision under docs/adr/, plus a meta record (0000)
and an index.
"""

import logging
import threading
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from .interfaces import FilesystemOperations
from .plans.models import slugify

logger = logging.getLogger(__name__)

DEFAULT_DECIDERS = "scaffold-orchestrator (automated)"
ADR_DIRECTORY = "docs/adr"
META_ADR_FILENAME = "0000-record-architecture-decisions.md"


class DecisionCategory(str, Enum):
	FRAMEWORK = "framework"
	LANGUAGE = "language"
	TESTING = "testing"
	CI_CD = "ci-cd"
	INFRASTRUCTURE = "infrastructure"
	PERSISTENCE = "persistence"
	AUTHENTICATION = "authentication"
	CODE_STYLE = "code-style"
	DEPLOYMENT = "deployment"
	MONITORING = "monitoring"
	DOCUMENTATION = "documentation"
	PROCESS = "process"
	SECURITY = "security"
	COMPLIANCE = "compliance"
	CODE_OWNERSHIP = "code-ownership"
	INTERFACES = "interfaces"
	OPERATIONS = "operations"
	DEVELOPMENT = "development"
	OTHER = "other"


# Rendered with the short template
MINOR_CATEGORIES = frozenset({DecisionCategory.CODE_STYLE, DecisionCategory.DOCUMENTATION})


class DecisionStatus(str, Enum):
	PROPOSED = "proposed"
	ACCEPTED = "accepted"
	DEPRECATED = "deprecated"
	SUPERSEDED = "superseded"


class DecisionRecord(BaseModel):
	"""One architectural decision."""
	number: int = Field(ge=1)
	title: str
	status: DecisionStatus = Field(default=DecisionStatus.ACCEPTED)
	decided_on: date = Field(default_factory=date.today)
	deciders: str = DEFAULT_DECIDERS
	context: str
	decision: str
	rationale: str
	category: DecisionCategory = Field(default=DecisionCategory.OTHER)
	alternatives: dict[str, str] = Field(default_factory=dict, description="Alternative -> reason not chosen")
	consequences: list[str] = Field(default_factory=list)
	related_files: list[str] = Field(default_factory=list)

	@property
	def filename(self) -> str:
		return f"{self.number:04d}-{slugify(self.title)}.md"


def normalize_category(category: str) -> DecisionCategory:
	"""Map a category string to a DecisionCategory, falling back to OTHER."""
	normalized = category.strip().lower()
	try:
		return DecisionCategory(normalized)
	except ValueError:
		logger.warning(f"Unknown decision category '{category}', recording as 'other'")
		return DecisionCategory.OTHER


class DecisionCollector:
	"""
	Thread-safe accumulator of decision records for one run.

	Numbers start at 1; 0 is the meta record written by the renderer.
	"""

	def __init__(self, deciders: str = DEFAULT_DECIDERS):
		self.deciders = deciders
		self._decisions: list[DecisionRecord] = []
		self._next_number = 1
		self._lock = threading.Lock()

	def record(
		self,
		title: str,
		context: str,
		decision: str,
		rationale: str,
		category: str,
		alternatives: Optional[dict[str, str]] = None,
		consequences: Optional[list[str]] = None,
		related_files: Optional[list[str]] = None,
	) -> DecisionRecord:
		"""
		Record a decision.

		Args:
			title: Short imperative title (becomes the filename slug)
			context: Problem being decided
			decision: What was chosen
			rationale: Why
			category: One of DecisionCategory's values; unknown values become "other"
			alternatives: Alternative -> reason it was not chosen
			consequences: Follow-on effects
			related_files: Workspace-relative paths the decision produced

		Returns:
			The stored record
		"""
		with self._lock:
			record = DecisionRecord(
				number=self._next_number,
				title=title,
				context=context,
				decision=decision,
				rationale=rationale,
				category=normalize_category(category),
				deciders=self.deciders,
				alternatives=alternatives or {},
				consequences=consequences or [],
				related_files=related_files or [],
			)
			self._next_number += 1
			self._decisions.append(record)
		logger.debug(f"Recorded decision {record.number}: {title}")
		return record

	def get_decisions(self) -> list[DecisionRecord]:
		with self._lock:
			return sorted(self._decisions, key=lambda d: d.number)

	def clear(self) -> None:
		with self._lock:
			self._decisions.clear()
			self._next_number = 1

	def __len__(self) -> int:
		with self._lock:
			return len(self._decisions)


def _cell(text: str) -> str:
	return text.replace("|", "\\|").replace("\n", " ")


def render_full(record: DecisionRecord) -> str:
	"""MADR-style markdown for a decision."""
	lines = [
		f"# {record.number}. {record.title}",
		"",
		f"**Date:** {record.decided_on.isoformat()}",
		"",
		f"**Status:** {record.status.value.title()}",
		"",
		f"**Deciders:** {record.deciders}",
		"",
		"## Context and Problem Statement",
		"",
		record.context,
		"",
		"## Decision",
		"",
		record.decision,
		"",
		"## Rationale",
		"",
		record.rationale,
		"",
	]

	if record.alternatives:
		lines += ["## Alternatives Considered", "", "| Alternative | Reason Not Chosen |", "|---|---|"]
		for alternative, reason in record.alternatives.items():
			lines.append(f"| {_cell(alternative)} | {_cell(reason)} |")
		lines.append("")

	if record.consequences:
		lines += ["## Consequences", ""]
		lines += [f"- {c}" for c in record.consequences]
		lines.append("")

	if record.related_files:
		lines += ["## Related", ""]
		lines.append("- **Files:** " + ", ".join(f"`{f}`" for f in record.related_files))
		lines.append("")

	return "\n".join(lines)


def render_short(record: DecisionRecord) -> str:
	"""Condensed form for minor decisions."""
	return "\n".join([
		f"# {record.number}. {record.title}",
		"",
		f"**Date:** {record.decided_on.isoformat()} | **Status:** {record.status.value.title()} | **Category:** {record.category.value}",
		"",
		record.context,
		"",
		f"**Decision:** {record.decision}",
		"",
		f"**Rationale:** {record.rationale}",
		"",
	])


def render_meta(today: date, deciders: str) -> str:
	return "\n".join([
		"# 0. Record architecture decisions",
		"",
		f"**Date:** {today.isoformat()}",
		"",
		"**Status:** Accepted",
		"",
		f"**Deciders:** {deciders}",
		"",
		"## Context and Problem Statement",
		"",
		"We need to record the architectural decisions made while scaffolding and developing this project.",
		"",
		"## Decision",
		"",
		"We keep Architecture Decision Records in MADR format under `docs/adr/`.",
		"",
	])


def render_index(decisions: list[DecisionRecord], include_meta: bool) -> str:
	lines = ["# Architecture Decision Records", "", "| Number | Title | Category | Status |", "|---|---|---|---|"]
	if include_meta:
		lines.append(f"| 0000 | [Record architecture decisions]({META_ADR_FILENAME}) | process | Accepted |")
	for d in decisions:
		lines.append(
			f"| {d.number:04d} | [{_cell(d.title)}]({d.filename}) | {d.category.value} | {d.status.value.title()} |"
		)
	lines.append("")
	return "\n".join(lines)


async def render_decision_records(
	decisions: list[DecisionRecord],
	workspace: Path,
	filesystem: FilesystemOperations,
	output_dir: str = ADR_DIRECTORY,
	include_meta: bool = True,
	include_index: bool = True,
) -> list[str]:
	"""
	Write decision records into a workspace.

	Args:
		decisions: Records to render
		workspace: Project workspace root
		filesystem: Filesystem used for all writes
		output_dir: Workspace-relative directory for the records
		include_meta: Write the 0000 meta record
		include_index: Write a README.md index

	Returns:
		Workspace-relative paths of the files written
	"""
	target = workspace / output_dir
	await filesystem.create_directory(target)
	created: list[str] = []
	ordered = sorted(decisions, key=lambda d: d.number)

	if include_meta:
		deciders = ordered[0].deciders if ordered else DEFAULT_DECIDERS
		await filesystem.write_file(target / META_ADR_FILENAME, render_meta(date.today(), deciders))
		created.append(f"{output_dir}/{META_ADR_FILENAME}")

	for record in ordered:
		content = render_short(record) if record.category in MINOR_CATEGORIES else render_full(record)
		await filesystem.write_file(target / record.filename, content)
		created.append(f"{output_dir}/{record.filename}")

	if include_index:
		await filesystem.write_file(target / "README.md", render_index(ordered, include_meta))
		created.append(f"{output_dir}/README.md")

	logger.info(f"Wrote {len(created)} decision record files to {output_dir}")
	return created
