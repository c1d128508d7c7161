"""
Plan Models - Pydantic schemas for project requirements and execution plans.

An ExecutionPlan captures everything that will happen to a session's project
once approved: the template, the files it will produce, the repository and
pipeline targets, the policy verdicts, and the ordered steps that run it.
"""

import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


def utc_now() -> datetime:
	return datetime.now(timezone.utc)


class ScmPlatform(str, Enum):
	"""Supported source control platforms."""
	GITHUB = "github"
	AZURE_DEVOPS = "azure-devops"


class Visibility(str, Enum):
	"""Repository visibility."""
	PRIVATE = "private"
	PUBLIC = "public"
	INTERNAL = "internal"


class ProjectRequirements(BaseModel):
	"""Requirements gathered from the conversation."""
	project_name: str = Field(description="Repository/project name")
	description: Optional[str] = Field(default=None)
	language: str = Field(default="python", description="Primary language")
	runtime_version: Optional[str] = Field(default=None)
	framework: Optional[str] = Field(default=None)
	scm_platform: ScmPlatform = Field(default=ScmPlatform.GITHUB)
	visibility: Visibility = Field(default=Visibility.PRIVATE)
	linting_tools: list[str] = Field(default_factory=list)
	testing_framework: Optional[str] = Field(default=None)
	include_container_support: bool = Field(default=False)
	is_api_project: bool = Field(default=False)
	additional_tooling: list[str] = Field(default_factory=list)
	custom_configuration: dict[str, str] = Field(default_factory=dict)


class TemplateSelection(BaseModel):
	"""Template chosen for the project."""
	template_id: str
	template_name: str
	reason: str = Field(default="", description="Why this template was selected")


class PlannedFile(BaseModel):
	"""A file the plan will generate."""
	path: str
	description: str = ""
	source: str = Field(default="template", description="template, module, or generated")


class RepositoryDetails(BaseModel):
	"""Target repository."""
	name: str
	platform: ScmPlatform = Field(default=ScmPlatform.GITHUB)
	owner: str = ""
	visibility: Visibility = Field(default=Visibility.PRIVATE)
	default_branch: str = "main"
	description: Optional[str] = None
	url: Optional[str] = Field(default=None, description="Filled in once the repository exists")
	clone_url: Optional[str] = None


class PipelineDefinition(BaseModel):
	"""CI pipeline the plan will create."""
	name: str
	file_path: str
	triggers: list[str] = Field(default_factory=lambda: ["push", "pull_request"])
	stages: list[str] = Field(default_factory=list)


class PolicySeverity(str, Enum):
	"""Severity of a failing policy."""
	ERROR = "error"
	WARNING = "warning"
	INFO = "info"


class PolicyValidationResult(BaseModel):
	"""Outcome of evaluating one policy."""
	policy_id: str
	policy_name: str
	passed: bool
	message: str = ""
	severity: Optional[PolicySeverity] = None


class ExecutionStep(BaseModel):
	"""A single ordered step in a plan."""
	number: int = Field(ge=1, description="1-based execution order")
	description: str
	operation: str = Field(description="Operation key dispatched by the agent")
	is_completed: bool = Field(default=False)
	result: Optional[str] = Field(default=None)

	def mark_completed(self, result: str) -> None:
		"""Mark the step done. Completion never reverts."""
		self.is_completed = True
		self.result = result


class ExecutionPlan(BaseModel):
	"""
	A proposed or approved execution plan.

	Steps are numbered contiguously from 1. Once approved only step
	completion and the repository URLs are expected to change.
	"""
	id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
	created_at: datetime = Field(default_factory=utc_now)
	requirements: ProjectRequirements
	template: TemplateSelection
	planned_files: list[PlannedFile] = Field(default_factory=list)
	repository: RepositoryDetails
	pipeline: Optional[PipelineDefinition] = None
	policy_results: list[PolicyValidationResult] = Field(default_factory=list)
	modules: list[str] = Field(default_factory=list, description="Module ids in run order")
	is_approved: bool = Field(default=False)
	approved_at: Optional[datetime] = None
	steps: list[ExecutionStep] = Field(default_factory=list)
	summary: str = ""

	@model_validator(mode="after")
	def _check_step_numbers(self) -> "ExecutionPlan":
		expected = list(range(1, len(self.steps) + 1))
		actual = [s.number for s in self.steps]
		if actual != expected:
			raise ValueError(f"Step numbers must be contiguous from 1, got {actual}")
		return self

	def get_step(self, number: int) -> Optional[ExecutionStep]:
		"""Get a step by its number."""
		if 1 <= number <= len(self.steps):
			return self.steps[number - 1]
		return None

	def next_pending_step(self) -> Optional[ExecutionStep]:
		"""First step not yet completed."""
		for step in self.steps:
			if not step.is_completed:
				return step
		return None

	def approve(self) -> None:
		self.is_approved = True
		self.approved_at = utc_now()

	def get_progress(self) -> dict:
		"""Calculate step progress."""
		total = len(self.steps)
		completed = len([s for s in self.steps if s.is_completed])
		return {
			"total_steps": total,
			"completed_steps": completed,
			"percent_complete": round(completed / total * 100, 1) if total > 0 else 0,
		}

	def to_markdown(self) -> str:
		"""Convert plan to markdown format."""
		req = self.requirements
		lines = [
			f"# Plan for {req.project_name}",
			"",
			f"**Template:** {self.template.template_name}",
			f"**Language:** {req.language}" + (f" ({req.framework})" if req.framework else ""),
			f"**Repository:** {self.repository.platform.value} / {self.repository.name} ({self.repository.visibility.value})",
			f"**Branch:** {self.repository.default_branch}",
			"",
		]

		if self.planned_files:
			lines.append("## Files")
			for f in self.planned_files:
				lines.append(f"- `{f.path}`" + (f" - {f.description}" if f.description else ""))
			lines.append("")

		if self.pipeline:
			lines.append("## Pipeline")
			lines.append(f"- {self.pipeline.name} (`{self.pipeline.file_path}`)")
			lines.append("")

		if self.modules:
			lines.append("## Modules")
			for module_id in self.modules:
				lines.append(f"- {module_id}")
			lines.append("")

		if self.policy_results:
			lines.append("## Policy Checks")
			for r in self.policy_results:
				icon = "[x]" if r.passed else "[!]"
				severity = f" ({r.severity.value})" if r.severity and not r.passed else ""
				lines.append(f"- {icon} {r.policy_name}{severity}: {r.message}")
			lines.append("")

		lines.append("## Steps")
		for step in self.steps:
			icon = "[x]" if step.is_completed else "[ ]"
			lines.append(f"{step.number}. {icon} {step.description}")

		return "\n".join(lines)


_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
	"""Lowercase kebab-case slug."""
	return _SLUG_RE.sub("-", text.lower()).strip("-")

