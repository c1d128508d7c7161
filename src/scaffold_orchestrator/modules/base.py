"""
Module contract and the shared context passed from module to module.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..decisions import DecisionCollector
from ..interfaces import FilesystemOperations
from ..plans.models import ProjectRequirements


@dataclass(frozen=True)
class ModuleResult:
	"""Outcome of one module in one orchestration run."""
	module_id: str
	success: bool
	files_created: tuple[str, ...] = ()
	files_modified: tuple[str, ...] = ()
	scm_actions: tuple[str, ...] = ()
	error_message: Optional[str] = None
	duration: float = 0.0

	def to_dict(self) -> dict:
		return {
			"module_id": self.module_id,
			"success": self.success,
			"files_created": list(self.files_created),
			"files_modified": list(self.files_modified),
			"scm_actions": list(self.scm_actions),
			"error_message": self.error_message,
			"duration": round(self.duration, 4),
		}


@dataclass
class ProjectContext:
	"""
	Mutable state shared by every module in a run.

	generated_files is cumulative: the orchestrator appends each module's
	files_created before the next module starts.
	"""
	project_name: str
	language: str
	workspace_path: Path
	filesystem: FilesystemOperations
	decisions: DecisionCollector = field(default_factory=DecisionCollector)
	description: Optional[str] = None
	framework: Optional[str] = None
	runtime_version: Optional[str] = None
	is_api_project: bool = False
	testing_framework: Optional[str] = None
	linting_tools: list[str] = field(default_factory=list)
	has_docker: bool = False
	scm_platform: str = "github"
	repository_url: str = ""
	default_branch: str = "main"
	ci_pipeline_file: Optional[str] = None
	license_spdx: str = "UNLICENSED"
	branching_strategy: str = "trunk-based"
	security_contact_email: Optional[str] = None
	sbom_format: str = "CycloneDX"
	generated_files: list[str] = field(default_factory=list)

	@classmethod
	def from_requirements(
		cls,
		requirements: ProjectRequirements,
		workspace_path: Path,
		filesystem: FilesystemOperations,
		**overrides,
	) -> "ProjectContext":
		"""Build a context from gathered requirements."""
		custom = requirements.custom_configuration
		values = dict(
			project_name=requirements.project_name,
			language=requirements.language,
			workspace_path=workspace_path,
			filesystem=filesystem,
			description=requirements.description,
			framework=requirements.framework,
			runtime_version=requirements.runtime_version,
			is_api_project=requirements.is_api_project,
			testing_framework=requirements.testing_framework,
			linting_tools=list(requirements.linting_tools),
			has_docker=requirements.include_container_support,
			scm_platform=requirements.scm_platform.value,
			license_spdx=custom.get("license", "UNLICENSED"),
			branching_strategy=custom.get("branching_strategy", "trunk-based"),
			security_contact_email=custom.get("security_contact"),
			sbom_format=custom.get("sbom_format", "CycloneDX"),
		)
		values.update(overrides)
		return cls(**values)

	def has_file(self, path: str) -> bool:
		"""Whether an earlier module (or the template) already produced a file."""
		return path in self.generated_files

	def add_generated_files(self, paths) -> None:
		for path in paths:
			if path not in self.generated_files:
				self.generated_files.append(path)

	async def write_file(self, relative_path: str, content: str) -> str:
		"""Write a workspace-relative file and return its path."""
		await self.filesystem.write_file(self.workspace_path / relative_path, content)
		return relative_path


class ScaffoldModule(ABC):
	"""
	A pluggable unit of generation or configuration work.

	Subclasses set id, display_name and order. Lower order runs first;
	equal orders keep registration order.
	"""

	id: str = ""
	display_name: str = ""
	order: int = 1000

	def should_run(self, context: ProjectContext) -> bool:
		"""Applicability check. Must not mutate the context."""
		return True

	@abstractmethod
	async def execute(self, context: ProjectContext) -> ModuleResult:
		...

	def __repr__(self) -> str:
		return f"<{type(self).__name__} {self.id} order={self.order}>"
