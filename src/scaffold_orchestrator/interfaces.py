"""
Collaborator contracts consumed by the workflow.

Concrete platforms (GitHub, Azure DevOps Server, a real filesystem, a
template repository) implement these; the agent and modules only ever see
the abstract types.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from .plans.models import (
	PipelineDefinition,
	PlannedFile,
	ProjectRequirements,
	RepositoryDetails,
	TemplateSelection,
)


@dataclass
class RepositoryInfo:
	"""A repository as reported by the SCM platform."""
	name: str
	url: str
	clone_url: str
	default_branch: str = "main"
	id: str = ""


@dataclass
class PipelineRun:
	"""A triggered pipeline run."""
	pipeline_id: str
	run_id: str
	url: str
	status: str = "queued"


class SourceControlProvider(ABC):
	"""Repository and pipeline operations on one SCM platform."""

	@property
	@abstractmethod
	def platform(self) -> str:
		...

	@abstractmethod
	async def create_repository(self, details: RepositoryDetails) -> RepositoryInfo:
		...

	@abstractmethod
	async def push_workspace(
		self,
		repository: RepositoryInfo,
		workspace: Path,
		branch: str,
		message: str,
	) -> str:
		"""Push the workspace contents and return the resulting commit ref."""
		...

	@abstractmethod
	async def configure_branch_protection(self, repository: RepositoryInfo, branch: str) -> None:
		...

	@abstractmethod
	async def create_pipeline(self, repository: RepositoryInfo, pipeline: PipelineDefinition) -> str:
		"""Register a pipeline and return its id."""
		...

	@abstractmethod
	async def trigger_pipeline(self, repository: RepositoryInfo, pipeline_id: str, branch: str) -> PipelineRun:
		...

	@abstractmethod
	async def get_pipeline_status(self, repository: RepositoryInfo, run_id: str) -> str:
		...

	@abstractmethod
	async def validate_connection(self) -> bool:
		...

	@abstractmethod
	async def get_authenticated_user(self) -> str:
		...


class FilesystemOperations(ABC):
	"""Filesystem access used by templates and modules."""

	@abstractmethod
	async def create_workspace(self, name: str) -> Path:
		...

	@abstractmethod
	async def create_directory(self, path: Path) -> None:
		...

	@abstractmethod
	async def write_file(self, path: Path, content: str) -> None:
		...

	@abstractmethod
	async def write_binary_file(self, path: Path, content: bytes) -> None:
		...

	@abstractmethod
	async def read_file(self, path: Path) -> str:
		...

	@abstractmethod
	async def exists(self, path: Path) -> bool:
		...

	@abstractmethod
	async def delete(self, path: Path) -> None:
		...

	@abstractmethod
	async def list_files(self, path: Path, pattern: str = "*") -> list[Path]:
		"""Files under path (recursive) matching a glob pattern."""
		...

	@abstractmethod
	async def copy(self, source: Path, destination: Path) -> None:
		...

	@abstractmethod
	async def cleanup_workspace(self, path: Path) -> None:
		...


class TemplateCatalog(ABC):
	"""Source of project templates."""

	@abstractmethod
	def get_available_templates(self, requirements: ProjectRequirements) -> list[TemplateSelection]:
		"""Templates matching the requirements, best match first."""
		...

	@abstractmethod
	def get_planned_files(
		self,
		template: TemplateSelection,
		requirements: ProjectRequirements,
	) -> list[PlannedFile]:
		...

	@abstractmethod
	async def scaffold_project(
		self,
		template: TemplateSelection,
		requirements: ProjectRequirements,
		workspace: Path,
		filesystem: FilesystemOperations,
	) -> list[str]:
		"""Write the template files and return their workspace-relative paths."""
		...
