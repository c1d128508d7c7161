"""
Local implementations of the collaborator contracts.

LocalFilesystem writes to disk. LocalSourceControlProvider stands in for a
hosted SCM by copying pushed workspaces under a root directory and handing
back file:// URLs, so the whole workflow runs offline. BasicTemplateCatalog
produces a minimal skeleton per language.
"""

import asyncio
import logging
import re
import shutil
import uuid
from pathlib import Path
from typing import Optional

from .interfaces import (
	FilesystemOperations,
	PipelineRun,
	RepositoryInfo,
	SourceControlProvider,
	TemplateCatalog,
)
from .plans.models import (
	PipelineDefinition,
	PlannedFile,
	ProjectRequirements,
	RepositoryDetails,
	TemplateSelection,
)

logger = logging.getLogger(__name__)


class LocalFilesystem(FilesystemOperations):
	"""Disk-backed filesystem; blocking calls run in a worker thread."""

	def __init__(self, root: Path):
		self.root = Path(root)

	async def create_workspace(self, name: str) -> Path:
		workspace = self.root / f"{name}-{uuid.uuid4().hex[:8]}"
		await asyncio.to_thread(workspace.mkdir, parents=True, exist_ok=True)
		logger.debug(f"Created workspace {workspace}")
		return workspace

	async def create_directory(self, path: Path) -> None:
		await asyncio.to_thread(Path(path).mkdir, parents=True, exist_ok=True)

	async def write_file(self, path: Path, content: str) -> None:
		def _write() -> None:
			target = Path(path)
			target.parent.mkdir(parents=True, exist_ok=True)
			target.write_text(content, encoding="utf-8")
		await asyncio.to_thread(_write)

	async def write_binary_file(self, path: Path, content: bytes) -> None:
		def _write() -> None:
			target = Path(path)
			target.parent.mkdir(parents=True, exist_ok=True)
			target.write_bytes(content)
		await asyncio.to_thread(_write)

	async def read_file(self, path: Path) -> str:
		return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")

	async def exists(self, path: Path) -> bool:
		return await asyncio.to_thread(Path(path).exists)

	async def delete(self, path: Path) -> None:
		def _delete() -> None:
			target = Path(path)
			if target.is_dir():
				shutil.rmtree(target)
			elif target.exists():
				target.unlink()
		await asyncio.to_thread(_delete)

	async def list_files(self, path: Path, pattern: str = "*") -> list[Path]:
		def _list() -> list[Path]:
			return sorted(p for p in Path(path).rglob(pattern) if p.is_file())
		return await asyncio.to_thread(_list)

	async def copy(self, source: Path, destination: Path) -> None:
		def _copy() -> None:
			src, dst = Path(source), Path(destination)
			if src.is_dir():
				shutil.copytree(src, dst, dirs_exist_ok=True)
			else:
				dst.parent.mkdir(parents=True, exist_ok=True)
				shutil.copy2(src, dst)
		await asyncio.to_thread(_copy)

	async def cleanup_workspace(self, path: Path) -> None:
		await self.delete(path)
		logger.debug(f"Cleaned up workspace {path}")


class LocalSourceControlProvider(SourceControlProvider):
	"""
	Offline SCM stand-in.

	Repositories are directories under root; pipelines are recorded and
	report "succeeded" when queried.
	"""

	def __init__(self, root: Path, owner: str = "local", platform: str = "github"):
		self.root = Path(root)
		self.owner = owner or "local"
		self._platform = platform
		self.actions: list[str] = []
		self.protected_branches: dict[str, set[str]] = {}
		self._pipelines: dict[str, PipelineDefinition] = {}
		self._runs: dict[str, str] = {}

	@property
	def platform(self) -> str:
		return self._platform

	def _repo_path(self, name: str) -> Path:
		return self.root / self.owner / name

	async def create_repository(self, details: RepositoryDetails) -> RepositoryInfo:
		path = self._repo_path(details.name)
		if await asyncio.to_thread(path.exists):
			raise FileExistsError(f"Repository already exists: {self.owner}/{details.name}")
		await asyncio.to_thread(path.mkdir, parents=True)
		self.actions.append(f"create_repository:{details.name}")
		url = path.resolve().as_uri()
		return RepositoryInfo(
			name=details.name,
			url=url,
			clone_url=url,
			default_branch=details.default_branch,
			id=f"{self.owner}/{details.name}",
		)

	async def push_workspace(
		self,
		repository: RepositoryInfo,
		workspace: Path,
		branch: str,
		message: str,
	) -> str:
		target = self._repo_path(repository.name) / branch
		await asyncio.to_thread(shutil.copytree, workspace, target, dirs_exist_ok=True)
		ref = uuid.uuid4().hex[:12]
		self.actions.append(f"push:{repository.name}:{branch}:{ref}")
		logger.info(f"Pushed {workspace} to {repository.id}@{branch} ({message})")
		return ref

	async def configure_branch_protection(self, repository: RepositoryInfo, branch: str) -> None:
		self.protected_branches.setdefault(repository.name, set()).add(branch)
		self.actions.append(f"branch_protection:{repository.name}:{branch}")

	async def create_pipeline(self, repository: RepositoryInfo, pipeline: PipelineDefinition) -> str:
		pipeline_id = f"{repository.name}-{re.sub(r'[^a-z0-9]+', '-', pipeline.name.lower())}"
		self._pipelines[pipeline_id] = pipeline
		self.actions.append(f"create_pipeline:{pipeline_id}")
		return pipeline_id

	async def trigger_pipeline(self, repository: RepositoryInfo, pipeline_id: str, branch: str) -> PipelineRun:
		if pipeline_id not in self._pipelines:
			raise KeyError(f"Unknown pipeline: {pipeline_id}")
		run_id = uuid.uuid4().hex[:8]
		self._runs[run_id] = "succeeded"
		self.actions.append(f"trigger_pipeline:{pipeline_id}:{run_id}")
		return PipelineRun(
			pipeline_id=pipeline_id,
			run_id=run_id,
			url=f"{repository.url}#pipelines/{run_id}",
		)

	async def get_pipeline_status(self, repository: RepositoryInfo, run_id: str) -> str:
		return self._runs.get(run_id, "unknown")

	async def validate_connection(self) -> bool:
		await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)
		return True

	async def get_authenticated_user(self) -> str:
		return self.owner


GITIGNORE = {
	"python": "__pycache__/\n*.py[cod]\n.venv/\n.env\ndist/\nbuild/\n",
	"csharp": "bin/\nobj/\n*.user\n.vs/\n",
	"typescript": "node_modules/\ndist/\n.env\n",
	"javascript": "node_modules/\ndist/\n.env\n",
	"go": "bin/\n*.exe\n.env\n",
	"java": "target/\n*.class\n.env\n",
}


def _entrypoint(requirements: ProjectRequirements) -> Optional[PlannedFile]:
	package = requirements.project_name.replace("-", "_")
	language = requirements.language.lower()
	if language == "python":
		return PlannedFile(path=f"src/{package}/__init__.py", description="Package root")
	if language in ("typescript", "javascript"):
		ext = "ts" if language == "typescript" else "js"
		return PlannedFile(path=f"src/index.{ext}", description="Entry point")
	if language == "go":
		return PlannedFile(path="main.go", description="Entry point")
	if language == "csharp":
		return PlannedFile(path="src/Program.cs", description="Entry point")
	if language == "java":
		return PlannedFile(path="src/main/java/App.java", description="Entry point")
	return None


class BasicTemplateCatalog(TemplateCatalog):
	"""One skeleton template per language with placeholder content."""

	def get_available_templates(self, requirements: ProjectRequirements) -> list[TemplateSelection]:
		language = requirements.language.lower()
		flavour = "api" if requirements.is_api_project else "app"
		template_id = f"{language}-{flavour}"
		if requirements.framework:
			template_id = f"{template_id}-{requirements.framework.lower()}"
		return [TemplateSelection(
			template_id=template_id,
			template_name=f"{requirements.language} {flavour}".title(),
			reason=f"Matches language '{requirements.language}'"
			+ (f" and framework '{requirements.framework}'" if requirements.framework else ""),
		)]

	def get_planned_files(
		self,
		template: TemplateSelection,
		requirements: ProjectRequirements,
	) -> list[PlannedFile]:
		files = [
			PlannedFile(path="README.md", description="Project overview"),
			PlannedFile(path=".gitignore", description="Ignored files"),
		]
		entry = _entrypoint(requirements)
		if entry is not None:
			files.append(entry)
		if requirements.testing_framework:
			files.append(PlannedFile(path="tests/README.md", description=f"{requirements.testing_framework} tests"))
		if requirements.include_container_support:
			files.append(PlannedFile(path="Dockerfile", description="Container image"))
		return files

	async def scaffold_project(
		self,
		template: TemplateSelection,
		requirements: ProjectRequirements,
		workspace: Path,
		filesystem: FilesystemOperations,
	) -> list[str]:
		created = []
		for planned in self.get_planned_files(template, requirements):
			content = self._render(planned, requirements)
			await filesystem.write_file(workspace / planned.path, content)
			created.append(planned.path)
		logger.info(f"Scaffolded {len(created)} files from template {template.template_id}")
		return created

	def _render(self, planned: PlannedFile, requirements: ProjectRequirements) -> str:
		if planned.path == "README.md":
			description = requirements.description or f"{requirements.project_name} project."
			return f"# {requirements.project_name}\n\n{description}\n"
		if planned.path == ".gitignore":
			return GITIGNORE.get(requirements.language.lower(), ".env\n")
		if planned.path == "Dockerfile":
			return f"# Container image for {requirements.project_name}\n"
		if planned.path.endswith(".md"):
			return f"# {planned.description}\n"
		if planned.path.endswith(".py"):
			return f'"""{planned.description}."""\n'
		return f"// {planned.description}\n"
