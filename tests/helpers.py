"""Shared test fixtures and helpers for scaffold-orchestrator tests."""

from pathlib import Path
from typing import Callable, Optional

from scaffold_orchestrator.config import Config
from scaffold_orchestrator.llm import LLMClient, LLMInfo
from scaffold_orchestrator.modules.base import ModuleResult, ProjectContext, ScaffoldModule
from scaffold_orchestrator.plans.models import ProjectRequirements


def make_config(tmp_path: Path, **overrides) -> Config:
	"""Config rooted under tmp_path with directories created."""
	config = Config(config_dir=tmp_path / "config", data_dir=tmp_path / "data")
	for key, value in overrides.items():
		setattr(config, key, value)
	config.ensure_dirs()
	return config


def make_requirements(**overrides) -> ProjectRequirements:
	"""Requirements that pass every built-in policy."""
	values = dict(
		project_name="my-service",
		description="Order tracking service",
		language="python",
		framework="fastapi",
		testing_framework="pytest",
	)
	values.update(overrides)
	return ProjectRequirements(**values)


def capture_tools(config, register_fn: Callable) -> dict:
	"""Register tools on a mock MCP and return the captured tool functions.

	Args:
		config: Config object to pass to the registration function
		register_fn: The registration function (e.g., register_session_tools)

	Returns:
		Dict mapping tool name to the tool function
	"""
	captured = {}

	class MockMCP:
		def tool(self):
			def decorator(fn):
				captured[fn.__name__] = fn
				return fn
			return decorator

	register_fn(MockMCP(), config)
	return captured


class RecordingModule(ScaffoldModule):
	"""Writes one file and remembers what it saw in the context."""

	def __init__(
		self,
		module_id: str,
		order: int = 1000,
		writes: Optional[str] = None,
		applies: bool = True,
		log: Optional[list] = None,
	):
		self.id = module_id
		self.display_name = module_id.title()
		self.order = order
		self.writes = writes
		self.applies = applies
		self.log = log if log is not None else []
		self.seen_files: list[str] = []

	def should_run(self, context: ProjectContext) -> bool:
		return self.applies

	async def execute(self, context: ProjectContext) -> ModuleResult:
		self.seen_files = list(context.generated_files)
		self.log.append(self.id)
		created = ()
		if self.writes:
			created = (await context.write_file(self.writes, f"written by {self.id}\n"),)
		return ModuleResult(module_id=self.id, success=True, files_created=created)


class ExplodingModule(ScaffoldModule):
	"""Raises from execute."""

	def __init__(self, module_id: str = "exploding", order: int = 1000, log: Optional[list] = None):
		self.id = module_id
		self.display_name = "Exploding"
		self.order = order
		self.log = log if log is not None else []

	async def execute(self, context: ProjectContext) -> ModuleResult:
		self.log.append(self.id)
		raise RuntimeError("module blew up")


class ScriptedLLM(LLMClient):
	"""Returns canned replies in order, raising any that are exceptions."""

	def __init__(self, replies: list):
		self.replies = list(replies)
		self.calls: list[tuple[str, list]] = []

	def info(self) -> LLMInfo:
		return LLMInfo(provider="scripted", model="test")

	async def send_message(self, system_prompt: str, history) -> str:
		self.calls.append((system_prompt, list(history)))
		reply = self.replies.pop(0)
		if isinstance(reply, BaseException):
			raise reply
		return reply
