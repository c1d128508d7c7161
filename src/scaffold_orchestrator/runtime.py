"""
Runtime - wires configuration into a running agent.

One Runtime per process: it owns the session store's flush task and the
database handles, so the MCP server, the web app and the CLI all share the
same instance through get_runtime().
"""

import logging
from typing import Iterable, Optional

from .agent import ScaffoldingAgent
from .audit.store import AuditStore
from .audit.trail import AuditTrail
from .config import Config, get_config
from .interfaces import FilesystemOperations, SourceControlProvider, TemplateCatalog
from .llm import LLMClient, RetryingLLMClient, StructuredInputClient
from .local import BasicTemplateCatalog, LocalFilesystem, LocalSourceControlProvider
from .modules.base import ScaffoldModule
from .modules.builtin import default_modules
from .modules.orchestrator import ModuleOrchestrator, ProgressCallback
from .policy.engine import PolicyEngine
from .sessions.persistence import SessionPersistence
from .sessions.store import SessionStore

logger = logging.getLogger(__name__)

AGENT_ID = "scaffolding-agent"


def create_llm_client(config: Config) -> LLMClient:
	"""
	LLM client for the configured provider.

	Raises:
		ValueError: If the provider is not supported
	"""
	if config.llm_provider == "local":
		return StructuredInputClient()
	raise ValueError(f"Unsupported LLM provider: {config.llm_provider}")


class Runtime:
	"""
	Owns every long-lived component.

	Usage:
		runtime = Runtime(config)
		await runtime.start()
		session = runtime.agent.create_session("alice")
		await runtime.stop()
	"""

	def __init__(
		self,
		config: Config,
		llm: Optional[LLMClient] = None,
		scm: Optional[SourceControlProvider] = None,
		filesystem: Optional[FilesystemOperations] = None,
		templates: Optional[TemplateCatalog] = None,
		modules: Optional[Iterable[ScaffoldModule]] = None,
		progress_sink: Optional[ProgressCallback] = None,
	):
		"""
		Build the component graph. Nothing touches the session database until start().

		Args:
			config: Loaded configuration
			llm: LLM client; defaults to the configured provider. Always wrapped with retries.
			scm: SCM provider; defaults to the local provider under data_dir
			filesystem: Workspace filesystem; defaults to disk under workspace_dir
			templates: Template catalog; defaults to the basic catalog
			modules: Module catalog; defaults to the built-in modules
			progress_sink: Optional module progress callback
		"""
		self.config = config
		self.persistence = SessionPersistence(str(config.sessions_db_path))
		self.store = SessionStore(self.persistence, flush_interval=config.flush_interval)
		self.audit = AuditTrail(store=AuditStore(str(config.audit_db_path)), agent_id=AGENT_ID)

		self.policy_engine = PolicyEngine()
		if config.policy_file is not None:
			count = self.policy_engine.load_policies(config.policy_file)
			logger.info(f"Loaded {count} policies from {config.policy_file}")

		self.orchestrator = ModuleOrchestrator(
			modules if modules is not None else default_modules(),
			disabled_modules=config.disabled_modules,
		)
		self.agent = ScaffoldingAgent(
			store=self.store,
			audit=self.audit,
			llm=RetryingLLMClient(llm or create_llm_client(config)),
			policy_engine=self.policy_engine,
			orchestrator=self.orchestrator,
			templates=templates or BasicTemplateCatalog(),
			filesystem=filesystem or LocalFilesystem(config.workspace_dir),
			scm=scm or LocalSourceControlProvider(
				config.data_dir / "repositories", owner=config.scm_owner, platform=config.scm_platform,
			),
			config=config,
			progress_sink=progress_sink,
		)
		self._started = False

	@property
	def started(self) -> bool:
		return self._started

	async def start(self) -> None:
		"""Open the session database, load sessions and start flushing."""
		if self._started:
			return
		await self.persistence.init()
		await self.store.start()
		self.agent.fail_interrupted_sessions()
		self._started = True
		logger.info(f"Runtime started with {len(self.store)} sessions")

	async def stop(self) -> None:
		"""Flush outstanding sessions and audit entries, then close the database."""
		if not self._started:
			return
		try:
			await self.store.stop()
		finally:
			try:
				await self.audit.flush()
			finally:
				await self.persistence.close()
				self._started = False
		logger.info("Runtime stopped")


# Singleton
_runtime: Runtime | None = None


async def get_runtime(config: Optional[Config] = None) -> Runtime:
	"""Get or create (and start) the global runtime."""
	global _runtime
	if _runtime is None:
		_runtime = Runtime(config or get_config())
	await _runtime.start()
	return _runtime


async def shutdown_runtime() -> None:
	"""Stop and forget the global runtime."""
	global _runtime
	if _runtime is not None:
		await _runtime.stop()
		_runtime = None
