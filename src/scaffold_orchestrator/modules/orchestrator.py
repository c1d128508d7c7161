"""
Module Orchestrator - ordered, sequential, failure-isolated module runs.

Modules are filtered (disabled ids, applicability) and stably sorted by
order. They run one at a time because later modules read files produced by
earlier ones. A module that raises becomes a failed ModuleResult; the run
always continues with the next module.
"""

import inspect
import logging
import time
from typing import Any, Callable, Iterable, Optional

from .base import ModuleResult, ProjectContext, ScaffoldModule

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str], Any]

STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


class ModuleOrchestrator:
	"""
	Runs a module catalog against a ProjectContext.

	Usage:
		orchestrator = ModuleOrchestrator(default_modules(), disabled_modules=["readme"])
		preview = orchestrator.get_applicable_modules(context)
		results = await orchestrator.execute_all(context, on_progress=print)
	"""

	def __init__(self, modules: Iterable[ScaffoldModule], disabled_modules: Iterable[str] = ()):
		"""
		Initialize the orchestrator.

		Args:
			modules: Catalog in registration order
			disabled_modules: Module ids to skip (case-insensitive)
		"""
		self.modules = list(modules)
		self.disabled_modules = {m.lower() for m in disabled_modules}

	def get_applicable_modules(self, context: ProjectContext) -> list[ScaffoldModule]:
		"""
		Modules that would run for this context, in run order.

		Has no side effects; execute_all runs exactly this list.
		"""
		selected = [
			m for m in self.modules
			if m.id.lower() not in self.disabled_modules and m.should_run(context)
		]
		# sorted() is stable, so equal orders keep registration order
		return sorted(selected, key=lambda m: m.order)

	async def execute_all(
		self,
		context: ProjectContext,
		on_progress: Optional[ProgressCallback] = None,
	) -> list[ModuleResult]:
		"""
		Run every applicable module in order.

		Args:
			context: Shared context, mutated between modules
			on_progress: Optional callback(module_id, status) with status
				"running", "completed" or "failed". May be sync or async;
				errors it raises are logged and ignored.

		Returns:
			One ModuleResult per module that ran, in run order
		"""
		selected = self.get_applicable_modules(context)
		logger.info(
			f"Running {len(selected)} modules for {context.project_name}: "
			f"{', '.join(m.id for m in selected) or '(none)'}"
		)

		results: list[ModuleResult] = []
		for module in selected:
			await self._notify(on_progress, module.id, STATUS_RUNNING)
			started = time.perf_counter()
			try:
				outcome = await module.execute(context)
				result = ModuleResult(
					module_id=module.id,
					success=outcome.success,
					files_created=tuple(outcome.files_created),
					files_modified=tuple(outcome.files_modified),
					scm_actions=tuple(outcome.scm_actions),
					error_message=outcome.error_message,
					duration=time.perf_counter() - started,
				)
			except Exception as e:
				logger.error(f"Module {module.id} failed: {e}")
				result = ModuleResult(
					module_id=module.id,
					success=False,
					error_message=str(e) or type(e).__name__,
					duration=time.perf_counter() - started,
				)

			context.add_generated_files(result.files_created)
			results.append(result)
			await self._notify(on_progress, module.id, STATUS_COMPLETED if result.success else STATUS_FAILED)

		failed = [r.module_id for r in results if not r.success]
		if failed:
			logger.warning(f"{len(failed)}/{len(results)} modules failed: {', '.join(failed)}")
		else:
			logger.info(f"All {len(results)} modules completed")
		return results

	async def _notify(self, callback: Optional[ProgressCallback], module_id: str, status: str) -> None:
		if callback is None:
			return
		try:
			outcome = callback(module_id, status)
			if inspect.isawaitable(outcome):
				await outcome
		except Exception as e:
			logger.warning(f"Progress callback failed for {module_id} ({status}): {e}")
