"""
Scaffolding Agent - drives a session from conversation to delivered repository.

    intake --requirements--> planning --clean plan--> awaiting_approval
    awaiting_approval --approve--> executing --> delivering --> completed
    awaiting_approval --reject--> planning
    any step failure --> failed

Every transition, step and module outcome is written to the audit trail and
every mutation marks the session dirty in the store. Mutating calls on one
session are serialised with the store's per-session lock.
"""

import json
import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError

from .audit.models import ActionResult, ExecutionPhase
from .audit.trail import AuditTrail
from .config import Config
from .decisions import render_decision_records
from .errors import InvalidTransitionError, PlanNotFoundError, StepExecutionError
from .interfaces import (
	FilesystemOperations,
	PipelineRun,
	RepositoryInfo,
	SourceControlProvider,
	TemplateCatalog,
)
from .llm import LLMClient
from .modules.base import ModuleResult, ProjectContext
from .modules.orchestrator import ModuleOrchestrator, ProgressCallback
from .plans.models import ExecutionPlan, ExecutionStep, ProjectRequirements, ScmPlatform
from .plans.planner import Planner
from .policy.engine import PolicyEngine, all_policies_passed
from .sessions.models import DeliveryResult, MessageRole, Session, SessionStatus
from .sessions.state_machine import can_transition, has_blocking_failures, transition
from .sessions.store import SessionStore

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You help developers scaffold new repositories.

Gather: project name (lowercase, hyphenated, e.g. "my-api"), language, and
optionally framework, description, scm_platform (github or azure-devops),
visibility (private, internal or public), include_container_support and
is_api_project.

When you have enough information, reply with exactly one block:

```json
{"action": "create_project", "requirements": {"project_name": "...", "language": "..."}}
```

Otherwise keep the conversation going and ask for what is missing."""

_ACTION_BLOCK = re.compile(r"```json\s*(\{.*?\})\s*```", re.DOTALL)

INITIAL_COMMIT_MESSAGE = "Initial commit from scaffold-orchestrator"


def parse_action(reply: str) -> Optional[dict[str, Any]]:
	"""
	Extract a fenced JSON action block from an assistant reply.

	Returns:
		The decoded object, or None if there is no well-formed block
	"""
	match = _ACTION_BLOCK.search(reply)
	if not match:
		return None
	try:
		data = json.loads(match.group(1))
	except json.JSONDecodeError as e:
		logger.warning(f"Ignoring malformed action block: {e}")
		return None
	return data if isinstance(data, dict) else None


def vscode_link(repository_url: str, platform: str) -> str:
	"""Browser editor link for a repository, or the URL itself."""
	if platform == ScmPlatform.GITHUB.value and repository_url.startswith("https://github.com/"):
		path = repository_url.removeprefix("https://github.com/").strip("/").removesuffix(".git")
		return f"https://vscode.dev/github/{path}"
	if "dev.azure.com" in repository_url or "visualstudio.com" in repository_url:
		return f"{repository_url}?path=/&_a=contents"
	return repository_url


@dataclass
class _Run:
	"""Working state of one plan execution."""
	session: Session
	plan: ExecutionPlan
	workspace: Optional[Path] = None
	repository: Optional[RepositoryInfo] = None
	generated_files: list[str] = field(default_factory=list)
	module_results: list[ModuleResult] = field(default_factory=list)
	pipeline_run: Optional[PipelineRun] = None
	build_status: Optional[str] = None


class ScaffoldingAgent:
	"""
	Session lifecycle driver.

	Usage:
		agent = ScaffoldingAgent(store, audit, llm, policy_engine, orchestrator, templates, filesystem, scm, config)
		session = agent.create_session(user_id="alice")
		await agent.process_message(session.id, '{"project_name": "my-api", "language": "python"}')
		await agent.handle_approval(session.id, approved=True)
	"""

	def __init__(
		self,
		store: SessionStore,
		audit: AuditTrail,
		llm: LLMClient,
		policy_engine: PolicyEngine,
		orchestrator: ModuleOrchestrator,
		templates: TemplateCatalog,
		filesystem: FilesystemOperations,
		scm: SourceControlProvider,
		config: Config,
		progress_sink: Optional[ProgressCallback] = None,
	):
		self.store = store
		self.audit = audit
		self.llm = llm
		self.policy_engine = policy_engine
		self.orchestrator = orchestrator
		self.templates = templates
		self.filesystem = filesystem
		self.scm = scm
		self.config = config
		self.progress_sink = progress_sink
		self.planner = Planner(
			templates=templates,
			policy_engine=policy_engine,
			orchestrator=orchestrator,
			filesystem=filesystem,
			workspace_root=config.workspace_dir,
			default_branch=config.default_branch,
			generate_ci_cd=config.generate_ci_cd,
			scm_owner=config.scm_owner,
		)
		self._step_handlers: dict[str, Callable[[_Run, ExecutionStep], Awaitable[str]]] = {
			"template.select": self._step_select_template,
			"scm.create_repository": self._step_create_repository,
			"filesystem.scaffold": self._step_scaffold,
			"modules.run": self._step_run_modules,
			"scm.push": self._step_push,
			"scm.branch_protection": self._step_branch_protection,
			"scm.trigger_pipeline": self._step_trigger_pipeline,
			"scm.verify_pipeline": self._step_verify_pipeline,
		}

	# ------------------------------------------------------------------
	# Sessions and conversation
	# ------------------------------------------------------------------

	def create_session(self, user_id: Optional[str] = None) -> Session:
		"""Start a session in intake."""
		session = self.store.create_session(user_id=user_id)
		self.audit.log_action(
			session.id, "session.created", ExecutionPhase.INTAKE, ActionResult.SUCCESS,
			f"Session created for {user_id or 'anonymous'}",
		)
		return session

	async def process_message(self, session_id: str, content: str) -> Session:
		"""
		Handle a user message.

		In intake or planning the conversation is sent to the LLM; a
		create_project action in the reply triggers planning. In other
		states the message is recorded and answered with the current status.

		Raises:
			SessionNotFoundError: Unknown session
			Exception: LLM errors after retries are exhausted
		"""
		async with self.store.lock_for(session_id):
			session = self.store.require_session(session_id)
			await self._converse(session, content)
			return session

	async def _converse(self, session: Session, content: str) -> None:
		self.store.append_message(session.id, MessageRole.USER, content)

		if session.status not in (SessionStatus.INTAKE, SessionStatus.PLANNING):
			self._reply(session, self._status_note(session))
			return

		started = time.perf_counter()
		try:
			reply = await self.llm.send_message(SYSTEM_PROMPT, session.history())
		except Exception as e:
			self.audit.log_action(
				session.id, "llm.send_message", ExecutionPhase.INTAKE, ActionResult.FAILURE,
				str(e), duration_ms=_elapsed_ms(started),
			)
			raise
		self.audit.log_action(
			session.id, "llm.send_message", ExecutionPhase.INTAKE, ActionResult.SUCCESS,
			f"{len(reply)} characters", duration_ms=_elapsed_ms(started),
		)

		action = parse_action(reply)
		if action is None or action.get("action") != "create_project":
			self._reply(session, reply)
			return

		try:
			requirements = ProjectRequirements.model_validate(action.get("requirements") or {})
		except ValidationError as e:
			self.audit.log_action(
				session.id, "requirements.parse", ExecutionPhase.INTAKE, ActionResult.FAILURE, str(e),
			)
			self._reply(session, f"Those requirements are incomplete or invalid:\n{e}")
			return

		self._reply(session, reply)
		await self._plan(session, requirements)

	def _status_note(self, session: Session) -> str:
		notes = {
			SessionStatus.AWAITING_APPROVAL: "The plan is waiting for approval. Approve it, or reject it with feedback.",
			SessionStatus.EXECUTING: "The plan is being executed.",
			SessionStatus.DELIVERING: "The project is being delivered.",
			SessionStatus.COMPLETED: "This session is complete.",
			SessionStatus.FAILED: "This session failed and cannot continue. Start a new session.",
		}
		return notes.get(session.status, "")

	def _reply(self, session: Session, content: str) -> None:
		self.store.append_message(session.id, MessageRole.ASSISTANT, content)

	def _transition(self, session: Session, target: SessionStatus, phase: ExecutionPhase, reason: str = "") -> None:
		previous = transition(session, target, reason or None)
		self.store.mark_dirty(session.id)
		self.audit.log_action(
			session.id, "session.transition", phase, ActionResult.SUCCESS,
			f"{previous.value} -> {target.value}" + (f": {reason}" if reason else ""),
			parameters={"from": previous.value, "to": target.value},
		)

	# ------------------------------------------------------------------
	# Planning
	# ------------------------------------------------------------------

	def create_plan(self, requirements: ProjectRequirements) -> ExecutionPlan:
		"""Build a policy-checked plan without touching any session."""
		return self.planner.create_plan(requirements)

	async def _plan(self, session: Session, requirements: ProjectRequirements) -> None:
		if session.status == SessionStatus.INTAKE:
			self._transition(session, SessionStatus.PLANNING, ExecutionPhase.PLANNING, "requirements gathered")

		session.project_name = requirements.project_name
		self.store.mark_dirty(session.id)

		results = self.policy_engine.validate_requirements(requirements)
		passed = all_policies_passed(results)
		self.audit.log_action(
			session.id, "policy.validate_requirements", ExecutionPhase.PLANNING,
			ActionResult.SUCCESS if passed else ActionResult.FAILURE,
			f"{sum(1 for r in results if not r.passed)} of {len(results)} policies failed",
			parameters={"failed": [r.policy_id for r in results if not r.passed]},
		)
		if not passed:
			failures = "\n".join(f"- {r.policy_name}: {r.message}" for r in results if not r.passed)
			self._reply(session, f"The requirements violate blocking policies:\n{failures}")
			return

		started = time.perf_counter()
		try:
			plan = self.planner.create_plan(requirements)
		except ValueError as e:
			self.audit.log_action(
				session.id, "plan.create", ExecutionPhase.PLANNING, ActionResult.FAILURE, str(e),
			)
			self._reply(session, f"Could not build a plan: {e}")
			return

		session.plan = plan
		self.store.mark_dirty(session.id)
		self.audit.log_action(
			session.id, "plan.create", ExecutionPhase.PLANNING, ActionResult.SUCCESS, plan.summary,
			parameters={"plan_id": plan.id, "steps": len(plan.steps), "modules": plan.modules},
			duration_ms=_elapsed_ms(started),
		)

		if has_blocking_failures(plan.policy_results):
			failures = "\n".join(
				f"- {r.policy_name}: {r.message}" for r in plan.policy_results if not r.passed
			)
			self._reply(session, f"The plan fails blocking policies and needs revising:\n{failures}")
			return

		self._transition(session, SessionStatus.AWAITING_APPROVAL, ExecutionPhase.PLANNING, "plan ready")
		self._reply(session, plan.to_markdown())

	# ------------------------------------------------------------------
	# Approval and execution
	# ------------------------------------------------------------------

	async def handle_approval(self, session_id: str, approved: bool, feedback: Optional[str] = None) -> Session:
		"""
		Approve or reject the pending plan.

		Approval runs the plan to completion (or failure) before returning.
		Rejection returns the session to planning; feedback, if given, is
		fed back into the conversation.

		Raises:
			SessionNotFoundError: Unknown session
			InvalidTransitionError: Session is not awaiting approval
			PlanNotFoundError: Session has no plan
		"""
		async with self.store.lock_for(session_id):
			session = self.store.require_session(session_id)
			target = SessionStatus.EXECUTING if approved else SessionStatus.PLANNING
			if session.status != SessionStatus.AWAITING_APPROVAL:
				raise InvalidTransitionError(session.status.value, target.value)
			if session.plan is None:
				raise PlanNotFoundError(f"Session {session_id} has no plan")

			if not approved:
				self.audit.log_action(
					session.id, "plan.rejected", ExecutionPhase.PLANNING, ActionResult.SUCCESS,
					feedback or "Rejected without feedback", parameters={"plan_id": session.plan.id},
				)
				self._transition(session, SessionStatus.PLANNING, ExecutionPhase.PLANNING, "plan rejected")
				if feedback:
					await self._converse(session, feedback)
				return session

			session.plan.approve()
			self.audit.log_action(
				session.id, "plan.approved", ExecutionPhase.PLANNING, ActionResult.SUCCESS,
				f"Plan {session.plan.id} approved", parameters={"plan_id": session.plan.id},
			)
			self._transition(session, SessionStatus.EXECUTING, ExecutionPhase.EXECUTION, "plan approved")
			await self._execute(session)
			return session

	async def execute_plan(self, session_id: str) -> Session:
		"""
		Run the pending steps of an approved plan.

		Raises:
			InvalidTransitionError: Session is not executing
			PlanNotFoundError: Session has no plan
		"""
		async with self.store.lock_for(session_id):
			session = self.store.require_session(session_id)
			if session.status != SessionStatus.EXECUTING:
				raise InvalidTransitionError(session.status.value, SessionStatus.DELIVERING.value)
			if session.plan is None:
				raise PlanNotFoundError(f"Session {session_id} has no plan")
			await self._execute(session)
			return session

	async def _execute(self, session: Session) -> None:
		plan = session.plan
		run = _Run(session=session, plan=plan)
		try:
			for step in plan.steps:
				if step.is_completed:
					continue
				await self._execute_step(run, step)

			self._transition(session, SessionStatus.DELIVERING, ExecutionPhase.DELIVERY, "all steps completed")
			delivery = self._build_delivery(run)
			session.delivery_result = delivery
			self.audit.log_action(
				session.id, "delivery.completed", ExecutionPhase.DELIVERY, ActionResult.SUCCESS,
				delivery.repository_url or "", parameters={"build_status": delivery.build_status},
			)
			self._transition(session, SessionStatus.COMPLETED, ExecutionPhase.DELIVERY, "delivered")
			self._reply(session, delivery.summary_card)
		except StepExecutionError as e:
			logger.error(f"Session {session.id} failed: {e}")
			self._fail(session, plan, str(e))
		except Exception as e:
			logger.error(f"Session {session.id} failed outside a step: {e}")
			self._fail(session, plan, f"{type(e).__name__}: {e}")
			raise
		finally:
			self.store.mark_dirty(session.id)

	def _fail(self, session: Session, plan: ExecutionPlan, reason: str) -> None:
		session.delivery_result = DeliveryResult(
			success=False,
			platform=plan.repository.platform.value,
			repository_url=plan.repository.url,
			default_branch=plan.repository.default_branch,
			summary_card=f"Execution failed: {reason}",
			error_message=reason,
		)
		if can_transition(session.status, SessionStatus.FAILED):
			self._transition(session, SessionStatus.FAILED, ExecutionPhase.EXECUTION, reason)
		self._reply(session, session.delivery_result.summary_card)

	async def _execute_step(self, run: _Run, step: ExecutionStep) -> None:
		handler = self._step_handlers.get(step.operation)
		started = time.perf_counter()
		try:
			if handler is None:
				raise ValueError(f"Unknown operation: {step.operation}")
			result = await handler(run, step)
		except Exception as e:
			self.audit.log_action(
				run.session.id, step.operation, ExecutionPhase.EXECUTION, ActionResult.FAILURE, str(e),
				parameters={"step": step.number}, duration_ms=_elapsed_ms(started),
			)
			raise StepExecutionError(step.number, step.operation, str(e)) from e

		step.mark_completed(result)
		self.store.mark_dirty(run.session.id)
		self.audit.log_action(
			run.session.id, step.operation, ExecutionPhase.EXECUTION, ActionResult.SUCCESS, result,
			parameters={"step": step.number}, duration_ms=_elapsed_ms(started),
		)

	def _require_repository(self, run: _Run) -> RepositoryInfo:
		if run.repository is None:
			raise RuntimeError("Repository has not been created in this run")
		return run.repository

	def _require_workspace(self, run: _Run) -> Path:
		if run.workspace is None:
			raise RuntimeError("Workspace has not been scaffolded in this run")
		return run.workspace

	async def _step_select_template(self, run: _Run, step: ExecutionStep) -> str:
		available = {t.template_id for t in self.templates.get_available_templates(run.plan.requirements)}
		if run.plan.template.template_id not in available:
			raise ValueError(f"Template {run.plan.template.template_id} is no longer available")
		return f"Using template {run.plan.template.template_name}"

	async def _step_create_repository(self, run: _Run, step: ExecutionStep) -> str:
		info = await self.scm.create_repository(run.plan.repository)
		run.repository = info
		run.plan.repository.url = info.url
		run.plan.repository.clone_url = info.clone_url
		return f"Created repository {info.url}"

	async def _step_scaffold(self, run: _Run, step: ExecutionStep) -> str:
		requirements = run.plan.requirements
		workspace = await self.filesystem.create_workspace(requirements.project_name)
		run.workspace = workspace
		files = await self.templates.scaffold_project(run.plan.template, requirements, workspace, self.filesystem)
		if run.plan.pipeline is not None:
			await self.filesystem.write_file(
				workspace / run.plan.pipeline.file_path,
				f"# {run.plan.pipeline.name} pipeline for {requirements.project_name}\n",
			)
			files.append(run.plan.pipeline.file_path)
		run.generated_files = files
		return f"Scaffolded {len(files)} files into {workspace}"

	async def _step_run_modules(self, run: _Run, step: ExecutionStep) -> str:
		workspace = self._require_workspace(run)
		context = ProjectContext.from_requirements(
			run.plan.requirements,
			workspace,
			self.filesystem,
			repository_url=run.plan.repository.url or "",
			default_branch=run.plan.repository.default_branch,
			ci_pipeline_file=run.plan.pipeline.file_path if run.plan.pipeline else None,
			generated_files=list(run.generated_files),
		)
		results = await self.orchestrator.execute_all(context, on_progress=self.progress_sink)
		for result in results:
			self.audit.log_action(
				run.session.id, f"module.{result.module_id}", ExecutionPhase.EXECUTION,
				ActionResult.SUCCESS if result.success else ActionResult.FAILURE,
				result.error_message or f"{len(result.files_created)} files created",
				parameters=result.to_dict(), duration_ms=result.duration * 1000,
			)
		run.module_results = results

		records = await render_decision_records(context.decisions.get_decisions(), workspace, self.filesystem)
		context.add_generated_files(records)
		run.generated_files = list(context.generated_files)

		failed = [r.module_id for r in results if not r.success]
		summary = f"Ran {len(results)} modules, wrote {len(records)} decision record files"
		if failed:
			summary += f"; failed: {', '.join(failed)}"
		return summary

	async def _step_push(self, run: _Run, step: ExecutionStep) -> str:
		repository = self._require_repository(run)
		workspace = self._require_workspace(run)
		ref = await self.scm.push_workspace(
			repository, workspace, run.plan.repository.default_branch, INITIAL_COMMIT_MESSAGE,
		)
		return f"Pushed {len(run.generated_files)} files as {ref}"

	async def _step_branch_protection(self, run: _Run, step: ExecutionStep) -> str:
		repository = self._require_repository(run)
		branch = run.plan.repository.default_branch
		await self.scm.configure_branch_protection(repository, branch)
		return f"Protected {branch}"

	async def _step_trigger_pipeline(self, run: _Run, step: ExecutionStep) -> str:
		repository = self._require_repository(run)
		if run.plan.pipeline is None:
			return "No pipeline planned"
		pipeline_id = await self.scm.create_pipeline(repository, run.plan.pipeline)
		run.pipeline_run = await self.scm.trigger_pipeline(
			repository, pipeline_id, run.plan.repository.default_branch,
		)
		return f"Triggered pipeline {pipeline_id} run {run.pipeline_run.run_id}"

	async def _step_verify_pipeline(self, run: _Run, step: ExecutionStep) -> str:
		repository = self._require_repository(run)
		if run.pipeline_run is None:
			return "No pipeline run to verify"
		run.build_status = await self.scm.get_pipeline_status(repository, run.pipeline_run.run_id)
		return f"Pipeline status: {run.build_status}"

	def _build_delivery(self, run: _Run) -> DeliveryResult:
		repo = run.plan.repository
		platform = repo.platform.value
		url = repo.url or ""
		pipeline_url = run.pipeline_run.url if run.pipeline_run else None
		link = vscode_link(url, platform)
		failed_modules = [r.module_id for r in run.module_results if not r.success]

		lines = [
			"Repository ready!",
			"",
			f"Platform    : {platform}",
			f"Repository  : {url}",
			f"Branch      : {repo.default_branch}",
			f"Pipeline    : {pipeline_url or 'N/A'}",
			f"Build status: {run.build_status or 'N/A'}",
		]
		if failed_modules:
			lines.append(f"Warnings    : modules failed: {', '.join(failed_modules)}")
		lines += ["", f"Open in VS Code: {link}"]

		return DeliveryResult(
			success=True,
			platform=platform,
			repository_url=url,
			clone_url=repo.clone_url,
			default_branch=repo.default_branch,
			pipeline_url=pipeline_url,
			build_status=run.build_status,
			vscode_link=link,
			summary_card="\n".join(lines),
		)

	# ------------------------------------------------------------------
	# Maintenance
	# ------------------------------------------------------------------

	def fail_interrupted_sessions(self) -> list[str]:
		"""
		Fail sessions left executing or delivering by a previous process.

		Run state (workspace, repository handle) does not survive a restart,
		so those sessions cannot resume.

		Returns:
			Ids of the sessions that were failed
		"""
		failed = []
		for session in self.store.list_sessions():
			if session.status in (SessionStatus.EXECUTING, SessionStatus.DELIVERING):
				self._transition(session, SessionStatus.FAILED, ExecutionPhase.EXECUTION, "interrupted by restart")
				self._reply(session, "Execution was interrupted by a restart. Start a new session to retry.")
				failed.append(session.id)
		if failed:
			logger.warning(f"Failed {len(failed)} interrupted sessions: {', '.join(failed)}")
		return failed

	async def validate_configuration(self) -> list[str]:
		"""Configuration problems plus an SCM connectivity check."""
		errors = self.config.validate()
		try:
			if not await self.scm.validate_connection():
				errors.append(f"Cannot connect to {self.scm.platform}")
		except Exception as e:
			errors.append(f"Cannot connect to {self.scm.platform}: {e}")
		return errors


def _elapsed_ms(started: float) -> float:
	return round((time.perf_counter() - started) * 1000, 3)
