"""
Planner - turns gathered requirements into a policy-checked ExecutionPlan.
"""

import logging
from pathlib import Path

from ..interfaces import FilesystemOperations, TemplateCatalog
from ..modules.base import ProjectContext
from ..modules.orchestrator import ModuleOrchestrator
from ..policy.engine import PolicyEngine
from .models import (
	ExecutionPlan,
	ExecutionStep,
	PipelineDefinition,
	PlannedFile,
	ProjectRequirements,
	RepositoryDetails,
	ScmPlatform,
)

logger = logging.getLogger(__name__)

PIPELINE_FILES = {
	ScmPlatform.GITHUB: ".github/workflows/ci.yml",
	ScmPlatform.AZURE_DEVOPS: "azure-pipelines.yml",
}

# (operation, description); pipeline steps are appended only when a pipeline is planned
BASE_STEPS = [
	("template.select", "Select and prepare the project template"),
	("scm.create_repository", "Create the remote repository"),
	("filesystem.scaffold", "Scaffold the template into a workspace"),
	("modules.run", "Run scaffolding modules and write decision records"),
	("scm.push", "Push the initial commit to the default branch"),
	("scm.branch_protection", "Protect the default branch"),
]
PIPELINE_STEPS = [
	("scm.trigger_pipeline", "Create and trigger the CI pipeline"),
	("scm.verify_pipeline", "Check the status of the first pipeline run"),
]


def build_steps(include_pipeline: bool) -> list[ExecutionStep]:
	"""Ordered steps numbered contiguously from 1."""
	entries = BASE_STEPS + (PIPELINE_STEPS if include_pipeline else [])
	return [
		ExecutionStep(number=i, operation=operation, description=description)
		for i, (operation, description) in enumerate(entries, start=1)
	]


class Planner:
	"""
	Builds execution plans.

	Usage:
		planner = Planner(templates, policy_engine, orchestrator, filesystem, workspace_root)
		plan = planner.create_plan(requirements)
	"""

	def __init__(
		self,
		templates: TemplateCatalog,
		policy_engine: PolicyEngine,
		orchestrator: ModuleOrchestrator,
		filesystem: FilesystemOperations,
		workspace_root: Path,
		default_branch: str = "main",
		generate_ci_cd: bool = True,
		scm_owner: str = "",
	):
		self.templates = templates
		self.policy_engine = policy_engine
		self.orchestrator = orchestrator
		self.filesystem = filesystem
		self.workspace_root = Path(workspace_root)
		self.default_branch = default_branch
		self.generate_ci_cd = generate_ci_cd
		self.scm_owner = scm_owner

	def create_plan(self, requirements: ProjectRequirements) -> ExecutionPlan:
		"""
		Build and policy-check a plan.

		Args:
			requirements: Requirements from the conversation

		Returns:
			Plan with policy results and summary filled in

		Raises:
			ValueError: If no template matches the requirements
		"""
		candidates = self.templates.get_available_templates(requirements)
		if not candidates:
			raise ValueError(f"No template available for language '{requirements.language}'")
		template = candidates[0]

		planned_files = list(self.templates.get_planned_files(template, requirements))

		pipeline = None
		if self.generate_ci_cd:
			pipeline_file = PIPELINE_FILES[requirements.scm_platform]
			pipeline = PipelineDefinition(name="CI", file_path=pipeline_file, stages=["build", "test"])
			if not any(f.path == pipeline_file for f in planned_files):
				planned_files.append(PlannedFile(path=pipeline_file, description="CI pipeline", source="generated"))

		repository = RepositoryDetails(
			name=requirements.project_name,
			platform=requirements.scm_platform,
			owner=self.scm_owner,
			visibility=requirements.visibility,
			default_branch=self.default_branch,
			description=requirements.description,
		)

		preview_context = ProjectContext.from_requirements(
			requirements,
			self.workspace_root / requirements.project_name,
			self.filesystem,
			default_branch=self.default_branch,
			ci_pipeline_file=pipeline.file_path if pipeline else None,
		)
		modules = [m.id for m in self.orchestrator.get_applicable_modules(preview_context)]

		plan = ExecutionPlan(
			requirements=requirements,
			template=template,
			planned_files=planned_files,
			repository=repository,
			pipeline=pipeline,
			modules=modules,
			steps=build_steps(include_pipeline=pipeline is not None),
		)
		plan.policy_results = self.policy_engine.validate_plan(requirements, plan)
		plan.summary = summarize(plan)

		logger.info(
			f"Created plan {plan.id} for {requirements.project_name}: "
			f"{len(plan.planned_files)} files, {len(plan.modules)} modules, {len(plan.steps)} steps"
		)
		return plan


def summarize(plan: ExecutionPlan) -> str:
	"""One-paragraph human summary of a plan."""
	req = plan.requirements
	failed = [r for r in plan.policy_results if not r.passed]
	parts = [
		f"Create {plan.repository.visibility.value} {plan.repository.platform.value} repository "
		f"'{plan.repository.name}' from template '{plan.template.template_name}'",
		f"with {len(plan.planned_files)} planned files",
	]
	if plan.modules:
		parts.append(f"modules {', '.join(plan.modules)}")
	if plan.pipeline:
		parts.append(f"CI pipeline at {plan.pipeline.file_path}")
	summary = ", ".join(parts) + "."
	if req.framework:
		summary += f" Stack: {req.language}/{req.framework}."
	if failed:
		summary += f" {len(failed)} policy check(s) failed: {', '.join(r.policy_id for r in failed)}."
	return summary
