"""Tests for plan construction."""

from pathlib import Path

import pytest

from scaffold_orchestrator.local import BasicTemplateCatalog, LocalFilesystem
from scaffold_orchestrator.modules.builtin import default_modules
from scaffold_orchestrator.modules.orchestrator import ModuleOrchestrator
from scaffold_orchestrator.plans.models import ExecutionPlan, ExecutionStep, ScmPlatform
from scaffold_orchestrator.plans.planner import Planner, build_steps
from scaffold_orchestrator.policy.engine import PolicyEngine

from .helpers import make_requirements


def make_planner(tmp_path: Path, **kwargs) -> Planner:
	return Planner(
		templates=BasicTemplateCatalog(),
		policy_engine=PolicyEngine(),
		orchestrator=ModuleOrchestrator(default_modules(), disabled_modules=kwargs.pop("disabled", ())),
		filesystem=LocalFilesystem(tmp_path),
		workspace_root=tmp_path,
		**kwargs,
	)


class TestBuildSteps:
	"""Step numbering."""

	def test_steps_without_pipeline(self):
		steps = build_steps(include_pipeline=False)
		assert [s.number for s in steps] == list(range(1, 7))
		assert [s.operation for s in steps] == [
			"template.select",
			"scm.create_repository",
			"filesystem.scaffold",
			"modules.run",
			"scm.push",
			"scm.branch_protection",
		]

	def test_steps_with_pipeline(self):
		steps = build_steps(include_pipeline=True)
		assert [s.number for s in steps] == list(range(1, 9))
		assert steps[-1].operation == "scm.verify_pipeline"

	def test_plan_rejects_gapped_step_numbers(self, tmp_path: Path):
		plan = make_planner(tmp_path).create_plan(make_requirements())
		data = plan.model_dump()
		data["steps"][1]["number"] = 5
		with pytest.raises(ValueError):
			ExecutionPlan.model_validate(data)


class TestCreatePlan:
	"""Planner output."""

	def test_plan_contents(self, tmp_path: Path):
		plan = make_planner(tmp_path, scm_owner="acme").create_plan(make_requirements())

		assert plan.template.template_id == "python-app-fastapi"
		paths = [f.path for f in plan.planned_files]
		assert "README.md" in paths
		assert ".gitignore" in paths
		assert ".github/workflows/ci.yml" in paths
		assert plan.pipeline is not None
		assert plan.repository.owner == "acme"
		assert plan.repository.default_branch == "main"
		assert plan.modules == [
			"security-baseline", "sbom", "license-compliance", "branching-strategy",
			"observability", "readme", "environment-config", "runbook",
		]
		assert len(plan.steps) == 8
		assert all(r.passed for r in plan.policy_results)
		assert "my-service" in plan.summary
		assert not plan.is_approved

	def test_azure_pipeline_file(self, tmp_path: Path):
		plan = make_planner(tmp_path).create_plan(make_requirements(scm_platform=ScmPlatform.AZURE_DEVOPS))
		assert plan.pipeline.file_path == "azure-pipelines.yml"

	def test_without_ci_cd(self, tmp_path: Path):
		plan = make_planner(tmp_path, generate_ci_cd=False).create_plan(make_requirements())
		assert plan.pipeline is None
		assert len(plan.steps) == 6
		ci = next(r for r in plan.policy_results if r.policy_id == "require-ci-pipeline")
		assert not ci.passed

	def test_module_preview_respects_disabled_and_api(self, tmp_path: Path):
		planner = make_planner(tmp_path, disabled=["readme"])
		plan = planner.create_plan(make_requirements(is_api_project=True))
		assert "readme" not in plan.modules
		assert plan.modules[-2:] == ["api-contract", "runbook"]

	def test_planning_writes_nothing(self, tmp_path: Path):
		make_planner(tmp_path).create_plan(make_requirements())
		assert list(tmp_path.iterdir()) == []

	def test_markdown_lists_steps(self, tmp_path: Path):
		plan = make_planner(tmp_path).create_plan(make_requirements())
		plan.steps[0].mark_completed("done")
		text = plan.to_markdown()
		assert text.startswith("# Plan for my-service")
		assert "1. [x] " in text
		assert "2. [ ] " in text
		assert plan.get_progress() == {"total_steps": 8, "completed_steps": 1, "percent_complete": 12.5}
		assert plan.next_pending_step().number == 2


def test_step_completion_is_sticky():
	step = ExecutionStep(number=1, description="d", operation="template.select")
	step.mark_completed("first")
	step.mark_completed("second")
	assert step.is_completed
	assert step.result == "second"
