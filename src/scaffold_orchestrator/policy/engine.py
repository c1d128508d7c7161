"""
Policy Engine - named, severity-tagged rules over requirements and plans.

Policies are evaluated twice: once against the raw requirements before a
plan exists, and again against the complete plan. A failing "error"
policy blocks the session from reaching approval.
"""

import json
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import PolicyLoadError
from ..plans.models import (
	ExecutionPlan,
	PolicySeverity,
	PolicyValidationResult,
	ProjectRequirements,
)

logger = logging.getLogger(__name__)

KEBAB_CASE = re.compile(r"^[a-z][a-z0-9-]*$")

SECRET_PATTERNS = [
	re.compile(r"AKIA[0-9A-Z]{16}"),
	re.compile(r"gh[pousr]_[A-Za-z0-9]{20,}"),
	re.compile(r"sk-[A-Za-z0-9_-]{20,}"),
	re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----"),
	re.compile(r"(?i)(password|passwd|secret|api[_-]?key)\s*[:=]\s*\S+"),
]


class PolicyCategory(str, Enum):
	"""Grouping for policies."""
	NAMING = "naming"
	SECURITY = "security"
	STRUCTURE = "structure"
	DOCUMENTATION = "documentation"
	CI_CD = "ci-cd"
	COMPLIANCE = "compliance"
	OTHER = "other"


class PolicyDefinition(BaseModel):
	"""A policy in the active catalog."""
	id: str = Field(min_length=1)
	name: str
	description: str = ""
	severity: PolicySeverity = Field(default=PolicySeverity.ERROR)
	category: PolicyCategory = Field(default=PolicyCategory.OTHER)
	enabled: bool = True
	configuration: dict[str, Any] = Field(default_factory=dict)

	@field_validator("category", mode="before")
	@classmethod
	def _fallback_category(cls, value: Any) -> Any:
		if isinstance(value, PolicyCategory):
			return value
		try:
			return PolicyCategory(str(value).lower())
		except ValueError:
			logger.warning(f"Unknown policy category '{value}', using 'other'")
			return PolicyCategory.OTHER

	@field_validator("severity", mode="before")
	@classmethod
	def _normalize_severity(cls, value: Any) -> Any:
		return value.lower() if isinstance(value, str) else value

	@field_validator("configuration")
	@classmethod
	def _check_pattern(cls, value: dict[str, Any]) -> dict[str, Any]:
		pattern = value.get("pattern")
		if pattern is None:
			return value
		if not isinstance(pattern, str):
			raise ValueError("configuration.pattern must be a string")
		try:
			re.compile(pattern)
		except re.error as e:
			raise ValueError(f"configuration.pattern is not a valid regular expression: {e}") from e
		return value


DEFAULT_POLICIES = [
	PolicyDefinition(
		id="naming-convention",
		name="Project Naming Convention",
		description="Project names must use kebab-case (lowercase with hyphens)",
		severity=PolicySeverity.ERROR,
		category=PolicyCategory.NAMING,
	),
	PolicyDefinition(
		id="no-secrets-in-code",
		name="No Secrets in Code",
		description="Repository must not contain secrets or credentials in code",
		severity=PolicySeverity.ERROR,
		category=PolicyCategory.SECURITY,
	),
	PolicyDefinition(
		id="require-gitignore",
		name="Require .gitignore",
		description="Repository must include a .gitignore file",
		severity=PolicySeverity.ERROR,
		category=PolicyCategory.STRUCTURE,
	),
	PolicyDefinition(
		id="require-readme",
		name="Require README",
		description="Repository must include a README.md file",
		severity=PolicySeverity.WARNING,
		category=PolicyCategory.DOCUMENTATION,
	),
	PolicyDefinition(
		id="require-ci-pipeline",
		name="Require CI Pipeline",
		description="Repository must include a CI/CD pipeline configuration",
		severity=PolicySeverity.WARNING,
		category=PolicyCategory.CI_CD,
	),
]


def _result(policy: PolicyDefinition, passed: bool, message: str) -> PolicyValidationResult:
	return PolicyValidationResult(
		policy_id=policy.id,
		policy_name=policy.name,
		passed=passed,
		message=message,
		severity=policy.severity,
	)


def check_naming_convention(
	policy: PolicyDefinition,
	requirements: ProjectRequirements,
	plan: Optional[ExecutionPlan] = None,
) -> PolicyValidationResult:
	name = requirements.project_name
	pattern = policy.configuration.get("pattern")
	regex = re.compile(pattern) if pattern else KEBAB_CASE
	if regex.match(name):
		return _result(policy, True, "Project name follows kebab-case convention")
	return _result(policy, False, f"Project name '{name}' does not follow kebab-case convention")


def check_no_secrets(
	policy: PolicyDefinition,
	requirements: ProjectRequirements,
	plan: Optional[ExecutionPlan] = None,
) -> PolicyValidationResult:
	"""Scan free-text requirement values for credential-shaped strings."""
	candidates = {f"custom_configuration.{k}": v for k, v in requirements.custom_configuration.items()}
	if requirements.description:
		candidates["description"] = requirements.description

	for location, value in candidates.items():
		for pattern in SECRET_PATTERNS:
			if pattern.search(value):
				return _result(policy, False, f"Possible secret found in {location}")
	return _result(policy, True, "No secrets detected in requirements")


def _has_planned_file(plan: ExecutionPlan, file_name: str) -> bool:
	return any(f.path.lower() == file_name.lower() for f in plan.planned_files)


def _file_presence_check(file_name: str) -> Callable[..., PolicyValidationResult]:
	def check(
		policy: PolicyDefinition,
		requirements: ProjectRequirements,
		plan: Optional[ExecutionPlan] = None,
	) -> PolicyValidationResult:
		if plan is not None and _has_planned_file(plan, file_name):
			return _result(policy, True, f"{file_name} will be created")
		return _result(policy, False, f"{file_name} is required but not in the plan")
	return check


def check_ci_pipeline(
	policy: PolicyDefinition,
	requirements: ProjectRequirements,
	plan: Optional[ExecutionPlan] = None,
) -> PolicyValidationResult:
	has_pipeline = plan is not None and (
		plan.pipeline is not None
		or any(
			"ci.yml" in f.path.lower() or "azure-pipelines.yml" in f.path.lower()
			for f in plan.planned_files
		)
	)
	if has_pipeline:
		return _result(policy, True, "CI/CD pipeline will be created")
	return _result(policy, False, "No CI/CD pipeline in the plan")


PLAN_RULES: dict[str, Callable[..., PolicyValidationResult]] = {
	"naming-convention": check_naming_convention,
	"no-secrets-in-code": check_no_secrets,
	"require-gitignore": _file_presence_check(".gitignore"),
	"require-readme": _file_presence_check("README.md"),
	"require-ci-pipeline": check_ci_pipeline,
}

# Rules that only need requirements; everything else waits for the plan
REQUIREMENT_RULES = ("naming-convention", "no-secrets-in-code")


def all_policies_passed(results: list[PolicyValidationResult]) -> bool:
	"""False iff some result failed with severity "error"."""
	return not any(not r.passed and r.severity == PolicySeverity.ERROR for r in results)


class PolicyEngine:
	"""
	Evaluates the active policy catalog.

	Usage:
		engine = PolicyEngine()
		engine.load_policies("policies.yaml")

		results = engine.validate_plan(requirements, plan)
		if not engine.all_policies_passed(results):
			...
	"""

	def __init__(self, policies: Optional[list[PolicyDefinition]] = None):
		self._policies: list[PolicyDefinition] = [
			p.model_copy(deep=True) for p in (policies if policies is not None else DEFAULT_POLICIES)
		]

	def get_policies(self) -> list[PolicyDefinition]:
		"""Copy of the active catalog."""
		return [p.model_copy(deep=True) for p in self._policies]

	def get_policy(self, policy_id: str) -> Optional[PolicyDefinition]:
		for policy in self._policies:
			if policy.id == policy_id:
				return policy.model_copy(deep=True)
		return None

	def validate_requirements(self, requirements: ProjectRequirements) -> list[PolicyValidationResult]:
		"""
		Evaluate enabled policies that can be checked before a plan exists.

		Args:
			requirements: Requirements gathered so far

		Returns:
			One result per enabled policy
		"""
		enabled = [p for p in self._policies if p.enabled]
		logger.info(f"Validating requirements for '{requirements.project_name}' against {len(enabled)} policies")

		results = []
		for policy in enabled:
			if policy.id in REQUIREMENT_RULES:
				results.append(PLAN_RULES[policy.id](policy, requirements))
			else:
				results.append(_result(policy, True, "Policy validated during plan phase"))
		return results

	def validate_plan(
		self,
		requirements: ProjectRequirements,
		plan: ExecutionPlan,
	) -> list[PolicyValidationResult]:
		"""
		Evaluate every enabled policy against a plan.

		Policies without a built-in rule pass with severity "info".

		Args:
			requirements: Requirements the plan was built from
			plan: Proposed plan

		Returns:
			One result per enabled policy
		"""
		enabled = [p for p in self._policies if p.enabled]
		logger.info(f"Validating execution plan {plan.id} against {len(enabled)} policies")

		results = []
		for policy in enabled:
			rule = PLAN_RULES.get(policy.id)
			if rule is None:
				results.append(PolicyValidationResult(
					policy_id=policy.id,
					policy_name=policy.name,
					passed=True,
					message="Policy not implemented, skipped",
					severity=PolicySeverity.INFO,
				))
				continue
			results.append(rule(policy, requirements, plan))

		failed = [r.policy_id for r in results if not r.passed]
		if failed:
			logger.warning(f"Plan {plan.id} failed policies: {', '.join(failed)}")
		return results

	def all_policies_passed(self, results: list[PolicyValidationResult]) -> bool:
		return all_policies_passed(results)

	def load_policies(self, path: str | Path) -> int:
		"""
		Replace the catalog from a JSON or YAML file.

		The file is fully parsed and validated before anything changes; on
		any error the previous catalog stays active.

		Args:
			path: Policy file (.json, .yaml or .yml)

		Returns:
			Number of policies loaded

		Raises:
			PolicyLoadError: If the file cannot be read or validated
		"""
		policy_path = Path(path)
		logger.info(f"Loading policies from {policy_path}")

		try:
			content = policy_path.read_text(encoding="utf-8")
		except (OSError, UnicodeDecodeError) as e:
			raise PolicyLoadError(f"Cannot read policy file {policy_path}: {e}") from e

		loaded = parse_policies(content, policy_path.suffix.lower())

		self._policies = loaded
		logger.info(f"Loaded {len(loaded)} policies")
		return len(loaded)


def parse_policies(content: str, suffix: str = ".json") -> list[PolicyDefinition]:
	"""
	Parse a policy document into definitions.

	Accepts either a list of policies or a mapping with a "policies" key.

	Raises:
		PolicyLoadError: On syntax errors, wrong shape, invalid fields or duplicate ids
	"""
	try:
		if suffix in (".yaml", ".yml"):
			data = yaml.safe_load(content)
		else:
			data = json.loads(content)
	except (yaml.YAMLError, json.JSONDecodeError) as e:
		raise PolicyLoadError(f"Malformed policy file: {e}") from e

	if isinstance(data, dict) and "policies" in data:
		data = data["policies"]
	if not isinstance(data, list):
		raise PolicyLoadError("Policy file must contain a list of policies")

	policies = []
	seen = set()
	for index, raw in enumerate(data):
		if not isinstance(raw, dict):
			raise PolicyLoadError(f"Policy #{index} is not a mapping")
		try:
			policy = PolicyDefinition.model_validate(raw)
		except ValidationError as e:
			raise PolicyLoadError(f"Invalid policy #{index}: {e}") from e
		if policy.id in seen:
			raise PolicyLoadError(f"Duplicate policy id: {policy.id}")
		seen.add(policy.id)
		policies.append(policy)
	return policies
