"""
Built-in modules.

Generated text is deliberately minimal; each module's job is to put the
right files in place, say why in a decision record, and report what it did.
"""

import logging

import yaml

from .base import ModuleResult, ProjectContext, ScaffoldModule

logger = logging.getLogger(__name__)

ENV_IGNORE_LINES = [".env", ".env.*", "!.env.example"]

# Appended to the CI pipeline; {output} is the syft output format
SBOM_STEPS = {
	"github": (
		"# Software bill of materials\n"
		"- name: Generate SBOM\n"
		"  uses: anchore/sbom-action@v0\n"
		"  with:\n"
		"    format: {output}\n"
		"    output-file: sbom.json\n"
	),
	"azure-devops": (
		"# Software bill of materials\n"
		"- script: syft . -o {output}=sbom.json\n"
		"  displayName: Generate SBOM\n"
	),
}

ENVIRONMENTS = [
	("development", "Local development", ".env file"),
	("staging", "Pre-production verification", "Pipeline variables"),
	("production", "Live traffic", "Secret store"),
]

ENV_VARIABLES = ["APP_ENV=development", "LOG_LEVEL=info"]


class SecurityBaselineModule(ScaffoldModule):
	"""SECURITY.md, .env.example and secret-safe .gitignore entries."""

	id = "security-baseline"
	display_name = "Security Baseline"
	order = 100

	async def execute(self, context: ProjectContext) -> ModuleResult:
		created = []
		modified = []

		contact = context.security_contact_email or "the maintainers"
		created.append(await context.write_file(
			"SECURITY.md",
			f"# Security Policy\n\nReport vulnerabilities in {context.project_name} privately to {contact}.\n",
		))
		created.append(await context.write_file(
			".env.example",
			"# Copy to .env and fill in. Never commit .env.\n",
		))

		gitignore = context.workspace_path / ".gitignore"
		if await context.filesystem.exists(gitignore):
			existing = await context.filesystem.read_file(gitignore)
			missing = [line for line in ENV_IGNORE_LINES if line not in existing.splitlines()]
			if missing:
				suffix = "" if existing.endswith("\n") or not existing else "\n"
				await context.filesystem.write_file(gitignore, existing + suffix + "\n".join(missing) + "\n")
				modified.append(".gitignore")
		else:
			created.append(await context.write_file(".gitignore", "\n".join(ENV_IGNORE_LINES) + "\n"))

		context.decisions.record(
			title="Establish a security baseline",
			context="New repositories need a vulnerability disclosure process and protection against committed secrets.",
			decision="Add SECURITY.md, an .env.example template and .gitignore rules for environment files.",
			rationale="Secrets stay out of version control from the first commit and reporters know where to go.",
			category="security",
			alternatives={"No baseline": "Leaves secret handling to each contributor"},
			related_files=created + modified,
		)
		return ModuleResult(
			module_id=self.id,
			success=True,
			files_created=tuple(created),
			files_modified=tuple(modified),
		)


class LicenseComplianceModule(ScaffoldModule):
	"""LICENSE file for the configured SPDX identifier."""

	id = "license-compliance"
	display_name = "License Compliance"
	order = 300

	async def execute(self, context: ProjectContext) -> ModuleResult:
		spdx = context.license_spdx
		if spdx.upper() == "UNLICENSED":
			body = f"Copyright (c) {context.project_name} authors. All rights reserved.\n"
		else:
			body = f"SPDX-License-Identifier: {spdx}\n\nSee https://spdx.org/licenses/{spdx}.html for the full text.\n"
		path = await context.write_file("LICENSE", body)

		context.decisions.record(
			title=f"License project under {spdx}",
			context="Every project needs a clear license defining terms of use and distribution.",
			decision=f"Use {spdx} and ship it as LICENSE at the repository root.",
			rationale="An explicit license removes ambiguity for consumers and contributors.",
			category="compliance",
			related_files=[path],
		)
		return ModuleResult(module_id=self.id, success=True, files_created=(path,))


class SbomModule(ScaffoldModule):
	"""SBOM guide plus a CI pipeline step that produces sbom.json."""

	id = "sbom"
	display_name = "SBOM Generation"
	order = 200

	async def execute(self, context: ProjectContext) -> ModuleResult:
		fmt = "SPDX" if context.sbom_format.upper() == "SPDX" else "CycloneDX"
		created = [await context.write_file(
			"docs/sbom/README.md",
			f"# Software Bill of Materials\n\nEvery CI build of {context.project_name} publishes "
			f"`sbom.json` in {fmt} format as a build artifact.\n",
		)]
		modified = []

		pipeline = context.ci_pipeline_file
		if pipeline:
			pipeline_path = context.workspace_path / pipeline
			if await context.filesystem.exists(pipeline_path):
				existing = await context.filesystem.read_file(pipeline_path)
				if "sbom" in existing.lower():
					logger.debug(f"{pipeline} already generates an SBOM")
				else:
					step = SBOM_STEPS.get(context.scm_platform, SBOM_STEPS["github"])
					output = "spdx-json" if fmt == "SPDX" else "cyclonedx-json"
					suffix = "" if existing.endswith("\n") or not existing else "\n"
					await context.filesystem.write_file(pipeline_path, existing + suffix + step.format(output=output))
					modified.append(pipeline)

		context.decisions.record(
			title=f"Generate an SBOM in CI using {fmt}",
			context="Supply chain regulation and enterprise procurement increasingly require a component inventory per release.",
			decision=f"Produce sbom.json in {fmt} format on every CI build.",
			rationale="Generating the SBOM in CI keeps the inventory current with each release.",
			category="compliance",
			alternatives={"Manual SBOM generation": "Error-prone and goes stale"},
			consequences=["Every CI build publishes an SBOM artifact"],
			related_files=created + modified,
		)
		return ModuleResult(
			module_id=self.id,
			success=True,
			files_created=tuple(created),
			files_modified=tuple(modified),
		)


class BranchingStrategyModule(ScaffoldModule):
	"""Documents the branching model and requests default-branch protection."""

	id = "branching-strategy"
	display_name = "Branching Strategy"
	order = 500

	async def execute(self, context: ProjectContext) -> ModuleResult:
		strategy = context.branching_strategy
		branch = context.default_branch
		path = await context.write_file(
			"docs/BRANCHING.md",
			f"# Branching Strategy\n\n{strategy.title()}. `{branch}` is protected; changes land through pull requests.\n",
		)

		context.decisions.record(
			title=f"Adopt {strategy} branching strategy",
			context="Teams need a consistent branching model to coordinate development and releases.",
			decision=f"Use {strategy} with branch protection on `{branch}`.",
			rationale="Short-lived branches and a protected default branch keep the main line releasable.",
			category="process",
			alternatives={"GitFlow": "Long-lived branches add merge overhead for most teams"},
			consequences=[f"Direct pushes to `{branch}` are blocked after the initial commit"],
			related_files=[path],
		)
		return ModuleResult(
			module_id=self.id,
			success=True,
			files_created=(path,),
			scm_actions=(f"branch-protection:{branch}",),
		)


class ObservabilityModule(ScaffoldModule):
	"""Logging, metrics and health-check conventions."""

	id = "observability"
	display_name = "Observability"
	order = 600

	async def execute(self, context: ProjectContext) -> ModuleResult:
		lines = [
			"# Observability",
			"",
			"## Logging",
			"",
			"Structured logs go to stdout; the level comes from `LOG_LEVEL`.",
			"",
			"## Tracing and metrics",
			"",
			f"Export OpenTelemetry data with `OTEL_SERVICE_NAME={context.project_name}`.",
			"",
		]
		if context.is_api_project:
			lines += [
				"## Health checks",
				"",
				"- `GET /health`: liveness",
				"- `GET /ready`: readiness, fails while dependencies are unavailable",
				"",
			]
		path = await context.write_file("docs/OBSERVABILITY.md", "\n".join(lines))

		context.decisions.record(
			title="Standardise on OpenTelemetry and structured logging",
			context="Operators need consistent logs, traces and health signals to run the service.",
			decision="Log structured output to stdout and export telemetry through OpenTelemetry.",
			rationale="A vendor-neutral standard keeps the backend choice open.",
			category="monitoring",
			alternatives={"Vendor SDK": "Couples the code to one monitoring backend"},
			related_files=[path],
		)
		return ModuleResult(module_id=self.id, success=True, files_created=(path,))


class ReadmeModule(ScaffoldModule):
	"""README.md that links to whatever earlier modules produced."""

	id = "readme"
	display_name = "README Generator"
	order = 700

	async def execute(self, context: ProjectContext) -> ModuleResult:
		existed = context.has_file("README.md")
		description = context.description or f"A {context.framework or context.language} project."

		lines = [f"# {context.project_name}", "", description, ""]
		stack = [context.language]
		if context.framework:
			stack.append(context.framework)
		if context.runtime_version:
			stack.append(context.runtime_version)
		lines += ["## Stack", "", ", ".join(stack), ""]

		docs = [
			("SECURITY.md", "Security policy"),
			("LICENSE", "License"),
			("docs/sbom/README.md", "Software bill of materials"),
			("docs/BRANCHING.md", "Branching strategy"),
			("docs/OBSERVABILITY.md", "Observability"),
		]
		links = [f"- [{label}]({path})" for path, label in docs if context.has_file(path)]
		if links:
			lines += ["## Documentation", ""] + links + [""]

		path = await context.write_file("README.md", "\n".join(lines))

		context.decisions.record(
			title="Generate README with documentation cross-references",
			context="Every project needs a landing page for new developers.",
			decision="Generate README.md with an overview, stack summary and links to the other generated documents.",
			rationale="Cross-references make the security, license and process docs discoverable.",
			category="documentation",
			related_files=[path],
		)
		if existed:
			return ModuleResult(module_id=self.id, success=True, files_modified=(path,))
		return ModuleResult(module_id=self.id, success=True, files_created=(path,))


class EnvironmentConfigModule(ScaffoldModule):
	"""Environment matrix and the variables every environment must set."""

	id = "environment-config"
	display_name = "Environment Configuration"
	order = 800

	async def execute(self, context: ProjectContext) -> ModuleResult:
		lines = [
			"# Environments",
			"",
			"| Environment | Purpose | Configuration source |",
			"|-------------|---------|----------------------|",
		]
		lines += [f"| `{name}` | {purpose} | {source} |" for name, purpose, source in ENVIRONMENTS]
		lines += ["", "Copy `.env.example` to `.env` for local development.", ""]
		created = [await context.write_file("docs/ENVIRONMENTS.md", "\n".join(lines))]
		modified = []

		env_example = context.workspace_path / ".env.example"
		if await context.filesystem.exists(env_example):
			existing = await context.filesystem.read_file(env_example)
			keys = {line.split("=", 1)[0] for line in existing.splitlines() if "=" in line}
			missing = [line for line in ENV_VARIABLES if line.split("=", 1)[0] not in keys]
			if missing:
				suffix = "" if existing.endswith("\n") or not existing else "\n"
				await context.filesystem.write_file(env_example, existing + suffix + "\n".join(missing) + "\n")
				modified.append(".env.example")
		else:
			created.append(await context.write_file(".env.example", "\n".join(ENV_VARIABLES) + "\n"))

		context.decisions.record(
			title="Configure environments through environment variables",
			context="The same build must run in development, staging and production with different settings.",
			decision="Read settings from environment variables, documented in .env.example.",
			rationale="Twelve-factor configuration keeps secrets out of the repository and builds identical across environments.",
			category="infrastructure",
			alternatives={"Per-environment config files": "Drift between files and risk of committed secrets"},
			related_files=created + modified,
		)
		return ModuleResult(
			module_id=self.id,
			success=True,
			files_created=tuple(created),
			files_modified=tuple(modified),
		)


class ApiContractModule(ScaffoldModule):
	"""OpenAPI contract stub for API projects."""

	id = "api-contract"
	display_name = "API Contract"
	order = 900

	def should_run(self, context: ProjectContext) -> bool:
		return context.is_api_project

	async def execute(self, context: ProjectContext) -> ModuleResult:
		document = {
			"openapi": "3.1.0",
			"info": {
				"title": context.project_name,
				"version": "0.1.0",
				"description": context.description or "",
			},
			"paths": {
				"/health": {
					"get": {
						"summary": "Health check",
						"responses": {"200": {"description": "Service is healthy"}},
					},
				},
			},
		}
		path = await context.write_file("docs/api/openapi.yaml", yaml.safe_dump(document, sort_keys=False))

		context.decisions.record(
			title="Define the API contract with OpenAPI 3.1",
			context="API consumers and implementers need a shared contract before implementation starts.",
			decision="Keep an OpenAPI 3.1 document at docs/api/openapi.yaml as the source of truth.",
			rationale="A contract-first stub enables parallel client work and contract tests.",
			category="interfaces",
			related_files=[path],
		)
		return ModuleResult(module_id=self.id, success=True, files_created=(path,))


class RunbookModule(ScaffoldModule):
	"""Operations runbook; runs last so it can reference everything else."""

	id = "runbook"
	display_name = "Operations Runbook"
	order = 1000

	async def execute(self, context: ProjectContext) -> ModuleResult:
		lines = [f"# {context.project_name} Runbook", "", "## Deploy", ""]
		if context.has_docker:
			lines.append(f"Build and run the container: `docker build -t {context.project_name} .`")
		else:
			lines.append(f"Merge to `{context.default_branch}`; the CI pipeline builds and publishes the release.")
		lines += ["", "## Rollback", "", "Redeploy the previous release artifact.", ""]

		# (workspace path, link from docs/, label)
		references = [
			("docs/ENVIRONMENTS.md", "ENVIRONMENTS.md", "Environments"),
			("docs/OBSERVABILITY.md", "OBSERVABILITY.md", "Monitoring"),
			("SECURITY.md", "../SECURITY.md", "Security"),
		]
		rows = [f"| {label} | [{link}]({link}) |" for path, link, label in references if context.has_file(path)]
		if rows:
			lines += ["## References", "", "| Topic | Document |", "|-------|----------|"] + rows + [""]
		path = await context.write_file("docs/RUNBOOK.md", "\n".join(lines))

		context.decisions.record(
			title="Ship an operations runbook with the repository",
			context="On-call engineers need deploy and rollback procedures next to the code.",
			decision="Maintain docs/RUNBOOK.md with deployment, rollback and references to the other operational docs.",
			rationale="Procedures versioned with the code stay in step with it.",
			category="deployment",
			related_files=[path],
		)
		return ModuleResult(module_id=self.id, success=True, files_created=(path,))


def default_modules() -> list[ScaffoldModule]:
	"""Built-in catalog in registration order."""
	return [
		SecurityBaselineModule(),
		SbomModule(),
		LicenseComplianceModule(),
		BranchingStrategyModule(),
		ObservabilityModule(),
		ReadmeModule(),
		EnvironmentConfigModule(),
		ApiContractModule(),
		RunbookModule(),
	]
