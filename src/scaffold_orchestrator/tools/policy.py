"""Policy catalog tools."""

import json

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

from ..config import Config
from ..errors import PolicyLoadError
from ..plans.models import ProjectRequirements
from ..runtime import get_runtime


def register_policy_tools(mcp: FastMCP, config: Config) -> None:
	"""Register policy tools."""

	@mcp.tool()
	async def list_policies() -> str:
		"""List the active policy catalog."""
		runtime = await get_runtime(config)
		policies = runtime.policy_engine.get_policies()
		return json.dumps({
			"count": len(policies),
			"policies": [p.model_dump(mode="json") for p in policies],
		}, indent=2)

	@mcp.tool()
	async def check_requirements(requirements_json: str) -> str:
		"""
		Check project requirements against the requirement-phase policies.

		Args:
			requirements_json: JSON object with at least "project_name"
		"""
		runtime = await get_runtime(config)
		try:
			requirements = ProjectRequirements.model_validate_json(requirements_json)
		except ValidationError as e:
			return json.dumps({"success": False, "error": str(e)})

		results = runtime.policy_engine.validate_requirements(requirements)
		return json.dumps({
			"success": True,
			"passed": runtime.policy_engine.all_policies_passed(results),
			"results": [r.model_dump(mode="json") for r in results],
		}, indent=2)

	@mcp.tool()
	async def reload_policies(path: str = "") -> str:
		"""
		Replace the policy catalog from a JSON or YAML file.

		On any error the current catalog stays active.

		Args:
			path: Policy file (empty = the configured policy_file)
		"""
		runtime = await get_runtime(config)
		source = path or (str(config.policy_file) if config.policy_file else "")
		if not source:
			return json.dumps({"success": False, "error": "No policy file given or configured"})
		try:
			count = runtime.policy_engine.load_policies(source)
		except PolicyLoadError as e:
			return json.dumps({"success": False, "error": str(e)})
		return json.dumps({"success": True, "count": count, "path": source})
