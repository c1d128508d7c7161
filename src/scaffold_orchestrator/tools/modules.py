"""Module catalog tools."""

import json

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

from ..config import Config
from ..modules.base import ProjectContext
from ..plans.models import ProjectRequirements
from ..runtime import get_runtime


def register_module_tools(mcp: FastMCP, config: Config) -> None:
	"""Register module tools."""

	@mcp.tool()
	async def list_modules() -> str:
		"""List registered modules in run order, marking disabled ones."""
		runtime = await get_runtime(config)
		orchestrator = runtime.orchestrator
		modules = sorted(orchestrator.modules, key=lambda m: m.order)
		return json.dumps({
			"count": len(modules),
			"modules": [
				{
					"id": m.id,
					"display_name": m.display_name,
					"order": m.order,
					"disabled": m.id.lower() in orchestrator.disabled_modules,
				}
				for m in modules
			],
		}, indent=2)

	@mcp.tool()
	async def preview_modules(requirements_json: str) -> str:
		"""
		Show which modules would run for a project, in order. Nothing is written.

		Args:
			requirements_json: JSON object with at least "project_name"
		"""
		runtime = await get_runtime(config)
		try:
			requirements = ProjectRequirements.model_validate_json(requirements_json)
		except ValidationError as e:
			return json.dumps({"success": False, "error": str(e)})

		context = ProjectContext.from_requirements(
			requirements,
			config.workspace_dir / requirements.project_name,
			runtime.agent.filesystem,
		)
		selected = runtime.orchestrator.get_applicable_modules(context)
		return json.dumps({"success": True, "modules": [m.id for m in selected]})
