"""Modules - Pluggable generation units and their orchestrator."""

from .base import ModuleResult, ProjectContext, ScaffoldModule
from .builtin import default_modules
from .orchestrator import ModuleOrchestrator

__all__ = [
	"ScaffoldModule",
	"ModuleResult",
	"ProjectContext",
	"ModuleOrchestrator",
	"default_modules",
]
