"""Plans module - Requirements, execution plans and plan construction."""

from .models import (
	ExecutionPlan,
	ExecutionStep,
	PipelineDefinition,
	PlannedFile,
	PolicySeverity,
	PolicyValidationResult,
	ProjectRequirements,
	RepositoryDetails,
	TemplateSelection,
)

__all__ = [
	"ExecutionPlan",
	"ExecutionStep",
	"PipelineDefinition",
	"PlannedFile",
	"PolicySeverity",
	"PolicyValidationResult",
	"ProjectRequirements",
	"RepositoryDetails",
	"TemplateSelection",
]
