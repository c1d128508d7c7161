"""Policy module - Rule evaluation over requirements and plans."""

from .engine import (
	DEFAULT_POLICIES,
	PolicyCategory,
	PolicyDefinition,
	PolicyEngine,
	all_policies_passed,
	parse_policies,
)

__all__ = [
	"PolicyEngine",
	"PolicyDefinition",
	"PolicyCategory",
	"DEFAULT_POLICIES",
	"all_policies_passed",
	"parse_policies",
]
