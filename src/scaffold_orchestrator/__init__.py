"""scaffold-orchestrator: conversational, policy-gated project scaffolding."""

__version__ = "0.1.0"
