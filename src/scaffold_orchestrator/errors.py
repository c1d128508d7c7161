"""Exception types shared across scaffold-orchestrator."""


class ScaffoldError(Exception):
	"""Base class for scaffold-orchestrator errors."""
	pass


class InvalidTransitionError(ScaffoldError):
	"""Raised when a session is asked to move to a state it cannot reach."""

	def __init__(self, current: str, target: str):
		self.current = current
		self.target = target
		super().__init__(f"Invalid transition: {current} -> {target}")


class SessionNotFoundError(ScaffoldError):
	"""Raised when a session is not found."""
	pass


class PlanNotFoundError(ScaffoldError):
	"""Raised when an operation needs a plan the session does not have."""
	pass


class PolicyLoadError(ScaffoldError):
	"""Raised when a policy catalog cannot be read or validated."""
	pass


class StepExecutionError(ScaffoldError):
	"""Raised when a plan step fails during execution."""

	def __init__(self, step_number: int, operation: str, message: str):
		self.step_number = step_number
		self.operation = operation
		super().__init__(f"Step {step_number} ({operation}) failed: {message}")


class TransientLLMError(ScaffoldError):
	"""Raised by LLM clients for failures worth retrying (timeouts, rate limits)."""
	pass
