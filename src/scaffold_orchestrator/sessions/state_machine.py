"""
Session lifecycle transitions.

    intake -> planning -> awaiting_approval -> executing -> delivering -> completed
                 ^                |
                 +---- reject ----+

Any non-terminal state may move to failed. completed and failed are terminal.
"""

import logging
from typing import Optional

from ..errors import InvalidTransitionError
from ..plans.models import PolicySeverity, PolicyValidationResult
from .models import Session, SessionStatus

logger = logging.getLogger(__name__)

TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
	SessionStatus.INTAKE: frozenset({SessionStatus.PLANNING}),
	SessionStatus.PLANNING: frozenset({SessionStatus.AWAITING_APPROVAL}),
	SessionStatus.AWAITING_APPROVAL: frozenset({SessionStatus.EXECUTING, SessionStatus.PLANNING}),
	SessionStatus.EXECUTING: frozenset({SessionStatus.DELIVERING}),
	SessionStatus.DELIVERING: frozenset({SessionStatus.COMPLETED}),
	SessionStatus.COMPLETED: frozenset(),
	SessionStatus.FAILED: frozenset(),
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
	"""Whether current -> target is a legal move."""
	if current.is_terminal:
		return False
	if target == SessionStatus.FAILED:
		return True
	return target in TRANSITIONS[current]


def has_blocking_failures(results: list[PolicyValidationResult]) -> bool:
	"""True when any result failed with severity "error"."""
	return any(not r.passed and r.severity == PolicySeverity.ERROR for r in results)


def transition(
	session: Session,
	target: SessionStatus,
	reason: Optional[str] = None,
) -> SessionStatus:
	"""
	Move a session to a new status.

	Planning -> awaiting_approval additionally requires a plan with no
	blocking policy failures.

	Args:
		session: Session to mutate
		target: Desired status
		reason: Optional note for the log

	Returns:
		The previous status

	Raises:
		InvalidTransitionError: If the move is illegal. The session is not modified.
	"""
	current = session.status
	if not can_transition(current, target):
		raise InvalidTransitionError(current.value, target.value)

	if target == SessionStatus.AWAITING_APPROVAL:
		if session.plan is None:
			raise InvalidTransitionError(current.value, f"{target.value} (no plan)")
		if has_blocking_failures(session.plan.policy_results):
			raise InvalidTransitionError(current.value, f"{target.value} (blocking policy failures)")

	session.status = target
	session.touch()
	suffix = f": {reason}" if reason else ""
	logger.info(f"Session {session.id}: {current.value} -> {target.value}{suffix}")
	return current
