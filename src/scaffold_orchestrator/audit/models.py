"""Audit entry schema."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..plans.models import utc_now


class ExecutionPhase(str, Enum):
	"""Workflow phase an action belongs to."""
	INTAKE = "intake"
	PLANNING = "planning"
	EXECUTION = "execution"
	DELIVERY = "delivery"


class ActionResult(str, Enum):
	"""Outcome of an audited action."""
	SUCCESS = "success"
	FAILURE = "failure"
	SKIPPED = "skipped"
	PENDING = "pending"


class AuditLogEntry(BaseModel):
	"""An append-only record of one externally visible action."""
	id: str = Field(default_factory=lambda: str(uuid.uuid4()))
	timestamp: datetime = Field(default_factory=utc_now)
	session_id: str
	agent_id: Optional[str] = None
	action: str
	phase: ExecutionPhase
	result: ActionResult
	detail: str = ""
	duration_ms: Optional[float] = None
	parameters: dict[str, Any] = Field(default_factory=dict)

	model_config = {"frozen": True}
