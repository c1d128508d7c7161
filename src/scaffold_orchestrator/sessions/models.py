"""
Session Models - Pydantic schemas for conversational scaffolding sessions.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..plans.models import ExecutionPlan, utc_now


class SessionStatus(str, Enum):
	"""Lifecycle state of a session."""
	INTAKE = "intake"
	PLANNING = "planning"
	AWAITING_APPROVAL = "awaiting_approval"
	EXECUTING = "executing"
	DELIVERING = "delivering"
	COMPLETED = "completed"
	FAILED = "failed"

	@property
	def is_terminal(self) -> bool:
		return self in (SessionStatus.COMPLETED, SessionStatus.FAILED)


class MessageRole(str, Enum):
	USER = "user"
	ASSISTANT = "assistant"


class ChatMessage(BaseModel):
	"""A single message in a session conversation."""
	id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
	role: MessageRole
	content: str
	timestamp: datetime = Field(default_factory=utc_now)
	phase: Optional[str] = Field(default=None, description="Session status when the message was added")


class DeliveryResult(BaseModel):
	"""What the caller receives once a project has been delivered."""
	success: bool
	platform: str = ""
	repository_url: Optional[str] = None
	clone_url: Optional[str] = None
	default_branch: str = "main"
	pipeline_url: Optional[str] = None
	build_status: Optional[str] = None
	vscode_link: Optional[str] = None
	summary_card: str = ""
	error_message: Optional[str] = None


class Session(BaseModel):
	"""A conversational scaffolding session."""
	id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
	user_id: Optional[str] = None
	project_name: Optional[str] = None
	status: SessionStatus = Field(default=SessionStatus.INTAKE)
	created_at: datetime = Field(default_factory=utc_now)
	last_activity_at: datetime = Field(default_factory=utc_now)
	messages: list[ChatMessage] = Field(default_factory=list)
	plan: Optional[ExecutionPlan] = None
	delivery_result: Optional[DeliveryResult] = None

	def add_message(self, role: MessageRole, content: str) -> ChatMessage:
		"""Append a message and bump last activity."""
		message = ChatMessage(role=role, content=content, phase=self.status.value)
		self.messages.append(message)
		self.touch()
		return message

	def touch(self) -> None:
		self.last_activity_at = utc_now()

	def history(self) -> list[tuple[str, str]]:
		"""Ordered (role, content) pairs for the LLM client."""
		return [(m.role.value, m.content) for m in self.messages]
