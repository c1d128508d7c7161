"""Sessions module - Lifecycle state machine and write-behind session storage."""

from .models import ChatMessage, DeliveryResult, MessageRole, Session, SessionStatus
from .persistence import SessionPersistence
from .state_machine import can_transition, transition
from .store import SessionStore

__all__ = [
	"Session",
	"SessionStatus",
	"ChatMessage",
	"MessageRole",
	"DeliveryResult",
	"SessionPersistence",
	"SessionStore",
	"can_transition",
	"transition",
]
