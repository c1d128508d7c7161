"""Audit module - Append-only action log with JSON/CSV export."""

from .models import ActionResult, AuditLogEntry, ExecutionPhase
from .store import AuditStore
from .trail import AuditTrail, parse_csv_export, parse_json_export

__all__ = [
	"AuditLogEntry",
	"ActionResult",
	"ExecutionPhase",
	"AuditStore",
	"AuditTrail",
	"parse_json_export",
	"parse_csv_export",
]
