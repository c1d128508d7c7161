"""Visualizer package - Rich terminal views for sessions, audit logs and catalogs."""

from .audit import render_audit_log
from .catalog import render_modules, render_policies
from .sessions import render_session_detail, render_session_list

__all__ = [
	"render_audit_log",
	"render_modules",
	"render_policies",
	"render_session_detail",
	"render_session_list",
]
