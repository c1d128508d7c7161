"""CLI for scaffold-orchestrator: serve, web, doctor, scaffold and inspection commands."""

import argparse
import asyncio
import json
import platform
import sys
from importlib.metadata import version as pkg_version
from pathlib import Path

from dotenv import load_dotenv

from .config import Config, load_config
from .errors import PolicyLoadError, ScaffoldError
from .logging_config import setup_logging

CORE_DEPS = [
	"pydantic",
	"aiosqlite",
	"platformdirs",
	"python-dotenv",
	"pyyaml",
	"rich",
	"mcp",
	"starlette",
	"uvicorn",
]


def _config_and_logging(args: argparse.Namespace) -> Config:
	config = load_config()
	level = "DEBUG" if getattr(args, "verbose", False) else config.log_level
	setup_logging(level=level, log_dir=config.log_dir)
	return config


def cmd_serve(args: argparse.Namespace) -> None:
	"""Run the MCP server (stdio transport)."""
	_config_and_logging(args)
	from .server import mcp
	mcp.run()


def cmd_web(args: argparse.Namespace) -> None:
	"""Launch the web dashboard and JSON API."""
	config = _config_and_logging(args)
	from .web import run_web_dashboard
	run_web_dashboard(port=args.port, host=args.host, config=config, open_browser=not args.no_open)


def cmd_doctor(args: argparse.Namespace) -> None:
	"""Health check - verify installation and configuration."""
	print("scaffold-orchestrator doctor")
	print(f"{'=' * 40}")

	config = load_config()
	issues: list[str] = []

	py_ver = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
	print(f"  Python:       {py_ver}")
	print(f"  Platform:     {platform.system()} {platform.machine()}")
	print(f"  Config:       {config.config_dir}")
	print(f"  Data:         {config.data_dir}")
	print()

	print("  Core deps:")
	for dep in CORE_DEPS:
		try:
			dep_ver = pkg_version(dep)
			print(f"    {dep:22s} {dep_ver}")
		except Exception:
			print(f"    {dep:22s} NOT INSTALLED")
			issues.append(f"{dep} package not installed")
	print()

	issues.extend(config.validate())
	if config.policy_file is not None and config.policy_file.exists():
		from .policy.engine import PolicyEngine
		try:
			count = PolicyEngine().load_policies(config.policy_file)
			print(f"  Policies:     {count} loaded from {config.policy_file}")
		except PolicyLoadError as e:
			issues.append(str(e))

	print()
	if issues:
		print(f"  {len(issues)} issue(s) found:")
		for issue in issues:
			print(f"    - {issue}")
		sys.exit(1)
	else:
		print("  All checks passed.")


async def _load_sessions(config: Config):
	"""Read persisted sessions without starting a store."""
	from .sessions.persistence import SessionPersistence

	persistence = SessionPersistence(str(config.sessions_db_path))
	try:
		return await persistence.load_all_sessions()
	finally:
		await persistence.close()


def cmd_sessions(args: argparse.Namespace) -> None:
	"""List sessions or show one in detail."""
	from .visualizer import render_session_detail, render_session_list

	config = _config_and_logging(args)
	sessions = asyncio.run(_load_sessions(config))

	if args.session_id:
		session = next((s for s in sessions if s.id == args.session_id), None)
		if session is None:
			print(f"Session not found: {args.session_id}")
			sys.exit(1)
		render_session_detail(session)
		return

	if args.user:
		sessions = [s for s in sessions if s.user_id == args.user]
	sessions.sort(key=lambda s: s.last_activity_at, reverse=True)
	render_session_list(sessions[:args.limit] if args.limit > 0 else sessions)


def cmd_audit(args: argparse.Namespace) -> None:
	"""Show or export a session's audit log."""
	from .audit.store import AuditStore
	from .audit.trail import AuditTrail
	from .visualizer import render_audit_log

	config = _config_and_logging(args)
	trail = AuditTrail(store=AuditStore(str(config.audit_db_path)))

	if args.export:
		try:
			content = trail.export_logs(args.session_id, args.export)
		except ValueError as e:
			print(f"Error: {e}")
			sys.exit(1)
		if args.output:
			Path(args.output).write_text(content, encoding="utf-8")
			print(f"Wrote {args.output}")
		else:
			sys.stdout.write(content)
		return

	render_audit_log(args.session_id, trail.get_session_logs(args.session_id), limit=args.limit)


def cmd_policies(args: argparse.Namespace) -> None:
	"""Show the active policy catalog, optionally loading a policy file first."""
	from .policy.engine import PolicyEngine
	from .visualizer import render_policies

	config = _config_and_logging(args)
	engine = PolicyEngine()
	source = args.file or config.policy_file
	if source:
		try:
			count = engine.load_policies(source)
		except PolicyLoadError as e:
			print(f"Error: {e}")
			sys.exit(1)
		print(f"Loaded {count} policies from {source}")
	render_policies(engine.get_policies())


def cmd_modules(args: argparse.Namespace) -> None:
	"""Show the module catalog in run order."""
	from .modules.builtin import default_modules
	from .visualizer import render_modules

	config = _config_and_logging(args)
	render_modules(default_modules(), disabled=config.disabled_modules)


async def _scaffold(config: Config, requirements_text: str, user: str, approve: bool) -> int:
	from .runtime import Runtime
	from .sessions.models import SessionStatus
	from .visualizer import render_session_detail

	runtime = Runtime(config)
	await runtime.start()
	try:
		agent = runtime.agent
		session = agent.create_session(user or None)
		session = await agent.process_message(session.id, requirements_text)
		if session.status != SessionStatus.AWAITING_APPROVAL:
			print(session.messages[-1].content)
			return 1

		print(session.messages[-1].content)
		if not approve:
			answer = input("\nApprove this plan? [y/N] ").strip().lower()
			if answer not in ("y", "yes"):
				await agent.handle_approval(session.id, approved=False)
				print(f"Plan rejected. Session {session.id} is back in planning.")
				return 1

		session = await agent.handle_approval(session.id, approved=True)
		render_session_detail(session)
		return 0 if session.status == SessionStatus.COMPLETED else 1
	finally:
		await runtime.stop()


def cmd_scaffold(args: argparse.Namespace) -> None:
	"""Run one project through the whole workflow from a requirements JSON file."""
	config = _config_and_logging(args)
	try:
		text = Path(args.requirements).read_text(encoding="utf-8")
		json.loads(text)
	except (OSError, json.JSONDecodeError) as e:
		print(f"Cannot read requirements from {args.requirements}: {e}")
		sys.exit(1)

	try:
		code = asyncio.run(_scaffold(config, text, args.user, args.yes))
	except ScaffoldError as e:
		print(f"Error: {e}")
		sys.exit(1)
	sys.exit(code)


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="scaffold-orchestrator",
		description="Conversational, policy-checked repository scaffolding",
	)
	parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
	subparsers = parser.add_subparsers(dest="command")

	# serve
	serve_parser = subparsers.add_parser("serve", help="Run MCP server (stdio)")
	serve_parser.set_defaults(func=cmd_serve)

	# web
	web_parser = subparsers.add_parser("web", help="Run web dashboard and JSON API")
	web_parser.add_argument("--host", type=str, default="127.0.0.1", help="Bind address")
	web_parser.add_argument("--port", type=int, default=8420, help="Server port (default: 8420)")
	web_parser.add_argument("--no-open", action="store_true", help="Don't auto-open browser")
	web_parser.set_defaults(func=cmd_web)

	# doctor
	doctor_parser = subparsers.add_parser("doctor", help="Health check")
	doctor_parser.set_defaults(func=cmd_doctor)

	# scaffold
	scaffold_parser = subparsers.add_parser("scaffold", help="Scaffold a project from a requirements file")
	scaffold_parser.add_argument("requirements", help="JSON file with at least project_name")
	scaffold_parser.add_argument("--user", type=str, default="", help="User id for the session")
	scaffold_parser.add_argument("-y", "--yes", action="store_true", help="Approve the plan without asking")
	scaffold_parser.set_defaults(func=cmd_scaffold)

	# sessions
	sessions_parser = subparsers.add_parser("sessions", help="List sessions or show one")
	sessions_parser.add_argument("session_id", nargs="?", default=None, help="Session ID for detail view")
	sessions_parser.add_argument("--user", type=str, default=None, help="Only this user's sessions")
	sessions_parser.add_argument("--limit", type=int, default=50, help="Max results")
	sessions_parser.set_defaults(func=cmd_sessions)

	# audit
	audit_parser = subparsers.add_parser("audit", help="Show or export a session's audit log")
	audit_parser.add_argument("session_id", help="Session ID")
	audit_parser.add_argument("--export", choices=["json", "csv"], default=None, help="Export format")
	audit_parser.add_argument("--output", type=str, default=None, help="Write the export to a file")
	audit_parser.add_argument("--limit", type=int, default=0, help="Show only the newest N entries")
	audit_parser.set_defaults(func=cmd_audit)

	# policies
	policies_parser = subparsers.add_parser("policies", help="Show the policy catalog")
	policies_parser.add_argument("--file", type=str, default=None, help="Load and validate this policy file")
	policies_parser.set_defaults(func=cmd_policies)

	# modules
	modules_parser = subparsers.add_parser("modules", help="Show the module catalog")
	modules_parser.set_defaults(func=cmd_modules)

	return parser


def main() -> None:
	"""CLI entry point."""
	load_dotenv()
	parser = build_parser()
	args = parser.parse_args()

	if not args.command:
		parser.print_help()
		sys.exit(1)

	args.func(args)
