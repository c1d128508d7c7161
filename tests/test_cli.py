"""Tests for the CLI module."""

import argparse
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from scaffold_orchestrator.cli import (
	build_parser,
	cmd_audit,
	cmd_doctor,
	cmd_modules,
	cmd_policies,
	cmd_scaffold,
	cmd_sessions,
	main,
)

from .helpers import make_config


@pytest.fixture
def config(tmp_path: Path):
	config = make_config(tmp_path)
	with patch("scaffold_orchestrator.cli.load_config", return_value=config), \
		patch("scaffold_orchestrator.cli.setup_logging"):
		yield config


def write_requirements(tmp_path: Path, **values) -> Path:
	path = tmp_path / "requirements.json"
	path.write_text(json.dumps({"project_name": "my-service", "language": "python", **values}))
	return path


def scaffold(tmp_path: Path, **values) -> int:
	args = argparse.Namespace(requirements=str(write_requirements(tmp_path, **values)), user="alice", yes=True)
	with pytest.raises(SystemExit) as exc:
		cmd_scaffold(args)
	return exc.value.code


def test_main_without_command_prints_help(capsys):
	with patch("sys.argv", ["scaffold-orchestrator"]):
		with pytest.raises(SystemExit) as exc:
			main()
	assert exc.value.code == 1
	assert "scaffold-orchestrator" in capsys.readouterr().out


@pytest.mark.parametrize("command", ["serve", "web", "doctor", "scaffold", "sessions", "audit", "policies", "modules"])
def test_subcommand_help(command):
	"""Every subcommand should be registered."""
	with patch("sys.argv", ["scaffold-orchestrator", command, "--help"]):
		with pytest.raises(SystemExit) as exc:
			main()
	assert exc.value.code == 0


def test_parser_defaults():
	args = build_parser().parse_args(["web"])
	assert args.port == 8420
	assert args.host == "127.0.0.1"
	assert not args.no_open

	args = build_parser().parse_args(["audit", "abc", "--export", "csv"])
	assert args.session_id == "abc"
	assert args.export == "csv"


class TestScaffold:
	"""The scaffold command runs the whole workflow."""

	def test_scaffold_completes(self, config, tmp_path: Path, capsys):
		assert scaffold(tmp_path) == 0
		out = capsys.readouterr().out
		assert "# Plan for my-service" in out
		assert "Repository ready!" in out
		assert (config.data_dir / "repositories" / "local" / "my-service" / "main" / "README.md").exists()

	def test_policy_violation_exits_nonzero(self, config, tmp_path: Path, capsys):
		assert scaffold(tmp_path, project_name="Not Valid") == 1
		assert "Project Naming Convention" in capsys.readouterr().out

	def test_declined_approval(self, config, tmp_path: Path, capsys):
		args = argparse.Namespace(requirements=str(write_requirements(tmp_path)), user="", yes=False)
		with patch("builtins.input", return_value="n"), pytest.raises(SystemExit) as exc:
			cmd_scaffold(args)
		assert exc.value.code == 1
		assert "back in planning" in capsys.readouterr().out

	def test_unreadable_requirements(self, config, tmp_path: Path, capsys):
		args = argparse.Namespace(requirements=str(tmp_path / "missing.json"), user="", yes=True)
		with pytest.raises(SystemExit) as exc:
			cmd_scaffold(args)
		assert exc.value.code == 1
		assert "Cannot read requirements" in capsys.readouterr().out


class TestInspection:
	"""Read-only commands."""

	def test_sessions_list_and_detail(self, config, tmp_path: Path, capsys):
		scaffold(tmp_path)
		capsys.readouterr()

		cmd_sessions(argparse.Namespace(session_id=None, user=None, limit=50))
		out = capsys.readouterr().out
		assert "Sessions (1)" in out
		assert "my-service" in out

		cmd_sessions(argparse.Namespace(session_id=None, user="bob", limit=50))
		assert "No sessions yet." in capsys.readouterr().out

	def test_sessions_unknown_id(self, config, capsys):
		with pytest.raises(SystemExit):
			cmd_sessions(argparse.Namespace(session_id="missing", user=None, limit=50))
		assert "Session not found: missing" in capsys.readouterr().out

	def test_audit_export_to_file(self, config, tmp_path: Path):
		from scaffold_orchestrator.audit.store import AuditStore

		scaffold(tmp_path)
		session_id = AuditStore(str(config.audit_db_path)).session_ids()[0]
		output = tmp_path / "audit.json"

		cmd_audit(argparse.Namespace(session_id=session_id, export="json", output=str(output), limit=0))
		entries = json.loads(output.read_text())
		assert entries[0]["action"] == "session.created"
		assert entries[-1]["action"] == "session.transition"

	def test_policies_bad_file(self, config, tmp_path: Path, capsys):
		path = tmp_path / "policies.json"
		path.write_text("{not json")
		with pytest.raises(SystemExit) as exc:
			cmd_policies(argparse.Namespace(file=str(path)))
		assert exc.value.code == 1
		assert "Malformed policy file" in capsys.readouterr().out

	def test_policies_default_catalog(self, config, capsys):
		cmd_policies(argparse.Namespace(file=None))
		assert "naming-convention" in capsys.readouterr().out

	def test_modules_marks_disabled(self, config, capsys):
		config.disabled_modules = ["README"]
		cmd_modules(argparse.Namespace())
		out = capsys.readouterr().out
		assert "security-baseline" in out
		assert "readme" in out


class TestDoctor:
	"""Health check."""

	def test_all_checks_pass(self, config, capsys):
		with patch("scaffold_orchestrator.cli.pkg_version", return_value="1.0"):
			cmd_doctor(argparse.Namespace())
		assert "All checks passed." in capsys.readouterr().out

	def test_reports_issues(self, config, capsys):
		config.scm_platform = "gitlab"
		with patch("scaffold_orchestrator.cli.pkg_version", return_value="1.0"):
			with pytest.raises(SystemExit) as exc:
				cmd_doctor(argparse.Namespace())
		assert exc.value.code == 1
		assert "Unsupported scm_platform: gitlab" in capsys.readouterr().out
