"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import platformdirs

APP_NAME = "scaffold-orchestrator"
APP_AUTHOR = "scaffold-orchestrator"


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	sessions_db_path: Path = field(init=False)
	audit_db_path: Path = field(init=False)
	workspace_dir: Path = field(init=False)
	log_dir: Path = field(init=False)

	# User-configurable
	policy_file: Optional[Path] = None
	flush_interval: float = 5.0
	disabled_modules: list[str] = field(default_factory=list)
	default_branch: str = "main"
	generate_ci_cd: bool = True
	scm_platform: str = "github"
	scm_owner: str = ""
	llm_provider: str = "local"
	llm_model: str = ""
	log_level: str = "INFO"

	def __post_init__(self) -> None:
		self.sessions_db_path = self.data_dir / "sessions.db"
		self.audit_db_path = self.data_dir / "audit.db"
		self.workspace_dir = self.data_dir / "workspaces"
		self.log_dir = self.data_dir / "logs"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.workspace_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)

	def validate(self) -> list[str]:
		"""Return a list of configuration problems (empty when valid)."""
		errors = []
		if self.flush_interval <= 0:
			errors.append(f"flush_interval must be positive, got {self.flush_interval}")
		if self.scm_platform not in ("github", "azure-devops"):
			errors.append(f"Unsupported scm_platform: {self.scm_platform}")
		if not self.default_branch:
			errors.append("default_branch must not be empty")
		if self.policy_file is not None and not self.policy_file.exists():
			errors.append(f"Policy file not found: {self.policy_file}")
		return errors


PATH_FIELDS = {"config_dir", "data_dir", "policy_file"}


def _parse_bool(val: str) -> bool:
	return val.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config: Config) -> Config:
	"""Apply SCAFFOLD_ORCHESTRATOR_* environment variable overrides."""
	env_map = {
		"SCAFFOLD_ORCHESTRATOR_CONFIG_DIR": "config_dir",
		"SCAFFOLD_ORCHESTRATOR_DATA_DIR": "data_dir",
		"SCAFFOLD_ORCHESTRATOR_POLICY_FILE": "policy_file",
		"SCAFFOLD_ORCHESTRATOR_FLUSH_INTERVAL": "flush_interval",
		"SCAFFOLD_ORCHESTRATOR_DISABLED_MODULES": "disabled_modules",
		"SCAFFOLD_ORCHESTRATOR_DEFAULT_BRANCH": "default_branch",
		"SCAFFOLD_ORCHESTRATOR_GENERATE_CI_CD": "generate_ci_cd",
		"SCAFFOLD_ORCHESTRATOR_SCM_PLATFORM": "scm_platform",
		"SCAFFOLD_ORCHESTRATOR_SCM_OWNER": "scm_owner",
		"SCAFFOLD_ORCHESTRATOR_LLM_PROVIDER": "llm_provider",
		"SCAFFOLD_ORCHESTRATOR_LLM_MODEL": "llm_model",
		"SCAFFOLD_ORCHESTRATOR_LOG_LEVEL": "log_level",
	}
	for env_key, attr in env_map.items():
		val = os.getenv(env_key)
		if not val:
			continue
		if attr in PATH_FIELDS:
			setattr(config, attr, Path(val))
		elif attr == "flush_interval":
			setattr(config, attr, float(val))
		elif attr == "generate_ci_cd":
			setattr(config, attr, _parse_bool(val))
		elif attr == "disabled_modules":
			setattr(config, attr, [m.strip() for m in val.split(",") if m.strip()])
		else:
			setattr(config, attr, val)
	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	toml_path = config.config_dir / "config.toml"
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	for key, val in data.items():
		if hasattr(config, key):
			if key in PATH_FIELDS:
				setattr(config, key, Path(os.path.expanduser(val)))
			else:
				setattr(config, key, val)

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	# Env first so an overridden config_dir is where config.toml is read from
	config = _apply_env_overrides(config)
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.ensure_dirs()
	return config


# Singleton
_config: Config | None = None


def get_config() -> Config:
	"""Get or create the global config instance."""
	global _config
	if _config is None:
		_config = load_config()
	return _config
