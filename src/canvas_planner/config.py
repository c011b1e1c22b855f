"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import platformdirs

APP_NAME = "canvas-planner"
APP_AUTHOR = "canvas-planner"


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	db_path: Path = field(init=False)
	audit_db_path: Path = field(init=False)
	backup_dir: Path = field(init=False)
	log_dir: Path = field(init=False)

	# Tunables
	debounce_ms: int = 3000
	backup_cap: int = 50
	event_retention: int = 500
	slot_count: int = 5
	default_title: str = "Working Canvas"

	def __post_init__(self) -> None:
		self.db_path = self.data_dir / "canvas.db"
		self.audit_db_path = self.data_dir / "audit.db"
		self.backup_dir = self.data_dir / "backups"
		self.log_dir = self.data_dir / "logs"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.backup_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)


PATH_FIELDS = {"config_dir", "data_dir"}
INT_FIELDS = {"debounce_ms", "backup_cap", "event_retention", "slot_count"}


def _coerce(key: str, val):
	if key in PATH_FIELDS:
		return Path(os.path.expanduser(str(val)))
	if key in INT_FIELDS:
		return int(val)
	return val


def _apply_env_overrides(config: Config) -> Config:
	"""Apply CANVAS_PLANNER_* environment variable overrides."""
	env_map = {
		"CANVAS_PLANNER_CONFIG_DIR": "config_dir",
		"CANVAS_PLANNER_DATA_DIR": "data_dir",
		"CANVAS_PLANNER_DEBOUNCE_MS": "debounce_ms",
		"CANVAS_PLANNER_BACKUP_CAP": "backup_cap",
		"CANVAS_PLANNER_EVENT_RETENTION": "event_retention",
		"CANVAS_PLANNER_SLOT_COUNT": "slot_count",
		"CANVAS_PLANNER_DEFAULT_TITLE": "default_title",
	}
	for env_key, attr in env_map.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, _coerce(attr, val))
	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	# CANVAS_PLANNER_CONFIG_DIR also decides where config.toml is looked up
	config_dir = os.getenv("CANVAS_PLANNER_CONFIG_DIR") or config.config_dir
	toml_path = Path(os.path.expanduser(str(config_dir))) / "config.toml"
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	for key, val in data.items():
		if hasattr(config, key):
			setattr(config, key, _coerce(key, val))

	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.ensure_dirs()
	return config


# Singleton for the CLI and web entry points
_config: Config | None = None


def get_config() -> Config:
	"""Get or create the global config instance."""
	global _config
	if _config is None:
		_config = load_config()
	return _config
