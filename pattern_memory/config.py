"""Runtime configuration.

Settings are resolved in this order, later sources winning:

1. Defaults on :class:`PatternConfig`
2. ``~/.pattern/config.json`` (home directory overridable with ``PATTERN_HOME``)
3. Environment variables
4. Explicit overrides passed to :func:`load_config` (CLI flags)
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

VALID_BACKENDS = ("sqlite", "memory")
DEFAULT_PROJECT_ID = "default"


def get_pattern_home() -> Path:
    """Directory holding config and the default database."""
    env_home = os.environ.get("PATTERN_HOME")
    if env_home:
        return Path(env_home).expanduser()
    return Path.home() / ".pattern"


def _env_flag(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if value is None:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PatternConfig:
    backend: str = "sqlite"
    db_path: Path = field(default_factory=lambda: get_pattern_home() / "memories.db")
    project_id: str = DEFAULT_PROJECT_ID
    agent_id: Optional[str] = None
    subagent_type: Optional[str] = None
    debug: bool = False
    content_scanning: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "db_path": str(self.db_path),
            "project_id": self.project_id,
            "agent_id": self.agent_id,
            "subagent_type": self.subagent_type,
            "debug": self.debug,
            "content_scanning": self.content_scanning,
        }


def _load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {path}: expected a JSON object")
        return {}
    known = {f.name for f in fields(PatternConfig)}
    return {key: value for key, value in data.items() if key in known}


def _load_env() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if os.environ.get("PATTERN_BACKEND"):
        values["backend"] = os.environ["PATTERN_BACKEND"]
    if os.environ.get("PATTERN_DB_PATH"):
        values["db_path"] = os.environ["PATTERN_DB_PATH"]
    if os.environ.get("LOOMINAL_PROJECT_ID"):
        values["project_id"] = os.environ["LOOMINAL_PROJECT_ID"]
    if os.environ.get("LOOMINAL_AGENT_ID"):
        values["agent_id"] = os.environ["LOOMINAL_AGENT_ID"]
    if os.environ.get("LOOMINAL_SUBAGENT_TYPE"):
        values["subagent_type"] = os.environ["LOOMINAL_SUBAGENT_TYPE"]
    debug = _env_flag("DEBUG")
    if debug is not None:
        values["debug"] = debug
    # Scanning is on unless explicitly disabled
    scanning = os.environ.get("PATTERN_CONTENT_SCANNING")
    if scanning is not None:
        values["content_scanning"] = scanning.strip().lower() != "false"
    return values


def load_config(config_path: Optional[Path] = None, **overrides: Any) -> PatternConfig:
    """Build a validated PatternConfig from file, environment and overrides."""
    values: Dict[str, Any] = {}
    values.update(_load_file(config_path or get_pattern_home() / "config.json"))
    values.update(_load_env())
    values.update({key: value for key, value in overrides.items() if value is not None})
    if "db_path" in values:
        values["db_path"] = Path(values["db_path"]).expanduser()
    config = PatternConfig(**values)
    validate_config(config)
    return config


def validate_config(config: PatternConfig) -> None:
    """Raise ValueError if the configuration cannot be used."""
    if config.backend not in VALID_BACKENDS:
        raise ValueError(f"backend must be one of {list(VALID_BACKENDS)}, got '{config.backend}'")
    if not isinstance(config.project_id, str) or not config.project_id.strip():
        raise ValueError("project_id cannot be empty")
    if "/" in config.project_id:
        raise ValueError(f"project_id must not contain '/': {config.project_id!r}")
    if config.agent_id is not None and (not config.agent_id.strip() or "/" in config.agent_id):
        raise ValueError(f"agent_id is invalid: {config.agent_id!r}")
    if not isinstance(config.debug, bool):
        raise ValueError("debug must be a boolean")
    if not isinstance(config.content_scanning, bool):
        raise ValueError("content_scanning must be a boolean")
