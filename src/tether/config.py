"""User configuration loader with schema validation and environment overrides."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import ContextSettings, GitSettings, TetherConfig

GIT_CONFIG_FILE = "git.yaml"
CONTEXT_CONFIG_FILE = "context.yaml"

GIT_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Tether Git Integration Settings",
    "type": "object",
    "properties": {
        "commit": {
            "type": "object",
            "properties": {
                "auto": {"type": "boolean"},
                "auto_push": {"type": "boolean"},
                "require_review": {"type": "boolean"},
                "message_template": {"type": "string"},
                "protected_files": {
                    "type": "array",
                    "items": {"type": "string"},
                },
            },
        },
        "safety": {"type": "object"},
    },
}

CONTEXT_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Tether Context Assembly Settings",
    "type": "object",
    "properties": {
        "max_context_size": {"type": "string"},
        "assistant_command": {"type": "string"},
    },
}

GIT_CONFIG_TEMPLATE = """\
# Git Integration Settings
commit:
  auto: true
  auto_push: false
  require_review: false
  message_template: "{type}({scope}): {description} [tether]"
  # Added to the built-in denylist (.env, .env.*, *.key, *.pem, ...)
  protected_files: []
"""

CONTEXT_CONFIG_TEMPLATE = """\
# Context Assembly Settings
max_context_size: "100KB"
assistant_command: "claude"
"""

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def default_paths(environ: Mapping[str, str] | None = None) -> tuple[Path, Path]:
    """Resolve the knowledge base cache dir and the user config dir.

    Returns:
        Tuple of (cache_dir, config_dir)
    """
    env = os.environ if environ is None else environ
    home = Path(env.get("HOME") or Path.home())
    cache_root = Path(env["XDG_CACHE_HOME"]) if env.get("XDG_CACHE_HOME") else home / ".cache"
    config_root = (
        Path(env["XDG_CONFIG_HOME"]) if env.get("XDG_CONFIG_HOME") else home / ".config"
    )
    return cache_root / "tether", config_root / "tether"


def _load_yaml(path: Path, schema: dict[str, Any]) -> dict[str, Any]:
    """Read a YAML mapping and validate it against a JSON schema."""
    if not path.exists():
        return {}

    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        msg = f"Failed to parse {path.name}: {e}"
        raise ConfigError(msg, details={"path": str(path)}) from e
    except OSError as e:
        msg = f"Failed to read {path}: {e}"
        raise ConfigError(msg, details={"path": str(path)}) from e

    if data is None:
        return {}

    try:
        jsonschema.validate(data, schema)
    except jsonschema.ValidationError as e:
        msg = f"Schema validation failed for {path.name}: {e.message}"
        raise ConfigError(
            msg,
            details={"path": str(path), "location": list(e.absolute_path)},
        ) from e

    return data


def _env_flag(env: Mapping[str, str], name: str) -> bool | None:
    """Interpret a boolean environment override, ignoring unset or odd values."""
    raw = env.get(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    return None


def load_config(
    environ: Mapping[str, str] | None = None,
    cache_dir: Path | None = None,
    config_dir: Path | None = None,
) -> TetherConfig:
    """Build the configuration object for one CLI invocation.

    Args:
        environ: Environment mapping, defaults to ``os.environ``
        cache_dir: Override for the knowledge base location
        config_dir: Override for the user config directory

    Returns:
        Validated configuration

    Raises:
        ConfigError: If a config file is unreadable or invalid
    """
    env = os.environ if environ is None else environ
    default_cache, default_config = default_paths(env)
    cache_dir = cache_dir or default_cache
    config_dir = config_dir or default_config

    git_data = dict(_load_yaml(config_dir / GIT_CONFIG_FILE, GIT_SCHEMA).get("commit") or {})
    context_data = dict(_load_yaml(config_dir / CONTEXT_CONFIG_FILE, CONTEXT_SCHEMA))

    for key, var in (
        ("auto", "GIT_AUTO_COMMIT"),
        ("auto_push", "GIT_AUTO_PUSH"),
        ("require_review", "GIT_REQUIRE_REVIEW"),
    ):
        flag = _env_flag(env, var)
        if flag is not None:
            git_data[key] = flag

    if env.get("TETHER_ASSISTANT"):
        context_data["assistant_command"] = env["TETHER_ASSISTANT"]

    try:
        git_settings = GitSettings.model_validate(git_data)
    except ValidationError as e:
        msg = f"Invalid {GIT_CONFIG_FILE}: {e}"
        raise ConfigError(msg) from e

    try:
        context_settings = ContextSettings.model_validate(context_data)
    except ValidationError as e:
        msg = f"Invalid {CONTEXT_CONFIG_FILE}: {e}"
        raise ConfigError(msg) from e

    return TetherConfig(
        cache_dir=cache_dir,
        config_dir=config_dir,
        git=git_settings,
        context=context_settings,
    )


def write_default_config(config_dir: Path, force: bool = False) -> list[Path]:
    """Write commented default config files.

    Args:
        config_dir: Target directory
        force: Overwrite files that already exist

    Returns:
        Paths that were written
    """
    written: list[Path] = []
    config_dir.mkdir(parents=True, exist_ok=True)
    for name, content in (
        (GIT_CONFIG_FILE, GIT_CONFIG_TEMPLATE),
        (CONTEXT_CONFIG_FILE, CONTEXT_CONFIG_TEMPLATE),
    ):
        path = config_dir / name
        if path.exists() and not force:
            continue
        path.write_text(content, encoding="utf-8")
        written.append(path)
    return written
