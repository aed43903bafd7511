"""Project configuration -- ``.unfold/config.toml`` and ``.env`` loading."""

from __future__ import annotations

import json
import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .models import UnfoldConfig

logger = logging.getLogger(__name__)

CONFIG_DIR = ".unfold"
CONFIG_FILE = "config.toml"


def config_path(root: Path) -> Path:
    return Path(root) / CONFIG_DIR / CONFIG_FILE


def load_config(root: Path) -> UnfoldConfig:
    """Read ``.unfold/config.toml`` under *root*; defaults when absent.

    Unknown keys are ignored with a warning.  An unreadable or invalid file
    falls back to defaults.
    """
    path = config_path(root)
    if not path.is_file():
        return UnfoldConfig()
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return UnfoldConfig()

    known = {k: v for k, v in data.items() if k in UnfoldConfig.model_fields}
    for key in data.keys() - known.keys():
        logger.warning("Unknown config key %r in %s", key, path)
    try:
        return UnfoldConfig(**known)
    except ValidationError as exc:
        logger.warning("Invalid config %s, using defaults: %s", path, exc)
        return UnfoldConfig()


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    # JSON string escaping is valid TOML basic-string escaping.
    return json.dumps(str(value))


def save_config(root: Path, cfg: UnfoldConfig) -> Path:
    """Write *cfg* as flat TOML, creating ``.unfold/`` if needed."""
    path = config_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [f"{key} = {_toml_value(value)}" for key, value in cfg.model_dump().items()]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def apply_overrides(cfg: UnfoldConfig, **overrides: Any) -> UnfoldConfig:
    """Return a copy with every non-``None`` override applied (CLI > file > default)."""
    updates = {k: v for k, v in overrides.items() if v is not None}
    if not updates:
        return cfg
    return UnfoldConfig(**{**cfg.model_dump(), **updates})


def coerce_value(key: str, value: str) -> Any:
    """Convert a CLI string into the type of field *key*.  Raises ValueError."""
    field_type = UnfoldConfig.model_fields[key].annotation
    if field_type is bool:
        lowered = value.lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"expected a boolean, got {value!r}")
    if field_type is int:
        return int(value)
    if field_type is float:
        return float(value)
    return value


def load_dotenv(start_dir: Path) -> None:
    """Load a .env file from *start_dir* (or parents) into os.environ.

    Only sets vars that are not already present in the environment.
    Handles KEY=VALUE lines, ignores comments and blank lines.
    """
    search = Path(start_dir).resolve()
    for d in [search, *search.parents]:
        candidate = d / ".env"
        if not candidate.is_file():
            continue
        try:
            text = candidate.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not read %s: %s", candidate, exc)
            return
        for line in text.splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip().removeprefix("export ").strip()
            value = value.strip().strip("\"'")
            if key and key not in os.environ:
                os.environ[key] = value
        return  # stop after the first .env found
