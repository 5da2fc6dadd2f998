"""
Load and save the config / session state (YAML). Read at every invocation, written back
atomically by the CLI after a command succeeds.
"""
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError, PersistenceError

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "PPR_CONFIG_DIR"
CONFIG_FILENAME = "config.yaml"
ALL_TEMPLATES = "all"

_PATH_FIELDS = ("themes_path", "templates_path", "output_path", "last_output_path")


def get_config_dir() -> Path:
    """~/.config/ppr, or $PPR_CONFIG_DIR when set."""
    env = os.environ.get(CONFIG_DIR_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / ".config" / "ppr"


def get_config_path() -> Path:
    return get_config_dir() / CONFIG_FILENAME


def expand_path(value: str) -> str:
    """Expand a leading '~/' against the user home; other values are returned unchanged."""
    if value.startswith("~/"):
        return str(Path.home() / value[2:])
    return value


@dataclass
class SessionState:
    """Paths, defaults and the current selection. One record, passed explicitly to each flow."""

    themes_path: str = ""
    templates_path: str = ""
    output_path: str = ""
    default_theme: str = "nord"
    default_template: str = "geometric-simple.svg"
    default_width: int = 1920
    default_height: int = 1080
    auto_set_wallpaper: bool = False

    # Cycling selection
    current_theme: str = ""
    current_template: str = ""
    last_output_path: str = ""
    preferred_templates: list[str] = field(default_factory=lambda: [ALL_TEMPLATES])

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def default_state() -> SessionState:
    config_dir = get_config_dir()
    return SessionState(
        themes_path=str(config_dir / "themes"),
        templates_path=str(config_dir / "templates"),
        output_path=str(Path.home() / "Pictures" / "ppr"),
    )


def _coerce(name: str, value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(default, int):
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{name} must be an integer, got {value!r}") from e
    if isinstance(default, list):
        if isinstance(value, str):
            return [value]
        if not isinstance(value, list):
            raise ConfigError(f"{name} must be a list of strings")
        return [str(v) for v in value]
    return "" if value is None else str(value)


def load_state(config_path: Path | None = None) -> SessionState:
    """Load state from YAML. Missing file -> defaults; file values override defaults."""
    path = Path(config_path) if config_path is not None else get_config_path()
    state = default_state()
    if not path.exists():
        logger.debug("No config at %s, using defaults", path)
        return state
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError("failed to read config", path) from e
    except yaml.YAMLError as e:
        raise ConfigError("failed to decode config file", path) from e
    if not isinstance(data, dict):
        raise ConfigError("config must be a mapping", path)

    known = {f.name for f in fields(SessionState)}
    for key, value in data.items():
        if key not in known:
            logger.debug("Ignoring unknown config key %s", key)
            continue
        try:
            setattr(state, key, _coerce(key, value, getattr(state, key)))
        except ConfigError as e:
            raise ConfigError("invalid config", path) from e
    for key in _PATH_FIELDS:
        setattr(state, key, expand_path(getattr(state, key)))
    return state


def save_state(state: SessionState, config_path: Path | None = None) -> Path:
    """Write state atomically (temp file in the same directory, then rename)."""
    path = Path(config_path) if config_path is not None else get_config_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".config_", suffix=".yaml")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(state.to_dict(), f, sort_keys=False, default_flow_style=False)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise PersistenceError("failed to save config", path) from e
    return path


def ensure_directories(state: SessionState) -> None:
    for d in (state.themes_path, state.templates_path, state.output_path):
        try:
            Path(d).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError("failed to create directory", d) from e


def get_output_dir(state: SessionState, override: Path | str | None = None) -> Path:
    """Output root: explicit override, else the configured output path."""
    return Path(override or state.output_path).expanduser()
