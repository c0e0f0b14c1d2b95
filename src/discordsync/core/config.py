"""
Configuration for dsync.

Sources, lowest precedence first:
  1) built-in defaults (the dataclass defaults below)
  2) the first YAML file found among ./discordsync.yml,
     ~/.config/discordsync/config.yml, /etc/discordsync/config.yml
  3) environment: DSYNC_<SECTION>__<KEY>, e.g. DSYNC_DISCORD__TOKEN,
     after loading a .env file if one is found (real variables win)
  4) CLI flags

String values may reference other variables as ${NAME}.
"""

from __future__ import annotations

import os
import re
import uuid
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import find_dotenv, load_dotenv

from .discord_client import DEFAULT_BASE_URL


@dataclass
class AppSection:
    run_id: Optional[str] = None
    dry_run: bool = False


@dataclass
class DiscordSection:
    base_url: str = DEFAULT_BASE_URL
    token: str = ""          # secret, never logged in clear text
    token_type: str = "Bot"
    verify_tls: bool = True
    timeout_sec: int = 30
    retries: int = 3


@dataclass
class LoggingSection:
    base_dir: str = "logs"
    console_level: str = "INFO"
    file_level: str = "DEBUG"


@dataclass
class InputsSection:
    declarations_path: str = "./resources.yml"
    state_path: str = "./discordsync.state.json"


@dataclass
class AppConfig:
    app: AppSection
    discord: DiscordSection
    logging: LoggingSection
    inputs: InputsSection

    @property
    def run_id(self) -> str:
        """Identifier of this run, generated on first access unless configured."""
        if not self.app.run_id:
            self.app.run_id = uuid.uuid4().hex[:12]
        return self.app.run_id


_SECTIONS = {
    "app": AppSection,
    "discord": DiscordSection,
    "logging": LoggingSection,
    "inputs": InputsSection,
}

_DEFAULT_FILES: Tuple[str, ...] = (
    "./discordsync.yml",
    os.path.expanduser("~/.config/discordsync/config.yml"),
    "/etc/discordsync/config.yml",
)

_VAR_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_TRUE = {"1", "true", "yes", "y", "on"}


def _read_yaml_file(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Top-level YAML must be a mapping: {path}")
    return data


def _file_layer(files: Tuple[str, ...]) -> Dict[str, Any]:
    for p in files:
        if os.path.exists(p):
            return _read_yaml_file(p)
    return {}


def _env_layer(prefix: str) -> Dict[str, Dict[str, Any]]:
    """Collect DSYNC_<SECTION>__<KEY> variables for known sections and keys only."""
    out: Dict[str, Dict[str, Any]] = {}
    for name, cls in _SECTIONS.items():
        for f in fields(cls):
            key = f"{prefix}{name.upper()}__{f.name.upper()}"
            if key in os.environ:
                out.setdefault(name, {})[f.name] = os.environ[key]
    return out


def _expand(value: Any) -> Any:
    if isinstance(value, str):
        return _VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    return value


def _coerce(section: str, key: str, type_name: str, value: Any) -> Any:
    # field types are strings here (postponed annotations)
    if value is None or type_name not in ("bool", "int"):
        return value
    if type_name == "bool":
        return value if isinstance(value, bool) else str(value).strip().lower() in _TRUE
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{section}.{key} must be an integer, got {value!r}") from None


def _build_section(name: str, layers: Tuple[Dict[str, Any], ...]) -> Any:
    cls = _SECTIONS[name]
    types = {f.name: f.type for f in fields(cls)}
    values = asdict(cls())
    for layer in layers:
        section = layer.get(name) or {}
        if not isinstance(section, dict):
            raise ValueError(f"Configuration section '{name}' must be a mapping")
        for key, value in section.items():
            if key not in types:
                raise ValueError(f"Unknown configuration key: {name}.{key}")
            values[key] = value
    return cls(**{k: _coerce(name, k, types[k], _expand(v)) for k, v in values.items()})


def load_config(
    cli_overrides: Optional[Dict[str, Any]] = None,
    files: Tuple[str, ...] = _DEFAULT_FILES,
    env_prefix: str = "DSYNC_",
    *,
    dotenv: bool = True,
) -> AppConfig:
    """
    Build the AppConfig for one dsync invocation.

    Raises ValueError when the token or base URL is missing; dry runs read
    from Discord too, so neither is optional.
    """
    if dotenv:
        env_path = find_dotenv(usecwd=True)
        if env_path:
            load_dotenv(env_path, override=False)

    file_cfg = _file_layer(files)
    unknown = sorted(set(file_cfg) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"Unknown configuration section(s): {', '.join(unknown)}")

    layers = (file_cfg, _env_layer(env_prefix), cli_overrides or {})
    cfg = AppConfig(**{name: _build_section(name, layers) for name in _SECTIONS})

    missing = [k for k, v in (("discord.base_url", cfg.discord.base_url), ("discord.token", cfg.discord.token)) if not v]
    if missing:
        raise ValueError("Missing required configuration: " + ", ".join(missing))
    return cfg
