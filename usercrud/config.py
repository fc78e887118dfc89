"""Configuration management for the user service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

from .database import resolve_database_path
from .security import parse_tokens

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _parse_flag(value: object, name: str) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")


def _parse_port(value: object) -> int:
    try:
        port = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid port: {value!r}") from exc
    if not 1 <= port <= 65535:
        raise ValueError(f"Port must be between 1 and 65535, got {port}")
    return port


def _parse_log_level(value: object) -> str:
    level = str(value).strip().upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level: {value!r}")
    return level


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the HTTP service."""

    database_path: Path = field(default_factory=lambda: resolve_database_path(None))
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    api_tokens: Tuple[str, ...] = ()
    strict_not_found: bool = False

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""
        unknown = set(data.keys()) - {
            "database_path",
            "host",
            "port",
            "log_level",
            "api_tokens",
            "strict_not_found",
        }
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        settings = Settings()
        raw_db_path = data.get("database_path")
        if raw_db_path:
            candidate = Path(str(raw_db_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            settings = replace(settings, database_path=candidate.resolve(strict=False))

        tokens = data.get("api_tokens") or ()
        if isinstance(tokens, str):
            tokens = parse_tokens(tokens)
        elif not isinstance(tokens, (list, tuple)):
            raise ValueError("api_tokens must be a list of strings")

        return replace(
            settings,
            host=str(data.get("host", settings.host)),
            port=_parse_port(data.get("port", settings.port)),
            log_level=_parse_log_level(data.get("log_level", settings.log_level)),
            api_tokens=tuple(str(token).strip() for token in tokens if str(token).strip()),
            strict_not_found=_parse_flag(data.get("strict_not_found", False), "strict_not_found"),
        )


def _apply_environment(settings: Settings, environ: Mapping[str, str]) -> Settings:
    overrides: Dict[str, object] = {}
    if environ.get("USERCRUD_DB_PATH"):
        overrides["database_path"] = resolve_database_path(environ["USERCRUD_DB_PATH"])
    if environ.get("USERCRUD_HOST"):
        overrides["host"] = environ["USERCRUD_HOST"].strip()
    if environ.get("USERCRUD_PORT"):
        overrides["port"] = _parse_port(environ["USERCRUD_PORT"])
    if environ.get("USERCRUD_LOG_LEVEL"):
        overrides["log_level"] = _parse_log_level(environ["USERCRUD_LOG_LEVEL"])
    if environ.get("USERCRUD_API_TOKENS"):
        overrides["api_tokens"] = tuple(parse_tokens(environ["USERCRUD_API_TOKENS"]))
    if environ.get("USERCRUD_STRICT_NOT_FOUND"):
        overrides["strict_not_found"] = _parse_flag(
            environ["USERCRUD_STRICT_NOT_FOUND"], "USERCRUD_STRICT_NOT_FOUND"
        )
    return replace(settings, **overrides) if overrides else settings


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "usercrud.yaml").resolve(strict=False)
    return candidate


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from an optional YAML file followed by environment overrides.

    An explicitly supplied ``config_path`` must exist. The default location is
    only read when present.
    """
    env = os.environ if environ is None else environ

    explicit = config_path is not None or bool(env.get("USERCRUD_CONFIG"))
    path = config_path if config_path is not None else resolve_config_path(env.get("USERCRUD_CONFIG"))

    settings = Settings()
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, dict):
            raise ValueError("Configuration file must contain a mapping")
        section = raw.get("service", raw)
        if not isinstance(section, dict):
            raise ValueError("The 'service' section must be a mapping")
        settings = Settings.from_dict(section, base_path=path.parent)
    elif explicit:
        raise ValueError(f"Configuration file not found: {path}")

    return _apply_environment(settings, env)


__all__ = ["Settings", "load_settings", "resolve_config_path"]
