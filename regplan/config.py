"""Configuration loading for regplan (.regplan.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .registry import DEFAULT_INJECTABLE_ATTRIBUTE
from .rules import RuleSet

CONFIG_FILENAME = ".regplan.yml"
MANIFEST_PATH_ENV = "REGPLAN_PROCESSED_ELEMENTS_PATH"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ProviderConfig:
    """Entry-point rule providers to load in addition to inline rules."""

    enabled: Optional[List[str]] = None


@dataclass
class PlannerConfig:
    """Represents the settings defined in .regplan.yml."""

    root: Path
    classpath: List[Path] = field(default_factory=list)
    rules: RuleSet = field(default_factory=RuleSet)
    injectable_attribute: str = DEFAULT_INJECTABLE_ATTRIBUTE
    exclude_paths: List[str] = field(default_factory=list)
    workers: Optional[int] = None
    manifest_path: Optional[Path] = None
    providers: ProviderConfig = field(default_factory=ProviderConfig)


def manifest_path_from_env(
    environ: Mapping[str, str] | None = None, *, base: Path | None = None
) -> Optional[Path]:
    """Return the process-wide manifest path option, if one is set."""
    env = os.environ if environ is None else environ
    value = env.get(MANIFEST_PATH_ENV, "").strip()
    if not value:
        return None
    path = Path(value).expanduser()
    if base is not None and not path.is_absolute():
        path = base / path
    return path


def load_config(config_path: Path, environ: Mapping[str, str] | None = None) -> PlannerConfig:
    """Load configuration from disk, applying the manifest path override."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    rules_data = _as_dict(data.get("rules"))
    rules = RuleSet.from_names(
        explicit_roots=_as_str_list(rules_data.get("explicit_roots")),
        supertypes=_as_str_list(rules_data.get("supertypes")),
        attributes=_as_str_list(rules_data.get("attributes")),
        source=CONFIG_FILENAME,
    )

    classpath = [root / entry for entry in _as_str_list(data.get("classpath"))] or [root]

    workers = _as_int(data.get("workers"))
    if workers is not None and workers < 1:
        raise ConfigError("workers must be a positive integer")

    manifest_path = manifest_path_from_env(environ, base=root)
    if manifest_path is None:
        manifest_value = _as_str(data.get("manifest_path"))
        manifest_path = root / manifest_value if manifest_value else None

    providers = ProviderConfig()
    provider_data = data.get("providers")
    if isinstance(provider_data, Mapping):
        if "enabled" in provider_data:
            providers.enabled = _as_str_list(provider_data.get("enabled"))
    elif provider_data is not None:
        providers.enabled = _as_str_list(provider_data)

    return PlannerConfig(
        root=root,
        classpath=classpath,
        rules=rules,
        injectable_attribute=_as_str(data.get("injectable_attribute")) or DEFAULT_INJECTABLE_ATTRIBUTE,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
        workers=workers,
        manifest_path=manifest_path,
        providers=providers,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = Path(config_path).expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}

    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "MANIFEST_PATH_ENV",
    "PlannerConfig",
    "ProviderConfig",
    "load_config",
    "manifest_path_from_env",
]
