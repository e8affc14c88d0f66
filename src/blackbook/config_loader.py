"""
Layered configuration loader for blackbook.

Loads ``config.yaml`` from the config directory (or an explicit path),
deep-merges ``config.local.yaml`` over it, interpolates env vars, supports
YAML ``!include``, and validates the result against ``BlackbookConfig``.

Errors never raise: they are collected as ``ConfigLoadError`` records and
defaults are returned (degraded mode).  Use ``load_config_strict`` when a
failure should abort.

Usage:
    from blackbook.config_loader import load_config

    result = load_config()
    if result.errors:
        ...
    config = result.config
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config_merge import deep_merge
from .config_schema import BlackbookConfig
from .file_handler import file_lock
from .paths import get_config_dir

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"
LOCAL_CONFIG_FILENAME = "config.local.yaml"


@dataclass
class ConfigLoadError:
    """One problem found while loading configuration."""

    source: str
    message: str
    path: list[str] | None = None

    def __str__(self) -> str:
        if self.path:
            return f"{self.source}: {'.'.join(self.path)}: {self.message}"
        return f"{self.source}: {self.message}"


@dataclass
class LoadConfigResult:
    config: BlackbookConfig
    config_path: Path
    errors: list[ConfigLoadError] = field(default_factory=list)


# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` patterns with env values.

    * ``${VAR}`` is replaced with ``os.environ.get(VAR, "")``.
    * ``${VAR:-default}`` uses *default* when VAR is unset or empty.
    * Literal ``${`` with no closing ``}`` is left untouched.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        default = match.group(2)
        return default if default is not None else ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    """Walk a nested dict/list and interpolate env vars in all strings."""
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# 2. YAML !include support (dedicated SafeLoader subclass)
# ---------------------------------------------------------------------------


class ConfigYamlLoader(yaml.SafeLoader):
    """YAML SafeLoader subclass with ``!include`` support.

    Uses a dedicated subclass so the global ``yaml.SafeLoader`` is never
    modified.  Tracks an *include stack* per-load to detect circular includes.
    """


def _include_constructor(
    loader: ConfigYamlLoader, node: yaml.ScalarNode
) -> Any:
    """Handle ``!include path/to/file.yaml`` directives."""
    include_path_str: str = loader.construct_scalar(node)

    if os.path.isabs(include_path_str):
        include_path = Path(include_path_str)
    else:
        include_path = Path(loader.name).resolve().parent / include_path_str
    include_path = include_path.resolve()

    include_stack: list[Path] = getattr(loader, "_include_stack", [])
    if include_path in include_stack:
        chain = (
            " -> ".join(str(p) for p in include_stack)
            + f" -> {include_path}"
        )
        raise ValueError(f"Circular include detected: {chain}")

    if not include_path.exists():
        raise FileNotFoundError(
            f"Include file not found: {include_path} "
            f"(referenced from {Path(loader.name).resolve()})"
        )

    return _load_yaml_with_includes(
        include_path, _include_stack=include_stack + [include_path]
    )


ConfigYamlLoader.add_constructor("!include", _include_constructor)


def _load_yaml_with_includes(
    path: Path,
    *,
    _include_stack: list[Path] | None = None,
) -> Any:
    """Load a YAML file using ``ConfigYamlLoader`` (with ``!include``)."""
    path = path.resolve()
    if _include_stack is None:
        _include_stack = [path]

    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigYamlLoader(fh)
        loader._include_stack = _include_stack  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


def _parse_yaml_file(
    path: Path,
) -> tuple[dict[str, Any], list[ConfigLoadError]]:
    """Parse one YAML document into a mapping, collecting errors."""
    try:
        data = _load_yaml_with_includes(path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.error("Failed to load config file %s: %s", path, exc)
        return {}, [ConfigLoadError(source=str(path), message=str(exc))]

    if data is None:
        return {}, []
    if not isinstance(data, dict):
        logger.warning(
            "Config file %s has non-mapping root (%s)",
            path,
            type(data).__name__,
        )
        return {}, [
            ConfigLoadError(
                source=str(path),
                message="Config must be a YAML mapping, not a scalar or sequence",
            )
        ]
    return data, []


# ---------------------------------------------------------------------------
# 3. Layered load
# ---------------------------------------------------------------------------


def get_config_path() -> Path:
    """Return the default ``config.yaml`` location."""
    return get_config_dir() / CONFIG_FILENAME


def load_raw_config(
    config_path: Path | None = None,
) -> tuple[dict[str, Any], Path, list[ConfigLoadError]]:
    """Load and merge the raw YAML layers without schema validation.

    ``config.local.yaml`` is only merged when the default location is used.
    """
    path = Path(config_path) if config_path else get_config_path()
    errors: list[ConfigLoadError] = []

    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
        return {}, path, errors

    with file_lock(path):
        merged, base_errors = _parse_yaml_file(path)
    errors.extend(base_errors)

    if config_path is None:
        local_path = path.parent / LOCAL_CONFIG_FILENAME
        if local_path.exists():
            logger.debug("Merging local overrides from %s", local_path)
            local, local_errors = _parse_yaml_file(local_path)
            errors.extend(local_errors)
            if local:
                merged = deep_merge(merged, local)

    return _interpolate_recursive(merged), path, errors


def load_config(config_path: Path | None = None) -> LoadConfigResult:
    """Load, merge and validate configuration.

    Returns defaults together with the collected errors when validation
    fails, so callers can keep running in a degraded mode.
    """
    raw, path, errors = load_raw_config(config_path)

    try:
        config = BlackbookConfig.model_validate(raw)
    except ValidationError as exc:
        for issue in exc.errors():
            errors.append(
                ConfigLoadError(
                    source=str(path),
                    message=issue["msg"],
                    path=[str(part) for part in issue["loc"]],
                )
            )
        logger.warning(
            "Config at %s failed validation with %d error(s)",
            path,
            len(exc.errors()),
        )
        return LoadConfigResult(
            config=BlackbookConfig(), config_path=path, errors=errors
        )

    return LoadConfigResult(config=config, config_path=path, errors=errors)


def load_config_strict(config_path: Path | None = None) -> BlackbookConfig:
    """Load configuration, raising if any error was collected.

    Raises:
        ValueError: Listing every collected ``ConfigLoadError``.
    """
    result = load_config(config_path)
    if result.errors:
        messages = "\n".join(str(e) for e in result.errors)
        raise ValueError(f"Config validation failed:\n{messages}")
    return result.config
