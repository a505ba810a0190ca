"""Pod configuration.

Settings come from two places:
    - Environment: GOOGLE_CLOUD_PROJECT (required), BIGQUERY_LOCATION (optional)
    - Optional YAML file with a ``pod:`` mapping:

      ```yaml
      pod:
        location: EU
        query_timeout: 300   # seconds; waiting on the job and each fetch
        max_rows: 100000     # cap for full scans; omit for unbounded
      ```

Environment values take precedence over the YAML file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from bigquery_pod.core.errors import StartupError

# ============================================================================
# CONSTANTS
# ============================================================================

# Namespace the two operations are registered under
DEFAULT_NAMESPACE = "pod.bigquery"

PROJECT_ENV_VAR = "GOOGLE_CLOUD_PROJECT"
LOCATION_ENV_VAR = "BIGQUERY_LOCATION"

# None means wait as long as the client does by default
DEFAULT_QUERY_TIMEOUT: Optional[float] = None


@dataclass(frozen=True)
class PodSettings:
    """Resolved runtime settings.

    Attributes:
        project: Google Cloud project the client bills queries to.
        location: Default job location (e.g. "US", "EU"), if any.
        query_timeout: Seconds to wait on the data source per call.
        max_rows: Row cap for full scans; None leaves them unbounded.
    """

    project: str
    location: Optional[str] = None
    query_timeout: Optional[float] = DEFAULT_QUERY_TIMEOUT
    max_rows: Optional[int] = None


def _load_yaml(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        raise StartupError(f"Config file not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise StartupError(f"Failed to read config file {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise StartupError(f"Config file {config_path} must contain a mapping")
    section = data.get("pod", {}) or {}
    if not isinstance(section, dict):
        raise StartupError(f"'pod' section in {config_path} must be a mapping")
    return section


def _optional_number(section: Mapping[str, Any], key: str, cast: Any) -> Any:
    value = section.get(key)
    if value is None:
        return None
    try:
        number = cast(value)
    except (TypeError, ValueError) as e:
        raise StartupError(f"Invalid value for '{key}': {value!r}") from e
    if number <= 0:
        raise StartupError(f"'{key}' must be positive, got {value!r}")
    return number


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PodSettings:
    """Resolve settings from the environment and an optional YAML file.

    Args:
        config_path: Path to a YAML settings file, or None to skip it.
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        PodSettings with every field resolved.

    Raises:
        StartupError: If the project is missing or the YAML file is invalid.

    Examples:
        >>> load_settings(environ={"GOOGLE_CLOUD_PROJECT": "demo"}).project
        'demo'
    """
    env = os.environ if environ is None else environ
    section = _load_yaml(Path(config_path)) if config_path is not None else {}

    project = (env.get(PROJECT_ENV_VAR) or "").strip()
    if not project:
        raise StartupError(f"{PROJECT_ENV_VAR} variable is missing")

    location = env.get(LOCATION_ENV_VAR) or section.get("location")

    query_timeout = _optional_number(section, "query_timeout", float)
    if query_timeout is None:
        query_timeout = DEFAULT_QUERY_TIMEOUT

    return PodSettings(
        project=project,
        location=str(location) if location else None,
        query_timeout=query_timeout,
        max_rows=_optional_number(section, "max_rows", int),
    )


__all__ = [
    "DEFAULT_NAMESPACE",
    "PROJECT_ENV_VAR",
    "LOCATION_ENV_VAR",
    "DEFAULT_QUERY_TIMEOUT",
    "PodSettings",
    "load_settings",
]
