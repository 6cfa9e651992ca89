import logging
import math
import os
import sys
from typing import Any, Dict, Iterable, List, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from vulngate.core.collector import parse_scopes
from vulngate.core.errors import ConfigurationError
from vulngate.core.model import Coordinate, PolicyConfiguration, ServiceConfiguration

CONFIG_FILES = ["vulngate.toml", "pyproject.toml"]


def find_config_file() -> Optional[str]:
    for filename in CONFIG_FILES:
        if os.path.exists(filename):
            return filename
    return None


def read_settings(path: Optional[str] = None) -> Dict[str, Any]:
    """Returns the raw settings table. pyproject.toml keeps them under [tool.vulngate]."""
    path = path or find_config_file()
    if path is None:
        logging.debug("No configuration file found, using defaults.")
        return {}

    logging.debug(f"Reading configuration from {path}...")
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    if os.path.basename(path) == "pyproject.toml":
        return data.get("tool", {}).get("vulngate", {})
    return data


def load_config(path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> PolicyConfiguration:
    """
    Builds the policy from the configuration file, the environment and
    command-line overrides (highest precedence). Override keys use the same
    names as the file; None values are ignored and lists are appended.
    """
    settings = dict(read_settings(path))
    service = dict(settings.pop("service", {}) or {})

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key.startswith("service."):
            service[key[len("service."):]] = value
        elif isinstance(value, list):
            # Exclusions given on the command line add to the file's
            settings[key] = _to_list(settings.get(key, [])) + value
        else:
            settings[key] = value

    return PolicyConfiguration(
        scopes=parse_scopes(settings.get("scope")),
        transitive=_to_bool(settings.get("transitive", True), "transitive"),
        exclude_coordinates=frozenset(_to_coordinates(settings.get("exclude-coordinates", []))),
        exclude_vulnerability_ids=frozenset(str(v).strip() for v in _to_list(settings.get("exclude-vulnerability-ids", []))),
        cvss_score_threshold=_to_threshold(settings.get("cvss-score-threshold", 0.0)),
        service=_to_service(service),
    )


def _to_bool(value, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ConfigurationError(f"'{key}' must be true or false, got {value!r}")


def _to_list(value) -> List[Any]:
    if isinstance(value, str):
        return [value]
    return list(value)


def _to_coordinates(values: Iterable[str]):
    for value in _to_list(values):
        try:
            yield Coordinate.parse(value)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e


def _to_threshold(value) -> float:
    try:
        threshold = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"'cvss-score-threshold' must be a number, got {value!r}") from e

    if math.isnan(threshold) or threshold < 0:
        raise ConfigurationError(f"'cvss-score-threshold' must be zero or positive, got {value!r}")
    return threshold


def _to_service(table: Dict[str, Any]) -> ServiceConfiguration:
    defaults = ServiceConfiguration()
    try:
        timeout = float(table.get("timeout", defaults.timeout))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"'service.timeout' must be a number, got {table.get('timeout')!r}") from e

    return ServiceConfiguration(
        base_url=str(table.get("base-url", defaults.base_url)).rstrip("/"),
        username=table.get("username") or os.getenv("OSSINDEX_USERNAME") or None,
        token=table.get("token") or os.getenv("OSSINDEX_TOKEN") or None,
        timeout=timeout,
        user_agent=str(table.get("user-agent", defaults.user_agent)),
    )
