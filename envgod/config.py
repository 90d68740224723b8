# envgod/config.py
"""
Config Resolver

Builds an EnvGodConfig from explicit overrides and ambient defaults. Overrides
always win over the process environment, which in turn wins over an optional
.env file. Validation reports every missing field at once so the caller can
fix the whole configuration in one pass.
"""
import logging
import os
import re
from collections.abc import Mapping

import yaml
from dotenv import dotenv_values

from .errors import ConfigurationError
from .models import EnvGodConfig

logger = logging.getLogger(__name__)

ENV_VARS = {
    "api_url": "ENVGOD_API_URL",
    "api_key": "ENVGOD_API_KEY",
    "org": "ENVGOD_ORG",
    "project": "ENVGOD_PROJECT",
    "env": "ENVGOD_ENV",
    "service": "ENVGOD_SERVICE",
}
TIMEOUT_ENV_VAR = "ENVGOD_TIMEOUT"

REQUIRED_FIELDS = ("api_url", "api_key", "project", "env", "service")


def _ambient_defaults(environ: Mapping[str, str] | None, dotenv_path: str | None) -> dict:
    """Merge the .env file (lowest precedence) with the process environment."""
    merged: dict[str, str] = {}
    if dotenv_path:
        file_values = dotenv_values(dotenv_path)
        merged.update({k: v for k, v in file_values.items() if v is not None})
    merged.update(os.environ if environ is None else environ)
    return merged


def get_config(
    overrides: Mapping | None = None,
    environ: Mapping[str, str] | None = None,
    *,
    dotenv_path: str | None = None,
    require_api_key: bool = True,
) -> EnvGodConfig:
    """
    Resolve and validate the configuration.

    Args:
        overrides: Explicit values keyed by EnvGodConfig field name.
        environ: Ambient defaults (defaults to os.environ at call time).
        dotenv_path: Optional .env file consulted below the environment.
        require_api_key: When False, a missing api_key is allowed because it
            can still be resolved from a secret store.

    Returns:
        EnvGodConfig: The validated configuration.

    Raises:
        ConfigurationError: Naming every missing mandatory field.
    """
    overrides = dict(overrides or {})
    unknown = sorted(set(overrides) - set(ENV_VARS))
    if unknown:
        raise ConfigurationError(
            message=f"[EnvGod] Unknown configuration field(s): {', '.join(unknown)}"
        )

    defaults = _ambient_defaults(environ, dotenv_path)
    values = {}
    for name, var in ENV_VARS.items():
        value = overrides.get(name)
        if value is None:
            value = defaults.get(var)
        values[name] = str(value).strip() if value is not None else None

    required = [f for f in REQUIRED_FIELDS if require_api_key or f != "api_key"]
    missing = [f for f in required if not values[f]]
    if missing:
        raise ConfigurationError(missing)

    return EnvGodConfig(
        api_url=values["api_url"].rstrip("/"),
        api_key=values["api_key"] or None,
        project=values["project"],
        env=values["env"],
        service=values["service"],
        org=values["org"] or None,
    )


def resolve_timeout(timeout: float | None, environ: Mapping[str, str] | None = None) -> float | None:
    """Explicit timeout wins; otherwise ENVGOD_TIMEOUT (seconds), otherwise None."""
    if timeout is not None:
        return float(timeout)
    raw = (os.environ if environ is None else environ).get(TIMEOUT_ENV_VAR)
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(
            message=f"[EnvGod] {TIMEOUT_ENV_VAR} must be a number of seconds, got {raw!r}"
        ) from e


def load_config_file(path: str) -> dict:
    """
    Load configuration overrides from a YAML file.

    Strings of the form `${VAR_NAME}` are replaced with the environment value;
    unknown references are left untouched.

    Args:
        path: Path to the YAML file.

    Returns:
        dict: Overrides keyed by EnvGodConfig field name.
    """
    with open(path) as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            message=f"[EnvGod] Config file {path} must contain a mapping at the top level"
        )
    logger.debug(f"Loaded EnvGod config file {path} ({len(data)} keys)")
    return _expand_env_vars(data)


def _expand_env_vars(obj):
    """Recursively replace ${VAR} references in strings, dicts and lists."""
    if isinstance(obj, str):
        return re.sub(
            r'\$\{(\w+)\}',
            lambda m: os.environ.get(m.group(1), m.group(0)),
            obj
        )
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj
