"""Server-side loader for EnvGod secret bundles."""

from .cache import CacheStore, fingerprint
from .client import EnvGodClient
from .config import get_config, load_config_file
from .credentials import KeyringSecretStore, SecretStore, resolve_api_key
from .errors import (
    BrowserEnvironmentError,
    ConfigurationError,
    CredentialResolutionError,
    EnvGodError,
    EnvironmentSinkError,
    HTTPStatusError,
    InvalidResponseError,
    RequestTimeoutError,
    TransportError,
    UnauthorizedError,
)
from .loader import EnvContext, get_default_context, load_env, reset_state
from .models import CacheEntry, EnvGodConfig, LoadEnvOptions
from .server import load_server_env

__all__ = [
    "BrowserEnvironmentError",
    "CacheEntry",
    "CacheStore",
    "ConfigurationError",
    "CredentialResolutionError",
    "EnvContext",
    "EnvGodClient",
    "EnvGodConfig",
    "EnvGodError",
    "EnvironmentSinkError",
    "HTTPStatusError",
    "InvalidResponseError",
    "KeyringSecretStore",
    "LoadEnvOptions",
    "RequestTimeoutError",
    "SecretStore",
    "TransportError",
    "UnauthorizedError",
    "fingerprint",
    "get_config",
    "get_default_context",
    "load_config_file",
    "load_env",
    "load_server_env",
    "reset_state",
    "resolve_api_key",
]
