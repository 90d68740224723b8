# envgod/credentials.py
"""
Runtime Key Resolver

Finds the runtime key used to authenticate the token exchange. The key comes
from the configuration (explicit override, then ENVGOD_API_KEY) and, failing
that, from an optional secret store. The secret store is a convenience source:
any error it raises is logged and ignored.
"""
import logging
from typing import Protocol

from .config import ENV_VARS
from .errors import CredentialResolutionError
from .models import EnvGodConfig

logger = logging.getLogger(__name__)

DEFAULT_KEYRING_SERVICE = "envgod"


class SecretStore(Protocol):
    """Optional external source of runtime keys."""

    def get_secret(self, key: str) -> str | None:
        """Return the secret stored under key, or None."""
        ...


class KeyringSecretStore(SecretStore):
    """
    Secret store backed by the OS keychain through the `keyring` package.

    `keyring` is an optional dependency (`pip install envgod[keyring]`); it is
    imported on first lookup.
    """

    def __init__(self, service_name: str = DEFAULT_KEYRING_SERVICE):
        self.service_name = service_name

    def get_secret(self, key: str) -> str | None:
        import keyring

        return keyring.get_password(self.service_name, key)


def credential_key(config: EnvGodConfig) -> str:
    """Composite secret store key: endpoint plus every scope field."""
    return "|".join([config.api_url, config.org or "", config.project, config.env, config.service])


def resolve_api_key(config: EnvGodConfig, store: SecretStore | None = None) -> str:
    """
    Produce the runtime key for the exchange call.

    Args:
        config: The resolved configuration; its api_key already reflects the
            explicit override and the ENVGOD_API_KEY default.
        store: Optional secret store consulted last.

    Returns:
        str: The runtime key.

    Raises:
        CredentialResolutionError: If no source yields a key.
    """
    if config.api_key:
        return config.api_key

    key = credential_key(config)
    if store is not None:
        try:
            value = store.get_secret(key)
        except Exception as e:
            logger.debug(f"Secret store lookup failed ({type(e).__name__}), ignoring")
            value = None
        if value:
            logger.info(f"Runtime key resolved from secret store for project={config.project} env={config.env}")
            return value

    raise CredentialResolutionError(
        "[EnvGod] No runtime key found. Provide one of:\n"
        "  - config override 'api_key'\n"
        f"  - environment variable {ENV_VARS['api_key']}\n"
        f"  - a secret store entry under key '{key}'"
        + ("" if store is not None else " (no secret store configured)")
    )
