# envgod/models.py
"""
EnvGod Data Model

This module defines the records shared by the config resolver, the HTTP client,
the cache store and the loader: the resolved configuration, the per-call load
options, and the mutable cache entry held for each configuration fingerprint.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from .errors import InvalidResponseError

DEFAULT_TIMEOUT = 5.0  # seconds per network call
TOKEN_SKEW_SECONDS = 30.0


@dataclass(frozen=True)
class EnvGodConfig:
    """
    Resolved, validated configuration for one control plane scope.

    Attributes:
        api_url: Base URL of the control plane, without trailing slash.
        api_key: Runtime key used for the token exchange. May be None when the
            key is resolved later from a secret store.
        project: Project identifier.
        env: Environment identifier (e.g. "dev", "prod").
        service: Service identifier.
        org: Optional organization identifier.
    """

    api_url: str
    api_key: str | None
    project: str
    env: str
    service: str
    org: str | None = None

    def scope(self) -> dict[str, str]:
        """Scope fields as sent in the exchange request body."""
        payload = {"project": self.project, "env": self.env, "service": self.service}
        if self.org:
            payload["org"] = self.org
        return payload


@dataclass
class LoadEnvOptions:
    """
    Per-call options for load_env.

    Attributes:
        config: Explicit overrides keyed by EnvGodConfig field name.
        timeout: Time bound for each network call, in seconds.
        config_file: Optional YAML file with overrides.
        dotenv_path: Optional .env file used as a source of ambient defaults.
    """

    config: dict | None = None
    timeout: float | None = None
    config_file: str | None = None
    dotenv_path: str | None = None


@dataclass
class CacheEntry:
    """
    Last known token and bundle for one configuration fingerprint.

    Attributes:
        token: Short-lived token from the last exchange.
        token_expires_at: Token expiry as epoch seconds.
        bundle: Last successfully fetched bundle.
    """

    token: str | None = None
    token_expires_at: float | None = None
    bundle: dict[str, str] | None = field(default=None)

    def token_is_valid(self, now: float, skew: float = TOKEN_SKEW_SECONDS) -> bool:
        if not self.token or self.token_expires_at is None:
            return False
        return self.token_expires_at > now + skew

    def clear(self) -> None:
        self.token = None
        self.token_expires_at = None
        self.bundle = None


def parse_expiry(value: str) -> float:
    """
    Convert an ISO-8601 timestamp into epoch seconds.

    A trailing "Z" and naive timestamps are read as UTC.
    """
    if not isinstance(value, str) or not value:
        raise InvalidResponseError(f"[EnvGod] Invalid expiresAt in auth exchange response: {value!r}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise InvalidResponseError(
            f"[EnvGod] Invalid expiresAt in auth exchange response: {value!r}"
        ) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()
