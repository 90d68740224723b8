# envgod/client.py
"""
EnvGod Control Plane Client

This module implements the two HTTP calls the loader relies on:

- the token exchange (`POST /v1/auth/exchange`), which trades the runtime key
  for a short-lived token and records it in a cache entry, and
- the bundle fetch (`GET /v1/bundle`), which returns the secret values and
  reports a rejected token as UnauthorizedError.

Each call is bounded by its own timeout.
"""
import asyncio
import logging
from typing import Any

import aiohttp

from .errors import (
    HTTPStatusError,
    InvalidResponseError,
    RequestTimeoutError,
    TransportError,
    UnauthorizedError,
)
from .models import DEFAULT_TIMEOUT, CacheEntry, EnvGodConfig, parse_expiry

logger = logging.getLogger(__name__)

EXCHANGE_PATH = "/v1/auth/exchange"
BUNDLE_PATH = "/v1/bundle"


class EnvGodClient:
    """
    Thin async client for the control plane.

    A new aiohttp session is opened per call; the loader issues at most two
    calls per load, so connection reuse does not matter here.
    """

    def __init__(self, session_factory=aiohttp.ClientSession):
        """
        Args:
            session_factory: Callable returning an aiohttp.ClientSession-like
                async context manager. Accepts a `timeout` keyword.
        """
        self._session_factory = session_factory

    async def exchange_token(
        self,
        config: EnvGodConfig,
        api_key: str,
        entry: CacheEntry,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> str:
        """
        Exchange the runtime key for a short-lived token.

        On success the token and its absolute expiry are written into `entry`.

        Args:
            config: Resolved configuration (endpoint and scope).
            api_key: Runtime key sent as the bearer credential.
            entry: Cache entry that receives the token.
            timeout: Time bound in seconds.

        Returns:
            str: The new token.
        """
        status, reason, data = await self._request(
            "POST",
            f"{config.api_url}{EXCHANGE_PATH}",
            timeout=timeout,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {api_key}",
            },
            json=config.scope(),
        )
        if not 200 <= status < 300:
            raise HTTPStatusError("Auth exchange", status, reason)

        if not isinstance(data, dict) or not isinstance(data.get("token"), str) or not data["token"]:
            raise InvalidResponseError("[EnvGod] Auth exchange response is missing 'token'")
        expires_at = parse_expiry(data.get("expiresAt"))

        entry.token = data["token"]
        entry.token_expires_at = expires_at
        logger.info(f"Token exchanged for project={config.project} env={config.env} service={config.service}")
        return entry.token

    async def fetch_bundle(
        self,
        config: EnvGodConfig,
        token: str,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> dict[str, str]:
        """
        Fetch the current secret bundle.

        Raises:
            UnauthorizedError: The token was rejected (HTTP 401).
            HTTPStatusError: Any other non-success status.
            InvalidResponseError: The bundle is not a mapping of valid names to strings.
        """
        status, reason, data = await self._request(
            "GET",
            f"{config.api_url}{BUNDLE_PATH}",
            timeout=timeout,
            headers={"Authorization": f"Bearer {token}"},
        )
        if status == 401:
            raise UnauthorizedError(reason)
        if not 200 <= status < 300:
            raise HTTPStatusError("Fetch bundle", status, reason)

        values = data.get("values") if isinstance(data, dict) else None
        if not isinstance(values, dict):
            raise InvalidResponseError("[EnvGod] Bundle response is missing 'values'")
        bundle = {_variable_name(k): _variable_value(k, v) for k, v in values.items()}
        logger.info(f"Fetched bundle with {len(bundle)} variable(s)")
        return bundle

    async def _request(
        self,
        method: str,
        url: str,
        *,
        timeout: float,
        headers: dict[str, str],
        json: Any = None,
    ) -> tuple[int, str | None, Any]:
        """Perform one bounded request; the body is decoded only on 2xx."""
        try:
            async with self._session_factory(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
                async with session.request(method, url, headers=headers, json=json) as resp:
                    if not 200 <= resp.status < 300:
                        return resp.status, resp.reason, None
                    try:
                        data = await resp.json(content_type=None)
                    except (aiohttp.ContentTypeError, ValueError) as e:
                        raise InvalidResponseError(f"[EnvGod] Invalid JSON from {method} {url}") from e
                    return resp.status, resp.reason, data
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(timeout) from e
        except aiohttp.ClientError as e:
            raise TransportError(f"[EnvGod] {method} {url} failed: {type(e).__name__}: {e}") from e


def _variable_name(name: Any) -> str:
    """Bundle keys must be usable as environment variable names."""
    if not isinstance(name, str) or not name or "=" in name or "\x00" in name:
        raise InvalidResponseError(f"[EnvGod] Bundle contains an invalid variable name: {name!r}")
    return name


def _variable_value(name: str, value: Any) -> str:
    """Strings pass through; JSON numbers and booleans are rendered as JSON text."""
    if isinstance(value, bool):
        value = "true" if value else "false"
    elif isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        raise InvalidResponseError(
            f"[EnvGod] Bundle value for {name!r} must be a string, got {type(value).__name__}"
        )
    if "\x00" in value:
        raise InvalidResponseError(f"[EnvGod] Bundle value for {name!r} contains a NUL character")
    return value
