# envgod/loader.py
"""
EnvGod Loader

This module is the entry point for loading secrets into the host process. It
decides, per call, whether the cached token and bundle can be reused, exchanges
a new token when needed, fetches the bundle, and retries exactly once when the
bundle endpoint rejects the token.

All state lives in an EnvContext: the cache store, the single-flight gate, the
environment sink and the HTTP client. The module-level functions use a default
context shared by the whole process.
"""
import asyncio
import logging
import os
import sys
import time
from collections.abc import Mapping, MutableMapping
from typing import Callable

from .cache import CacheStore, fingerprint
from .client import EnvGodClient
from .config import get_config, load_config_file, resolve_timeout
from .credentials import SecretStore, resolve_api_key
from .errors import BrowserEnvironmentError, EnvironmentSinkError, UnauthorizedError
from .models import DEFAULT_TIMEOUT, TOKEN_SKEW_SECONDS, CacheEntry, EnvGodConfig, LoadEnvOptions
from .singleflight import SingleFlight

logger = logging.getLogger(__name__)


def running_in_browser() -> bool:
    """True when running on a browser-hosted interpreter (Pyodide/Emscripten)."""
    return sys.platform == "emscripten" or "pyodide" in sys.modules or "js" in sys.modules


def check_browser() -> None:
    if running_in_browser():
        raise BrowserEnvironmentError()


class EnvContext:
    """
    Process-scoped loader state.

    Tests and multi-tenant hosts can create independent contexts; everything
    else goes through the default one via load_env().
    """

    def __init__(
        self,
        environ: MutableMapping[str, str] | None = None,
        defaults: Mapping[str, str] | None = None,
        client: EnvGodClient | None = None,
        secret_store: SecretStore | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            environ: Sink receiving every loaded variable (default os.environ).
            defaults: Source of ENVGOD_* defaults (default os.environ, read at
                call time).
            client: Control plane client.
            secret_store: Optional fallback source of the runtime key.
            clock: Returns the current time as epoch seconds.
        """
        self.environ = os.environ if environ is None else environ
        self.defaults = defaults
        self.client = client or EnvGodClient()
        self.secret_store = secret_store
        self.clock = clock
        self.cache = CacheStore()
        self.gate = SingleFlight()

    async def load(self, options: LoadEnvOptions | None = None) -> dict[str, str]:
        """
        Load the secret bundle and copy it into the environment sink.

        Concurrent callers share one in-flight load and receive the same result
        or the same error.
        """
        task = self.gate.run(lambda: self._load(options or LoadEnvOptions()))
        return await asyncio.shield(task)

    def reset(self) -> None:
        """Drop every cache entry and the pending load handle."""
        self.cache.reset()
        self.gate.reset()

    def resolve_config(self, options: LoadEnvOptions) -> EnvGodConfig:
        overrides = {}
        if options.config_file:
            overrides.update(load_config_file(options.config_file))
        if options.config:
            overrides.update({k: v for k, v in options.config.items() if v is not None})
        return get_config(
            overrides,
            self.defaults,
            dotenv_path=options.dotenv_path,
            require_api_key=self.secret_store is None,
        )

    async def _load(self, options: LoadEnvOptions) -> dict[str, str]:
        check_browser()
        config = self.resolve_config(options)
        timeout = resolve_timeout(options.timeout, self.defaults)
        if timeout is None:
            timeout = DEFAULT_TIMEOUT

        api_key = resolve_api_key(config, self.secret_store)
        entry = self.cache.entry(fingerprint(config, api_key))

        token_valid = entry.token_is_valid(self.clock(), TOKEN_SKEW_SECONDS)
        token = entry.token
        if not token_valid:
            token = await self.client.exchange_token(config, api_key, entry, timeout)

        # Reuse the bundle only if it was fetched under a token that is still valid
        if entry.bundle is not None and token_valid:
            logger.debug(f"Using cached bundle for project={config.project} env={config.env}")
            return self._apply(entry, entry.bundle)

        try:
            values = await self.client.fetch_bundle(config, token, timeout)
        except UnauthorizedError:
            logger.warning("Bundle fetch rejected the token (401); re-exchanging once")
            entry.clear()
            token = await self.client.exchange_token(config, api_key, entry, timeout)
            values = await self.client.fetch_bundle(config, token, timeout)

        return self._apply(entry, values)

    def _apply(self, entry: CacheEntry, values: dict[str, str]) -> dict[str, str]:
        """
        Copy the bundle into the sink, all or nothing.

        If the sink rejects a variable, the variables already written are
        restored and the cached bundle is dropped so the next load refetches.
        """
        bundle = dict(values)
        written: list[tuple[str, str | None]] = []
        try:
            for name, value in bundle.items():
                previous = self.environ.get(name)
                self.environ[name] = value
                written.append((name, previous))
        except (ValueError, TypeError) as e:
            rejected = name
            for name, previous in reversed(written):
                if previous is None:
                    self.environ.pop(name, None)
                else:
                    self.environ[name] = previous
            entry.bundle = None
            raise EnvironmentSinkError(
                f"[EnvGod] Environment rejected variable {rejected!r}; no variables were applied"
            ) from e

        entry.bundle = bundle
        return dict(bundle)


_default_context = EnvContext()


def get_default_context() -> EnvContext:
    return _default_context


def _options(options: LoadEnvOptions | None, kwargs: dict) -> LoadEnvOptions | None:
    if options is not None and kwargs:
        raise TypeError("Pass either a LoadEnvOptions instance or keyword options, not both")
    return options if options is not None else LoadEnvOptions(**kwargs)


async def load_env(options: LoadEnvOptions | None = None, **kwargs) -> dict[str, str]:
    """
    Main entry point to load environment variables.

    Args:
        options: Load options. Alternatively pass `config`, `timeout`,
            `config_file` or `dotenv_path` as keywords.

    Returns:
        dict[str, str]: The loaded bundle; every key is also set in os.environ.
    """
    return await _default_context.load(_options(options, kwargs))


def reset_state() -> None:
    """Clear the default context's cache and pending load. Intended for tests."""
    _default_context.reset()
