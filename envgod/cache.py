# envgod/cache.py
"""Per-configuration token and bundle cache."""

import threading

from .models import CacheEntry, EnvGodConfig

FINGERPRINT_DELIMITER = "|"
KEY_PREFIX_LENGTH = 8


def fingerprint(config: EnvGodConfig, api_key: str | None = None) -> str:
    """
    Identity of a configuration's authentication scope.

    Only the first few characters of the runtime key are used, enough to tell
    rotated keys apart without putting the secret in the cache key.

    Args:
        config: Resolved configuration.
        api_key: Runtime key if it was resolved outside the config.
    """
    key = api_key if api_key is not None else (config.api_key or "")
    return FINGERPRINT_DELIMITER.join([
        config.api_url,
        key[:KEY_PREFIX_LENGTH],
        config.org or "",
        config.project,
        config.env,
        config.service,
    ])


class CacheStore:
    """
    Maps fingerprints to cache entries.

    Entries are created empty on first access and live until reset(); there is
    no per-entry eviction.
    """

    def __init__(self):
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def entry(self, key: str) -> CacheEntry:
        with self._lock:
            if (found := self._entries.get(key)) is None:
                found = self._entries[key] = CacheEntry()
            return found

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
