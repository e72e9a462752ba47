"""Provider key registry loaded once at startup.

Keys arrive as a JSON array of strings, either inline through settings or from
a file on disk. Anything else (missing source, bad JSON, empty array, non-string
entries) is a configuration error and the service refuses to start.
"""
from __future__ import annotations

import json
import logging
import secrets
from pathlib import Path
from typing import Iterable, Iterator

from quota_gateway.core.config import Settings

logger = logging.getLogger(__name__)

KEY_BYTES = 32


class ConfigurationError(RuntimeError):
    """Raised when the service cannot start with the supplied configuration."""


def mask_key(key: str, visible: int = 8) -> str:
    """Shorten a key for logs and admin listings."""

    if len(key) <= visible:
        return key
    return f"{key[:visible]}..."


def generate_api_key() -> str:
    """Return a random 64 hex character key."""

    return secrets.token_hex(KEY_BYTES)


def write_key_file(path: str | Path, count: int) -> list[str]:
    """Generate ``count`` keys and save them as a JSON array at ``path``."""

    if count < 1:
        raise ValueError("count must be at least 1")
    keys = [generate_api_key() for _ in range(count)]
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(keys, indent=2) + "\n", encoding="utf-8")
    return keys


class KeyRegistry:
    """Immutable set of keys accepted by the gateway."""

    def __init__(self, keys: Iterable[str]) -> None:
        items = list(keys)
        for item in items:
            if not isinstance(item, str) or not item:
                raise ConfigurationError("Provider keys must be non-empty strings")
        if not items:
            raise ConfigurationError("Provider key list is empty")
        self._keys = frozenset(items)

    @classmethod
    def from_json(cls, raw: str, *, source: str = "PROVIDER_KEYS") -> "KeyRegistry":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"{source} is not valid JSON: {exc}") from exc
        if not isinstance(data, list):
            raise ConfigurationError(f"{source} must be a JSON array of strings")
        return cls(data)

    @classmethod
    def from_file(cls, path: str | Path) -> "KeyRegistry":
        path = Path(path)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ConfigurationError(f"Provider keys file not found: {path}") from exc
        except OSError as exc:
            raise ConfigurationError(f"Could not read provider keys file {path}: {exc}") from exc
        return cls.from_json(raw, source=str(path))

    def is_valid(self, key: str) -> bool:
        return key in self._keys

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._keys))

    def __len__(self) -> int:
        return len(self._keys)


def load_key_registry(settings: Settings) -> KeyRegistry:
    """Build the registry from settings, preferring the inline JSON value."""

    if settings.provider_keys:
        registry = KeyRegistry.from_json(settings.provider_keys)
        source = "PROVIDER_KEYS"
    else:
        registry = KeyRegistry.from_file(settings.provider_keys_file)
        source = settings.provider_keys_file
    logger.info("Loaded %d provider keys from %s", len(registry), source)
    return registry


__all__ = [
    "ConfigurationError",
    "KeyRegistry",
    "generate_api_key",
    "load_key_registry",
    "mask_key",
    "write_key_file",
]
