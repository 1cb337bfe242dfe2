"""API key storage.

Keys are stored per provider under the name ``"{provider}-api-key"``. The
orchestrator only ever asks for a key by name; where the key lives is the
store's business.
"""
from __future__ import annotations

import asyncio
import json
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional

from .logger import get_logger
from .models import ProviderId

if TYPE_CHECKING:
    from .config_manager import ConfigManager

logger = get_logger(__name__)

ENV_VARS: Dict[ProviderId, str] = {
    ProviderId.OPENAI: "OPENAI_API_KEY",
    ProviderId.ANTHROPIC: "ANTHROPIC_API_KEY",
    ProviderId.MISTRAL: "MISTRAL_API_KEY",
    ProviderId.OPENROUTER: "OPENROUTER_API_KEY",
}

MIGRATION_FLAG = "keys_migrated_v1"


def key_name(provider: ProviderId) -> str:
    return ProviderId(provider).key_name


class KeyStore(ABC):
    """Async key/value store for provider secrets."""

    @abstractmethod
    async def get(self, name: str) -> Optional[str]:
        """Return the stored value or ``None``."""

    @abstractmethod
    async def set(self, name: str, value: str) -> None:
        """Store ``value`` under ``name``."""

    @abstractmethod
    async def delete(self, name: str) -> None:
        """Remove ``name``; missing names are ignored."""

    async def has(self, name: str) -> bool:
        value = await self.get(name)
        return bool(value and value.strip())

    async def get_provider_key(self, provider: ProviderId) -> Optional[str]:
        value = await self.get(key_name(provider))
        return value.strip() if value and value.strip() else None

    async def key_flags(self) -> Dict[ProviderId, bool]:
        """Which providers currently have a usable key."""
        return {provider: await self.has(key_name(provider)) for provider in ProviderId}


class MemoryKeyStore(KeyStore):
    """In-process store, used for request-scoped keys and tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})

    async def get(self, name: str) -> Optional[str]:
        return self._values.get(name)

    async def set(self, name: str, value: str) -> None:
        self._values[name] = value

    async def delete(self, name: str) -> None:
        self._values.pop(name, None)


class FileKeyStore(KeyStore):
    """
    Keys in a JSON file readable only by the current user.

    When a key is not stored, the provider's conventional environment
    variable (``OPENAI_API_KEY`` and friends) is consulted.
    """

    def __init__(
        self,
        key_file: Optional[Path] = None,
        env_fallback: bool = True,
    ) -> None:
        self.key_file = key_file or Path.home() / ".correctify" / "keys.json"
        self.env_fallback = env_fallback
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        if not self.key_file.exists():
            return {}
        try:
            with open(self.key_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read key file {self.key_file}: {e}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if isinstance(v, str)}

    def _write(self, values: Dict[str, str]) -> None:
        self.key_file.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = self.key_file.with_suffix(".tmp")
        fd = os.open(tmp_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(values, f, indent=2)
        os.replace(tmp_file, self.key_file)

    def _env_value(self, name: str) -> Optional[str]:
        if not self.env_fallback:
            return None
        for provider, env_var in ENV_VARS.items():
            if provider.key_name == name:
                value = os.getenv(env_var)
                return value if value and value.strip() else None
        return None

    def _get(self, name: str) -> Optional[str]:
        with self._lock:
            value = self._read().get(name)
        if value and value.strip():
            return value
        return self._env_value(name)

    def _set(self, name: str, value: str) -> None:
        with self._lock:
            values = self._read()
            values[name] = value
            self._write(values)
        logger.info(f"Stored {name}")

    def _delete(self, name: str) -> None:
        with self._lock:
            values = self._read()
            if values.pop(name, None) is None:
                return
            self._write(values)
        logger.info(f"Deleted {name}")

    # File access runs on the default executor.
    async def get(self, name: str) -> Optional[str]:
        return await asyncio.get_running_loop().run_in_executor(None, self._get, name)

    async def set(self, name: str, value: str) -> None:
        await asyncio.get_running_loop().run_in_executor(None, self._set, name, value)

    async def delete(self, name: str) -> None:
        await asyncio.get_running_loop().run_in_executor(None, self._delete, name)


async def migrate_legacy_keys(config: "ConfigManager", store: KeyStore) -> int:
    """Move API keys saved in the settings file into ``store``.

    Runs once; the settings file remembers that the migration happened.

    Returns:
        Number of keys migrated
    """
    if config.get(MIGRATION_FLAG, False):
        return 0

    migrated = 0
    for provider in ProviderId:
        name = provider.key_name
        value = config.get(name)
        if isinstance(value, str) and value.strip():
            try:
                await store.set(name, value.strip())
            except OSError as e:
                logger.error(f"Failed to migrate {name}: {e}")
                continue
            config.config.pop(name, None)
            migrated += 1

    config.set(MIGRATION_FLAG, True)
    logger.info(f"Key migration complete. Migrated {migrated} key(s).")
    return migrated
