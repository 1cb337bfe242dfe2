"""Unit tests for API key stores."""
from __future__ import annotations

import json
import os
import shutil
import stat
import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import patch

from correctify.config_manager import ConfigManager
from correctify.models import ProviderId
from correctify.secure_keys import (
    MIGRATION_FLAG,
    FileKeyStore,
    MemoryKeyStore,
    key_name,
    migrate_legacy_keys,
)

ENV_KEYS = ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "MISTRAL_API_KEY", "OPENROUTER_API_KEY")


def clean_env():
    return {name: value for name, value in os.environ.items() if name not in ENV_KEYS}


class TestMemoryKeyStore(unittest.IsolatedAsyncioTestCase):
    """Test cases for MemoryKeyStore and the KeyStore helpers."""

    async def test_set_get_delete(self):
        store = MemoryKeyStore()
        await store.set("openai-api-key", "sk-1")
        self.assertEqual(await store.get("openai-api-key"), "sk-1")

        await store.delete("openai-api-key")
        self.assertIsNone(await store.get("openai-api-key"))
        await store.delete("openai-api-key")

    async def test_blank_values_are_not_keys(self):
        store = MemoryKeyStore({"mistral-api-key": "   "})
        self.assertFalse(await store.has("mistral-api-key"))
        self.assertIsNone(await store.get_provider_key(ProviderId.MISTRAL))

    async def test_provider_key_is_stripped(self):
        store = MemoryKeyStore({"anthropic-api-key": "  sk-ant \n"})
        self.assertEqual(await store.get_provider_key(ProviderId.ANTHROPIC), "sk-ant")

    async def test_key_flags(self):
        store = MemoryKeyStore({"openrouter-api-key": "or"})
        flags = await store.key_flags()
        self.assertEqual(flags, {
            ProviderId.OPENAI: False,
            ProviderId.ANTHROPIC: False,
            ProviderId.MISTRAL: False,
            ProviderId.OPENROUTER: True,
        })

    def test_key_name(self):
        self.assertEqual(key_name(ProviderId.MISTRAL), "mistral-api-key")
        self.assertEqual(key_name("openai"), "openai-api-key")


class TestFileKeyStore(unittest.IsolatedAsyncioTestCase):
    """Test cases for FileKeyStore."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.key_file = self.temp_dir / "keys.json"
        self.store = FileKeyStore(self.key_file)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    async def test_persists_across_instances(self):
        await self.store.set("openai-api-key", "sk-file")

        with patch.dict(os.environ, clean_env(), clear=True):
            other = FileKeyStore(self.key_file)
            self.assertEqual(await other.get("openai-api-key"), "sk-file")
        self.assertEqual(json.loads(self.key_file.read_text(encoding="utf-8")), {"openai-api-key": "sk-file"})

    @unittest.skipIf(os.name == "nt", "POSIX permissions")
    async def test_file_is_owner_only(self):
        await self.store.set("openai-api-key", "sk-file")
        mode = stat.S_IMODE(self.key_file.stat().st_mode)
        self.assertEqual(mode & 0o077, 0)

    async def test_delete(self):
        await self.store.set("openai-api-key", "sk-file")
        await self.store.set("mistral-api-key", "m")
        await self.store.delete("openai-api-key")

        with patch.dict(os.environ, clean_env(), clear=True):
            self.assertIsNone(await self.store.get("openai-api-key"))
            self.assertEqual(await self.store.get("mistral-api-key"), "m")

    async def test_environment_fallback(self):
        env = clean_env()
        env["ANTHROPIC_API_KEY"] = "sk-env"
        with patch.dict(os.environ, env, clear=True):
            self.assertEqual(await self.store.get("anthropic-api-key"), "sk-env")
            self.assertIsNone(await self.store.get("openai-api-key"))

            await self.store.set("anthropic-api-key", "sk-stored")
            self.assertEqual(await self.store.get("anthropic-api-key"), "sk-stored")

    async def test_environment_fallback_disabled(self):
        store = FileKeyStore(self.key_file, env_fallback=False)
        with patch.dict(os.environ, {"OPENAI_API_KEY": "sk-env"}):
            self.assertIsNone(await store.get("openai-api-key"))

    async def test_file_access_runs_off_the_event_loop(self):
        read = self.store._read
        threads = []

        def tracking_read():
            threads.append(threading.get_ident())
            return read()

        self.store._read = tracking_read
        await self.store.set("openai-api-key", "sk-file")
        self.assertEqual(await self.store.get("openai-api-key"), "sk-file")
        await self.store.delete("openai-api-key")

        self.assertEqual(len(threads), 3)
        self.assertNotIn(threading.get_ident(), threads)

    async def test_corrupt_file_reads_empty(self):
        self.key_file.write_text("{not json", encoding="utf-8")
        with patch.dict(os.environ, clean_env(), clear=True):
            self.assertIsNone(await self.store.get("openai-api-key"))


class TestMigrateLegacyKeys(unittest.IsolatedAsyncioTestCase):
    """Test cases for moving keys out of the settings file."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.config = ConfigManager(config_dir=self.temp_dir)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    async def test_moves_keys_once(self):
        self.config.config["openai-api-key"] = " sk-legacy "
        self.config.config["mistral-api-key"] = ""
        self.config.save()
        store = MemoryKeyStore()

        migrated = await migrate_legacy_keys(self.config, store)

        self.assertEqual(migrated, 1)
        self.assertEqual(await store.get("openai-api-key"), "sk-legacy")
        reloaded = ConfigManager(config_dir=self.temp_dir)
        self.assertNotIn("openai-api-key", reloaded.config)
        self.assertTrue(reloaded.get(MIGRATION_FLAG))

        self.config.config["anthropic-api-key"] = "sk-late"
        self.assertEqual(await migrate_legacy_keys(self.config, store), 0)
        self.assertIsNone(await store.get("anthropic-api-key"))


if __name__ == '__main__':
    unittest.main()
