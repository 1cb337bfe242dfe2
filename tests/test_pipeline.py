"""Unit tests for the hotkey correction pipeline."""
from __future__ import annotations

import asyncio
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock

from correctify.config_manager import ConfigManager
from correctify.exceptions import ProviderError
from correctify.native_host import CORRECT_CLIPBOARD_TEXT, NativeHost, SoundType
from correctify.orchestrator import CorrectionOrchestrator
from correctify.pipeline import ERROR_TITLE, HotkeyPipeline, PipelineState
from correctify.schemas import CorrectionResult
from correctify.secure_keys import MemoryKeyStore
from correctify.usage_ledger import UsageLedger


class FakeHost(NativeHost):
    """Records every command the pipeline sends."""

    def __init__(self):
        self.handlers = {}
        self.commands = []
        self.notifications = []
        self.delivered = []
        self.fail_delivery = False

    def listen(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)
        return lambda: self.handlers[event].remove(handler)

    async def emit(self, event, payload):
        return await asyncio.gather(*(handler(payload) for handler in self.handlers.get(event, [])))

    async def set_sound_enabled(self, enabled):
        self.commands.append(("sound", enabled))

    async def set_auto_paste_enabled(self, enabled):
        self.commands.append(("auto_paste", enabled))

    async def update_shortcut(self, key, modifier):
        self.commands.append(("shortcut", key, modifier))

    async def handle_corrected_text(self, text, model, duration_ms, auto_paste):
        if self.fail_delivery:
            raise RuntimeError("clipboard locked")
        self.delivered.append((text, model, duration_ms, auto_paste))

    async def play_sound_in_app(self, sound_type: SoundType):
        self.commands.append(("sound_played", sound_type))

    async def show_notification(self, title, body):
        self.notifications.append((title, body))


class StubCorrector:
    def __init__(self, responder):
        self.responder = responder

    async def correct(self, request):
        return await self.responder(request)


class PipelineTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.config = ConfigManager(config_dir=self.temp_dir)
        self.ledger = UsageLedger(db_path=self.temp_dir / "usage.db")
        self.key_store = MemoryKeyStore({"openai-api-key": "sk"})
        self.host = FakeHost()
        self.requests = []

        async def respond(request):
            self.requests.append(request)
            return CorrectionResult(text=request.text.upper())

        self.respond = respond
        orchestrator = CorrectionOrchestrator(
            self.key_store,
            self.ledger,
            corrector_factory=lambda provider, key, timeout=30.0: StubCorrector(self.respond),
        )
        self.pipeline = HotkeyPipeline(self.host, orchestrator, self.config, self.key_store)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)


class TestLifecycle(PipelineTestCase):
    """Test cases for start/stop and settings push."""

    async def test_start_pushes_settings_and_subscribes_once(self):
        self.config.set_auto_paste_enabled(True)
        self.assertIs(self.pipeline.state, PipelineState.IDLE)

        await self.pipeline.start()
        await self.pipeline.start()

        self.assertIs(self.pipeline.state, PipelineState.LISTENING)
        self.assertEqual(len(self.host.handlers[CORRECT_CLIPBOARD_TEXT]), 1)
        self.assertEqual(self.host.commands, [
            ("sound", True),
            ("auto_paste", True),
            ("shortcut", "]", "CmdOrCtrl+Shift"),
        ])

    async def test_stop_unsubscribes(self):
        await self.pipeline.start()
        self.pipeline.stop()

        self.assertEqual(self.host.handlers[CORRECT_CLIPBOARD_TEXT], [])
        self.assertIs(self.pipeline.state, PipelineState.IDLE)

    async def test_host_command_failure_is_logged(self):
        self.host.update_shortcut = AsyncMock(side_effect=ValueError("bad shortcut"))

        await self.pipeline.start()

        self.assertIs(self.pipeline.state, PipelineState.LISTENING)


class TestCapturedText(PipelineTestCase):
    """Test cases for handling one captured text."""

    async def test_success_delivers_result(self):
        self.config.set_auto_paste_enabled(True)
        self.config.set_writing_style("formal")
        self.config.set_custom_rules("Sign off with Cheers.")
        await self.pipeline.start()

        await self.host.emit(CORRECT_CLIPBOARD_TEXT, "hello there")

        self.assertEqual(len(self.host.delivered), 1)
        text, model, duration_ms, auto_paste = self.host.delivered[0]
        self.assertEqual(text, "HELLO THERE")
        self.assertEqual(model, "gpt-4o-mini")
        self.assertGreaterEqual(duration_ms, 0)
        self.assertTrue(auto_paste)
        self.assertEqual(self.host.notifications, [])
        self.assertEqual(self.requests[0].writing_style.value, "formal")
        self.assertEqual(self.requests[0].custom_rules, "Sign off with Cheers.")
        self.assertTrue(self.ledger.entries()[0].success)
        self.assertIs(self.pipeline.state, PipelineState.LISTENING)

    async def test_settings_read_per_capture(self):
        await self.pipeline.start()
        await self.host.emit(CORRECT_CLIPBOARD_TEXT, "one")

        await self.key_store.set("mistral-api-key", "m")
        self.config.set_selected_model("mistral-small-latest")
        await self.host.emit(CORRECT_CLIPBOARD_TEXT, "two")

        self.assertEqual([entry[1] for entry in self.host.delivered], ["gpt-4o-mini", "mistral-small-latest"])

    async def test_blank_rules_are_not_sent(self):
        self.config.set_custom_rules("   ")
        await self.pipeline.handle_captured_text("text")
        self.assertIsNone(self.requests[0].custom_rules)

    async def test_missing_key_short_circuits(self):
        self.config.set_selected_model("claude-3-5-sonnet-20241022")

        delivered = await self.pipeline.handle_captured_text("text")

        self.assertFalse(delivered)
        self.assertEqual(self.requests, [])
        self.assertEqual(self.host.delivered, [])
        self.assertEqual(self.host.notifications, [
            (ERROR_TITLE, "Please configure your Anthropic API key in settings first!"),
        ])
        self.assertEqual(self.ledger.entries(), [])

    async def test_provider_failure_notifies(self):
        async def fail(request):
            raise ProviderError("OpenAI API returned 429: rate limited", status_code=429)

        self.respond = fail

        delivered = await self.pipeline.handle_captured_text("text")

        self.assertFalse(delivered)
        self.assertEqual(self.host.delivered, [])
        self.assertEqual(self.host.notifications, [
            (ERROR_TITLE, "Failed to correct text: OpenAI API returned 429: rate limited"),
        ])
        self.assertFalse(self.ledger.entries()[0].success)

    async def test_empty_capture_notifies(self):
        delivered = await self.pipeline.handle_captured_text("   ")

        self.assertFalse(delivered)
        self.assertEqual(len(self.host.notifications), 1)
        self.assertIn("Text is required", self.host.notifications[0][1])

    async def test_delivery_failure_never_escapes(self):
        self.host.fail_delivery = True

        delivered = await self.pipeline.handle_captured_text("text")

        self.assertFalse(delivered)
        self.assertEqual(self.host.notifications, [(ERROR_TITLE, "Failed to correct text: clipboard locked")])
        self.assertIs(self.pipeline.state, PipelineState.IDLE)

    async def test_notification_failure_never_escapes(self):
        self.host.show_notification = AsyncMock(side_effect=RuntimeError("no notifier"))
        self.config.set_selected_model("mistral-large-latest")

        self.assertFalse(await self.pipeline.handle_captured_text("text"))


class TestOverlappingCaptures(PipelineTestCase):
    """Test cases for captures that arrive while one is in flight."""

    def setUp(self):
        super().setUp()
        self.release = asyncio.Event()
        self.started = []

        async def slow(request):
            self.started.append(request.text)
            await self.release.wait()
            return CorrectionResult(text=request.text + "!")

        self.respond = slow

    async def wait_for_started(self, count):
        while len(self.started) < count:
            await asyncio.sleep(0)

    async def test_processed_independently_by_default(self):
        first = asyncio.ensure_future(self.pipeline.handle_captured_text("a"))
        second = asyncio.ensure_future(self.pipeline.handle_captured_text("b"))
        await self.wait_for_started(2)

        self.assertEqual(sorted(self.started), ["a", "b"])
        self.assertIs(self.pipeline.state, PipelineState.CORRECTING)

        self.release.set()
        self.assertEqual(await asyncio.gather(first, second), [True, True])
        self.assertEqual(sorted(entry[0] for entry in self.host.delivered), ["a!", "b!"])
        self.assertEqual(len(self.ledger.entries()), 2)

    async def test_single_flight_drops_overlap(self):
        self.config.set("hotkey_single_flight", True)

        first = asyncio.ensure_future(self.pipeline.handle_captured_text("a"))
        await self.wait_for_started(1)
        dropped = await self.pipeline.handle_captured_text("b")

        self.release.set()
        self.assertTrue(await first)
        self.assertFalse(dropped)
        self.assertEqual([entry[0] for entry in self.host.delivered], ["a!"])


if __name__ == '__main__':
    unittest.main()
