"""Hotkey correction pipeline.

Receives captured text from the native host, corrects it with the current
settings and hands the result back for delivery. Every failure ends as a
notification; nothing propagates into the host.
"""
from __future__ import annotations

import itertools
import time
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional

from .exceptions import CorrectifyError
from .logger import get_logger, preview
from .models import provider_for_model
from .native_host import CORRECT_CLIPBOARD_TEXT, NativeHost, Unlisten
from .orchestrator import CorrectionOrchestrator
from .secure_keys import KeyStore

if TYPE_CHECKING:
    from .config_manager import ConfigManager, Settings

logger = get_logger(__name__)

ERROR_TITLE = "Correctify Error"


class PipelineState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    CORRECTING = "correcting"
    DELIVERING = "delivering"


class HotkeyPipeline:
    """
    Client side of the hotkey flow: ``Idle -> Listening -> Correcting ->
    Delivering -> Idle``.

    Overlapping captures are processed independently unless the
    ``hotkey_single_flight`` setting is on, in which case a capture that
    arrives while another is in flight is dropped.
    """

    def __init__(
        self,
        host: NativeHost,
        orchestrator: CorrectionOrchestrator,
        config: "ConfigManager",
        key_store: KeyStore,
    ) -> None:
        self._host = host
        self._orchestrator = orchestrator
        self._config = config
        self._key_store = key_store
        self._unlisten: Optional[Unlisten] = None
        self._flows: Dict[int, PipelineState] = {}
        self._flow_ids = itertools.count(1)

    @property
    def state(self) -> PipelineState:
        """State of the most recent in-flight capture, or the resting state."""
        if self._flows:
            return self._flows[max(self._flows)]
        return PipelineState.LISTENING if self._unlisten else PipelineState.IDLE

    async def start(self) -> None:
        """Push current settings to the host and subscribe to captured text.

        The subscription is made once and lives until :meth:`stop`.
        """
        if self._unlisten is not None:
            return
        await self.push_settings()
        self._unlisten = self._host.listen(CORRECT_CLIPBOARD_TEXT, self.handle_captured_text)
        logger.info("Hotkey pipeline listening")

    def stop(self) -> None:
        if self._unlisten is None:
            return
        self._unlisten()
        self._unlisten = None
        logger.info("Hotkey pipeline stopped")

    async def push_settings(self) -> None:
        """Send delivery flags and the shortcut to the host."""
        settings = self._config.snapshot()
        commands = (
            ("sound", self._host.set_sound_enabled(settings.sound_enabled)),
            ("auto-paste", self._host.set_auto_paste_enabled(settings.auto_paste_enabled)),
            ("shortcut", self._host.update_shortcut(settings.shortcut_key, settings.shortcut_modifier)),
        )
        for name, command in commands:
            try:
                await command
            except Exception as e:
                logger.warning(f"Failed to push {name} setting to host: {e}")

    async def handle_captured_text(self, text: str) -> bool:
        """
        Correct one capture and deliver it.

        Returns:
            True if corrected text was handed to the host
        """
        settings = self._config.snapshot()
        if settings.hotkey_single_flight and self._flows:
            logger.info("Correction already in flight; ignoring capture")
            return False

        flow_id = next(self._flow_ids)
        self._flows[flow_id] = PipelineState.CORRECTING
        try:
            return await self._run(flow_id, text, settings)
        except Exception as e:
            logger.exception("Hotkey correction failed unexpectedly")
            await self._notify(ERROR_TITLE, f"Failed to correct text: {e}")
            return False
        finally:
            del self._flows[flow_id]

    async def _run(self, flow_id: int, text: str, settings: "Settings") -> bool:
        logger.debug(f"Captured {len(text or '')} chars: '{preview(text or '')}'")
        provider = provider_for_model(settings.model_id)
        if not await self._key_store.get_provider_key(provider):
            logger.error(f"No {provider.label} API key configured")
            await self._notify(ERROR_TITLE, f"Please configure your {provider.label} API key in settings first!")
            return False

        custom_rules = settings.custom_rules if settings.custom_rules.strip() else None
        started = time.monotonic()
        try:
            result = await self._orchestrator.submit(
                text,
                settings.writing_style,
                custom_rules,
                settings.model_id,
            )
        except CorrectifyError as e:
            await self._notify(ERROR_TITLE, f"Failed to correct text: {e}")
            return False
        duration_ms = int((time.monotonic() - started) * 1000)

        self._flows[flow_id] = PipelineState.DELIVERING
        await self._host.handle_corrected_text(
            result.text,
            settings.model_id,
            duration_ms,
            settings.auto_paste_enabled,
        )
        logger.info(f"Delivered correction from {settings.model_id} in {duration_ms}ms")
        return True

    async def _notify(self, title: str, body: str) -> None:
        try:
            await self._host.show_notification(title, body)
        except Exception as e:
            logger.warning(f"Failed to show notification: {e}")
