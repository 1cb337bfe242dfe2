"""Desktop implementation of the native host.

The global hotkey fires on the keyboard library's thread. Capture runs on a
worker thread and captured text is handed to the asyncio loop, where the
pipeline's handlers live.
"""
from __future__ import annotations

import asyncio
import threading
from concurrent.futures import Future
from typing import Any, Dict, List, Optional

from . import clipboard
from .logger import get_logger
from .native_host import CORRECT_CLIPBOARD_TEXT, EventHandler, NativeHost, SoundType, Unlisten, to_hotkey_combo
from .tray_icon import TrayIcon

logger = get_logger(__name__)

try:
    import keyboard
except ImportError:
    keyboard = None  # type: ignore[assignment]

try:
    import winsound
except ImportError:
    winsound = None  # type: ignore[assignment]

SOUND_ALIASES = {
    SoundType.PROCESSING: "SystemAsterisk",
    SoundType.COMPLETED: "SystemExclamation",
}


def play_sound(sound_type: SoundType) -> None:
    if winsound is None:
        logger.debug(f"No sound backend; skipping {sound_type.value} sound")
        return
    winsound.PlaySound(SOUND_ALIASES[sound_type], winsound.SND_ALIAS | winsound.SND_ASYNC)


class DesktopHost(NativeHost):
    """Hotkey, clipboard, tray notifications and sounds on the desktop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, tray: Optional[TrayIcon] = None) -> None:
        self._loop = loop
        self._tray = tray
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._hotkey: Optional[Any] = None
        self._hotkey_combo: Optional[str] = None
        self._lock = threading.Lock()
        self.sound_enabled = True
        self.auto_paste_enabled = False

    @property
    def hotkey_combo(self) -> Optional[str]:
        return self._hotkey_combo

    def listen(self, event: str, handler: EventHandler) -> Unlisten:
        with self._lock:
            self._handlers.setdefault(event, []).append(handler)

        def unlisten() -> None:
            with self._lock:
                handlers = self._handlers.get(event, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unlisten

    def emit(self, event: str, payload: str) -> List[Future]:
        """Schedule every handler of ``event`` on the loop. Safe from any thread."""
        with self._lock:
            handlers = list(self._handlers.get(event, []))
        if not handlers:
            logger.warning(f"No listeners for {event}")
        return [asyncio.run_coroutine_threadsafe(handler(payload), self._loop) for handler in handlers]

    async def set_sound_enabled(self, enabled: bool) -> None:
        self.sound_enabled = enabled
        self._sync_tray()

    async def set_auto_paste_enabled(self, enabled: bool) -> None:
        self.auto_paste_enabled = enabled
        self._sync_tray()

    def _sync_tray(self) -> None:
        if self._tray:
            self._tray.update_flags(self.sound_enabled, self.auto_paste_enabled)

    async def update_shortcut(self, key: str, modifier: str) -> None:
        """Register the global shortcut, replacing any previous one.

        Raises:
            ValueError: If the shortcut cannot be translated
            RuntimeError: If the keyboard library is unavailable
        """
        combo = to_hotkey_combo(key, modifier)
        if keyboard is None:
            raise RuntimeError("keyboard is not installed; global shortcut unavailable")
        with self._lock:
            if self._hotkey is not None:
                keyboard.remove_hotkey(self._hotkey)
                self._hotkey = None
            self._hotkey = keyboard.add_hotkey(combo, self._on_hotkey)
            self._hotkey_combo = combo
        logger.info(f"Global shortcut registered: {combo}")

    def _on_hotkey(self) -> None:
        threading.Thread(target=self._capture_and_emit, daemon=True).start()

    def _capture_and_emit(self) -> None:
        text = clipboard.copy_selection()
        if not text:
            logger.info("Shortcut pressed with no text selected")
            self._notify("Correctify", "Select some text first, then press the shortcut.")
            return
        self.emit(CORRECT_CLIPBOARD_TEXT, text)

    async def handle_corrected_text(self, text: str, model: str, duration_ms: int, auto_paste: bool) -> None:
        await self._loop.run_in_executor(None, self._deliver, text, model, duration_ms, auto_paste)

    def _deliver(self, text: str, model: str, duration_ms: int, auto_paste: bool) -> None:
        if not clipboard.set_clipboard_text(text):
            self._notify("Correctify Error", "Corrected text could not be copied to the clipboard.")
            return
        pasted = auto_paste and clipboard.paste()
        if self.sound_enabled:
            play_sound(SoundType.COMPLETED)
        action = "pasted" if pasted else "copied to clipboard"
        self._notify("Text corrected", f"Corrected with {model} in {duration_ms / 1000:.1f}s and {action}.")

    async def play_sound_in_app(self, sound_type: SoundType) -> None:
        if self.sound_enabled:
            play_sound(SoundType(sound_type))

    async def show_notification(self, title: str, body: str) -> None:
        self._notify(title, body)

    def _notify(self, title: str, body: str) -> None:
        if self._tray:
            self._tray.show_notification(title, body)
        else:
            logger.info(f"{title}: {body}")

    def close(self) -> None:
        """Unregister the global shortcut."""
        with self._lock:
            if self._hotkey is not None and keyboard is not None:
                keyboard.remove_hotkey(self._hotkey)
            self._hotkey = None
            self._hotkey_combo = None
