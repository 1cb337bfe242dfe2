"""Contract between the correction core and the native host process.

The host owns the OS side (global hotkey, clipboard, notifications, paste
simulation). It talks to the core over two channels: an inbound event
carrying captured text, and outbound commands carrying results and
delivery flags.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Awaitable, Callable, Optional

# Inbound event: payload is the captured text.
CORRECT_CLIPBOARD_TEXT = "correct-clipboard-text"

EventHandler = Callable[[str], Awaitable[object]]
Unlisten = Callable[[], None]


class SoundType(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"


class NativeHost(ABC):
    """Invoke surface the core expects from the native host."""

    @abstractmethod
    def listen(self, event: str, handler: EventHandler) -> Unlisten:
        """Subscribe ``handler`` to ``event``; returns a callable that unsubscribes."""

    @abstractmethod
    async def set_sound_enabled(self, enabled: bool) -> None:
        ...

    @abstractmethod
    async def set_auto_paste_enabled(self, enabled: bool) -> None:
        ...

    @abstractmethod
    async def update_shortcut(self, key: str, modifier: str) -> None:
        ...

    @abstractmethod
    async def handle_corrected_text(self, text: str, model: str, duration_ms: int, auto_paste: bool) -> None:
        """Deliver a finished correction: notify, and paste when ``auto_paste`` is set."""

    @abstractmethod
    async def play_sound_in_app(self, sound_type: SoundType) -> None:
        ...

    @abstractmethod
    async def show_notification(self, title: str, body: str) -> None:
        ...


MODIFIER_ALIASES = {
    'cmdorctrl': 'ctrl',
    'commandorcontrol': 'ctrl',
    'cmdorcontrol': 'ctrl',
    'control': 'ctrl',
    'ctrl': 'ctrl',
    'command': 'ctrl',
    'cmd': 'ctrl',
    'super': 'windows',
    'meta': 'windows',
    'win': 'windows',
    'option': 'alt',
    'alt': 'alt',
    'shift': 'shift',
}


def to_hotkey_combo(key: str, modifier: Optional[str]) -> str:
    """
    Translate a shortcut in settings form (``"CmdOrCtrl+Shift"`` plus ``"]"``)
    into the keyboard library's combo form (``"ctrl+shift+]"``).

    Raises:
        ValueError: If the key is blank or a modifier is not recognised.
    """
    key_part = key.strip().lower()
    if not key_part:
        raise ValueError("Shortcut key cannot be empty")

    parts = []
    for raw in (modifier or "").split('+'):
        name = raw.strip().lower()
        if not name:
            continue
        if name not in MODIFIER_ALIASES:
            raise ValueError(f"Unknown shortcut modifier: {raw.strip()}")
        alias = MODIFIER_ALIASES[name]
        if alias not in parts:
            parts.append(alias)
    parts.append(key_part)
    return '+'.join(parts)
