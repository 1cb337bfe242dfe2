"""System tray icon and desktop notifications."""
from __future__ import annotations

import os
import threading
from typing import Any, Callable, Optional

from .logger import get_logger

logger = get_logger(__name__)

try:
    import pystray
    from PIL import Image, ImageDraw
except ImportError:
    pystray = None
    Image = None
    ImageDraw = None

APP_NAME = "Correctify"


class TrayIcon:
    """Manages the system tray icon, its menu and notifications."""

    def __init__(
        self,
        on_toggle_sound: Optional[Callable[[bool], None]] = None,
        on_toggle_auto_paste: Optional[Callable[[bool], None]] = None,
        on_exit: Optional[Callable[[], None]] = None,
        sound_enabled: bool = True,
        auto_paste_enabled: bool = False,
    ):
        self.on_toggle_sound = on_toggle_sound
        self.on_toggle_auto_paste = on_toggle_auto_paste
        self.on_exit = on_exit
        self.sound_enabled = sound_enabled
        self.auto_paste_enabled = auto_paste_enabled
        self._image_cache: Optional[Any] = None

        self.icon = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def create_icon_image(self) -> Any:
        """Draw the tray image: a filled circle with the app initial."""
        if Image is None or ImageDraw is None:
            return None
        if self._image_cache is not None:
            return self._image_cache

        width = 64
        height = 64
        image = Image.new('RGBA', (width, height), (255, 255, 255, 0))
        draw = ImageDraw.Draw(image)
        padding = 6
        draw.ellipse(
            [padding, padding, width - padding, height - padding],
            fill="#2563eb",
            outline='#111827',
            width=2
        )
        text = "C"
        bbox = draw.textbbox((0, 0), text)
        text_width = bbox[2] - bbox[0]
        text_height = bbox[3] - bbox[1]
        position = ((width - text_width) // 2, (height - text_height) // 2)
        draw.text(position, text, fill='white')
        self._image_cache = image
        return image

    def create_menu(self) -> Any:
        if pystray is None:
            return None
        return pystray.Menu(
            pystray.MenuItem(
                "Sounds",
                self._on_toggle_sound,
                checked=lambda item: self.sound_enabled,
            ),
            pystray.MenuItem(
                "Auto-paste corrected text",
                self._on_toggle_auto_paste,
                checked=lambda item: self.auto_paste_enabled,
            ),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Exit", self._on_exit),
        )

    def start(self) -> None:
        """Start the tray icon on a background thread."""
        if pystray is None:
            logger.error("Cannot start tray - pystray not installed")
            return
        if self._running:
            return

        self._running = True
        self.icon = pystray.Icon(APP_NAME, self.create_icon_image(), APP_NAME, self.create_menu())
        threading.Thread(target=self._run_icon, daemon=True).start()
        logger.info("System tray icon started")

    def _run_icon(self) -> None:
        try:
            self.icon.run()
        except Exception as e:
            logger.error(f"Tray icon error: {e}")
            self._running = False

    def stop(self) -> None:
        if self.icon and self._running:
            self.icon.stop()
            self._running = False
            logger.info("System tray icon stopped")

    def update_flags(self, sound_enabled: bool, auto_paste_enabled: bool) -> None:
        self.sound_enabled = sound_enabled
        self.auto_paste_enabled = auto_paste_enabled
        if self.icon:
            self.icon.update_menu()

    def show_notification(self, title: str, message: str) -> None:
        """Show a tray notification, falling back to a message box or the log."""
        if self.icon and self._running:
            try:
                self.icon.notify(message, title)
                return
            except Exception as e:
                logger.error(f"Failed to show notification: {e}")
        self._fallback_notification(title, message)

    def _fallback_notification(self, title: str, message: str) -> None:
        if os.name == "nt":
            import ctypes

            def _show_box() -> None:
                try:
                    ctypes.windll.user32.MessageBoxW(  # type: ignore[attr-defined]
                        None,
                        message,
                        title,
                        0x00000040 | 0x00010000  # MB_ICONINFORMATION | MB_SETFOREGROUND
                    )
                except Exception as box_error:
                    logger.warning(f"Notification fallback failed: {box_error}")

            threading.Thread(target=_show_box, daemon=True).start()
            return

        logger.info(f"{title}: {message}")

    def _on_toggle_sound(self, icon, item) -> None:
        self.sound_enabled = not self.sound_enabled
        if self.on_toggle_sound:
            self.on_toggle_sound(self.sound_enabled)

    def _on_toggle_auto_paste(self, icon, item) -> None:
        self.auto_paste_enabled = not self.auto_paste_enabled
        if self.on_toggle_auto_paste:
            self.on_toggle_auto_paste(self.auto_paste_enabled)

    def _on_exit(self, icon, item) -> None:
        if self.on_exit:
            self.on_exit()
        self.stop()
