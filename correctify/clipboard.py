"""Clipboard access and copy/paste simulation for the desktop host."""
from __future__ import annotations

import time
from typing import Optional

from .logger import get_logger

logger = get_logger(__name__)

MAX_CLIPBOARD_RETRIES = 5
CLIPBOARD_RETRY_DELAY = 0.05
COPY_SETTLE_DELAY = 0.15

try:
    import keyboard
except ImportError:
    keyboard = None  # type: ignore[assignment]

try:
    import win32clipboard
    import win32con
except ImportError:
    win32clipboard = None  # type: ignore[assignment]
    win32con = None  # type: ignore[assignment]


def get_clipboard_text() -> Optional[str]:
    """Get text from the Windows clipboard."""
    if win32clipboard is None or win32con is None:
        return None

    for attempt in range(MAX_CLIPBOARD_RETRIES):
        try:
            win32clipboard.OpenClipboard()
            try:
                if win32clipboard.IsClipboardFormatAvailable(win32con.CF_UNICODETEXT):
                    return win32clipboard.GetClipboardData(win32con.CF_UNICODETEXT)
                return None
            finally:
                win32clipboard.CloseClipboard()
        except Exception as clipboard_error:
            logger.debug(f"Clipboard read attempt {attempt + 1} failed: {clipboard_error}")
            time.sleep(CLIPBOARD_RETRY_DELAY)
    return None


def set_clipboard_text(text: str) -> bool:
    """Set text to the Windows clipboard."""
    if win32clipboard is None or win32con is None:
        return False

    for attempt in range(MAX_CLIPBOARD_RETRIES):
        try:
            win32clipboard.OpenClipboard()
            try:
                win32clipboard.EmptyClipboard()
                win32clipboard.SetClipboardData(win32con.CF_UNICODETEXT, text)
                return True
            finally:
                win32clipboard.CloseClipboard()
        except Exception as clipboard_error:
            logger.error(f"Failed to set clipboard (attempt {attempt + 1}): {clipboard_error}")
            time.sleep(CLIPBOARD_RETRY_DELAY)
    return False


def copy_selection() -> Optional[str]:
    """
    Copy the current selection in the focused application and return it.

    Returns:
        The selected text, or None when nothing new reached the clipboard
    """
    if keyboard is None:
        logger.error("keyboard is not installed; cannot copy selection")
        return None

    before = get_clipboard_text()
    keyboard.send("ctrl+c")
    time.sleep(COPY_SETTLE_DELAY)
    text = get_clipboard_text()
    if not text or not text.strip():
        return None
    if text == before:
        logger.debug("Clipboard unchanged after copy; using existing clipboard text")
    return text


def paste() -> bool:
    """Paste the clipboard into the focused application."""
    if keyboard is None:
        logger.error("keyboard is not installed; cannot paste")
        return False
    try:
        keyboard.send("ctrl+v")
        return True
    except Exception as e:
        logger.warning(f"Failed to send paste keystroke: {e}")
        return False
