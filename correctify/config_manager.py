"""Configuration manager for persistent settings."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .logger import get_logger
from .models import DEFAULT_MODEL_ID
from .prompts import WritingStyle

logger = get_logger(__name__)

_STYLE_VALUES = {style.value for style in WritingStyle}

# Configuration validation schema
CONFIG_SCHEMA: Dict[str, Tuple[type, Callable[[Any], bool], str]] = {
    "selected_model": (str, lambda x: len(x.strip()) > 0, "Must be a non-empty string"),
    "writing_style": (str, lambda x: x in _STYLE_VALUES, f"Must be one of {sorted(_STYLE_VALUES)}"),
    "custom_rules": (str, lambda x: True, "Must be a string"),
    "sound_enabled": (bool, lambda x: True, "Must be a boolean"),
    "autostart_enabled": (bool, lambda x: True, "Must be a boolean"),
    "auto_paste_enabled": (bool, lambda x: True, "Must be a boolean"),
    "shortcut_key": (str, lambda x: len(x.strip()) > 0, "Must be a non-empty string"),
    "shortcut_modifier": (str, lambda x: len(x.strip()) > 0, "Must be a non-empty string"),
    "request_timeout": ((int, float), lambda x: 0 < x <= 300, "Must be between 0 and 300 seconds"),
    "hotkey_single_flight": (bool, lambda x: True, "Must be a boolean"),
}


def validate_config_value(key: str, value: Any) -> Tuple[bool, str]:
    """Validate a single configuration value.

    Args:
        key: Configuration key
        value: Value to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if key not in CONFIG_SCHEMA:
        return True, ""  # Unknown keys are allowed (for forward compatibility)

    expected_type, validator, error_msg = CONFIG_SCHEMA[key]

    if isinstance(value, bool) and expected_type is not bool:
        return False, f"{key}: {error_msg} (got bool)"
    if not isinstance(value, expected_type):
        return False, f"{key}: {error_msg} (got {type(value).__name__})"

    if not validator(value):
        return False, f"{key}: {error_msg} (value: {value})"

    return True, ""


def validate_config(config: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Validate entire configuration dictionary.

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    for key, value in config.items():
        is_valid, error_msg = validate_config_value(key, value)
        if not is_valid:
            errors.append(error_msg)

    return len(errors) == 0, errors


@dataclass(frozen=True)
class Settings:
    """Settings as read at the start of one correction attempt."""

    model_id: str
    writing_style: WritingStyle
    custom_rules: str
    sound_enabled: bool
    autostart_enabled: bool
    auto_paste_enabled: bool
    shortcut_key: str
    shortcut_modifier: str
    request_timeout: float
    hotkey_single_flight: bool


class ConfigManager:
    """
    Manages application settings with JSON persistence.

    Settings live in ``~/.correctify/correctify_config.json`` and survive
    restarts until changed, reset, or the file is deleted. API keys are not
    settings; they belong to a key store.
    """

    def __init__(self, config_file: str = "correctify_config.json", config_dir: Optional[Path] = None):
        """Initialize config manager."""
        self.config_dir = config_dir or Path.home() / ".correctify"
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file = self.config_dir / config_file
        self.config = self._load_config()

    def _load_config(self) -> dict:
        """Load configuration from file, filling in missing keys."""
        data = None
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to load config: {e}")

        if not isinstance(data, dict):
            data = {}

        merged = self.default_config()
        merged.update(data)
        return merged

    def load_config(self) -> None:
        """Re-read settings from disk."""
        self.config = self._load_config()

    @staticmethod
    def default_config() -> dict:
        """Return default configuration."""
        return {
            "selected_model": DEFAULT_MODEL_ID,
            "writing_style": WritingStyle.GRAMMAR.value,
            "custom_rules": "",
            "sound_enabled": True,
            "autostart_enabled": False,
            "auto_paste_enabled": False,
            "shortcut_key": "]",
            "shortcut_modifier": "CmdOrCtrl+Shift",
            "request_timeout": 30.0,
            "hotkey_single_flight": False,
        }

    def save(self) -> bool:
        """Save current configuration to file with validation."""
        is_valid, errors = validate_config(self.config)
        if not is_valid:
            logger.warning(f"Config validation errors: {'; '.join(errors)}")
            logger.warning("Saving anyway, but some values may be invalid")

        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=2)
            return True
        except OSError as e:
            logger.error(f"Failed to save config: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self.config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value and save."""
        self.config[key] = value
        self.save()

    def get_selected_model(self) -> str:
        value = self.get("selected_model", DEFAULT_MODEL_ID)
        return value if isinstance(value, str) and value.strip() else DEFAULT_MODEL_ID

    def set_selected_model(self, model_id: str) -> None:
        self.set("selected_model", model_id)

    def get_writing_style(self) -> WritingStyle:
        """Get the saved style; unknown values fall back to grammar."""
        value = self.get("writing_style", WritingStyle.GRAMMAR.value)
        if value in _STYLE_VALUES:
            return WritingStyle(value)
        return WritingStyle.GRAMMAR

    def set_writing_style(self, style: WritingStyle | str) -> None:
        self.set("writing_style", WritingStyle(style).value)

    def get_custom_rules(self) -> str:
        value = self.get("custom_rules", "")
        return value if isinstance(value, str) else ""

    def set_custom_rules(self, rules: str) -> None:
        self.set("custom_rules", rules)

    def is_sound_enabled(self) -> bool:
        return bool(self.get("sound_enabled", True))

    def set_sound_enabled(self, enabled: bool) -> None:
        self.set("sound_enabled", enabled)

    def is_autostart_enabled(self) -> bool:
        return bool(self.get("autostart_enabled", False))

    def set_autostart_enabled(self, enabled: bool) -> None:
        self.set("autostart_enabled", enabled)

    def is_auto_paste_enabled(self) -> bool:
        return bool(self.get("auto_paste_enabled", False))

    def set_auto_paste_enabled(self, enabled: bool) -> None:
        self.set("auto_paste_enabled", enabled)

    def get_shortcut(self) -> Tuple[str, str]:
        """Return ``(key, modifier)`` for the global correction shortcut."""
        return self.get("shortcut_key", "]"), self.get("shortcut_modifier", "CmdOrCtrl+Shift")

    def set_shortcut(self, key: str, modifier: str) -> None:
        self.config["shortcut_key"] = key
        self.config["shortcut_modifier"] = modifier
        self.save()

    def get_request_timeout(self) -> float:
        value = self.get("request_timeout", 30.0)
        is_valid, _ = validate_config_value("request_timeout", value)
        return float(value) if is_valid else 30.0

    def snapshot(self) -> Settings:
        """Read every setting once into an immutable :class:`Settings`."""
        key, modifier = self.get_shortcut()
        return Settings(
            model_id=self.get_selected_model(),
            writing_style=self.get_writing_style(),
            custom_rules=self.get_custom_rules(),
            sound_enabled=self.is_sound_enabled(),
            autostart_enabled=self.is_autostart_enabled(),
            auto_paste_enabled=self.is_auto_paste_enabled(),
            shortcut_key=key,
            shortcut_modifier=modifier,
            request_timeout=self.get_request_timeout(),
            hotkey_single_flight=bool(self.get("hotkey_single_flight", False)),
        )

    def reset_to_defaults(self) -> bool:
        """Reset all settings to default values."""
        self.config = self.default_config()
        success = self.save()
        if success:
            logger.info("Configuration reset to defaults")
        return success
