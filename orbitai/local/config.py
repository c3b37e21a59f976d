import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Tuple

import orbitai.settings as default_settings

log = logging.getLogger(__name__)


def _positive(value):
    if value <= 0:
        raise ValueError("must be greater than zero")
    return value

def _port(value):
    if not 0 < value < 65536:
        raise ValueError("must be a TCP port between 1 and 65535")
    return value

def _mode(value):
    if str(value).strip().lower() not in ("train", "inference", "infer"):
        raise ValueError("must be 'train' or 'inference'")
    return str(value).strip().lower()

# Checks applied after type coercion, for settings with a restricted domain.
VALIDATORS: Dict[str, Callable[[Any], Any]] = {
    "LEARNING_INTERVAL": _positive,
    "LEARNING_ITERATIONS": _positive,
    "DATA_LOG_MIN_INTERVAL": _positive,
    "MOCHI_PORT": _port,
    "EXPERIMENT_MODE": _mode,
}


def coerce_setting(key: str, current: Any, value: Any) -> Any:
    """
    Converts a raw value (console string or JSON value) to the type of the
    current value of a setting, then validates it.

    :raises ValueError: If the value can't be converted or is out of range.
    """
    if isinstance(current, bool):
        new_value = str(value).lower() in ('true', '1', 't', 'yes', 'y')
    elif isinstance(current, Path):
        new_value = Path(value)
    elif current is not None:
        try:
            new_value = type(current)(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"expected a value of type {type(current).__name__}") from e
    else:
        new_value = value
    validator = VALIDATORS.get(key)
    return validator(new_value) if validator else new_value


class MergedSettings:
    """
    Attribute access to every application setting.

    Precedence, lowest first:
    1. Constants of `orbitai/settings.py`.
    2. Environment and `.env` values, already read by `settings.py`.
    3. `overrides.json`, for the keys listed in `MODIFIABLE_SETTINGS` only.

    Learning sessions read these values when they are created, so a change
    applies to the next session.
    """

    def __init__(self, overrides_path: Path = default_settings.OVERRIDES_JSON_PATH) -> None:
        self.OVERRIDES_JSON_PATH: Path = Path(overrides_path)
        self._lock = threading.Lock()
        for key in dir(default_settings):
            if key.isupper() and key != "OVERRIDES_JSON_PATH":
                setattr(self, key, getattr(default_settings, key))
        self._apply_overrides(self._read_overrides())

    def _read_overrides(self) -> Dict[str, Any]:
        if not self.OVERRIDES_JSON_PATH.exists():
            return {}
        try:
            with self.OVERRIDES_JSON_PATH.open('r') as f:
                overrides = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            log.error(f"Failed to load overrides file '{self.OVERRIDES_JSON_PATH}', using defaults: {e}")
            return {}
        if not isinstance(overrides, dict):
            log.error(f"Overrides file '{self.OVERRIDES_JSON_PATH}' must contain a JSON object, using defaults")
            return {}
        log.info(f"Loading runtime configuration overrides from {self.OVERRIDES_JSON_PATH}")
        return overrides

    def _apply_overrides(self, overrides: Dict[str, Any]) -> None:
        for key, value in overrides.items():
            if key not in self.MODIFIABLE_SETTINGS:
                log.warning(f"Ignoring override of '{key}', it is unknown or not modifiable")
                continue
            try:
                setattr(self, key, coerce_setting(key, getattr(self, key, None), value))
            except ValueError as e:
                log.warning(f"Ignoring override {key}={value!r}: {e}")
                continue
            log.debug(f"Overridden setting: {key} = {value}")

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self, key, default)

    def modifiable_settings(self) -> Dict[str, Any]:
        """Returns the current values of every runtime-modifiable setting."""
        return {key: getattr(self, key, None) for key in sorted(self.MODIFIABLE_SETTINGS)}

    def update_setting(self, key: str, value: Any) -> Tuple[bool, str]:
        """
        Changes a modifiable setting and persists every modifiable setting
        to the overrides file.

        :param key: The setting name.
        :param value: The raw new value.
        :return: A tuple of (success, message).
        """
        with self._lock:
            if key not in self.MODIFIABLE_SETTINGS:
                message = f"Setting '{key}' is not modifiable."
                log.warning(f"Rejected config update: {message}")
                return False, message

            try:
                new_value = coerce_setting(key, getattr(self, key, None), value)
            except ValueError as e:
                message = f"Invalid value '{value}' for '{key}': {e}"
                log.error(f"Config update failed: {message}")
                return False, message

            setattr(self, key, new_value)
            self.save_overrides(self.modifiable_settings())
            message = f"Setting '{key}' updated to '{new_value}'. It applies to the next learning session."
            log.info(message)
            return True, message

    def save_overrides(self, overrides_to_save: Dict[str, Any]) -> None:
        """
        Writes the modifiable settings among `overrides_to_save` to the overrides file.
        """
        filtered = {key: value for key, value in overrides_to_save.items() if key in self.MODIFIABLE_SETTINGS}
        if not filtered:
            log.warning("No modifiable settings provided to save.")
            return
        try:
            self.OVERRIDES_JSON_PATH.parent.mkdir(parents=True, exist_ok=True)
            with self.OVERRIDES_JSON_PATH.open('w') as f:
                json.dump(filtered, f, indent=4, default=str)
        except OSError as e:
            log.error(f"Failed to write overrides file '{self.OVERRIDES_JSON_PATH}': {e}")
            return
        log.info(f"Configuration overrides saved to {self.OVERRIDES_JSON_PATH}")


effective_settings = MergedSettings()
