from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

from .notation import NotationStyle

__all__ = [
    "DEFAULT_SETTINGS",
    "Settings",
    "SettingsChange",
    "SettingsError",
    "load_settings",
    "save_settings",
]

SETTINGS_FILENAME = ".autofuri.json"

# Keys written by the editor plugin this format is shared with.
_CAMEL_KEYS = {
    "readingMode": "reading_mode",
    "editingMode": "editing_mode",
    "notationStyle": "notation_style",
    "splitOkurigana": "split_okurigana",
}


class SettingsError(ValueError):
    """Raised when a settings payload carries an invalid value."""


@dataclass(frozen=True)
class Settings:
    notation_style: NotationStyle = NotationStyle.CURLY
    reading_mode: bool = True
    editing_mode: bool = False
    split_okurigana: bool = False

    @classmethod
    def from_payload(cls, payload: object) -> "Settings":
        if not isinstance(payload, Mapping):
            return cls()
        values: dict[str, Any] = {}
        for raw_key, value in payload.items():
            key = _CAMEL_KEYS.get(raw_key, raw_key)
            if key == "notation_style":
                try:
                    values[key] = NotationStyle.parse(value)
                except ValueError as exc:
                    raise SettingsError(str(exc)) from exc
            elif key in {"reading_mode", "editing_mode", "split_okurigana"}:
                if not isinstance(value, bool):
                    raise SettingsError(f"{raw_key} must be a boolean, got {value!r}")
                values[key] = value
        return cls(**values)

    def to_payload(self) -> dict[str, object]:
        return {
            "notationStyle": self.notation_style.value,
            "readingMode": self.reading_mode,
            "editingMode": self.editing_mode,
            "splitOkurigana": self.split_okurigana,
        }

    def merged(self, patch: Mapping[str, object]) -> "Settings":
        return Settings.from_payload({**self.to_payload(), **patch})


DEFAULT_SETTINGS = Settings()


@dataclass(frozen=True)
class SettingsChange:
    previous: Settings
    current: Settings
    changed: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def between(cls, previous: Settings, current: Settings) -> "SettingsChange":
        changed = {
            f.name for f in fields(Settings) if getattr(previous, f.name) != getattr(current, f.name)
        }
        return cls(previous=previous, current=current, changed=frozenset(changed))

    @property
    def patterns_invalidated(self) -> bool:
        return "notation_style" in self.changed

    @property
    def needs_reading_refresh(self) -> bool:
        return bool(self.changed & {"reading_mode", "notation_style", "split_okurigana"})

    @property
    def needs_live_reconfigure(self) -> bool:
        return bool(self.changed)


def load_settings(path: Path) -> Settings:
    """Read settings from ``path``; a missing or unreadable file gives the defaults."""
    if not path.exists():
        return DEFAULT_SETTINGS
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return DEFAULT_SETTINGS
    return Settings.from_payload(payload)


def save_settings(path: Path, settings: Settings) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(settings.to_payload(), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    return path
