"""
Client-side preferences that survive restarts (currently the UI language).
"""

from __future__ import annotations

import json
import locale
import logging
import os
from collections.abc import Awaitable, Callable
from pathlib import Path

logger = logging.getLogger(__name__)

ENGLISH = "en_US"
CHINESE = "zh_CN"
LANGUAGES = {ENGLISH: "English", CHINESE: "中文"}


def resolve_language(stored: str | None = None, locale_name: str | None = None) -> str:
    """
    Pick the language from a stored value, else from a locale string.

    Anything mentioning ``zh`` maps to Chinese; everything else, including no
    information at all, is English.
    """
    candidate = stored or locale_name or ""
    if "en" in candidate:
        return ENGLISH
    if "zh" in candidate:
        return CHINESE
    return ENGLISH


def system_locale() -> str | None:
    for var in ("LC_ALL", "LC_MESSAGES", "LANG"):
        value = os.environ.get(var)
        if value:
            return value
    current, _ = locale.getlocale()
    return current


class LanguagePreference:
    """The selected language, optionally persisted to a JSON state file."""

    def __init__(
        self,
        *,
        state_file: Path | None = None,
        default: str | None = None,
        on_change: Callable[[], Awaitable[object]] | None = None,
    ) -> None:
        self.state_file = state_file
        self.on_change = on_change
        self.language = resolve_language(self._load() or default, system_locale())

    def _load(self) -> str | None:
        if self.state_file is None or not self.state_file.exists():
            return None
        try:
            data = json.loads(self.state_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable preferences file %s: %s", self.state_file, exc)
            return None
        value = data.get("language") if isinstance(data, dict) else None
        return value if value in LANGUAGES else None

    def _save(self) -> None:
        if self.state_file is None:
            return
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        self.state_file.write_text(json.dumps({"language": self.language}), encoding="utf-8")

    async def change(self, language: str) -> bool:
        """Store a new language and trigger the reload action. Returns ``False`` if unchanged."""
        if language not in LANGUAGES:
            raise ValueError(f"Unsupported language {language!r}; expected one of {sorted(LANGUAGES)}")
        if language == self.language:
            return False
        self.language = language
        self._save()
        logger.info("Language switched to %s", language)
        if self.on_change is not None:
            await self.on_change()
        return True


__all__ = ["CHINESE", "ENGLISH", "LANGUAGES", "LanguagePreference", "resolve_language"]
