from __future__ import annotations

import logging
import os
import tempfile
from configparser import ConfigParser
from dataclasses import dataclass, replace
from pathlib import Path

from clientdash_web.domain.errors import SettingsValidationError

logger = logging.getLogger(__name__)

LANGUAGES = ("english", "spanish")
SECTION = "user"


@dataclass(frozen=True)
class UserSettings:
    perplexity_api_key: str = ""
    openai_api_key: str = ""
    language: str = "english"

    def masked(self) -> "UserSettings":
        """Copy safe to render back into a page."""
        return replace(
            self,
            perplexity_api_key=_mask(self.perplexity_api_key),
            openai_api_key=_mask(self.openai_api_key),
        )


def _mask(key: str) -> str:
    if not key:
        return ""
    return "*" * max(len(key) - 4, 4) + key[-4:]


@dataclass
class UserSettingsStore:
    """
    Explicit home for the user's API keys and UI language.
    load() never fails on a missing file; save() validates before writing.
    """
    path: Path

    def load(self) -> UserSettings:
        cfg = ConfigParser(interpolation=None)
        if not cfg.read(str(self.path), encoding="utf-8-sig"):
            return UserSettings()

        s = cfg[SECTION] if cfg.has_section(SECTION) else {}
        settings = UserSettings(
            perplexity_api_key=(s.get("perplexity_api_key", "") or "").strip(),
            openai_api_key=(s.get("openai_api_key", "") or "").strip(),
            language=(s.get("language", "english") or "").strip().lower() or "english",
        )
        try:
            self.validate(settings)
        except SettingsValidationError:
            logger.warning("Ignoring invalid user settings in %s", self.path)
            return UserSettings()
        return settings

    @staticmethod
    def validate(settings: UserSettings) -> None:
        if settings.language not in LANGUAGES:
            raise SettingsValidationError(f"Unsupported language: {settings.language!r}")

        for label, key in (
            ("Perplexity API key", settings.perplexity_api_key),
            ("OpenAI API key", settings.openai_api_key),
        ):
            if key and any(ch.isspace() for ch in key):
                raise SettingsValidationError(f"{label} must not contain whitespace.")

    def save(self, settings: UserSettings) -> None:
        self.validate(settings)

        cfg = ConfigParser(interpolation=None)
        cfg[SECTION] = {
            "perplexity_api_key": settings.perplexity_api_key,
            "openai_api_key": settings.openai_api_key,
            "language": settings.language,
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                cfg.write(f)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

        logger.info("Saved user settings to %s", self.path)
