"""ConfigStore — JSON file holding task config and run stats."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from autotask.config import settings
from autotask.scheduler.models import PluginConfig, Stats
from autotask.scheduler.normalize import sanitize_config

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


class ConfigStore:
    """Loads, sanitizes and persists the plugin config file.

    Singleton accessed via ``ConfigStore.get()``.  Pass an explicit *path*
    for test isolation (e.g. ``tmp_path / "autotask.json"``).
    """

    _instance: ConfigStore | None = None

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or settings.config_path
        self.config = PluginConfig()
        self.stats = Stats()

    @classmethod
    def get(cls) -> ConfigStore:
        """Return the shared ConfigStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    @property
    def path(self) -> Path:
        return self._path

    # -- Persistence -----------------------------------------------------------

    def load(self) -> PluginConfig:
        """Read the file, creating it with defaults when missing."""
        if not self._path.exists():
            self.config = PluginConfig()
            self.save()
            logger.debug("Config file not found, wrote defaults to %s", self._path)
            return self.config

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Failed to load config from %s, using defaults", self._path)
            self.config = PluginConfig()
            return self.config

        self.config = sanitize_config(raw)
        if isinstance(raw, dict) and isinstance(raw.get("stats"), dict):
            self.stats = Stats.from_dict(raw["stats"])
        logger.debug("Loaded config from %s (%d task(s))", self._path, len(self.config.tasks))
        return self.config

    def save(self) -> None:
        """Write config and stats back to disk. Errors are logged, not raised."""
        data = {**self.config.to_dict(), "stats": self.stats.to_dict()}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8"
            )
        except OSError:
            logger.exception("Failed to save config to %s", self._path)

    # -- Updates ---------------------------------------------------------------

    def replace(self, raw: Any) -> PluginConfig:
        """Swap in a whole new config (sanitized) and persist it."""
        self.config = sanitize_config(raw)
        self.save()
        return self.config

    def update(self, partial: dict[str, Any]) -> PluginConfig:
        """Merge flat keys into the current config (sanitized) and persist it."""
        merged = {**self.config.to_dict(), **partial}
        return self.replace(merged)
