"""Low-level INI parsing helpers for configuration management."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping, Optional
import configparser
import os
import sys

SETTINGS_FILENAME = "settings.ini"


class ConfigError(ValueError):
    """Raised when settings.ini holds a value that cannot be used."""
    pass


class ConfigBackend:
    """Encapsulates discovery and parsing of settings.ini."""

    def __init__(self, ini_path: Optional[str] = None) -> None:
        base_dir = os.path.dirname(sys.argv[0])
        self._path = Path(ini_path or (Path(base_dir) / SETTINGS_FILENAME))

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Dict[str, Dict[str, str]]:
        parser = configparser.ConfigParser(inline_comment_prefixes=(";", "#"))
        parser.read(self._path, encoding="utf-8")
        data: Dict[str, Dict[str, str]] = {}
        for section in parser.sections():
            data[section] = dict(parser.items(section))
        return data

    def get_option(
        self,
        data: Mapping[str, Mapping[str, str]],
        section: str,
        option: str,
        fallback: str = "",
    ) -> str:
        section_map = data.get(section)
        if section_map is None:
            return fallback
        return section_map.get(option, fallback)

    def get_int(
        self,
        data: Mapping[str, Mapping[str, str]],
        section: str,
        option: str,
        fallback: int,
    ) -> int:
        raw = self.get_option(data, section, option, "").strip()
        if not raw:
            return fallback
        try:
            return int(raw)
        except ValueError:
            raise ConfigError(f"[{section}] {option} must be an integer, got '{raw}'") from None

    def get_float(
        self,
        data: Mapping[str, Mapping[str, str]],
        section: str,
        option: str,
        fallback: Optional[float],
    ) -> Optional[float]:
        raw = self.get_option(data, section, option, "").strip()
        if not raw:
            return fallback
        try:
            return float(raw)
        except ValueError:
            raise ConfigError(f"[{section}] {option} must be a number, got '{raw}'") from None
