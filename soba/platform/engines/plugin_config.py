"""Per-plugin settings read from PLUGIN_<CODE>_<KEY> environment variables."""

from __future__ import annotations

import os
import re
from typing import List, Mapping, Optional

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class PluginConfigError(KeyError):
    """Raised when a plugin setting is missing or malformed."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "plugin configuration error"


def normalize_key(value: str) -> str:
    """Trim, uppercase and replace non-alphanumerics with underscores."""
    return re.sub(r"[^A-Z0-9]+", "_", value.strip().upper())


class PluginConfigReader:
    def __init__(self, plugin_code: str, environ: Optional[Mapping[str, str]] = None) -> None:
        self.plugin_code = plugin_code
        self.prefix = f"PLUGIN_{normalize_key(plugin_code)}_"
        self._environ = os.environ if environ is None else environ

    def env_key(self, key: str) -> str:
        return f"{self.prefix}{normalize_key(key)}"

    def get_optional(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._environ.get(self.env_key(key))
        if value is None or value.strip() == "":
            return default
        return value

    def get_required(self, key: str) -> str:
        value = self.get_optional(key)
        if value is None:
            raise PluginConfigError(f"Missing required environment variable: {self.env_key(key)}")
        return value

    def get_bool(self, key: str) -> bool:
        raw = self.get_required(key).strip().lower()
        if raw in _TRUE_VALUES:
            return True
        if raw in _FALSE_VALUES:
            return False
        raise PluginConfigError(f"Invalid boolean for {self.env_key(key)}: {raw!r}")

    def get_int(self, key: str) -> int:
        raw = self.get_required(key)
        try:
            return int(raw)
        except ValueError as exc:
            raise PluginConfigError(f"Invalid integer for {self.env_key(key)}: {raw!r}") from exc

    def get_csv(self, key: str) -> List[str]:
        return [item.strip() for item in self.get_required(key).split(",") if item.strip()]


__all__ = ["PluginConfigError", "PluginConfigReader", "normalize_key"]
