from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from winadmin_reports.errors import ConfigError, SourceUnavailable


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

# The unnamed "(Default)" value; reading it tells whether a key exists.
DEFAULT_VALUE = ""

_HIVE_ALIASES = {
    "HKLM": "HKEY_LOCAL_MACHINE",
    "HKCU": "HKEY_CURRENT_USER",
    "HKCR": "HKEY_CLASSES_ROOT",
    "HKU": "HKEY_USERS",
}


def split_key_path(path: str) -> tuple[str, str]:
    """Split `HKLM\\SOFTWARE\\...` into (canonical hive, subkey)."""

    cleaned = path.replace("/", "\\").strip("\\")
    hive, _, subkey = cleaned.partition("\\")
    hive = hive.upper().rstrip(":")
    hive = _HIVE_ALIASES.get(hive, hive)
    return hive, subkey


class RegistryReader(ABC):
    """Read-only registry access. `read_value` returns MISSING for absent keys or values.

    For DEFAULT_VALUE, an existing key without a default value yields None
    rather than MISSING.
    """

    @abstractmethod
    def read_value(self, path: str, name: str) -> Any:
        ...


class WinRegReader(RegistryReader):
    """Live registry via the stdlib `winreg` module (Windows only)."""

    def __init__(self) -> None:
        if sys.platform != "win32":
            raise SourceUnavailable("live registry access requires Windows; configure registry_snapshot_path")
        import winreg

        self._winreg = winreg

    def read_value(self, path: str, name: str) -> Any:
        winreg = self._winreg
        hive_name, subkey = split_key_path(path)
        hive = getattr(winreg, hive_name, None)
        if hive is None:
            raise ConfigError(f"unknown registry hive in {path!r}")

        try:
            # 64-bit view even under a 32-bit interpreter (WOW64 redirection)
            with winreg.OpenKey(hive, subkey, 0, winreg.KEY_READ | winreg.KEY_WOW64_64KEY) as key:
                try:
                    value, _ = winreg.QueryValueEx(key, name)
                except FileNotFoundError:
                    return None if name == DEFAULT_VALUE else MISSING
                return value
        except FileNotFoundError:
            return MISSING
        except PermissionError as exc:
            raise SourceUnavailable(f"access denied reading {path}: {exc}") from exc


class SnapshotRegistryReader(RegistryReader):
    """Registry values from a mapping {key path: {value name: data}}.

    Key paths compare case-insensitively and hive aliases (HKLM, ...) are
    expanded. A key listed with an empty mapping exists but has no values.
    """

    def __init__(self, keys: Mapping[str, Optional[Mapping[str, Any]]]) -> None:
        self._keys: Dict[str, Dict[str, Any]] = {}
        for path, values in keys.items():
            if values is not None and not isinstance(values, Mapping):
                raise ConfigError(f"registry snapshot key {path!r} must map value names to data")
            self._keys[_canonical(str(path))] = {str(k).lower(): v for k, v in (values or {}).items()}

    @classmethod
    def from_yaml(cls, path: Path) -> "SnapshotRegistryReader":
        if not path.exists():
            raise SourceUnavailable(f"registry snapshot not found: {path}")
        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in registry snapshot {path}: {exc}") from exc
        if not isinstance(parsed, dict):
            raise ConfigError("registry snapshot must be a mapping of key paths to values")
        return cls(parsed)

    def read_value(self, path: str, name: str) -> Any:
        values = self._keys.get(_canonical(path))
        if values is None:
            return MISSING
        if name.lower() not in values:
            return None if name == DEFAULT_VALUE else MISSING
        return values[name.lower()]


def _canonical(path: str) -> str:
    hive, subkey = split_key_path(path)
    return f"{hive}\\{subkey}".lower()
