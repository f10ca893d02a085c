from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Literal, Optional

import pandas as pd

from winadmin_reports.errors import ConfigError

QueryMode = Literal["all", "ids", "file"]

ID_COLUMNS = ("userprincipalname", "upn", "id", "identity")


@dataclass(frozen=True)
class QuerySpec:
    """Which entities one run reports on. Exactly one mode is active."""

    mode: QueryMode
    identifiers: List[str] = field(default_factory=list)
    path: Optional[Path] = None

    @classmethod
    def all_entities(cls) -> "QuerySpec":
        return cls(mode="all")

    @classmethod
    def explicit(cls, identifiers: Iterable[str]) -> "QuerySpec":
        return cls(mode="ids", identifiers=_clean(identifiers))

    @classmethod
    def from_file(cls, path: Path) -> "QuerySpec":
        return cls(mode="file", path=path)

    @classmethod
    def from_cli(cls, *, all_: bool, ids: Optional[str], csv_path: Optional[Path]) -> "QuerySpec":
        """Build from the three mutually exclusive CLI inputs."""

        chosen = [name for name, on in (("--all", all_), ("--ids", ids is not None), ("--csv", csv_path is not None)) if on]
        if len(chosen) != 1:
            given = ", ".join(chosen) if chosen else "none"
            raise ConfigError(f"exactly one of --all, --ids, --csv is required (given: {given})")

        if all_:
            return cls.all_entities()
        if ids is not None:
            return cls.explicit(ids.split(","))
        assert csv_path is not None
        return cls.from_file(csv_path)

    def validate(self) -> None:
        """Pre-flight check; touches only the local filesystem."""

        if self.mode == "all":
            if self.identifiers or self.path is not None:
                raise ConfigError("query 'all' takes no identifiers or file")
        elif self.mode == "ids":
            if self.path is not None:
                raise ConfigError("query 'ids' takes no file")
            if not self.identifiers:
                raise ConfigError("query 'ids' needs at least one identifier")
        elif self.mode == "file":
            if self.identifiers:
                raise ConfigError("query 'file' takes no inline identifiers")
            if self.path is None or not self.path.is_file():
                raise ConfigError(f"identifier file not found: {self.path}")
        else:
            raise ConfigError(f"unknown query mode: {self.mode!r}")

    def load_identifiers(self) -> List[str]:
        """Identifiers for 'ids'/'file' modes, in input order."""

        if self.mode == "ids":
            return list(self.identifiers)
        if self.mode == "file":
            assert self.path is not None
            ids = read_identifier_file(self.path)
            if not ids:
                raise ConfigError(f"identifier file contains no identifiers: {self.path}")
            return ids
        raise ConfigError("query 'all' has no static identifier list")


def read_identifier_file(path: Path) -> List[str]:
    """Read identifiers from a CSV with a header row.

    Uses the UserPrincipalName/UPN/Id/Identity column (case-insensitive),
    otherwise the first column.
    """

    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False, skipinitialspace=True, encoding="utf-8-sig")
    except pd.errors.EmptyDataError:
        return []
    except (OSError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise ConfigError(f"identifier file unreadable: {path}: {exc}") from exc

    if df.columns.empty:
        return []

    lookup = {str(c).strip().lower(): c for c in df.columns}
    column = next((lookup[name] for name in ID_COLUMNS if name in lookup), df.columns[0])

    return _clean(df[column].tolist())


def _clean(values: Iterable[str]) -> List[str]:
    out = []
    for v in values:
        s = str(v).strip()
        if s:
            out.append(s)
    return out
