from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

from winadmin_reports.errors import EntityFetchError, EntityNotFound, SourceUnavailable
from winadmin_reports.sources.base import DirectorySource, EntityDetail, EntitySummary


class MsolSnapshotSource(DirectorySource):
    """Legacy backend reading an MSOnline export.

    Expected file: JSON list (or {"value": [...]}) produced by

        Get-MsolUser -All | Select UserPrincipalName,DisplayName,BlockCredential,
            StrongAuthenticationMethods | ConvertTo-Json -Depth 4

    The file is loaded lazily on first use; UPN lookups are case-insensitive.
    """

    name = "msol_snapshot"
    supports_enabled_filter = False

    def __init__(self, path: Path) -> None:
        self.path = path
        self._users: List[Dict[str, Any]] = []
        self._by_upn: Dict[str, Dict[str, Any]] = {}
        self._loaded = False

    def _load(self) -> None:
        if self._loaded:
            return

        if not self.path.exists():
            raise SourceUnavailable(f"MSOnline snapshot not found: {self.path}")

        try:
            parsed = json.loads(self.path.read_text(encoding="utf-8-sig"))
        except (OSError, ValueError) as exc:
            raise SourceUnavailable(f"MSOnline snapshot unreadable: {self.path}: {exc}") from exc

        if isinstance(parsed, dict):
            # ConvertTo-Json emits a bare object for a single user
            parsed = parsed.get("value", [parsed])
        if not isinstance(parsed, list):
            raise SourceUnavailable("MSOnline snapshot must be a JSON list of users")

        for user in parsed:
            if not isinstance(user, dict):
                continue
            upn = user.get("UserPrincipalName")
            if not upn:
                continue
            self._users.append(user)
            self._by_upn[str(upn).lower()] = user

        self._loaded = True

    def list_entities(self, *, enabled_only: bool = False) -> List[EntitySummary]:
        self._load()
        out = [
            EntitySummary(
                id=str(u["UserPrincipalName"]),
                display_name=u.get("DisplayName"),
                enabled=not bool(u.get("BlockCredential", False)),
            )
            for u in self._users
        ]
        # no server-side filter; exporter filters, but honour the flag for direct callers
        if enabled_only:
            out = [e for e in out if e.enabled]
        return out

    def get_entity_detail(self, identifier: str) -> EntityDetail:
        self._load()
        user = self._by_upn.get(identifier.strip().lower())
        if user is None:
            raise EntityNotFound(identifier, "user not found in MSOnline snapshot")

        raw_methods = user.get("StrongAuthenticationMethods") or []
        if isinstance(raw_methods, dict):
            raw_methods = [raw_methods]
        if not isinstance(raw_methods, list):
            raise EntityFetchError(identifier, "StrongAuthenticationMethods is malformed")

        methods: List[str] = []
        default_method = None
        for m in raw_methods:
            if not isinstance(m, dict) or not m.get("MethodType"):
                continue
            methods.append(str(m["MethodType"]))
            if m.get("IsDefault"):
                default_method = str(m["MethodType"])

        block = user.get("BlockCredential")
        return EntityDetail(
            id=str(user["UserPrincipalName"]),
            display_name=user.get("DisplayName"),
            enabled=None if block is None else not bool(block),
            methods=methods,
            default_method=default_method,
        )
