from __future__ import annotations

from typing import Dict, List, Optional

import pytest

from winadmin_reports.errors import EntityFetchError, EntityNotFound
from winadmin_reports.sources.base import DirectorySource, EntityDetail, EntitySummary


class FakeDirectorySource(DirectorySource):
    """In-memory directory that records every call."""

    name = "fake"

    def __init__(
        self,
        details: List[EntityDetail],
        *,
        fetch_errors: Optional[Dict[str, Exception]] = None,
        list_error: Optional[Exception] = None,
        supports_enabled_filter: bool = False,
    ) -> None:
        self.details = {d.id: d for d in details}
        self.order = [d.id for d in details]
        self.fetch_errors = fetch_errors or {}
        self.list_error = list_error
        self.supports_enabled_filter = supports_enabled_filter
        self.calls: List[tuple] = []

    def list_entities(self, *, enabled_only: bool = False) -> List[EntitySummary]:
        self.calls.append(("list", enabled_only))
        if self.list_error is not None:
            raise self.list_error
        out = [
            EntitySummary(id=i, display_name=self.details[i].display_name, enabled=bool(self.details[i].enabled))
            for i in self.order
        ]
        if enabled_only and self.supports_enabled_filter:
            out = [e for e in out if e.enabled]
        return out

    def get_entity_detail(self, identifier: str) -> EntityDetail:
        self.calls.append(("detail", identifier))
        if identifier in self.fetch_errors:
            raise self.fetch_errors[identifier]
        if identifier not in self.details:
            raise EntityNotFound(identifier)
        return self.details[identifier]


def make_detail(upn: str, *, enabled: bool = True, methods: Optional[List[str]] = None, name: Optional[str] = None) -> EntityDetail:
    return EntityDetail(
        id=upn,
        display_name=name if name is not None else upn.split("@")[0].title(),
        enabled=enabled,
        methods=methods if methods is not None else ["#microsoft.graph.passwordAuthenticationMethod"],
    )


@pytest.fixture
def mixed_source() -> FakeDirectorySource:
    """3 enabled + 2 disabled users."""

    return FakeDirectorySource(
        [
            make_detail(
                "alice@x.com",
                methods=[
                    "#microsoft.graph.passwordAuthenticationMethod",
                    "#microsoft.graph.microsoftAuthenticatorAuthenticationMethod",
                ],
            ),
            make_detail("bob@x.com"),
            make_detail("carol@x.com", methods=["#microsoft.graph.fido2AuthenticationMethod"]),
            make_detail("dave@x.com", enabled=False),
            make_detail("erin@x.com", enabled=False),
        ]
    )


@pytest.fixture
def flaky_source() -> FakeDirectorySource:
    return FakeDirectorySource(
        [make_detail("a@x.com"), make_detail("b@x.com")],
        fetch_errors={"b@x.com": EntityFetchError("b@x.com", "HTTP 403: Access denied")},
    )
