from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from winadmin_reports.errors import EntityFetchError, EntityNotFound, SourceUnavailable
from winadmin_reports.pipeline.counts import count_users
from winadmin_reports.pipeline.export import export_mfa_status
from winadmin_reports.pipeline.query import QuerySpec
from winadmin_reports.sources.msol_snapshot import MsolSnapshotSource

AS_OF = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

USERS = [
    {
        "UserPrincipalName": "Alice@Contoso.com",
        "DisplayName": "Alice",
        "BlockCredential": False,
        "StrongAuthenticationMethods": [
            {"MethodType": "OneWaySMS", "IsDefault": False},
            {"MethodType": "PhoneAppNotification", "IsDefault": True},
        ],
    },
    {
        "UserPrincipalName": "bob@contoso.com",
        "DisplayName": "Bob",
        "BlockCredential": True,
        "StrongAuthenticationMethods": [{"MethodType": "PhoneAppOTP", "IsDefault": True}],
    },
    {
        "UserPrincipalName": "carol@contoso.com",
        "DisplayName": "Carol",
        "BlockCredential": False,
        "StrongAuthenticationMethods": [],
    },
]


def _write(tmp_path: Path, payload: Any, name: str = "msol.json") -> Path:
    path = tmp_path / name
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_lookup_is_case_insensitive(tmp_path: Path) -> None:
    source = MsolSnapshotSource(_write(tmp_path, USERS))

    detail = source.get_entity_detail("  alice@CONTOSO.com ")

    assert detail.id == "Alice@Contoso.com"
    assert detail.display_name == "Alice"


def test_unknown_upn_is_not_found(tmp_path: Path) -> None:
    source = MsolSnapshotSource(_write(tmp_path, USERS))

    with pytest.raises(EntityNotFound) as excinfo:
        source.get_entity_detail("ghost@contoso.com")

    assert excinfo.value.identifier == "ghost@contoso.com"


def test_single_user_object_is_accepted(tmp_path: Path) -> None:
    source = MsolSnapshotSource(_write(tmp_path, USERS[0]))

    entities = source.list_entities()

    assert [e.id for e in entities] == ["Alice@Contoso.com"]


def test_value_wrapper_is_accepted(tmp_path: Path) -> None:
    source = MsolSnapshotSource(_write(tmp_path, {"value": USERS}))

    assert [e.id for e in source.list_entities()] == [
        "Alice@Contoso.com",
        "bob@contoso.com",
        "carol@contoso.com",
    ]


def test_default_method_and_single_method_object(tmp_path: Path) -> None:
    user = {
        "UserPrincipalName": "dave@contoso.com",
        "BlockCredential": False,
        # ConvertTo-Json collapses a one-element array into an object
        "StrongAuthenticationMethods": {"MethodType": "TwoWayVoiceMobile", "IsDefault": True},
    }
    source = MsolSnapshotSource(_write(tmp_path, [user]))

    detail = source.get_entity_detail("dave@contoso.com")

    assert detail.methods == ["TwoWayVoiceMobile"]
    assert detail.default_method == "TwoWayVoiceMobile"
    assert detail.display_name is None


def test_is_default_picks_default_method(tmp_path: Path) -> None:
    source = MsolSnapshotSource(_write(tmp_path, USERS))

    detail = source.get_entity_detail("alice@contoso.com")

    assert detail.methods == ["OneWaySMS", "PhoneAppNotification"]
    assert detail.default_method == "PhoneAppNotification"


def test_malformed_methods_is_fetch_error(tmp_path: Path) -> None:
    user = {"UserPrincipalName": "eve@contoso.com", "StrongAuthenticationMethods": "PhoneAppOTP"}
    source = MsolSnapshotSource(_write(tmp_path, [user]))

    with pytest.raises(EntityFetchError):
        source.get_entity_detail("eve@contoso.com")


def test_block_credential_maps_to_enabled(tmp_path: Path) -> None:
    users = USERS + [{"UserPrincipalName": "frank@contoso.com"}]
    source = MsolSnapshotSource(_write(tmp_path, users))

    assert source.get_entity_detail("alice@contoso.com").enabled is True
    assert source.get_entity_detail("bob@contoso.com").enabled is False
    assert source.get_entity_detail("frank@contoso.com").enabled is None

    enabled = [e.id for e in source.list_entities(enabled_only=True)]
    assert "bob@contoso.com" not in enabled
    assert len(source.list_entities(enabled_only=False)) == 4


def test_missing_file_is_source_unavailable(tmp_path: Path) -> None:
    source = MsolSnapshotSource(tmp_path / "missing.json")

    with pytest.raises(SourceUnavailable):
        source.list_entities()


def test_invalid_json_is_source_unavailable(tmp_path: Path) -> None:
    path = tmp_path / "msol.json"
    path.write_text("[{not json", encoding="utf-8")

    with pytest.raises(SourceUnavailable):
        MsolSnapshotSource(path).list_entities()


def test_non_list_json_is_source_unavailable(tmp_path: Path) -> None:
    with pytest.raises(SourceUnavailable):
        MsolSnapshotSource(_write(tmp_path, "just a string")).get_entity_detail("a@contoso.com")


def test_utf8_bom_is_tolerated(tmp_path: Path) -> None:
    # Out-File -Encoding utf8 on Windows PowerShell writes a BOM
    path = tmp_path / "msol.json"
    path.write_bytes(b"\xef\xbb\xbf" + json.dumps(USERS).encode("utf-8"))

    assert len(MsolSnapshotSource(path).list_entities()) == 3


def test_export_over_snapshot_filters_disabled_client_side(tmp_path: Path) -> None:
    source = MsolSnapshotSource(_write(tmp_path, USERS))
    out = tmp_path / "report.csv"

    result = export_mfa_status(source, QuerySpec.all_entities(), out, as_of=AS_OF)

    df = pd.read_csv(out, dtype=str, keep_default_na=False)
    assert result.rows_written == 2
    assert result.failed == 0
    assert list(df["UserPrincipalName"]) == ["Alice@Contoso.com", "carol@contoso.com"]
    assert list(df["MfaStatus"]) == ["Enabled", "Disabled"]
    assert list(df["DefaultMethod"]) == ["AuthenticatorApp", "None"]
    assert df.loc[0, "Methods"] == "AuthenticatorApp;Phone"


def test_export_over_snapshot_include_disabled(tmp_path: Path) -> None:
    source = MsolSnapshotSource(_write(tmp_path, USERS))
    out = tmp_path / "report.csv"

    result = export_mfa_status(source, QuerySpec.all_entities(), out, include_disabled=True, as_of=AS_OF)

    df = pd.read_csv(out, dtype=str, keep_default_na=False)
    assert result.rows_written == 3
    assert df.loc[df["UserPrincipalName"] == "bob@contoso.com", "AccountEnabled"].item() == "False"


def test_count_users_over_snapshot(tmp_path: Path) -> None:
    counts = count_users(MsolSnapshotSource(_write(tmp_path, USERS)))

    assert (counts.total, counts.enabled, counts.disabled) == (3, 2, 1)
