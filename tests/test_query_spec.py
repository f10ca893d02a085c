from __future__ import annotations

from pathlib import Path

import pytest

from winadmin_reports.errors import ConfigError
from winadmin_reports.pipeline.query import QuerySpec, read_identifier_file


def test_from_cli_requires_exactly_one_mode(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="none"):
        QuerySpec.from_cli(all_=False, ids=None, csv_path=None)

    with pytest.raises(ConfigError, match="--all, --ids"):
        QuerySpec.from_cli(all_=True, ids="a@x.com", csv_path=None)

    with pytest.raises(ConfigError):
        QuerySpec.from_cli(all_=False, ids="a@x.com", csv_path=tmp_path / "x.csv")


def test_from_cli_splits_and_strips_ids() -> None:
    spec = QuerySpec.from_cli(all_=False, ids=" a@x.com, ,b@x.com ", csv_path=None)

    assert spec.mode == "ids"
    assert spec.load_identifiers() == ["a@x.com", "b@x.com"]


def test_file_mode_missing_file_is_config_error(tmp_path: Path) -> None:
    spec = QuerySpec.from_file(tmp_path / "nope.csv")

    with pytest.raises(ConfigError, match="not found"):
        spec.validate()


def test_file_mode_empty_file_is_config_error(tmp_path: Path) -> None:
    path = tmp_path / "ids.csv"
    path.write_text("UserPrincipalName\n", encoding="utf-8")
    spec = QuerySpec.from_file(path)

    spec.validate()
    with pytest.raises(ConfigError, match="no identifiers"):
        spec.load_identifiers()


def test_identifier_file_prefers_upn_column_case_insensitive(tmp_path: Path) -> None:
    path = tmp_path / "ids.csv"
    path.write_text("Name,userprincipalname\nAlice,alice@x.com\nBlank,\nBob,bob@x.com\n", encoding="utf-8")

    assert read_identifier_file(path) == ["alice@x.com", "bob@x.com"]


def test_identifier_file_falls_back_to_first_column_and_strips_bom(tmp_path: Path) -> None:
    path = tmp_path / "ids.csv"
    path.write_bytes("﻿Mail,Dept\ncarol@x.com,IT\n".encode("utf-8"))

    assert read_identifier_file(path) == ["carol@x.com"]


def test_all_mode_has_no_static_identifiers() -> None:
    spec = QuerySpec.all_entities()
    spec.validate()

    with pytest.raises(ConfigError):
        spec.load_identifiers()
