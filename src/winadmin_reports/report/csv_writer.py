from __future__ import annotations

import csv
import os
from pathlib import Path
from typing import Dict, Iterable, List

import pandas as pd


def write_report(rows: Iterable[Dict[str, str]], columns: List[str], path: Path) -> int:
    """Write rows as CSV with a header in the given column order.

    The file is written to a temp sibling and moved into place with
    os.replace, so an existing report is never left half-written.
    Returns the number of data rows.
    """

    df = pd.DataFrame(list(rows), columns=columns, dtype=str)
    df = df.fillna("")

    tmp_path = path.with_name(path.name + ".tmp")
    try:
        df.to_csv(tmp_path, index=False, quoting=csv.QUOTE_MINIMAL, lineterminator="\n", encoding="utf-8")
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()

    return len(df)
