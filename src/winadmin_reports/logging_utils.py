from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class RunContext:
    run_id: str
    command: str
    started_at_utc: datetime


def new_run_context(command: str) -> RunContext:
    return RunContext(run_id=str(uuid.uuid4()), command=command, started_at_utc=datetime.now(timezone.utc))


def configure_logging(verbose: bool = False) -> None:
    """Route library log records (retries, per-entity failures) to stderr."""

    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)


def default_log_path(logs_dir: Path, now_utc: Optional[datetime] = None) -> Path:
    ts = now_utc or datetime.now(timezone.utc)
    return logs_dir / f"run-{ts.strftime('%Y%m%d')}.jsonl"


class JsonlLogger:
    """Run log in JSONL form, one event object per line.

    Every event is stamped with the run id and command of its RunContext.
    Paths and datetimes are stringified.
    """

    def __init__(self, path: Path, ctx: RunContext) -> None:
        self.path = path
        self.ctx = ctx
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, event: str, **fields: Any) -> None:
        record: Dict[str, Any] = {"event": event, "run_id": self.ctx.run_id, "command": self.ctx.command}
        record.update(fields)
        line = json.dumps(record, ensure_ascii=False, sort_keys=True, default=str)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")

    def summary(self, *, status_counts: Dict[str, int], **extra: Any) -> Dict[str, Any]:
        event = run_summary_event(ctx=self.ctx, status_counts=status_counts)
        event.update(extra)
        self.log(**event)
        return event


def run_summary_event(*, ctx: RunContext, status_counts: Dict[str, int]) -> Dict[str, Any]:
    ended_at_utc = datetime.now(timezone.utc)
    duration_s = (ended_at_utc - ctx.started_at_utc).total_seconds()

    return {
        "event": "run_summary",
        "started_at": ctx.started_at_utc.isoformat(),
        "ended_at": ended_at_utc.isoformat(),
        "duration_s": duration_s,
        "status_counts": status_counts,
    }
