from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Union


class NagiosState(IntEnum):
    """Plugin states; the value is the process exit code Nagios expects."""

    OK = 0
    WARNING = 1
    CRITICAL = 2
    UNKNOWN = 3


@dataclass(frozen=True)
class NagiosResult:
    service: str
    state: NagiosState
    message: str
    perfdata: Dict[str, Union[int, float]] = field(default_factory=dict)

    @property
    def exit_code(self) -> int:
        return int(self.state)


def format_nagios(result: NagiosResult) -> str:
    """Render the single plugin output line: `SERVICE STATE - message | k=v ...`."""

    line = f"{result.service.upper()} {result.state.name} - {_one_line(result.message)}"
    if result.perfdata:
        perf = " ".join(f"{_perf_label(k)}={v}" for k, v in result.perfdata.items())
        line = f"{line} | {perf}"
    return line


def _one_line(text: str) -> str:
    # "|" starts perfdata for Nagios
    return " ".join(text.split()).replace("|", "/")


def _perf_label(label: str) -> str:
    if any(ch in label for ch in " ='"):
        return "'" + label.replace("'", "") + "'"
    return label
