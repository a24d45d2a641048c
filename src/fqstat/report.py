"""Merge statistic fragments into one flat report and render it as JSON."""
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, TextIO

from .registry import ReportKeyCollisionError
from .stats import Statistic


def assemble_report(statistics: Iterable[Statistic]) -> Dict[str, Any]:
    """Collect ``report()`` from each statistic into one mapping.

    Keys keep the order in which the statistics are given.  A key
    reported twice raises :class:`ReportKeyCollisionError` rather than
    letting the later fragment win.
    """
    report: Dict[str, Any] = {}
    owners: Dict[str, str] = {}
    for stat in statistics:
        for key, value in stat.report().items():
            if key in owners:
                raise ReportKeyCollisionError(key, owners[key], stat.name)
            owners[key] = stat.name
            report[key] = value
    return report


def render_report(report: Dict[str, Any], fh: TextIO, indent: int | None = 2) -> None:
    """Write *report* to *fh* as JSON followed by a newline."""
    json.dump(report, fh, indent=indent)
    fh.write("\n")
