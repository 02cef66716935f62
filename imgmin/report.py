from __future__ import annotations

import logging
import math
from pathlib import Path

from .models import Report

logger = logging.getLogger(__name__)

HEADER = "✨ [imgmin] - compressed image resource successfully: "


def percent(ratio: float) -> int:
    # Rounding first keeps 1.2 - 1 from flooring to 19.
    return math.floor(round(100 * ratio, 9))


def format_percent(ratio: float) -> str:
    value = percent(ratio)
    if value > 0:
        return f"+{value}%"
    return f"{value}%"


def display_name(path: Path, base: Path | None) -> str:
    if base is not None and path.is_relative_to(base):
        return path.relative_to(base).as_posix()
    return path.as_posix()


def render_report(
    report: Report, base: Path | None = None, out_dir: Path | str | None = None
) -> list[str]:
    results = report.results()
    names = [display_name(result.path, base) for result in results]
    ratios = [format_percent(result.ratio) for result in results]
    name_width = max((len(name) for name in names), default=0)
    ratio_width = max((len(ratio) for ratio in ratios), default=0)
    if out_dir is not None:
        prefix = f"{Path(out_dir).as_posix()}/"
    elif base is not None:
        prefix = f"{base.name}/"
    else:
        prefix = ""
    lines = ["", HEADER]
    for result, name, ratio in zip(results, names, ratios):
        sizes = f"{result.old_size / 1024:.2f}kb / tiny: {result.new_size / 1024:.2f}kb"
        lines.append(f"{prefix}{name.ljust(name_width)}  {ratio.rjust(ratio_width)}  {sizes}")
    lines.append("")
    return lines


def summary_line(report: Report) -> str:
    old_size = report.total_old_size
    new_size = report.total_new_size
    ratio = new_size / old_size - 1 if old_size else 0.0
    return (
        f"{len(report)} files, {old_size / 1024:.2f}kb -> {new_size / 1024:.2f}kb "
        f"({format_percent(ratio)})"
    )


def emit_report(
    report: Report,
    base: Path | None = None,
    out_dir: Path | str | None = None,
    log: logging.Logger = logger,
) -> None:
    for line in render_report(report, base, out_dir):
        log.info(line)
    if len(report):
        log.info(summary_line(report))
