from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import re
from typing import Any, Callable, Iterable, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Pattern:
    regex: re.Pattern[str]

    def __call__(self, path: Path) -> bool:
        return self.regex.search(str(path)) is not None


@dataclass(frozen=True)
class Predicate:
    func: Callable[[Path], bool]

    def __call__(self, path: Path) -> bool:
        return bool(self.func(path))


FileFilter = Union[Pattern, Predicate]

DEFAULT_FILTER = Pattern(re.compile(r"\.(png|jpeg|gif|jpg|bmp|svg)$", re.IGNORECASE))


def as_filter(value: Any) -> FileFilter | None:
    """Turn a user supplied filter into a Pattern or Predicate.

    Strings are compiled case-insensitively. Values of any other type
    disable filtering instead of raising.
    """
    if value is None or isinstance(value, (Pattern, Predicate)):
        return value
    if isinstance(value, str):
        return Pattern(re.compile(value, re.IGNORECASE))
    if isinstance(value, re.Pattern):
        return Pattern(value)
    if callable(value):
        return Predicate(value)
    logger.debug("unsupported filter %r, all files pass", value)
    return None


def filter_files(paths: Iterable[Path], file_filter: FileFilter | None) -> list[Path]:
    if file_filter is None:
        return list(paths)
    return [path for path in paths if file_filter(path)]
