from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from .filters import DEFAULT_FILTER, FileFilter, as_filter

_MISSING = object()


@dataclass(frozen=True)
class RunConfig:
    root: Path
    out_dir: Path = Path("dist")
    file_filter: FileFilter | None = DEFAULT_FILTER
    verbose: bool = True
    disable: bool = False
    codecs: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    max_workers: int | None = None

    @property
    def output_path(self) -> Path:
        return self.root / self.out_dir

    @classmethod
    def from_options(
        cls,
        root: Path | str,
        out_dir: Path | str = "dist",
        options: Mapping[str, Any] | None = None,
    ) -> "RunConfig":
        """Build a config from plugin-style options.

        ``disable``, ``filter``, ``verbose`` and ``max_workers`` are read as
        run settings; every other key is treated as a codec setting and kept
        verbatim for the codec registry.
        """
        options = dict(options or {})
        raw_filter = options.pop("filter", _MISSING)
        file_filter = DEFAULT_FILTER if raw_filter is _MISSING else as_filter(raw_filter)
        return cls(
            root=Path(root).resolve(),
            out_dir=Path(out_dir),
            file_filter=file_filter,
            verbose=bool(options.pop("verbose", True)),
            disable=bool(options.pop("disable", False)),
            max_workers=options.pop("max_workers", None),
            codecs=MappingProxyType(options),
        )


@dataclass(frozen=True)
class FileTask:
    path: Path
    mtime: float
    original_size: int


@dataclass(frozen=True)
class CompressionResult:
    path: Path
    old_size: int
    new_size: int

    @property
    def ratio(self) -> float:
        if not self.old_size:
            return 0.0
        return self.new_size / self.old_size - 1


class Report:
    """Insertion-ordered results of one run, keyed by file path."""

    def __init__(self) -> None:
        self._results: dict[Path, CompressionResult] = {}
        self._lock = Lock()

    def add(self, result: CompressionResult) -> None:
        with self._lock:
            self._results[result.path] = result

    def get(self, path: Path) -> CompressionResult | None:
        return self._results.get(path)

    def results(self) -> list[CompressionResult]:
        with self._lock:
            return list(self._results.values())

    def __contains__(self, path: object) -> bool:
        return path in self._results

    def __iter__(self) -> Iterator[CompressionResult]:
        return iter(self.results())

    def __len__(self) -> int:
        return len(self._results)

    @property
    def total_old_size(self) -> int:
        return sum(result.old_size for result in self.results())

    @property
    def total_new_size(self) -> int:
        return sum(result.new_size for result in self.results())


def iter_files(root: Path) -> list[Path]:
    root = Path(root)
    if not root.exists():
        raise FileNotFoundError(f"No such directory: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")
    root = root.resolve()
    files = []
    for path in root.rglob("*"):
        if path.is_file():
            files.append(path)
    return files
