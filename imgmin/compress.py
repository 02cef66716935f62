from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
import logging
from pathlib import Path
from typing import Iterable

from .cache import PROCESS_CACHE, MtimeCache
from .codecs import CodecAdapter
from .errors import CodecError
from .models import CompressionResult, FileTask, Report

logger = logging.getLogger(__name__)


def compress_files(
    files: Iterable[Path],
    pipeline: tuple[CodecAdapter, ...],
    cache: MtimeCache | None = None,
    max_workers: int | None = None,
) -> Report:
    """Compress every stale file in place, concurrently.

    One worker per file unless ``max_workers`` caps the pool. A file that
    fails is logged and left out of the report; it never stops the others.
    With an empty pipeline nothing is read, written or cached.
    """
    cache = PROCESS_CACHE if cache is None else cache
    files = list(files)
    report = Report()
    if not files:
        return report
    if not pipeline:
        logger.debug("no codec enabled, %d files left untouched", len(files))
        return report
    workers = len(files) if max_workers is None else max(1, min(max_workers, len(files)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="imgmin") as executor:
        futures = {
            executor.submit(compress_file, path, pipeline, cache, report): path
            for path in files
        }
        for future in as_completed(futures):
            try:
                future.result()
            except Exception:
                logger.exception("imagemin error: %s", futures[future])
    return report


def compress_file(
    path: Path,
    pipeline: tuple[CodecAdapter, ...],
    cache: MtimeCache,
    report: Report,
) -> CompressionResult | None:
    try:
        stat = path.stat()
        if not cache.should_process(path, stat.st_mtime):
            logger.debug("unchanged since last run: %s", path)
            return None
        content = path.read_bytes()
        task = FileTask(path, stat.st_mtime, len(content))
        for adapter in pipeline:
            content = adapter.compress(content)
        path.write_bytes(content)
    except (CodecError, OSError) as exc:
        logger.error("imagemin error: %s (%s)", path, exc)
        return None
    cache.mark_processed(path)
    result = CompressionResult(task.path, task.original_size, len(content))
    report.add(result)
    return result
