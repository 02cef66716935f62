from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from .cache import PROCESS_CACHE, MtimeCache
from .codecs import build_pipeline, get_engine_status
from .compress import compress_files
from .filters import filter_files
from .models import Report, RunConfig, iter_files
from .report import emit_report

logger = logging.getLogger(__name__)


class ImageminPlugin:
    """Post-build hook that recompresses images in the build output.

    ``config_resolved`` is called once the build tool knows its root and
    output directory; ``close_bundle`` once all output has been written.
    """

    name = "imgmin"

    def __init__(self, options: Mapping[str, Any] | None = None, cache: MtimeCache | None = None) -> None:
        self.options = dict(options or {})
        self.cache = PROCESS_CACHE if cache is None else cache
        self.config: RunConfig | None = None
        logger.debug("plugin options: %s", self.options)

    @property
    def disabled(self) -> bool:
        return bool(self.options.get("disable", False))

    def config_resolved(self, root: Path | str, out_dir: Path | str = "dist") -> RunConfig:
        self.config = RunConfig.from_options(root, out_dir, self.options)
        logger.debug("resolved config: %s", self.config)
        return self.config

    def close_bundle(self) -> Report | None:
        if self.disabled:
            return None
        if self.config is None:
            raise RuntimeError("close_bundle called before config_resolved")
        return run(self.config, self.cache)


def run(config: RunConfig, cache: MtimeCache | None = None) -> Report | None:
    if config.disable:
        return None
    try:
        files = iter_files(config.output_path)
    except OSError as exc:
        logger.debug("cannot list %s: %s", config.output_path, exc)
        return Report()
    logger.debug("files: %s", files)
    if not files:
        return Report()
    files = filter_files(files, config.file_filter)
    pipeline = build_pipeline(config.codecs)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("engines: %s", get_engine_status(pipeline))
    report = compress_files(files, pipeline, cache, config.max_workers)
    if config.verbose:
        emit_report(report, config.output_path.resolve(), config.out_dir)
    return report
