"""Run the volume pipeline across every configuration source.

Sources and the volumes within them run strictly one after another. The
first failure of any kind ends the whole run; sources that already finished
are left as they are.
"""

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence, TextIO

from filelock import FileLock, Timeout

from ..__util__ import AbortError, LockError, log_heading
from ..config import (
    ConfigurationSource,
    EffectiveConfig,
    Resolution,
    discover_sources,
    filter_volume_args,
    resolve_config,
)
from ..config.loader import check_batch_arguments, has_volume_args
from .pipeline import VolumeResult, VolumeSyncPipeline

logger = logging.getLogger(__name__)

PipelineFactory = Callable[[Resolution], VolumeSyncPipeline]


def default_pipeline_factory(resolution: Resolution) -> VolumeSyncPipeline:
    return VolumeSyncPipeline(
        resolution.config, resolution.excludes, dry_run=resolution.dry_run
    )


@dataclass
class SourceReport:
    """Outcome of one batch item."""

    source: ConfigurationSource
    results: list[VolumeResult] = field(default_factory=list)
    error: Optional[AbortError] = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and all(r.ok for r in self.results)

    @property
    def failure(self) -> Optional[AbortError]:
        if self.error is not None:
            return self.error
        for result in self.results:
            if not result.ok:
                return result.failure
        return None


@dataclass
class BatchReport:
    sources: list[SourceReport] = field(default_factory=list)
    error: Optional[AbortError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and all(s.ok for s in self.sources)

    @property
    def failure(self) -> Optional[AbortError]:
        if self.error is not None:
            return self.error
        for source in self.sources:
            if not source.ok:
                return source.failure
        return None

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def volume_results(self) -> list[VolumeResult]:
        return [r for s in self.sources for r in s.results]


class BatchDriver:
    """Drive every configuration source in ``config_dir``.

    Args:
        config_dir: Directory searched for configuration sources
        argv: Volume arguments and flags for the batch items
        pipeline_factory: Builds the pipeline for a resolved source
        out: Stream receiving progress lines
        use_lock: Hold the run lock while running
    """

    def __init__(
        self,
        config_dir: Path | str | None = None,
        argv: Sequence[str] = (),
        defaults: Optional[EffectiveConfig] = None,
        pipeline_factory: PipelineFactory = default_pipeline_factory,
        out: Optional[TextIO] = None,
        use_lock: bool = True,
    ) -> None:
        self.config_dir = config_dir
        self.argv = list(argv)
        self.defaults = defaults or EffectiveConfig()
        self.pipeline_factory = pipeline_factory
        self.out = out
        self.use_lock = use_lock
        self._volumes_started = 0

    def _print(self, *args) -> None:
        print(*args, file=self.out or sys.stdout, flush=True)

    def sources(self) -> list[ConfigurationSource]:
        return discover_sources(self.config_dir)

    def resolve(self, source: ConfigurationSource) -> Optional[Resolution]:
        """Resolve ``source``, or return None if no volume argument applies to it."""
        argv = filter_volume_args(self.argv, source.pool)
        if has_volume_args(self.argv) and not has_volume_args(argv):
            return None
        return resolve_config(source, argv, self.defaults)

    def run(self) -> BatchReport:
        report = BatchReport()
        if not self.use_lock:
            self._run_sources(report)
            return report

        lock = FileLock(self.defaults.lock_file, timeout=0)
        try:
            lock.acquire()
        except Timeout:
            report.error = LockError(f"another run holds {self.defaults.lock_file}")
            logger.error(report.error.diagnostic())
            return report
        except OSError as e:
            report.error = LockError(f"cannot lock {self.defaults.lock_file}: {e}")
            logger.error(report.error.diagnostic())
            return report

        try:
            self._run_sources(report)
        finally:
            lock.release()
        return report

    def _run_sources(self, report: BatchReport) -> None:
        sources = self.sources()
        try:
            check_batch_arguments(self.argv, sources)
        except AbortError as e:
            report.error = e
            logger.error(e.diagnostic())
            return

        for source in sources:
            source_report = self.run_source(source)
            report.sources.append(source_report)
            if not source_report.ok:
                logger.error("Aborting run after failure in %s", source)
                return

    def run_source(self, source: ConfigurationSource) -> SourceReport:
        """Resolve and run one batch item, stopping at its first failure."""
        report = SourceReport(source)
        logger.info(log_heading(f"Source: {source}"))
        try:
            resolution = self.resolve(source)
        except AbortError as e:
            logger.error("%s: %s", source, e.diagnostic())
            report.error = e
            return report

        if resolution is None:
            logger.info("No requested volumes apply to %s, skipping", source)
            report.skipped = True
            return report

        if resolution.dry_run:
            logger.info("Dry run: rsync will not change %s", resolution.config.remote_host)

        pipeline = self.pipeline_factory(resolution)
        for volume in resolution.config.volumes:
            if self._volumes_started:
                self._print()
            self._volumes_started += 1
            self._print(f"syncing {volume}...")

            result = pipeline.run(volume)
            report.results.append(result)
            if not result.ok:
                break
            logger.info("%s mirrored in %.2fs", volume, result.duration_seconds)
        return report
