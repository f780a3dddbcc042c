"""Run command: mirror every configured volume."""

import argparse
import dataclasses
import logging
import sys
import time

from .. import __util__
from ..__logger__ import create_logger
from ..config import DEFAULTS
from ..core import BatchDriver, BatchReport
from .common import get_log_level

logger = logging.getLogger(__name__)

PROG = "lvm-mirror"


def build_driver(args: argparse.Namespace, batch_argv: list[str]) -> BatchDriver:
    defaults = DEFAULTS
    if getattr(args, "lock_file", None):
        defaults = dataclasses.replace(defaults, lock_file=args.lock_file)
    return BatchDriver(
        config_dir=getattr(args, "config_dir", None),
        argv=batch_argv,
        defaults=defaults,
    )


def report_failure(report: BatchReport) -> None:
    """Write the short prefixed diagnostic for a failed run to stderr."""
    failure = report.failure
    if failure is None:
        return
    print(f"{PROG}: {failure.diagnostic()}", file=sys.stderr)


def execute_run(args: argparse.Namespace, batch_argv: list[str]) -> int:
    """Execute the mirror run.

    Args:
        args: Parsed tool options
        batch_argv: Dry-run flag and volume arguments for the batch items

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    create_logger(get_log_level(args))

    logger.info(__util__.log_heading(f"Started at {time.ctime()}"))
    report = build_driver(args, batch_argv).run()
    logger.info(__util__.log_heading(f"Finished at {time.ctime()}"))

    results = report.volume_results()
    done = sum(1 for r in results if r.ok)
    if report.ok:
        logger.info("All %d volume(s) mirrored successfully", done)
    else:
        logger.warning("Run aborted: %d volume(s) mirrored before the failure", done)
        report_failure(report)

    return report.exit_code
