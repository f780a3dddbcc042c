"""Config commands: inspect resolved configuration."""

import argparse
import logging
import sys

from .. import __util__
from ..__logger__ import create_logger
from ..config.loader import check_batch_arguments, generate_example_config
from .common import get_log_level
from .run import PROG, build_driver

logger = logging.getLogger(__name__)


def execute_example_config(args: argparse.Namespace) -> int:
    """Print an example configuration source."""
    print(generate_example_config())
    return 0


def execute_show_config(args: argparse.Namespace, batch_argv: list[str]) -> int:
    """Print what every source resolves to, without touching any volume.

    Args:
        args: Parsed tool options
        batch_argv: Dry-run flag and volume arguments for the batch items

    Returns:
        Exit code
    """
    create_logger(get_log_level(args))
    driver = build_driver(args, batch_argv)

    sources = driver.sources()
    try:
        check_batch_arguments(driver.argv, sources)
    except __util__.AbortError as e:
        print(f"{PROG}: {e.diagnostic()}", file=sys.stderr)
        return 1

    for source in sources:
        print(f"Source: {source}")
        if source.pool:
            print(f"  Pool: {source.pool}")
        try:
            resolution = driver.resolve(source)
        except __util__.AbortError as e:
            print(f"{PROG}: {e.diagnostic()}", file=sys.stderr)
            return 1

        if resolution is None:
            print("  (no requested volumes apply, skipped)")
            print("")
            continue

        config = resolution.config
        print(f"  Remote: {config.remote_host} via {config.remote_shell!r}")
        print(f"  Volume group: {config.volume_group}")
        size = config.snapshot_size or "(thin only)"
        print(f"  Snapshot: {config.snapshot_name} size {size}")
        print(f"  Mount point: {config.mount_point}")
        print(f"  Dry run: {'yes' if resolution.dry_run else 'no'}")
        print(f"  Transfer args: {' '.join(config.transfer_args)}")
        print("  Volumes:")
        for volume in config.volumes:
            print(f"    {volume} -> {config.destination_for(volume)}")
            for pattern in resolution.excludes.patterns_for(volume):
                print(f"      exclude {pattern}")
        print("")

    return 0
