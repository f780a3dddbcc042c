"""CLI dispatcher.

Options understood here configure the tool itself (verbosity, where to find
configuration sources). Everything else, the dry-run flag and the volume
arguments, belongs to the batch items and is validated when each source is
resolved.
"""

import argparse
import sys

from .. import __version__
from ..config.loader import default_config_dir
from .common import add_verbosity_args

PROG = "lvm-mirror"


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        usage=f"{PROG} [options] [-n] [volume|pool:volume ...]",
        description="Mirror LVM logical volumes to a remote host through snapshots",
        epilog=(
            "Volume arguments replace the configured volume list. A 'pool:' "
            "prefix limits an argument to the config-<pool>.toml source. "
            "-n/--dry-run is passed through to rsync."
        ),
        allow_abbrev=False,
    )

    add_verbosity_args(parser)

    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )
    parser.add_argument(
        "-c",
        "--config-dir",
        metavar="DIR",
        default=None,
        help=f"Directory holding configuration sources (default: {default_config_dir()})",
    )
    parser.add_argument(
        "--lock-file",
        metavar="FILE",
        default=None,
        help="Lock file preventing overlapping runs",
    )
    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Print the resolved configuration of every source and exit",
    )
    parser.add_argument(
        "--example-config",
        action="store_true",
        help="Print an example configuration file and exit",
    )
    return parser


def parse_args(argv: list[str]) -> tuple[argparse.Namespace, list[str]]:
    """Split ``argv`` into tool options and batch item arguments."""
    parser = create_parser()
    return parser.parse_known_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for lvm-mirror CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    args, batch_argv = parse_args(argv)

    if args.version:
        print(f"{PROG} {__version__}")
        return 0

    if args.example_config:
        from .config_cmd import execute_example_config

        return execute_example_config(args)

    if args.show_config:
        from .config_cmd import execute_show_config

        return execute_show_config(args, batch_argv)

    from .run import execute_run

    return execute_run(args, batch_argv)


def run() -> None:
    """Console script entry point."""
    sys.exit(main())
