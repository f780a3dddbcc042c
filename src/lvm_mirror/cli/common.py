"""Verbosity options shared by every lvm-mirror command."""

import argparse


def add_verbosity_args(parser: argparse.ArgumentParser) -> None:
    """Attach -v, -q and --debug under an "Output options" heading."""
    group = parser.add_argument_group("Output options")
    group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every lvm, mount and rsync command as it runs",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log warnings and errors; rsync output is unaffected",
    )
    group.add_argument(
        "--debug",
        action="store_true",
        help="Same as --verbose, and wins over --quiet",
    )


def get_log_level(args: argparse.Namespace) -> str:
    # --debug and --verbose both mean DEBUG; either one beats --quiet
    if getattr(args, "debug", False) or getattr(args, "verbose", False):
        return "DEBUG"
    if getattr(args, "quiet", False):
        return "WARNING"
    return "INFO"
