# pyright: standard

"""lvm-mirror: lvm_mirror/__logger__.py
A common rich logger writing diagnostics to the error stream.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

# Diagnostics go to stderr so progress and rsync output keep stdout to themselves
cons = Console(stderr=True)
rich_handler = RichHandler(console=cons, show_path=False)
logger = logging.getLogger("lvm_mirror")


def create_logger(level: str = "INFO") -> None:
    """Setup logging for the package at the given level name."""
    # pylint: disable=global-statement
    global cons, rich_handler

    cons = Console(stderr=True)
    rich_handler = RichHandler(console=cons, show_path=False, show_time=False)

    logger.handlers.clear()
    logger.propagate = False
    logger.addHandler(rich_handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    logging.basicConfig(
        format="%(message)s",
        datefmt="%H:%M:%S",
        level=logging.WARNING,
        handlers=[rich_handler],
        force=True,
    )
