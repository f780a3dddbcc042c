"""Command line interface for lvm-mirror."""

from .dispatcher import main

__all__ = ["main"]
