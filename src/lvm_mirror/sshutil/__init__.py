"""Remote shell helpers for lvm-mirror."""

from .remote import RemoteShell

__all__ = ["RemoteShell"]
