"""Per-volume rsync exclude patterns.

Patterns accumulate across configuration layers in insertion order;
nothing is ever overwritten or deduplicated.
"""

from typing import Iterable

from .. import normalize_volume_name
from ..__util__ import ExcludesNotInitializedError


class ExcludeRegistry:
    """Ordered exclude patterns keyed by logical volume name."""

    def __init__(self) -> None:
        self._patterns: dict[str, list[str]] = {}
        self._initialized = False

    def add_excludes(self, volume: str, *patterns: str) -> None:
        """Append ``patterns`` to the list for ``volume``."""
        self._patterns.setdefault(normalize_volume_name(volume), []).extend(patterns)

    def ensure_initialized(self, volumes: Iterable[str]) -> None:
        """Give every targeted volume an entry, possibly empty."""
        for volume in volumes:
            self._patterns.setdefault(normalize_volume_name(volume), [])
        self._initialized = True

    def patterns_for(self, volume: str) -> tuple[str, ...]:
        if not self._initialized:
            raise ExcludesNotInitializedError(
                f"exclude patterns for {volume!r} requested before initialization"
            )
        return tuple(self._patterns.get(normalize_volume_name(volume), ()))

    def render_flags(self, volume: str) -> list[str]:
        """One rsync --exclude flag per pattern, in order."""
        return [f"--exclude={pattern}" for pattern in self.patterns_for(volume)]

    def merge(self, other: "ExcludeRegistry") -> None:
        """Append every entry of ``other`` after the existing ones."""
        for volume, patterns in other._patterns.items():
            self.add_excludes(volume, *patterns)

    def volumes(self) -> list[str]:
        return list(self._patterns)

    def __contains__(self, volume: str) -> bool:
        return normalize_volume_name(volume) in self._patterns

    def __repr__(self) -> str:
        return f"ExcludeRegistry({self._patterns!r})"
