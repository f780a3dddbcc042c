"""Configuration schema definitions using dataclasses.

An EffectiveConfig is built once per configuration source by applying
override layers to the built-in defaults and is never mutated afterwards.
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

DEFAULT_TRANSFER_ARGS = (
    "--archive",
    "--hard-links",
    "--acls",
    "--xattrs",
    "--numeric-ids",
    "--one-file-system",
    "--delete",
    "--stats",
    "--human-readable",
)


@dataclass(frozen=True)
class EffectiveConfig:
    """Resolved settings for one batch item.

    Attributes:
        remote_host: Host holding the mirror
        remote_shell: Remote shell command line used for checks and by rsync
        volume_group: Volume group containing the source logical volumes
        snapshot_name: Name of the transient snapshot LV
        snapshot_size: Size given to non-thin snapshots (e.g. "5G")
        backup_root: Remote directory holding all mirrors
        destination_subdir: Remote subdirectory below backup_root,
            defaults to the volume group name
        mount_point: Local directory the snapshot is mounted on
        volumes: Logical volumes to mirror, in order
        transfer_args: Base rsync flags
        lock_file: Path of the lock preventing overlapping runs
    """

    remote_host: str = "backup"
    remote_shell: str = "ssh"
    volume_group: str = "vg0"
    snapshot_name: str = "lvm-mirror-snap"
    snapshot_size: Optional[str] = "5G"
    backup_root: str = "/srv/backup"
    destination_subdir: Optional[str] = None
    mount_point: str = "/mnt/lvm-mirror"
    volumes: tuple[str, ...] = ("root", "home")
    transfer_args: tuple[str, ...] = field(default=DEFAULT_TRANSFER_ARGS)
    lock_file: str = "/run/lvm-mirror.lock"

    @property
    def destination_base(self) -> str:
        """Remote directory the per-volume destinations live in."""
        subdir = self.destination_subdir or self.volume_group
        return f"{self.backup_root.rstrip('/')}/{subdir.strip('/')}"

    def destination_for(self, volume: str) -> str:
        return f"{self.destination_base}/{volume}"

    def with_layers(self, layers: Iterable[dict[str, Any]]) -> "EffectiveConfig":
        """Return a copy with each layer's overrides applied in order."""
        config = self
        for layer in layers:
            if layer:
                config = dataclasses.replace(config, **layer)
        return config

    def as_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


DEFAULTS = EffectiveConfig()