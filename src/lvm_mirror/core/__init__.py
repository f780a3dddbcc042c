"""Core mirroring operations for lvm-mirror.

Snapshot lifecycle, rsync transfer, the per-volume pipeline and the batch
driver running it across configuration sources.
"""

from .batch import BatchDriver, BatchReport, SourceReport
from .pipeline import VolumeResult, VolumeSyncPipeline
from .snapshot import SnapshotHandle, SnapshotManager, SnapshotState
from .transfer import Transfer, build_transfer_command

__all__ = [
    "BatchDriver",
    "BatchReport",
    "SourceReport",
    "VolumeResult",
    "VolumeSyncPipeline",
    "SnapshotHandle",
    "SnapshotManager",
    "SnapshotState",
    "Transfer",
    "build_transfer_command",
]
