"""lvm-mirror: lvm_mirror/__init__.py."""

__version__ = "0.3.0"


def normalize_volume_name(volume: str) -> str:
    """Strip leading and trailing '/' so mount-style paths name the LV."""
    return volume.strip("/")
