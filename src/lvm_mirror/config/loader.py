"""TOML configuration source discovery and resolution.

Each configuration source is layered over the built-in defaults, then the
command line is layered over that:

    defaults -> source file -> command line

Sources are operator-authored TOML files. Keys naming EffectiveConfig fields
override the defaults (``transfer_args`` appends instead), the ``[excludes]``
table feeds the exclude registry, and any other key is accepted untouched.
"""

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, NamedTuple, Optional, Sequence

from .. import normalize_volume_name
from ..__util__ import ArgumentError, ConfigurationError
from .excludes import ExcludeRegistry
from .schema import DEFAULTS, EffectiveConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path("/etc/lvm-mirror")
SINGLE_SOURCE_NAME = "config.toml"
MULTI_SOURCE_PREFIX = "config-"
MULTI_SOURCE_SUFFIX = ".toml"

DRY_RUN_FLAGS = frozenset({"-n", "--dry-run"})

_STR_FIELDS = frozenset(
    {
        "remote_host",
        "remote_shell",
        "volume_group",
        "snapshot_name",
        "snapshot_size",
        "backup_root",
        "destination_subdir",
        "mount_point",
    }
)
_LIST_FIELDS = frozenset({"volumes", "transfer_args"})


@dataclass(frozen=True)
class ConfigurationSource:
    """One override file, optionally tied to a volume group.

    Attributes:
        path: TOML file to layer over the defaults, None for defaults only
        pool: Volume group this source is tied to (from config-<pool>.toml)
    """

    path: Optional[Path] = None
    pool: Optional[str] = None

    def __str__(self) -> str:
        if self.path is None:
            return "<defaults>"
        return str(self.path)


class Resolution(NamedTuple):
    config: EffectiveConfig
    dry_run: bool
    excludes: ExcludeRegistry


def default_config_dir() -> Path:
    env = os.environ.get("LVM_MIRROR_CONFIG_DIR")
    return Path(env) if env else DEFAULT_CONFIG_DIR


def discover_sources(config_dir: Path | str | None = None) -> list[ConfigurationSource]:
    """Find the configuration sources to run, in order.

    A single ``config.toml`` wins. Otherwise every ``config-<pool>.toml`` is
    a separate source tied to ``<pool>``. Without any file the defaults run
    as one source.
    """
    config_dir = Path(config_dir) if config_dir else default_config_dir()

    single = config_dir / SINGLE_SOURCE_NAME
    if single.is_file():
        logger.debug("Using single configuration source %s", single)
        return [ConfigurationSource(single)]

    sources = []
    for path in sorted(config_dir.glob(f"{MULTI_SOURCE_PREFIX}*{MULTI_SOURCE_SUFFIX}")):
        pool = path.name[len(MULTI_SOURCE_PREFIX) : -len(MULTI_SOURCE_SUFFIX)]
        if not pool or not path.is_file():
            continue
        sources.append(ConfigurationSource(path, pool))

    if not sources:
        logger.debug("No configuration sources in %s, using defaults", config_dir)
        return [ConfigurationSource()]

    logger.debug("Found %d configuration source(s) in %s", len(sources), config_dir)
    return sources


def is_flag(arg: str) -> bool:
    return arg.startswith("-") and arg != "-"


def filter_volume_args(argv: Sequence[str], pool: Optional[str]) -> list[str]:
    """Keep the arguments that apply to the source tied to ``pool``.

    Flags and untagged volumes apply everywhere. ``pool:volume`` applies only
    to the source tied to ``pool`` and loses its tag; a source without a pool
    takes every tagged volume.
    """
    selected = []
    for arg in argv:
        if is_flag(arg) or ":" not in arg:
            selected.append(arg)
            continue
        tag, volume = arg.split(":", 1)
        if pool is None or tag == pool:
            selected.append(volume)
    return selected


def has_volume_args(argv: Sequence[str]) -> bool:
    return any(not is_flag(arg) for arg in argv)


def check_batch_arguments(
    argv: Sequence[str], sources: Sequence[ConfigurationSource]
) -> None:
    """Reject arguments that cannot apply to any discovered source.

    Raises:
        ArgumentError: For an unrecognized flag, or a ``pool:volume``
            argument whose pool has no configuration source
    """
    parse_cli_layer([arg for arg in argv if is_flag(arg)])

    pools = {source.pool for source in sources}
    if None in pools:
        return
    for arg in argv:
        if is_flag(arg) or ":" not in arg:
            continue
        tag = arg.split(":", 1)[0]
        if tag not in pools:
            raise ArgumentError(f"no configuration source for pool '{tag}': {arg}")


def parse_cli_layer(argv: Sequence[str]) -> tuple[dict[str, Any], bool]:
    """Turn the batch item's arguments into an override layer.

    Returns:
        Tuple of (override layer, dry-run flag)

    Raises:
        ArgumentError: For any unrecognized flag
    """
    dry_run = False
    volumes = []
    for arg in argv:
        if arg in DRY_RUN_FLAGS:
            dry_run = True
        elif is_flag(arg):
            raise ArgumentError(f"unrecognized argument: {arg}")
        else:
            volumes.append(arg)

    layer: dict[str, Any] = {}
    if volumes:
        layer["volumes"] = tuple(volumes)
    return layer, dry_run


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML syntax in {path}: {e}")
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}")


def _check_str_list(path: Path, key: str, value: Any) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(f"{path}: '{key}' must be a list of strings")
    return value


def load_source_layer(
    source: ConfigurationSource, excludes: ExcludeRegistry
) -> dict[str, Any]:
    """Read one configuration source into an override layer.

    Exclude patterns found in the source are appended to ``excludes``.
    A source whose file does not exist contributes an empty layer.
    """
    layer: dict[str, Any] = {}
    if source.pool:
        layer["volume_group"] = source.pool

    path = source.path
    if path is None:
        return layer
    if not path.exists():
        logger.debug("Configuration source %s not present, skipping", path)
        return layer

    logger.info("Loading configuration from: %s", path)
    data = _load_toml(path)

    for key, value in data.items():
        if key == "excludes":
            if not isinstance(value, dict):
                raise ConfigurationError(f"{path}: 'excludes' must be a table")
            for volume, patterns in value.items():
                excludes.add_excludes(
                    volume, *_check_str_list(path, f"excludes.{volume}", patterns)
                )
        elif key == "lock_file":
            # the run lock is taken before any source is read
            raise ConfigurationError(
                f"{path}: 'lock_file' cannot be set here, use --lock-file"
            )
        elif key in _LIST_FIELDS:
            layer[key] = tuple(_check_str_list(path, key, value))
        elif key in _STR_FIELDS:
            if not isinstance(value, str):
                raise ConfigurationError(f"{path}: '{key}' must be a string")
            layer[key] = value
        else:
            logger.debug("Ignoring unrecognized setting %r in %s", key, path)

    return layer


def _unique_volumes(volumes: Sequence[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for volume in volumes:
        name = normalize_volume_name(volume)
        if not name:
            raise ConfigurationError(f"Invalid volume name: {volume!r}")
        if name in seen:
            logger.warning("Volume %s listed more than once, ignoring repeat", name)
        seen.setdefault(name)
    return tuple(seen)


def resolve_config(
    source: ConfigurationSource,
    argv: Sequence[str] = (),
    defaults: EffectiveConfig = DEFAULTS,
) -> Resolution:
    """Build the EffectiveConfig for one batch item.

    Args:
        source: Configuration source to layer over ``defaults``
        argv: Command line arguments that apply to this source
        defaults: Base configuration

    Returns:
        Resolution of (config, dry-run flag, exclude registry)

    Raises:
        ArgumentError: If ``argv`` holds an unrecognized flag
        ConfigurationError: If the source is malformed or no volumes remain
    """
    cli_layer, dry_run = parse_cli_layer(argv)

    excludes = ExcludeRegistry()
    source_layer = load_source_layer(source, excludes)
    if "transfer_args" in source_layer:
        source_layer["transfer_args"] = (
            defaults.transfer_args + source_layer["transfer_args"]
        )

    config = defaults.with_layers([source_layer, cli_layer])
    config = config.with_layers([{"volumes": _unique_volumes(config.volumes)}])

    if not config.volumes:
        raise ConfigurationError(f"No volumes configured for {source}")
    if not config.remote_host:
        raise ConfigurationError(f"No remote host configured for {source}")

    excludes.ensure_initialized(config.volumes)
    return Resolution(config, dry_run, excludes)


def generate_example_config() -> str:
    """Generate example configuration file content."""
    return """# lvm-mirror configuration
# Save as /etc/lvm-mirror/config.toml, or one config-<vg>.toml per volume group

remote_host = "backup.example.org"
# remote_shell = "ssh -i /root/.ssh/mirror_key -p 2222"

volume_group = "vg0"
snapshot_name = "lvm-mirror-snap"
snapshot_size = "5G"      # ignored for thin volumes

backup_root = "/srv/backup"
# destination_subdir = "vg0"
mount_point = "/mnt/lvm-mirror"

volumes = ["root", "home"]

# Appended to the built-in rsync flags
# transfer_args = ["--bwlimit=20M"]

[excludes]
root = ["/tmp/*", "/var/cache/*"]
home = ["*/.cache"]
"""
