"""Tests for the snapshot lifecycle manager."""

import pytest

from lvm_mirror.__util__ import (
    MountError,
    SnapshotActivateError,
    SnapshotCreateError,
    SnapshotDestroyError,
    SnapshotStateError,
    UnmountError,
)
from lvm_mirror.core.snapshot import SnapshotHandle, SnapshotManager, SnapshotState


class TestIsThin:
    def test_thin_segtype(self, make_runner):
        runner = make_runner(thin={"home"})
        assert SnapshotManager(runner).is_thin("vg0", "home") is True
        assert runner.calls == [["lvs", "--noheadings", "-o", "segtype", "vg0/home"]]

    def test_linear_segtype(self, fake_runner):
        assert SnapshotManager(fake_runner).is_thin("vg0", "home") is False

    def test_query_failure(self, fake_runner):
        fake_runner.fail_on("lvs")
        with pytest.raises(SnapshotCreateError, match="cannot query"):
            SnapshotManager(fake_runner).is_thin("vg0", "home")


class TestCreate:
    """Tests for snapshot creation."""

    def test_non_thin_gets_size(self, fake_runner):
        handle = SnapshotManager(fake_runner).create("vg0", "root", "snap", "5G")

        assert fake_runner.commands("lvcreate") == [
            ["lvcreate", "--snapshot", "--name", "snap", "--size", "5G", "vg0/root"]
        ]
        assert handle.state is SnapshotState.CREATED
        assert handle.device == "/dev/vg0/snap"
        assert handle.thin is False

    def test_thin_never_gets_size(self, make_runner):
        runner = make_runner(thin={"root"})
        handle = SnapshotManager(runner).create("vg0", "root", "snap", "5G")

        assert runner.commands("lvcreate") == [
            ["lvcreate", "--snapshot", "--name", "snap", "vg0/root"]
        ]
        assert handle.thin is True

    def test_non_thin_requires_size(self, fake_runner):
        with pytest.raises(SnapshotCreateError, match="no snapshot size"):
            SnapshotManager(fake_runner).create("vg0", "root", "snap", None)
        assert fake_runner.commands("lvcreate") == []

    def test_lvcreate_failure_is_not_retried(self, fake_runner):
        fake_runner.fail_on("lvcreate")
        with pytest.raises(SnapshotCreateError):
            SnapshotManager(fake_runner).create("vg0", "root", "snap", "5G")
        assert len(fake_runner.commands("lvcreate")) == 1


class TestActivate:
    def test_thin_is_activated(self, make_runner):
        runner = make_runner(thin={"root"})
        manager = SnapshotManager(runner)
        handle = manager.create("vg0", "root", "snap")
        manager.activate(handle)

        assert runner.commands("lvchange") == [
            ["lvchange", "--activate", "y", "--ignoreactivationskip", "vg0/snap"]
        ]
        assert handle.state is SnapshotState.ACTIVATED

    def test_non_thin_is_skipped(self, fake_runner):
        manager = SnapshotManager(fake_runner)
        handle = manager.create("vg0", "root", "snap", "1G")
        manager.activate(handle)

        assert fake_runner.commands("lvchange") == []
        assert handle.state is SnapshotState.CREATED

    def test_failure(self, make_runner):
        runner = make_runner(thin={"root"})
        runner.fail_on("lvchange")
        manager = SnapshotManager(runner)
        handle = manager.create("vg0", "root", "snap")

        with pytest.raises(SnapshotActivateError):
            manager.activate(handle)


class TestMountUnmount:
    """Tests for mount and unmount."""

    def test_mount_read_only(self, fake_runner, mount_point):
        manager = SnapshotManager(fake_runner)
        handle = manager.create("vg0", "root", "snap", "1G")
        manager.mount(handle, str(mount_point))

        assert fake_runner.commands("mount") == [
            ["mount", "-o", "ro", "/dev/vg0/snap", str(mount_point)]
        ]
        assert handle.is_mounted

    def test_missing_mount_point(self, fake_runner, tmp_path):
        manager = SnapshotManager(fake_runner)
        handle = manager.create("vg0", "root", "snap", "1G")

        with pytest.raises(MountError, match="not a directory"):
            manager.mount(handle, str(tmp_path / "absent"))
        assert fake_runner.commands("mount") == []

    def test_thin_not_activated_cannot_mount(self, make_runner, mount_point):
        runner = make_runner(thin={"root"})
        manager = SnapshotManager(runner)
        handle = manager.create("vg0", "root", "snap")

        with pytest.raises(MountError, match="not active"):
            manager.mount(handle, str(mount_point))

    def test_mount_failure(self, fake_runner, mount_point):
        fake_runner.fail_on("mount")
        manager = SnapshotManager(fake_runner)
        handle = manager.create("vg0", "root", "snap", "1G")

        with pytest.raises(MountError):
            manager.mount(handle, str(mount_point))
        assert handle.state is SnapshotState.CREATED

    def test_unmount_failure(self, fake_runner, mount_point):
        fake_runner.fail_on("umount")
        manager = SnapshotManager(fake_runner)
        handle = manager.create("vg0", "root", "snap", "1G")
        manager.mount(handle, str(mount_point))

        with pytest.raises(UnmountError):
            manager.unmount(handle)
        assert handle.is_mounted


class TestDestroy:
    def test_destroy_forces_removal(self, fake_runner):
        manager = SnapshotManager(fake_runner)
        handle = manager.create("vg0", "root", "snap", "1G")
        manager.destroy(handle)

        assert fake_runner.commands("lvremove") == [
            ["lvremove", "--force", "--yes", "vg0/snap"]
        ]
        assert handle.is_destroyed

    def test_refuses_mounted_snapshot(self, fake_runner, mount_point):
        manager = SnapshotManager(fake_runner)
        handle = manager.create("vg0", "root", "snap", "1G")
        manager.mount(handle, str(mount_point))

        with pytest.raises(SnapshotStateError):
            manager.destroy(handle)
        assert fake_runner.commands("lvremove") == []

    def test_failure(self, fake_runner):
        fake_runner.fail_on("lvremove")
        manager = SnapshotManager(fake_runner)
        handle = manager.create("vg0", "root", "snap", "1G")

        with pytest.raises(SnapshotDestroyError):
            manager.destroy(handle)


class TestSnapshotHandle:
    """Tests for the lifecycle state machine."""

    def test_full_thin_lifecycle(self):
        handle = SnapshotHandle("vg0", "root", "snap", thin=True)
        for state in (
            SnapshotState.CREATED,
            SnapshotState.ACTIVATED,
            SnapshotState.MOUNTED,
            SnapshotState.UNMOUNTED,
            SnapshotState.DESTROYED,
        ):
            handle.advance(state)

        assert handle.history[-1] is SnapshotState.DESTROYED
        assert len(handle.history) == 5

    def test_cannot_skip_creation(self):
        handle = SnapshotHandle("vg0", "root", "snap", thin=False)
        with pytest.raises(SnapshotStateError):
            handle.advance(SnapshotState.MOUNTED)

    def test_cannot_destroy_while_mounted(self):
        handle = SnapshotHandle("vg0", "root", "snap", thin=False)
        handle.advance(SnapshotState.CREATED)
        handle.advance(SnapshotState.MOUNTED)
        with pytest.raises(SnapshotStateError):
            handle.advance(SnapshotState.DESTROYED)

    def test_thin_cannot_mount_before_activation(self):
        handle = SnapshotHandle("vg0", "root", "snap", thin=True)
        handle.advance(SnapshotState.CREATED)
        with pytest.raises(SnapshotStateError):
            handle.advance(SnapshotState.MOUNTED)
