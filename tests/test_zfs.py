import os
import stat

import pytest

from zfs_provisioner.zfs import (
    HOST_ENV_VAR,
    Dataset,
    DestroyFlag,
    ZfsCli,
    ZfsError,
)


class FakeRunner:
    def __init__(self, list_output=None):
        self.calls = []
        self.list_output = list_output

    def __call__(self, args, env):
        self.calls.append((list(args), dict(env)))
        if args[1] == "list":
            if self.list_output is not None:
                return self.list_output
            name = args[-1]
            return f"{name}\t/{name}\n"
        return ""


def test_get_dataset_parses_listing():
    runner = FakeRunner()
    cli = ZfsCli(runner=runner)
    dataset = cli.get_dataset("tank/vol", "host")
    assert dataset == Dataset(name="tank/vol", hostname="host", mountpoint="/tank/vol")
    args, env = runner.calls[0]
    assert args[0] == "zfs"
    assert args[-1] == "tank/vol"
    assert env[HOST_ENV_VAR] == "host"


def test_get_dataset_empty_listing_raises():
    cli = ZfsCli(runner=FakeRunner(list_output=""))
    with pytest.raises(ZfsError):
        cli.get_dataset("tank/missing", "host")


def test_get_dataset_without_mountpoint():
    cli = ZfsCli(runner=FakeRunner(list_output="tank/vol\tnone\n"))
    assert cli.get_dataset("tank/vol", "host").mountpoint == ""


def test_create_dataset_passes_properties():
    runner = FakeRunner()
    cli = ZfsCli(runner=runner)
    properties = {"refquota": "1000000000", "sharenfs": "rw"}
    dataset = cli.create_dataset("tank/pv-1", "zfs-host", properties)
    create_args, create_env = runner.calls[0]
    assert create_args[1] == "create"
    assert create_args[-1] == "tank/pv-1"
    assert "refquota=1000000000" in create_args
    assert "sharenfs=rw" in create_args
    for option in ("refquota=1000000000", "sharenfs=rw"):
        assert create_args[create_args.index(option) - 1] == "-o"
    assert create_env[HOST_ENV_VAR] == "zfs-host"
    assert dataset.name == "tank/pv-1"
    assert dataset.hostname == "zfs-host"
    assert dataset.mountpoint == "/tank/pv-1"


def test_destroy_dataset_recursively():
    runner = FakeRunner()
    cli = ZfsCli(runner=runner)
    cli.destroy_dataset(Dataset(name="tank/pv-1", hostname="host"), DestroyFlag.RECURSIVELY)
    destroy_args, destroy_env = runner.calls[-1]
    assert destroy_args[1:] == ["destroy", "-r", "tank/pv-1"]
    assert destroy_env[HOST_ENV_VAR] == "host"


def test_destroy_dataset_unknown_flag():
    runner = FakeRunner()
    cli = ZfsCli(runner=runner)
    with pytest.raises(ZfsError, match="flag not implemented"):
        cli.destroy_dataset(Dataset(name="tank/pv-1", hostname="host"), 7)
    assert runner.calls == []


@pytest.mark.parametrize(
    "dataset, message",
    [
        (Dataset(name="", hostname="host"), "undefined dataset name"),
        (Dataset(name="tank/pv-1", hostname=""), "required hostname parameter"),
    ],
)
def test_destroy_dataset_validation(dataset, message):
    cli = ZfsCli(runner=FakeRunner())
    with pytest.raises(ZfsError, match=message):
        cli.destroy_dataset(dataset, DestroyFlag.RECURSIVELY)


def test_set_permissions_requires_mountpoint():
    cli = ZfsCli(runner=FakeRunner())
    with pytest.raises(ZfsError, match="undefined mountpoint"):
        cli.set_permissions(Dataset(name="tank/pv-1", hostname="host"), "", "", "")


def test_set_permissions_adds_group_write_without_helper(tmp_path, monkeypatch):
    empty_bin = tmp_path / "bin"
    empty_bin.mkdir()
    monkeypatch.setenv("PATH", str(empty_bin))
    mountpoint = tmp_path / "mnt"
    mountpoint.mkdir()
    os.chmod(mountpoint, 0o755)
    cli = ZfsCli(runner=FakeRunner())
    cli.set_permissions(Dataset(name="tank/pv-1", hostname="host", mountpoint=str(mountpoint)), "", "", "")
    mode = stat.S_IMODE(os.stat(mountpoint).st_mode)
    assert mode & stat.S_IWGRP
    assert mode & 0o755 == 0o755


def test_set_permissions_missing_mountpoint_path(tmp_path, monkeypatch):
    empty_bin = tmp_path / "bin"
    empty_bin.mkdir()
    monkeypatch.setenv("PATH", str(empty_bin))
    cli = ZfsCli(runner=FakeRunner())
    with pytest.raises(ZfsError):
        cli.set_permissions(
            Dataset(name="tank/pv-1", hostname="host", mountpoint=str(tmp_path / "absent")),
            "", "", "",
        )


def _install_helper(tmp_path, monkeypatch, body):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "update-permissions"
    script.write_text("#!/bin/sh\n" + body)
    script.chmod(0o755)
    monkeypatch.setenv("PATH", str(bin_dir))


def test_set_permissions_runs_helper(tmp_path, monkeypatch):
    record = tmp_path / "record.txt"
    _install_helper(tmp_path, monkeypatch, f'echo "$@ $ZFS_HOST" > {record}\n')
    runner = FakeRunner()
    cli = ZfsCli(runner=runner)
    result = cli.set_permissions(
        Dataset(name="tank/pv-1", hostname="host", mountpoint="/tank/pv-1"), "1000", "100", "770"
    )
    assert result is None
    assert record.read_text().strip() == "/tank/pv-1 1000 100 770 host"
    assert runner.calls == []


def test_set_permissions_helper_failure(tmp_path, monkeypatch):
    _install_helper(tmp_path, monkeypatch, "echo denied\nexit 1\n")
    cli = ZfsCli(runner=FakeRunner())
    with pytest.raises(ZfsError) as excinfo:
        cli.set_permissions(Dataset(name="tank/pv-1", hostname="host", mountpoint="/tank/pv-1"), "", "", "")
    assert "could not update permissions on 'host'" in str(excinfo.value)
    assert "denied" in str(excinfo.value)