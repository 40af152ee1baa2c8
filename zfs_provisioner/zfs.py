"""Access to ZFS datasets on a (possibly remote) ZFS host through the ``zfs`` command."""

from __future__ import annotations

import enum
import logging
import os
import shutil
import stat
import subprocess
import threading
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Protocol, Sequence

HOST_ENV_VAR = "ZFS_HOST"
UPDATE_PERMISSIONS_COMMAND = "update-permissions"

Runner = Callable[[Sequence[str], Mapping[str, str]], str]

_log = logging.getLogger(__name__)
_lock = threading.Lock()


class ZfsError(Exception):
    """Raised when a ZFS operation fails or is given invalid input."""


class DestroyFlag(enum.IntEnum):
    """How a dataset is destroyed."""

    RECURSIVELY = 2


@dataclass
class Dataset:
    """A ZFS dataset living on a given host."""

    name: str
    hostname: str = ""
    mountpoint: str = ""


class ZfsInterface(Protocol):
    """The ZFS operations the provisioner depends on."""

    def get_dataset(self, name: str, hostname: str) -> Dataset: ...

    def create_dataset(
        self, name: str, hostname: str, properties: Mapping[str, str]
    ) -> Dataset: ...

    def destroy_dataset(self, dataset: Dataset, flag: DestroyFlag) -> None: ...

    def set_permissions(self, dataset: Dataset, uid: str, gid: str, perm: str) -> None: ...


def _run_command(args: Sequence[str], env: Mapping[str, str]) -> str:
    try:
        completed = subprocess.run(
            list(args), capture_output=True, text=True, env=dict(env), check=False
        )
    except OSError as exc:
        raise ZfsError(f"cannot run {args[0]!r}: {exc}") from exc
    if completed.returncode != 0:
        raise ZfsError(
            f"{' '.join(args)} exited with status {completed.returncode}: "
            f"{completed.stderr.strip()}"
        )
    return completed.stdout


def _environment(hostname: str) -> dict[str, str]:
    env = dict(os.environ)
    env[HOST_ENV_VAR] = hostname
    return env


def _validate(dataset: Dataset) -> None:
    if not dataset.name:
        raise ZfsError("undefined dataset name")
    if not dataset.hostname:
        raise ZfsError(
            f"required hostname parameter not given for dataset '{dataset.name}'"
        )


class ZfsCli:
    """ZFS operations performed by running the ``zfs`` executable.

    The target host is handed to every command through the ``ZFS_HOST``
    environment variable, so a wrapper named ``zfs`` may forward the call.
    """

    def __init__(self, executable: str = "zfs", runner: Optional[Runner] = None) -> None:
        self.executable = executable
        self._runner: Runner = runner or _run_command

    def _zfs(self, hostname: str, *args: str) -> str:
        return self._runner([self.executable, *args], _environment(hostname))

    def get_dataset(self, name: str, hostname: str) -> Dataset:
        """Look up an existing dataset."""
        _log.debug("acquiring lock...")
        with _lock:
            output = self._zfs(hostname, "list", "-H", "-p", "-o", "name,mountpoint", name)
        lines = [line for line in output.splitlines() if line.strip()]
        if not lines:
            raise ZfsError(f"dataset not found: {name}")
        fields = lines[0].split("\t")
        found_name = fields[0]
        mountpoint = fields[1] if len(fields) > 1 else ""
        if mountpoint in ("-", "none"):
            mountpoint = ""
        return Dataset(name=found_name, hostname=hostname, mountpoint=mountpoint)

    def create_dataset(
        self, name: str, hostname: str, properties: Mapping[str, str]
    ) -> Dataset:
        """Create a filesystem dataset with the given properties."""
        _log.debug("acquiring lock...")
        args = ["create"]
        for key, value in sorted(properties.items()):
            args += ["-o", f"{key}={value}"]
        args.append(name)
        with _lock:
            _log.debug("creating dataset name=%s host=%s", name, hostname)
            self._zfs(hostname, *args)
        return self.get_dataset(name, hostname)

    def destroy_dataset(self, dataset: Dataset, flag: DestroyFlag) -> None:
        """Destroy a dataset; only recursive destruction is supported."""
        _validate(dataset)
        try:
            flag = DestroyFlag(flag)
        except ValueError:
            raise ZfsError(f"programmer error: flag not implemented: {flag}") from None
        existing = self.get_dataset(dataset.name, dataset.hostname)
        _log.debug("acquiring lock...")
        with _lock:
            self._zfs(dataset.hostname, "destroy", "-r", existing.name)

    def set_permissions(self, dataset: Dataset, uid: str, gid: str, perm: str) -> None:
        """Adjust ownership and mode of the dataset's mountpoint.

        Runs ``update-permissions`` if it is on the PATH, otherwise adds the
        group write bit to the mountpoint locally.
        """
        _validate(dataset)
        if not dataset.mountpoint:
            raise ZfsError(f"undefined mountpoint for dataset: {dataset.name}")

        with _lock:
            command = shutil.which(UPDATE_PERMISSIONS_COMMAND)
            if command is not None:
                completed = subprocess.run(
                    [command, dataset.mountpoint, uid, gid, perm],
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    text=True,
                    env=_environment(dataset.hostname),
                    check=False,
                )
                if completed.returncode != 0:
                    raise ZfsError(
                        f"could not update permissions on '{dataset.hostname}': "
                        f"exit status {completed.returncode}: {completed.stdout}"
                    )
                return

            try:
                st = os.lstat(dataset.mountpoint)
                os.chmod(dataset.mountpoint, stat.S_IMODE(st.st_mode) | stat.S_IWGRP)
            except OSError as exc:
                raise ZfsError(str(exc)) from exc