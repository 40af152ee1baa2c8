"""Process settings read from ``ZFS_*`` environment variables."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional

ENV_PREFIX = "ZFS_"
METRICS_ADDR_KEY = "METRICS_ADDR"
METRICS_PORT_KEY = "METRICS_PORT"
KUBE_CONFIG_PATH_KEY = "KUBE_CONFIG_PATH"
PROVISIONER_INSTANCE_KEY = "PROVISIONER_INSTANCE"

DEFAULTS = {
    METRICS_PORT_KEY: "8080",
    METRICS_ADDR_KEY: "0.0.0.0",
    KUBE_CONFIG_PATH_KEY: "",
    PROVISIONER_INSTANCE_KEY: "pv.kubernetes.io/zfs",
}

_INTEGER = re.compile(r"[+-]?[0-9]+")


class SettingsError(ValueError):
    """Raised when a setting has an invalid value."""


@dataclass(frozen=True)
class Settings:
    """Runtime configuration of the provisioner."""

    metrics_addr: str
    metrics_port: int
    kube_config_path: str
    provisioner_instance: str


def _parse_int(value: str) -> int:
    if not _INTEGER.fullmatch(value):
        raise SettingsError(f"Failed to convert metrics port to integer: {value!r}")
    return int(value)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read settings from the environment, falling back to defaults."""
    env = os.environ if environ is None else environ
    values = {key: env.get(ENV_PREFIX + key, default) for key, default in DEFAULTS.items()}
    return Settings(
        metrics_addr=values[METRICS_ADDR_KEY],
        metrics_port=_parse_int(values[METRICS_PORT_KEY]),
        kube_config_path=values[KUBE_CONFIG_PATH_KEY],
        provisioner_instance=values[PROVISIONER_INSTANCE_KEY],
    )