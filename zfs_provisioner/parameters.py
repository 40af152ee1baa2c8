"""Parsing and validation of StorageClass parameters."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Mapping

PARENT_DATASET_PARAMETER = "parentDataset"
SHARE_PROPERTIES_PARAMETER = "shareProperties"
HOSTNAME_PARAMETER = "hostname"
TYPE_PARAMETER = "type"
NODE_NAME_PARAMETER = "node"
RESERVE_SPACE_PARAMETER = "reserveSpace"


class ParameterError(ValueError):
    """Raised when StorageClass parameters are missing or invalid."""


class ProvisioningType(str, enum.Enum):
    """How a volume is exposed to pods."""

    NFS = "nfs"
    HOST_PATH = "hostPath"
    AUTO = "auto"


_TYPE_ALIASES = {
    **dict.fromkeys(("hostpath", "hostPath", "HostPath", "Hostpath", "HOSTPATH"), ProvisioningType.HOST_PATH),
    **dict.fromkeys(("nfs", "Nfs", "NFS"), ProvisioningType.NFS),
    **dict.fromkeys(("auto", "Auto", "AUTO"), ProvisioningType.AUTO),
}


@dataclass(frozen=True)
class StorageClassParameters:
    """Validated parameters of a StorageClass."""

    parent_dataset: str
    hostname: str
    type: ProvisioningType
    nfs_share_properties: str = ""
    host_path_node_name: str = ""
    reserve_space: bool = True


def parse_storage_class_parameters(parameters: Mapping[str, str]) -> StorageClassParameters:
    """Validate raw StorageClass parameters."""
    for name in (PARENT_DATASET_PARAMETER, HOSTNAME_PARAMETER, TYPE_PARAMETER):
        if not parameters.get(name):
            raise ParameterError(f"undefined required parameter: {name}")

    parent_dataset = parameters[PARENT_DATASET_PARAMETER]
    if parent_dataset.startswith("/") or parent_dataset.endswith("/"):
        raise ParameterError(
            f"{PARENT_DATASET_PARAMETER} must not begin or end with '/': {parent_dataset}"
        )

    if RESERVE_SPACE_PARAMETER not in parameters:
        reserve_space = True
    else:
        raw = parameters[RESERVE_SPACE_PARAMETER]
        if raw.casefold() == "true":
            reserve_space = True
        elif raw.casefold() == "false":
            reserve_space = False
        else:
            raise ParameterError(f"invalid '{RESERVE_SPACE_PARAMETER}' parameter value: {raw}")

    type_value = parameters[TYPE_PARAMETER]
    try:
        provisioning_type = _TYPE_ALIASES[type_value]
    except KeyError:
        raise ParameterError(f"invalid '{TYPE_PARAMETER}' parameter value: {type_value}") from None

    node_name = ""
    if provisioning_type in (ProvisioningType.HOST_PATH, ProvisioningType.AUTO):
        node_name = parameters.get(NODE_NAME_PARAMETER, "")

    share_properties = ""
    if provisioning_type in (ProvisioningType.NFS, ProvisioningType.AUTO):
        share_properties = parameters.get(SHARE_PROPERTIES_PARAMETER) or "on"

    return StorageClassParameters(
        parent_dataset=parent_dataset,
        hostname=parameters[HOSTNAME_PARAMETER],
        type=provisioning_type,
        nfs_share_properties=share_properties,
        host_path_node_name=node_name,
        reserve_space=reserve_space,
    )