"""Provisioning and deletion of persistent volumes backed by ZFS datasets."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from .parameters import (
    ParameterError,
    ProvisioningType,
    StorageClassParameters,
    parse_storage_class_parameters,
)
from .quantity import QuantityError, parse_quantity
from .zfs import Dataset, DestroyFlag, ZfsCli, ZfsError, ZfsInterface

DATASET_PATH_ANNOTATION = "zfs.pv.kubernetes.io/zfs-dataset-path"
ZFS_HOST_ANNOTATION = "zfs.pv.kubernetes.io/zfs-host"

REF_QUOTA_PROPERTY = "refquota"
REF_RESERVATION_PROPERTY = "refreservation"
SHARE_NFS_PROPERTY = "sharenfs"
MANAGED_BY_PROPERTY = "io.kubernetes.pv.zfs:managed_by"
RECLAIM_POLICY_PROPERTY = "io.kubernetes.pv.zfs:reclaim_policy"

OWNER_UID_ANNOTATION = "zfs-provisioner.io/owner-uid"
OWNER_GID_ANNOTATION = "zfs-provisioner.io/owner-gid"
PERMISSIONS_ANNOTATION = "zfs-provisioner.io/permissions"
NAME_ANNOTATION = "zfs-provisioner.io/name"

HOSTNAME_LABEL = "kubernetes.io/hostname"
NODE_SELECTOR_OP_IN = "In"
HOST_PATH_DIRECTORY = "Directory"


class AccessMode(str, enum.Enum):
    """Ways a volume can be mounted."""

    READ_WRITE_ONCE = "ReadWriteOnce"
    READ_ONLY_MANY = "ReadOnlyMany"
    READ_WRITE_MANY = "ReadWriteMany"
    READ_WRITE_ONCE_POD = "ReadWriteOncePod"


class ReclaimPolicy(str, enum.Enum):
    """What happens to a volume once its claim is released."""

    RETAIN = "Retain"
    DELETE = "Delete"
    RECYCLE = "Recycle"


class ProvisioningState(str, enum.Enum):
    """Outcome of a provisioning attempt, as seen by the controller."""

    FINISHED = "Finished"
    IN_BACKGROUND = "Background"
    NO_CHANGE = "NoChange"
    RESCHEDULE = "Reschedule"


class ProvisioningError(Exception):
    """Raised when a volume cannot be provisioned or deleted."""

    def __init__(self, message: str, state: Optional[ProvisioningState] = None) -> None:
        super().__init__(message)
        self.state = state


@dataclass
class PersistentVolumeClaim:
    """The parts of a claim the provisioner reads."""

    access_modes: list[AccessMode] = field(default_factory=list)
    storage_request: str = "0"
    annotations: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class StorageClass:
    """The parts of a storage class the provisioner reads."""

    parameters: dict[str, str] = field(default_factory=dict)
    reclaim_policy: Optional[ReclaimPolicy] = None


@dataclass
class ProvisionOptions:
    """Everything needed to provision one volume."""

    pv_name: str
    pvc: PersistentVolumeClaim
    storage_class: StorageClass


@dataclass(frozen=True)
class NfsVolumeSource:
    server: str
    path: str
    read_only: bool = False


@dataclass(frozen=True)
class HostPathVolumeSource:
    path: str
    type: str = HOST_PATH_DIRECTORY


@dataclass(frozen=True)
class NodeSelectorRequirement:
    key: str
    operator: str
    values: tuple[str, ...]


@dataclass
class PersistentVolume:
    """A provisioned volume."""

    name: str
    reclaim_policy: ReclaimPolicy
    access_modes: list[AccessMode]
    capacity: str
    annotations: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    nfs: Optional[NfsVolumeSource] = None
    host_path: Optional[HostPathVolumeSource] = None
    node_affinity: Optional[list[NodeSelectorRequirement]] = None


def _can_use_host_path(parameters: StorageClassParameters, claim: PersistentVolumeClaim) -> bool:
    if parameters.type is ProvisioningType.HOST_PATH:
        return True
    if parameters.type is ProvisioningType.AUTO:
        shared = {AccessMode.READ_ONLY_MANY, AccessMode.READ_WRITE_MANY}
        return not shared.intersection(claim.access_modes)
    return False


def _access_modes(claim: PersistentVolumeClaim, use_host_path: bool) -> list[AccessMode]:
    if AccessMode.READ_WRITE_ONCE_POD in claim.access_modes:
        return [AccessMode.READ_WRITE_ONCE_POD]
    if use_host_path:
        return [AccessMode.READ_WRITE_ONCE]
    return [AccessMode.READ_WRITE_ONCE, AccessMode.READ_ONLY_MANY, AccessMode.READ_WRITE_MANY]


def _node_affinity(parameters: StorageClassParameters) -> list[NodeSelectorRequirement]:
    node = parameters.host_path_node_name or parameters.hostname
    return [NodeSelectorRequirement(key=HOSTNAME_LABEL, operator=NODE_SELECTOR_OP_IN, values=(node,))]


class ZFSProvisioner:
    """Creates and exports ZFS datasets as persistent volumes."""

    def __init__(
        self,
        instance_name: str,
        zfs: Optional[ZfsInterface] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.instance_name = instance_name
        self.zfs: ZfsInterface = zfs if zfs is not None else ZfsCli()
        self.log = logger or logging.getLogger(__name__)

    def provision(self, options: ProvisionOptions) -> PersistentVolume:
        """Create a dataset with quota for the claim and describe it as a volume."""
        try:
            parameters = parse_storage_class_parameters(options.storage_class.parameters)
        except ParameterError as exc:
            raise ProvisioningError(
                f"failed to parse StorageClass parameters: {exc}", ProvisioningState.NO_CHANGE
            ) from exc

        claim = options.pvc
        uid = claim.annotations.get(OWNER_UID_ANNOTATION, "")
        gid = claim.annotations.get(OWNER_GID_ANNOTATION, "")
        perm = claim.annotations.get(PERMISSIONS_ANNOTATION, "")
        name = claim.annotations.get(NAME_ANNOTATION, "")

        dataset_path = f"{parameters.parent_dataset}/{options.pv_name}-{name}"
        use_host_path = _can_use_host_path(parameters, claim)
        properties: dict[str, str] = {}
        if not use_host_path:
            properties[SHARE_NFS_PROPERTY] = parameters.nfs_share_properties

        policy = options.storage_class.reclaim_policy
        if policy is None:
            reclaim_policy = ReclaimPolicy.DELETE
        elif policy is ReclaimPolicy.RECYCLE:
            raise ProvisioningError(
                f"unsupported reclaim policy of this provisioner: {ReclaimPolicy.RECYCLE.value}",
                ProvisioningState.FINISHED,
            )
        else:
            reclaim_policy = ReclaimPolicy(policy)

        try:
            request_bytes = str(parse_quantity(claim.storage_request))
        except QuantityError as exc:
            raise ProvisioningError(
                f"invalid storage request: {exc}", ProvisioningState.NO_CHANGE
            ) from exc
        properties[REF_QUOTA_PROPERTY] = request_bytes
        properties[MANAGED_BY_PROPERTY] = self.instance_name
        properties[RECLAIM_POLICY_PROPERTY] = reclaim_policy.value
        if parameters.reserve_space:
            properties[REF_RESERVATION_PROPERTY] = request_bytes

        try:
            dataset = self.zfs.create_dataset(dataset_path, parameters.hostname, properties)
        except ZfsError as exc:
            raise ProvisioningError(
                f"creating ZFS dataset failed: {exc}", ProvisioningState.FINISHED
            ) from exc

        try:
            self.zfs.set_permissions(dataset, uid, gid, perm)
        except ZfsError as exc:
            raise ProvisioningError(str(exc), ProvisioningState.FINISHED) from exc
        self.log.info("dataset created: %s", dataset.name)

        annotations = dict(claim.annotations)
        annotations[DATASET_PATH_ANNOTATION] = dataset.name
        annotations[ZFS_HOST_ANNOTATION] = parameters.hostname

        volume = PersistentVolume(
            name=f"{options.pv_name}-{name}",
            reclaim_policy=reclaim_policy,
            access_modes=_access_modes(claim, use_host_path),
            capacity=claim.storage_request,
            annotations=annotations,
            labels=dict(claim.labels),
        )
        if use_host_path:
            volume.host_path = HostPathVolumeSource(path=dataset.mountpoint)
            volume.node_affinity = _node_affinity(parameters)
        else:
            volume.nfs = NfsVolumeSource(server=parameters.hostname, path=dataset.mountpoint)
        return volume

    def delete(self, volume: PersistentVolume) -> None:
        """Destroy the dataset behind a volume."""
        for annotation in (DATASET_PATH_ANNOTATION, ZFS_HOST_ANNOTATION):
            if not volume.annotations.get(annotation):
                raise ProvisioningError(
                    f"annotation '{annotation}' not found or empty, "
                    "cannot determine which ZFS dataset to destroy"
                )
        dataset_path = volume.annotations[DATASET_PATH_ANNOTATION]
        zfs_host = volume.annotations[ZFS_HOST_ANNOTATION]
        try:
            self.zfs.destroy_dataset(
                Dataset(name=dataset_path, hostname=zfs_host), DestroyFlag.RECURSIVELY
            )
        except ZfsError as exc:
            raise ProvisioningError(f"error destroying dataset: {exc}") from exc
        self.log.info("dataset destroyed: %s", dataset_path)