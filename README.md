# zfs_provisioner

Provisions ZFS datasets as Kubernetes persistent volumes. Each claim gets
its own dataset below a configured parent dataset, with a `refquota` (and
optionally a `refreservation`) matching the requested size. The dataset is
then offered to pods either as an NFS export or as a host path pinned to
the node that owns the pool.

The package has no dependencies outside the standard library.

## Storage class parameters

The behaviour for a class of volumes is set through the parameters of its
storage class:

| Parameter         | Required | Meaning                                                                      |
|-------------------|----------|------------------------------------------------------------------------------|
| `parentDataset`   | yes      | Existing dataset under which volumes are created; no leading or trailing `/` |
| `hostname`        | yes      | Host that holds the pool; also the NFS server                                |
| `type`            | yes      | `nfs`, `hostPath` or `auto` (a few capitalisations of each are accepted)     |
| `shareProperties` | no       | Value for `sharenfs`; defaults to `on`                                       |
| `node`            | no       | Kubernetes node name for host paths, if it differs from `hostname`           |
| `reserveSpace`    | no       | `true` (default) for thick provisioning, `false` for thin; case-insensitive  |

With `type: auto`, a claim that asks for `ReadOnlyMany` or `ReadWriteMany`
is served over NFS; any other claim gets a host path.

Parameters are checked with `parse_storage_class_parameters`, which returns
a frozen `StorageClassParameters` and raises `ParameterError` for a missing
or invalid value:

```python
from zfs_provisioner.parameters import parse_storage_class_parameters

params = parse_storage_class_parameters({
    "parentDataset": "tank/volumes",
    "hostname": "zfs-host.example.com",
    "type": "nfs",
    "shareProperties": "rw=@10.0.0.0/8,no_root_squash",
})
assert params.nfs_share_properties == "rw=@10.0.0.0/8,no_root_squash"
```

## Provisioning and deleting

`ZFSProvisioner(instance_name, zfs=None, logger=None)` uses a `ZfsCli` by
default; any object with the methods of the `ZfsInterface` protocol may be
passed instead.

`ZFSProvisioner.provision(options)` takes a `ProvisionOptions` (the volume
name, a `PersistentVolumeClaim` and its `StorageClass`), creates the
dataset and returns the resulting `PersistentVolume`:

```python
from zfs_provisioner.provisioner import (
    AccessMode, PersistentVolumeClaim, ProvisionOptions, StorageClass, ZFSProvisioner,
)

provisioner = ZFSProvisioner("pv.kubernetes.io/zfs")
volume = provisioner.provision(ProvisionOptions(
    pv_name="pv-1234",
    pvc=PersistentVolumeClaim(
        access_modes=[AccessMode.READ_WRITE_ONCE],
        storage_request="10Gi",
    ),
    storage_class=StorageClass(parameters={
        "parentDataset": "tank/volumes",
        "hostname": "zfs-host.example.com",
        "type": "auto",
    }),
))
```

The storage request is a quantity string such as `1G`, `10Gi` or `500M`;
`parse_quantity` in `zfs_provisioner.quantity` turns it into a byte count
(raising `QuantityError` if it cannot).

The returned volume has either `nfs` (an `NfsVolumeSource`) or `host_path`
(a `HostPathVolumeSource` of type `Directory`, together with a
`node_affinity` on `kubernetes.io/hostname`). Its access modes are
`ReadWriteOncePod` if the claim asked for it, otherwise `ReadWriteOnce`,
plus `ReadOnlyMany` and `ReadWriteMany` for NFS volumes. Without a reclaim
policy on the storage class, `Delete` is used; `Recycle` is rejected.

The volume carries the claim's annotations plus
`zfs.pv.kubernetes.io/zfs-dataset-path` and `zfs.pv.kubernetes.io/zfs-host`;
`ZFSProvisioner.delete(volume)` reads these back and destroys the dataset
recursively. Failures are raised as `ProvisioningError`, whose `state`
holds a `ProvisioningState` where one applies.

Claims may carry these annotations:

- `zfs-provisioner.io/name` – suffix for the dataset and volume name
- `zfs-provisioner.io/owner-uid`, `zfs-provisioner.io/owner-gid`,
  `zfs-provisioner.io/permissions` – passed to an `update-permissions`
  program on the `PATH` if there is one; otherwise the group write bit is
  added to the mount point locally.

## The zfs command

`ZfsCli` runs `zfs list`, `zfs create -o key=value ...` and
`zfs destroy -r`, raising `ZfsError` on failure. Every call is made with
`ZFS_HOST` set to the dataset's host, so a wrapper named `zfs` on the
`PATH` can forward it over SSH to a remote pool. Calls are serialised by
a process-wide lock.

## Settings

`load_settings(environ=None)` reads the configuration from a mapping of
environment variables (`os.environ` if none is given) and raises
`SettingsError` if the port is not a number:

| Variable                   | Default                |
|----------------------------|------------------------|
| `ZFS_METRICS_ADDR`         | `0.0.0.0`              |
| `ZFS_METRICS_PORT`         | `8080`                 |
| `ZFS_KUBE_CONFIG_PATH`     | *(empty)*              |
| `ZFS_PROVISIONER_INSTANCE` | `pv.kubernetes.io/zfs` |

## What this package does not do

It is a library, with no command to run. It does not connect to a
Kubernetes cluster, watch claims or storage classes, or create volume
objects through the API; a controller has to call `provision` and
`delete` itself. It serves no metrics endpoint: the metrics address and
port in `Settings` are read but not used by anything in the package.