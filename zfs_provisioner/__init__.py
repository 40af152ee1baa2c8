"""Provision ZFS datasets as Kubernetes persistent volumes over NFS or host paths."""

__version__ = "0.1.0"