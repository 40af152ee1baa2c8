[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zfs-provisioner"
version = "0.1.0"
description = "Provisioning of ZFS datasets as Kubernetes persistent volumes over NFS or host paths"
requires-python = ">=3.10"
dependencies = []
keywords = ["zfs", "kubernetes", "provisioner", "nfs", "persistent-volume", "storage"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: System :: Systems Administration",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["zfs_provisioner"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
