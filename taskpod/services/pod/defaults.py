"""
Fixed tables injected into every compiled pod.

These are built once per process (see get_pod_defaults) and shared by
reference between compilations. Consumers must copy entries before placing
them into a step or pod, never mutate them in place.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Tuple

from kubernetes import client

WORKSPACE_DIR = "/workspace"
HOME_DIR = "/builder/home"
SCRIPTS_DIR = "/builder/scripts"

MANAGED_BY_LABEL_KEY = "app.kubernetes.io/managed-by"
TASK_RUN_LABEL_KEY = "tekton.dev/taskRun"

READY_ANNOTATION = "tekton.dev/ready"
READY_ANNOTATION_VALUE = "READY"

# Shared zero quantity for zeroed resource requests; str is immutable
ZERO_QUANTITY = "0"

# Resource kinds whose requests are consolidated onto a single step
TRACKED_RESOURCES = ("cpu", "memory", "ephemeral-storage")

OWNER_API_VERSION = "tekton.dev/v1alpha1"
OWNER_KIND = "TaskRun"


def _empty_dir_volume(name: str) -> client.V1Volume:
    return client.V1Volume(name=name, empty_dir=client.V1EmptyDirVolumeSource())


@dataclass(frozen=True)
class PodDefaults:
    """Implicit env vars, mounts and volumes every step and pod receives."""

    implicit_env_vars: Tuple[client.V1EnvVar, ...] = field(default_factory=lambda: (
        client.V1EnvVar(name="HOME", value=HOME_DIR),
    ))
    implicit_volume_mounts: Tuple[client.V1VolumeMount, ...] = field(default_factory=lambda: (
        client.V1VolumeMount(name="workspace", mount_path=WORKSPACE_DIR),
        client.V1VolumeMount(name="home", mount_path=HOME_DIR),
    ))
    implicit_volumes: Tuple[client.V1Volume, ...] = field(default_factory=lambda: (
        _empty_dir_volume("workspace"),
        _empty_dir_volume("home"),
    ))
    scripts_volume: client.V1Volume = field(default_factory=lambda: _empty_dir_volume("place-scripts"))
    scripts_volume_mount: client.V1VolumeMount = field(default_factory=lambda: client.V1VolumeMount(
        name="place-scripts", mount_path=SCRIPTS_DIR
    ))
    workspace_dir: str = WORKSPACE_DIR
    scripts_dir: str = SCRIPTS_DIR


@lru_cache()
def get_pod_defaults() -> PodDefaults:
    return PodDefaults()
