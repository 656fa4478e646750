"""Compile Task definitions into Kubernetes Pods."""

from .models import Step, TaskSpec, PodTemplate, TaskRun, Images
from .services.pod import PodBuilder, make_pod, add_ready_annotation
from .utils.resource_naming import (
    is_container_step,
    is_container_sidecar,
    trim_container_name_prefix,
    trim_sidecar_name_prefix,
)

__all__ = [
    "Step",
    "TaskSpec",
    "PodTemplate",
    "TaskRun",
    "Images",
    "PodBuilder",
    "make_pod",
    "add_ready_annotation",
    "is_container_step",
    "is_container_sidecar",
    "trim_container_name_prefix",
    "trim_sidecar_name_prefix",
]
