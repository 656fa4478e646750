"""
Pod Compiler Helpers

Pure functions used while turning a TaskSpec into a Pod:
- Implicit env vars and volume mounts merged into each step
- Resource request consolidation (only the peak step keeps its request)
- Labels, annotations and owner reference for the compiled pod

Steps run one at a time inside the pod, so the pod only needs to request the
largest single-step requirement per resource kind rather than the sum.
"""

import copy
import logging
import posixpath
from typing import Dict, Iterable, List, Sequence

from kubernetes import client
from kubernetes.utils import parse_quantity

from ...models import Step, TaskRun
from .defaults import (
    MANAGED_BY_LABEL_KEY,
    OWNER_API_VERSION,
    OWNER_KIND,
    READY_ANNOTATION,
    TASK_RUN_LABEL_KEY,
    TRACKED_RESOURCES,
    ZERO_QUANTITY,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Implicit env vars and volume mounts
# =============================================================================

def merge_implicit_env(
    container: client.V1Container,
    implicit_env_vars: Iterable[client.V1EnvVar]
) -> None:
    """
    Prepend implicit env vars ahead of the container's own.

    User entries come later in the list, so they win when the same name is
    declared twice.
    """
    container.env = [copy.deepcopy(e) for e in implicit_env_vars] + list(container.env or [])


def merge_implicit_volume_mounts(
    container: client.V1Container,
    implicit_volume_mounts: Iterable[client.V1VolumeMount]
) -> None:
    """
    Append implicit volume mounts unless the container already mounts
    something at the same (normalized) path.
    """
    mounts = list(container.volume_mounts or [])
    requested = {posixpath.normpath(vm.mount_path) for vm in mounts}

    for imp in implicit_volume_mounts:
        if posixpath.normpath(imp.mount_path) not in requested:
            mounts.append(copy.deepcopy(imp))

    container.volume_mounts = mounts


# =============================================================================
# Resource Requests
# =============================================================================

def find_max_resource_requests(
    steps: Sequence[Step],
    resource_names: Sequence[str] = TRACKED_RESOURCES
) -> Dict[str, int]:
    """
    Find, per resource kind, the index of the step with the largest request.

    Only a strictly greater request replaces the current maximum, so ties go
    to the earliest step. A kind no step requests maps to -1.

    Returns:
        Dict of resource name -> step index (or -1)

    Example:
        cpu requests [100m, 500m, 200m] -> {"cpu": 1, "memory": -1, ...}
    """
    max_indices = {name: -1 for name in resource_names}
    max_requests = {name: parse_quantity(ZERO_QUANTITY) for name in resource_names}

    for i, step in enumerate(steps):
        resources = step.container.resources
        requests = (resources.requests if resources else None) or {}
        for name in resource_names:
            if name not in requests:
                continue
            request = parse_quantity(requests[name])
            if request > max_requests[name]:
                max_indices[name] = i
                max_requests[name] = request

    return max_indices


def zero_non_max_resource_requests(
    container: client.V1Container,
    step_index: int,
    max_indices: Dict[str, int]
) -> None:
    """Set the container's request to zero for every kind it does not hold the max of."""
    if container.resources is None:
        container.resources = client.V1ResourceRequirements()
    if container.resources.requests is None:
        container.resources.requests = {}

    for name, max_index in max_indices.items():
        if max_index != step_index:
            container.resources.requests[name] = ZERO_QUANTITY


# =============================================================================
# Metadata
# =============================================================================

def make_labels(task_run: TaskRun, managed_by: str) -> Dict[str, str]:
    """
    Build the pod labels.

    The managed-by default is set first so a TaskRun label can override it.
    The TaskRun label is set last so it always points at the owning TaskRun.
    """
    labels = {MANAGED_BY_LABEL_KEY: managed_by}
    labels.update(task_run.labels or {})
    labels[TASK_RUN_LABEL_KEY] = task_run.name
    return labels


def make_annotations(task_run: TaskRun) -> Dict[str, str]:
    """Copy TaskRun annotations and add an empty ready annotation placeholder."""
    annotations = dict(task_run.annotations or {})
    annotations[READY_ANNOTATION] = ""
    return annotations


def make_owner_references(task_run: TaskRun) -> List[client.V1OwnerReference]:
    """Controller reference so deleting the TaskRun deletes the pod."""
    return [
        client.V1OwnerReference(
            api_version=OWNER_API_VERSION,
            kind=OWNER_KIND,
            name=task_run.name,
            uid=task_run.uid,
            controller=True,
            block_owner_deletion=True
        )
    ]
