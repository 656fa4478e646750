"""
Pod Compilation Module

This module turns a TaskRun and its TaskSpec into a single Pod:
- PodBuilder / make_pod: assembles init containers, containers, volumes and metadata
- add_ready_annotation: marks a live pod ready exactly once
- Helpers: implicit mounts/env, resource request consolidation, labels
- Collaborators: credentials init, working dir init, step template merge,
  volume validation, entrypoint redirection, script placement

Steps run one at a time inside the pod, so:
1. Each step is redirected through the entrypoint binary (redirect_task_spec)
2. Only the step with the largest request keeps it, per resource kind
3. Inline scripts are written to files by a shared init container
"""

from .builder import PodBuilder, make_pod, add_ready_annotation
from .defaults import (
    PodDefaults,
    get_pod_defaults,
    READY_ANNOTATION,
    READY_ANNOTATION_VALUE,
    MANAGED_BY_LABEL_KEY,
    TASK_RUN_LABEL_KEY,
)
from .helpers import (
    merge_implicit_env,
    merge_implicit_volume_mounts,
    find_max_resource_requests,
    zero_non_max_resource_requests,
    make_labels,
    make_annotations,
)
from .credentials import creds_init
from .working_dir import working_dir_init
from .entrypoint import redirect_steps, redirect_task_spec, EntrypointRedirectError
from .scripts import ScriptPlacer, ScriptPlacementError
from .step_template import merge_steps_with_step_template, StepTemplateMergeError
from .volumes import validate_volumes, VolumeValidationError

__all__ = [
    # Builder
    "PodBuilder",
    "make_pod",
    "add_ready_annotation",
    # Defaults
    "PodDefaults",
    "get_pod_defaults",
    "READY_ANNOTATION",
    "READY_ANNOTATION_VALUE",
    "MANAGED_BY_LABEL_KEY",
    "TASK_RUN_LABEL_KEY",
    # Helpers
    "merge_implicit_env",
    "merge_implicit_volume_mounts",
    "find_max_resource_requests",
    "zero_non_max_resource_requests",
    "make_labels",
    "make_annotations",
    # Collaborators
    "creds_init",
    "working_dir_init",
    "redirect_steps",
    "redirect_task_spec",
    "EntrypointRedirectError",
    "ScriptPlacer",
    "ScriptPlacementError",
    "merge_steps_with_step_template",
    "StepTemplateMergeError",
    "validate_volumes",
    "VolumeValidationError",
]
