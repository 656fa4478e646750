"""Utility modules for the pod compiler."""

from .resource_naming import (
    NameGenerator,
    RandomSourceError,
    restrict_length,
    step_container_name,
    sidecar_container_name,
    is_container_step,
    is_container_sidecar,
    is_entrypoint_carrier,
    trim_container_name_prefix,
    trim_sidecar_name_prefix,
)

__all__ = [
    'NameGenerator',
    'RandomSourceError',
    'restrict_length',
    'step_container_name',
    'sidecar_container_name',
    'is_container_step',
    'is_container_sidecar',
    'is_entrypoint_carrier',
    'trim_container_name_prefix',
    'trim_sidecar_name_prefix',
]
