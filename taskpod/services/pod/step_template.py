"""
Step template merging.

A Task's step template supplies container defaults. Each step is merged on
top of it: step values win, maps merge recursively, and lists of named
entries (env, volume mounts, ports, volume devices) merge by their key.
Any other list in the step replaces the template's.

Keyed lists keep the template's order: template entries come first (a
matching step entry is merged in place), then step-only entries in step
order. Env entries can therefore reference template variables with $(VAR).
"""

import copy
import logging
from typing import Any, Dict, List, Optional, Sequence

from kubernetes import client

from ...models import Step
from .serialization import from_dict, to_dict

logger = logging.getLogger(__name__)

# API field name -> key identifying an entry in that list
MERGE_KEYS = {
    "env": "name",
    "volumeMounts": "mountPath",
    "ports": "containerPort",
    "volumeDevices": "devicePath",
}


class StepTemplateMergeError(Exception):
    """Raised when a step cannot be merged with the step template."""
    pass


def _merge_list(base: List[Any], patch: List[Any], key: str) -> List[Any]:
    merged = [copy.deepcopy(item) for item in base]
    index = {item.get(key): i for i, item in enumerate(merged) if isinstance(item, dict)}

    for item in patch:
        if isinstance(item, dict) and item.get(key) in index:
            merged[index[item.get(key)]] = _merge_dict(merged[index[item.get(key)]], item)
        else:
            merged.append(copy.deepcopy(item))
    return merged


def _merge_dict(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for field, value in patch.items():
        current = merged.get(field)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[field] = _merge_dict(current, value)
        elif field in MERGE_KEYS and isinstance(current, list) and isinstance(value, list):
            merged[field] = _merge_list(current, value, MERGE_KEYS[field])
        else:
            merged[field] = copy.deepcopy(value)
    return merged


def merge_container(template: client.V1Container, container: client.V1Container) -> client.V1Container:
    """
    Merge one container on top of the template.

    Raises:
        StepTemplateMergeError: If the merged result is not a valid container
    """
    merged = _merge_dict(to_dict(template) or {}, to_dict(container) or {})
    try:
        return from_dict(merged, "V1Container")
    except ValueError as e:
        raise StepTemplateMergeError(
            f"failed to merge step {container.name!r} with step template: {e}"
        ) from e


def merge_steps_with_step_template(
    template: Optional[client.V1Container],
    steps: Sequence[Step]
) -> List[Step]:
    """
    Apply the step template to every step.

    Returns the steps unchanged (same objects) when there is no template.
    """
    if template is None:
        return list(steps)

    logger.debug(f"[TEMPLATE] Merging step template into {len(steps)} steps")
    return [Step(container=merge_container(template, s.container), script=s.script) for s in steps]
