"""
Entrypoint redirection.

Containers in a pod start together. To run steps one after another, each
step's command is replaced by the entrypoint binary, which waits for the
previous step's post file, runs the original command, then writes its own
post file. The binary is copied into the shared tools volume by the
"place-tools" step, which the pod compiler routes into the init containers.
"""

import copy
import dataclasses
import logging
from typing import List

from kubernetes import client

from ...models import Step, TaskSpec
from ...utils.resource_naming import ENTRYPOINT_CARRIER_NAME
from .scripts import ENTRYPOINT_FLAG

logger = logging.getLogger(__name__)

TOOLS_MOUNT_NAME = "tools"
TOOLS_MOUNT_POINT = "/builder/tools"
BINARY_LOCATION = f"{TOOLS_MOUNT_POINT}/entrypoint"

# Path of the entrypoint binary inside the entrypoint image
ENTRYPOINT_IMAGE_BINARY = "/ko-app/entrypoint"


class EntrypointRedirectError(Exception):
    """Raised when a step cannot be redirected through the entrypoint binary."""
    pass


def tools_volume_mount() -> client.V1VolumeMount:
    return client.V1VolumeMount(name=TOOLS_MOUNT_NAME, mount_path=TOOLS_MOUNT_POINT)


def tools_volume() -> client.V1Volume:
    return client.V1Volume(name=TOOLS_MOUNT_NAME, empty_dir=client.V1EmptyDirVolumeSource())


def entrypoint_args(index: int, command: List[str], args: List[str]) -> List[str]:
    """
    Build the entrypoint binary's arguments for the step at index.

    Example:
        >>> entrypoint_args(1, ["make", "-j4"], ["all"])
        ["-wait_file", "/builder/tools/0", "-post_file", "/builder/tools/1",
         "-entrypoint", "make", "--", "-j4", "all"]
    """
    result = []
    if index > 0:
        result += ["-wait_file", f"{TOOLS_MOUNT_POINT}/{index - 1}"]
    result += ["-post_file", f"{TOOLS_MOUNT_POINT}/{index}"]
    if command:
        result += [ENTRYPOINT_FLAG, command[0], "--"] + list(command[1:])
    else:
        # Script step: the script placer replaces the empty command with the script file
        result += [ENTRYPOINT_FLAG, "", "--"]
    return result + list(args)


def redirect_steps(steps: List[Step], entrypoint_image: str) -> List[Step]:
    """
    Rewrite steps to run through the entrypoint binary and prepend the
    place-tools step that provides it.

    The input steps are not modified.

    Raises:
        EntrypointRedirectError: If a step has neither a command nor a script
    """
    redirected = []
    for i, step in enumerate(steps):
        container = copy.deepcopy(step.container)
        command = list(container.command or [])
        if not command and not step.script:
            raise EntrypointRedirectError(
                f"step {i} ({container.name or 'unnamed'}) has no command; "
                "image entrypoint lookup is not supported"
            )

        container.args = entrypoint_args(i, command, list(container.args or []))
        container.command = [BINARY_LOCATION]
        container.volume_mounts = list(container.volume_mounts or []) + [tools_volume_mount()]
        redirected.append(Step(container=container, script=step.script))

    place_tools = Step(container=client.V1Container(
        name=ENTRYPOINT_CARRIER_NAME,
        image=entrypoint_image,
        command=["cp", ENTRYPOINT_IMAGE_BINARY, BINARY_LOCATION],
        volume_mounts=[tools_volume_mount()]
    ))

    logger.debug(f"[ENTRYPOINT] Redirected {len(redirected)} steps through {BINARY_LOCATION}")
    return [place_tools] + redirected


def redirect_task_spec(task_spec: TaskSpec, entrypoint_image: str) -> TaskSpec:
    """Return a copy of task_spec with redirected steps and the tools volume added."""
    return dataclasses.replace(
        task_spec,
        steps=redirect_steps(task_spec.steps, entrypoint_image),
        volumes=list(task_spec.volumes) + [tools_volume()]
    )
