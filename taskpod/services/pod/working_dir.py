"""Working directory initialization for steps that run in a subdirectory of /workspace."""

import copy
import logging
import posixpath
from typing import Iterable, Optional, Sequence

from kubernetes import client

from ...models import Step
from ...utils.resource_naming import NameGenerator
from .defaults import WORKSPACE_DIR

logger = logging.getLogger(__name__)


def working_dir_init(
    shell_image: str,
    steps: Sequence[Step],
    volume_mounts: Iterable[client.V1VolumeMount],
    names: Optional[NameGenerator] = None
) -> Optional[client.V1Container]:
    """
    Build an init container that creates the steps' working directories.

    Only relative directories and directories under /workspace/ are created;
    other absolute paths are assumed to exist in the step image.

    Returns:
        V1Container running "mkdir -p <dirs>", or None if there is nothing to create
    """
    working_dirs = sorted({s.container.working_dir for s in steps if s.container.working_dir})

    relative_dirs = []
    for wd in working_dirs:
        p = posixpath.normpath(wd)
        if not posixpath.isabs(p) or p.startswith(f"{WORKSPACE_DIR}/"):
            relative_dirs.append(p)

    if not relative_dirs:
        return None

    names = names or NameGenerator()
    logger.debug(f"[WORKDIR] Creating working dirs: {relative_dirs}")

    return client.V1Container(
        name=names.restrict_length_with_random_suffix("working-dir-initializer"),
        image=shell_image,
        command=["sh"],
        args=["-c", "mkdir -p " + " ".join(relative_dirs)],
        working_dir=WORKSPACE_DIR,
        volume_mounts=[copy.deepcopy(vm) for vm in volume_mounts]
    )
