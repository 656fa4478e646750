"""
Script placement for steps with an inline script.

Every step that carries a script gets its body written to an executable file
in the shared scripts volume by a single "place-scripts" init container. The
step is then rewired to run that file.
"""

import copy
import logging
import posixpath
from typing import Optional

from kubernetes import client

from ...models import Step
from ...utils.resource_naming import NameGenerator
from .defaults import PodDefaults

logger = logging.getLogger(__name__)

# Flag written by entrypoint redirection; the argument after it is the command to run
ENTRYPOINT_FLAG = "-entrypoint"

HEREDOC_BASE = "script-heredoc-randomly-generated"


class ScriptPlacementError(Exception):
    """Raised when a script step's args cannot be rewired to the script file."""
    pass


def generate_place_script(target_file: str, heredoc: str, script: str) -> str:
    """
    Generate the shell fragment that writes one script file.

    The heredoc delimiter is quoted so ${...} in the script body is copied
    literally instead of being expanded by the placing shell.

    Args:
        target_file: Absolute path of the script file to create
        heredoc: Random delimiter, not expected to appear in the script
        script: Script body

    Returns:
        Shell fragment as string
    """
    return f'''tmpfile="{target_file}"
touch ${{tmpfile}} && chmod +x ${{tmpfile}}
cat > ${{tmpfile}} << '{heredoc}'
{script}
{heredoc}
'''


class ScriptPlacer:
    """
    Accumulates script files for one pod compilation.

    Not shared between compilations: make_pod creates one per call.
    """

    def __init__(self, shell_image: str, defaults: PodDefaults, names: NameGenerator):
        self.defaults = defaults
        self.names = names
        self.needed = False
        self.init_container = client.V1Container(
            name=names.restrict_length_with_random_suffix("place-scripts"),
            image=shell_image,
            tty=True,
            command=["sh"],
            args=["-c", ""],
            volume_mounts=[copy.deepcopy(defaults.scripts_volume_mount)]
        )

    def place(self, step: Step, index: int) -> None:
        """
        Write the step's script into the place-scripts body and point the
        step at the resulting file. No-op for steps without a script.

        Raises:
            ScriptPlacementError: If the step args contain the entrypoint flag more than once
        """
        if not step.script:
            return

        container = step.container
        args = list(container.args or [])
        flag_count = args.count(ENTRYPOINT_FLAG)
        if flag_count > 1:
            raise ScriptPlacementError(
                f"step {index} ({container.name or 'unnamed'}) has {flag_count} "
                f"{ENTRYPOINT_FLAG} args; expected at most one"
            )

        self.needed = True

        target_file = posixpath.join(
            self.defaults.scripts_dir,
            self.names.restrict_length_with_random_suffix(f"script-{index}")
        )
        heredoc = self.names.restrict_length_with_random_suffix(HEREDOC_BASE)
        self.init_container.args[1] += generate_place_script(target_file, heredoc, step.script)

        # Entrypoint redirection already ran on this step: graft the script
        # path in as the command it should run. Otherwise run the file directly.
        if flag_count == 1:
            flag_index = args.index(ENTRYPOINT_FLAG)
            args = args[:flag_index + 1] + [target_file]
        else:
            args.append(target_file)
        container.args = args

        mounts = list(container.volume_mounts or [])
        mounts.append(copy.deepcopy(self.defaults.scripts_volume_mount))
        container.volume_mounts = mounts

        logger.debug(f"[SCRIPTS] Placing script for step {index} at {target_file}")

    def volume(self) -> Optional[client.V1Volume]:
        """The scripts volume, or None when no step had a script."""
        if not self.needed:
            return None
        return copy.deepcopy(self.defaults.scripts_volume)

    def container(self) -> Optional[client.V1Container]:
        """The place-scripts init container, or None when no step had a script."""
        if not self.needed:
            return None
        return self.init_container
