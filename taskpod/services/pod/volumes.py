"""Validation of the combined pod volume list."""

from typing import Iterable, List, Optional

from kubernetes import client


class VolumeValidationError(Exception):
    """Raised when the pod volume list is invalid."""

    def __init__(self, message: str, paths: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.paths = paths or []

    def __str__(self):
        if self.paths:
            return f"{self.message}: {', '.join(self.paths)}"
        return self.message


def validate_volumes(volumes: Iterable[client.V1Volume]) -> None:
    """
    Check that every volume has a non-empty, unique name.

    Raises:
        VolumeValidationError: On the first empty or repeated name
    """
    seen = set()
    for volume in volumes:
        if not volume.name:
            raise VolumeValidationError("volume name must not be empty", ["name"])
        if volume.name in seen:
            raise VolumeValidationError(f'multiple volumes with same name "{volume.name}"', ["name"])
        seen.add(volume.name)
