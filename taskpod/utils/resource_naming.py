"""
Resource naming utilities for compiled pods.

Centralized functions for generating consistent identifiers for:
- Pod names (TaskRun name plus a random hex suffix)
- Step and sidecar container names
- Synthesized init containers, script files and heredoc delimiters

Container names are prefixed by role so status reporting can map a container
back to the step or sidecar it came from:
- Steps: "step-<name>", or "step-unnamed-<index>" when the step has no name
- Sidecars: "sidecar-<name>"

Names are restricted to 63 characters (DNS-1123 label length).
"""

import secrets
from typing import Callable, Optional

MAX_NAME_LENGTH = 63
RANDOM_LENGTH = 5
MAX_GENERATED_NAME_LENGTH = MAX_NAME_LENGTH - RANDOM_LENGTH - 1

# Same alphabet as Kubernetes generateName suffixes: no vowels, no ambiguous chars
SUFFIX_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"
MAX_SUFFIX_ROUNDS = 32

STEP_PREFIX = "step-"
UNNAMED_STEP_PREFIX = "step-unnamed-"
SIDECAR_PREFIX = "sidecar-"

# Name of the step that copies the entrypoint binary into the tools volume
ENTRYPOINT_CARRIER_NAME = "place-tools"


class RandomSourceError(Exception):
    """Raised when the random byte source fails or returns a short read."""
    pass


class NameGenerator:
    """
    Generates length-restricted names with random suffixes.

    The byte source is injectable so tests can make suffixes deterministic.
    It defaults to secrets.token_bytes, which is stateless and safe to share
    between threads.
    """

    def __init__(self, random_bytes: Optional[Callable[[int], bytes]] = None):
        self._random_bytes = random_bytes or secrets.token_bytes

    def read_bytes(self, n: int) -> bytes:
        """
        Read exactly n bytes from the random source.

        Raises:
            RandomSourceError: If the source raises or returns fewer bytes
        """
        try:
            data = self._random_bytes(n)
        except OSError as e:
            raise RandomSourceError(f"Failed to read {n} random bytes: {e}") from e

        if len(data) < n:
            raise RandomSourceError(f"Short read from random source: wanted {n} bytes, got {len(data)}")
        return data[:n]

    def random_hex(self, n_bytes: int = 3) -> str:
        """
        Hex-encode n_bytes random bytes.

        Example:
            >>> NameGenerator(lambda n: b"\\x01\\xab\\xff").random_hex()
            "01abff"
        """
        return self.read_bytes(n_bytes).hex()

    def random_suffix(self, length: int = RANDOM_LENGTH) -> str:
        """
        Draw length characters uniformly from SUFFIX_ALPHABET.

        Bytes at or above the largest multiple of the alphabet size are
        discarded so every character is equally likely.

        Raises:
            RandomSourceError: If the source keeps yielding only rejected bytes
        """
        alphabet_size = len(SUFFIX_ALPHABET)
        limit = 256 - 256 % alphabet_size
        chars = []

        for _ in range(MAX_SUFFIX_ROUNDS):
            for b in self.read_bytes(length - len(chars)):
                if b < limit:
                    chars.append(SUFFIX_ALPHABET[b % alphabet_size])
            if len(chars) == length:
                return "".join(chars)

        raise RandomSourceError(f"Random source produced too few usable bytes after {MAX_SUFFIX_ROUNDS} reads")

    def restrict_length_with_random_suffix(self, base: str) -> str:
        """
        Truncate base so that base plus "-<suffix>" fits in 63 characters.

        Examples:
            >>> generator.restrict_length_with_random_suffix("place-scripts")
            "place-scripts-x7b2k"
        """
        if len(base) > MAX_GENERATED_NAME_LENGTH:
            base = base[:MAX_GENERATED_NAME_LENGTH]
        return f"{base}-{self.random_suffix()}"


def restrict_length(base: str) -> str:
    """Truncate a name to the maximum Kubernetes name length."""
    if len(base) > MAX_NAME_LENGTH:
        base = base[:MAX_NAME_LENGTH]
    return base


def step_container_name(step_name: Optional[str], index: int) -> str:
    """
    Get the container name for a step.

    Args:
        step_name: Declared step name (may be empty)
        index: Position of the step in the task

    Returns:
        "step-<step_name>" restricted to 63 chars, or "step-unnamed-<index>"

    Examples:
        >>> step_container_name("build", 0)
        "step-build"

        >>> step_container_name("", 2)
        "step-unnamed-2"
    """
    if not step_name:
        return f"{UNNAMED_STEP_PREFIX}{index}"
    return restrict_length(f"{STEP_PREFIX}{step_name}")


def sidecar_container_name(sidecar_name: Optional[str]) -> str:
    """Get the container name for a sidecar: "sidecar-<name>" restricted to 63 chars."""
    return restrict_length(f"{SIDECAR_PREFIX}{sidecar_name or ''}")


def is_container_step(container_name: str) -> bool:
    return container_name.startswith(STEP_PREFIX)


def is_container_sidecar(container_name: str) -> bool:
    return container_name.startswith(SIDECAR_PREFIX)


def is_entrypoint_carrier(container_name: str) -> bool:
    """Check if a renamed step is the entrypoint carrier, which runs as an init container."""
    return container_name == restrict_length(f"{STEP_PREFIX}{ENTRYPOINT_CARRIER_NAME}")


def trim_container_name_prefix(container_name: str) -> str:
    """
    Get the step name back from a step container name.

    Example:
        >>> trim_container_name_prefix("step-build")
        "build"
    """
    return container_name.removeprefix(STEP_PREFIX)


def trim_sidecar_name_prefix(container_name: str) -> str:
    """Get the sidecar name back from a sidecar container name."""
    return container_name.removeprefix(SIDECAR_PREFIX)
