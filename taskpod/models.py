"""
Task and TaskRun models consumed by the pod compiler.

Container, volume and scheduling fields reuse the Kubernetes client models
so a compiled pod can be sent to the API server without translation.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from kubernetes import client


@dataclass
class Step:
    """One ordered unit of work in a Task, compiled into one container."""

    container: client.V1Container
    # Inline script body; when set it is written to a file and executed
    script: str = ""

    @property
    def name(self) -> Optional[str]:
        return self.container.name


@dataclass
class TaskSpec:
    """Declarative definition of a Task: ordered steps plus shared settings."""

    steps: List[Step] = field(default_factory=list)
    sidecars: List[client.V1Container] = field(default_factory=list)
    step_template: Optional[client.V1Container] = None
    volumes: List[client.V1Volume] = field(default_factory=list)


@dataclass
class PodTemplate:
    """Scheduling overlay copied as-is onto the compiled pod spec."""

    node_selector: Optional[Dict[str, str]] = None
    tolerations: Optional[List[client.V1Toleration]] = None
    affinity: Optional[client.V1Affinity] = None
    security_context: Optional[client.V1PodSecurityContext] = None
    runtime_class_name: Optional[str] = None
    volumes: List[client.V1Volume] = field(default_factory=list)


@dataclass
class TaskRun:
    """A request to execute a TaskSpec. Owns the pod compiled from it."""

    name: str
    namespace: str
    uid: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    service_account_name: str = ""
    pod_template: PodTemplate = field(default_factory=PodTemplate)

    def get_service_account_name(self, default: str = "default") -> str:
        return self.service_account_name or default


@dataclass
class Images:
    """Images for the init containers the compiler synthesizes."""

    creds_image: str
    shell_image: str
    entrypoint_image: str

    @classmethod
    def from_settings(cls, settings) -> "Images":
        return cls(
            creds_image=settings.creds_image,
            shell_image=settings.shell_image,
            entrypoint_image=settings.entrypoint_image,
        )
