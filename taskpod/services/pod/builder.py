"""
Pod Builder

Compiles a TaskRun and its TaskSpec into a single Pod that runs the task's
steps as containers.

Kubernetes starts all containers of a pod at once. Ordering between steps is
enforced at runtime by the entrypoint binary (see entrypoint.py); this module
only emits the static pod spec:
- Init containers: credentials, working dirs, script placement, entrypoint carrier
- Containers: steps in declaration order, then sidecars
- Volumes: secrets, task volumes, pod template volumes, implicit volumes, scripts
- Metadata: name, namespace, owner reference, labels, annotations

Compilation is all-or-nothing: the first collaborator error propagates and
no pod is returned.
"""

import copy
import logging
from typing import Callable, List, Optional, Sequence, Tuple

from kubernetes import client

from ...config import get_settings
from ...models import Images, Step, TaskRun, TaskSpec
from ...utils.resource_naming import (
    NameGenerator,
    is_entrypoint_carrier,
    sidecar_container_name,
    step_container_name,
)
from .credentials import creds_init
from .defaults import (
    READY_ANNOTATION,
    READY_ANNOTATION_VALUE,
    PodDefaults,
    get_pod_defaults,
)
from .helpers import (
    find_max_resource_requests,
    make_annotations,
    make_labels,
    make_owner_references,
    merge_implicit_env,
    merge_implicit_volume_mounts,
    zero_non_max_resource_requests,
)
from .scripts import ScriptPlacer
from .step_template import merge_steps_with_step_template
from .volumes import validate_volumes
from .working_dir import working_dir_init

logger = logging.getLogger(__name__)

# (image, service account, namespace, kube client, implicit mounts, implicit env, names)
# -> (init container or None, secret volumes)
CredsInitBuilder = Callable[..., Tuple[Optional[client.V1Container], List[client.V1Volume]]]
# (image, steps, implicit mounts, names) -> init container or None
WorkingDirInitBuilder = Callable[..., Optional[client.V1Container]]
StepTemplateMerger = Callable[[Optional[client.V1Container], Sequence[Step]], List[Step]]
VolumeValidator = Callable[[Sequence[client.V1Volume]], None]

UpdatePod = Callable[[client.V1Pod], object]


class PodBuilder:
    """
    Compiles TaskRuns into Pods.

    Collaborators are injectable so tests and callers can substitute them.
    A PodBuilder holds no per-compilation state and can be shared between
    threads as long as its collaborators can.
    """

    def __init__(
        self,
        defaults: Optional[PodDefaults] = None,
        names: Optional[NameGenerator] = None,
        creds_init_builder: CredsInitBuilder = creds_init,
        working_dir_init_builder: WorkingDirInitBuilder = working_dir_init,
        step_template_merger: StepTemplateMerger = merge_steps_with_step_template,
        volume_validator: VolumeValidator = validate_volumes,
        managed_by: Optional[str] = None,
        default_service_account: Optional[str] = None
    ):
        settings = get_settings()
        self.defaults = defaults or get_pod_defaults()
        self.names = names or NameGenerator()
        self.creds_init_builder = creds_init_builder
        self.working_dir_init_builder = working_dir_init_builder
        self.step_template_merger = step_template_merger
        self.volume_validator = volume_validator
        self.managed_by = managed_by or settings.managed_by_label_value
        self.default_service_account = default_service_account or settings.default_service_account

    def make_pod(
        self,
        images: Images,
        task_run: TaskRun,
        task_spec: TaskSpec,
        kube_client: Optional[client.CoreV1Api]
    ) -> client.V1Pod:
        """
        Compile a TaskRun into a Pod.

        Args:
            images: Images for synthesized init containers
            task_run: The TaskRun being executed (owns the pod)
            task_spec: The resolved TaskSpec
            kube_client: CoreV1Api passed to the credentials builder

        Returns:
            V1Pod manifest, not yet created in the cluster

        Raises:
            ApiException: If credentials cannot be read
            VolumeValidationError: If the combined volumes are invalid
            StepTemplateMergeError: If a step cannot be merged with the step template
            ScriptPlacementError: If a script step's args cannot be rewired
            RandomSourceError: If the random source fails
        """
        defaults = self.defaults
        service_account = task_run.get_service_account_name(self.default_service_account)

        init_containers = []
        volumes = []

        creds_container, secret_volumes = self.creds_init_builder(
            images.creds_image,
            service_account,
            task_run.namespace,
            kube_client,
            defaults.implicit_volume_mounts,
            defaults.implicit_env_vars,
            names=self.names
        )
        if creds_container is not None:
            init_containers.append(creds_container)
            volumes.extend(secret_volumes)

        working_dir_container = self.working_dir_init_builder(
            images.shell_image,
            task_spec.steps,
            defaults.implicit_volume_mounts,
            names=self.names
        )
        if working_dir_container is not None:
            init_containers.append(working_dir_container)

        max_indices = find_max_resource_requests(task_spec.steps)
        scripts = ScriptPlacer(images.shell_image, defaults, self.names)

        carriers = []
        pod_steps = []
        for i, original in enumerate(task_spec.steps):
            step = Step(container=copy.deepcopy(original.container), script=original.script)
            container = step.container

            merge_implicit_env(container, defaults.implicit_env_vars)
            merge_implicit_volume_mounts(container, defaults.implicit_volume_mounts)
            scripts.place(step, i)

            if not container.working_dir:
                container.working_dir = defaults.workspace_dir
            container.name = step_container_name(container.name, i)

            if is_entrypoint_carrier(container.name):
                carriers.append(container)
            else:
                zero_non_max_resource_requests(container, i, max_indices)
                pod_steps.append(step)

        volumes.extend(copy.deepcopy(task_spec.volumes))
        volumes.extend(copy.deepcopy(task_run.pod_template.volumes))
        volumes.extend(copy.deepcopy(list(defaults.implicit_volumes)))

        if scripts.needed:
            volumes.append(scripts.volume())
            init_containers.append(scripts.container())
        init_containers.extend(carriers)

        self.volume_validator(volumes)

        suffix = self.names.random_hex(3)

        merged_steps = self.step_template_merger(task_spec.step_template, pod_steps)
        containers = [s.container for s in merged_steps]
        for sidecar in task_spec.sidecars:
            sidecar = copy.deepcopy(sidecar)
            sidecar.name = sidecar_container_name(sidecar.name)
            containers.append(sidecar)

        pod_template = task_run.pod_template
        pod = client.V1Pod(
            api_version="v1",
            kind="Pod",
            metadata=client.V1ObjectMeta(
                # Same namespace as the TaskRun so it can reach colocated resources
                namespace=task_run.namespace,
                # Random suffix: a TaskRun deleted and re-created with the same
                # name must not collide with its old pod
                name=f"{task_run.name}-pod-{suffix}",
                owner_references=make_owner_references(task_run),
                annotations=make_annotations(task_run),
                labels=make_labels(task_run, self.managed_by)
            ),
            spec=client.V1PodSpec(
                restart_policy="Never",
                init_containers=init_containers,
                containers=containers,
                service_account_name=service_account,
                volumes=volumes,
                node_selector=pod_template.node_selector,
                tolerations=pod_template.tolerations,
                affinity=pod_template.affinity,
                security_context=pod_template.security_context,
                runtime_class_name=pod_template.runtime_class_name
            )
        )

        logger.info(
            f"[POD] Compiled pod {task_run.namespace}/{pod.metadata.name} for TaskRun {task_run.name}: "
            f"{len(init_containers)} init containers, {len(containers)} containers, {len(volumes)} volumes"
        )
        return pod


def make_pod(
    images: Images,
    task_run: TaskRun,
    task_spec: TaskSpec,
    kube_client: Optional[client.CoreV1Api]
) -> client.V1Pod:
    """Compile a TaskRun into a Pod with the default collaborators."""
    return PodBuilder().make_pod(images, task_run, task_spec, kube_client)


def add_ready_annotation(pod: client.V1Pod, update: UpdatePod) -> None:
    """
    Set the ready annotation on a live pod if it is not already set.

    update persists the pod (e.g. a patch call against the API server) and
    is only called when the annotation changed. Its exceptions propagate.
    """
    if pod.metadata is None:
        pod.metadata = client.V1ObjectMeta()
    if pod.metadata.annotations is None:
        pod.metadata.annotations = {}

    if pod.metadata.annotations.get(READY_ANNOTATION) == READY_ANNOTATION_VALUE:
        return

    pod.metadata.annotations[READY_ANNOTATION] = READY_ANNOTATION_VALUE
    update(pod)
    logger.debug(f"[POD] Marked pod {pod.metadata.name} ready")
