"""
Credential initialization.

Builds the "credential-initializer" init container from the secrets attached
to the TaskRun's service account. Basic-auth and ssh-auth secrets are used
when they carry a tekton.dev/git-* or tekton.dev/docker-* annotation whose
value is the URL the credential applies to. Docker config secrets are always
used.
"""

import copy
import logging
from typing import Iterable, List, Optional, Tuple

from kubernetes import client

from ...utils.resource_naming import NameGenerator

logger = logging.getLogger(__name__)

GIT_ANNOTATION_PREFIX = "tekton.dev/git-"
DOCKER_ANNOTATION_PREFIX = "tekton.dev/docker-"

SECRET_MOUNT_ROOT = "/var/build-secrets"
CREDS_INIT_NAME = "credential-initializer"
CREDS_INIT_COMMAND = "/ko-app/creds-init"

BASIC_AUTH = "kubernetes.io/basic-auth"
SSH_AUTH = "kubernetes.io/ssh-auth"
DOCKER_CONFIG_JSON = "kubernetes.io/dockerconfigjson"
DOCKER_CFG = "kubernetes.io/dockercfg"


def _annotated_urls(secret: client.V1Secret, prefix: str) -> List[str]:
    annotations = (secret.metadata.annotations if secret.metadata else None) or {}
    return [v for k, v in sorted(annotations.items()) if k.startswith(prefix)]


def docker_flags(secret: client.V1Secret) -> List[str]:
    """
    creds-init flags for docker registry credentials.

    Basic-auth secrets need tekton.dev/docker-* annotations naming the
    registries. Docker config secrets are used as-is.
    """
    name = secret.metadata.name
    if secret.type == BASIC_AUTH:
        return [f"-basic-docker={name}={url}" for url in _annotated_urls(secret, DOCKER_ANNOTATION_PREFIX)]
    if secret.type == DOCKER_CONFIG_JSON:
        return [f"-docker-config={name}"]
    if secret.type == DOCKER_CFG:
        return [f"-docker-cfg={name}"]
    return []


def git_flags(secret: client.V1Secret) -> List[str]:
    """creds-init flags for a secret with tekton.dev/git-* annotations."""
    name = secret.metadata.name
    flags = []
    for url in _annotated_urls(secret, GIT_ANNOTATION_PREFIX):
        if secret.type == BASIC_AUTH:
            flags.append(f"-basic-git={name}={url}")
        elif secret.type == SSH_AUTH:
            flags.append(f"-ssh-git={name}={url}")
    return flags


def secret_mount_path(secret_name: str) -> str:
    return f"{SECRET_MOUNT_ROOT}/{secret_name}"


def creds_init(
    image: str,
    service_account_name: str,
    namespace: str,
    core_v1: client.CoreV1Api,
    implicit_volume_mounts: Iterable[client.V1VolumeMount] = (),
    implicit_env_vars: Iterable[client.V1EnvVar] = (),
    names: Optional[NameGenerator] = None
) -> Tuple[Optional[client.V1Container], List[client.V1Volume]]:
    """
    Build the credential init container and the secret volumes it mounts.

    Args:
        image: creds-init image
        service_account_name: Service account whose secrets are scanned
        namespace: Namespace of the service account and secrets
        core_v1: CoreV1Api used to read the service account and secrets
        implicit_volume_mounts: Mounts added after the secret mounts
        implicit_env_vars: Env vars for the container
        names: Name generator for the secret volume names

    Returns:
        (container, volumes), or (None, []) when no secret matched

    Raises:
        ApiException: If the service account or a secret cannot be read
    """
    names = names or NameGenerator()

    service_account = core_v1.read_namespaced_service_account(
        name=service_account_name,
        namespace=namespace
    )

    args = []
    volume_mounts = []
    volumes = []
    for ref in service_account.secrets or []:
        secret = core_v1.read_namespaced_secret(name=ref.name, namespace=namespace)

        flags = docker_flags(secret) + git_flags(secret)
        if not flags:
            continue
        args += flags

        volume_name = names.restrict_length_with_random_suffix(
            f"tekton-internal-secret-volume-{secret.metadata.name}"
        )
        volume_mounts.append(client.V1VolumeMount(
            name=volume_name,
            mount_path=secret_mount_path(secret.metadata.name)
        ))
        volumes.append(client.V1Volume(
            name=volume_name,
            secret=client.V1SecretVolumeSource(secret_name=secret.metadata.name)
        ))

    if not args:
        logger.debug(f"[CREDS] No annotated secrets on service account {namespace}/{service_account_name}")
        return None, []

    logger.info(f"[CREDS] Mounting {len(volumes)} secrets from service account {namespace}/{service_account_name}")

    container = client.V1Container(
        name=CREDS_INIT_NAME,
        image=image,
        command=[CREDS_INIT_COMMAND],
        args=args,
        volume_mounts=volume_mounts + [copy.deepcopy(vm) for vm in implicit_volume_mounts],
        env=[copy.deepcopy(e) for e in implicit_env_vars]
    )
    return container, volumes
