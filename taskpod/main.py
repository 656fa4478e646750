#!/usr/bin/env python3
"""
Render the Pod a TaskRun would compile to.

Usage:
    taskpod-render taskrun.yaml
    taskpod-render --redirect-entrypoints --format json taskrun.yaml

The input document has two keys, in Kubernetes API form:

    taskRun:
      metadata: {name: build-1, namespace: ci, labels: {...}}
      spec:
        serviceAccountName: builder
        podTemplate: {nodeSelector: {...}, volumes: [...]}
    taskSpec:
      steps:
        - name: compile
          image: golang
          script: |
            go build ./...
      sidecars: [...]
      stepTemplate: {...}
      volumes: [...]

No cluster is contacted, so no credential init container is emitted.
"""

import json
import logging
import sys
from typing import Any, Dict

import yaml

from .config import get_settings
from .models import Images, PodTemplate, Step, TaskRun, TaskSpec
from .services.pod import PodBuilder, redirect_task_spec
from .services.pod.serialization import from_dict, to_dict

logger = logging.getLogger(__name__)


def _no_creds(*args, **kwargs):
    return None, []


def parse_step(data: Dict[str, Any]) -> Step:
    data = dict(data)
    script = data.pop("script", "") or ""
    data.setdefault("name", "")
    return Step(container=from_dict(data, "V1Container"), script=script)


def parse_task_spec(data: Dict[str, Any]) -> TaskSpec:
    step_template = data.get("stepTemplate")
    if step_template is not None:
        step_template = from_dict({"name": "", **step_template}, "V1Container")

    return TaskSpec(
        steps=[parse_step(s) for s in data.get("steps") or []],
        sidecars=from_dict(data.get("sidecars") or [], "list[V1Container]"),
        step_template=step_template,
        volumes=from_dict(data.get("volumes") or [], "list[V1Volume]"),
    )


def parse_task_run(data: Dict[str, Any]) -> TaskRun:
    metadata = data.get("metadata") or {}
    spec = data.get("spec") or {}
    template = spec.get("podTemplate") or {}

    return TaskRun(
        name=metadata["name"],
        namespace=metadata.get("namespace", "default"),
        uid=metadata.get("uid", ""),
        labels=metadata.get("labels") or {},
        annotations=metadata.get("annotations") or {},
        service_account_name=spec.get("serviceAccountName", ""),
        pod_template=PodTemplate(
            node_selector=template.get("nodeSelector"),
            tolerations=from_dict(template["tolerations"], "list[V1Toleration]") if "tolerations" in template else None,
            affinity=from_dict(template["affinity"], "V1Affinity") if "affinity" in template else None,
            security_context=(
                from_dict(template["securityContext"], "V1PodSecurityContext")
                if "securityContext" in template else None
            ),
            runtime_class_name=template.get("runtimeClassName"),
            volumes=from_dict(template.get("volumes") or [], "list[V1Volume]"),
        ),
    )


def render(document: Dict[str, Any], redirect_entrypoints: bool = False) -> Dict[str, Any]:
    """Compile the document's TaskRun and return the pod in API form."""
    settings = get_settings()
    images = Images.from_settings(settings)

    task_run = parse_task_run(document["taskRun"])
    task_spec = parse_task_spec(document.get("taskSpec") or {})
    if redirect_entrypoints:
        task_spec = redirect_task_spec(task_spec, images.entrypoint_image)

    pod = PodBuilder(creds_init_builder=_no_creds).make_pod(images, task_run, task_spec, None)
    return to_dict(pod)


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Render the Pod compiled from a TaskRun")
    parser.add_argument("path", help="YAML file with taskRun and taskSpec, or - for stdin")
    parser.add_argument(
        "--redirect-entrypoints",
        action="store_true",
        help="Run steps through the entrypoint binary so they execute in order"
    )
    parser.add_argument("--format", choices=["yaml", "json"], default="yaml")
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr
    )

    if args.path == "-":
        document = yaml.safe_load(sys.stdin)
    else:
        with open(args.path, encoding="utf-8") as f:
            document = yaml.safe_load(f)

    try:
        pod = render(document, redirect_entrypoints=args.redirect_entrypoints)
    except Exception as e:
        logger.error(f"Failed to compile pod: {e}")
        sys.exit(1)

    if args.format == "json":
        print(json.dumps(pod, indent=2))
    else:
        print(yaml.safe_dump(pod, default_flow_style=False, sort_keys=False))


if __name__ == "__main__":
    main()
