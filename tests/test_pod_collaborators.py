"""
Unit tests for the pod compiler collaborators:
- working_dir.py: working directory init container
- step_template.py: step template merging
- entrypoint.py: entrypoint redirection
- volumes.py: volume validation
- serialization.py: API dict <-> model conversion
"""

import pytest
from unittest.mock import patch

pytest.importorskip("kubernetes")

from kubernetes import client

from taskpod.models import TaskSpec
from taskpod.services.pod.defaults import get_pod_defaults
from taskpod.services.pod.entrypoint import (
    EntrypointRedirectError,
    entrypoint_args,
    redirect_steps,
    redirect_task_spec,
)
from taskpod.services.pod.serialization import from_dict, to_dict
from taskpod.services.pod.step_template import (
    StepTemplateMergeError,
    merge_container,
    merge_steps_with_step_template,
)
from taskpod.services.pod.volumes import VolumeValidationError, validate_volumes
from taskpod.services.pod.working_dir import working_dir_init


def empty_dir(name):
    return client.V1Volume(name=name, empty_dir=client.V1EmptyDirVolumeSource())


@pytest.mark.unit
class TestWorkingDirInit:
    """Test the working-dir-initializer init container."""

    def test_no_working_dirs(self, make_step, names):
        assert working_dir_init("busybox", [make_step(name="a")], [], names=names) is None

    def test_only_absolute_dirs_outside_workspace(self, make_step, names):
        steps = [make_step(name="a", working_dir="/src"), make_step(name="b", working_dir="/workspace")]
        assert working_dir_init("busybox", steps, [], names=names) is None

    def test_relative_and_workspace_dirs(self, make_step, names):
        steps = [
            make_step(name="a", working_dir="/workspace/out/"),
            make_step(name="b", working_dir="build"),
            make_step(name="c", working_dir="build"),
            make_step(name="d", working_dir="/etc"),
        ]
        mounts = get_pod_defaults().implicit_volume_mounts

        container = working_dir_init("busybox", steps, mounts, names=names)

        assert container.name.startswith("working-dir-initializer-")
        assert container.image == "busybox"
        assert container.command == ["sh"]
        assert container.args == ["-c", "mkdir -p /workspace/out build"]
        assert container.working_dir == "/workspace"
        assert [vm.name for vm in container.volume_mounts] == ["workspace", "home"]


@pytest.mark.unit
class TestStepTemplate:
    """Test merging steps onto the step template."""

    def test_no_template_returns_steps(self, make_step):
        steps = [make_step(name="a")]
        assert merge_steps_with_step_template(None, steps)[0] is steps[0]

    def test_step_values_win(self):
        template = client.V1Container(name="", image="ubuntu", working_dir="/tmpl", args=["--template"])
        container = client.V1Container(name="step-a", image="alpine", args=["--step"])

        merged = merge_container(template, container)

        assert merged.name == "step-a"
        assert merged.image == "alpine"
        assert merged.working_dir == "/tmpl"
        assert merged.args == ["--step"]

    def test_env_merged_by_name(self):
        template = client.V1Container(name="", env=[
            client.V1EnvVar(name="A", value="template"),
            client.V1EnvVar(name="B", value="template"),
        ])
        container = client.V1Container(name="step-a", env=[
            client.V1EnvVar(name="B", value="step"),
            client.V1EnvVar(name="C", value="step"),
        ])

        merged = merge_container(template, container)

        assert [(e.name, e.value) for e in merged.env] == [("A", "template"), ("B", "step"), ("C", "step")]

    def test_volume_mounts_merged_by_path(self):
        template = client.V1Container(name="", volume_mounts=[client.V1VolumeMount(name="cache", mount_path="/cache")])
        container = client.V1Container(name="step-a", volume_mounts=[
            client.V1VolumeMount(name="other-cache", mount_path="/cache"),
            client.V1VolumeMount(name="workspace", mount_path="/workspace"),
        ])

        merged = merge_container(template, container)

        assert [(vm.name, vm.mount_path) for vm in merged.volume_mounts] == [
            ("other-cache", "/cache"), ("workspace", "/workspace")
        ]

    def test_resources_merged_recursively(self):
        template = client.V1Container(name="", resources=client.V1ResourceRequirements(
            requests={"cpu": "1", "memory": "1Gi"}, limits={"memory": "2Gi"}
        ))
        container = client.V1Container(name="step-a", resources=client.V1ResourceRequirements(requests={"cpu": "0"}))

        merged = merge_container(template, container)

        assert merged.resources.requests == {"cpu": "0", "memory": "1Gi"}
        assert merged.resources.limits == {"memory": "2Gi"}

    def test_script_kept(self, make_step):
        template = client.V1Container(name="", image="python:3")
        steps = [make_step(name="a", image=None, script="print('hi')")]

        merged = merge_steps_with_step_template(template, steps)

        assert merged[0].script == "print('hi')"
        assert merged[0].container.image == "python:3"
        assert steps[0].container.image is None

    def test_invalid_merge_raises(self):
        template = client.V1Container(name="", ports=[client.V1ContainerPort(container_port=80)])
        container = client.V1Container(name="step-a")
        api_forms = {
            id(template): {"name": "", "ports": [{"containerPort": 80}]},
            id(container): {"name": "step-a", "ports": "http"},
        }

        with patch("taskpod.services.pod.step_template.to_dict", side_effect=lambda obj: api_forms[id(obj)]):
            with pytest.raises(StepTemplateMergeError, match="step-a"):
                merge_container(template, container)

    def test_library_errors_not_relabeled(self):
        template = client.V1Container(name="", image="ubuntu")
        container = client.V1Container(name="step-a")

        with patch("taskpod.services.pod.step_template.from_dict", side_effect=TypeError("bad call")):
            with pytest.raises(TypeError, match="bad call"):
                merge_container(template, container)

    def test_ports_and_resources_survive_merge(self):
        template = client.V1Container(name="", image="golang:1.22", ports=[client.V1ContainerPort(container_port=80)])
        container = client.V1Container(
            name="step-a",
            ports=[client.V1ContainerPort(container_port=80, name="http")],
            resources=client.V1ResourceRequirements(requests={"cpu": "500m"})
        )

        merged = merge_container(template, container)

        assert isinstance(merged, client.V1Container)
        assert merged.image == "golang:1.22"
        assert [(p.container_port, p.name) for p in merged.ports] == [(80, "http")]
        assert isinstance(merged.ports[0], client.V1ContainerPort)
        assert merged.resources.requests == {"cpu": "500m"}


@pytest.mark.unit
class TestEntrypointRedirect:
    """Test redirecting steps through the entrypoint binary."""

    def test_first_step_does_not_wait(self):
        assert entrypoint_args(0, ["echo"], ["hi"]) == [
            "-post_file", "/builder/tools/0", "-entrypoint", "echo", "--", "hi"
        ]

    def test_later_step_waits_on_previous(self):
        assert entrypoint_args(2, ["make", "-j4"], ["all"]) == [
            "-wait_file", "/builder/tools/1", "-post_file", "/builder/tools/2",
            "-entrypoint", "make", "--", "-j4", "all"
        ]

    def test_redirect_steps(self, make_step):
        steps = [make_step(name="build", command=["make"]), make_step(name="test", script="make test")]

        redirected = redirect_steps(steps, "entrypoint:test")

        place_tools = redirected[0].container
        assert place_tools.name == "place-tools"
        assert place_tools.image == "entrypoint:test"
        assert place_tools.command == ["cp", "/ko-app/entrypoint", "/builder/tools/entrypoint"]

        build, test = redirected[1].container, redirected[2].container
        assert build.command == ["/builder/tools/entrypoint"]
        assert build.args == ["-post_file", "/builder/tools/0", "-entrypoint", "make", "--"]
        assert test.args == [
            "-wait_file", "/builder/tools/0", "-post_file", "/builder/tools/1", "-entrypoint", "", "--"
        ]
        assert redirected[2].script == "make test"
        assert build.volume_mounts[-1].mount_path == "/builder/tools"

        assert steps[0].container.command == ["make"]

    def test_step_without_command_rejected(self, make_step):
        with pytest.raises(EntrypointRedirectError):
            redirect_steps([make_step(name="bare")], "entrypoint:test")

    def test_redirect_task_spec_adds_tools_volume(self, make_step):
        task_spec = TaskSpec(steps=[make_step(name="a", command=["ls"])], volumes=[empty_dir("data")])

        redirected = redirect_task_spec(task_spec, "entrypoint:test")

        assert [v.name for v in redirected.volumes] == ["data", "tools"]
        assert len(redirected.steps) == 2
        assert [v.name for v in task_spec.volumes] == ["data"]


@pytest.mark.unit
class TestValidateVolumes:
    """Test volume validation."""

    def test_unique_names(self):
        validate_volumes([empty_dir("a"), empty_dir("b")])

    def test_duplicate_names(self):
        with pytest.raises(VolumeValidationError) as exc_info:
            validate_volumes([empty_dir("a"), empty_dir("b"), empty_dir("a")])

        assert exc_info.value.message == 'multiple volumes with same name "a"'
        assert exc_info.value.paths == ["name"]

    def test_empty_name(self):
        with pytest.raises(VolumeValidationError):
            validate_volumes([empty_dir("")])


@pytest.mark.unit
class TestSerialization:
    """Test converting API-form dicts into models and back."""

    def test_container_from_api_form(self):
        container = from_dict({
            "name": "build",
            "image": "golang",
            "command": ["go", "build"],
            "workingDir": "/src",
            "env": [{"name": "CGO_ENABLED", "value": "0"}],
            "ports": [{"containerPort": 8080, "protocol": "TCP"}],
            "resources": {"requests": {"cpu": "500m", "memory": "1Gi"}},
            "securityContext": {"privileged": False, "runAsUser": 1000},
        }, "V1Container")

        assert container.working_dir == "/src"
        assert container.env[0] == client.V1EnvVar(name="CGO_ENABLED", value="0")
        assert container.ports[0].container_port == 8080
        assert container.resources.requests == {"cpu": "500m", "memory": "1Gi"}
        assert container.security_context.privileged is False
        assert container.security_context.run_as_user == 1000

    def test_list_and_object_fields(self):
        volumes = from_dict([
            {"name": "data", "emptyDir": {}},
            {"name": "conf", "configMap": {"name": "settings", "items": [{"key": "a", "path": "a.yaml"}]}},
        ], "list[V1Volume]")

        assert [v.name for v in volumes] == ["data", "conf"]
        assert isinstance(volumes[0].empty_dir, client.V1EmptyDirVolumeSource)
        assert volumes[1].config_map.items[0].path == "a.yaml"

    def test_int_or_string_passes_through(self):
        readiness = from_dict({"httpGet": {"path": "/healthz", "port": "http"}}, "V1Probe")
        assert readiness.http_get.port == "http"

    def test_round_trip_keeps_api_form(self):
        data = {"name": "db", "image": "postgres", "env": [{"name": "PGDATA", "value": "/data"}]}
        assert to_dict(from_dict(data, "V1Container")) == data

    def test_wrong_shape_raises(self):
        with pytest.raises(ValueError, match="V1EnvVar"):
            from_dict({"name": "a", "env": ["PATH=/bin"]}, "V1Container")

        with pytest.raises(ValueError, match="list"):
            from_dict({"name": "a", "args": "echo"}, "V1Container")
