"""
Test configuration and fixtures for pytest.

Fixtures include: images, TaskRuns, deterministic name generators and a
PodBuilder that does not contact a cluster.
"""

import os
import pytest


def pytest_configure(config):
    """
    Pytest hook called before test collection.
    Sets up test environment variables and registers custom markers.
    """
    # Set test environment variables BEFORE any taskpod imports read settings
    os.environ["TASKPOD_SHELL_IMAGE"] = "busybox:test"
    os.environ["TASKPOD_CREDS_IMAGE"] = "creds-init:test"
    os.environ["TASKPOD_ENTRYPOINT_IMAGE"] = "entrypoint:test"
    os.environ["TASKPOD_MANAGED_BY_LABEL_VALUE"] = "tekton-pipelines"

    from taskpod.config import get_settings
    get_settings.cache_clear()

    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "kubernetes: mark test as requiring Kubernetes models")


class CountingBytes:
    """Deterministic random source: each call returns different bytes."""

    def __init__(self):
        self.calls = 0

    def __call__(self, n):
        self.calls += 1
        return bytes((self.calls * 7 + i) % 256 for i in range(n))


def no_creds(*args, **kwargs):
    return None, []


@pytest.fixture
def names():
    from taskpod.utils.resource_naming import NameGenerator
    return NameGenerator(CountingBytes())


@pytest.fixture
def images():
    from taskpod.models import Images
    return Images(creds_image="creds-init:test", shell_image="busybox:test", entrypoint_image="entrypoint:test")


@pytest.fixture
def task_run():
    from taskpod.models import TaskRun
    return TaskRun(name="build-1", namespace="ci", uid="1234-abcd")


@pytest.fixture
def builder(names):
    from taskpod.services.pod import PodBuilder
    return PodBuilder(names=names, creds_init_builder=no_creds)


@pytest.fixture
def make_step():
    """Factory building a Step around a V1Container."""
    from kubernetes import client
    from taskpod.models import Step

    def _make_step(name="", script="", **kwargs):
        kwargs.setdefault("image", "alpine")
        return Step(container=client.V1Container(name=name, **kwargs), script=script)

    return _make_step
