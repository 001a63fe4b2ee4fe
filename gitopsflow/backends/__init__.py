"""External-system backends: container engine, source control, health check."""

from gitopsflow.backends.docker import DockerEngine
from gitopsflow.backends.git import GitSourceControl
from gitopsflow.backends.health import HttpHealthCheck, PollingHealthCheck
from gitopsflow.backends.protocols import ContainerEngine, HealthCheck, SourceControl

__all__ = [
    "ContainerEngine",
    "SourceControl",
    "HealthCheck",
    "DockerEngine",
    "GitSourceControl",
    "HttpHealthCheck",
    "PollingHealthCheck",
]
