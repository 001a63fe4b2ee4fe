"""Runner configuration — env-driven.

Centralized settings using pydantic-settings. Reads from a .env file and
GITOPSFLOW_* environment variables, so the same runner works on a laptop
and inside a CI job where everything arrives through the environment.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class RunnerSettings(BaseSettings):
    """Pipeline runner settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export GITOPSFLOW_REGISTRY=docker.io/acme
        export GITOPSFLOW_IMAGE_NAME=flask-app
        export GITOPSFLOW_DESCRIPTOR_PATH=k8s/deployment.yaml
        export GITOPSFLOW_REGISTRY_PASSWORD=...

    Or via .env file::

        GITOPSFLOW_INTEGRATION_BRANCH=main
        GITOPSFLOW_SETTLE_SECONDS=10
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="GITOPSFLOW_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"

    # Build
    source_dir: Path = Path(".")
    dockerfile: str = "Dockerfile"
    registry: str = "docker.io/example"
    image_name: str = "flask-app"
    latest_tag: str = "latest"

    # Test instance and probe
    container_port: int = 5000
    host_port: int = 5000
    probe_host: str = "127.0.0.1"
    probe_path: str = "/"
    probe_timeout_seconds: float = 5.0
    probe_attempts: int = 1  # 1 = single shot, no polling
    probe_interval_seconds: float = 2.0
    settle_seconds: float = 10.0
    test_container_prefix: str = "gitopsflow-test"

    # Deployment descriptor write-back
    descriptor_path: Path = Path("k8s/deployment.yaml")
    integration_branch: str = "main"
    git_remote: str = "origin"
    git_user_name: str = ""
    git_user_email: str = ""
    commit_message_template: str = "Update image tag to {tag}"

    # Registry publish; credentials are supplied out-of-band
    registry_username: str = ""
    registry_password: SecretStr = SecretStr("")
    publish_attempts: int = 1  # 1 = no retry
    publish_backoff_seconds: float = 2.0

    # External binaries
    docker_binary: str = "docker"
    git_binary: str = "git"

    @property
    def probe_url(self) -> str:
        """URL of the test instance's root path on the bound host port."""
        path = self.probe_path if self.probe_path.startswith("/") else f"/{self.probe_path}"
        return f"http://{self.probe_host}:{self.host_port}{path}"

    @property
    def registry_host(self) -> str:
        """Host part of ``registry`` used for ``docker login``."""
        return self.registry.split("/", 1)[0]

    @property
    def has_registry_credentials(self) -> bool:
        return bool(self.registry_username and self.registry_password.get_secret_value())


# Module-level singleton, import as `from gitopsflow.config import settings`
settings = RunnerSettings()
