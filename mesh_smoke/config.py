# /*
# Copyright 2026 The Mesh Smoke Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Configuration classes and environment guards."""

from __future__ import annotations

import os
from collections.abc import Sequence

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from mesh_smoke import console
from mesh_smoke.constants import (
    CREATE_POLL_INTERVAL_SECONDS,
    CREATE_POLL_TIMEOUT_SECONDS,
    DEFAULT_KUBERNETES_VERSION,
    DEFAULT_NODE_MACHINE_TYPE,
    DEFAULT_VPC_CIDR,
    DELETE_POLL_INTERVAL_SECONDS,
    DELETE_POLL_TIMEOUT_SECONDS,
    ENVIRONMENT_CLEANUP_TIMEOUT_SECONDS,
    ENVIRONMENT_CREATE_TIMEOUT_SECONDS,
    KUBECONFIG_STDOUT,
)
from mesh_smoke.errors import MissingEnvError


# ============================================================================
# Configuration classes
# ============================================================================

class EksSettings(BaseSettings):
    """EKS builder configuration, auto-loaded from EKS_* env vars.

    Attributes:
        node_ssh_key: EC2 key pair name enabling SSH on worker nodes, or None.
        kubernetes_version: Kubernetes version for new clusters (patch is stripped on submit).
        node_machine_type: EC2 instance type for the default node group.
        vpc_cidr: CIDR block of the VPC created for each cluster.
        create_poll_interval: Seconds between readiness checks during build.
        create_poll_timeout: Deadline in seconds for cluster and node group readiness.
        delete_poll_interval: Seconds between deletion checks during teardown.
        delete_poll_timeout: Upper bound in seconds for each deletion wait.
    """

    model_config = SettingsConfigDict(env_prefix="EKS_", extra="ignore")

    node_ssh_key: str | None = None
    kubernetes_version: str = Field(default=DEFAULT_KUBERNETES_VERSION, pattern=r"^v?\d+\.\d+\.\d+$")
    node_machine_type: str = DEFAULT_NODE_MACHINE_TYPE
    vpc_cidr: str = DEFAULT_VPC_CIDR
    create_poll_interval: float = Field(default=CREATE_POLL_INTERVAL_SECONDS, ge=0)
    create_poll_timeout: float = Field(default=CREATE_POLL_TIMEOUT_SECONDS, ge=0)
    delete_poll_interval: float = Field(default=DELETE_POLL_INTERVAL_SECONDS, ge=0)
    delete_poll_timeout: float = Field(default=DELETE_POLL_TIMEOUT_SECONDS, ge=0)

    @field_validator("node_ssh_key", mode="before")
    @classmethod
    def _empty_key_is_unset(cls, value: str | None) -> str | None:
        return value or None


class SmokeSettings(BaseSettings):
    """CLI defaults, auto-loaded from SMOKE_* env vars.

    Attributes:
        env_platform: Provider name used when --env-platform is not given.
        kubeconfig_output: Kubeconfig destination path, or ``-`` for stdout.
        kubernetes_version: Kubernetes version for providers without their own default.
        create_timeout: Seconds before a deploy is cancelled.
        cleanup_timeout: Seconds before a cleanup is cancelled.
    """

    model_config = SettingsConfigDict(env_prefix="SMOKE_", extra="ignore")

    env_platform: str = "kind"
    kubeconfig_output: str = KUBECONFIG_STDOUT
    kubernetes_version: str = Field(default=DEFAULT_KUBERNETES_VERSION, pattern=r"^v?\d+\.\d+\.\d+$")
    create_timeout: float = Field(default=ENVIRONMENT_CREATE_TIMEOUT_SECONDS, gt=0)
    cleanup_timeout: float = Field(default=ENVIRONMENT_CLEANUP_TIMEOUT_SECONDS, gt=0)


# ============================================================================
# Environment guards
# ============================================================================

def require_env(names: Sequence[str]) -> dict[str, str]:
    """Read required environment variables in order.

    Args:
        names: Variable names to read.

    Returns:
        Mapping of variable name to its (non-empty) value.

    Raises:
        MissingEnvError: For the first variable that is unset or empty.
    """
    values: dict[str, str] = {}
    for name in names:
        value = os.environ.get(name, "")
        if not value:
            raise MissingEnvError(name)
        values[name] = value
    return values


def display_settings(platform: str, env_name: str, settings: EksSettings | None = None) -> None:
    """Print the configuration relevant to the requested environment.

    Args:
        platform: Provider name the environment is deployed on.
        env_name: Environment (cluster) name.
        settings: EKS settings, shown only for the eks platform.
    """
    console.print(Panel.fit("Configuration", style="bold blue"))
    console.print(f"  env_platform       : {platform}")
    console.print(f"  env_name           : {env_name}")
    if settings is not None:
        console.print(f"  kubernetes_version : {settings.kubernetes_version}")
        console.print(f"  node_machine_type  : {settings.node_machine_type}")
        console.print(f"  vpc_cidr           : {settings.vpc_cidr}")
        console.print(f"  node_ssh_key       : {settings.node_ssh_key or '(none)'}")
