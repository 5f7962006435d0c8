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

"""Local kind clusters."""

from __future__ import annotations

import threading

import sh
from rich.panel import Panel
from tenacity import retry, stop_after_attempt, wait_fixed

from mesh_smoke import console, logger
from mesh_smoke.clusters import Cluster
from mesh_smoke.constants import (
    CLUSTER_TYPE_KIND,
    DEFAULT_KUBERNETES_VERSION,
    KIND_CREATE_MAX_RETRIES,
    KIND_CREATE_RETRY_WAIT_SECONDS,
    KIND_NODE_IMAGE_FORMAT,
    KIND_WAIT_TIMEOUT,
)
from mesh_smoke.errors import AuthenticationError, ProvisioningError, TeardownError
from mesh_smoke.kubeconfig import rest_config_from_kubeconfig
from mesh_smoke.polling import check_cancelled
from mesh_smoke.utils import require_command
from mesh_smoke.versions import parse_version


class KindCluster(Cluster):
    """Handle to a kind cluster running on the local Docker daemon."""

    cluster_type = CLUSTER_TYPE_KIND

    def _teardown(self, cancel: threading.Event | None) -> None:
        check_cancelled(cancel, f"deleting kind cluster {self.name}")
        delete_kind_cluster(self.name)


def delete_kind_cluster(name: str) -> None:
    console.print(f"[yellow]\u2139\ufe0f  Deleting kind cluster '{name}'...[/yellow]")
    require_command("kind")
    try:
        sh.kind("delete", "cluster", "--name", name)
    except sh.ErrorReturnCode as err:
        raise TeardownError(f"failed to delete kind cluster {name}") from err
    console.print(f"[green]\u2705 Cluster '{name}' deleted[/green]")


def attach_kind_cluster(name: str) -> KindCluster:
    """Build a handle from the kubeconfig kind reports for *name*.

    Raises:
        AuthenticationError: If kind has no cluster called *name*.
    """
    require_command("kind")
    try:
        document = str(sh.kind("get", "kubeconfig", "--name", name))
    except sh.ErrorReturnCode as err:
        raise AuthenticationError(f"failed to read kubeconfig of kind cluster {name}") from err
    _, rest_config = rest_config_from_kubeconfig(document)
    return KindCluster(name, rest_config)


class KindBuilder:
    """Creates a single-node kind cluster, replacing any cluster of the same name."""

    def __init__(self, name: str, kubernetes_version: str = DEFAULT_KUBERNETES_VERSION) -> None:
        self.name = name
        self._version = parse_version(kubernetes_version)

    def with_cluster_version(self, version: str) -> KindBuilder:
        self._version = parse_version(version)
        return self

    def build(self, cancel: threading.Event | None = None) -> KindCluster:
        """Create the cluster with retries and return its handle.

        Raises:
            ProvisioningError: If the cluster cannot be created after all retries.
            OperationCancelled: If *cancel* is set before creation starts.
        """
        console.print(Panel.fit(f"Creating kind cluster {self.name}", style="bold blue"))
        require_command("kind")
        check_cancelled(cancel, f"creating kind cluster {self.name}")

        @retry(
            stop=stop_after_attempt(KIND_CREATE_MAX_RETRIES),
            wait=wait_fixed(KIND_CREATE_RETRY_WAIT_SECONDS),
            reraise=True,
        )
        def _attempt() -> None:
            try:
                sh.kind("delete", "cluster", "--name", self.name)
                console.print("[yellow]   Removed existing cluster[/yellow]")
            except sh.ErrorReturnCode:
                console.print("[yellow]   No existing cluster found[/yellow]")

            sh.kind(
                "create", "cluster",
                "--name", self.name,
                "--image", KIND_NODE_IMAGE_FORMAT.format(self._version),
                "--wait", KIND_WAIT_TIMEOUT,
            )

        try:
            _attempt()
        except sh.ErrorReturnCode as err:
            raise ProvisioningError(f"failed to create kind cluster {self.name}") from err
        console.print("[green]\u2705 Cluster created successfully[/green]")
        logger.info("kind cluster %s uses Kubernetes %s", self.name, self._version)
        return attach_kind_cluster(self.name)


class KindProvider:
    """Local provider; callers fall back to :class:`KindBuilder`."""

    def build(self, env_name: str) -> None:
        return None

    def attach(self, env_name: str, cancel: threading.Event | None = None) -> KindCluster:
        return attach_kind_cluster(env_name)

    def cleanup(self, env_name: str, cancel: threading.Event | None = None) -> None:
        check_cancelled(cancel, f"deleting kind cluster {env_name}")
        delete_kind_cluster(env_name)
