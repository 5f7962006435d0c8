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

"""Google Kubernetes Engine clusters driven through gcloud."""

from __future__ import annotations

import base64
import json
import os
import threading
from typing import Any

import sh
from rich.panel import Panel

from mesh_smoke import console, logger
from mesh_smoke.clusters import Cluster, RestConfig, write_temp_file
from mesh_smoke.config import require_env
from mesh_smoke.constants import (
    CLUSTER_TYPE_GKE,
    DEFAULT_GKE_NODE_MACHINE_TYPE,
    DEFAULT_KUBERNETES_VERSION,
    ENV_GKE_CREDENTIALS,
    ENV_GKE_LOCATION,
    ENV_GKE_PROJECT,
    NODE_GROUP_SIZE,
)
from mesh_smoke.errors import AuthenticationError, ProvisioningError, TeardownError
from mesh_smoke.polling import check_cancelled
from mesh_smoke.utils import require_command
from mesh_smoke.versions import parse_version

REQUIRED_ENV = (ENV_GKE_CREDENTIALS, ENV_GKE_PROJECT, ENV_GKE_LOCATION)


class GkeCredentials:
    """Service account credentials plus the project and location clusters live in."""

    def __init__(self, json_credentials: str, project: str, location: str) -> None:
        self.project = project
        self.location = location
        self._json_credentials = json_credentials
        self._key_file: str | None = None

    @classmethod
    def from_env(cls) -> GkeCredentials:
        """Read the GKE variables in order.

        Raises:
            MissingEnvError: For the first variable that is empty or unset.
        """
        values = require_env(REQUIRED_ENV)
        return cls(values[ENV_GKE_CREDENTIALS], values[ENV_GKE_PROJECT], values[ENV_GKE_LOCATION])

    def gcloud(self, *args: str, scoped: bool = True) -> str:
        """Run gcloud as the service account; *scoped* adds the project and location flags."""
        require_command("gcloud")
        if self._key_file is None:
            self._key_file = write_temp_file(self._json_credentials.encode(), ".json")
        env = {**os.environ, "CLOUDSDK_AUTH_CREDENTIAL_FILE_OVERRIDE": self._key_file}
        if scoped:
            args = (*args, "--project", self.project, "--location", self.location)
        return str(sh.gcloud(*args, _env=env))


class GkeCluster(Cluster):
    """Handle to a GKE cluster."""

    cluster_type = CLUSTER_TYPE_GKE

    def __init__(self, name: str, rest_config: RestConfig, credentials: GkeCredentials) -> None:
        super().__init__(name, rest_config)
        self._credentials = credentials

    def _teardown(self, cancel: threading.Event | None) -> None:
        check_cancelled(cancel, f"deleting GKE cluster {self.name}")
        delete_gke_cluster(self._credentials, self.name)


def rest_config_from_description(description: dict[str, Any], token: str) -> RestConfig:
    ca = description.get("masterAuth", {}).get("clusterCaCertificate", "")
    return RestConfig(
        host=f"https://{description['endpoint']}",
        ca_data=base64.b64decode(ca) if ca else b"",
        bearer_token=token,
    )


def attach_gke_cluster(credentials: GkeCredentials, name: str) -> GkeCluster:
    """Describe *name* and build a handle with a fresh access token.

    Raises:
        AuthenticationError: If the cluster cannot be described or no token can be printed.
    """
    try:
        description = json.loads(credentials.gcloud("container", "clusters", "describe", name, "--format", "json"))
        token = credentials.gcloud("auth", "print-access-token", scoped=False).strip()
    except (sh.ErrorReturnCode, ValueError) as err:
        raise AuthenticationError(f"failed to authenticate against GKE cluster {name}") from err
    return GkeCluster(name, rest_config_from_description(description, token), credentials)


def delete_gke_cluster(credentials: GkeCredentials, name: str) -> None:
    console.print(f"[yellow]\u2139\ufe0f  Deleting GKE cluster '{name}'...[/yellow]")
    try:
        credentials.gcloud("container", "clusters", "delete", name, "--quiet")
    except sh.ErrorReturnCode as err:
        raise TeardownError(f"failed to delete GKE cluster {name}") from err
    console.print(f"[green]\u2705 Cluster '{name}' deleted[/green]")


class GkeBuilder:
    """Creates a single-node GKE cluster."""

    def __init__(
        self,
        name: str,
        credentials: GkeCredentials,
        kubernetes_version: str = DEFAULT_KUBERNETES_VERSION,
        node_machine_type: str = DEFAULT_GKE_NODE_MACHINE_TYPE,
    ) -> None:
        self.name = name
        self._credentials = credentials
        self._version = parse_version(kubernetes_version)
        self._node_machine_type = node_machine_type

    def with_node_machine_type(self, machine_type: str) -> GkeBuilder:
        self._node_machine_type = machine_type
        return self

    def with_cluster_version(self, version: str) -> GkeBuilder:
        self._version = parse_version(version)
        return self

    def build(self, cancel: threading.Event | None = None) -> GkeCluster:
        """Create the cluster and return its handle.

        Raises:
            ProvisioningError: If gcloud fails to create the cluster.
            OperationCancelled: If *cancel* is set before creation starts.
        """
        console.print(Panel.fit(f"Creating GKE cluster {self.name}", style="bold blue"))
        check_cancelled(cancel, f"creating GKE cluster {self.name}")
        try:
            self._credentials.gcloud(
                "container", "clusters", "create", self.name,
                "--cluster-version", self._version.minor_version,
                "--machine-type", self._node_machine_type,
                "--num-nodes", str(NODE_GROUP_SIZE),
                "--quiet",
            )
        except sh.ErrorReturnCode as err:
            raise ProvisioningError(f"failed to create GKE cluster {self.name}") from err
        logger.info("GKE cluster %s created", self.name)
        check_cancelled(cancel, f"authenticating against GKE cluster {self.name}")
        return attach_gke_cluster(self._credentials, self.name)


class GkeProvider:
    """GKE provider; credentials come from GKE_JSON_CREDENTIALS, GKE_PROJECT and GKE_LOCATION."""

    def build(self, env_name: str) -> GkeBuilder:
        return GkeBuilder(env_name, GkeCredentials.from_env())

    def attach(self, env_name: str, cancel: threading.Event | None = None) -> GkeCluster:
        return attach_gke_cluster(GkeCredentials.from_env(), env_name)

    def cleanup(self, env_name: str, cancel: threading.Event | None = None) -> None:
        credentials = GkeCredentials.from_env()
        check_cancelled(cancel, f"deleting GKE cluster {env_name}")
        delete_gke_cluster(credentials, env_name)
