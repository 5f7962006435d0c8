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

"""Cluster handle contract shared by every provider."""

from __future__ import annotations

import atexit
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from kubernetes import client as k8s

from mesh_smoke import logger
from mesh_smoke.errors import AddonError
from mesh_smoke.versions import KubernetesVersion, parse_version


@dataclass
class RestConfig:
    """Connection settings for a Kubernetes API server.

    Attributes:
        host: API server URL.
        ca_data: PEM bytes of the cluster certificate authority.
        bearer_token: Bearer token, or None when client certificates are used.
        insecure: Skip TLS verification.
        tls_server_name: Server name to verify instead of the host name, or None.
        cert_data: PEM client certificate, or None.
        key_data: PEM client key, or None.
    """

    host: str
    ca_data: bytes = b""
    bearer_token: str | None = None
    insecure: bool = False
    tls_server_name: str | None = None
    cert_data: bytes | None = None
    key_data: bytes | None = None


class Addon(Protocol):
    """A component deployed onto a cluster (e.g. the mesh control plane)."""

    def name(self) -> str: ...

    def deploy(self, cluster: Cluster) -> None: ...

    def delete(self, cluster: Cluster) -> None: ...


class Builder(Protocol):
    """Creates a cluster and returns a ready handle."""

    name: str

    def with_cluster_version(self, version: str) -> Builder: ...

    def build(self, cancel: threading.Event | None = None) -> Cluster: ...


def write_temp_file(content: bytes, suffix: str) -> str:
    """Write *content* to a temp file removed at interpreter exit."""
    tmp = tempfile.NamedTemporaryFile(delete=False, suffix=suffix)
    try:
        tmp.write(content)
    finally:
        tmp.close()
    atexit.register(Path(tmp.name).unlink, missing_ok=True)
    return tmp.name


def new_api_client(rest_config: RestConfig) -> k8s.ApiClient:
    """Build a Kubernetes API client from a REST configuration.

    Args:
        rest_config: Host, credentials and CA for the API server.

    Returns:
        A configured ``kubernetes.client.ApiClient``.
    """
    configuration = k8s.Configuration()
    configuration.host = rest_config.host
    configuration.verify_ssl = not rest_config.insecure
    if rest_config.ca_data:
        configuration.ssl_ca_cert = write_temp_file(rest_config.ca_data, ".crt")
    if rest_config.bearer_token:
        configuration.api_key = {"authorization": rest_config.bearer_token}
        configuration.api_key_prefix = {"authorization": "Bearer"}
    if rest_config.cert_data and rest_config.key_data:
        configuration.cert_file = write_temp_file(rest_config.cert_data, ".crt")
        configuration.key_file = write_temp_file(rest_config.key_data, ".key")
    if rest_config.tls_server_name:
        configuration.tls_server_name = rest_config.tls_server_name
    return k8s.ApiClient(configuration)


class Cluster(ABC):
    """A provisioned Kubernetes cluster and the addons deployed onto it.

    Subclasses implement ``_teardown`` to release their cloud resources.
    The lock guards the in-memory addon map only.
    """

    cluster_type = ""

    def __init__(self, name: str, rest_config: RestConfig, api_client: k8s.ApiClient | None = None) -> None:
        self._name = name
        self._config = rest_config
        self._client = api_client if api_client is not None else new_api_client(rest_config)
        self._addons: dict[str, Addon] = {}
        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> RestConfig:
        return self._config

    @property
    def client(self) -> k8s.ApiClient:
        return self._client

    def core_v1(self) -> k8s.CoreV1Api:
        return k8s.CoreV1Api(self._client)

    def version(self) -> KubernetesVersion:
        """Return the API server version reported by the cluster."""
        info = k8s.VersionApi(self._client).get_code()
        return parse_version(info.git_version)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def cleanup(self, cancel: threading.Event | None = None) -> None:
        """Tear the cluster down, holding the handle's write lock."""
        with self._lock:
            self._teardown(cancel)

    @abstractmethod
    def _teardown(self, cancel: threading.Event | None) -> None:
        """Release the provider resources behind this handle."""

    def dump_diagnostics(self, meta: str) -> Path:
        """Collect pod logs and cluster state into a new temp directory.

        Args:
            meta: Free text identifying the diagnostics run, written to meta.txt.

        Returns:
            The directory holding the diagnostics files.
        """
        from mesh_smoke.diagnostics import dump_diagnostics

        return dump_diagnostics(self, meta)

    # ------------------------------------------------------------------
    # Addons
    # ------------------------------------------------------------------

    def get_addon(self, name: str) -> Addon:
        with self._lock:
            try:
                return self._addons[name]
            except KeyError:
                raise AddonError(f"addon {name} not found") from None

    def list_addons(self) -> list[Addon]:
        with self._lock:
            return list(self._addons.values())

    def deploy_addon(self, addon: Addon) -> None:
        """Register *addon* on this handle and deploy it.

        Raises:
            AddonError: If an addon with the same name is already registered.
        """
        with self._lock:
            if addon.name() in self._addons:
                raise AddonError(f"addon component {addon.name()} is already loaded into cluster {self._name}")
            self._addons[addon.name()] = addon
        logger.info("Deploying addon %s to cluster %s", addon.name(), self._name)
        addon.deploy(self)

    def delete_addon(self, addon: Addon) -> None:
        """Delete *addon* from the cluster; a no-op when it is not registered."""
        with self._lock:
            if addon.name() not in self._addons:
                return
            addon.delete(self)
            del self._addons[addon.name()]
