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

"""EKS cluster handle."""

from __future__ import annotations

import threading
from typing import Any

from kubernetes import client as k8s

from mesh_smoke.aws import load_session
from mesh_smoke.clusters import Cluster, RestConfig
from mesh_smoke.config import EksSettings, require_env
from mesh_smoke.constants import CLUSTER_TYPE_EKS, ENV_AWS_ACCESS_KEY_ID, ENV_AWS_REGION, ENV_AWS_SECRET_ACCESS_KEY
from mesh_smoke.providers.eks.auth import rest_config_for_cluster
from mesh_smoke.providers.eks.teardown import cleanup_cluster

REQUIRED_ENV = (ENV_AWS_ACCESS_KEY_ID, ENV_AWS_SECRET_ACCESS_KEY, ENV_AWS_REGION)


class EksCluster(Cluster):
    """Handle to an EKS cluster created by :class:`EksBuilder` or attached by name."""

    cluster_type = CLUSTER_TYPE_EKS

    def __init__(
        self,
        name: str,
        rest_config: RestConfig,
        session: Any,
        settings: EksSettings | None = None,
        api_client: k8s.ApiClient | None = None,
    ) -> None:
        super().__init__(name, rest_config, api_client)
        self._session = session
        self._settings = settings or EksSettings()

    def _teardown(self, cancel: threading.Event | None) -> None:
        require_env(REQUIRED_ENV)
        cleanup_cluster(self._session, self.name, self._settings, cancel)


def new_from_existing(name: str, session: Any = None, settings: EksSettings | None = None) -> EksCluster:
    """Build an authenticated handle for the existing cluster *name*.

    A fresh bearer token is signed on every call.

    Args:
        name: EKS cluster name.
        session: boto3 session; the ambient credentials are loaded when None.
        settings: Settings used by the handle's teardown.

    Raises:
        ConfigurationError: If no AWS region is configured.
        AuthenticationError: If the cluster cannot be described or the token signed.
    """
    session = session or load_session()
    return EksCluster(name, rest_config_for_cluster(session, name), session, settings)
