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

"""EKS implementation of the provider contract."""

from __future__ import annotations

import threading
from typing import Any

from mesh_smoke.aws import load_session
from mesh_smoke.config import EksSettings, require_env
from mesh_smoke.polling import check_cancelled
from mesh_smoke.providers.eks.builder import EksBuilder
from mesh_smoke.providers.eks.cluster import REQUIRED_ENV, EksCluster, new_from_existing
from mesh_smoke.providers.eks.teardown import cleanup_cluster


class EksProvider:
    """Builds, attaches to and tears down EKS clusters.

    Every entry point checks the AWS credential variables first, so a
    missing variable is reported before any cloud call.
    """

    def __init__(self, settings: EksSettings | None = None, session: Any = None) -> None:
        self._settings = settings
        self._session = session

    @property
    def settings(self) -> EksSettings:
        if self._settings is None:
            self._settings = EksSettings()
        return self._settings

    def _guard(self) -> None:
        require_env(REQUIRED_ENV)

    def build(self, env_name: str) -> EksBuilder:
        """Return a builder pre-named *env_name*.

        Raises:
            MissingEnvError: If an AWS credential variable is empty.
        """
        self._guard()
        return EksBuilder(env_name, self.settings, self._session)

    def attach(self, env_name: str, cancel: threading.Event | None = None) -> EksCluster:
        """Return an authenticated handle to the existing cluster *env_name*.

        Raises:
            MissingEnvError: If an AWS credential variable is empty.
            OperationCancelled: If *cancel* is set before the cluster is described.
            AuthenticationError: If the cluster cannot be described.
        """
        self._guard()
        check_cancelled(cancel, f"describing cluster {env_name}")
        return new_from_existing(env_name, self._session, self.settings)

    def cleanup(self, env_name: str, cancel: threading.Event | None = None) -> None:
        """Tear down *env_name* by name, even when the cluster itself is already gone.

        Raises:
            MissingEnvError: If an AWS credential variable is empty.
            TeardownError: On the first failed delete.
        """
        self._guard()
        cleanup_cluster(self._session or load_session(), env_name, self.settings, cancel)
