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


from __future__ import annotations

import pytest

from mesh_smoke.config import EksSettings
from mesh_smoke.providers.eks import builder as builder_module
from tests.fakes import FakeAws, FakeSession

CLUSTER_NAME = "smoke-abc1234567"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("EKS_NODE_SSH_KEY", "EKS_KUBERNETES_VERSION", "EKS_NODE_MACHINE_TYPE", "EKS_VPC_CIDR",
                "SMOKE_ENV_PLATFORM", "SMOKE_KUBECONFIG_OUTPUT", "SMOKE_KUBERNETES_VERSION",
                "SMOKE_CREATE_TIMEOUT", "SMOKE_CLEANUP_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def aws() -> FakeAws:
    return FakeAws()


@pytest.fixture
def session(aws: FakeAws) -> FakeSession:
    return FakeSession(aws)


@pytest.fixture
def settings() -> EksSettings:
    return EksSettings(
        create_poll_interval=0,
        create_poll_timeout=5,
        delete_poll_interval=0,
        delete_poll_timeout=5,
    )


@pytest.fixture
def authorized_roles(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Capture node roles mapped into aws-auth instead of calling the API server."""
    roles: list[str] = []
    monkeypatch.setattr(builder_module, "authorize_node_role", lambda core_v1, arn: roles.append(arn))
    return roles


@pytest.fixture
def aws_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIDEXAMPLE")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "secret")
    monkeypatch.setenv("AWS_REGION", "us-west-2")
