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

import base64
import json
import threading
from types import SimpleNamespace

import pytest
import sh

from mesh_smoke.clusters import RestConfig
from mesh_smoke.errors import AuthenticationError, OperationCancelled, ProvisioningError, TeardownError
from mesh_smoke.kubeconfig import dump_kubeconfig
from mesh_smoke.providers import gke, kind
from tests.fakes import FAKE_CA

KIND_KUBECONFIG = dump_kubeconfig("kind-smoke", RestConfig(
    host="https://127.0.0.1:40123", ca_data=FAKE_CA, cert_data=b"cert", key_data=b"key",
))


def _failure(cmd: str) -> sh.ErrorReturnCode:
    return sh.ErrorReturnCode_1(cmd, b"", b"ERROR: failed")


class FakeCli:
    """Records invocations and answers them from a handler."""

    def __init__(self, handler) -> None:
        self.handler = handler
        self.calls: list[tuple[str, ...]] = []
        self.envs: list[dict[str, str]] = []

    def __call__(self, *args: str, _env: dict[str, str] | None = None) -> str:
        self.calls.append(args)
        if _env is not None:
            self.envs.append(_env)
        return self.handler(args)


@pytest.fixture(autouse=True)
def _commands_present(monkeypatch):
    monkeypatch.setattr(kind, "require_command", lambda cmd: None)
    monkeypatch.setattr(gke, "require_command", lambda cmd: None)
    monkeypatch.setattr(kind, "KIND_CREATE_RETRY_WAIT_SECONDS", 0)


def _install(monkeypatch, module, **commands) -> None:
    monkeypatch.setattr(module, "sh", SimpleNamespace(ErrorReturnCode=sh.ErrorReturnCode, **commands))


# ============================================================================
# kind
# ============================================================================

def _kind_handler(fail_create: bool = False):
    def handler(args):
        if args[0] == "delete":
            raise _failure("kind delete cluster")
        if args[0] == "create" and fail_create:
            raise _failure("kind create cluster")
        if args[:2] == ("get", "kubeconfig"):
            return KIND_KUBECONFIG
        return ""
    return handler


def test_kind_build(monkeypatch):
    cli = FakeCli(_kind_handler())
    _install(monkeypatch, kind, kind=cli)

    handle = kind.KindBuilder("smoke").with_cluster_version("v1.29.4").build()

    assert cli.calls[0] == ("delete", "cluster", "--name", "smoke")
    assert cli.calls[1] == (
        "create", "cluster", "--name", "smoke", "--image", "kindest/node:v1.29.4", "--wait", "120s",
    )
    assert isinstance(handle, kind.KindCluster)
    assert handle.config.host == "https://127.0.0.1:40123"
    assert handle.config.cert_data == b"cert"


def test_kind_build_retries_then_fails(monkeypatch):
    cli = FakeCli(_kind_handler(fail_create=True))
    _install(monkeypatch, kind, kind=cli)

    with pytest.raises(ProvisioningError, match="failed to create kind cluster smoke"):
        kind.KindBuilder("smoke").build()

    creates = [call for call in cli.calls if call[0] == "create"]
    assert len(creates) == kind.KIND_CREATE_MAX_RETRIES


def test_kind_build_cancelled(monkeypatch):
    cli = FakeCli(_kind_handler())
    _install(monkeypatch, kind, kind=cli)
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(OperationCancelled):
        kind.KindBuilder("smoke").build(cancel)
    assert cli.calls == []


def test_kind_attach_missing_cluster(monkeypatch):
    def handler(args):
        raise _failure("kind get kubeconfig")

    _install(monkeypatch, kind, kind=FakeCli(handler))

    with pytest.raises(AuthenticationError, match="kind cluster gone"):
        kind.KindProvider().attach("gone")


def test_kind_cleanup_failure(monkeypatch):
    _install(monkeypatch, kind, kind=FakeCli(_kind_handler()))

    with pytest.raises(TeardownError, match="failed to delete kind cluster smoke"):
        kind.KindProvider().cleanup("smoke")


# ============================================================================
# GKE
# ============================================================================

@pytest.fixture
def gke_env(monkeypatch):
    monkeypatch.setenv("GKE_JSON_CREDENTIALS", '{"type": "service_account"}')
    monkeypatch.setenv("GKE_PROJECT", "smoke-project")
    monkeypatch.setenv("GKE_LOCATION", "us-central1")


def _gcloud_handler(args):
    if args[:3] == ("container", "clusters", "describe"):
        return json.dumps({
            "endpoint": "34.1.2.3",
            "masterAuth": {"clusterCaCertificate": base64.b64encode(FAKE_CA).decode()},
        })
    if args[:2] == ("auth", "print-access-token"):
        return "ya29.token\n"
    return ""


def test_gke_build(monkeypatch, gke_env):
    cli = FakeCli(_gcloud_handler)
    _install(monkeypatch, gke, gcloud=cli)

    handle = gke.GkeProvider().build("smoke").with_cluster_version("1.30.2").build()

    assert cli.calls[0] == (
        "container", "clusters", "create", "smoke",
        "--cluster-version", "1.30",
        "--machine-type", "e2-standard-16",
        "--num-nodes", "1",
        "--quiet",
        "--project", "smoke-project",
        "--location", "us-central1",
    )
    assert cli.calls[2] == ("auth", "print-access-token")
    assert handle.config.host == "https://34.1.2.3"
    assert handle.config.bearer_token == "ya29.token"

    key_file = cli.envs[0]["CLOUDSDK_AUTH_CREDENTIAL_FILE_OVERRIDE"]
    with open(key_file) as f:
        assert json.load(f) == {"type": "service_account"}


def test_gke_attach_failure(monkeypatch, gke_env):
    def handler(args):
        raise _failure("gcloud container clusters describe")

    _install(monkeypatch, gke, gcloud=FakeCli(handler))

    with pytest.raises(AuthenticationError, match="GKE cluster smoke"):
        gke.GkeProvider().attach("smoke")


def test_gke_cleanup(monkeypatch, gke_env):
    cli = FakeCli(_gcloud_handler)
    _install(monkeypatch, gke, gcloud=cli)

    gke.GkeProvider().cleanup("smoke")

    assert cli.calls == [(
        "container", "clusters", "delete", "smoke", "--quiet",
        "--project", "smoke-project", "--location", "us-central1",
    )]
