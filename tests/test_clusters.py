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

import threading
from types import SimpleNamespace
from unittest import mock

import pytest

from mesh_smoke import clusters
from mesh_smoke.clusters import Cluster, RestConfig, new_api_client
from mesh_smoke.errors import AddonError
from tests.fakes import FAKE_CA


class RecordingAddon:
    def __init__(self, name: str) -> None:
        self._name = name
        self.events: list[str] = []

    def name(self) -> str:
        return self._name

    def deploy(self, cluster: Cluster) -> None:
        self.events.append(f"deploy:{cluster.name}")

    def delete(self, cluster: Cluster) -> None:
        self.events.append(f"delete:{cluster.name}")


class TeardownRecorder(Cluster):
    cluster_type = "test"

    def __init__(self, name: str) -> None:
        super().__init__(name, RestConfig(host="https://127.0.0.1:6443"), api_client=mock.Mock())
        self.torn_down: list[threading.Event | None] = []

    def _teardown(self, cancel: threading.Event | None) -> None:
        self.torn_down.append(cancel)


@pytest.fixture
def handle():
    return TeardownRecorder("smoke")


def test_deploy_addon(handle):
    addon = RecordingAddon("istio")

    handle.deploy_addon(addon)

    assert addon.events == ["deploy:smoke"]
    assert handle.get_addon("istio") is addon
    assert handle.list_addons() == [addon]


def test_deploy_same_addon_twice(handle):
    handle.deploy_addon(RecordingAddon("istio"))

    with pytest.raises(AddonError, match="^addon component istio is already loaded into cluster smoke$"):
        handle.deploy_addon(RecordingAddon("istio"))
    assert len(handle.list_addons()) == 1


def test_delete_addon(handle):
    addon = RecordingAddon("istio")
    handle.deploy_addon(addon)

    handle.delete_addon(addon)

    assert addon.events == ["deploy:smoke", "delete:smoke"]
    assert handle.list_addons() == []


def test_delete_unknown_addon_is_noop(handle):
    addon = RecordingAddon("linkerd")

    handle.delete_addon(addon)

    assert addon.events == []


def test_get_unknown_addon(handle):
    with pytest.raises(AddonError, match="addon linkerd not found"):
        handle.get_addon("linkerd")


def test_cleanup_passes_cancel(handle):
    cancel = threading.Event()

    handle.cleanup(cancel)

    assert handle.torn_down == [cancel]


def test_base_handle_cannot_be_created_without_teardown():
    with pytest.raises(TypeError, match="_teardown"):
        Cluster("bare", RestConfig(host="https://127.0.0.1:6443"), api_client=mock.Mock())


def test_server_version(handle, monkeypatch):
    version_api = mock.Mock()
    version_api.return_value.get_code.return_value = SimpleNamespace(git_version="v1.31.2-eks-7f9249a")
    monkeypatch.setattr(clusters.k8s, "VersionApi", version_api)

    assert handle.version().minor_version == "1.31"


def test_api_client_from_rest_config():
    api_client = new_api_client(RestConfig(host="https://example.test", ca_data=FAKE_CA, bearer_token="tok"))

    configuration = api_client.configuration
    assert configuration.host == "https://example.test"
    assert configuration.api_key == {"authorization": "tok"}
    assert configuration.api_key_prefix == {"authorization": "Bearer"}
    with open(configuration.ssl_ca_cert, "rb") as f:
        assert f.read() == FAKE_CA
