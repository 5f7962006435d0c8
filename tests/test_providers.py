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
import threading

import pytest

from mesh_smoke.errors import MissingEnvError, OperationCancelled, UnsupportedPlatformError
from mesh_smoke.providers import ProviderRegistry, register_default_providers
from mesh_smoke.providers.eks import EksBuilder, EksProvider
from mesh_smoke.providers.gke import GkeProvider, rest_config_from_description
from mesh_smoke.providers.kind import KindProvider
from tests.conftest import CLUSTER_NAME
from tests.fakes import FAKE_CA


@pytest.fixture
def registry():
    return register_default_providers(ProviderRegistry())


def test_default_providers_in_order(registry):
    assert registry.names == ["eks", "gke", "kind"]


def test_unknown_platform(registry):
    with pytest.raises(UnsupportedPlatformError, match="^environment platform not supported: xyz$"):
        registry.get_builder("xyz", CLUSTER_NAME)
    with pytest.raises(UnsupportedPlatformError):
        registry.attach("xyz", CLUSTER_NAME)
    with pytest.raises(UnsupportedPlatformError):
        registry.cleanup("xyz", CLUSTER_NAME)


def test_validate_platform_lists_supported_values(registry):
    with pytest.raises(UnsupportedPlatformError) as excinfo:
        registry.validate_platform("openshift")

    assert str(excinfo.value) == "unsupported platform: 'openshift'. supported values are: eks, gke, kind"
    assert excinfo.value.known == ["eks", "gke", "kind"]


def test_kind_has_no_builder_override():
    assert KindProvider().build(CLUSTER_NAME) is None


def test_eks_builder_is_named_after_env(aws_env, session, settings):
    builder = EksProvider(settings, session).build(CLUSTER_NAME)

    assert isinstance(builder, EksBuilder)
    assert builder.name == CLUSTER_NAME


@pytest.mark.parametrize("empty", ["AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_REGION"])
def test_eks_requires_credentials(aws_env, monkeypatch, session, settings, empty):
    monkeypatch.setenv(empty, "")
    provider = EksProvider(settings, session)

    for call in (provider.build, provider.attach, provider.cleanup):
        with pytest.raises(MissingEnvError) as excinfo:
            call(CLUSTER_NAME)
        assert str(excinfo.value) == f"{empty} is not set"


def test_eks_reports_first_missing_variable(monkeypatch, session, settings):
    for var in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_REGION"):
        monkeypatch.delenv(var, raising=False)

    with pytest.raises(MissingEnvError, match="^AWS_ACCESS_KEY_ID is not set$"):
        EksProvider(settings, session).build(CLUSTER_NAME)


def test_eks_guard_runs_before_any_cloud_call(aws, monkeypatch, session, settings):
    monkeypatch.delenv("AWS_REGION", raising=False)

    with pytest.raises(MissingEnvError):
        EksProvider(settings, session).cleanup(CLUSTER_NAME)
    assert aws.calls == []


def test_eks_attach_honours_cancellation(aws, aws_env, session, settings):
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(OperationCancelled, match=CLUSTER_NAME):
        EksProvider(settings, session).attach(CLUSTER_NAME, cancel)
    assert aws.calls == []


def test_gke_requires_credentials(monkeypatch):
    monkeypatch.setenv("GKE_JSON_CREDENTIALS", "{}")
    monkeypatch.setenv("GKE_PROJECT", "smoke")
    monkeypatch.delenv("GKE_LOCATION", raising=False)

    with pytest.raises(MissingEnvError, match="^GKE_LOCATION is not set$"):
        GkeProvider().build(CLUSTER_NAME)


def test_gke_rest_config_from_description():
    description = {
        "endpoint": "34.1.2.3",
        "masterAuth": {"clusterCaCertificate": base64.b64encode(FAKE_CA).decode()},
    }

    rest_config = rest_config_from_description(description, "ya29.token")

    assert rest_config.host == "https://34.1.2.3"
    assert rest_config.ca_data == FAKE_CA
    assert rest_config.bearer_token == "ya29.token"
