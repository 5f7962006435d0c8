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

import sys

import pytest
import yaml
from typer.testing import CliRunner

from mesh_smoke import cli
from mesh_smoke.clusters import RestConfig
from mesh_smoke.commands import kubernetes_cmd
from mesh_smoke.errors import InvalidVersionError, UnsupportedPlatformError
from mesh_smoke.providers import ProviderRegistry
from tests.fakes import FAKE_CA

runner = CliRunner()


class FakeHandle:
    def __init__(self, name: str) -> None:
        self.name = name
        self.config = RestConfig(host=f"https://{name}.example.test", ca_data=FAKE_CA, bearer_token="tok")


class FakeBuilder:
    def __init__(self, name: str) -> None:
        self.name = name
        self.version: str | None = None
        self.cancel = None

    def with_cluster_version(self, version: str) -> FakeBuilder:
        self.version = version
        return self

    def build(self, cancel=None) -> FakeHandle:
        self.cancel = cancel
        return FakeHandle(self.name)


class FakeProvider:
    def __init__(self, local: bool = False) -> None:
        self.local = local
        self.builders: list[FakeBuilder] = []
        self.cleaned: list[tuple[str, object]] = []

    def build(self, env_name: str) -> FakeBuilder | None:
        if self.local:
            return None
        self.builders.append(FakeBuilder(env_name))
        return self.builders[-1]

    def attach(self, env_name: str, cancel=None) -> FakeHandle:
        return FakeHandle(env_name)

    def cleanup(self, env_name: str, cancel=None) -> None:
        self.cleaned.append((env_name, cancel))


@pytest.fixture
def provider(monkeypatch):
    fake = FakeProvider()
    registry = ProviderRegistry()
    registry.register("fake", fake)
    monkeypatch.setattr(kubernetes_cmd, "_registry", lambda: registry)
    return fake


def test_deploy(provider, tmp_path):
    output = tmp_path / "kubeconfig"

    result = runner.invoke(cli.app, [
        "kubernetes", "deploy", "--env-platform", "fake", "--env", "smoke-1",
        "--kubernetes-version", "v1.30.2", "--kubeconfig-output", str(output),
    ])

    assert result.exit_code == 0, result.output
    builder = provider.builders[0]
    assert builder.name == "smoke-1"
    assert builder.version == "1.30.2"
    assert builder.cancel is not None and not builder.cancel.is_set()
    assert yaml.safe_load(output.read_text())["clusters"][0]["cluster"]["server"] == "https://smoke-1.example.test"


def test_deploy_keeps_provider_version_by_default(provider, tmp_path):
    result = runner.invoke(cli.app, [
        "kubernetes", "deploy", "--env-platform", "fake", "--kubeconfig-output", str(tmp_path / "kc"),
    ])

    assert result.exit_code == 0, result.output
    assert provider.builders[0].version is None
    assert provider.builders[0].name.startswith("smoke-")
    assert len(provider.builders[0].name) == len("smoke-") + 10


def test_deploy_falls_back_to_default_builder(provider, monkeypatch, tmp_path):
    provider.local = True
    built = []

    def kind_builder(name, version):
        built.append((name, version))
        return FakeBuilder(name)

    monkeypatch.setattr(kubernetes_cmd, "KindBuilder", kind_builder)

    result = runner.invoke(cli.app, [
        "kubernetes", "deploy", "--env-platform", "fake", "--env", "local",
        "--kubernetes-version", "1.29.4", "--kubeconfig-output", str(tmp_path / "kc"),
    ])

    assert result.exit_code == 0, result.output
    assert built == [("local", "1.29.4")]


def test_deploy_rejects_unknown_platform(provider):
    result = runner.invoke(cli.app, ["kubernetes", "deploy", "--env-platform", "xyz"])

    assert result.exit_code == 1
    assert isinstance(result.exception, UnsupportedPlatformError)
    assert provider.builders == []


def test_deploy_rejects_bad_version(provider):
    result = runner.invoke(cli.app, ["kubernetes", "deploy", "--env-platform", "fake", "--kubernetes-version", "1.31"])

    assert isinstance(result.exception, InvalidVersionError)
    assert provider.builders == []


def test_platform_from_environment(provider, monkeypatch, tmp_path):
    monkeypatch.setenv("SMOKE_ENV_PLATFORM", "fake")

    result = runner.invoke(cli.app, ["kubernetes", "deploy", "--kubeconfig-output", str(tmp_path / "kc")])

    assert result.exit_code == 0, result.output
    assert len(provider.builders) == 1


def test_kubeconfig_to_stdout(provider):
    result = runner.invoke(cli.app, ["kubernetes", "kubeconfig", "--env-platform", "fake", "--env", "smoke-2"])

    assert result.exit_code == 0, result.output
    doc = yaml.safe_load(result.stdout)
    assert doc["current-context"] == "smoke-2"
    assert doc["users"][0]["user"]["token"] == "tok"


def test_cleanup(provider):
    result = runner.invoke(cli.app, ["kubernetes", "cleanup", "--env-platform", "fake", "--env", "smoke-3"])

    assert result.exit_code == 0, result.output
    [(name, cancel)] = provider.cleaned
    assert name == "smoke-3"
    assert cancel is not None


def test_cleanup_requires_env(provider):
    result = runner.invoke(cli.app, ["kubernetes", "cleanup", "--env-platform", "fake"])

    assert result.exit_code == 2
    assert provider.cleaned == []


def test_main_reports_error_and_exits(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["mesh-smoke", "kubernetes", "deploy", "--env-platform", "xyz"])

    with pytest.raises(SystemExit) as excinfo:
        cli.main()

    assert excinfo.value.code == 1
    assert "unsupported platform" in capsys.readouterr().err
