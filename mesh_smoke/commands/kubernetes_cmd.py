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

"""Kubernetes environment subcommands (deploy, cleanup, kubeconfig, diagnostics)."""

from __future__ import annotations

import sys
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.panel import Panel

from mesh_smoke import console
from mesh_smoke.config import EksSettings, SmokeSettings, display_settings
from mesh_smoke.constants import CLUSTER_TYPE_EKS, DEFAULT_ENV_NAME_PREFIX, ENV_NAME_RANDOM_LENGTH
from mesh_smoke.kubeconfig import write_kubeconfig
from mesh_smoke.providers import ProviderRegistry, register_default_providers
from mesh_smoke.providers.kind import KindBuilder
from mesh_smoke.versions import parse_version

app = typer.Typer(help="Create and tear down Kubernetes environments for smoke tests.", no_args_is_help=True)


def _registry() -> ProviderRegistry:
    return register_default_providers(ProviderRegistry())


def _random_env_name() -> str:
    return f"{DEFAULT_ENV_NAME_PREFIX}{uuid.uuid4().hex[-ENV_NAME_RANDOM_LENGTH:]}"


@contextmanager
def _deadline(seconds: float) -> Iterator[threading.Event]:
    """Yield a cancellation event that is set once *seconds* have passed."""
    cancel = threading.Event()
    timer = threading.Timer(seconds, cancel.set)
    timer.daemon = True
    timer.start()
    try:
        yield cancel
    finally:
        timer.cancel()


@app.command("deploy")
def deploy(
    env_name: str | None = typer.Option(None, "--env", help="Environment name (random when omitted)"),
    env_platform: str | None = typer.Option(None, "--env-platform", help="Platform to deploy on (eks, gke, kind)"),
    kubernetes_version: str | None = typer.Option(None, "--kubernetes-version", help="Kubernetes version to deploy"),
    kubeconfig_output: str | None = typer.Option(
        None, "--kubeconfig-output", help="File to write the kubeconfig to, or - for stdout",
    ),
) -> None:
    """Build a cluster and write its kubeconfig."""
    settings = SmokeSettings()
    registry = _registry()
    platform = env_platform or settings.env_platform
    registry.validate_platform(platform)
    version = str(parse_version(kubernetes_version or settings.kubernetes_version))
    name = env_name or _random_env_name()

    display_settings(platform, name, EksSettings() if platform == CLUSTER_TYPE_EKS else None)
    builder = registry.get_builder(platform, name)
    if builder is None:
        builder = KindBuilder(name, version)
    elif kubernetes_version is not None:
        builder = builder.with_cluster_version(version)

    console.print(f"[yellow]\u2139\ufe0f  Building new environment {name}[/yellow]")
    with _deadline(settings.create_timeout) as cancel:
        cluster = builder.build(cancel)
    console.print(f"[green]\u2705 Environment {name} was created successfully![/green]")

    write_kubeconfig(name, cluster.config, kubeconfig_output or settings.kubeconfig_output, sys.stdout)


@app.command("cleanup")
def cleanup(
    env_name: str = typer.Option(..., "--env", help="Name of the existing environment"),
    env_platform: str | None = typer.Option(None, "--env-platform", help="Platform the environment was deployed on"),
) -> None:
    """Tear down an environment and every cloud resource created for it."""
    settings = SmokeSettings()
    registry = _registry()
    platform = env_platform or settings.env_platform
    registry.validate_platform(platform)

    console.print(Panel.fit(f"Cleaning up environment {env_name}", style="bold blue"))
    with _deadline(settings.cleanup_timeout) as cancel:
        registry.cleanup(platform, env_name, cancel)
    console.print(f"[green]\u2705 Environment {env_name} cleaned up[/green]")


@app.command("kubeconfig")
def kubeconfig(
    env_name: str = typer.Option(..., "--env", help="Name of the existing environment"),
    env_platform: str | None = typer.Option(None, "--env-platform", help="Platform the environment was deployed on"),
    kubeconfig_output: str | None = typer.Option(
        None, "--kubeconfig-output", help="File to write the kubeconfig to, or - for stdout",
    ),
) -> None:
    """Write a kubeconfig with a fresh token for an existing environment."""
    settings = SmokeSettings()
    registry = _registry()
    platform = env_platform or settings.env_platform
    registry.validate_platform(platform)

    cluster = registry.attach(platform, env_name)
    write_kubeconfig(env_name, cluster.config, kubeconfig_output or settings.kubeconfig_output, sys.stdout)


@app.command("diagnostics")
def diagnostics(
    env_name: str = typer.Option(..., "--env", help="Name of the existing environment"),
    env_platform: str | None = typer.Option(None, "--env-platform", help="Platform the environment was deployed on"),
    meta: str = typer.Option("", "--meta", help="Free text written to meta.txt"),
) -> None:
    """Dump pod logs and cluster state of an existing environment."""
    settings = SmokeSettings()
    registry = _registry()
    platform = env_platform or settings.env_platform
    registry.validate_platform(platform)

    cluster = registry.attach(platform, env_name)
    out_dir = cluster.dump_diagnostics(meta or f"environment {env_name} on {platform}")
    typer.echo(str(out_dir))
