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

"""
cli.py - CLI for Kubernetes smoke-test environments.

Subcommands:
    kubernetes deploy       Build a cluster and write its kubeconfig
    kubernetes cleanup      Tear down a cluster and its cloud resources
    kubernetes kubeconfig   Write a kubeconfig for an existing cluster
    kubernetes diagnostics  Dump pod logs and cluster state

Examples:
    # Local kind cluster, kubeconfig on stdout
    mesh-smoke kubernetes deploy > kubeconfig.yaml

    # EKS cluster (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY and AWS_REGION must be set)
    mesh-smoke kubernetes deploy --env-platform eks --kubeconfig-output ./kubeconfig

    # Tear it down again
    mesh-smoke kubernetes cleanup --env-platform eks --env smoke-0123456789
"""

from __future__ import annotations

import logging
import sys

import typer

from mesh_smoke import console
from mesh_smoke.commands import kubernetes_cmd
from mesh_smoke.errors import format_error

app = typer.Typer(
    help="CLI for Kubernetes smoke-test environments.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.add_typer(kubernetes_cmd.app, name="kubernetes")


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {format_error(e)}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
