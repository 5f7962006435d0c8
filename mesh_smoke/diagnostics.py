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

"""Diagnostics collection: pod logs and cluster state dumps."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import sh
from rich.panel import Panel

from mesh_smoke import console, logger
from mesh_smoke.constants import (
    DIAGNOSTICS_DESCRIBE_ALL_FILE,
    DIAGNOSTICS_DIR_PREFIX,
    DIAGNOSTICS_GET_ALL_FILE,
    DIAGNOSTICS_META_FILE,
    POD_LOGS_DIR,
    POD_LOGS_FAILURES_FILE,
)
from mesh_smoke.kubeconfig import dump_kubeconfig

if TYPE_CHECKING:
    from mesh_smoke.clusters import Cluster


def _collect_pod_logs(cluster: Cluster, kubeconfig: str, out_dir: Path) -> dict[str, str]:
    """Write one log file per pod; return failures keyed by ``namespace/pod``."""
    logs_dir = out_dir / POD_LOGS_DIR
    logs_dir.mkdir(mode=0o750)

    failures: dict[str, str] = {}
    pods = cluster.core_v1().list_pod_for_all_namespaces()
    for pod in pods.items:
        namespace, name = pod.metadata.namespace, pod.metadata.name
        try:
            sh.kubectl(
                "--kubeconfig", kubeconfig,
                "logs", "--all-containers", "-n", namespace, name,
                _out=str(logs_dir / f"{namespace}_{name}"),
            )
        except (sh.ErrorReturnCode, OSError) as err:
            failures[f"{namespace}/{name}"] = str(err).strip().splitlines()[0] if str(err).strip() else repr(err)
    return failures


def _dump_cluster_state(kubeconfig: str, out_dir: Path) -> None:
    """Write ``kubectl get all`` and ``kubectl describe all`` output; failures are logged only."""
    dumps = {
        DIAGNOSTICS_GET_ALL_FILE: ("get", "all", "--all-namespaces", "-o", "yaml"),
        DIAGNOSTICS_DESCRIBE_ALL_FILE: ("describe", "all", "--all-namespaces"),
    }
    for filename, args in dumps.items():
        try:
            sh.kubectl("--kubeconfig", kubeconfig, *args, _out=str(out_dir / filename))
        except (sh.ErrorReturnCode, OSError) as err:
            logger.warning("kubectl %s failed: %s", " ".join(args[:2]), err)


def dump_diagnostics(cluster: Cluster, meta: str) -> Path:
    """Produce diagnostics data for *cluster* in a new temp directory.

    Args:
        cluster: Cluster handle to inspect.
        meta: Free text identifying the run, written to meta.txt.

    Returns:
        Path of the directory holding the diagnostic files.
    """
    console.print(Panel.fit(f"Dumping diagnostics for cluster {cluster.name}", style="bold blue"))
    out_dir = Path(tempfile.mkdtemp(prefix=DIAGNOSTICS_DIR_PREFIX))
    (out_dir / DIAGNOSTICS_META_FILE).write_text(f"{meta}\n")

    with tempfile.NamedTemporaryFile("w", suffix=".yaml") as kubeconfig:
        kubeconfig.write(dump_kubeconfig(cluster.name, cluster.config))
        kubeconfig.flush()

        failures = _collect_pod_logs(cluster, kubeconfig.name, out_dir)
        if failures:
            with open(out_dir / POD_LOGS_FAILURES_FILE, "w") as f:
                for pod, reason in failures.items():
                    f.write(f"{pod}: {reason}\n")
            console.print(f"[yellow]\u26a0\ufe0f  Failed to collect logs for {len(failures)} pods[/yellow]")

        _dump_cluster_state(kubeconfig.name, out_dir)

    console.print(f"[green]\u2705 Diagnostics written to {out_dir}[/green]")
    return out_dir
