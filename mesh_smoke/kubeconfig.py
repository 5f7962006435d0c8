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

"""Kubeconfig rendering, parsing and export."""

from __future__ import annotations

import base64
import os
import sys
from pathlib import Path
from typing import Any, TextIO

import yaml

from mesh_smoke.clusters import RestConfig
from mesh_smoke.constants import KUBECONFIG_DEFAULT_USER, KUBECONFIG_STDOUT
from mesh_smoke.errors import ConfigurationError


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def render_kubeconfig(env_name: str, rest_config: RestConfig) -> dict[str, Any]:
    """Build a kubeconfig document with one cluster, one context and one user.

    Args:
        env_name: Name used for the cluster entry and the context.
        rest_config: Connection settings to serialize.

    Returns:
        The kubeconfig as a dictionary ready for YAML serialization.
    """
    cluster: dict[str, Any] = {"server": rest_config.host}
    if rest_config.ca_data:
        cluster["certificate-authority-data"] = _b64(rest_config.ca_data)
    if rest_config.tls_server_name:
        cluster["tls-server-name"] = rest_config.tls_server_name
    if rest_config.insecure:
        cluster["insecure-skip-tls-verify"] = True

    user: dict[str, Any] = {}
    if rest_config.bearer_token:
        user["token"] = rest_config.bearer_token
    if rest_config.cert_data:
        user["client-certificate-data"] = _b64(rest_config.cert_data)
    if rest_config.key_data:
        user["client-key-data"] = _b64(rest_config.key_data)

    return {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{"name": env_name, "cluster": cluster}],
        "contexts": [{"name": env_name, "context": {"cluster": env_name, "user": KUBECONFIG_DEFAULT_USER}}],
        "current-context": env_name,
        "users": [{"name": KUBECONFIG_DEFAULT_USER, "user": user}],
        "preferences": {},
    }


def dump_kubeconfig(env_name: str, rest_config: RestConfig) -> str:
    """Render the kubeconfig for *rest_config* as YAML text."""
    return yaml.safe_dump(render_kubeconfig(env_name, rest_config), default_flow_style=False, sort_keys=False)


def write_kubeconfig(env_name: str, rest_config: RestConfig, output: str, stdout: TextIO | None = None) -> None:
    """Write the kubeconfig to a file, or to *stdout* when *output* is ``-``.

    Args:
        env_name: Name used for the cluster entry and the context.
        rest_config: Connection settings to serialize.
        output: Destination file path, or ``-`` for the caller's stdout stream.
        stdout: Stream used for ``-``; defaults to ``sys.stdout``.
    """
    content = dump_kubeconfig(env_name, rest_config)
    if output == KUBECONFIG_STDOUT:
        (stdout or sys.stdout).write(content)
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    # O_CREAT ignores the mode for an existing file.
    os.fchmod(fd, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(content)


def _named(entries: list[dict[str, Any]], name: str, kind: str) -> dict[str, Any]:
    for entry in entries or []:
        if entry.get("name") == name:
            return entry.get(kind) or {}
    raise ConfigurationError(f"kubeconfig has no {kind} named '{name}'")


def rest_config_from_kubeconfig(document: str | dict[str, Any], context: str | None = None) -> tuple[str, RestConfig]:
    """Parse a kubeconfig document back into a REST configuration.

    Args:
        document: Kubeconfig YAML text or an already parsed dictionary.
        context: Context to resolve; defaults to ``current-context``.

    Returns:
        Tuple of (context_name, RestConfig).

    Raises:
        ConfigurationError: If the document does not define the requested context.
    """
    doc = yaml.safe_load(document) if isinstance(document, str) else document
    if not isinstance(doc, dict):
        raise ConfigurationError("kubeconfig document is not a mapping")
    context_name = context or doc.get("current-context")
    if not context_name:
        raise ConfigurationError("kubeconfig has no current-context")

    ctx = _named(doc.get("contexts", []), context_name, "context")
    cluster = _named(doc.get("clusters", []), ctx.get("cluster", ""), "cluster")
    user = _named(doc.get("users", []), ctx.get("user", ""), "user")

    def _decode(key: str) -> bytes | None:
        value = user.get(key)
        return base64.b64decode(value) if value else None

    ca = cluster.get("certificate-authority-data")
    rest_config = RestConfig(
        host=cluster.get("server", ""),
        ca_data=base64.b64decode(ca) if ca else b"",
        bearer_token=user.get("token"),
        insecure=bool(cluster.get("insecure-skip-tls-verify", False)),
        tls_server_name=cluster.get("tls-server-name"),
        cert_data=_decode("client-certificate-data"),
        key_data=_decode("client-key-data"),
    )
    return context_name, rest_config
