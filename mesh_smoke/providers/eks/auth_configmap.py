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

"""Node role mapping in the in-cluster ``aws-auth`` ConfigMap."""

from __future__ import annotations

from typing import Any

import yaml
from kubernetes import client as k8s
from kubernetes.client.rest import ApiException

from mesh_smoke import logger
from mesh_smoke.constants import (
    AUTH_CONFIGMAP_NAME,
    AUTH_CONFIGMAP_NAMESPACE,
    AUTH_CONFIGMAP_ROLES_KEY,
    NODE_GROUP_GROUPS,
    NODE_GROUP_USERNAME,
)
from mesh_smoke.errors import ProvisioningError

HTTP_NOT_FOUND = 404


def node_role_mapping(node_role_arn: str) -> dict[str, Any]:
    return {
        "rolearn": node_role_arn,
        "username": NODE_GROUP_USERNAME,
        "groups": list(NODE_GROUP_GROUPS),
    }


def add_role_mapping(data: dict[str, str] | None, node_role_arn: str) -> dict[str, str]:
    """Return ConfigMap data with the node role appended to ``mapRoles``.

    A mapping for the same role ARN is not duplicated.
    """
    data = dict(data or {})
    roles = yaml.safe_load(data.get(AUTH_CONFIGMAP_ROLES_KEY) or "") or []
    if not any(role.get("rolearn") == node_role_arn for role in roles):
        roles.append(node_role_mapping(node_role_arn))
    data[AUTH_CONFIGMAP_ROLES_KEY] = yaml.safe_dump(roles, default_flow_style=False, sort_keys=False)
    return data


def authorize_node_role(core_v1: k8s.CoreV1Api, node_role_arn: str) -> None:
    """Map *node_role_arn* to the node-group username and groups.

    The ConfigMap is created when the cluster does not have one yet.

    Args:
        core_v1: Client authenticated against the new cluster.
        node_role_arn: ARN of the node instance role.

    Raises:
        ProvisioningError: If the ConfigMap cannot be read or written.
    """
    try:
        configmap = core_v1.read_namespaced_config_map(AUTH_CONFIGMAP_NAME, AUTH_CONFIGMAP_NAMESPACE)
    except ApiException as err:
        if err.status != HTTP_NOT_FOUND:
            raise ProvisioningError(f"failed to read configmap {AUTH_CONFIGMAP_NAME}") from err
        configmap = None

    try:
        if configmap is None:
            body = k8s.V1ConfigMap(
                metadata=k8s.V1ObjectMeta(name=AUTH_CONFIGMAP_NAME, namespace=AUTH_CONFIGMAP_NAMESPACE),
                data=add_role_mapping(None, node_role_arn),
            )
            core_v1.create_namespaced_config_map(AUTH_CONFIGMAP_NAMESPACE, body)
        else:
            configmap.data = add_role_mapping(configmap.data, node_role_arn)
            core_v1.replace_namespaced_config_map(AUTH_CONFIGMAP_NAME, AUTH_CONFIGMAP_NAMESPACE, configmap)
    except ApiException as err:
        raise ProvisioningError(f"failed to save configmap {AUTH_CONFIGMAP_NAME}") from err
    logger.info("Mapped node role %s in %s/%s", node_role_arn, AUTH_CONFIGMAP_NAMESPACE, AUTH_CONFIGMAP_NAME)
