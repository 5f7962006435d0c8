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

"""Control-plane and node security groups."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from mesh_smoke import console, logger
from mesh_smoke.aws import AWS_ERRORS
from mesh_smoke.constants import ALL_PROTOCOLS, CP_SECURITY_GROUP_SUFFIX, NODE_SECURITY_GROUP_SUFFIX
from mesh_smoke.errors import ProvisioningError
from mesh_smoke.providers.eks.network import tag_specification


def _create_security_group(ec2: Any, vpc_id: str, cluster_name: str, suffix: str, description: str) -> str:
    group_name = f"{cluster_name}{suffix}"
    try:
        group_id = ec2.create_security_group(
            GroupName=group_name,
            Description=description,
            VpcId=vpc_id,
            TagSpecifications=tag_specification("security-group", cluster_name, suffix.lstrip("-")),
        )["GroupId"]
    except AWS_ERRORS as err:
        raise ProvisioningError(f"failed to create security group {group_name} in VPC {vpc_id}") from err
    logger.info("Created security group %s (%s)", group_name, group_id)
    return str(group_id)


def create_control_plane_security_group(ec2: Any, vpc_id: str, cluster_name: str) -> str:
    """Create ``<cluster>-cp`` in *vpc_id* and return its id."""
    return _create_security_group(
        ec2, vpc_id, cluster_name, CP_SECURITY_GROUP_SUFFIX,
        f"Communication between the control plane and worker nodes of {cluster_name}",
    )


def control_plane_security_group_ids(cluster: dict[str, Any]) -> list[str]:
    """Security groups an active cluster reports for its control plane.

    Args:
        cluster: The ``cluster`` object of an EKS ``describe_cluster`` response.

    Returns:
        The configured group ids followed by the EKS-managed cluster group, without duplicates.
    """
    vpc_config = cluster.get("resourcesVpcConfig", {})
    group_ids = list(vpc_config.get("securityGroupIds", []))
    managed = vpc_config.get("clusterSecurityGroupId")
    if managed and managed not in group_ids:
        group_ids.append(managed)
    return group_ids


def _allow_all_from(ec2: Any, group_id: str, source_group_id: str) -> None:
    try:
        ec2.authorize_security_group_ingress(
            GroupId=group_id,
            IpPermissions=[{
                "IpProtocol": ALL_PROTOCOLS,
                "UserIdGroupPairs": [{"GroupId": source_group_id}],
            }],
        )
    except AWS_ERRORS as err:
        raise ProvisioningError(
            f"failed to authorize ingress on security group {group_id} from {source_group_id}"
        ) from err


def create_node_security_group(
    ec2: Any,
    vpc_id: str,
    cluster_name: str,
    control_plane_group_ids: Iterable[str],
) -> str:
    """Create ``<cluster>-shared-by-all-nodes`` and pair it with every control-plane group.

    For each control-plane group both directions are opened for all protocols,
    so the cluster's synthesized groups accept node traffic and vice versa.

    Args:
        ec2: boto3 EC2 client.
        vpc_id: VPC the group is created in.
        cluster_name: Owner name used for the group name and tags.
        control_plane_group_ids: Group ids reported by the active cluster.

    Returns:
        The id of the node security group.

    Raises:
        ProvisioningError: Naming the group whose creation or authorization failed.
    """
    console.print("[yellow]Creating node security group...[/yellow]")
    node_group_id = _create_security_group(
        ec2, vpc_id, cluster_name, NODE_SECURITY_GROUP_SUFFIX,
        f"Communication between all nodes in cluster {cluster_name}",
    )
    for cp_group_id in control_plane_group_ids:
        _allow_all_from(ec2, node_group_id, cp_group_id)
        _allow_all_from(ec2, cp_group_id, node_group_id)
        logger.info("Authorized %s <-> %s", node_group_id, cp_group_id)
    return node_group_id
