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

"""Worker node AMI, bootstrap userdata, launch template and node group."""

from __future__ import annotations

import base64
import ipaddress
import re
import threading
from typing import Any

from mesh_smoke import console, logger
from mesh_smoke.aws import AWS_ERRORS, is_not_found
from mesh_smoke.constants import (
    AMI_FAMILY_AL2,
    AMI_FAMILY_AL2_ARM64,
    AMI_FAMILY_AL2_GPU,
    AMI_SSM_PARAMETER_FORMAT,
    CLUSTER_DNS_OFFSET,
    GPU_INSTANCE_FAMILIES,
    KUBERNETES_SERVICE_CIDR,
    KUBERNETES_TAG_FORMAT,
    KUBERNETES_TAG_VALUE,
    LAUNCH_TEMPLATE_SUFFIX,
    NODE_GROUP_NAME,
    NODE_GROUP_SIZE,
    NODE_ROOT_DEVICE,
    NODE_ROOT_VOLUME_SIZE_GB,
    NODE_ROOT_VOLUME_TYPE,
    NODEGROUP_STATUS_ACTIVE,
)
from mesh_smoke.errors import ProvisioningError, TeardownError
from mesh_smoke.polling import poll_until

NODEGROUP_FAILED_STATES = frozenset({"CREATE_FAILED", "DELETE_FAILED"})

# Graviton families carry a "g" after the generation digit (c6g, m7gd, t4g, im4gn).
_ARM64_FAMILY = re.compile(r"^[a-z]+\d+[a-z]*g[a-z]*$")


def launch_template_name(cluster_name: str) -> str:
    return f"{cluster_name}{LAUNCH_TEMPLATE_SUFFIX}"


def ami_family(instance_type: str) -> str:
    """Return the EKS optimized AMI family path for *instance_type*."""
    family = instance_type.split(".", 1)[0]
    if family in GPU_INSTANCE_FAMILIES:
        return AMI_FAMILY_AL2_GPU
    if _ARM64_FAMILY.match(family):
        return AMI_FAMILY_AL2_ARM64
    return AMI_FAMILY_AL2


def resolve_ami(ssm: Any, minor_version: str, instance_type: str) -> str:
    """Look up the recommended EKS optimized AMI in the client's region.

    Args:
        ssm: boto3 SSM client bound to the cluster region.
        minor_version: Kubernetes ``MAJOR.MINOR`` version.
        instance_type: EC2 instance type of the nodes.

    Returns:
        The AMI id.

    Raises:
        ProvisioningError: If the public parameter cannot be read.
    """
    parameter = AMI_SSM_PARAMETER_FORMAT.format(version=minor_version, family=ami_family(instance_type))
    try:
        ami_id = ssm.get_parameter(Name=parameter)["Parameter"]["Value"]
    except AWS_ERRORS as err:
        raise ProvisioningError(f"failed to resolve node AMI from {parameter}") from err
    logger.info("Resolved node AMI %s from %s", ami_id, parameter)
    return str(ami_id)


def cluster_dns_ip() -> str:
    return str(ipaddress.ip_network(KUBERNETES_SERVICE_CIDR)[CLUSTER_DNS_OFFSET])


def node_userdata(cluster_name: str, endpoint: str, b64_ca: str) -> str:
    """Return base64 AL2 userdata that joins the node to *cluster_name*."""
    script = (
        "#!/bin/bash\n"
        "set -o xtrace\n"
        f"/etc/eks/bootstrap.sh {cluster_name}"
        f" --b64-cluster-ca {b64_ca}"
        f" --apiserver-endpoint {endpoint}"
        f" --dns-cluster-ip {cluster_dns_ip()}\n"
    )
    return base64.b64encode(script.encode()).decode("ascii")


def create_launch_template(
    ec2: Any,
    cluster_name: str,
    ami_id: str,
    instance_type: str,
    security_group_id: str,
    userdata: str,
    key_name: str | None = None,
) -> str:
    """Create ``<cluster>-node-template`` and return its id.

    Args:
        ec2: boto3 EC2 client.
        cluster_name: Owner name used for the template name and instance tag.
        ami_id: Node AMI.
        instance_type: EC2 instance type.
        security_group_id: Node security group.
        userdata: Base64 bootstrap userdata.
        key_name: EC2 key pair name enabling SSH, or None.

    Raises:
        ProvisioningError: If the template cannot be created.
    """
    name = launch_template_name(cluster_name)
    data: dict[str, Any] = {
        "ImageId": ami_id,
        "InstanceType": instance_type,
        "SecurityGroupIds": [security_group_id],
        "BlockDeviceMappings": [{
            "DeviceName": NODE_ROOT_DEVICE,
            "Ebs": {
                "VolumeSize": NODE_ROOT_VOLUME_SIZE_GB,
                "VolumeType": NODE_ROOT_VOLUME_TYPE,
                "DeleteOnTermination": True,
            },
        }],
        "UserData": userdata,
        "TagSpecifications": [{
            "ResourceType": "instance",
            "Tags": [{"Key": KUBERNETES_TAG_FORMAT.format(cluster_name), "Value": KUBERNETES_TAG_VALUE}],
        }],
    }
    if key_name:
        data["KeyName"] = key_name

    try:
        resp = ec2.create_launch_template(LaunchTemplateName=name, LaunchTemplateData=data)
    except AWS_ERRORS as err:
        raise ProvisioningError(f"failed to create launch template {name}") from err
    template_id = resp["LaunchTemplate"]["LaunchTemplateId"]
    logger.info("Created launch template %s (%s)", name, template_id)
    return str(template_id)


def find_launch_template(ec2: Any, cluster_name: str) -> str | None:
    """Return the id of ``<cluster>-node-template``, or None if it does not exist.

    Raises:
        TeardownError: If the lookup fails for a reason other than not-found.
    """
    name = launch_template_name(cluster_name)
    try:
        templates = ec2.describe_launch_templates(LaunchTemplateNames=[name])["LaunchTemplates"]
    except AWS_ERRORS as err:
        if is_not_found(err):
            return None
        raise TeardownError(f"failed to look up launch template {name}") from err
    return str(templates[0]["LaunchTemplateId"]) if templates else None


def delete_launch_template(ec2: Any, template_id: str) -> bool:
    """Delete a launch template by id; False when it was already gone.

    Raises:
        TeardownError: If the delete fails for a reason other than not-found.
    """
    try:
        ec2.delete_launch_template(LaunchTemplateId=template_id)
    except AWS_ERRORS as err:
        if is_not_found(err):
            return False
        raise TeardownError(f"failed to delete launch template {template_id}") from err
    logger.info("Deleted launch template %s", template_id)
    return True


def create_node_group(
    eks: Any,
    cluster_name: str,
    node_role_arn: str,
    subnet_ids: list[str],
    launch_template_id: str,
) -> None:
    """Create the single-node ``default-node-group``.

    Raises:
        ProvisioningError: If the create request is rejected.
    """
    console.print(f"[yellow]Creating node group {NODE_GROUP_NAME}...[/yellow]")
    try:
        eks.create_nodegroup(
            clusterName=cluster_name,
            nodegroupName=NODE_GROUP_NAME,
            scalingConfig={"minSize": NODE_GROUP_SIZE, "maxSize": NODE_GROUP_SIZE, "desiredSize": NODE_GROUP_SIZE},
            subnets=list(subnet_ids),
            nodeRole=node_role_arn,
            launchTemplate={"id": launch_template_id},
            tags={KUBERNETES_TAG_FORMAT.format(cluster_name): KUBERNETES_TAG_VALUE},
        )
    except AWS_ERRORS as err:
        raise ProvisioningError(f"failed to create node group {NODE_GROUP_NAME} for cluster {cluster_name}") from err


def wait_for_node_group_active(
    eks: Any,
    cluster_name: str,
    *,
    interval: float,
    timeout: float,
    cancel: threading.Event | None = None,
) -> None:
    """Block until the default node group reports ACTIVE.

    Raises:
        ProvisioningError: If describing fails or the group enters a failed state.
        StateTimeoutError: If the deadline passes first.
        OperationCancelled: If *cancel* is set during the wait.
    """
    def _active() -> bool:
        try:
            nodegroup = eks.describe_nodegroup(clusterName=cluster_name, nodegroupName=NODE_GROUP_NAME)["nodegroup"]
        except AWS_ERRORS as err:
            raise ProvisioningError(f"failed to describe node group {NODE_GROUP_NAME}") from err
        status = nodegroup.get("status")
        if status in NODEGROUP_FAILED_STATES:
            raise ProvisioningError(f"node group {NODE_GROUP_NAME} entered state {status}")
        return status == NODEGROUP_STATUS_ACTIVE

    poll_until(
        _active,
        resource=f"node group {NODE_GROUP_NAME} of cluster {cluster_name} to become active",
        interval=interval,
        timeout=timeout,
        cancel=cancel,
    )
    console.print(f"[green]\u2705 Node group {NODE_GROUP_NAME} is active[/green]")
