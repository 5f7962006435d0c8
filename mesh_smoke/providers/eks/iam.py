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

"""IAM roles for the EKS control plane and worker nodes."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any, NamedTuple

from mesh_smoke import console, logger
from mesh_smoke.aws import AWS_ERRORS, is_not_found
from mesh_smoke.constants import (
    CLUSTER_MANAGED_POLICIES,
    CLUSTER_ROLE_DESCRIPTION,
    CLUSTER_ROLE_SUFFIX,
    EC2_SERVICE_PRINCIPAL,
    EKS_SERVICE_PRINCIPAL,
    IAM_POLICY_ARN_PREFIX,
    KUBERNETES_TAG_FORMAT,
    KUBERNETES_TAG_VALUE,
    NODE_MANAGED_POLICIES,
    NODE_ROLE_DESCRIPTION,
    NODE_ROLE_SUFFIX,
)
from mesh_smoke.errors import ProvisioningError, TeardownError


class ClusterRoles(NamedTuple):
    """ARNs of the two roles created for a cluster."""

    cluster_role_arn: str
    node_role_arn: str


def _trust_policy(service: str) -> str:
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"Service": service},
            "Action": "sts:AssumeRole",
        }],
    })


def _allow_policy(*actions: str) -> str:
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{"Action": list(actions), "Resource": "*", "Effect": "Allow"}],
    })


CLUSTER_INLINE_POLICIES = {
    "CloudWatchMetricsPolicy": _allow_policy("cloudwatch:PutMetricData"),
    "ELBPermissionsPolicy": _allow_policy(
        "ec2:DescribeAccountAttributes",
        "ec2:DescribeAddresses",
        "ec2:DescribeInternetGateways",
    ),
}


def cluster_role_name(cluster_name: str) -> str:
    return f"{cluster_name}{CLUSTER_ROLE_SUFFIX}"


def node_role_name(cluster_name: str) -> str:
    return f"{cluster_name}{NODE_ROLE_SUFFIX}"


def role_name_from_arn(arn: str) -> str:
    """Return the role name of ``arn:aws:iam::<account>:role[/path]/<name>``."""
    return arn.rsplit("/", 1)[-1]


def create_role(
    iam: Any,
    role_name: str,
    description: str,
    trust_policy: str,
    managed_policies: Sequence[str],
    inline_policies: Mapping[str, str],
    tags: list[dict[str, str]],
) -> str:
    """Create an IAM role, attach managed policies and put inline policies.

    Args:
        iam: boto3 IAM client.
        role_name: Name of the role to create.
        description: Role description.
        trust_policy: JSON assume-role policy document.
        managed_policies: AWS managed policy names to attach.
        inline_policies: Mapping of inline policy name to JSON policy document.
        tags: IAM tags to set on the role.

    Returns:
        The ARN of the created role.

    Raises:
        ProvisioningError: Naming the role and policy that failed.
    """
    try:
        resp = iam.create_role(
            RoleName=role_name,
            Description=description,
            AssumeRolePolicyDocument=trust_policy,
            Tags=tags,
        )
    except AWS_ERRORS as err:
        raise ProvisioningError(f"failed to create role {role_name}") from err

    for policy in managed_policies:
        policy_arn = f"{IAM_POLICY_ARN_PREFIX}{policy}"
        try:
            iam.attach_role_policy(RoleName=role_name, PolicyArn=policy_arn)
        except AWS_ERRORS as err:
            raise ProvisioningError(f"error attaching policy {policy_arn} to role {role_name}") from err

    for name, document in inline_policies.items():
        try:
            iam.put_role_policy(RoleName=role_name, PolicyName=name, PolicyDocument=document)
        except AWS_ERRORS as err:
            raise ProvisioningError(f"error adding inline policy {name} to role {role_name}") from err

    logger.info("Created IAM role %s", role_name)
    return str(resp["Role"]["Arn"])


def create_roles(iam: Any, cluster_name: str) -> ClusterRoles:
    """Create the cluster role and the node instance role.

    Args:
        iam: boto3 IAM client.
        cluster_name: Cluster name used as the role name prefix.

    Returns:
        The ARNs of both roles.

    Raises:
        ProvisioningError: If either role cannot be fully created.
    """
    console.print("[yellow]\u2139\ufe0f  Creating IAM roles...[/yellow]")
    tags = [{"Key": KUBERNETES_TAG_FORMAT.format(cluster_name), "Value": KUBERNETES_TAG_VALUE}]
    try:
        cluster_role_arn = create_role(
            iam,
            cluster_role_name(cluster_name),
            CLUSTER_ROLE_DESCRIPTION,
            _trust_policy(EKS_SERVICE_PRINCIPAL),
            CLUSTER_MANAGED_POLICIES,
            CLUSTER_INLINE_POLICIES,
            tags,
        )
    except ProvisioningError as err:
        raise ProvisioningError("error creating the IAM role for the cluster to use") from err

    try:
        node_role_arn = create_role(
            iam,
            node_role_name(cluster_name),
            NODE_ROLE_DESCRIPTION,
            _trust_policy(EC2_SERVICE_PRINCIPAL),
            NODE_MANAGED_POLICIES,
            {},
            tags,
        )
    except ProvisioningError as err:
        raise ProvisioningError("error creating the IAM role for the nodegroup to use") from err

    console.print("[green]\u2705 IAM roles created[/green]")
    return ClusterRoles(cluster_role_arn, node_role_arn)


def role_exists(iam: Any, role_name: str) -> bool:
    """Whether *role_name* exists.

    Raises:
        TeardownError: If the lookup fails for a reason other than not-found.
    """
    try:
        iam.get_role(RoleName=role_name)
    except AWS_ERRORS as err:
        if is_not_found(err):
            return False
        raise TeardownError(f"failed to read role {role_name}") from err
    return True


def delete_role(iam: Any, role_name: str) -> bool:
    """Detach and delete every policy of *role_name*, then the role itself.

    Args:
        iam: boto3 IAM client.
        role_name: Role to delete.

    Returns:
        True if the role was deleted, False if it was already gone.

    Raises:
        TeardownError: If any call fails for a reason other than not-found.
    """
    try:
        attached = iam.list_attached_role_policies(RoleName=role_name)["AttachedPolicies"]
        for policy in attached:
            iam.detach_role_policy(RoleName=role_name, PolicyArn=policy["PolicyArn"])
        for name in iam.list_role_policies(RoleName=role_name)["PolicyNames"]:
            iam.delete_role_policy(RoleName=role_name, PolicyName=name)
        iam.delete_role(RoleName=role_name)
    except AWS_ERRORS as err:
        if is_not_found(err):
            logger.info("IAM role %s already deleted", role_name)
            return False
        raise TeardownError(f"failed to delete role {role_name}") from err
    logger.info("Deleted IAM role %s", role_name)
    return True
