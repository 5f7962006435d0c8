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

"""Ordered, idempotent teardown of an EKS cluster and its VPC."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from mesh_smoke import console, logger
from mesh_smoke.aws import AWS_ERRORS, is_not_found
from mesh_smoke.config import EksSettings
from mesh_smoke.constants import (
    DEFAULT_SECURITY_GROUP_NAME,
    KUBERNETES_TAG_FORMAT,
    KUBERNETES_TAG_VALUE,
    NODE_GROUP_NAME,
    STATUS_DELETING,
)
from mesh_smoke.errors import TeardownError
from mesh_smoke.polling import check_cancelled, poll_until
from mesh_smoke.providers.eks.iam import (
    cluster_role_name,
    delete_role,
    node_role_name,
    role_exists,
    role_name_from_arn,
)
from mesh_smoke.providers.eks.nodegroup import delete_launch_template, find_launch_template


def _call(fn: Callable[..., Any], what: str, **kwargs: Any) -> bool:
    """Run one delete call; False when the target was already gone."""
    try:
        fn(**kwargs)
    except AWS_ERRORS as err:
        if is_not_found(err):
            logger.info("%s already deleted", what)
            return False
        raise TeardownError(f"failed to delete {what}") from err
    logger.info("Deleted %s", what)
    return True


def _describe(fn: Callable[..., Any], what: str, key: str, **kwargs: Any) -> Any:
    """Run one describe call; None when the target does not exist."""
    try:
        return fn(**kwargs)[key]
    except AWS_ERRORS as err:
        if is_not_found(err):
            return None
        raise TeardownError(f"failed to describe {what}") from err


def _wait_deleted(describe: Callable[[], Any], what: str, settings: EksSettings, cancel: threading.Event | None) -> None:
    def _gone() -> bool:
        try:
            describe()
        except AWS_ERRORS as err:
            if is_not_found(err):
                return True
            raise TeardownError(f"failed to describe {what}") from err
        return False

    poll_until(
        _gone,
        resource=f"{what} to be deleted",
        interval=settings.delete_poll_interval,
        timeout=settings.delete_poll_timeout,
        cancel=cancel,
    )


def _delete_and_wait(
    resource: dict[str, Any],
    delete: Callable[[], Any],
    describe: Callable[[], Any],
    what: str,
    settings: EksSettings,
    cancel: threading.Event | None,
) -> None:
    """Delete *resource* and wait until it is gone.

    A resource an earlier run already put into DELETING is only waited for;
    EKS rejects a second delete with ResourceInUseException.
    """
    if resource.get("status") == STATUS_DELETING:
        logger.info("%s is already being deleted", what)
    elif not _call(delete, what):
        return
    _wait_deleted(describe, what, settings, cancel)


def _vpc_filter(vpc_id: str, name: str = "vpc-id") -> list[dict[str, Any]]:
    return [{"Name": name, "Values": [vpc_id]}]


def find_cluster_vpc(ec2: Any, cluster_name: str) -> str | None:
    """Return the VPC tagged as owned by *cluster_name*, or None."""
    tag_filter = [{"Name": f"tag:{KUBERNETES_TAG_FORMAT.format(cluster_name)}", "Values": [KUBERNETES_TAG_VALUE]}]
    vpcs = _describe(ec2.describe_vpcs, f"VPC of cluster {cluster_name}", "Vpcs", Filters=tag_filter) or []
    return vpcs[0]["VpcId"] if vpcs else None


def scrub_vpc(ec2: Any, vpc_id: str) -> None:
    """Delete every dependency of *vpc_id* in reverse creation order, then the VPC.

    Route tables (except the main one), subnets and internet gateways go first.
    Security group rules are revoked before any group is deleted, because
    groups that reference each other cannot be deleted while the rules exist.

    Raises:
        TeardownError: On the first failure that is not a not-found.
    """
    console.print(f"[yellow]Scrubbing VPC {vpc_id}...[/yellow]")

    route_tables = _describe(ec2.describe_route_tables, f"route tables of {vpc_id}", "RouteTables",
                             Filters=_vpc_filter(vpc_id)) or []
    for table in route_tables:
        associations = table.get("Associations", [])
        if any(assoc.get("Main") for assoc in associations):
            continue
        for assoc in associations:
            _call(ec2.disassociate_route_table, f"route table association {assoc['RouteTableAssociationId']}",
                  AssociationId=assoc["RouteTableAssociationId"])
        _call(ec2.delete_route_table, f"route table {table['RouteTableId']}", RouteTableId=table["RouteTableId"])

    subnets = _describe(ec2.describe_subnets, f"subnets of {vpc_id}", "Subnets", Filters=_vpc_filter(vpc_id)) or []
    for subnet in subnets:
        _call(ec2.delete_subnet, f"subnet {subnet['SubnetId']}", SubnetId=subnet["SubnetId"])

    gateways = _describe(ec2.describe_internet_gateways, f"internet gateways of {vpc_id}", "InternetGateways",
                         Filters=_vpc_filter(vpc_id, "attachment.vpc-id")) or []
    for gateway in gateways:
        igw_id = gateway["InternetGatewayId"]
        _call(ec2.detach_internet_gateway, f"internet gateway attachment {igw_id}",
              InternetGatewayId=igw_id, VpcId=vpc_id)
        _call(ec2.delete_internet_gateway, f"internet gateway {igw_id}", InternetGatewayId=igw_id)

    groups = _describe(ec2.describe_security_groups, f"security groups of {vpc_id}", "SecurityGroups",
                       Filters=_vpc_filter(vpc_id)) or []
    groups = [g for g in groups if g.get("GroupName") != DEFAULT_SECURITY_GROUP_NAME]
    for group in groups:
        group_id = group["GroupId"]
        for rule in group.get("IpPermissions", []):
            _call(ec2.revoke_security_group_ingress, f"ingress rule of security group {group_id}",
                  GroupId=group_id, IpPermissions=[rule])
        for rule in group.get("IpPermissionsEgress", []):
            _call(ec2.revoke_security_group_egress, f"egress rule of security group {group_id}",
                  GroupId=group_id, IpPermissions=[rule])
    for group in groups:
        _call(ec2.delete_security_group, f"security group {group['GroupId']}", GroupId=group["GroupId"])

    _call(ec2.delete_vpc, f"VPC {vpc_id}", VpcId=vpc_id)


def cleanup_cluster(
    session: Any,
    cluster_name: str,
    settings: EksSettings | None = None,
    cancel: threading.Event | None = None,
) -> None:
    """Tear down everything the builder created for *cluster_name*.

    Resources are rediscovered from the cluster description and, when the
    cluster is already gone, from their name-derived identifiers and tags.
    Only resources that still exist are deleted, so a second run is a no-op.

    Args:
        session: boto3 session (or any object with ``client(name)``).
        cluster_name: Cluster to tear down.
        settings: Poll interval and timeout for deletion waits.
        cancel: Cancellation event checked before each step and during waits.

    Raises:
        TeardownError: On the first failure that is not a not-found.
        StateTimeoutError: If a deletion does not finish before the deadline.
        OperationCancelled: If *cancel* is set.
    """
    settings = settings or EksSettings()
    eks, ec2, iam = session.client("eks"), session.client("ec2"), session.client("iam")
    console.print(f"[yellow]Tearing down cluster {cluster_name}...[/yellow]")

    check_cancelled(cancel, "describing the cluster")
    cluster = _describe(eks.describe_cluster, f"cluster {cluster_name}", "cluster", name=cluster_name)
    if cluster is not None:
        vpc_id = cluster.get("resourcesVpcConfig", {}).get("vpcId")
        cluster_role = role_name_from_arn(cluster["roleArn"])
    else:
        logger.info("Cluster %s not found, looking up its resources by name", cluster_name)
        vpc_id = find_cluster_vpc(ec2, cluster_name)
        cluster_role = cluster_role_name(cluster_name)

    node_role = node_role_name(cluster_name)
    template_id = None

    check_cancelled(cancel, "deleting the node group")
    if cluster is not None:
        nodegroup = _describe(eks.describe_nodegroup, f"node group {NODE_GROUP_NAME}", "nodegroup",
                              clusterName=cluster_name, nodegroupName=NODE_GROUP_NAME)
        if nodegroup is not None:
            node_role = role_name_from_arn(nodegroup["nodeRole"])
            template_id = nodegroup.get("launchTemplate", {}).get("id")
            _delete_and_wait(
                nodegroup,
                lambda: eks.delete_nodegroup(clusterName=cluster_name, nodegroupName=NODE_GROUP_NAME),
                lambda: eks.describe_nodegroup(clusterName=cluster_name, nodegroupName=NODE_GROUP_NAME),
                f"node group {NODE_GROUP_NAME}", settings, cancel,
            )

    check_cancelled(cancel, "deleting the launch template")
    template_id = template_id or find_launch_template(ec2, cluster_name)
    if template_id:
        delete_launch_template(ec2, template_id)

    check_cancelled(cancel, "deleting the IAM roles")
    for role in (node_role, cluster_role):
        if role_exists(iam, role):
            delete_role(iam, role)

    check_cancelled(cancel, "deleting the cluster")
    if cluster is not None:
        _delete_and_wait(
            cluster,
            lambda: eks.delete_cluster(name=cluster_name),
            lambda: eks.describe_cluster(name=cluster_name),
            f"cluster {cluster_name}", settings, cancel,
        )

    check_cancelled(cancel, "scrubbing the VPC")
    if vpc_id:
        scrub_vpc(ec2, vpc_id)

    console.print(f"[green]\u2705 Cluster {cluster_name} torn down[/green]")
