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

"""VPC, internet gateway, route table and subnets for an EKS cluster."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Any

from mesh_smoke import console, logger
from mesh_smoke.aws import AWS_ERRORS
from mesh_smoke.constants import (
    AZ_STATE_AVAILABLE,
    DEFAULT_ROUTE_CIDR,
    DEFAULT_SUBNET_PREFIX_LENGTH,
    DEFAULT_VPC_CIDR,
    KUBERNETES_TAG_FORMAT,
    KUBERNETES_TAG_VALUE,
    REQUIRED_AVAILABILITY_ZONES,
)
from mesh_smoke.errors import ProvisioningError


@dataclass
class NetworkFabric:
    """Identifiers of the network created for one cluster."""

    vpc_id: str
    route_table_id: str
    internet_gateway_id: str
    subnet_ids: list[str] = field(default_factory=list)
    availability_zones: list[str] = field(default_factory=list)


def cluster_tags(cluster_name: str, kind: str) -> list[dict[str, str]]:
    """Tags carried by every network resource owned by *cluster_name*."""
    return [
        {"Key": "Name", "Value": f"{cluster_name}-{kind}"},
        {"Key": KUBERNETES_TAG_FORMAT.format(cluster_name), "Value": KUBERNETES_TAG_VALUE},
    ]


def tag_specification(resource_type: str, cluster_name: str, kind: str) -> list[dict[str, Any]]:
    return [{"ResourceType": resource_type, "Tags": cluster_tags(cluster_name, kind)}]


def subnet_cidrs(vpc_cidr: str, count: int = REQUIRED_AVAILABILITY_ZONES) -> list[str]:
    """Carve *count* subnets from *vpc_cidr*, skipping the first block.

    ``10.163.0.0/16`` yields ``10.163.1.0/24`` and ``10.163.2.0/24``.
    """
    network = ipaddress.ip_network(vpc_cidr)
    blocks = network.subnets(new_prefix=DEFAULT_SUBNET_PREFIX_LENGTH)
    next(blocks)
    try:
        return [str(next(blocks)) for _ in range(count)]
    except StopIteration:
        raise ProvisioningError(f"VPC CIDR {vpc_cidr} is too small for {count} subnets") from None


def get_availability_zones(ec2: Any) -> list[str]:
    """Return the first two availability zones in state ``available``.

    Raises:
        ProvisioningError: If fewer than two zones are available.
    """
    try:
        zones = ec2.describe_availability_zones()["AvailabilityZones"]
    except AWS_ERRORS as err:
        raise ProvisioningError("failed to describe availability zones") from err

    available = [z["ZoneName"] for z in zones if z.get("State") == AZ_STATE_AVAILABLE]
    if len(available) < REQUIRED_AVAILABILITY_ZONES:
        raise ProvisioningError(
            f"insufficient availability zones: need {REQUIRED_AVAILABILITY_ZONES}, found {len(available)}"
        )
    return available[:REQUIRED_AVAILABILITY_ZONES]


def create_network(
    ec2: Any,
    cluster_name: str,
    availability_zones: list[str],
    vpc_cidr: str = DEFAULT_VPC_CIDR,
) -> NetworkFabric:
    """Create the VPC and everything the cluster subnets need to reach the internet.

    Args:
        ec2: boto3 EC2 client.
        cluster_name: Owner name used for tags.
        availability_zones: Two zones, one subnet is created in each.
        vpc_cidr: CIDR block of the VPC.

    Returns:
        The identifiers of the created resources.

    Raises:
        ProvisioningError: Naming the resource whose creation failed.
    """
    console.print(f"[yellow]\u2139\ufe0f  Creating VPC {vpc_cidr} for {cluster_name}...[/yellow]")
    cidrs = subnet_cidrs(vpc_cidr, len(availability_zones))

    try:
        vpc_id = ec2.create_vpc(
            CidrBlock=vpc_cidr,
            TagSpecifications=tag_specification("vpc", cluster_name, "vpc"),
        )["Vpc"]["VpcId"]
    except AWS_ERRORS as err:
        raise ProvisioningError(f"failed to create VPC for cluster {cluster_name}") from err
    logger.info("Created VPC %s", vpc_id)

    try:
        ec2.modify_vpc_attribute(VpcId=vpc_id, EnableDnsSupport={"Value": True})
        ec2.modify_vpc_attribute(VpcId=vpc_id, EnableDnsHostnames={"Value": True})
    except AWS_ERRORS as err:
        raise ProvisioningError(f"failed to enable DNS on VPC {vpc_id}") from err

    try:
        igw_id = ec2.create_internet_gateway(
            TagSpecifications=tag_specification("internet-gateway", cluster_name, "igw"),
        )["InternetGateway"]["InternetGatewayId"]
        ec2.attach_internet_gateway(InternetGatewayId=igw_id, VpcId=vpc_id)
    except AWS_ERRORS as err:
        raise ProvisioningError(f"failed to create internet gateway for VPC {vpc_id}") from err

    try:
        route_table_id = ec2.create_route_table(
            VpcId=vpc_id,
            TagSpecifications=tag_specification("route-table", cluster_name, "rt"),
        )["RouteTable"]["RouteTableId"]
        ec2.create_route(RouteTableId=route_table_id, DestinationCidrBlock=DEFAULT_ROUTE_CIDR, GatewayId=igw_id)
    except AWS_ERRORS as err:
        raise ProvisioningError(f"failed to create route table for VPC {vpc_id}") from err

    subnet_ids = []
    for index, (zone, cidr) in enumerate(zip(availability_zones, cidrs), start=1):
        try:
            subnet_id = ec2.create_subnet(
                VpcId=vpc_id,
                CidrBlock=cidr,
                AvailabilityZone=zone,
                TagSpecifications=tag_specification("subnet", cluster_name, f"subnet-{index}"),
            )["Subnet"]["SubnetId"]
            ec2.modify_subnet_attribute(SubnetId=subnet_id, MapPublicIpOnLaunch={"Value": True})
            ec2.associate_route_table(RouteTableId=route_table_id, SubnetId=subnet_id)
        except AWS_ERRORS as err:
            raise ProvisioningError(f"failed to create subnet {cidr} in VPC {vpc_id}") from err
        subnet_ids.append(subnet_id)

    console.print(f"[green]\u2705 VPC {vpc_id} ready with subnets {', '.join(subnet_ids)}[/green]")
    return NetworkFabric(
        vpc_id=vpc_id,
        route_table_id=route_table_id,
        internet_gateway_id=igw_id,
        subnet_ids=subnet_ids,
        availability_zones=list(availability_zones),
    )
