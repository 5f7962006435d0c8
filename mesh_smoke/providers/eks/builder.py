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

"""Ordered build of an EKS cluster with a single-node managed node group."""

from __future__ import annotations

import threading
import uuid
from typing import Any

from rich.panel import Panel

from mesh_smoke import console, logger
from mesh_smoke.aws import AWS_ERRORS, load_session
from mesh_smoke.config import EksSettings
from mesh_smoke.constants import (
    CLUSTER_STATUS_ACTIVE,
    DEFAULT_CLUSTER_NAME_PREFIX,
    KUBERNETES_SERVICE_CIDR,
    KUBERNETES_TAG_FORMAT,
    KUBERNETES_TAG_VALUE,
)
from mesh_smoke.errors import ProvisioningError
from mesh_smoke.polling import check_cancelled, poll_until
from mesh_smoke.providers.eks.auth_configmap import authorize_node_role
from mesh_smoke.providers.eks.cluster import EksCluster, new_from_existing
from mesh_smoke.providers.eks.iam import ClusterRoles, create_roles
from mesh_smoke.providers.eks.network import NetworkFabric, create_network, get_availability_zones
from mesh_smoke.providers.eks.nodegroup import (
    create_launch_template,
    create_node_group,
    node_userdata,
    resolve_ami,
    wait_for_node_group_active,
)
from mesh_smoke.providers.eks.security_groups import (
    control_plane_security_group_ids,
    create_control_plane_security_group,
    create_node_security_group,
)
from mesh_smoke.versions import KubernetesVersion, parse_version

CLUSTER_FAILED_STATES = frozenset({"FAILED", "DELETING"})


class EksBuilder:
    """Builds an EKS cluster from nothing but AWS credentials.

    Every step runs only after the previous one reached its terminal state,
    and the cancellation event is checked before each of them.

    Attributes:
        name: Cluster name; every created resource is named or tagged with it.
    """

    def __init__(self, name: str | None = None, settings: EksSettings | None = None, session: Any = None) -> None:
        self._settings = settings or EksSettings()
        self.name = name or f"{DEFAULT_CLUSTER_NAME_PREFIX}{uuid.uuid4()}"
        self._version = parse_version(self._settings.kubernetes_version)
        self._node_machine_type = self._settings.node_machine_type
        self._session = session

    def with_name(self, name: str) -> EksBuilder:
        self.name = name
        return self

    def with_cluster_version(self, version: str) -> EksBuilder:
        """Set the Kubernetes version; ``v1.31.1`` and ``1.31.1`` are equivalent.

        Raises:
            InvalidVersionError: If *version* is not MAJOR.MINOR.PATCH.
        """
        self._version = parse_version(version)
        return self

    def with_node_machine_type(self, machine_type: str) -> EksBuilder:
        self._node_machine_type = machine_type
        return self

    @property
    def version(self) -> KubernetesVersion:
        return self._version

    @property
    def node_machine_type(self) -> str:
        return self._node_machine_type

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self, cancel: threading.Event | None = None) -> EksCluster:
        """Create the cluster, its network, roles and node group.

        A failed build leaves the created resources in place; tear them down
        with the provider's cleanup using the same name.

        Args:
            cancel: Cancellation event; once set no further cloud call is issued.

        Returns:
            A handle authenticated with a fresh token.

        Raises:
            ProvisioningError: Naming the resource whose step failed.
            AuthenticationError: If the new cluster cannot be authenticated against.
            StateTimeoutError: If the cluster or node group does not become active in time.
            OperationCancelled: If *cancel* is set.
        """
        name = self.name
        settings = self._settings
        console.print(Panel.fit(f"Building EKS cluster {name}", style="bold blue"))

        check_cancelled(cancel, "loading AWS config")
        session = self._session or load_session()
        eks, ec2, iam, ssm = (session.client(svc) for svc in ("eks", "ec2", "iam", "ssm"))

        check_cancelled(cancel, "creating IAM roles")
        roles = create_roles(iam, name)

        check_cancelled(cancel, "selecting availability zones")
        zones = get_availability_zones(ec2)

        check_cancelled(cancel, "creating the network")
        network = create_network(ec2, name, zones, settings.vpc_cidr)

        check_cancelled(cancel, "creating the control plane security group")
        cp_group_id = create_control_plane_security_group(ec2, network.vpc_id, name)

        check_cancelled(cancel, "creating the cluster")
        self._create_cluster(eks, roles, network, cp_group_id)

        check_cancelled(cancel, "waiting for the cluster")
        cluster = self._wait_for_cluster_active(eks, cancel)

        check_cancelled(cancel, "creating the node security group")
        node_group_id = create_node_security_group(
            ec2, network.vpc_id, name, control_plane_security_group_ids(cluster),
        )

        check_cancelled(cancel, "authorizing the node role")
        handle = new_from_existing(name, session, settings)
        authorize_node_role(handle.core_v1(), roles.node_role_arn)

        check_cancelled(cancel, "resolving the node AMI")
        ami_id = resolve_ami(ssm, self._version.minor_version, self._node_machine_type)

        check_cancelled(cancel, "creating the launch template")
        template_id = create_launch_template(
            ec2,
            name,
            ami_id,
            self._node_machine_type,
            node_group_id,
            node_userdata(name, cluster["endpoint"], cluster["certificateAuthority"]["data"]),
            settings.node_ssh_key,
        )

        check_cancelled(cancel, "creating the node group")
        create_node_group(eks, name, roles.node_role_arn, network.subnet_ids, template_id)

        check_cancelled(cancel, "waiting for the node group")
        wait_for_node_group_active(
            eks, name,
            interval=settings.create_poll_interval,
            timeout=settings.create_poll_timeout,
            cancel=cancel,
        )

        check_cancelled(cancel, "refreshing the cluster handle")
        handle = new_from_existing(name, session, settings)
        console.print(f"[green]\u2705 EKS cluster {name} is ready[/green]")
        return handle

    def _create_cluster(self, eks: Any, roles: ClusterRoles, network: NetworkFabric, cp_group_id: str) -> None:
        console.print(f"[yellow]Creating EKS cluster {self.name} (Kubernetes {self._version.minor_version})...[/yellow]")
        try:
            eks.create_cluster(
                name=self.name,
                version=self._version.minor_version,
                roleArn=roles.cluster_role_arn,
                resourcesVpcConfig={
                    "subnetIds": list(network.subnet_ids),
                    "securityGroupIds": [cp_group_id],
                    "endpointPublicAccess": True,
                    "endpointPrivateAccess": True,
                },
                kubernetesNetworkConfig={"serviceIpv4Cidr": KUBERNETES_SERVICE_CIDR},
                tags={KUBERNETES_TAG_FORMAT.format(self.name): KUBERNETES_TAG_VALUE},
            )
        except AWS_ERRORS as err:
            raise ProvisioningError(f"failed to create cluster {self.name}") from err

    def _wait_for_cluster_active(self, eks: Any, cancel: threading.Event | None) -> dict[str, Any]:
        described: dict[str, Any] = {}

        def _active() -> bool:
            try:
                cluster = eks.describe_cluster(name=self.name)["cluster"]
            except AWS_ERRORS as err:
                raise ProvisioningError(f"failed to describe cluster {self.name}") from err
            status = cluster.get("status")
            if status in CLUSTER_FAILED_STATES:
                raise ProvisioningError(f"cluster {self.name} entered state {status}")
            described.update(cluster)
            return status == CLUSTER_STATUS_ACTIVE

        poll_until(
            _active,
            resource=f"cluster {self.name} to become active",
            interval=self._settings.create_poll_interval,
            timeout=self._settings.create_poll_timeout,
            cancel=cancel,
        )
        logger.info("Cluster %s is active at %s", self.name, described.get("endpoint"))
        return described
