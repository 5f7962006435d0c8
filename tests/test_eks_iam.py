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


from __future__ import annotations

import json

import pytest

from mesh_smoke.errors import ProvisioningError, format_error
from mesh_smoke.providers.eks.iam import create_roles, delete_role, role_exists, role_name_from_arn
from tests.conftest import CLUSTER_NAME
from tests.fakes import FakeIam

POLICY = "arn:aws:iam::aws:policy/"


def test_create_roles(aws):
    roles = create_roles(FakeIam(aws), CLUSTER_NAME)

    cluster_role = aws.roles[f"{CLUSTER_NAME}-EksClusterRole"]
    node_role = aws.roles[f"{CLUSTER_NAME}-NodeInstanceRole"]
    assert roles.cluster_role_arn == cluster_role["Arn"]
    assert roles.node_role_arn == node_role["Arn"]

    trust = json.loads(cluster_role["AssumeRolePolicyDocument"])
    assert trust["Statement"][0]["Principal"] == {"Service": "eks.amazonaws.com"}
    assert json.loads(node_role["AssumeRolePolicyDocument"])["Statement"][0]["Principal"] == {
        "Service": "ec2.amazonaws.com"
    }

    assert cluster_role["attached"] == [f"{POLICY}AmazonEKSClusterPolicy", f"{POLICY}AmazonEKSVPCResourceController"]
    assert sorted(cluster_role["inline"]) == ["CloudWatchMetricsPolicy", "ELBPermissionsPolicy"]
    metrics = json.loads(cluster_role["inline"]["CloudWatchMetricsPolicy"])
    assert metrics["Statement"][0]["Action"] == ["cloudwatch:PutMetricData"]

    assert node_role["attached"] == [
        f"{POLICY}AmazonEKSWorkerNodePolicy",
        f"{POLICY}AmazonEC2ContainerRegistryReadOnly",
        f"{POLICY}AmazonEKS_CNI_Policy",
        f"{POLICY}AmazonSSMManagedInstanceCore",
    ]
    assert node_role["inline"] == {}


def test_managed_policies_are_attached_before_inline(aws):
    create_roles(FakeIam(aws), CLUSTER_NAME)

    role = f"{CLUSTER_NAME}-EksClusterRole"
    ops = [op for _, op, kwargs in aws.calls if kwargs.get("RoleName") == role]
    assert ops == ["create_role"] + ["attach_role_policy"] * 2 + ["put_role_policy"] * 2


def test_policy_failure_names_role_and_policy(aws):
    aws.fail_on("put_role_policy", "MalformedPolicyDocument")

    with pytest.raises(ProvisioningError) as excinfo:
        create_roles(FakeIam(aws), CLUSTER_NAME)

    message = format_error(excinfo.value)
    assert message.startswith("error creating the IAM role for the cluster to use")
    assert f"CloudWatchMetricsPolicy to role {CLUSTER_NAME}-EksClusterRole" in message
    assert "MalformedPolicyDocument" in message


def test_delete_role_detaches_policies_first(aws):
    iam = FakeIam(aws)
    create_roles(iam, CLUSTER_NAME)

    assert delete_role(iam, f"{CLUSTER_NAME}-EksClusterRole") is True
    assert not role_exists(iam, f"{CLUSTER_NAME}-EksClusterRole")
    assert role_exists(iam, f"{CLUSTER_NAME}-NodeInstanceRole")


def test_delete_missing_role_is_tolerated(aws):
    assert delete_role(FakeIam(aws), "missing") is False


@pytest.mark.parametrize("arn,name", [
    ("arn:aws:iam::123456789012:role/smoke-NodeInstanceRole", "smoke-NodeInstanceRole"),
    ("arn:aws:iam::123456789012:role/service-role/smoke-EksClusterRole", "smoke-EksClusterRole"),
])
def test_role_name_from_arn(arn, name):
    assert role_name_from_arn(arn) == name
