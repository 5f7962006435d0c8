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

"""Constants shared by the cluster providers."""

from __future__ import annotations

# -- Credential environment variables --
ENV_AWS_ACCESS_KEY_ID = "AWS_ACCESS_KEY_ID"
ENV_AWS_SECRET_ACCESS_KEY = "AWS_SECRET_ACCESS_KEY"
ENV_AWS_REGION = "AWS_REGION"
ENV_GKE_CREDENTIALS = "GKE_JSON_CREDENTIALS"
ENV_GKE_PROJECT = "GKE_PROJECT"
ENV_GKE_LOCATION = "GKE_LOCATION"

# -- Cluster types --
CLUSTER_TYPE_EKS = "eks"
CLUSTER_TYPE_GKE = "gke"
CLUSTER_TYPE_KIND = "kind"

# -- Builder defaults --
DEFAULT_KUBERNETES_VERSION = "1.31.1"
DEFAULT_NODE_MACHINE_TYPE = "c5.4xlarge"
DEFAULT_GKE_NODE_MACHINE_TYPE = "e2-standard-16"
DEFAULT_CLUSTER_NAME_PREFIX = "t-"
DEFAULT_ENV_NAME_PREFIX = "smoke-"

# -- Network --
DEFAULT_VPC_CIDR = "10.163.0.0/16"
DEFAULT_SUBNET_PREFIX_LENGTH = 24
DEFAULT_ROUTE_CIDR = "0.0.0.0/0"
KUBERNETES_SERVICE_CIDR = "172.20.0.0/16"
CLUSTER_DNS_OFFSET = 10
REQUIRED_AVAILABILITY_ZONES = 2
AZ_STATE_AVAILABLE = "available"

# -- Naming --
NODE_GROUP_NAME = "default-node-group"
CLUSTER_ROLE_SUFFIX = "-EksClusterRole"
NODE_ROLE_SUFFIX = "-NodeInstanceRole"
CP_SECURITY_GROUP_SUFFIX = "-cp"
NODE_SECURITY_GROUP_SUFFIX = "-shared-by-all-nodes"
LAUNCH_TEMPLATE_SUFFIX = "-node-template"
KUBERNETES_TAG_FORMAT = "kubernetes.io/cluster/{}"
KUBERNETES_TAG_VALUE = "owned"
ALL_PROTOCOLS = "-1"

# -- Node launch template --
NODE_ROOT_DEVICE = "/dev/xvda"
NODE_ROOT_VOLUME_SIZE_GB = 40
NODE_ROOT_VOLUME_TYPE = "gp3"
NODE_GROUP_SIZE = 1
AMI_SSM_PARAMETER_FORMAT = "/aws/service/eks/optimized-ami/{version}/{family}/recommended/image_id"
AMI_FAMILY_AL2 = "amazon-linux-2"
AMI_FAMILY_AL2_GPU = "amazon-linux-2-gpu"
AMI_FAMILY_AL2_ARM64 = "amazon-linux-2-arm64"
GPU_INSTANCE_FAMILIES = ("p2", "p3", "p4d", "p4de", "p5", "g3", "g3s", "g4dn", "g5", "g6", "g6e")

# -- Cloud states --
CLUSTER_STATUS_ACTIVE = "ACTIVE"
NODEGROUP_STATUS_ACTIVE = "ACTIVE"
STATUS_DELETING = "DELETING"
DEFAULT_SECURITY_GROUP_NAME = "default"

# -- Polling --
CREATE_POLL_INTERVAL_SECONDS = 10
CREATE_POLL_TIMEOUT_SECONDS = 600
DELETE_POLL_INTERVAL_SECONDS = 5
DELETE_POLL_TIMEOUT_SECONDS = 1800

# -- Authenticator --
TOKEN_PREFIX = "k8s-aws-v1."
CLUSTER_ID_HEADER = "x-k8s-aws-id"
TOKEN_EXPIRES_SECONDS = 3600
USER_AGENT_HEADER = "User-Agent"

# -- Auth ConfigMap --
AUTH_CONFIGMAP_NAME = "aws-auth"
AUTH_CONFIGMAP_NAMESPACE = "kube-system"
AUTH_CONFIGMAP_ROLES_KEY = "mapRoles"
NODE_GROUP_USERNAME = "system:node:{{EC2PrivateDNSName}}"
NODE_GROUP_GROUPS = ("system:bootstrappers", "system:nodes")

# -- IAM --
IAM_POLICY_ARN_PREFIX = "arn:aws:iam::aws:policy/"
CLUSTER_ROLE_DESCRIPTION = (
    "Allows access to other AWS service resources that are required to operate clusters managed by EKS."
)
NODE_ROLE_DESCRIPTION = "Allows EC2 instances to call AWS services on your behalf."
CLUSTER_MANAGED_POLICIES = ("AmazonEKSClusterPolicy", "AmazonEKSVPCResourceController")
NODE_MANAGED_POLICIES = (
    "AmazonEKSWorkerNodePolicy",
    "AmazonEC2ContainerRegistryReadOnly",
    "AmazonEKS_CNI_Policy",
    "AmazonSSMManagedInstanceCore",
)
EKS_SERVICE_PRINCIPAL = "eks.amazonaws.com"
EC2_SERVICE_PRINCIPAL = "ec2.amazonaws.com"

# -- Kubeconfig --
KUBECONFIG_STDOUT = "-"
KUBECONFIG_DEFAULT_USER = "default"

# -- Diagnostics --
DIAGNOSTICS_DIR_PREFIX = "mesh-smoke-diag-"
POD_LOGS_DIR = "pod_logs"
POD_LOGS_FAILURES_FILE = "pod_logs_failures.txt"
DIAGNOSTICS_META_FILE = "meta.txt"
DIAGNOSTICS_GET_ALL_FILE = "kubectl_get_all.yaml"
DIAGNOSTICS_DESCRIBE_ALL_FILE = "kubectl_describe_all.txt"

# -- kind --
KIND_NODE_IMAGE_FORMAT = "kindest/node:v{}"
KIND_CREATE_MAX_RETRIES = 3
KIND_CREATE_RETRY_WAIT_SECONDS = 10
KIND_WAIT_TIMEOUT = "120s"

# -- CLI --
ENVIRONMENT_CREATE_TIMEOUT_SECONDS = 600
ENVIRONMENT_CLEANUP_TIMEOUT_SECONDS = 1800
ENV_NAME_RANDOM_LENGTH = 10
