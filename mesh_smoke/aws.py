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

"""AWS SDK session loading and error classification."""

from __future__ import annotations

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from mesh_smoke.errors import ConfigurationError

# Error codes AWS returns when the addressed resource does not exist.
NOT_FOUND_CODES = frozenset({
    # EKS
    "ResourceNotFoundException",
    # IAM
    "NoSuchEntity",
    # SSM
    "ParameterNotFound",
    # EC2
    "InvalidVpcID.NotFound",
    "InvalidSubnetID.NotFound",
    "InvalidGroup.NotFound",
    "InvalidRouteTableID.NotFound",
    "InvalidInternetGatewayID.NotFound",
    "InvalidAssociationID.NotFound",
    "InvalidPermission.NotFound",
    "InvalidLaunchTemplateId.NotFound",
    "InvalidLaunchTemplateName.NotFoundException",
    "Gateway.NotAttached",
})

AWS_ERRORS = (ClientError, BotoCoreError)


def error_code(err: BaseException) -> str:
    """Return the AWS error code carried by *err*, or an empty string."""
    if isinstance(err, ClientError):
        return str(err.response.get("Error", {}).get("Code", ""))
    return ""


def is_not_found(err: BaseException) -> bool:
    """Whether *err* is the SDK's report that the resource does not exist."""
    return error_code(err) in NOT_FOUND_CODES


def load_session() -> boto3.session.Session:
    """Load the ambient AWS credentials and region.

    Returns:
        A boto3 session bound to the configured region.

    Raises:
        ConfigurationError: If no region can be resolved.
    """
    session = boto3.session.Session()
    if not session.region_name:
        raise ConfigurationError("failed to load AWS SDK config: no region configured")
    return session
