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

"""Bearer token signing and REST configuration for EKS clusters."""

from __future__ import annotations

import base64
from typing import Any

from mesh_smoke import logger
from mesh_smoke.aws import AWS_ERRORS
from mesh_smoke.clusters import RestConfig
from mesh_smoke.constants import CLUSTER_ID_HEADER, TOKEN_EXPIRES_SECONDS, TOKEN_PREFIX, USER_AGENT_HEADER
from mesh_smoke.errors import AuthenticationError

_HANDLER_ID = "mesh-smoke-eks-token"


def _move_cluster_id_to_context(params: dict[str, Any], context: dict[str, Any], **kwargs: Any) -> None:
    # GetCallerIdentity takes no parameters; carry the cluster id past validation.
    if CLUSTER_ID_HEADER in params:
        context[CLUSTER_ID_HEADER] = params.pop(CLUSTER_ID_HEADER)


def _sign_cluster_id_header(request: Any, **kwargs: Any) -> None:
    if CLUSTER_ID_HEADER in request.context:
        request.headers[CLUSTER_ID_HEADER] = request.context[CLUSTER_ID_HEADER]
    if USER_AGENT_HEADER in request.headers:
        del request.headers[USER_AGENT_HEADER]


def generate_bearer_token(sts: Any, cluster_name: str) -> str:
    """Return an EKS bearer token for *cluster_name*.

    The token is a presigned STS ``GetCallerIdentity`` URL whose signature
    covers the ``x-k8s-aws-id`` header, url-safe base64 encoded without
    padding and prefixed with ``k8s-aws-v1.``.

    Args:
        sts: botocore STS client.
        cluster_name: Cluster the token is scoped to.

    Raises:
        AuthenticationError: If the URL cannot be signed.
    """
    events = sts.meta.events
    events.register(
        "provide-client-params.sts.GetCallerIdentity",
        _move_cluster_id_to_context,
        unique_id=f"{_HANDLER_ID}-params",
    )
    events.register(
        "before-sign.sts.GetCallerIdentity",
        _sign_cluster_id_header,
        unique_id=f"{_HANDLER_ID}-sign",
    )
    try:
        url = sts.generate_presigned_url(
            "get_caller_identity",
            Params={CLUSTER_ID_HEADER: cluster_name},
            ExpiresIn=TOKEN_EXPIRES_SECONDS,
            HttpMethod="GET",
        )
    except AWS_ERRORS as err:
        raise AuthenticationError(f"failed to sign token for cluster {cluster_name}") from err
    encoded = base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")
    return f"{TOKEN_PREFIX}{encoded}"


def describe_cluster(eks: Any, cluster_name: str) -> dict[str, Any]:
    """Return the ``cluster`` object of ``describe_cluster``.

    Raises:
        AuthenticationError: If the cluster cannot be described.
    """
    try:
        return eks.describe_cluster(name=cluster_name)["cluster"]
    except AWS_ERRORS as err:
        raise AuthenticationError(f"failed to describe cluster {cluster_name}") from err


def rest_config_for_cluster(session: Any, cluster_name: str) -> RestConfig:
    """Describe *cluster_name* and sign a fresh token for it.

    Args:
        session: boto3 session (or any object with ``client(name)``).
        cluster_name: Existing EKS cluster.

    Returns:
        REST configuration with the cluster endpoint, CA bytes and bearer token.

    Raises:
        AuthenticationError: If describing, decoding the CA or signing fails.
    """
    cluster = describe_cluster(session.client("eks"), cluster_name)
    try:
        ca_data = base64.b64decode(cluster["certificateAuthority"]["data"])
        host = cluster["endpoint"]
    except (KeyError, TypeError, ValueError) as err:
        raise AuthenticationError(f"cluster {cluster_name} has no endpoint or certificate authority") from err

    token = generate_bearer_token(session.client("sts"), cluster_name)
    logger.debug("Signed bearer token for cluster %s", cluster_name)
    return RestConfig(host=host, ca_data=ca_data, bearer_token=token, insecure=False)
