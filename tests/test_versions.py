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

import pytest

from mesh_smoke.errors import (
    InvalidVersionError,
    MissingEnvError,
    ProvisioningError,
    StateTimeoutError,
    format_error,
)
from mesh_smoke.versions import KubernetesVersion, parse_version


@pytest.mark.parametrize("value,expected", [
    ("1.31.1", KubernetesVersion(1, 31, 1)),
    ("v1.28.0", KubernetesVersion(1, 28, 0)),
    ("v1.31.2-eks-7f9249a", KubernetesVersion(1, 31, 2)),
    (" 1.30.5 ", KubernetesVersion(1, 30, 5)),
])
def test_parse_version(value, expected):
    assert parse_version(value) == expected


@pytest.mark.parametrize("value", ["", "1.31", "latest", "1.x.0"])
def test_parse_version_rejects(value):
    with pytest.raises(InvalidVersionError, match="invalid version string"):
        parse_version(value)


def test_version_rendering():
    version = parse_version("v1.31.1")

    assert str(version) == "1.31.1"
    assert version.minor_version == "1.31"


def test_format_error_joins_causes():
    try:
        try:
            raise ValueError("AccessDenied")
        except ValueError as err:
            raise ProvisioningError("error attaching policy to role smoke-EksClusterRole") from err
    except ProvisioningError as err:
        try:
            raise ProvisioningError("error creating the IAM role for the cluster to use") from err
        except ProvisioningError as outer:
            message = format_error(outer)

    assert message == (
        "error creating the IAM role for the cluster to use: "
        "error attaching policy to role smoke-EksClusterRole: AccessDenied"
    )


def test_error_messages():
    assert str(MissingEnvError("AWS_REGION")) == "AWS_REGION is not set"
    assert str(StateTimeoutError("node group default", 1800)) == "timed out after 1800s waiting for node group default"
