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

"""Kubernetes version parsing."""

from __future__ import annotations

import re
from typing import NamedTuple

from mesh_smoke.errors import InvalidVersionError

_VERSION_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)(?:[-+].*)?$")


class KubernetesVersion(NamedTuple):
    """A MAJOR.MINOR.PATCH version."""

    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    @property
    def minor_version(self) -> str:
        """The version with its patch stripped, e.g. ``1.31``."""
        return f"{self.major}.{self.minor}"


def parse_version(value: str) -> KubernetesVersion:
    """Parse ``1.31.1``, ``v1.31.1`` or a server version like ``v1.31.2-eks-7f9249a``.

    Args:
        value: Version string.

    Returns:
        The parsed version.

    Raises:
        InvalidVersionError: If *value* is not a MAJOR.MINOR.PATCH version.
    """
    m = _VERSION_RE.match(value.strip())
    if not m:
        raise InvalidVersionError(f"invalid version string: '{value}'")
    return KubernetesVersion(int(m.group(1)), int(m.group(2)), int(m.group(3)))
