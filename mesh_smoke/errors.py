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

"""Exception hierarchy for cluster provisioning, authentication and teardown."""

from __future__ import annotations

from collections.abc import Sequence


class SmokeError(Exception):
    """Base class for all errors raised by mesh_smoke."""


# ============================================================================
# Configuration errors (raised before any cloud call)
# ============================================================================

class ConfigurationError(SmokeError):
    """Invalid or missing configuration."""


class MissingEnvError(ConfigurationError):
    """A required environment variable is empty or unset."""

    def __init__(self, var: str) -> None:
        super().__init__(f"{var} is not set")
        self.var = var


class UnsupportedPlatformError(ConfigurationError):
    """No provider is registered under the requested platform name."""

    def __init__(self, platform: str, known: Sequence[str], message: str | None = None) -> None:
        super().__init__(message or f"environment platform not supported: {platform}")
        self.platform = platform
        self.known = list(known)


class InvalidVersionError(ConfigurationError):
    """A version string could not be parsed as MAJOR.MINOR.PATCH."""


# ============================================================================
# Runtime errors
# ============================================================================

class ProvisioningError(SmokeError):
    """A cloud API call failed while building a cluster."""


class TeardownError(SmokeError):
    """A cloud API call failed while tearing a cluster down."""


class StateTimeoutError(SmokeError):
    """A polled resource did not reach its terminal state before the deadline."""

    def __init__(self, resource: str, timeout: float) -> None:
        super().__init__(f"timed out after {timeout:g}s waiting for {resource}")
        self.resource = resource
        self.timeout = timeout


class OperationCancelled(SmokeError):
    """The caller cancelled the running operation."""


class AuthenticationError(SmokeError):
    """Describing the cluster or signing its bearer token failed."""


class AddonError(SmokeError):
    """An addon could not be registered on a cluster handle."""


def format_error(err: BaseException) -> str:
    """Render an exception and its chained causes as one line.

    Args:
        err: The outermost exception.

    Returns:
        Messages joined as ``outer: inner: root``.
    """
    parts: list[str] = []
    current: BaseException | None = err
    while current is not None:
        text = str(current)
        if text and text not in parts:
            parts.append(text)
        current = current.__cause__
    return ": ".join(parts)
