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

"""Provider registry mapping platform names to cluster providers."""

from __future__ import annotations

import threading
from typing import Protocol

from mesh_smoke.clusters import Builder, Cluster
from mesh_smoke.errors import UnsupportedPlatformError


class Provider(Protocol):
    """Capabilities every platform implements.

    ``build`` may return None to signal that the caller's default builder
    should run (used by local platforms).
    """

    def build(self, env_name: str) -> Builder | None: ...

    def attach(self, env_name: str, cancel: threading.Event | None = None) -> Cluster: ...

    def cleanup(self, env_name: str, cancel: threading.Event | None = None) -> None: ...


class ProviderRegistry:
    """Ordered mapping of platform name to provider.

    Populated once at program start and read-only afterwards.
    """

    def __init__(self) -> None:
        self._providers: dict[str, Provider] = {}

    def register(self, name: str, provider: Provider) -> None:
        self._providers[name] = provider

    @property
    def names(self) -> list[str]:
        """Registered platform names in registration order."""
        return list(self._providers)

    def _lookup(self, platform: str) -> Provider:
        try:
            return self._providers[platform]
        except KeyError:
            raise UnsupportedPlatformError(platform, self.names) from None

    def validate_platform(self, platform: str) -> None:
        """Reject an unknown platform name with the list of supported values.

        Raises:
            UnsupportedPlatformError: If *platform* is not registered.
        """
        if platform not in self._providers:
            raise UnsupportedPlatformError(
                platform,
                self.names,
                f"unsupported platform: '{platform}'. supported values are: {', '.join(self.names)}",
            )

    def get_builder(self, platform: str, env_name: str) -> Builder | None:
        """Return the provider's builder for *env_name*, or None for "no override".

        Raises:
            UnsupportedPlatformError: If *platform* is not registered.
        """
        return self._lookup(platform).build(env_name)

    def attach(self, platform: str, env_name: str, cancel: threading.Event | None = None) -> Cluster:
        """Return an authenticated handle to the existing cluster *env_name*.

        Raises:
            UnsupportedPlatformError: If *platform* is not registered.
        """
        return self._lookup(platform).attach(env_name, cancel)

    def cleanup(self, platform: str, env_name: str, cancel: threading.Event | None = None) -> None:
        """Tear down the cluster *env_name* and everything created for it.

        Raises:
            UnsupportedPlatformError: If *platform* is not registered.
        """
        self._lookup(platform).cleanup(env_name, cancel)


def register_default_providers(registry: ProviderRegistry) -> ProviderRegistry:
    """Register the built-in eks, gke and kind providers.

    Args:
        registry: Registry to populate.

    Returns:
        The same registry, for chaining.
    """
    from mesh_smoke.providers.eks import EksProvider
    from mesh_smoke.providers.gke import GkeProvider
    from mesh_smoke.providers.kind import KindProvider

    registry.register("eks", EksProvider())
    registry.register("gke", GkeProvider())
    registry.register("kind", KindProvider())
    return registry
