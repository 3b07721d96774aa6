"""
Adapter registry.

An explicit object created once at application start and passed to the
managers and CLIs. Remote adapters can be registered lazily so their
clients are only built when selected.
"""

import logging
from typing import Callable, Dict, List, Optional

from .base import AdapterKind, StorageAdapter
from .local import create_local_adapter
from ..config import GitHubConfig, S3Config, TransportConfig, WorkspaceConfig
from ..exceptions import UnknownAdapter

AdapterFactory = Callable[[], StorageAdapter]


class AdapterRegistry:
    """
    Registered adapters plus the currently selected one.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._adapters: Dict[str, StorageAdapter] = {}
        self._factories: Dict[str, AdapterFactory] = {}
        self._order: List[str] = []
        self._current_id: Optional[str] = None

    def register(self, adapter: StorageAdapter) -> None:
        """
        Register a constructed adapter.

        Raises:
            ValueError: If the id is already registered
        """
        self._check_new(adapter.id)
        self._adapters[adapter.id] = adapter
        self._order.append(adapter.id)
        self.logger.debug(f"Registered adapter {adapter!r}")

    def register_lazy(self, adapter_id: str, factory: AdapterFactory) -> None:
        """Register a factory that builds the adapter on first lookup."""
        self._check_new(adapter_id)
        self._factories[adapter_id] = factory
        self._order.append(adapter_id)
        self.logger.debug(f"Registered lazy adapter '{adapter_id}'")

    def _check_new(self, adapter_id: str) -> None:
        if adapter_id in self._adapters or adapter_id in self._factories:
            raise ValueError(f"Adapter '{adapter_id}' is already registered")

    def get(self, adapter_id: str) -> StorageAdapter:
        """
        Look up an adapter, building it if it was registered lazily.

        Raises:
            UnknownAdapter: If the id was never registered
        """
        if adapter_id in self._adapters:
            return self._adapters[adapter_id]

        factory = self._factories.get(adapter_id)
        if factory is None:
            raise UnknownAdapter(adapter_id, self.ids())

        adapter = factory()
        if adapter.id != adapter_id:
            raise ValueError(
                f"Factory for '{adapter_id}' produced adapter '{adapter.id}'"
            )
        del self._factories[adapter_id]
        self._adapters[adapter_id] = adapter
        return adapter

    def ids(self) -> List[str]:
        return list(self._order)

    def list(self) -> List[StorageAdapter]:
        """All registered adapters in registration order."""
        return [self.get(adapter_id) for adapter_id in self._order]

    def select(self, adapter_id: str) -> StorageAdapter:
        """
        Make an adapter the current one.

        Raises:
            UnknownAdapter: If the id was never registered
        """
        if adapter_id not in self._adapters and adapter_id not in self._factories:
            raise UnknownAdapter(adapter_id, self.ids())
        self._current_id = adapter_id
        return self.get(adapter_id)

    def current(self) -> StorageAdapter:
        """
        The selected adapter, or the first registered one.

        Raises:
            UnknownAdapter: If nothing is registered
        """
        if self._current_id is not None:
            return self.get(self._current_id)
        if not self._order:
            raise UnknownAdapter("<none>")
        return self.get(self._order[0])

    def close(self) -> None:
        """Release the clients of every adapter built so far."""
        for adapter in self._adapters.values():
            if adapter.close is not None:
                self.logger.debug(f"Closing adapter '{adapter.id}'")
                adapter.close()

    def __contains__(self, adapter_id: str) -> bool:
        return adapter_id in self._adapters or adapter_id in self._factories

    def __len__(self) -> int:
        return len(self._order)


def create_default_registry(
    workspace_config: Optional[WorkspaceConfig] = None,
    github_config: Optional[GitHubConfig] = None,
    s3_config: Optional[S3Config] = None,
    transport_config: Optional[TransportConfig] = None,
    logger: Optional[logging.Logger] = None
) -> AdapterRegistry:
    """
    Build the registry used by the command-line tools.

    The local adapter is always available; GitHub and S3 are registered
    when their configuration names a repository or bucket.

    Args:
        workspace_config: Supplies the default adapter id
        github_config: GitHub configuration (default: from environment)
        s3_config: S3 configuration (default: from environment)
        transport_config: Retry and timeout settings for remote adapters
        logger: Logger instance

    Returns:
        AdapterRegistry with the default adapter selected
    """
    workspace_config = workspace_config or WorkspaceConfig()
    github_config = github_config or GitHubConfig()
    s3_config = s3_config or S3Config()

    registry = AdapterRegistry(logger)
    registry.register(create_local_adapter())

    if github_config.is_configured:
        def build_github() -> StorageAdapter:
            from .github import create_github_adapter
            return create_github_adapter(github_config, transport_config, logger=logger)

        registry.register_lazy(AdapterKind.GITHUB.value, build_github)

    if s3_config.is_configured:
        def build_s3() -> StorageAdapter:
            from .s3 import create_s3_adapter
            return create_s3_adapter(s3_config, transport_config, logger=logger)

        registry.register_lazy(AdapterKind.S3.value, build_s3)

    registry.select(workspace_config.default_adapter)
    return registry
