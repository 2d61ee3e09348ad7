"""
Client Registry - Discovery and registration of load balancer clients.

The in-memory client ships with albsync; wire-level clients for real cloud
APIs are separate packages that advertise themselves through the
``albsync.clients`` entry point group.
"""

import logging
from importlib.metadata import entry_points
from typing import Any, Dict, Optional, Type

from clients.base import LoadBalancerClient

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "albsync.clients"


class ClientRegistry:
    """Registry of load balancer client classes keyed by name."""

    def __init__(self):
        self._clients: Dict[str, Type[LoadBalancerClient]] = {}
        self._client_configs: Dict[str, Dict[str, Any]] = {}

    def register(self, client_class: Type[LoadBalancerClient]) -> None:
        """
        Register a client class.

        Args:
            client_class: The LoadBalancerClient subclass to register
        """
        name = client_class().name

        if name in self._clients:
            logger.warning(f"Overwriting existing load balancer client: {name}")

        self._clients[name] = client_class
        self._client_configs[name] = client_class.load_config_from_env()
        logger.info(f"Registered load balancer client: {name}")

    async def create(
        self, name: str, config: Optional[Dict[str, Any]] = None
    ) -> LoadBalancerClient:
        """
        Instantiate and initialize a client.

        The environment-derived config is used as the base; ``config``
        values take precedence.

        Raises:
            ValueError: If the client name is not registered
        """
        if name not in self._clients:
            available = ", ".join(sorted(self._clients)) or "none"
            raise ValueError(
                f"Unknown load balancer client: {name}. Available clients: {available}"
            )

        merged = dict(self._client_configs.get(name, {}))
        merged.update(config or {})

        client = self._clients[name]()
        await client.initialize(merged)
        return client

    def has_client(self, name: str) -> bool:
        return name in self._clients

    def list_clients(self) -> list[str]:
        return list(self._clients)


def build_registry() -> ClientRegistry:
    """
    Create a registry holding the built-in client and every client
    discovered through entry points.
    """
    from clients.memory import InMemoryLoadBalancerClient

    registry = ClientRegistry()
    registry.register(InMemoryLoadBalancerClient)

    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            registry.register(ep.load())
        except Exception as e:
            logger.warning(f"Could not load load balancer client {ep.name}: {e}")

    return registry
