"""
Collaborator Interfaces - Abstract boundaries the engine depends on.

Object listers expose the cluster's cached declarations (ingresses,
services, nodes). Load balancer clients wrap the cloud API that creates,
updates and deletes the external load balancers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from resources import LoadBalancerHandle


class ObjectLister(ABC):
    """Read-only access to a cached collection of cluster objects."""

    @abstractmethod
    def list(self) -> List[Dict[str, Any]]:
        """Return every object in the collection."""
        pass

    @abstractmethod
    def get_by_key(self, key: str) -> Tuple[Optional[Dict[str, Any]], bool]:
        """
        Look up an object by ``namespace/name`` (or ``name`` for
        cluster-scoped objects).

        Returns:
            Tuple of (object, exists)
        """
        pass


@dataclass
class StoreLister:
    """The listers the engine reads from on every sync cycle."""

    ingresses: ObjectLister
    services: ObjectLister
    nodes: ObjectLister


class LoadBalancerClient(ABC):
    """
    Abstract base class for load balancer API clients.

    Implementations are responsible for their own request timeouts. A
    cancelled sync still waits for in-flight calls to return before it
    commits, so calls are never abandoned by the engine.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this client (e.g., 'memory')."""
        pass

    @abstractmethod
    async def initialize(self, config: Dict[str, Any]) -> None:
        """
        Initialize the client with configuration.

        Args:
            config: Client-specific configuration dictionary
        """
        pass

    @abstractmethod
    async def create_load_balancer(
        self,
        name: str,
        scheme: str,
        subnets: List[str],
        security_groups: List[str],
        node_ports: List[int],
        tags: Dict[str, str],
    ) -> LoadBalancerHandle:
        """
        Create a load balancer and the listeners/target groups behind it.

        Returns:
            Handle describing the created load balancer (no targets yet)
        """
        pass

    @abstractmethod
    async def update_load_balancer(
        self,
        handle: LoadBalancerHandle,
        scheme: str,
        subnets: List[str],
        security_groups: List[str],
        node_ports: List[int],
    ) -> LoadBalancerHandle:
        """
        Modify an existing load balancer in place.

        Returns:
            Updated handle
        """
        pass

    @abstractmethod
    async def delete_load_balancer(self, handle: LoadBalancerHandle) -> None:
        """Delete a load balancer and everything attached to it."""
        pass

    @abstractmethod
    async def register_targets(
        self, handle: LoadBalancerHandle, instances: List[str]
    ) -> None:
        """Register instances as targets. Callers respect the per-call limit."""
        pass

    @abstractmethod
    async def deregister_targets(
        self, handle: LoadBalancerHandle, instances: List[str]
    ) -> None:
        """Deregister instances. Callers respect the per-call limit."""
        pass

    @abstractmethod
    async def describe_targets(self, arn: str) -> List[str]:
        """Return the instance ids registered behind a load balancer."""
        pass

    @abstractmethod
    async def list_cluster_load_balancers(
        self, cluster_name: str
    ) -> List[Dict[str, Any]]:
        """
        List load balancers tagged as owned by a cluster.

        Each entry is the raw API description, including a ``Tags`` list of
        ``{"Key": ..., "Value": ...}`` pairs.
        """
        pass

    @classmethod
    def load_config_from_env(cls) -> Dict[str, Any]:
        """
        Load client-specific configuration from environment variables.

        Returns:
            Dictionary of configuration values for this client.
        """
        return {}
