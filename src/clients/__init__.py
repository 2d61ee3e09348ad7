"""
Collaborators of the reconciliation engine.

Object listers feed declarations in; load balancer clients apply changes
to the cloud API.
"""

from clients.base import LoadBalancerClient, ObjectLister, StoreLister
from clients.listers import InMemoryLister, ManifestLister, manifest_store
from clients.memory import InMemoryLoadBalancerClient
from clients.registry import ClientRegistry, build_registry

__all__ = [
    "LoadBalancerClient",
    "ObjectLister",
    "StoreLister",
    "InMemoryLister",
    "ManifestLister",
    "manifest_store",
    "InMemoryLoadBalancerClient",
    "ClientRegistry",
    "build_registry",
]
