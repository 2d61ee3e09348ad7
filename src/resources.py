"""
Managed resources - the records the engine keeps for every ingress it owns.

A ManagedResource pairs the desired state derived from an ingress
declaration with the handle of the load balancer backing it. A
ManagedResourceSet is the ordered collection of those records that the
engine commits at the end of each sync cycle.
"""

import hashlib
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from stringset import hash_strings

TAG_CLUSTER = "kubernetes.io/cluster-name"
TAG_NAMESPACE = "kubernetes.io/namespace"
TAG_INGRESS_NAME = "kubernetes.io/ingress-name"

# Load balancer names are limited to 32 characters
MAX_LOAD_BALANCER_NAME_LENGTH = 32
NAME_HASH_LENGTH = 20


@dataclass(frozen=True)
class ResourceIdentity:
    """Stable key of a managed resource."""

    namespace: str
    name: str

    @classmethod
    def from_key(cls, key: str) -> "ResourceIdentity":
        """Parse a ``namespace/name`` key."""
        namespace, sep, name = key.partition("/")
        if not sep or not namespace or not name:
            raise ValueError(f"Invalid resource key: {key!r}")
        return cls(namespace=namespace, name=name)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


def load_balancer_name(cluster_name: str, identity: ResourceIdentity) -> str:
    """
    Generate the external load balancer name for an identity.

    The cluster name prefix is separated by the only hyphen in the name,
    which is why cluster names may not contain one.
    """
    digest = hashlib.md5(str(identity).encode("utf-8")).hexdigest()
    name = f"{cluster_name}-{digest[:NAME_HASH_LENGTH]}"
    return name[:MAX_LOAD_BALANCER_NAME_LENGTH]


@dataclass(frozen=True)
class Backend:
    """A backend service resolved to the node port it is exposed on."""

    service_key: str
    service_port: Union[int, str]
    node_port: int


@dataclass
class DesiredSpec:
    """Desired load balancer state derived from an ingress declaration."""

    scheme: str = "internet-facing"
    subnets: List[str] = field(default_factory=list)
    security_groups: List[str] = field(default_factory=list)
    backends: List[Backend] = field(default_factory=list)
    instances: List[str] = field(default_factory=list)

    @property
    def node_ports(self) -> List[int]:
        return sorted({b.node_port for b in self.backends})

    def needs_update(self, handle: "LoadBalancerHandle") -> bool:
        """Whether the load balancer attributes differ from this spec."""
        if self.scheme != handle.scheme:
            return True
        if sorted(self.subnets) != sorted(handle.subnets):
            return True
        if hash_strings(self.security_groups) != handle.security_groups_hash:
            return True
        return self.node_ports != sorted(handle.node_ports)


@dataclass(frozen=True)
class LoadBalancerHandle:
    """Reference to the external load balancer backing a resource."""

    arn: str
    name: str
    dns_name: str = ""
    scheme: str = "internet-facing"
    subnets: Tuple[str, ...] = ()
    security_groups: Tuple[str, ...] = ()
    node_ports: Tuple[int, ...] = ()
    instances: Tuple[str, ...] = ()
    tags: Dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def security_groups_hash(self) -> str:
        return hash_strings(self.security_groups)


@dataclass
class ManagedResource:
    """
    One ingress declaration and the load balancer that implements it.

    ``desired`` is None when the declaration no longer exists, ``handle`` is
    None when no load balancer exists. ``tainted`` marks a resource whose
    desired state could not be built this cycle; it is neither applied nor
    deleted.
    """

    identity: ResourceIdentity
    desired: Optional[DesiredSpec] = None
    handle: Optional[LoadBalancerHandle] = None
    tainted: bool = False
    error: Optional[str] = None
    status: str = "pending"
    last_reconciled: Optional[datetime] = None

    @property
    def namespace(self) -> str:
        return self.identity.namespace

    @property
    def name(self) -> str:
        return self.identity.name

    def strip_desired_state(self) -> "ManagedResource":
        """Return a copy marked for deletion; the original is left untouched."""
        return replace(
            self, desired=None, tainted=False, error=None, status="deleting"
        )

    def hostnames(self) -> List[str]:
        if self.handle is None or not self.handle.dns_name:
            return []
        return [self.handle.dns_name]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serialisable view used for status reporting."""
        return {
            "namespace": self.namespace,
            "name": self.name,
            "tainted": self.tainted,
            "status": self.status,
            "error": self.error,
            "desired": asdict(self.desired) if self.desired else None,
            "load_balancer": asdict(self.handle) if self.handle else None,
            "hostnames": self.hostnames(),
            "last_reconciled": (
                self.last_reconciled.isoformat() if self.last_reconciled else None
            ),
        }


class ManagedResourceSet:
    """
    Ordered collection of managed resources with lookup by identity.

    Insertion order is preserved so status output is stable between cycles.
    """

    def __init__(self, resources: Optional[List[ManagedResource]] = None):
        self._resources: List[ManagedResource] = list(resources or [])

    def __iter__(self) -> Iterator[ManagedResource]:
        return iter(self._resources)

    def __len__(self) -> int:
        return len(self._resources)

    def __getitem__(self, index: int) -> ManagedResource:
        return self._resources[index]

    def append(self, resource: ManagedResource) -> None:
        self._resources.append(resource)

    def extend(self, resources: List[ManagedResource]) -> None:
        self._resources.extend(resources)

    def find(self, identity: ResourceIdentity) -> int:
        """Return the index of the resource with this identity, or -1."""
        for i, resource in enumerate(self._resources):
            if resource.identity == identity:
                return i
        return -1

    def get(self, identity: ResourceIdentity) -> Optional[ManagedResource]:
        i = self.find(identity)
        return self._resources[i] if i >= 0 else None

    def identities(self) -> List[ResourceIdentity]:
        return [r.identity for r in self._resources]

    def snapshot(self) -> List[Dict[str, Any]]:
        """Serialise every resource for read-only consumers."""
        return [r.to_dict() for r in self._resources]
