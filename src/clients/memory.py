"""
In-memory load balancer client.

Keeps load balancers in a dict instead of calling a cloud API. Used for
local runs against a YAML manifest and as the fake in tests. Every call is
appended to ``calls`` so tests can assert on the exact API traffic.
"""

import asyncio
import logging
import os
import uuid
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from clients.base import LoadBalancerClient
from resources import TAG_CLUSTER, LoadBalancerHandle

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
DEFAULT_MAX_TARGETS_PER_CALL = 20


class TooManyTargetsError(Exception):
    """Raised when a single call exceeds the per-call target limit."""


class InMemoryLoadBalancerClient(LoadBalancerClient):
    """Load balancer client backed by process memory."""

    def __init__(self):
        self.region = DEFAULT_REGION
        self.max_targets_per_call = DEFAULT_MAX_TARGETS_PER_CALL
        self.latency = 0.0
        self.load_balancers: Dict[str, LoadBalancerHandle] = {}
        self.targets: Dict[str, List[str]] = {}
        self.calls: List[Tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "memory"

    @classmethod
    def load_config_from_env(cls) -> Dict[str, Any]:
        """Load in-memory client configuration from environment variables."""
        return {
            "region": os.getenv("AWS_REGION", DEFAULT_REGION),
            "max_targets_per_call": int(
                os.getenv("MAX_TARGETS_PER_CALL", str(DEFAULT_MAX_TARGETS_PER_CALL))
            ),
        }

    async def initialize(self, config: Dict[str, Any]) -> None:
        self.region = config.get("region", DEFAULT_REGION)
        self.max_targets_per_call = config.get(
            "max_targets_per_call", DEFAULT_MAX_TARGETS_PER_CALL
        )
        self.latency = float(config.get("latency", 0.0))
        logger.info(f"In-memory load balancer client initialized ({self.region})")

    async def _call(self, operation: str, target: str) -> None:
        self.calls.append((operation, target))
        if self.latency:
            await asyncio.sleep(self.latency)

    def _check_limit(self, instances: List[str]) -> None:
        if len(instances) > self.max_targets_per_call:
            raise TooManyTargetsError(
                f"{len(instances)} targets exceeds the limit of "
                f"{self.max_targets_per_call} per call"
            )

    def add_load_balancer(
        self, handle: LoadBalancerHandle, instances: Optional[List[str]] = None
    ) -> None:
        """Seed an existing load balancer (e.g. for bootstrap tests)."""
        self.load_balancers[handle.arn] = handle
        self.targets[handle.arn] = list(instances or [])

    async def create_load_balancer(
        self,
        name: str,
        scheme: str,
        subnets: List[str],
        security_groups: List[str],
        node_ports: List[int],
        tags: Dict[str, str],
    ) -> LoadBalancerHandle:
        await self._call("create", name)
        arn = (
            f"arn:aws:elasticloadbalancing:{self.region}:000000000000:"
            f"loadbalancer/app/{name}/{uuid.uuid4().hex[:16]}"
        )
        handle = LoadBalancerHandle(
            arn=arn,
            name=name,
            dns_name=f"{name}.{self.region}.elb.amazonaws.com",
            scheme=scheme,
            subnets=tuple(subnets),
            security_groups=tuple(security_groups),
            node_ports=tuple(node_ports),
            tags=dict(tags),
        )
        self.add_load_balancer(handle)
        return handle

    async def update_load_balancer(
        self,
        handle: LoadBalancerHandle,
        scheme: str,
        subnets: List[str],
        security_groups: List[str],
        node_ports: List[int],
    ) -> LoadBalancerHandle:
        await self._call("update", handle.name)
        if handle.arn not in self.load_balancers:
            raise KeyError(f"Load balancer {handle.arn} not found")
        updated = replace(
            self.load_balancers[handle.arn],
            scheme=scheme,
            subnets=tuple(subnets),
            security_groups=tuple(security_groups),
            node_ports=tuple(node_ports),
        )
        self.load_balancers[handle.arn] = updated
        return updated

    async def delete_load_balancer(self, handle: LoadBalancerHandle) -> None:
        await self._call("delete", handle.name)
        self.load_balancers.pop(handle.arn, None)
        self.targets.pop(handle.arn, None)

    async def register_targets(
        self, handle: LoadBalancerHandle, instances: List[str]
    ) -> None:
        await self._call("register_targets", handle.name)
        self._check_limit(instances)
        registered = self.targets.setdefault(handle.arn, [])
        for instance in instances:
            if instance not in registered:
                registered.append(instance)

    async def deregister_targets(
        self, handle: LoadBalancerHandle, instances: List[str]
    ) -> None:
        await self._call("deregister_targets", handle.name)
        self._check_limit(instances)
        self.targets[handle.arn] = [
            i for i in self.targets.get(handle.arn, []) if i not in instances
        ]

    async def describe_targets(self, arn: str) -> List[str]:
        await self._call("describe_targets", arn)
        if arn not in self.targets:
            raise KeyError(f"Load balancer {arn} not found")
        return sorted(self.targets[arn])

    async def list_cluster_load_balancers(
        self, cluster_name: str
    ) -> List[Dict[str, Any]]:
        await self._call("list", cluster_name)
        result = []
        for handle in self.load_balancers.values():
            if handle.tags.get(TAG_CLUSTER) != cluster_name:
                continue
            result.append(
                {
                    "LoadBalancerArn": handle.arn,
                    "LoadBalancerName": handle.name,
                    "DNSName": handle.dns_name,
                    "Scheme": handle.scheme,
                    "Subnets": list(handle.subnets),
                    "SecurityGroups": list(handle.security_groups),
                    "NodePorts": list(handle.node_ports),
                    "Tags": [{"Key": k, "Value": v} for k, v in handle.tags.items()],
                }
            )
        return result
