"""
Bootstrap - Rebuild the managed resource set from existing load balancers.

Runs once at startup, before the first sync. Every load balancer tagged
with the cluster name becomes a managed resource with a handle and no
desired state; the first sync then pairs them with their ingresses or
deletes them.
"""

import asyncio
import logging
from typing import Any, Dict, List

from clients.base import LoadBalancerClient
from errors import BootstrapError
from resources import (
    TAG_INGRESS_NAME,
    TAG_NAMESPACE,
    LoadBalancerHandle,
    ManagedResource,
    ManagedResourceSet,
    ResourceIdentity,
)

logger = logging.getLogger(__name__)


def _tags_to_dict(tags: List[Dict[str, str]]) -> Dict[str, str]:
    return {tag["Key"]: tag["Value"] for tag in tags or []}


def resource_from_load_balancer(
    description: Dict[str, Any], instances: List[str]
) -> ManagedResource:
    """
    Build a managed resource from a load balancer API description.

    Raises:
        BootstrapError: If the description lacks the identity tags
    """
    tags = _tags_to_dict(description.get("Tags", []))
    lb_name = description.get("LoadBalancerName", "<unknown>")

    namespace = tags.get(TAG_NAMESPACE)
    name = tags.get(TAG_INGRESS_NAME)
    if not namespace or not name:
        raise BootstrapError(
            f"Load balancer {lb_name} is missing the "
            f"{TAG_NAMESPACE} or {TAG_INGRESS_NAME} tag"
        )

    try:
        handle = LoadBalancerHandle(
            arn=description["LoadBalancerArn"],
            name=description["LoadBalancerName"],
            dns_name=description.get("DNSName", ""),
            scheme=description.get("Scheme", "internet-facing"),
            subnets=tuple(description.get("Subnets", [])),
            security_groups=tuple(description.get("SecurityGroups", [])),
            node_ports=tuple(description.get("NodePorts", [])),
            instances=tuple(sorted(instances)),
            tags=tags,
        )
    except KeyError as e:
        raise BootstrapError(f"Load balancer {lb_name} description lacks {e}")

    return ManagedResource(
        identity=ResourceIdentity(namespace=namespace, name=name),
        handle=handle,
        status="discovered",
    )


class BootstrapAssembler:
    """Assembles the initial resource set from the load balancer API."""

    def __init__(self, client: LoadBalancerClient, max_concurrency: int = 10):
        self.client = client
        self.semaphore = asyncio.Semaphore(max_concurrency)

    async def _assemble_one(self, description: Dict[str, Any]) -> ManagedResource:
        async with self.semaphore:
            instances = await self.client.describe_targets(
                description["LoadBalancerArn"]
            )
            return resource_from_load_balancer(description, instances)

    async def assemble(self, cluster_name: str) -> ManagedResourceSet:
        """
        List the cluster's load balancers and rebuild a resource for each.

        All per-load-balancer tasks run to completion before the outcome is
        decided; a single failure fails the whole assembly.

        Raises:
            BootstrapError: If listing fails or any load balancer cannot be
                turned into a managed resource, or two load balancers carry
                the same ingress identity
        """
        logger.info("Building up list of existing ingresses")

        try:
            descriptions = await self.client.list_cluster_load_balancers(cluster_name)
        except Exception as e:
            raise BootstrapError(f"Unable to list load balancers: {e}") from e

        results = await asyncio.gather(
            *[self._assemble_one(d) for d in descriptions], return_exceptions=True
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        for failure in failures:
            logger.error(f"Failed to assemble resource: {failure}")
        if failures:
            raise BootstrapError(
                f"{len(failures)} of {len(descriptions)} load balancers could "
                f"not be assembled: {failures[0]}"
            )

        resources = ManagedResourceSet()
        for resource in results:
            existing = resources.get(resource.identity)
            if existing is not None:
                raise BootstrapError(
                    f"Load balancers {existing.handle.name} and "
                    f"{resource.handle.name} are both tagged for ingress "
                    f"{resource.identity}"
                )
            resources.append(resource)

        logger.info(
            f"Assembled {len(resources)} ingresses from existing load balancers"
        )
        return resources
