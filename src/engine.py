"""
Reconciliation Engine - Sync cycle for load balancer backed ingresses.

Every sync rebuilds the desired resource list from the cluster listers,
diffs it against the set committed by the previous cycle, reconciles every
resource concurrently and commits the new set in a single assignment.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bootstrap import BootstrapAssembler
from clients.base import LoadBalancerClient, StoreLister
from config import DEFAULT_INGRESS_CLASS, validate_cluster_name
from declarations import build_desired_spec, ingress_identity, is_class_valid
from errors import (
    DeclarationError,
    ResourceNotFoundError,
    ServiceResolutionError,
    SyncError,
)
from events import EventRecorder, EventType
from resources import (
    TAG_CLUSTER,
    TAG_INGRESS_NAME,
    TAG_NAMESPACE,
    ManagedResource,
    ManagedResourceSet,
    ResourceIdentity,
    load_balancer_name,
)
from services import list_node_instances, resolve_node_port
from stringset import groups_for_limit

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncStats:
    """Counters describing the engine's sync history."""

    sync_count: int = 0
    failed_syncs: int = 0
    reconcile_errors: int = 0
    managed_resources: int = 0
    last_sync_time: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sync_count": self.sync_count,
            "failed_syncs": self.failed_syncs,
            "reconcile_errors": self.reconcile_errors,
            "managed_resources": self.managed_resources,
            "last_sync_time": self.last_sync_time,
        }


@dataclass
class EngineContext:
    """
    Everything the engine needs, passed in explicitly.

    The cluster name is validated on construction; an invalid name raises
    ConfigurationError.
    """

    cluster_name: str
    listers: StoreLister
    client: LoadBalancerClient
    recorder: EventRecorder = field(default_factory=EventRecorder)
    ingress_class: str = DEFAULT_INGRESS_CLASS
    max_concurrent_reconciles: int = 10
    max_targets_per_call: int = 20
    stats: SyncStats = field(default_factory=SyncStats)

    def __post_init__(self):
        validate_cluster_name(self.cluster_name)
        if self.max_concurrent_reconciles <= 0:
            raise ValueError("max_concurrent_reconciles must be positive")


class ReconciliationEngine:
    """
    Keeps the cluster's load balancers in sync with its ingresses.

    The committed resource set is only ever replaced, never mutated, so
    ``status()`` readers always see the result of a finished cycle. Sync
    cycles are serialised by a lock.
    """

    def __init__(
        self,
        ctx: EngineContext,
        resources: Optional[ManagedResourceSet] = None,
    ):
        self.ctx = ctx
        self.client = ctx.client
        self.recorder = ctx.recorder
        self.stats = ctx.stats
        self.semaphore = asyncio.Semaphore(ctx.max_concurrent_reconciles)
        self._resources = resources if resources is not None else ManagedResourceSet()
        self._sync_lock = asyncio.Lock()

    @property
    def resources(self) -> ManagedResourceSet:
        """The committed resource set. Callers must not mutate it."""
        return self._resources

    async def bootstrap(self) -> None:
        """
        Populate the resource set from existing load balancers.

        Does nothing if the engine already holds state.

        Raises:
            BootstrapError: If any existing load balancer cannot be assembled
        """
        async with self._sync_lock:
            if len(self._resources) > 0:
                logger.info("Resource set already populated, skipping bootstrap")
                return

            assembler = BootstrapAssembler(
                self.client, max_concurrency=self.ctx.max_concurrent_reconciles
            )
            self._resources = await assembler.assemble(self.ctx.cluster_name)
            self.stats.managed_resources = len(self._resources)

    async def sync(self, trigger: Optional[str] = None) -> None:
        """
        Run one sync cycle.

        A new resource list is built from the listers. Resources from the
        previous cycle that disappeared but still own a load balancer are
        appended with their desired state stripped so they get deleted.
        Every resource is then reconciled and the new list committed.

        Individual reconcile failures are recorded on the resource and never
        raised.

        Cancelling the caller does not abandon in-flight reconciles: the
        cycle still commits, then CancelledError propagates.

        Args:
            trigger: Optional description of what caused the sync, for logs

        Raises:
            SyncError: If the declarations cannot be listed. The previously
                committed set stays in place.
        """
        async with self._sync_lock:
            self.stats.sync_count += 1
            logger.debug(f"Sync triggered ({trigger or 'unspecified'})")

            previous = self._resources
            try:
                resources = self._build_desired(previous)
            except SyncError:
                self.stats.failed_syncs += 1
                raise

            deletable = self._resources_to_delete(previous, resources)
            if deletable:
                logger.info(f"{len(deletable)} ingresses scheduled for deletion")
                resources.extend(deletable)

            # Shielded from caller cancellation; the lock is held until the
            # reconciled set is committed.
            commit = asyncio.ensure_future(self._reconcile_and_commit(resources))
            try:
                await asyncio.shield(commit)
            except asyncio.CancelledError:
                logger.warning("Sync cancelled, waiting for in-flight reconciles")
                await asyncio.wait({commit})
                raise

    async def _reconcile_and_commit(self, resources: ManagedResourceSet) -> None:
        await asyncio.gather(
            *[self._reconcile_resource(r) for r in resources],
            return_exceptions=True,
        )

        # Resources whose load balancer is gone and that have no
        # declaration left are forgotten.
        committed = ManagedResourceSet(
            [
                r
                for r in resources
                if r.tainted or r.desired is not None or r.handle is not None
            ]
        )
        self._resources = committed

        self.stats.managed_resources = len(committed)
        self.stats.last_sync_time = _now().isoformat()
        logger.info(f"Sync complete, managing {len(committed)} ingresses")

    def _build_desired(self, previous: ManagedResourceSet) -> ManagedResourceSet:
        """
        Build a managed resource for every ingress addressed to us.

        Raises:
            SyncError: If the ingresses or nodes cannot be listed
        """
        try:
            ingresses = self.ctx.listers.ingresses.list()
        except Exception as e:
            raise SyncError(f"Unable to list ingresses: {e}") from e

        try:
            instances = list_node_instances(self.ctx.listers.nodes)
        except Exception as e:
            raise SyncError(f"Unable to list nodes: {e}") from e

        resources = ManagedResourceSet()
        for ingress in ingresses:
            try:
                if not is_class_valid(ingress, self.ctx.ingress_class):
                    continue
                identity = ingress_identity(ingress)
            except DeclarationError as e:
                logger.warning(f"Skipping ingress without identity: {e}")
                continue
            except Exception as e:
                logger.warning(f"Skipping malformed ingress: {e}", exc_info=True)
                continue

            if resources.find(identity) >= 0:
                logger.warning(f"Duplicate ingress {identity}, ignoring later copy")
                continue

            resources.append(
                self._resource_from_ingress(ingress, identity, previous, instances)
            )
        return resources

    def _resource_from_ingress(
        self,
        ingress: Dict[str, Any],
        identity: ResourceIdentity,
        previous: ManagedResourceSet,
        instances: List[str],
    ) -> ManagedResource:
        """
        Build the managed resource for one ingress.

        The previous cycle's handle is carried over so reconciliation is
        incremental. If the desired state cannot be built the resource is
        tainted and keeps the previous desired state and handle.
        """
        existing = previous.get(identity)
        handle = existing.handle if existing else None

        try:
            desired = build_desired_spec(ingress, self.resolve_node_port, instances)
        except (DeclarationError, ServiceResolutionError) as e:
            return self._tainted(identity, existing, str(e))
        except Exception as e:
            logger.error(f"Unexpected error building {identity}: {e}", exc_info=True)
            return self._tainted(identity, existing, str(e))

        return ManagedResource(
            identity=identity,
            desired=desired,
            handle=handle,
            status=existing.status if existing else "pending",
            last_reconciled=existing.last_reconciled if existing else None,
        )

    def _tainted(
        self,
        identity: ResourceIdentity,
        existing: Optional[ManagedResource],
        error: str,
    ) -> ManagedResource:
        logger.error(f"Error building desired state for {identity}: {error}")
        self.recorder.eventf(identity, EventType.WARNING, "ERROR", error)
        return ManagedResource(
            identity=identity,
            desired=existing.desired if existing else None,
            handle=existing.handle if existing else None,
            tainted=True,
            error=error,
            status="tainted",
            last_reconciled=existing.last_reconciled if existing else None,
        )

    def _resources_to_delete(
        self, previous: ManagedResourceSet, resources: ManagedResourceSet
    ) -> List[ManagedResource]:
        """
        Return previous resources that vanished but still own a load balancer.

        Tainted resources are never deleted. Resources without a handle were
        already deleted and are simply dropped.
        """
        deletable = []
        for resource in previous:
            if resource.tainted:
                continue
            if resources.find(resource.identity) >= 0:
                continue
            if resource.handle is not None:
                deletable.append(resource.strip_desired_state())
        return deletable

    async def _reconcile_resource(self, resource: ManagedResource) -> None:
        """
        Reconcile one resource against the load balancer API.

        Errors are recorded on the resource; they never propagate.
        """
        if resource.tainted:
            logger.debug(f"Skipping tainted ingress {resource.identity}")
            return

        async with self.semaphore:
            try:
                await self._apply(resource)
                resource.error = None
            except Exception as e:
                logger.error(
                    f"Error reconciling {resource.identity}: {e}", exc_info=True
                )
                resource.error = str(e)
                resource.status = "failed"
                self.stats.reconcile_errors += 1
                self.recorder.eventf(
                    resource.identity, EventType.WARNING, "ERROR", str(e)
                )
            finally:
                resource.last_reconciled = _now()

    async def _apply(self, resource: ManagedResource) -> None:
        if resource.desired is None:
            if resource.handle is not None:
                await self._delete(resource)
            return

        if resource.handle is None:
            await self._create(resource)
        else:
            await self._update(resource)

    async def _create(self, resource: ManagedResource) -> None:
        desired = resource.desired
        identity = resource.identity
        name = load_balancer_name(self.ctx.cluster_name, identity)
        tags = {
            TAG_CLUSTER: self.ctx.cluster_name,
            TAG_NAMESPACE: identity.namespace,
            TAG_INGRESS_NAME: identity.name,
        }

        logger.info(f"Creating load balancer {name} for {identity}")
        handle = await self.client.create_load_balancer(
            name=name,
            scheme=desired.scheme,
            subnets=desired.subnets,
            security_groups=desired.security_groups,
            node_ports=desired.node_ports,
            tags=tags,
        )
        # Record the handle before registering targets so a failure below
        # does not leak the load balancer.
        resource.handle = handle
        await self._sync_targets(resource, desired.instances)
        resource.status = "created"
        self.recorder.eventf(
            identity, EventType.NORMAL, "CREATE", f"{handle.name} created"
        )

    async def _update(self, resource: ManagedResource) -> None:
        desired = resource.desired
        handle = resource.handle
        changed = False

        if desired.needs_update(handle):
            logger.info(
                f"Modifying load balancer {handle.name} for {resource.identity}"
            )
            updated = await self.client.update_load_balancer(
                handle,
                scheme=desired.scheme,
                subnets=desired.subnets,
                security_groups=desired.security_groups,
                node_ports=desired.node_ports,
            )
            handle = replace(updated, instances=handle.instances)
            resource.handle = handle
            changed = True

        targets_changed = await self._sync_targets(resource, desired.instances)

        if changed or targets_changed:
            resource.status = "modified"
            self.recorder.eventf(
                resource.identity,
                EventType.NORMAL,
                "MODIFY",
                f"{handle.name} modified",
            )
        else:
            resource.status = "ready"

    async def _delete(self, resource: ManagedResource) -> None:
        handle = resource.handle
        logger.info(f"Deleting load balancer {handle.name} for {resource.identity}")
        await self.client.delete_load_balancer(handle)
        resource.handle = None
        resource.status = "deleted"
        self.recorder.eventf(
            resource.identity, EventType.NORMAL, "DELETE", f"{handle.name} deleted"
        )

    async def _sync_targets(
        self, resource: ManagedResource, instances: List[str]
    ) -> bool:
        """
        Register and deregister instances so the targets match ``instances``.

        Calls are batched to respect the API's per-call target limit. The
        resource's handle is updated after every successful call.

        Returns:
            Whether any target changed
        """
        current = set(resource.handle.instances)
        wanted = set(instances)
        to_add = sorted(wanted - current)
        to_remove = sorted(current - wanted)

        if not to_add and not to_remove:
            return False

        for group in groups_for_limit(to_add, self.ctx.max_targets_per_call):
            await self.client.register_targets(resource.handle, group)
            current.update(group)
            resource.handle = replace(resource.handle, instances=tuple(sorted(current)))

        for group in groups_for_limit(to_remove, self.ctx.max_targets_per_call):
            await self.client.deregister_targets(resource.handle, group)
            current.difference_update(group)
            resource.handle = replace(resource.handle, instances=tuple(sorted(current)))

        return True

    def status(self) -> List[Dict[str, Any]]:
        """JSON-serialisable snapshot of the committed resource set."""
        return self._resources.snapshot()

    def resolve_hostnames(self, identity: ResourceIdentity) -> List[str]:
        """
        Return the hostnames assigned to an ingress's load balancer.

        Raises:
            ResourceNotFoundError: If the identity is not being managed
        """
        resource = self._resources.get(identity)
        if resource is None:
            raise ResourceNotFoundError(f"Unable to find ingress {identity}")
        return resource.hostnames()

    def resolve_node_port(self, service_key: str, target_port: Union[int, str]) -> int:
        """Resolve a backend service port to its node port."""
        return resolve_node_port(self.ctx.listers.services, service_key, target_port)
