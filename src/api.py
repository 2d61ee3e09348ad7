"""
Status API - HTTP diagnostics for the reconciliation engine.

Exposes the committed resource set, load balancer hostnames, a manual sync
trigger and a Server-Sent Events stream of resource events. The API only
reads committed state; it never sees a set under construction.
"""

import logging
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from engine import ReconciliationEngine
from errors import ResourceNotFoundError, SyncError
from events import EventBus, ResourceEvent
from resources import ResourceIdentity

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Response model for the health endpoint."""

    status: str
    service: str
    cluster_name: str
    stats: Dict[str, Any]


class StateResponse(BaseModel):
    """Response model for the committed resource set."""

    cluster_name: str
    resources: List[Dict[str, Any]] = Field(default_factory=list)


class HostnamesResponse(BaseModel):
    """Response model for a resource's load balancer hostnames."""

    namespace: str
    name: str
    hostnames: List[str]


class SyncResponse(BaseModel):
    """Response model for a manually triggered sync."""

    status: str
    managed_resources: int


class StatusAPI:
    """FastAPI application serving engine diagnostics."""

    def __init__(
        self,
        engine: ReconciliationEngine,
        event_bus: Optional[EventBus] = None,
        host: str = "0.0.0.0",
        port: int = 8080,
    ):
        self.engine = engine
        self.event_bus = event_bus
        self.host = host
        self.port = port
        self.server: Optional[uvicorn.Server] = None

        self.app = FastAPI(
            title="albsync",
            description="Load balancer reconciliation engine diagnostics",
            version="1.0.0",
        )
        self._setup_routes()

    def _setup_routes(self) -> None:
        """
        Set up the FastAPI routes.

        - Health check: GET /
        - Committed state: GET /api/v1/state
        - Hostnames: GET /api/v1/resources/{namespace}/{name}/hostnames
        - Manual sync: POST /api/v1/sync
        - Event stream: GET /api/v1/events
        """
        engine = self.engine

        @self.app.get("/", response_model=HealthResponse)
        async def health_check():
            """Health check endpoint."""
            return HealthResponse(
                status="ok",
                service="albsync",
                cluster_name=engine.ctx.cluster_name,
                stats=engine.stats.to_dict(),
            )

        @self.app.get("/api/v1/state", response_model=StateResponse)
        async def get_state():
            """Dump the committed resource set."""
            return StateResponse(
                cluster_name=engine.ctx.cluster_name, resources=engine.status()
            )

        @self.app.get(
            "/api/v1/resources/{namespace}/{name}/hostnames",
            response_model=HostnamesResponse,
        )
        async def get_hostnames(namespace: str, name: str):
            """Get the hostnames assigned to an ingress's load balancer."""
            identity = ResourceIdentity(namespace=namespace, name=name)
            try:
                hostnames = engine.resolve_hostnames(identity)
            except ResourceNotFoundError as e:
                raise HTTPException(status_code=404, detail=e.message)
            return HostnamesResponse(
                namespace=namespace, name=name, hostnames=hostnames
            )

        @self.app.post("/api/v1/sync", response_model=SyncResponse)
        async def trigger_sync():
            """Run a sync cycle now and wait for it to finish."""
            try:
                await engine.sync(trigger="api")
            except SyncError as e:
                logger.error(f"Manual sync failed: {e}")
                raise HTTPException(status_code=503, detail=e.message)
            return SyncResponse(
                status="completed", managed_resources=len(engine.resources)
            )

        @self.app.get("/api/v1/events")
        async def stream_events(
            namespace: Optional[str] = None, name: Optional[str] = None
        ):
            """Stream resource events as Server-Sent Events."""
            if self.event_bus is None:
                raise HTTPException(status_code=503, detail="Events not available")

            def filter_fn(event: ResourceEvent) -> bool:
                if namespace and event.namespace != namespace:
                    return False
                if name and event.name != name:
                    return False
                return True

            subscriber_id, subscription = self.event_bus.subscribe(filter_fn)

            async def event_generator():
                try:
                    async for event in subscription:
                        yield event.to_sse()
                finally:
                    self.event_bus.unsubscribe(subscriber_id)

            return StreamingResponse(
                event_generator(),
                media_type="text/event-stream",
                headers={
                    "Cache-Control": "no-cache",
                    "X-Accel-Buffering": "no",
                },
            )

    async def start(self) -> None:
        """Start the HTTP server."""
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="info",
        )
        self.server = uvicorn.Server(config)

        logger.info(f"Starting status API on {self.host}:{self.port}")
        await self.server.serve()

    async def stop(self) -> None:
        """Stop the HTTP server gracefully."""
        logger.info("Stopping status API")
        if self.server:
            self.server.should_exit = True
