"""
Main entry point for the albsync controller.

Validates configuration, rebuilds state from existing load balancers, then
runs the periodic sync loop alongside the status API.
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

from api import StatusAPI
from clients.listers import manifest_store
from clients.registry import build_registry
from config import Config, get_config
from engine import EngineContext, ReconciliationEngine
from errors import BootstrapError, ConfigurationError, SyncError
from events import EventBus, EventRecorder

logger = logging.getLogger(__name__)


class Application:
    """Wires the engine to its collaborators and drives the sync loop."""

    def __init__(self, config: Config):
        self.config = config
        self.engine: Optional[ReconciliationEngine] = None
        self.event_bus: Optional[EventBus] = None
        self.api: Optional[StatusAPI] = None
        self.running = False
        self._shutdown_event = asyncio.Event()

    async def initialize(self) -> None:
        """Build the engine and rebuild its state from existing load balancers."""
        logger.info("Initializing albsync controller")

        registry = build_registry()
        try:
            client = await registry.create(
                self.config.source.lb_client, self.config.source.client_config
            )
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        self.event_bus = EventBus()
        ctx = EngineContext(
            cluster_name=self.config.cluster.cluster_name,
            listers=manifest_store(self.config.source.declarations_file),
            client=client,
            recorder=EventRecorder(self.event_bus),
            ingress_class=self.config.cluster.ingress_class,
            max_concurrent_reconciles=self.config.controller.max_concurrent_reconciles,
            max_targets_per_call=self.config.controller.max_targets_per_call,
        )
        if ctx.ingress_class:
            logger.info(f"Ingress class set to {ctx.ingress_class}")

        self.engine = ReconciliationEngine(ctx)
        await self.engine.bootstrap()

        self.api = StatusAPI(
            self.engine,
            event_bus=self.event_bus,
            host=self.config.api.host,
            port=self.config.api.port,
        )
        logger.info("All components initialized")

    async def _sync_loop(self) -> None:
        """Run a sync cycle every sync_interval seconds until stopped."""
        interval = self.config.controller.sync_interval
        while self.running:
            try:
                await self.engine.sync(trigger="interval")
            except SyncError as e:
                logger.error(f"Sync failed, keeping previous state: {e}")
            except Exception as e:
                logger.error(f"Error in sync loop: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    async def start(self) -> None:
        """Start the sync loop and the status API."""
        if self.engine is None:
            await self.initialize()

        self.running = True
        self._shutdown_event.clear()
        logger.info("Starting albsync controller")

        tasks = [
            asyncio.create_task(self._sync_loop()),
            asyncio.create_task(self.api.start()),
        ]
        try:
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            logger.info("Application tasks cancelled")

    async def stop(self) -> None:
        """Stop the application gracefully."""
        logger.info("Stopping albsync controller")
        self.running = False
        self._shutdown_event.set()

        if self.api:
            await self.api.stop()

        logger.info("albsync controller stopped")


async def run(config: Config) -> int:
    """Run the controller until a shutdown signal; return the exit status."""
    app = Application(config)

    try:
        await app.initialize()
    except ConfigurationError as e:
        logger.critical(f"Invalid configuration: {e}")
        return 1
    except BootstrapError as e:
        logger.critical(
            f"failed to reconstruct state from existing external resources: {e}"
        )
        return 1

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(app.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await app.start()
    finally:
        await app.stop()
    return 0


def main() -> None:
    """Process entry point."""
    try:
        config = get_config()
    except ConfigurationError as e:
        logging.basicConfig(level=logging.INFO)
        logger.critical(f"Invalid configuration: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=config.api.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sys.exit(asyncio.run(run(config)))


if __name__ == "__main__":
    main()
