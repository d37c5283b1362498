"""Main agent implementation."""

import asyncio
import logging
import os
import signal
from pathlib import Path
from typing import Optional

from watchfiles import awatch

from dockyard.agent.config import ConfigManager
from dockyard.agent.engine import StateEngine
from dockyard.core.supervisor import Supervisor
from dockyard.engine.base import EngineClient
from dockyard.engine.docker_client import DockerEngineClient
from dockyard.providers.image import ImageProvider
from dockyard.state.store import StateStore
from dockyard.utils.logging import setup_logging


logger = logging.getLogger(__name__)


def default_config_dir() -> Path:
    """Config directory from ``DOCKYARD_CONFIG_DIR`` or ``./configs``."""
    return Path(os.environ.get("DOCKYARD_CONFIG_DIR", "./configs"))


def create_state_engine(
    config_manager: ConfigManager,
    engine: Optional[EngineClient] = None,
) -> StateEngine:
    """Wire the engine client, provider and store from loaded configuration."""
    config = config_manager.config
    if engine is None:
        engine = DockerEngineClient(
            base_url=config.engine.base_url,
            timeout=config.engine.api_timeout,
            docker_binary=config.engine.docker_binary,
        )
    supervisor = Supervisor(config.timeouts, cancel_build=engine.cancel_build)
    return StateEngine(
        config_manager=config_manager,
        provider=ImageProvider(engine, supervisor),
        store=StateStore(Path(config.agent.state_dir)),
    )


class DockyardAgent:
    """Reconciles periodically and whenever configuration changes."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize the agent."""
        self.config_dir = config_dir or default_config_dir()
        self.config_manager: Optional[ConfigManager] = None
        self.state_engine: Optional[StateEngine] = None
        self.engine: Optional[EngineClient] = None
        self.shutdown_event = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    async def initialize(self):
        """Initialize agent components."""
        self.config_manager = ConfigManager(self.config_dir)
        await self.config_manager.load()

        config = self.config_manager.config
        setup_logging(config.agent.log_level)

        self.state_engine = create_state_engine(self.config_manager)
        self.engine = self.state_engine.provider.engine
        logger.info("Agent initialized successfully")

    async def run(self):
        """Run the agent main loop."""
        await self.initialize()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.shutdown)

        try:
            self._tasks.append(asyncio.create_task(self._reconciliation_loop()))
            self._tasks.append(asyncio.create_task(self._config_watch_loop()))

            logger.info("Agent started, waiting for shutdown signal")
            await self.shutdown_event.wait()
        finally:
            await self._cleanup()

    async def _reconciliation_loop(self):
        """Run periodic reconciliation."""
        interval = self.config_manager.config.agent.reconciliation_interval

        while not self.shutdown_event.is_set():
            try:
                report = await self.state_engine.reconcile()
                for resource, error in report.failed.items():
                    logger.warning(f"{resource}: {error.kind}: {error.message}")
            except Exception as e:
                logger.error(f"Reconciliation error: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

    async def _config_watch_loop(self):
        """Watch for configuration changes."""
        logger.info(f"Starting config watcher on {self.config_manager.config_dir}")
        try:
            async for _ in awatch(self.config_manager.config_dir, stop_event=self.shutdown_event):
                if not await self.config_manager.watch_for_changes():
                    continue
                logger.info("Configuration changed, reloading")
                try:
                    await self.config_manager.load()
                    self._schedule_reconcile()
                except Exception as e:
                    logger.error(f"Failed to reload configuration: {e}")
        except Exception as e:
            if not self.shutdown_event.is_set():
                logger.error(f"Config watch error: {e}", exc_info=True)

    def _schedule_reconcile(self):
        """Reconcile in the background; the task is dropped once finished."""
        task = asyncio.create_task(self.state_engine.reconcile())
        self._tasks.append(task)
        task.add_done_callback(self._reconcile_done)

    def _reconcile_done(self, task: asyncio.Task):
        if task in self._tasks:
            self._tasks.remove(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Reconciliation after config change failed: {error}")
            return
        for resource, failure in task.result().failed.items():
            logger.warning(f"{resource}: {failure.kind}: {failure.message}")

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        self.shutdown_event.set()

    async def _cleanup(self):
        """Clean up resources."""
        logger.info("Cleaning up agent resources")

        tasks = list(self._tasks)
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self.engine:
            self.engine.close()

        logger.info("Agent cleanup completed")


async def run_agent(config_dir: Optional[Path] = None):
    """Run the agent."""
    agent = DockyardAgent(config_dir=config_dir)
    await agent.run()
