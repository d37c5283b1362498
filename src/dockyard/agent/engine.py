"""State reconciliation engine."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from dockyard.agent.config import ConfigManager
from dockyard.core.plan import Plan, PlanAction, plan
from dockyard.exceptions import DockyardError
from dockyard.models.record import ImageRecord
from dockyard.providers.image import ImageProvider
from dockyard.state.store import StateStore


logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    """Outcome of one reconciliation pass."""
    applied: Dict[str, PlanAction] = field(default_factory=dict)
    failed: Dict[str, DockyardError] = field(default_factory=dict)
    drifted: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class StateEngine:
    """Drives every declared image towards its spec.

    The engine owns the record store; the provider never persists anything.
    A record is written only after the step producing it succeeded.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        provider: ImageProvider,
        store: StateStore,
    ):
        """Initialize state engine."""
        self.config_manager = config_manager
        self.provider = provider
        self.store = store
        self.last_reconciliation: Optional[datetime] = None
        self._reconciliation_lock = asyncio.Lock()

    async def refresh(self, report: Optional[ReconcileReport] = None) -> Dict[str, ImageRecord]:
        """Read every recorded image and drop records whose image is gone."""
        records = {}
        for resource, record in self.store.list().items():
            try:
                refreshed = await self.provider.read(record)
            except DockyardError as e:
                logger.error(f"Failed to read image {resource}: {e}")
                if report is not None:
                    report.failed[resource] = e
                records[resource] = record
                continue
            if refreshed is None:
                logger.warning(f"Image {resource} drifted to absent, forgetting it")
                self.store.delete(resource)
                if report is not None:
                    report.drifted.append(resource)
                continue
            if refreshed is not record:
                self.store.put(refreshed)
            records[resource] = refreshed
        return records

    async def plan(self, refresh: bool = True) -> List[Plan]:
        """Compute the plan for all declared and recorded images."""
        if refresh:
            records = await self._read_only_refresh()
        else:
            records = self.store.list()
        return self._plans(records)

    async def _read_only_refresh(self) -> Dict[str, ImageRecord]:
        records = {}
        for resource, record in self.store.list().items():
            refreshed = await self.provider.read(record)
            if refreshed is not None:
                records[resource] = refreshed
        return records

    def _plans(self, records: Dict[str, ImageRecord]) -> List[Plan]:
        desired = self.config_manager.images
        plans = []
        for resource in sorted(set(desired) | set(records)):
            if resource in self.config_manager.errors:
                # Never destroy an image because its spec failed to parse.
                continue
            if resource not in desired and not self.config_manager.complete:
                logger.warning(f"Keeping {resource}: some image files could not be parsed")
                continue
            plans.append(plan(resource, records.get(resource), desired.get(resource)))
        return plans

    async def reconcile(self) -> ReconcileReport:
        """Perform full state reconciliation."""
        async with self._reconciliation_lock:
            start_time = datetime.now()
            logger.info("Starting state reconciliation")
            report = ReconcileReport()
            report.failed.update(self.config_manager.errors)

            records = await self.refresh(report)
            for item in self._plans(records):
                if item.resource in report.failed:
                    continue
                try:
                    await self.apply(item)
                    report.applied[item.resource] = item.action
                except DockyardError as e:
                    logger.error(f"Failed to reconcile image {item.resource}: {e}")
                    report.failed[item.resource] = e

            self.last_reconciliation = datetime.now()
            duration = (self.last_reconciliation - start_time).total_seconds()
            logger.info(
                f"State reconciliation completed in {duration:.2f}s "
                f"({len(report.applied)} applied, {len(report.failed)} failed)"
            )
            return report

    async def apply(self, item: Plan):
        """Execute one planned action and persist its outcome."""
        action = item.action
        if action is PlanAction.NOOP:
            logger.debug(f"Image {item.resource} is up to date")
        elif action is PlanAction.CREATE:
            logger.info(f"Image {item.resource} is absent, creating")
            self.store.put(await self.provider.create(item.resource, item.desired))
        elif action is PlanAction.UPDATE:
            logger.info(f"Updating image {item.resource} in place: {', '.join(item.changed_fields)}")
            self.store.put(await self.provider.update(item.recorded, item.desired))
        elif action is PlanAction.REPLACE:
            logger.info(f"Replacing image {item.resource}: {', '.join(item.changed_fields)} changed")
            await self.provider.delete(item.recorded)
            self.store.delete(item.resource)
            self.store.put(await self.provider.create(item.resource, item.desired))
        elif action is PlanAction.DELETE:
            logger.info(f"Image {item.resource} is no longer declared, deleting")
            await self.provider.delete(item.recorded)
            self.store.delete(item.resource)

    async def destroy(self, resource: str):
        """Delete one recorded image regardless of configuration."""
        record = self.store.get(resource)
        if record is None:
            raise ValueError(f"Image {resource} has no record")
        async with self._reconciliation_lock:
            await self.provider.delete(record)
            self.store.delete(resource)

    def get_status(self) -> Dict[str, Dict[str, object]]:
        """Recorded state of all images."""
        return {
            resource: {
                "name": record.spec.name,
                "image_id": record.image_id,
                "repo_digest": record.repo_digest,
                "mode": "build" if record.spec.build else "pull",
                "keep_locally": record.spec.keep_locally,
                "declared": resource in self.config_manager.images,
                "updated_at": record.updated_at.isoformat(),
            }
            for resource, record in self.store.list().items()
        }
