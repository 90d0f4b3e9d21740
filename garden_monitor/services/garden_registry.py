"""
Garden Registry
===============
Arena of open garden views keyed by garden id.

Concurrent requests for a garden that is still opening share the same open
task, so a garden is never opened twice.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from garden_monitor.services.garden_coordinator import GardenDataCoordinator

logger = logging.getLogger(__name__)

CoordinatorFactory = Callable[[int], GardenDataCoordinator]


class GardenRegistry:
    def __init__(self, factory: CoordinatorFactory):
        self._factory = factory
        self._gardens: dict[int, GardenDataCoordinator] = {}
        self._opening: dict[int, asyncio.Task] = {}

    @property
    def garden_ids(self) -> list[int]:
        return sorted(self._gardens)

    def get(self, garden_id: int) -> Optional[GardenDataCoordinator]:
        return self._gardens.get(garden_id)

    async def get_or_open(self, garden_id: int) -> GardenDataCoordinator:
        coordinator = self._gardens.get(garden_id)
        if coordinator is not None:
            return coordinator

        task = self._opening.get(garden_id)
        if task is None:
            task = asyncio.create_task(self._open(garden_id), name=f"open-garden-{garden_id}")
            self._opening[garden_id] = task
        return await asyncio.shield(task)

    async def _open(self, garden_id: int) -> GardenDataCoordinator:
        coordinator = self._factory(garden_id)
        try:
            await coordinator.open()
        except (Exception, asyncio.CancelledError):
            await coordinator.close()
            raise
        finally:
            self._opening.pop(garden_id, None)
        self._gardens[garden_id] = coordinator
        return coordinator

    async def close(self, garden_id: int) -> bool:
        """Close a garden view; returns False if it was not open."""
        coordinator = self._gardens.pop(garden_id, None)
        if coordinator is None:
            return False
        await coordinator.close()
        return True

    async def close_all(self) -> None:
        for task in list(self._opening.values()):
            task.cancel()
        garden_ids = list(self._gardens)
        for garden_id in garden_ids:
            await self.close(garden_id)
        if garden_ids:
            logger.info("Closed %d garden view(s)", len(garden_ids))
