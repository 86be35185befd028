"""Periodic refresh of an owner's bill list

Keeps a BillService's in-memory list fresh on a fixed interval, independent
of user actions. Refreshes are never cancelled by a newer one: a manual
refresh can overlap a timed one and whichever finishes last sets the list.
"""

from typing import Optional
import asyncio
import logging

from billdesk.config import settings
from billdesk.exceptions import PersistenceError
from billdesk.services.bill_service import BillService

logger = logging.getLogger(__name__)


class BillListRefresher:
    """Runs BillService.refresh every ``interval_seconds`` until stopped"""
    
    def __init__(self, service: BillService, interval_seconds: Optional[float] = None):
        """
        Initialize refresher
        
        Args:
            service: BillService whose list is kept fresh
            interval_seconds: Delay between refreshes (defaults to REFRESH_INTERVAL_SECONDS)
        """
        self.service = service
        self.interval_seconds = interval_seconds if interval_seconds is not None else settings.REFRESH_INTERVAL_SECONDS
        self.refresh_count = 0
        self.last_error: Optional[Exception] = None
        self._task: Optional[asyncio.Task] = None
    
    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
    
    async def refresh_now(self) -> bool:
        """
        One refresh, outside the timer
        
        Returns:
            True on success. A failure is logged and kept on ``last_error``;
            the list keeps its previous contents.
        """
        try:
            await self.service.refresh()
        except PersistenceError as e:
            self.last_error = e
            logger.warning(f"Bill list refresh failed for owner {self.service.owner_id}: {e.user_message}")
            return False
        
        self.refresh_count += 1
        self.last_error = None
        return True
    
    async def _run(self) -> None:
        while True:
            try:
                await self.refresh_now()
            except Exception as e:
                self.last_error = e
                logger.error(f"Unexpected error refreshing bills for owner {self.service.owner_id}: {e}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)
    
    def start(self) -> asyncio.Task:
        """Refresh immediately, then on every interval. Starting twice is a no-op."""
        if not self.running:
            self._task = asyncio.create_task(self._run())
            logger.info(
                f"Started bill refresh every {self.interval_seconds}s for owner {self.service.owner_id}"
            )
        return self._task
    
    async def stop(self) -> None:
        """Stop the timer"""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Stopped bill refresh for owner {self.service.owner_id}")
