"""execution/reaper.py

Deadline-based expiry of intents.

HARD RULES:
- Completed intents are never overwritten
- Executing intents are not interrupted; execution runs to completion or failure
- Intents are marked Expired, never removed
- Re-running a scan is a no-op for intents already Expired
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, List, Optional

from execution.models import IntentStatus

if TYPE_CHECKING:
    from execution.engine import FusionEngine

logger = logging.getLogger(__name__)

# Statuses the reaper leaves alone
SKIP_STATUSES = (IntentStatus.COMPLETED, IntentStatus.EXPIRED, IntentStatus.EXECUTING)


class ExpiryReaper:
    """
    Marks intents past their deadline as Expired.

    Usage:
        reaper = ExpiryReaper(engine)
        expired_ids = await reaper.scan()

        # or periodically
        stop = asyncio.Event()
        task = asyncio.create_task(reaper.run(stop))
    """

    def __init__(self, engine: "FusionEngine"):
        self.engine = engine

    async def scan(self) -> List[str]:
        """
        Expire every stored intent whose deadline has passed.

        Returns:
            Ids of intents expired by this scan
        """
        now = self.engine.clock()
        expired: List[str] = []

        for intent in self.engine.store.list_intents():
            if intent.status in SKIP_STATUSES or not intent.is_expired(now):
                continue
            # Status may have moved since the snapshot; transition re-checks under the intent lock
            changed = await self.engine.transition(
                intent.id,
                IntentStatus.EXPIRED,
                reason="deadline_passed",
                unless=SKIP_STATUSES,
            )
            if changed:
                expired.append(intent.id)

        if expired:
            logger.info(f"[reaper] Expired {len(expired)} intent(s)")
        return expired

    async def run(self, stop_event: asyncio.Event, interval_sec: Optional[float] = None) -> None:
        """Scan every interval until stop_event is set."""
        while not stop_event.is_set():
            try:
                await self.scan()
            except Exception as e:
                logger.error(f"[reaper] Scan failed: {e}")

            interval = interval_sec or self.engine.config.reaper_interval_sec
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
