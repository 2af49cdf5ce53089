"""Scheduler trigger.

One reconciliation pass: dispatch every scheduled broadcast that is due and
resume every broadcast left in `sending`. Invoked by the cron endpoint and,
when enabled, by the in-process job in `jobs.scheduled_tasks`.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from infrastructure.logging import get_module_logger
from modules.broadcasts.dispatcher import Dispatcher
from modules.broadcasts.errors import StoreUnavailableError
from modules.broadcasts.models import Broadcast, utc_now
from modules.broadcasts.store import BroadcastStore

logger = get_module_logger()


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass.

    Attributes:
        processed: Broadcasts the dispatcher ran for (claims refused excluded)
        errors: One "<broadcast id>: <error>" entry per failed broadcast
    """

    processed: int = 0
    errors: List[str] = field(default_factory=list)


class SchedulerTrigger:
    """Hands due and unfinished broadcasts to the dispatcher, one at a time."""

    def __init__(self, broadcasts: BroadcastStore, dispatcher: Dispatcher):
        self._broadcasts = broadcasts
        self._dispatcher = dispatcher

    def _candidates(
        self, now: datetime, result: ReconcileResult
    ) -> List[Tuple[Broadcast, bool]]:
        candidates: List[Tuple[Broadcast, bool]] = []
        try:
            candidates.extend((b, False) for b in self._broadcasts.list_due(now))
        except StoreUnavailableError as e:
            logger.error("scheduled_broadcasts_query_failed", error=str(e))
            result.errors.append(f"scheduled: {str(e)}")
        try:
            candidates.extend((b, True) for b in self._broadcasts.list_sending())
        except StoreUnavailableError as e:
            logger.error("sending_broadcasts_query_failed", error=str(e))
            result.errors.append(f"sending: {str(e)}")
        return candidates

    def reconcile(self, now: Optional[datetime] = None) -> ReconcileResult:
        """Run one pass.

        A failure on one broadcast is logged and reported in `errors`; the
        remaining broadcasts are still processed.

        Args:
            now: Reference time for "due" (defaults to the current UTC time)

        Returns:
            ReconcileResult with processed count and per-broadcast errors.
        """
        now = now or utc_now()
        result = ReconcileResult()
        seen = set()

        for broadcast, resume in self._candidates(now, result):
            if broadcast.id in seen:
                continue
            seen.add(broadcast.id)
            try:
                outcome = self._dispatcher.dispatch(broadcast.id, resume=resume)
            except Exception as e:
                logger.error(
                    "broadcast_reconcile_failed",
                    broadcast_id=broadcast.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                result.errors.append(f"{broadcast.id}: {str(e)}")
                continue
            if not outcome.skipped:
                result.processed += 1

        logger.info(
            "broadcast_reconcile_completed",
            candidates=len(seen),
            processed=result.processed,
            errors=len(result.errors),
        )
        return result
