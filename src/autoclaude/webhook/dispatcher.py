"""Fire-and-forget dispatch of work items to the orchestrator.

The webhook response must go out before a run finishes, so each accepted
WorkItem is processed in a detached asyncio task. The dispatcher keeps a
strong reference to every task until it completes and catches anything that
escapes a run at the task boundary.
"""

import asyncio
import logging
from typing import Protocol, Set

from autoclaude.webhook.models import WorkItem

logger = logging.getLogger(__name__)


class WorkItemProcessor(Protocol):
    """Anything that can run a WorkItem to completion."""

    async def process(self, item: WorkItem): ...


class BackgroundDispatcher:
    """Runs each submitted WorkItem in its own background task.

    There is no queueing and no per-repository locking: two items submitted
    close together run concurrently against the same working copy.
    """

    def __init__(self, processor: WorkItemProcessor):
        self.processor = processor
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def submit(self, item: WorkItem) -> None:
        """Schedule processing of a WorkItem and return immediately.

        Must be called from within a running event loop.
        """
        task = asyncio.create_task(
            self._run(item), name=f"autoclaude-run-{item.item_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(
            "Dispatched work item",
            extra={"item_id": item.item_id, "in_flight": len(self._tasks)},
        )

    async def _run(self, item: WorkItem) -> None:
        try:
            await self.processor.process(item)
        except asyncio.CancelledError:
            logger.warning("Run cancelled", extra={"item_id": item.item_id})
            raise
        except Exception:
            logger.exception(
                "Error processing %s #%s",
                item.kind,
                item.item_number,
                extra={"item_id": item.item_id},
            )
