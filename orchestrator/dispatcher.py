"""
MessageDispatcher - explicit queue of message-ready events.

A single consumer takes events in arrival order and starts each pipeline as its own
task. The settle delay runs inside that task, so queued messages settle side by side
and a slow message does not hold up the next one.
"""

import asyncio
from collections import OrderedDict

from orchestrator.core import IllustrationOrchestrator
from orchestrator.pipeline_types import PipelineOutcome
from utils.logger import get_logger

logger = get_logger(__name__)

MAX_KEPT_OUTCOMES = 256


class MessageDispatcher:
    def __init__(
        self,
        orchestrator: IllustrationOrchestrator,
        settle_delay_s: float | None = None,
        max_outcomes: int = MAX_KEPT_OUTCOMES,
    ):
        self.orchestrator = orchestrator
        self.settle_delay_s = (
            orchestrator.config.settle_delay_s if settle_delay_s is None else settle_delay_s
        )
        self.max_outcomes = max_outcomes
        self._queue: asyncio.Queue[int] = asyncio.Queue()
        self._consumer: asyncio.Task | None = None
        self._running: set[asyncio.Task] = set()
        # Most recent outcome per message id, oldest evicted first
        self.outcomes: OrderedDict[int, PipelineOutcome] = OrderedDict()

    @property
    def is_running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._consumer = asyncio.create_task(self._consume(), name="illustration-dispatcher")
        logger.info("Message dispatcher started")

    def submit(self, message_id: int) -> None:
        """Enqueue a message-ready event; starts the consumer on first use."""
        self._queue.put_nowait(message_id)
        if not self.is_running:
            self.start()

    async def _consume(self) -> None:
        while True:
            message_id = await self._queue.get()
            try:
                task = asyncio.create_task(self._run_one(message_id))
                self._running.add(task)
                task.add_done_callback(self._running.discard)
            finally:
                self._queue.task_done()

    async def _run_one(self, message_id: int) -> PipelineOutcome:
        if self.settle_delay_s > 0:
            await asyncio.sleep(self.settle_delay_s)
        outcome = await self.orchestrator.run(message_id)
        self._record(outcome)
        return outcome

    def _record(self, outcome: PipelineOutcome) -> None:
        self.outcomes.pop(outcome.message_id, None)
        self.outcomes[outcome.message_id] = outcome
        while len(self.outcomes) > self.max_outcomes:
            self.outcomes.popitem(last=False)

    async def join(self) -> None:
        """Wait until every submitted message has been run to completion."""
        await self._queue.join()
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    async def stop(self) -> None:
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
        logger.info("Message dispatcher stopped")
