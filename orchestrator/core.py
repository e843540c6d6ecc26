"""
IllustrationOrchestrator - per-message illustration pipeline.

Key guarantees:
- At most one in-flight run per message id (checked and claimed without yielding)
- An existing annotation makes a run a no-op with no network calls
- The loading indicator is cleared on every exit path
- No exceptions bubble up from run(); failures become PipelineState.FAILED
"""

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

import httpx

from api.base_client import BaseAIClient
from config.config import IllustrationConfig
from models.errors import ConfigurationError, StageTimeoutError
from models.illustration import Annotation, Message
from orchestrator.collaborators import AnnotationStore, BaseApprover, BaseRenderer
from orchestrator.extractor import QueryExtractor
from orchestrator.pipeline_types import PipelineOutcome, PipelineState, SkipReason
from orchestrator.selector import ImageSelector
from tools.search import SearchAggregator, create_search_aggregator
from utils.logger import get_logger, log_fields

logger = get_logger(__name__)

T = TypeVar("T")


class IllustrationOrchestrator:
    def __init__(
        self,
        config: IllustrationConfig,
        store: AnnotationStore,
        renderer: BaseRenderer,
        extractor: QueryExtractor,
        aggregator: SearchAggregator,
        selector: ImageSelector,
        approver: BaseApprover | None = None,
    ):
        self.config = config
        self.store = store
        self.renderer = renderer
        self.extractor = extractor
        self.aggregator = aggregator
        self.selector = selector
        self.approver = approver
        self._in_flight: set[int] = set()

    @classmethod
    def from_config(
        cls,
        config: IllustrationConfig,
        store: AnnotationStore,
        renderer: BaseRenderer,
        *,
        approver: BaseApprover | None = None,
        ai_client: BaseAIClient | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> "IllustrationOrchestrator":
        """Wire the default extractor, search strategies and selector."""
        if ai_client is None and config.ai_configured:
            from api.openai_client import OpenAIClient

            try:
                ai_client = OpenAIClient.from_config(config)
            except ConfigurationError as e:
                logger.warning(f"Completion backend unavailable: {e}")

        return cls(
            config=config,
            store=store,
            renderer=renderer,
            extractor=QueryExtractor(ai_client, config),
            aggregator=create_search_aggregator(config, http_client=http_client),
            selector=ImageSelector(ai_client, config, http_client=http_client),
            approver=approver,
        )

    @property
    def in_flight(self) -> frozenset[int]:
        return frozenset(self._in_flight)

    def check_eligibility(self, message_id: int, message: Message | None) -> SkipReason | None:
        """Return why ``message`` must not be illustrated, or None when it may be."""
        if not self.config.enabled:
            return SkipReason.DISABLED
        if message is None:
            return SkipReason.MESSAGE_NOT_FOUND
        if message.is_user:
            return SkipReason.USER_MESSAGE
        if len(message.text or "") < self.config.min_message_length:
            return SkipReason.TOO_SHORT
        if message.annotation is not None or self.store.get_annotation(message_id) is not None:
            return SkipReason.ALREADY_ANNOTATED
        if not self.config.ai_configured:
            return SkipReason.AI_NOT_CONFIGURED
        if not self.config.auto_mode and self.approver is None:
            return SkipReason.NO_APPROVER
        if message_id in self._in_flight:
            return SkipReason.IN_FLIGHT
        return None

    def state_of(self, message_id: int) -> PipelineState:
        """
        Current state of a message outside of any finished run.

        Skipped and failed are per-run results and only appear on a PipelineOutcome;
        here such a message reads as eligible (it may be retried) or idle.
        """
        if message_id in self._in_flight:
            return PipelineState.IN_PROGRESS
        message = self.store.get_message(message_id)
        if message is not None and (
            message.annotation is not None or self.store.get_annotation(message_id) is not None
        ):
            return PipelineState.ANNOTATED
        if self.check_eligibility(message_id, message) is None:
            return PipelineState.ELIGIBLE
        return PipelineState.IDLE

    async def run(self, message_id: int) -> PipelineOutcome:
        try:
            message = self.store.get_message(message_id)
            reason = self.check_eligibility(message_id, message)
        except Exception as e:
            logger.error(
                f"Eligibility check failed for message {message_id}: {e}",
                exc_info=True,
                extra=log_fields(message_id=message_id, error_type=type(e).__name__),
            )
            return PipelineOutcome(
                message_id, PipelineState.FAILED, type(e).__name__, error=str(e)
            )
        if reason is not None:
            logger.debug(
                f"Message {message_id} not eligible: {reason.value}",
                extra=log_fields(message_id=message_id, reason=reason.value),
            )
            return PipelineOutcome(message_id, PipelineState.SKIPPED, reason.value)

        # Claimed before the first await; a concurrent run sees IN_FLIGHT above
        self._in_flight.add(message_id)
        started = time.monotonic()
        try:
            outcome = await self._run_in_progress(message)
        finally:
            self._in_flight.discard(message_id)

        logger.info(
            f"Pipeline finished for message {message_id}: {outcome.state.value}",
            extra=log_fields(
                message_id=message_id,
                state=outcome.state.value,
                reason=outcome.reason,
                queries=outcome.query_count,
                candidates=outcome.candidate_count,
                latency_ms=int((time.monotonic() - started) * 1000),
            ),
        )
        return outcome

    async def _run_in_progress(self, message: Message) -> PipelineOutcome:
        message_id = message.message_id
        query_count = 0
        candidate_count = 0

        def skipped(reason: SkipReason) -> PipelineOutcome:
            return PipelineOutcome(
                message_id,
                PipelineState.SKIPPED,
                reason.value,
                query_count=query_count,
                candidate_count=candidate_count,
            )

        self.renderer.show_loading(message_id)
        try:
            extraction = await self._stage("extract", self.extractor.extract(message.text))
            query_count = len(extraction.queries)
            if not extraction.queries:
                return skipped(SkipReason.NO_QUERIES)

            pool = await self._stage(
                "search",
                self.aggregator.aggregate(extraction.queries, extraction.source_hint),
            )
            candidate_count = len(pool)
            if not pool:
                return skipped(SkipReason.NO_CANDIDATES)

            chosen = await self._stage("select", self.selector.select(message.text, pool))
            if chosen is None:
                return skipped(SkipReason.NONE_SUITABLE)

            annotation = chosen.to_annotation()
            if not self.config.auto_mode:
                self._clear_loading(message_id)
                approved = await self.approver.present_for_approval(chosen, message_id=message_id)
                if not approved:
                    logger.info(f"Illustration for message {message_id} rejected by approver")
                    return skipped(SkipReason.REJECTED)

            if not await self._commit(message_id, annotation):
                return skipped(SkipReason.ALREADY_ANNOTATED)

            return PipelineOutcome(
                message_id,
                PipelineState.ANNOTATED,
                "ok",
                annotation=annotation,
                query_count=query_count,
                candidate_count=candidate_count,
            )
        except Exception as e:
            logger.error(
                f"Pipeline failed for message {message_id}: {e}",
                exc_info=True,
                extra=log_fields(message_id=message_id, error_type=type(e).__name__),
            )
            return PipelineOutcome(
                message_id,
                PipelineState.FAILED,
                type(e).__name__,
                query_count=query_count,
                candidate_count=candidate_count,
                error=str(e),
            )
        finally:
            self._clear_loading(message_id)

    async def _commit(self, message_id: int, annotation: Annotation) -> bool:
        """
        Render then persist; False when another writer got there first.

        A failed write withdraws the rendered image, so what is displayed never runs
        ahead of what is stored.
        """
        if self.store.get_annotation(message_id) is not None:
            logger.warning(f"Message {message_id} was annotated during the run; discarding result")
            return False
        await self._stage("render", self.renderer.render_annotation(message_id, annotation))
        try:
            self.store.set_annotation(message_id, annotation)
        except Exception:
            self._withdraw(message_id)
            raise
        return True

    async def _stage(self, name: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.config.stage_timeout_s)
        except asyncio.TimeoutError as e:
            raise StageTimeoutError(name, self.config.stage_timeout_s) from e

    def _withdraw(self, message_id: int) -> None:
        try:
            self.renderer.withdraw_annotation(message_id)
        except Exception as e:
            logger.error(f"Could not withdraw rendered image for message {message_id}: {e}")

    def _clear_loading(self, message_id: int) -> None:
        try:
            self.renderer.clear_loading(message_id)
        except Exception as e:
            logger.error(f"Could not clear loading indicator for message {message_id}: {e}")
