"""Process-wide wiring of the illustration pipeline for the HTTP service."""

import os
from dataclasses import dataclass

from api.base_client import BaseAIClient
from config.config import IllustrationConfig
from context.transcript_store import InMemoryTranscriptStore
from models.errors import ConfigurationError
from orchestrator.collaborators import AnnotationStore
from orchestrator.core import IllustrationOrchestrator
from orchestrator.dispatcher import MessageDispatcher
from orchestrator.restorer import AnnotationRestorer
from server.approvals import PendingApprovals
from server.render_state import RenderState
from tools.search import SearchAggregator
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class IllustrationRuntime:
    config: IllustrationConfig
    store: AnnotationStore
    renderer: RenderState
    approvals: PendingApprovals
    orchestrator: IllustrationOrchestrator
    dispatcher: MessageDispatcher
    ai_client: BaseAIClient | None = None

    @property
    def aggregator(self) -> SearchAggregator:
        return self.orchestrator.aggregator

    def restorer(self, delay_s: float | None = None) -> AnnotationRestorer:
        return AnnotationRestorer(
            self.store,
            self.renderer,
            self.config.restore_delay_s if delay_s is None else delay_s,
        )

    @classmethod
    def build(
        cls,
        config: IllustrationConfig | None = None,
        store: AnnotationStore | None = None,
        ai_client: BaseAIClient | None = None,
    ) -> "IllustrationRuntime":
        config = config or IllustrationConfig.from_env()
        config.validate()

        if store is None:
            store = _default_store()

        if ai_client is None and config.ai_configured:
            from api.openai_client import OpenAIClient

            try:
                ai_client = OpenAIClient.from_config(config)
            except ConfigurationError as e:
                logger.warning(f"Completion backend unavailable: {e}")

        renderer = RenderState(show_caption=config.show_caption)
        approvals = PendingApprovals()
        orchestrator = IllustrationOrchestrator.from_config(
            config, store, renderer, approver=approvals, ai_client=ai_client
        )
        return cls(
            config=config,
            store=store,
            renderer=renderer,
            approvals=approvals,
            orchestrator=orchestrator,
            dispatcher=MessageDispatcher(orchestrator),
            ai_client=ai_client,
        )


def _default_store() -> AnnotationStore:
    if os.getenv("DATABASE_URL"):
        from db import SqlAnnotationStore

        logger.info("Using SQL annotation store")
        return SqlAnnotationStore()
    logger.info("DATABASE_URL not set; using in-memory transcript store")
    return InMemoryTranscriptStore()
