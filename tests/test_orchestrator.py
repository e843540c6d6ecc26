"""
Pipeline orchestration tests.

Every collaborator is a fake or runs against httpx.MockTransport; the completion
backend is scripted, so runs are offline and deterministic.
"""

import asyncio
import json

import httpx
import pytest

from context.transcript_store import InMemoryTranscriptStore
from models.illustration import Annotation
from orchestrator.core import IllustrationOrchestrator
from orchestrator.extractor import QueryExtractor
from orchestrator.pipeline_types import PipelineState, SkipReason
from orchestrator.selector import ImageSelector
from tools.search.aggregator import SearchAggregator

pytestmark = pytest.mark.unit

EXTRACTION = json.dumps({"need_img": True, "queries": [{"query": "lighthouse cliff", "source": "wiki"}]})


class Harness:
    def __init__(self, config, fakes, *, results=None, selection='{"selected": 0}',
                 completion=EXTRACTION, approver=None, delay_s=0.0, renderer=None):
        self.store = InMemoryTranscriptStore()
        self.renderer = renderer or fakes.Renderer()
        self.client = fakes.AIClient(completion=completion, selection=selection)
        if results is None:
            results = {"lighthouse cliff": [fakes.candidate(0)]}
        self.encyclopedic = fakes.Strategy("wikimedia", results, delay_s=delay_s)
        self.web = fakes.Strategy("serper")
        self.http_requests = []
        self.config = config
        self.approver = approver

    def _handler(self, request):
        self.http_requests.append(str(request.url))
        return httpx.Response(200, content=b"\xff\xd8jpeg", headers={"content-type": "image/jpeg"})

    def orchestrator(self, http_client):
        return IllustrationOrchestrator(
            config=self.config,
            store=self.store,
            renderer=self.renderer,
            extractor=QueryExtractor(self.client, self.config),
            aggregator=SearchAggregator(self.config, self.encyclopedic, self.web),
            selector=ImageSelector(self.client, self.config, http_client=http_client),
            approver=self.approver,
        )

    def run(self, *message_ids):
        async def go():
            async with httpx.AsyncClient(transport=httpx.MockTransport(self._handler)) as http:
                orchestrator = self.orchestrator(http)
                return await asyncio.gather(*(orchestrator.run(m) for m in message_ids))

        return asyncio.run(go())

    @property
    def network_calls(self):
        return len(self.client.calls) + len(self.encyclopedic.queries) + len(self.web.queries) + len(self.http_requests)


def test_auto_mode_annotates_renders_and_persists(config, fakes):
    h = Harness(config, fakes)
    message_id = h.store.add_message("assistant", fakes.long_text)

    (outcome,) = h.run(message_id)

    assert outcome.state is PipelineState.ANNOTATED
    assert outcome.annotation.url == "https://img.example/commons/0.jpg"
    assert outcome.annotation.query == "lighthouse cliff"
    assert outcome.annotation.source == "commons"
    assert h.store.get_annotation(message_id) == outcome.annotation
    assert h.renderer.rendered[message_id] == outcome.annotation
    assert h.renderer.loading == set()
    assert outcome.query_count == 1 and outcome.candidate_count == 1


def test_second_invocation_is_noop_without_network(config, fakes):
    h = Harness(config, fakes)
    message_id = h.store.add_message("assistant", fakes.long_text)
    h.run(message_id)
    calls_after_first = h.network_calls

    (outcome,) = h.run(message_id)

    assert outcome.state is PipelineState.SKIPPED
    assert outcome.reason == SkipReason.ALREADY_ANNOTATED.value
    assert h.network_calls == calls_after_first


@pytest.mark.parametrize(
    "role,text,reason",
    [
        ("assistant", "Too short.", SkipReason.TOO_SHORT),
        ("user", "x" * 200, SkipReason.USER_MESSAGE),
    ],
)
def test_ineligible_messages_skip_before_any_network_call(config, fakes, role, text, reason):
    h = Harness(config, fakes)
    message_id = h.store.add_message(role, text)

    (outcome,) = h.run(message_id)

    assert outcome.reason == reason.value
    assert h.network_calls == 0
    assert h.renderer.events == []


def test_disabled_unknown_and_unconfigured(config, fakes):
    h = Harness(config.with_overrides(enabled=False), fakes)
    message_id = h.store.add_message("assistant", fakes.long_text)
    assert h.run(message_id)[0].reason == SkipReason.DISABLED.value

    h = Harness(config, fakes)
    assert h.run(42)[0].reason == SkipReason.MESSAGE_NOT_FOUND.value

    h = Harness(config.with_overrides(ai_api_key=""), fakes)
    message_id = h.store.add_message("assistant", fakes.long_text)
    assert h.run(message_id)[0].reason == SkipReason.AI_NOT_CONFIGURED.value
    assert h.network_calls == 0


def test_concurrent_runs_for_same_message_only_one_proceeds(config, fakes):
    h = Harness(config, fakes, delay_s=0.05)
    message_id = h.store.add_message("assistant", fakes.long_text)

    first, second = h.run(message_id, message_id)

    states = sorted([first.state, second.state], key=lambda s: s.value)
    assert states == [PipelineState.ANNOTATED, PipelineState.SKIPPED]
    skipped = first if first.state is PipelineState.SKIPPED else second
    assert skipped.reason == SkipReason.IN_FLIGHT.value
    assert h.encyclopedic.queries == ["lighthouse cliff"]


def test_no_queries_no_candidates_and_none_suitable_are_skips(config, fakes):
    h = Harness(config, fakes, completion='{"need_img": false}')
    message_id = h.store.add_message("assistant", fakes.long_text)
    assert h.run(message_id)[0].reason == SkipReason.NO_QUERIES.value

    h = Harness(config.with_overrides(serper_api_key=""), fakes, results={})
    message_id = h.store.add_message("assistant", fakes.long_text)
    assert h.run(message_id)[0].reason == SkipReason.NO_CANDIDATES.value

    pool = {"lighthouse cliff": [fakes.candidate(0), fakes.candidate(1)]}
    h = Harness(config, fakes, results=pool, selection='{"selected": -1, "reason": "none"}')
    message_id = h.store.add_message("assistant", fakes.long_text)
    outcome = h.run(message_id)[0]
    assert outcome.reason == SkipReason.NONE_SUITABLE.value
    assert outcome.candidate_count == 2
    assert h.store.get_annotation(message_id) is None
    assert h.renderer.loading == set()


def test_stage_timeout_fails_and_leaves_message_eligible(config, fakes):
    h = Harness(config.with_overrides(stage_timeout_s=0.05), fakes, delay_s=1.0)
    message_id = h.store.add_message("assistant", fakes.long_text)

    (outcome,) = h.run(message_id)

    assert outcome.state is PipelineState.FAILED
    assert outcome.reason == "StageTimeoutError"
    assert "search" in outcome.error
    assert h.store.get_annotation(message_id) is None
    assert h.renderer.loading == set()


def test_render_failure_fails_without_persisting(config, fakes):
    h = Harness(config, fakes, renderer=fakes.Renderer(fail_on={0}))
    message_id = h.store.add_message("assistant", fakes.long_text)

    (outcome,) = h.run(message_id)

    assert outcome.state is PipelineState.FAILED
    assert h.store.get_annotation(message_id) is None
    assert h.renderer.loading == set()


def test_confirm_mode_approved_commits(config, fakes):
    approver = fakes.Approver(answer=True)
    h = Harness(config.with_overrides(auto_mode=False), fakes, approver=approver)
    message_id = h.store.add_message("assistant", fakes.long_text)

    (outcome,) = h.run(message_id)

    assert outcome.state is PipelineState.ANNOTATED
    assert approver.presented[0][0] == message_id
    # indicator is gone before the approval prompt appears
    assert h.renderer.events[:2] == [("show", message_id), ("clear", message_id)]
    assert h.store.get_annotation(message_id) is not None


def test_confirm_mode_rejected_skips(config, fakes):
    h = Harness(config.with_overrides(auto_mode=False), fakes, approver=fakes.Approver(answer=False))
    message_id = h.store.add_message("assistant", fakes.long_text)

    (outcome,) = h.run(message_id)

    assert outcome.reason == SkipReason.REJECTED.value
    assert h.store.get_annotation(message_id) is None
    assert h.renderer.rendered == {}


def test_confirm_mode_without_approver_is_skipped(config, fakes):
    h = Harness(config.with_overrides(auto_mode=False), fakes)
    message_id = h.store.add_message("assistant", fakes.long_text)

    assert h.run(message_id)[0].reason == SkipReason.NO_APPROVER.value
    assert h.network_calls == 0


def test_annotation_written_during_run_is_not_overwritten(config, fakes):
    existing = Annotation(url="https://elsewhere/x.jpg", query="manual", source="manual")

    class RacingApprover(fakes.Approver):
        async def present_for_approval(self, candidate, *, message_id):
            store.set_annotation(message_id, existing)
            return True

    h = Harness(config.with_overrides(auto_mode=False), fakes, approver=RacingApprover())
    store = h.store
    message_id = store.add_message("assistant", fakes.long_text)

    (outcome,) = h.run(message_id)

    assert outcome.reason == SkipReason.ALREADY_ANNOTATED.value
    assert store.get_annotation(message_id) == existing
    assert h.renderer.rendered == {}


class FlakyStore(InMemoryTranscriptStore):
    """Transcript store whose reads or writes can be switched to fail."""

    def __init__(self, fail_reads=False, fail_writes=False):
        super().__init__()
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    def get_annotation(self, message_id):
        if self.fail_reads:
            raise RuntimeError("db down")
        return super().get_annotation(message_id)

    def set_annotation(self, message_id, annotation):
        if self.fail_writes:
            raise RuntimeError("disk full")
        super().set_annotation(message_id, annotation)


def test_store_read_error_fails_the_run_without_raising(config, fakes):
    h = Harness(config, fakes)
    h.store = FlakyStore(fail_reads=True)
    message_id = h.store.add_message("assistant", fakes.long_text)

    (outcome,) = h.run(message_id)

    assert outcome.state is PipelineState.FAILED
    assert outcome.reason == "RuntimeError"
    assert outcome.error == "db down"
    assert h.network_calls == 0
    assert h.renderer.events == []


def test_store_write_error_withdraws_rendered_image(config, fakes):
    h = Harness(config, fakes)
    h.store = FlakyStore(fail_writes=True)
    message_id = h.store.add_message("assistant", fakes.long_text)

    (outcome,) = h.run(message_id)

    assert outcome.state is PipelineState.FAILED
    assert outcome.error == "disk full"
    assert h.store.get_annotation(message_id) is None
    assert not h.renderer.has_rendered(message_id)
    assert ("withdraw", message_id) in h.renderer.events
    assert h.renderer.loading == set()


def test_state_of_reports_message_lifecycle(config, fakes):
    h = Harness(config, fakes)
    user_id = h.store.add_message("user", fakes.long_text)
    message_id = h.store.add_message("assistant", fakes.long_text)
    orchestrator = h.orchestrator(http_client=None)

    assert orchestrator.state_of(user_id) is PipelineState.IDLE
    assert orchestrator.state_of(message_id) is PipelineState.ELIGIBLE
    orchestrator._in_flight.add(message_id)
    assert orchestrator.state_of(message_id) is PipelineState.IN_PROGRESS
    orchestrator._in_flight.discard(message_id)

    h.store.set_annotation(message_id, Annotation(url="https://x/1.jpg", query="q", source="commons"))
    assert orchestrator.state_of(message_id) is PipelineState.ANNOTATED
