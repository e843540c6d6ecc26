import asyncio
from collections.abc import Iterator

import pytest
from dotenv import load_dotenv

from api.base_client import BaseAIClient
from config.config import IllustrationConfig
from models.illustration import Annotation, Candidate, ImagePart
from orchestrator.collaborators import BaseApprover, BaseRenderer
from tools.search.contracts import ImageSearchStrategy

# Load environment variables from .env file for tests
load_dotenv()


# -------------------------------------------------------------------
# Fakes shared by the unit tests (offline and deterministic)
# -------------------------------------------------------------------


class FakeAIClient(BaseAIClient):
    """Scripted completion backend that records every call."""

    def __init__(self, completion="", selection="", models=None, error=None):
        super().__init__(api_key="test-key", model_name="fake-model")
        self.completion = completion
        self.selection = selection
        self.models = models or []
        self.error = error
        self.calls: list[tuple[str, object]] = []

    async def complete(self, messages, *, temperature=0.1, max_tokens=256):
        self.calls.append(("complete", messages))
        if self.error:
            raise self.error
        return self.completion

    async def complete_with_images(self, prompt, images, *, temperature=0.1, max_tokens=128):
        self.calls.append(("complete_with_images", (prompt, list(images))))
        if self.error:
            raise self.error
        return self.selection

    async def list_models(self):
        self.calls.append(("list_models", None))
        if self.error:
            raise self.error
        return sorted(self.models)


class FakeStrategy(ImageSearchStrategy):
    """Returns canned candidates per query and records the queries it saw."""

    def __init__(self, name, results=None, configured=True, delay_s=0.0):
        super().__init__()
        self.service_name = name
        self.results = results or {}
        self.configured = configured
        self.delay_s = delay_s
        self.queries: list[str] = []

    @property
    def is_configured(self):
        return self.configured

    async def search(self, query, limit):
        self.queries.append(query)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        return list(self.results.get(query, []))[:limit]


class FakeRenderer(BaseRenderer):
    def __init__(self, fail_on=()):
        self.loading: set[int] = set()
        self.rendered: dict[int, Annotation] = {}
        self.events: list[tuple[str, int]] = []
        self.fail_on = set(fail_on)

    def show_loading(self, message_id):
        self.loading.add(message_id)
        self.events.append(("show", message_id))

    def clear_loading(self, message_id):
        self.loading.discard(message_id)
        self.events.append(("clear", message_id))

    async def render_annotation(self, message_id, annotation):
        if message_id in self.fail_on:
            raise RuntimeError(f"cannot render message {message_id}")
        self.rendered[message_id] = annotation
        self.events.append(("render", message_id))

    def withdraw_annotation(self, message_id):
        self.rendered.pop(message_id, None)
        self.events.append(("withdraw", message_id))

    def has_rendered(self, message_id):
        return message_id in self.rendered


class FakeApprover(BaseApprover):
    def __init__(self, answer=True):
        self.answer = answer
        self.presented: list[tuple[int, Candidate]] = []

    async def present_for_approval(self, candidate, *, message_id):
        self.presented.append((message_id, candidate))
        return self.answer


def make_candidate(n, source_tag="commons", **kwargs) -> Candidate:
    return Candidate(
        url=kwargs.pop("url", f"https://img.example/{source_tag}/{n}.jpg"),
        thumbnail_url=kwargs.pop("thumbnail_url", f"https://thumb.example/{source_tag}/{n}.jpg"),
        title=kwargs.pop("title", f"Image {n}"),
        source_tag=source_tag,
        **kwargs,
    )


def make_part(index, source_tag="commons") -> ImagePart:
    return ImagePart(index=index, mime_type="image/jpeg", data_b64="AAAA", source_tag=source_tag)


LONG_TEXT = (
    "The old lighthouse stood at the edge of the cliff, its white tower catching the last "
    "light of the evening while waves broke on the rocks far below."
)


# -------------------------------------------------------------------
# Pytest fixtures
# -------------------------------------------------------------------


@pytest.fixture
def config() -> IllustrationConfig:
    """Enabled, fully configured settings with no settle or restore delays."""
    return IllustrationConfig(
        enabled=True,
        ai_base_url="https://relay.example",
        ai_api_key="sk-test",
        ai_model="vision-model",
        serper_api_key="serper-test",
        settle_delay_s=0.0,
        restore_delay_s=0.0,
        stage_timeout_s=5.0,
    )


@pytest.fixture
def fakes():
    """Namespace of fake collaborators and builders."""

    class _Fakes:
        AIClient = FakeAIClient
        Strategy = FakeStrategy
        Renderer = FakeRenderer
        Approver = FakeApprover
        candidate = staticmethod(make_candidate)
        part = staticmethod(make_part)
        long_text = LONG_TEXT

    return _Fakes


@pytest.fixture
def mock_env(monkeypatch) -> Iterator[dict[str, str]]:
    """Fixture to mock environment variables for testing."""
    env_vars = {
        "AUTO_ILLUST_ENABLED": "true",
        "AUTO_ILLUST_AI_BASE_URL": "https://relay.example/",
        "AUTO_ILLUST_AI_API_KEY": "sk-env",
        "AUTO_ILLUST_AI_MODEL": "gpt-4o-mini",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    yield env_vars

