from typing import Any

import openai
from openai import AsyncOpenAI

from config.config import IllustrationConfig
from models.errors import ConfigurationError, TransportError
from models.illustration import ImagePart
from utils.logger import get_logger, log_fields

from .base_client import BaseAIClient

logger = get_logger(__name__)


def normalize_base_url(base_url: str) -> str:
    """Trim trailing slashes and make sure the URL ends in /v1, as relays expect."""
    url = (base_url or "").strip().rstrip("/")
    if not url.endswith("/v1"):
        url += "/v1"
    return url


class OpenAIClient(BaseAIClient):
    """
    Client for any OpenAI-compatible chat-completion endpoint (OpenAI, one-api relays,
    local gateways).

    Every SDK failure is normalized into TransportError so callers handle a single type.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model_name: str | None = None,
        *,
        timeout_s: float = 20.0,
        max_retries: int = 1,
        **kwargs: Any,
    ):
        if not base_url or not api_key:
            raise ConfigurationError("completion backend needs both a base URL and an API key")
        super().__init__(api_key, model_name=model_name, **kwargs)
        self.base_url = normalize_base_url(base_url)
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=self.base_url,
            timeout=timeout_s,
            max_retries=max_retries,
        )

    @classmethod
    def from_config(cls, config: IllustrationConfig) -> "OpenAIClient":
        return cls(
            api_key=config.ai_api_key,
            base_url=config.ai_base_url,
            model_name=config.ai_model or None,
            timeout_s=config.request_timeout_s,
        )

    def _require_model(self) -> str:
        if not self.model_name:
            raise ConfigurationError("no completion model selected")
        return self.model_name

    async def _create_completion(self, messages: list[dict[str, Any]], **params: Any) -> str:
        model = self._require_model()
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                **params,
            )
        except openai.APIStatusError as e:
            raise TransportError(
                getattr(e, "message", None) or str(e),
                service="completion",
                status_code=e.status_code,
            ) from e
        except openai.APIError as e:
            # APIConnectionError / APITimeoutError and friends
            raise TransportError(str(e) or type(e).__name__, service="completion") from e

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug(
                "Completion finished",
                extra=log_fields(
                    model=model,
                    prompt_tokens=getattr(usage, "prompt_tokens", None),
                    completion_tokens=getattr(usage, "completion_tokens", None),
                ),
            )

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        temperature: float = 0.1,
        max_tokens: int = 256,
    ) -> str:
        return await self._create_completion(
            messages, temperature=temperature, max_tokens=max_tokens
        )

    async def complete_with_images(
        self,
        prompt: str,
        images: list[ImagePart],
        *,
        temperature: float = 0.1,
        max_tokens: int = 128,
    ) -> str:
        content: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
        for image in images:
            content.append(
                {
                    "type": "image_url",
                    "image_url": {"url": image.data_url, "detail": "low"},
                }
            )
        return await self._create_completion(
            [{"role": "user", "content": content}],
            temperature=temperature,
            max_tokens=max_tokens,
        )

    async def list_models(self) -> list[str]:
        try:
            page = await self.client.models.list()
        except openai.APIStatusError as e:
            raise TransportError(
                getattr(e, "message", None) or str(e),
                service="models",
                status_code=e.status_code,
            ) from e
        except openai.APIError as e:
            raise TransportError(str(e) or type(e).__name__, service="models") from e

        ids = {getattr(model, "id", None) for model in page.data}
        return sorted(model_id for model_id in ids if model_id)
