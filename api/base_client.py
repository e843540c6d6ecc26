from abc import ABC, abstractmethod
from typing import Any

from models.illustration import ImagePart


class BaseAIClient(ABC):
    """
    Abstract base class for completion backends.

    The pipeline only ever needs three calls: a text completion, a completion that also
    carries inline images, and a listing of the model identifiers the backend offers.
    """

    def __init__(self, api_key: str, **kwargs: Any):
        self.api_key = api_key
        self.model_name = kwargs.get("model_name")

    @property
    def provider_name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        temperature: float = 0.1,
        max_tokens: int = 256,
    ) -> str:
        """
        Run a chat completion and return the text of the first choice.

        Raises:
            ConfigurationError: no model is configured
            TransportError: the backend failed or returned a non-success status
        """

    @abstractmethod
    async def complete_with_images(
        self,
        prompt: str,
        images: list[ImagePart],
        *,
        temperature: float = 0.1,
        max_tokens: int = 128,
    ) -> str:
        """Run a single-turn multimodal completion; images are sent inline at low detail."""

    @abstractmethod
    async def list_models(self) -> list[str]:
        """Return the sorted model identifiers exposed by the backend."""
