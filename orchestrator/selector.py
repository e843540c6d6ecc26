"""
ImageSelector - picks the best candidate with a vision-capable model.

Degradation rules:
- empty pool -> None; single candidate -> that candidate, no model call
- every thumbnail fetch fails -> pool[0]
- ranking call fails (transport, model, configuration) -> pool[0]
- model says nothing fits, or names an index it was not shown -> None
"""

import asyncio
import base64
from typing import Any

import httpx

from api.base_client import BaseAIClient
from config.config import IllustrationConfig
from models.errors import IllustrationError, ParseError
from models.illustration import Candidate, ImagePart
from tools.search.contracts import USER_AGENT
from utils.json_extract import extract_int_field, extract_json_object
from utils.logger import get_logger, log_fields

logger = get_logger(__name__)

SHORTLIST_SIZE = 8
MAX_TEXT_CHARS = 800
MAX_IMAGE_BYTES = 5 * 1024 * 1024
SELECTION_TEMPERATURE = 0.1
SELECTION_MAX_TOKENS = 128

SELECTION_PROMPT_TEMPLATE = """You choose illustrations. From the candidate images, pick the single one that best illustrates the text below.

Scoring, in priority order:
1. The image shows the things the text describes
2. The image matches the mood of the text (cheerful, gloomy, tense, romantic...)
3. Good quality: sharp, well composed; prefer photographs, fine art and illustrations over icons
4. Reject advertising, watermarks, screenshots, logos and memes
5. Never choose an image showing a real person's portrait

Text:
\"\"\"
{text}
\"\"\"

Candidate image numbers (in the order the images are attached): {numbering}

Output JSON only: {{"selected": <number>, "reason": "<short reason>"}}
If none is suitable, use -1 for selected."""


def _coerce_index(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def parse_verdict(raw: str | None) -> tuple[int | None, str]:
    """
    Read ``{"selected": n, "reason": s}`` from model output.

    Falls back to a regex on ``"selected"`` when the object is truncated or malformed.
    Returns (None, "") when neither tier finds an index.
    """
    reason = ""
    try:
        data = extract_json_object(raw)
        reason = str(data.get("reason") or "")
        index = _coerce_index(data.get("selected"))
        if index is not None:
            return index, reason
    except ParseError:
        pass
    return extract_int_field(raw, "selected"), reason


class ImageSelector:
    def __init__(
        self,
        client: BaseAIClient | None,
        config: IllustrationConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.client = client
        self.config = config
        self._http_client = http_client

    async def select(self, message_text: str, pool: list[Candidate]) -> Candidate | None:
        if not pool:
            return None
        if len(pool) == 1:
            return pool[0]

        shortlist = pool[:SHORTLIST_SIZE]
        parts = await self.fetch_image_parts(shortlist)
        if not parts:
            logger.warning(
                "No candidate thumbnails could be fetched; using first candidate",
                extra=log_fields(pool_size=len(pool)),
            )
            return pool[0]

        if self.client is None:
            logger.warning("No completion backend configured; using first candidate")
            return pool[0]

        prompt = self.build_prompt(message_text, parts)
        try:
            raw = await self.client.complete_with_images(
                prompt,
                parts,
                temperature=SELECTION_TEMPERATURE,
                max_tokens=SELECTION_MAX_TOKENS,
            )
        except IllustrationError as e:
            logger.warning(f"Image selection call failed, using first candidate: {e}")
            return pool[0]
        except Exception as e:
            logger.error(f"Unexpected image selection failure, using first candidate: {e}", exc_info=True)
            return pool[0]

        index, reason = parse_verdict(raw)
        if index is None:
            logger.warning(
                "Could not read a selection from model output",
                extra=log_fields(raw=(raw or "")[:300]),
            )
            return None

        presented = {part.index for part in parts}
        if index not in presented:
            logger.info(
                "Model found no suitable candidate",
                extra=log_fields(selected=index, reason=reason, presented=sorted(presented)),
            )
            return None

        chosen = shortlist[index]
        logger.info(
            f"Model selected candidate #{index}",
            extra=log_fields(selected=index, reason=reason, url=chosen.url, source=chosen.source_tag),
        )
        return chosen

    def build_prompt(self, message_text: str, parts: list[ImagePart]) -> str:
        numbering = ", ".join(f"{part.index}({part.source_tag})" for part in parts)
        return SELECTION_PROMPT_TEMPLATE.format(
            text=(message_text or "")[:MAX_TEXT_CHARS],
            numbering=numbering,
        )

    async def fetch_image_parts(self, shortlist: list[Candidate]) -> list[ImagePart]:
        """Fetch every shortlisted thumbnail concurrently; failures are dropped, order kept."""
        if self._http_client is not None:
            results = await asyncio.gather(
                *(self._fetch_one(self._http_client, i, c) for i, c in enumerate(shortlist))
            )
        else:
            async with httpx.AsyncClient(
                timeout=self.config.request_timeout_s,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                results = await asyncio.gather(
                    *(self._fetch_one(client, i, c) for i, c in enumerate(shortlist))
                )
        return [part for part in results if part is not None]

    async def _fetch_one(
        self, client: httpx.AsyncClient, index: int, candidate: Candidate
    ) -> ImagePart | None:
        url = candidate.preview_url
        try:
            response = await client.get(url)
            response.raise_for_status()
        except Exception as e:
            logger.debug(f"Thumbnail fetch failed for #{index}: {e}", extra=log_fields(url=url))
            return None

        mime_type = (response.headers.get("content-type") or "").split(";")[0].strip().lower()
        if not mime_type.startswith("image/"):
            logger.debug(f"Thumbnail #{index} is not an image ({mime_type or 'no type'})")
            return None
        if not response.content or len(response.content) > MAX_IMAGE_BYTES:
            logger.debug(f"Thumbnail #{index} skipped: {len(response.content)} bytes")
            return None

        return ImagePart(
            index=index,
            mime_type=mime_type,
            data_b64=base64.b64encode(response.content).decode("ascii"),
            source_tag=candidate.source_tag,
        )
