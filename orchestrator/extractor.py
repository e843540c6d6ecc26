"""
QueryExtractor - turns an assistant message into image search queries.

One low-temperature completion per message. The answer is parsed tolerantly; any failure
(missing backend, transport error, unparseable output) yields an empty result so the
pipeline can skip the message cleanly.
"""

from typing import Any

from api.base_client import BaseAIClient
from config.config import IllustrationConfig
from models.errors import IllustrationError, ParseError
from models.illustration import ExtractionResult, Query, SourceHint
from utils.json_extract import extract_json_object
from utils.logger import get_logger, log_fields

logger = get_logger(__name__)

MAX_INPUT_CHARS = 2000
EXTRACTION_TEMPERATURE = 0.1
EXTRACTION_MAX_TOKENS = 256

SYSTEM_PROMPT_TEMPLATE = """You pick illustrations for chat messages. Read the text and extract image search keywords that fit the scene the story is set in: a luxury hotel should be searched as "Waldorf Astoria lobby", not "budget hotel"; a scene in a bedroom should be searched as interior design photos. Prefer scene keywords first, concrete nouns second.

Output JSON only, in this shape:
{{
  "need_img": true or false,
  "queries": [
    {{"query": "english keywords", "source": "wiki" or "web"}}
  ]
}}

## Choosing the source
"wiki" suits:
- famous paintings, sculptures and artworks (Mona Lisa, Starry Night)
- portraits of historical figures (Napoleon Bonaparte)
- encyclopedic images of animals and plants (Bengal tiger, cherry blossom)
- scientific diagrams (DNA structure)

"web" suits:
- real photos of landmarks (Sanlitun Beijing, Times Square)
- city scenery (Tokyo skyline night)
- everyday objects (vintage typewriter, whisky glass)
- modern scenes (neon bar interior)

## Keyword rules
- each query is a concrete, searchable noun phrase of 2-5 English words
- at most {max_queries} queries, most visually striking first
- things specific to China may be written in Chinese (故宫, 兵马俑)
- never search abstract concepts, emotions or everyday actions

## When no image is needed (need_img false)
- pure dialogue or inner monologue
- nothing concrete that can be visualised
- text too short or too abstract"""


class QueryExtractor:
    """
    Produces ordered (query, source hint) pairs for one message.

    ``extract`` never raises; see ``ExtractionResult.empty``.
    """

    def __init__(self, client: BaseAIClient | None, config: IllustrationConfig):
        self.client = client
        self.config = config

    def build_messages(self, text: str) -> list[dict[str, str]]:
        system_prompt = SYSTEM_PROMPT_TEMPLATE.format(max_queries=self.config.max_queries)
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": (text or "")[:MAX_INPUT_CHARS]},
        ]

    async def extract(self, text: str) -> ExtractionResult:
        if self.client is None:
            logger.warning("No completion backend configured; skipping keyword extraction")
            return ExtractionResult.empty()

        try:
            raw = await self.client.complete(
                self.build_messages(text),
                temperature=EXTRACTION_TEMPERATURE,
                max_tokens=EXTRACTION_MAX_TOKENS,
            )
        except IllustrationError as e:
            logger.warning(f"Keyword extraction call failed: {e}")
            return ExtractionResult.empty()
        except Exception as e:
            logger.error(f"Unexpected keyword extraction failure: {e}", exc_info=True)
            return ExtractionResult.empty()

        try:
            data = extract_json_object(raw)
        except ParseError as e:
            logger.warning(
                f"Could not parse keyword extraction output: {e}",
                extra=log_fields(raw=(raw or "")[:300]),
            )
            return ExtractionResult.empty()

        result = self.parse_result(data)
        logger.info(
            f"Extracted {len(result.queries)} queries",
            extra=log_fields(
                queries=[q.text for q in result.queries],
                source_hint=result.source_hint.value,
                need_image=result.need_image,
            ),
        )
        return result

    def parse_result(self, data: dict[str, Any]) -> ExtractionResult:
        """Normalize the model's JSON into typed queries, capped at ``max_queries``."""
        need_image = data.get("need_img") is not False

        raw_items = data.get("queries")
        if not isinstance(raw_items, list):
            raw_items = []

        parsed: list[tuple[str, SourceHint | None]] = []
        for item in raw_items:
            if isinstance(item, str):
                text, hint = item, None
            elif isinstance(item, dict):
                text = item.get("query") or item.get("text") or ""
                hint = SourceHint.parse(item.get("source"))
            else:
                continue
            if not isinstance(text, str) or not text.strip():
                continue
            parsed.append((text.strip(), hint))

        message_hint = SourceHint.parse(data.get("source"))
        if message_hint is None:
            message_hint = next((hint for _, hint in parsed if hint is not None), None)
        if message_hint is None:
            message_hint = SourceHint.EITHER

        if not need_image:
            return ExtractionResult(queries=[], source_hint=message_hint, need_image=False)

        queries = [
            Query(text=text, source_hint=hint or message_hint, sequence_index=i)
            for i, (text, hint) in enumerate(parsed[: self.config.max_queries])
        ]
        return ExtractionResult(queries=queries, source_hint=message_hint, need_image=True)
