"""General web image search through Serper.dev (Google Images)."""

from urllib.parse import urlparse

import httpx

from models.errors import TransportError
from models.illustration import Candidate
from utils.logger import get_logger, log_fields

from .contracts import ImageSearchStrategy, as_int, as_records, as_text

logger = get_logger(__name__)

SERPER_IMAGES_URL = "https://google.serper.dev/images"

# Extra results requested to make up for blocklisted domains
OVERFETCH_MARGIN = 4

# Stock-photo and watermark-heavy providers; matched as case-insensitive substrings
STOCK_PHOTO_DOMAINS = (
    "shutterstock",
    "gettyimages",
    "istockphoto",
    "alamy",
    "dreamstime",
    "depositphotos",
    "123rf",
    "stock.adobe",
    "adobestock",
    "bigstockphoto",
    "pond5",
    "vectorstock",
    "canstockphoto",
    "agefotostock",
    "fotolia",
    "pixta",
    "freepik",
    "colourbox",
    "superstock",
    "masterfile",
    "stocksy",
)


def _host(url: str) -> str:
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


def is_stock_domain(*domains: str | None, blocklist: tuple[str, ...] = STOCK_PHOTO_DOMAINS) -> bool:
    for domain in domains:
        lowered = (domain or "").lower()
        if lowered and any(blocked in lowered for blocked in blocklist):
            return True
    return False


class SerperImageSearchClient(ImageSearchStrategy):
    """
    General-web-image strategy.

    Without an API key the strategy is inert: ``search`` returns [] immediately.
    """

    service_name = "serper"

    def __init__(
        self,
        api_key: str | None,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = 20.0,
        blocklist: tuple[str, ...] = STOCK_PHOTO_DOMAINS,
    ):
        super().__init__(http_client=http_client, timeout_s=timeout_s)
        self.api_key = (api_key or "").strip()
        self.blocklist = blocklist

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def search(self, query: str, limit: int) -> list[Candidate]:
        if not self.api_key:
            logger.info("Serper API key not set; skipping web image search")
            return []

        try:
            payload = await self._request_json(
                "POST",
                SERPER_IMAGES_URL,
                headers={"X-API-KEY": self.api_key, "Content-Type": "application/json"},
                json={"q": query, "num": limit + OVERFETCH_MARGIN},
            )
        except TransportError as e:
            logger.warning(
                f"Serper image search failed: {e}",
                extra=log_fields(query=query, status_code=e.status_code),
            )
            return []

        candidates = []
        dropped = 0
        for item in as_records(payload.get("images")):
            url = as_text(item.get("imageUrl"))
            if not url:
                continue
            source = as_text(item.get("source"))
            link_host = _host(as_text(item.get("link")))
            domain = as_text(item.get("domain")) or source or link_host
            if is_stock_domain(domain, source, link_host, blocklist=self.blocklist):
                dropped += 1
                continue
            candidates.append(
                Candidate(
                    url=url,
                    thumbnail_url=as_text(item.get("thumbnailUrl")) or url,
                    title=as_text(item.get("title")),
                    source_tag="google",
                    width=as_int(item.get("imageWidth")),
                    height=as_int(item.get("imageHeight")),
                    origin_domain=domain or None,
                )
            )

        candidates = candidates[:limit]
        logger.info(
            f"Serper returned {len(candidates)} candidates",
            extra=log_fields(query=query, dropped_stock=dropped, limit=limit),
        )
        return candidates
