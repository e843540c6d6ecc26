"""Encyclopedic image search: Wikipedia article lead images plus Wikimedia Commons files.

Wikipedia handles:
- Artworks, historical figures, species, scientific diagrams
- Server-side relevance ranking (``index`` on each page)

Commons tops the list up when article images are scarce.
"""

import re
from urllib.parse import quote, urlparse

import httpx

from models.errors import TransportError
from models.illustration import Candidate
from utils.logger import get_logger, log_fields

from .contracts import ImageSearchStrategy, as_dict, as_int, as_records, as_text
from .merge import dedupe_by_url

logger = get_logger(__name__)

WIKIPEDIA_API_URL = "https://{lang}.wikipedia.org/w/api.php"
COMMONS_API_URL = "https://commons.wikimedia.org/w/api.php"

ARTICLE_SEARCH_LIMIT = 5
COMMONS_SEARCH_LIMIT = 8
THUMBNAIL_WIDTH = 800
MIN_COMMONS_WIDTH = 200
MIN_ARTICLE_RESULTS = 2

_RASTER_PATH = re.compile(r"\.(jpe?g|png|webp)$", re.IGNORECASE)
_CJK = re.compile(r"[\u4e00-\u9fff\u3040-\u30ff\u3400-\u4dbf]")


def is_raster_url(url: str) -> bool:
    """True for jpg/jpeg/png/webp files; SVG and everything else is rejected."""
    try:
        path = urlparse(url).path
    except ValueError:
        return False
    return bool(_RASTER_PATH.search(path))


def contains_cjk(text: str) -> bool:
    return bool(_CJK.search(text or ""))


def clean_file_title(title: str) -> str:
    """'File:Mona_Lisa,_by_Leonardo.jpg' -> 'Mona Lisa, by Leonardo'."""
    name = title.removeprefix("File:")
    name = re.sub(r"\.\w+$", "", name)
    return name.replace("_", " ").strip()


class WikimediaSearchClient(ImageSearchStrategy):
    """
    Encyclopedic-media strategy.

    1. Wikipedia full-text search in the primary language (Chinese when the query has
       CJK characters, English otherwise); the secondary language is appended when
       fewer than ``min_article_results`` images come back.
    2. Commons file search when the total is still below the requested limit.
    """

    service_name = "wikimedia"

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = 20.0,
        languages: tuple[str, str] = ("en", "zh"),
        cjk_languages: tuple[str, str] = ("zh", "en"),
        min_article_results: int = MIN_ARTICLE_RESULTS,
    ):
        super().__init__(http_client=http_client, timeout_s=timeout_s)
        self.languages = languages
        self.cjk_languages = cjk_languages
        self.min_article_results = min_article_results

    def language_order(self, query: str) -> tuple[str, str]:
        return self.cjk_languages if contains_cjk(query) else self.languages

    async def search(self, query: str, limit: int) -> list[Candidate]:
        primary, secondary = self.language_order(query)

        results = await self.search_wikipedia(query, primary)
        if len(results) < self.min_article_results:
            results.extend(await self.search_wikipedia(query, secondary))

        if len(results) < limit:
            results.extend(await self.search_commons(query))

        results = dedupe_by_url(results)[:limit]
        logger.info(
            f"Wikimedia returned {len(results)} candidates",
            extra=log_fields(query=query, languages=[primary, secondary], limit=limit),
        )
        return results

    async def search_wikipedia(self, query: str, lang: str) -> list[Candidate]:
        """Lead images of the best-matching articles, in server relevance order."""
        params = {
            "action": "query",
            "generator": "search",
            "gsrsearch": query,
            "gsrlimit": ARTICLE_SEARCH_LIMIT,
            "prop": "pageimages",
            "piprop": "original|thumbnail",
            "pithumbsize": THUMBNAIL_WIDTH,
            "format": "json",
            "formatversion": 2,
        }
        try:
            payload = await self._request_json(
                "GET", WIKIPEDIA_API_URL.format(lang=lang), params=params
            )
        except TransportError as e:
            logger.warning(
                f"Wikipedia search failed: {e}",
                extra=log_fields(query=query, lang=lang, status_code=e.status_code),
            )
            return []

        pages = as_records(as_dict(payload.get("query")).get("pages"))
        pages = sorted(pages, key=lambda p: as_int(p.get("index")))

        candidates = []
        for page in pages:
            original = as_dict(page.get("original"))
            source = as_text(original.get("source"))
            if not source or not is_raster_url(source):
                continue
            thumbnail = as_text(as_dict(page.get("thumbnail")).get("source")) or source
            candidates.append(
                Candidate(
                    url=source,
                    thumbnail_url=thumbnail,
                    title=as_text(page.get("title")),
                    source_tag=f"{lang}.wikipedia",
                    width=as_int(original.get("width")),
                    height=as_int(original.get("height")),
                    origin_domain=f"{lang}.wikipedia.org",
                )
            )
        return candidates

    async def search_commons(self, query: str) -> list[Candidate]:
        """Raster files from the media repository, wider than MIN_COMMONS_WIDTH."""
        search_params = {
            "action": "query",
            "list": "search",
            "srsearch": query,
            "srnamespace": 6,
            "srlimit": COMMONS_SEARCH_LIMIT,
            "format": "json",
            "formatversion": 2,
        }
        try:
            payload = await self._request_json("GET", COMMONS_API_URL, params=search_params)
            hits = as_records(as_dict(payload.get("query")).get("search"))
            titles = [as_text(hit.get("title")) for hit in hits if as_text(hit.get("title"))]
            if not titles:
                return []

            info_params = {
                "action": "query",
                "titles": "|".join(titles),
                "prop": "imageinfo",
                "iiprop": "url|mime|size|extmetadata",
                "iiurlwidth": THUMBNAIL_WIDTH,
                "format": "json",
                "formatversion": 2,
            }
            info = await self._request_json("GET", COMMONS_API_URL, params=info_params)
        except TransportError as e:
            logger.warning(
                f"Commons search failed: {e}",
                extra=log_fields(query=query, status_code=e.status_code),
            )
            return []

        rank = {title: i for i, title in enumerate(titles)}
        pages = as_records(as_dict(info.get("query")).get("pages"))
        pages = sorted(pages, key=lambda p: rank.get(as_text(p.get("title")), len(rank)))

        candidates = []
        for page in pages:
            image_info = (as_records(page.get("imageinfo")) or [{}])[0]
            mime = as_text(image_info.get("mime"))
            width = as_int(image_info.get("width"))
            url = as_text(image_info.get("url"))
            if not url or not mime.startswith("image/") or "svg" in mime:
                continue
            if width <= MIN_COMMONS_WIDTH:
                continue

            title = as_text(page.get("title"))
            thumbnail = as_text(image_info.get("thumburl")) or (
                "https://commons.wikimedia.org/w/thumb.php?f="
                f"{quote(title.removeprefix('File:'))}&w={THUMBNAIL_WIDTH}"
            )
            candidates.append(
                Candidate(
                    url=url,
                    thumbnail_url=thumbnail,
                    title=clean_file_title(title),
                    source_tag="commons",
                    width=width,
                    height=as_int(image_info.get("height")),
                    origin_domain="commons.wikimedia.org",
                )
            )
        return candidates
