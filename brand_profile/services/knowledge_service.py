"""
Knowledge source adapter for Wikipedia and Wikidata.

Looks up an introductory summary, the full article text and the Wikidata
entity id for a name. Every lookup is total: transport failures, non-success
statuses and unexpected payloads are logged and reported as ``None``.

Example:
    >>> knowledge = KnowledgeSourceClient(http=HttpFetcher())
    >>> summary = await knowledge.fetch_summary("Acme company")
    >>> entity_id = await knowledge.find_entity_id("Acme")
"""

from __future__ import annotations

from typing import Any, Optional

from brand_profile.config.settings import Settings, get_settings
from brand_profile.models.schemas import KnowledgeSummary
from brand_profile.services.http_service import HttpFetcher
from brand_profile.utils.logger import get_logger

logger = get_logger(__name__)


# Descriptions containing one of these mark an organisation-like entity.
# Order of the search hits decides between several matches.
ORGANIZATION_TERMS: tuple[str, ...] = (
    "company",
    "brand",
    "manufacturer",
    "corporation",
    "automaker",
    "enterprise",
    "business",
    "organization",
    "subsidiary",
    "division",
)

DEFAULT_FULL_TEXT_CHARS = 12000
SUMMARY_SEARCH_LIMIT = 5
ENTITY_SEARCH_LIMIT = 5


class KnowledgeSourceClient:
    """Encyclopedia and knowledge-graph lookups over an ``HttpFetcher``."""

    def __init__(
        self,
        http: Optional[HttpFetcher] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.http = http or HttpFetcher(settings=self.settings)

    # =========================================================================
    # Public API
    # =========================================================================

    async def fetch_summary(self, query: str) -> Optional[KnowledgeSummary]:
        """
        Fetch the introduction of the best-matching Wikipedia article.

        Args:
            query: Free-text search, e.g. ``"Acme company"``

        Returns:
            KnowledgeSummary, or None when nothing was found or a request failed
        """
        try:
            titles = await self._search_titles(query, limit=SUMMARY_SEARCH_LIMIT)
            if not titles:
                logger.info("No encyclopedia article found", query=query)
                return None

            page = await self._fetch_page(
                titles[0],
                prop="extracts|pageprops",
                exintro=1,
                ppprop="wikibase_item",
            )
            if page is None:
                return None

            return KnowledgeSummary(
                title=page.get("title") or titles[0],
                summary=page.get("extract") or "",
                page_id=int(page["pageid"]),
                wikidata_id=(page.get("pageprops") or {}).get("wikibase_item"),
            )
        except Exception as e:
            logger.warning("Encyclopedia summary lookup failed", query=query, error=str(e))
            return None

    async def fetch_full_text(
        self,
        query: str,
        max_chars: int = DEFAULT_FULL_TEXT_CHARS,
    ) -> Optional[str]:
        """
        Fetch the plain-text body of the best-matching article.

        Returns:
            At most ``max_chars`` characters of text, or None
        """
        try:
            titles = await self._search_titles(query, limit=1)
            if not titles:
                return None

            page = await self._fetch_page(titles[0], prop="extracts")
            if page is None:
                return None

            text = page.get("extract") or ""
            if not text:
                return None
            return text[:max_chars]
        except Exception as e:
            logger.warning("Encyclopedia full text lookup failed", query=query, error=str(e))
            return None

    async def find_entity_id(self, name: str) -> Optional[str]:
        """
        Resolve a brand name to a Wikidata entity id.

        The first hit whose description contains an organisation-like term
        wins; otherwise the first hit; otherwise None.
        """
        try:
            response = await self.http.fetch(
                self.settings.wikidata_api_url,
                params={
                    "action": "wbsearchentities",
                    "search": name,
                    "language": "en",
                    "format": "json",
                    "limit": ENTITY_SEARCH_LIMIT,
                },
            )
            if not response.ok:
                return None

            results = response.json_body().get("search") or []
            for result in results:
                description = (result.get("description") or "").lower()
                if any(term in description for term in ORGANIZATION_TERMS):
                    logger.debug("Entity matched by description", name=name, entity_id=result.get("id"))
                    return result.get("id")

            if results:
                return results[0].get("id")
            return None
        except Exception as e:
            logger.warning("Entity lookup failed", name=name, error=str(e))
            return None

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    async def _search_titles(self, query: str, limit: int) -> list[str]:
        response = await self.http.fetch(
            self.settings.wikipedia_api_url,
            params={
                "action": "opensearch",
                "search": query,
                "limit": limit,
                "namespace": 0,
                "format": "json",
            },
        )
        if not response.ok:
            return []

        data = response.json_body()
        # opensearch answers [query, titles, descriptions, urls]
        if not isinstance(data, list) or len(data) < 2:
            return []
        return [title for title in data[1] if title]

    async def _fetch_page(self, title: str, prop: str, **extra: Any) -> Optional[dict[str, Any]]:
        response = await self.http.fetch(
            self.settings.wikipedia_api_url,
            params={
                "action": "query",
                "titles": title,
                "prop": prop,
                "explaintext": 1,
                "format": "json",
                **extra,
            },
        )
        if not response.ok:
            return None

        pages = (response.json_body().get("query") or {}).get("pages") or {}
        for page_id, page in pages.items():
            # -1 marks a missing page
            if str(page_id) == "-1" or "missing" in page:
                return None
            return page
        return None


__all__ = ["KnowledgeSourceClient", "ORGANIZATION_TERMS", "DEFAULT_FULL_TEXT_CHARS"]
