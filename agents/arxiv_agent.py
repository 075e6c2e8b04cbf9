# agents/arxiv_agent.py
import asyncio
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from clients.arxiv_client import fetch_arxiv_entry, search_arxiv
from models.knowledge_models import Paper
from utils.exceptions import FetchFailure
from utils.id_normalization import arxiv_pdf_url, normalize_arxiv_id
from utils.sanitization import clean_text, is_nonempty_text

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "Unknown Author"
DEFAULT_CATEGORY = "cs.CV"
_YEAR = re.compile(r"\b((?:19|20)\d{2})\b")


def published_year(timestamp: Optional[str]) -> Optional[int]:
    """Year of an arXiv timestamp such as '2023-08-08T17:59:59Z'."""
    if not timestamp:
        return None
    try:
        return datetime.fromisoformat(timestamp.strip().replace("Z", "+00:00")).year
    except ValueError:
        match = _YEAR.search(timestamp)
        return int(match.group(1)) if match else None


def author_names(authors: Any) -> List[str]:
    if not isinstance(authors, list):
        return []
    return [clean_text(name) for name in authors if isinstance(name, str) and is_nonempty_text(name)]


def to_paper(raw: Dict, fallback_id: Optional[str] = None) -> Optional[Paper]:
    """Normalize one raw arXiv entry. Returns None when title, abstract or id is missing."""
    arxiv_id = normalize_arxiv_id(raw.get("id") or "") or normalize_arxiv_id(fallback_id or "")
    title = clean_text(raw.get("title"))
    abstract = clean_text(raw.get("summary"))

    if not (arxiv_id and is_nonempty_text(title) and is_nonempty_text(abstract)):
        return None

    return Paper(
        arxiv_id=arxiv_id,
        title=title,
        authors=author_names(raw.get("authors")) or [UNKNOWN_AUTHOR],
        abstract=abstract,
        published_date=raw.get("published"),
        published_year=published_year(raw.get("published")),
        pdf_url=arxiv_pdf_url(arxiv_id),
        categories=raw.get("categories") or [DEFAULT_CATEGORY],
    )


class ArxivAgent:
    """Paper source backed by the arXiv Atom API."""

    def __init__(self, fetch_timeout: float = 15.0, search_timeout: float = 20.0, retry_delay: Optional[float] = None):
        self.fetch_timeout = fetch_timeout
        self.search_timeout = search_timeout
        self.retry_delay = retry_delay

    def _retry_kwargs(self) -> Dict:
        return {} if self.retry_delay is None else {"retry_delay": self.retry_delay}

    async def fetch_paper(self, arxiv_id: str) -> Paper:
        """
        Raises:
            FetchFailure: source unreachable, unknown id, or entry missing required fields.
        """
        logger.info(f"📡 arXiv Agent: fetching {arxiv_id}")
        raw = await asyncio.to_thread(
            fetch_arxiv_entry, arxiv_id, timeout=self.fetch_timeout, **self._retry_kwargs()
        )

        paper = to_paper(raw, fallback_id=arxiv_id)
        if paper is None:
            raise FetchFailure(f"arXiv entry for {arxiv_id} is missing a title or abstract")

        logger.info(f"📄 Retrieved \"{paper.title[:60]}\" ({len(paper.authors)} authors)")
        return paper

    async def search(self, query: str, max_results: int = 5) -> List[Paper]:
        """
        Raises:
            FetchFailure: search failed after retries.
        """
        if max_results <= 0:
            return []

        logger.info(f"📡 arXiv Agent: searching for '{query}'")
        raw_results = await asyncio.to_thread(
            search_arxiv, query, max_results, timeout=self.search_timeout, **self._retry_kwargs()
        )

        papers = [p for p in (to_paper(raw) for raw in raw_results) if p is not None]
        logger.info(f"📚 arXiv Agent returned {len(papers)} papers")
        return papers
