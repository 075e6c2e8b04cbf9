# clients/arxiv_client.py
import logging
import time
from typing import Callable, Dict, List, Optional, TypeVar

import requests
from requests.exceptions import RequestException
from defusedxml import ElementTree as ET
from defusedxml.common import DefusedXmlException

from utils.exceptions import FetchFailure

logger = logging.getLogger(__name__)

ARXIV_API_URL = "https://export.arxiv.org/api/query"
ATOM_NS = "{http://www.w3.org/2005/Atom}"
USER_AGENT = "AcademicKnowledgeGraph/1.0"
MIN_RESPONSE_LENGTH = 100

T = TypeVar("T")


class ArxivResponseError(ValueError):
    """Malformed or truncated arXiv response; worth retrying."""
    pass


def _text(entry, tag: str) -> str:
    elem = entry.find(f"{ATOM_NS}{tag}")
    if elem is None or not elem.text:
        return ""
    return " ".join(elem.text.split())


def parse_entry(entry) -> Optional[Dict]:
    """Convert one Atom <entry> into a raw dict. Returns None for unusable entries."""
    entry_id = _text(entry, "id")
    title = _text(entry, "title")
    summary = _text(entry, "summary")

    if not (entry_id and title and summary):
        return None

    pdf_url = None
    for link in entry.findall(f"{ATOM_NS}link"):
        if link.get("title") == "pdf":
            pdf_url = link.get("href")
            break

    authors = [
        " ".join(name.text.split())
        for a in entry.findall(f"{ATOM_NS}author")
        if (name := a.find(f"{ATOM_NS}name")) is not None and name.text and name.text.strip()
    ]

    categories = [
        c.get("term") for c in entry.findall(f"{ATOM_NS}category") if c.get("term")
    ]

    return {
        "id": entry_id,
        "title": title,
        "summary": summary,
        "pdf_url": pdf_url,
        "authors": authors,
        "published": _text(entry, "published") or None,
        "categories": categories,
    }


def parse_feed(xml_text: str) -> List[Dict]:
    if not xml_text or len(xml_text) < MIN_RESPONSE_LENGTH:
        raise ArxivResponseError("Empty response from arXiv API")

    try:
        root = ET.fromstring(xml_text)
    except (ET.ParseError, DefusedXmlException) as e:
        raise ArxivResponseError(f"Failed to parse arXiv XML response: {e}") from e

    entries = []
    for entry in root.findall(f"{ATOM_NS}entry"):
        parsed = parse_entry(entry)
        if parsed is None:
            logger.debug("Skipping arXiv entry without id/title/summary")
            continue
        entries.append(parsed)
    return entries


def _request_with_retries(
    params: Dict,
    parse: Callable[[str], T],
    label: str,
    timeout: float,
    max_attempts: int,
    retry_delay: float,
) -> T:
    last_error: Optional[Exception] = None

    for attempt in range(1, max_attempts + 1):
        try:
            response = requests.get(
                ARXIV_API_URL,
                params=params,
                headers={"User-Agent": USER_AGENT},
                timeout=timeout,
            )
            response.raise_for_status()
            return parse(response.text)

        except (RequestException, ArxivResponseError) as e:
            last_error = e
            logger.warning(f"⚠️ arXiv {label} attempt {attempt}/{max_attempts} failed: {e}")

            if attempt < max_attempts:
                time.sleep(retry_delay * attempt)

    raise FetchFailure(
        f"Failed arXiv {label} after {max_attempts} attempts. Last error: {last_error}"
    ) from last_error


def fetch_arxiv_entry(
    arxiv_id: str,
    timeout: float = 15.0,
    max_attempts: int = 3,
    retry_delay: float = 2.0,
) -> Dict:
    """
    Fetch a single paper's raw entry by id.
    Raises:
        FetchFailure: unreachable/unparseable after retries, or unknown id.
    """
    def parse(xml_text: str) -> Dict:
        entries = parse_feed(xml_text)
        if not entries:
            raise FetchFailure(f"arXiv returned no entry for {arxiv_id}")
        entry = entries[0]
        if "/api/errors" in entry["id"]:
            raise FetchFailure(f"arXiv rejected id {arxiv_id}: {entry['summary']}")
        return entry

    return _request_with_retries(
        {"id_list": arxiv_id, "max_results": 1},
        parse,
        label=f"fetch {arxiv_id}",
        timeout=timeout,
        max_attempts=max_attempts,
        retry_delay=retry_delay,
    )


def build_keyword_query(keywords: List[str]) -> str:
    return " OR ".join(f'all:"{term}"' for term in keywords)


def search_arxiv(
    search_query: str,
    max_results: int = 5,
    timeout: float = 20.0,
    max_attempts: int = 3,
    retry_delay: float = 3.0,
) -> List[Dict]:
    """
    Newest-first search. Raises FetchFailure after exhausting retries.
    """
    params = {
        "search_query": search_query,
        "start": 0,
        "max_results": max_results,
        "sortBy": "submittedDate",
        "sortOrder": "descending",
    }
    return _request_with_retries(
        params,
        parse_feed,
        label="search",
        timeout=timeout,
        max_attempts=max_attempts,
        retry_delay=retry_delay,
    )
