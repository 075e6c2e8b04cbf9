# agents/discovery_agent.py
import logging
import math
from typing import List, Optional

from agents.arxiv_agent import ArxivAgent
from clients.arxiv_client import build_keyword_query
from models.knowledge_models import Paper
from services.domain_relevance import DomainProfile
from services.pipeline_events import LoggingEventSink, PipelineEventSink

logger = logging.getLogger(__name__)

KEYWORD_SHARE = 0.6


# ============================================================
#  Strategies
# ============================================================

class DiscoveryStrategy:
    """Produces up to `limit` candidate papers related to a seed paper."""

    name = "strategy"

    async def discover(self, seed_id: str, limit: int) -> List[Paper]:
        raise NotImplementedError


class KeywordSearchStrategy(DiscoveryStrategy):
    name = "keyword_search"

    def __init__(self, source: ArxivAgent, profile: DomainProfile):
        self.source = source
        self.profile = profile

    async def discover(self, seed_id: str, limit: int) -> List[Paper]:
        query = build_keyword_query(self.profile.search_keywords)
        papers = await self.source.search(query, limit)
        relevant = [
            p for p in papers
            if p.arxiv_id != seed_id and self.profile.is_relevant(p)
        ]
        return relevant[:limit]


class NoOpDiscoveryStrategy(DiscoveryStrategy):
    """
    Extension point that contributes nothing. Replace with a real
    implementation without touching DiscoveryAgent.
    """

    name = "noop"

    async def discover(self, seed_id: str, limit: int) -> List[Paper]:
        logger.debug(f"{self.name} discovery is not configured; returning no candidates")
        return []


class CitationDiscoveryStrategy(NoOpDiscoveryStrategy):
    name = "citation"


class SemanticSimilarityStrategy(NoOpDiscoveryStrategy):
    name = "semantic_similarity"


# ============================================================
#  Aggregation helpers
# ============================================================

def deduplicate_papers(papers: List[Paper]) -> List[Paper]:
    """First occurrence of each arxiv_id wins; order is preserved."""
    seen = set()
    unique = []
    for paper in papers:
        if paper.arxiv_id in seen:
            continue
        seen.add(paper.arxiv_id)
        unique.append(paper)
    return unique


def prioritize_papers(papers: List[Paper], limit: int, profile: DomainProfile) -> List[Paper]:
    """Stable sort by descending relevance score, truncated to `limit`."""
    ranked = sorted(papers, key=lambda p: profile.relevance_score(p), reverse=True)
    return ranked[:limit]


class DiscoveryAgent:
    """
    Combines keyword, citation and semantic strategies into one ranked,
    deduplicated candidate list. Never raises: a failing strategy contributes nothing.
    """

    def __init__(
        self,
        keyword_strategy: DiscoveryStrategy,
        citation_strategy: Optional[DiscoveryStrategy] = None,
        semantic_strategy: Optional[DiscoveryStrategy] = None,
        profile: Optional[DomainProfile] = None,
        events: Optional[PipelineEventSink] = None,
    ):
        self.keyword_strategy = keyword_strategy
        self.citation_strategy = citation_strategy or CitationDiscoveryStrategy()
        self.semantic_strategy = semantic_strategy or SemanticSimilarityStrategy()
        self.profile = profile or DomainProfile()
        self.events = events or LoggingEventSink()

    async def _run(self, strategy: DiscoveryStrategy, seed_id: str, quota: int) -> List[Paper]:
        if quota <= 0:
            return []
        try:
            return list(await strategy.discover(seed_id, quota))
        except Exception as e:
            logger.error(f"❌ {strategy.name} discovery failed: {e}", exc_info=True)
            return []

    async def discover(self, seed_id: str, limit: int) -> List[Paper]:
        if limit <= 0:
            return []

        logger.info(f"🔎 Discovering up to {limit} papers related to {seed_id}")

        keyword_papers = await self._run(self.keyword_strategy, seed_id, math.floor(limit * KEYWORD_SHARE))
        citation_papers = await self._run(self.citation_strategy, seed_id, limit - len(keyword_papers))
        semantic_papers = await self._run(
            self.semantic_strategy, seed_id, limit - len(keyword_papers) - len(citation_papers)
        )

        combined = keyword_papers + citation_papers + semantic_papers
        unique = deduplicate_papers(combined)
        relevant = [p for p in unique if p.arxiv_id != seed_id and self.profile.is_relevant(p)]
        prioritized = prioritize_papers(relevant, limit, self.profile)

        self.events.emit(
            "discovery_completed",
            seed_id=seed_id,
            keyword=len(keyword_papers),
            citation=len(citation_papers),
            semantic=len(semantic_papers),
            selected=len(prioritized),
        )
        return prioritized
