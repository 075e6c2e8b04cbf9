# agents/relationship_analyzer.py
import logging

from models.knowledge_models import Paper

logger = logging.getLogger(__name__)


class RelationshipAnalyzer:
    """
    Hooks for linking papers to each other once their knowledge is stored.

    Both passes currently add nothing to the graph. They exist so a
    citation- or similarity-based linker can be dropped in without
    changing the pipeline.
    """

    async def analyze_paper(self, paper_id: int, paper: Paper) -> int:
        """Cross-reference one newly stored paper. Returns edges added."""
        logger.debug(f"Cross-referencing {paper.arxiv_id} (row {paper_id}): no linker configured")
        return 0

    async def analyze_graph(self) -> int:
        """Whole-graph pass after all papers settle. Returns edges added."""
        logger.debug("Cross-paper analysis: no linker configured")
        return 0
