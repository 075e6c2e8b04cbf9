# File: workflow.py
import asyncio
import logging
from typing import List, Optional, Set

from agents.arxiv_agent import ArxivAgent
from agents.discovery_agent import DiscoveryAgent
from agents.extraction_agent import ExtractionAgent
from agents.relationship_analyzer import RelationshipAnalyzer
from agents.validation_agent import ValidationAgent
from models.knowledge_models import BuildReport, ExtractionResult, Paper
from services.domain_relevance import DomainProfile
from services.graph_writer import KnowledgeGraphWriter
from services.knowledge_store import KnowledgeStore
from services.pipeline_events import LoggingEventSink, PipelineEventSink
from services.progress_tracker import BuildPhase, BuildProgress
from utils.exceptions import (
    ExtractionFailure,
    FetchFailure,
    PaperProcessingFailure,
    SeedProcessingFailure,
    StorageFailure,
)
from utils.id_normalization import normalize_arxiv_id

logger = logging.getLogger(__name__)

BATCH_SIZE = 5
HIGH_FAILURE_RATE = 0.3
HIGH_FAILURE_DELAY_MS = 5000
NORMAL_DELAY_MS = 2000
DEFAULT_SEED_PAPER_ID = "2308.04079"
IRRELEVANT_REASON = "irrelevant"


def adaptive_delay_ms(
    succeeded: int,
    failed: int,
    high_delay_ms: int = HIGH_FAILURE_DELAY_MS,
    normal_delay_ms: int = NORMAL_DELAY_MS,
) -> int:
    """Inter-batch pause given the running outcome counts."""
    total = succeeded + failed
    failure_rate = failed / total if total else 0.0
    return high_delay_ms if failure_rate > HIGH_FAILURE_RATE else normal_delay_ms


class PipelineOrchestrator:
    """
    Drives one graph build: seed paper, discovery, batched processing,
    cross-paper analysis and the final report.

    Batches run strictly one after another; papers inside a batch run
    concurrently and every one of them settles before the next batch starts.
    """

    def __init__(
        self,
        store: KnowledgeStore,
        source: ArxivAgent,
        extractor: ExtractionAgent,
        discovery: DiscoveryAgent,
        validator: Optional[ValidationAgent] = None,
        writer: Optional[KnowledgeGraphWriter] = None,
        analyzer: Optional[RelationshipAnalyzer] = None,
        profile: Optional[DomainProfile] = None,
        events: Optional[PipelineEventSink] = None,
        batch_size: int = BATCH_SIZE,
        high_delay_ms: int = HIGH_FAILURE_DELAY_MS,
        normal_delay_ms: int = NORMAL_DELAY_MS,
    ):
        self.events = events or LoggingEventSink()
        self.store = store
        self.source = source
        self.extractor = extractor
        self.discovery = discovery
        self.validator = validator or ValidationAgent()
        self.writer = writer or KnowledgeGraphWriter(store, events=self.events)
        self.analyzer = analyzer or RelationshipAnalyzer()
        self.profile = profile or DomainProfile()
        self.batch_size = batch_size
        self.high_delay_ms = high_delay_ms
        self.normal_delay_ms = normal_delay_ms
        self.low_quality_ids: Set[str] = set()

    # ---------------------------------------------------------
    # Single paper
    # ---------------------------------------------------------
    async def process_one(self, paper_id: str) -> bool:
        """
        Integrate one paper into the graph.

        Returns True when the paper was integrated or was already stored,
        False when it is outside the domain.
        Raises:
            PaperProcessingFailure: fetch, paper insert or extraction failed.
        """
        arxiv_id = normalize_arxiv_id(paper_id)
        if not arxiv_id:
            raise PaperProcessingFailure(str(paper_id), "empty paper id")
        logger.info(f"🔄 Processing {arxiv_id}")

        try:
            existing = await asyncio.to_thread(self.store.find_paper_by_external_id, arxiv_id)
        except StorageFailure as e:
            raise PaperProcessingFailure(arxiv_id, f"lookup failed: {e}") from e

        if existing is not None:
            self.events.emit("paper_skipped_existing", arxiv_id=arxiv_id, paper_id=existing)
            return True

        try:
            paper = await self.source.fetch_paper(arxiv_id)
        except FetchFailure as e:
            raise PaperProcessingFailure(arxiv_id, f"fetch failed: {e}") from e

        # Checked again here: discovery results can be stale.
        if not self.profile.is_relevant(paper):
            self.events.emit("paper_irrelevant", arxiv_id=arxiv_id)
            return False

        try:
            db_id = await asyncio.to_thread(self.store.insert_paper, paper)
        except StorageFailure as e:
            raise PaperProcessingFailure(arxiv_id, f"paper insert failed: {e}") from e

        self.events.emit("paper_stored", arxiv_id=arxiv_id, paper_id=db_id, authors=len(paper.authors))

        try:
            extraction = await self.extractor.extract(paper)
        except ExtractionFailure as e:
            raise PaperProcessingFailure(arxiv_id, f"extraction failed: {e}") from e

        await self._integrate(db_id, paper, extraction)
        self.events.emit("paper_integrated", arxiv_id=arxiv_id, paper_id=db_id)
        return True

    async def _integrate(self, db_id: int, paper: Paper, extraction: ExtractionResult) -> None:
        validation = self.validator.validate(extraction, paper)
        self.events.emit(
            "validation_completed",
            arxiv_id=paper.arxiv_id,
            is_valid=validation.is_valid,
            confidence=round(validation.confidence, 3),
            issues=len(validation.issues),
        )

        # Low-quality knowledge is still stored; the writer's threshold does the filtering.
        if not validation.is_valid:
            self.low_quality_ids.add(paper.arxiv_id)
            logger.warning(f"⚠️ Quality issues for {paper.arxiv_id}: {', '.join(validation.issues)}")

        await asyncio.to_thread(self.writer.store_knowledge, db_id, validation.extraction)
        await self.analyzer.analyze_paper(db_id, paper)

    # ---------------------------------------------------------
    # Full build
    # ---------------------------------------------------------
    async def build_graph(self, paper_limit: int = 50, seed_id: str = DEFAULT_SEED_PAPER_ID) -> BuildReport:
        """
        Raises:
            SeedProcessingFailure: the seed paper could not be integrated.
                Discovery is never started in that case.
        """
        seed_id = normalize_arxiv_id(seed_id)
        progress = BuildProgress(seed_id)
        progress.papers_total = paper_limit
        self.low_quality_ids = set()

        logger.info(f"🚀 Building knowledge graph: {paper_limit} papers from seed {seed_id}")

        # PHASE 1: seed
        await self._process_seed(seed_id, progress)

        # PHASE 2: discovery
        progress.set_phase(BuildPhase.DISCOVERY)
        candidates = await self.discovery.discover(seed_id, paper_limit - 1)
        logger.info(f"📚 Discovered {len(candidates)} candidate papers")

        # PHASE 3: batched processing
        progress.set_phase(BuildPhase.PROCESSING)
        await self._process_batches(candidates, progress)

        # PHASE 4: cross-paper analysis
        progress.set_phase(BuildPhase.CROSS_REFERENCE)
        await self.analyzer.analyze_graph()

        # PHASE 5: report
        progress.set_phase(BuildPhase.REPORTING)
        report = await self.build_report(progress)
        progress.set_phase(BuildPhase.COMPLETED)
        logger.info(f"Build progress: {progress.to_dict()}")
        return report

    async def _process_seed(self, seed_id: str, progress: BuildProgress) -> None:
        try:
            integrated = await self.process_one(seed_id)
        except PaperProcessingFailure as e:
            progress.record_failure(seed_id, str(e))
            progress.set_phase(BuildPhase.FAILED, error=str(e))
            raise SeedProcessingFailure(seed_id, str(e)) from e
        except Exception as e:
            logger.error(f"❌ Unhandled error for seed {seed_id}: {e}", exc_info=True)
            progress.record_failure(seed_id, f"unexpected error: {e}")
            progress.set_phase(BuildPhase.FAILED, error=str(e))
            raise SeedProcessingFailure(seed_id, f"unexpected error: {e}") from e

        if not integrated:
            progress.record_failure(seed_id, IRRELEVANT_REASON)
            progress.set_phase(BuildPhase.FAILED, error=IRRELEVANT_REASON)
            raise SeedProcessingFailure(seed_id, "paper is not relevant to the domain")

        progress.record_success(seed_id)
        logger.info(f"✅ Seed paper {seed_id} established as graph foundation")

    async def _process_batches(self, candidates: List[Paper], progress: BuildProgress) -> None:
        total_batches = (len(candidates) + self.batch_size - 1) // self.batch_size

        for start in range(0, len(candidates), self.batch_size):
            batch = candidates[start:start + self.batch_size]
            batch_number = start // self.batch_size + 1
            logger.info(
                f"📦 Batch {batch_number}/{total_batches}: {', '.join(p.arxiv_id for p in batch)}"
            )

            outcomes = await asyncio.gather(
                *(self.process_one(p.arxiv_id) for p in batch),
                return_exceptions=True,
            )
            for paper, outcome in zip(batch, outcomes):
                self._settle(paper.arxiv_id, outcome, progress)

            succeeded = len(progress.processed)
            failed = len(progress.failed)
            self.events.emit(
                "batch_completed",
                batch=batch_number,
                batches=total_batches,
                succeeded=succeeded,
                failed=failed,
            )

            if start + self.batch_size < len(candidates):
                delay = adaptive_delay_ms(succeeded, failed, self.high_delay_ms, self.normal_delay_ms)
                logger.info(f"⏳ Adaptive delay: {delay}ms (failure rate: {progress.failure_rate():.1%})")
                await asyncio.sleep(delay / 1000)

    def _settle(self, arxiv_id: str, outcome, progress: BuildProgress) -> None:
        if outcome is True:
            progress.record_success(arxiv_id)
            return

        if outcome is False:
            reason = IRRELEVANT_REASON
        elif isinstance(outcome, PaperProcessingFailure):
            reason = str(outcome)
            logger.error(f"❌ Paper {arxiv_id} failed: {outcome}")
        else:
            reason = f"unexpected error: {outcome}"
            logger.error(f"❌ Unhandled error for {arxiv_id}: {outcome}", exc_info=outcome)

        progress.record_failure(arxiv_id, reason)
        self.events.emit("paper_failed", arxiv_id=arxiv_id, reason=reason)

    async def build_report(self, progress: BuildProgress) -> BuildReport:
        stats = await asyncio.to_thread(self.store.get_stats)
        improvements = await asyncio.to_thread(self.store.count_relationships_by_type, "improves_on")
        introductions = await asyncio.to_thread(self.store.count_method_introductions)

        report = BuildReport(
            processed=list(progress.processed),
            failed=dict(progress.failed),
            success_rate=progress.success_rate() * 100,
            stats=stats,
            improvement_relationships=improvements,
            method_introductions=introductions,
            low_quality_extractions=len(self.low_quality_ids),
        )

        self.events.emit(
            "build_report",
            processed=len(report.processed),
            failed=len(report.failed),
            success_rate=round(report.success_rate, 1),
            papers=stats.papers,
            concepts=stats.concepts,
            relationships=stats.relationships,
            methods=stats.methods,
            datasets=stats.datasets,
            metrics=stats.metrics,
            improvement_relationships=improvements,
            method_introductions=introductions,
            low_quality_extractions=report.low_quality_extractions,
        )
        return report
