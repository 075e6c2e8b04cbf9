# services/graph_writer.py
import logging
from typing import Optional

from models.knowledge_models import ExtractionResult, WriteSummary
from services.knowledge_store import KnowledgeStore
from services.pipeline_events import LoggingEventSink, PipelineEventSink
from utils.exceptions import StorageFailure

logger = logging.getLogger(__name__)

STORAGE_CONFIDENCE_THRESHOLD = 0.7
CONCEPT_LINK_RELATION = "mentions"


class KnowledgeGraphWriter:
    """
    Persists a validated extraction for one stored paper.
    Entity writes are best-effort: a failing entity is logged and skipped.
    """

    def __init__(
        self,
        store: KnowledgeStore,
        min_confidence: float = STORAGE_CONFIDENCE_THRESHOLD,
        events: Optional[PipelineEventSink] = None,
    ):
        self.store = store
        self.min_confidence = min_confidence
        self.events = events or LoggingEventSink()

    def store_knowledge(self, paper_id: int, extraction: ExtractionResult) -> WriteSummary:
        summary = WriteSummary()

        # ----------------------------
        # Concepts
        # ----------------------------
        for concept in extraction.concepts:
            if concept.confidence < self.min_confidence:
                summary.skipped += 1
                continue
            try:
                concept_id = self.store.upsert_concept(concept)
                self.store.link_paper_concept(paper_id, concept_id, CONCEPT_LINK_RELATION, concept.confidence)
                summary.stored += 1
            except StorageFailure as e:
                logger.error(f"❌ Failed to store concept \"{concept.name}\": {e}")
                summary.failed += 1

        # ----------------------------
        # Relationships
        # ----------------------------
        for rel in extraction.relationships:
            if rel.confidence < self.min_confidence:
                summary.skipped += 1
                continue
            try:
                if self.store.insert_relationship(paper_id, rel):
                    summary.stored += 1
                else:
                    logger.debug(f"Duplicate relationship skipped: {rel.relationship_type} -> {rel.target_concept}")
                    summary.skipped += 1
            except StorageFailure as e:
                logger.error(f"❌ Failed to store relationship {rel.relationship_type} -> {rel.target_concept}: {e}")
                summary.failed += 1

        # ----------------------------
        # Methods / datasets / metrics
        # ----------------------------
        for method in extraction.methods:
            if method.confidence < self.min_confidence:
                summary.skipped += 1
                continue
            try:
                method_id = self.store.upsert_method(method)
                self.store.link_paper_method(paper_id, method_id, not method.is_baseline, method.confidence)
                summary.stored += 1
            except StorageFailure as e:
                logger.error(f"❌ Failed to store method \"{method.name}\": {e}")
                summary.failed += 1

        for dataset in extraction.datasets:
            try:
                self.store.link_paper_dataset(paper_id, self.store.upsert_dataset(dataset))
                summary.stored += 1
            except StorageFailure as e:
                logger.error(f"❌ Failed to store dataset \"{dataset.name}\": {e}")
                summary.failed += 1

        for metric in extraction.metrics:
            try:
                self.store.link_paper_metric(paper_id, self.store.upsert_metric(metric))
                summary.stored += 1
            except StorageFailure as e:
                logger.error(f"❌ Failed to store metric \"{metric.name}\": {e}")
                summary.failed += 1

        self.events.emit(
            "knowledge_stored",
            paper_id=paper_id,
            stored=summary.stored,
            skipped=summary.skipped,
            failed=summary.failed,
        )
        return summary
