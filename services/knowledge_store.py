# services/knowledge_store.py
import logging
from typing import Any, Dict, Optional, Type

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from database.models.paper_model import Paper as PaperRow
from database.models.concept_model import Concept as ConceptRow, PaperConcept
from database.models.relationship_model import Relationship as RelationshipRow
from database.models.artifact_model import (
    Dataset as DatasetRow,
    Method as MethodRow,
    Metric as MetricRow,
    PaperDataset,
    PaperMethod,
    PaperMetric,
)
from models.knowledge_models import Concept, Dataset, DatabaseStats, Method, Metric, Paper, Relationship
from utils.exceptions import StorageFailure

logger = logging.getLogger(__name__)


class KnowledgeStore:
    """
    Graph-shaped relational store for papers, concepts and their edges.

    Every public operation opens its own session and commits before returning,
    so each entity write is atomic on its own and safe to call from concurrent
    paper tasks (each running in a worker thread). Failures are rolled back and
    surfaced as StorageFailure.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # ------------------------------------------------------------
    # Papers
    # ------------------------------------------------------------
    def find_paper_by_external_id(self, arxiv_id: str) -> Optional[int]:
        with self._session_factory() as db:
            try:
                return db.scalar(select(PaperRow.id).where(PaperRow.arxiv_id == arxiv_id))
            except SQLAlchemyError as e:
                raise StorageFailure(f"Paper lookup failed for {arxiv_id}: {e}") from e

    def insert_paper(self, paper: Paper) -> int:
        with self._session_factory() as db:
            try:
                row = PaperRow(
                    arxiv_id=paper.arxiv_id,
                    title=paper.title,
                    authors=list(paper.authors),
                    abstract=paper.abstract,
                    published_date=paper.published_date,
                    published_year=paper.published_year,
                    pdf_url=paper.pdf_url,
                    categories=list(paper.categories),
                )
                db.add(row)
                db.commit()
                logger.info(f"📄 Paper stored: \"{paper.title[:60]}\"")
                return row.id
            except SQLAlchemyError as e:
                db.rollback()
                raise StorageFailure(f"Failed to insert paper {paper.arxiv_id}: {e}") from e

    # ------------------------------------------------------------
    # Concepts
    # ------------------------------------------------------------
    def upsert_concept(self, concept: Concept) -> int:
        """
        Return the id of the (name, category) concept, creating it if needed.
        An existing concept keeps its description and gets its frequency bumped.
        """
        lookup = select(ConceptRow.id).where(
            ConceptRow.name == concept.name,
            ConceptRow.category == concept.category,
        )

        with self._session_factory() as db:
            try:
                concept_id = db.scalar(lookup)
                if concept_id is None:
                    try:
                        row = ConceptRow(
                            name=concept.name,
                            category=concept.category,
                            description=concept.description,
                            frequency=1,
                        )
                        db.add(row)
                        db.commit()
                        logger.debug(f"Concept stored: \"{concept.name}\"")
                        return row.id
                    except IntegrityError:
                        # Another task inserted the same pair first
                        db.rollback()
                        concept_id = db.scalar(lookup)
                        if concept_id is None:
                            raise

                self._bump_frequency(db, concept_id)
                db.commit()
                return concept_id

            except SQLAlchemyError as e:
                db.rollback()
                raise StorageFailure(f"Failed to upsert concept \"{concept.name}\": {e}") from e

    @staticmethod
    def _bump_frequency(db: Session, concept_id: int) -> None:
        db.execute(
            update(ConceptRow)
            .where(ConceptRow.id == concept_id)
            .values(frequency=ConceptRow.frequency + 1)
        )

    def link_paper_concept(self, paper_id: int, concept_id: int, relation: str, confidence: float) -> bool:
        """Returns False when the link already exists."""
        return self._link(
            PaperConcept,
            {"paper_id": paper_id, "concept_id": concept_id, "relation": relation},
            confidence=confidence,
        )

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    def insert_relationship(self, paper_id: int, relationship: Relationship) -> bool:
        """
        Insert a paper -> concept edge.
        Returns False when (paper, target, type) is already stored.
        """
        with self._session_factory() as db:
            try:
                existing = db.scalar(
                    select(RelationshipRow.id).where(
                        RelationshipRow.source_paper_id == paper_id,
                        RelationshipRow.target_concept == relationship.target_concept,
                        RelationshipRow.relationship_type == relationship.relationship_type,
                    )
                )
                if existing is not None:
                    return False

                db.add(RelationshipRow(
                    source_paper_id=paper_id,
                    relationship_type=relationship.relationship_type,
                    target_concept=relationship.target_concept,
                    evidence=relationship.evidence,
                    confidence=relationship.confidence,
                ))
                db.commit()
                logger.debug(f"Relationship stored: {relationship.relationship_type} -> {relationship.target_concept}")
                return True
            except SQLAlchemyError as e:
                db.rollback()
                raise StorageFailure(f"Failed to insert relationship: {e}") from e

    # ------------------------------------------------------------
    # Methods / datasets / metrics
    # ------------------------------------------------------------
    def upsert_method(self, method: Method) -> int:
        return self._upsert_by_name(MethodRow, method.name, description=method.description)

    def upsert_dataset(self, dataset: Dataset) -> int:
        return self._upsert_by_name(
            DatasetRow,
            dataset.name,
            description=dataset.description,
            task_type=dataset.task_type,
            size=dataset.size,
        )

    def upsert_metric(self, metric: Metric) -> int:
        return self._upsert_by_name(
            MetricRow,
            metric.name,
            unit=metric.unit,
            higher_is_better=metric.higher_is_better,
            description=metric.description,
        )

    def link_paper_method(self, paper_id: int, method_id: int, introduces: bool, confidence: float) -> bool:
        return self._link(
            PaperMethod,
            {"paper_id": paper_id, "method_id": method_id},
            introduces=introduces,
            confidence=confidence,
        )

    def link_paper_dataset(self, paper_id: int, dataset_id: int) -> bool:
        return self._link(PaperDataset, {"paper_id": paper_id, "dataset_id": dataset_id})

    def link_paper_metric(self, paper_id: int, metric_id: int) -> bool:
        return self._link(PaperMetric, {"paper_id": paper_id, "metric_id": metric_id})

    def _upsert_by_name(self, model: Type, name: str, **fields: Any) -> int:
        lookup = select(model.id).where(model.name == name)
        with self._session_factory() as db:
            try:
                existing = db.scalar(lookup)
                if existing is not None:
                    return existing
                try:
                    row = model(name=name, **fields)
                    db.add(row)
                    db.commit()
                    return row.id
                except IntegrityError:
                    db.rollback()
                    existing = db.scalar(lookup)
                    if existing is None:
                        raise
                    return existing
            except SQLAlchemyError as e:
                db.rollback()
                raise StorageFailure(f"Failed to upsert {model.__tablename__} \"{name}\": {e}") from e

    def _link(self, model: Type, keys: Dict[str, Any], **fields: Any) -> bool:
        with self._session_factory() as db:
            try:
                if db.get(model, keys) is not None:
                    return False
                db.add(model(**keys, **fields))
                db.commit()
                return True
            except SQLAlchemyError as e:
                db.rollback()
                raise StorageFailure(f"Failed to link {model.__tablename__} {keys}: {e}") from e

    # ------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------
    def get_stats(self) -> DatabaseStats:
        tables = {
            "papers": PaperRow,
            "concepts": ConceptRow,
            "relationships": RelationshipRow,
            "methods": MethodRow,
            "datasets": DatasetRow,
            "metrics": MetricRow,
        }
        with self._session_factory() as db:
            try:
                counts = {
                    key: db.scalar(select(func.count()).select_from(model)) or 0
                    for key, model in tables.items()
                }
            except SQLAlchemyError as e:
                raise StorageFailure(f"Failed to read graph stats: {e}") from e
        return DatabaseStats(**counts)

    def count_relationships_by_type(self, relationship_type: str) -> int:
        with self._session_factory() as db:
            try:
                return db.scalar(
                    select(func.count())
                    .select_from(RelationshipRow)
                    .where(RelationshipRow.relationship_type == relationship_type)
                ) or 0
            except SQLAlchemyError as e:
                raise StorageFailure(f"Failed to count {relationship_type} relationships: {e}") from e

    def count_method_introductions(self) -> int:
        with self._session_factory() as db:
            try:
                return db.scalar(
                    select(func.count())
                    .select_from(PaperMethod)
                    .where(PaperMethod.introduces.is_(True))
                ) or 0
            except SQLAlchemyError as e:
                raise StorageFailure(f"Failed to count method introductions: {e}") from e
