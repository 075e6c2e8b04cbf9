# agents/validation_agent.py
import logging
from typing import List

from models.knowledge_models import Concept, ExtractionResult, Paper, Relationship, ValidationResult
from services.domain_relevance import concept_is_relevant, evidence_is_sensible

logger = logging.getLogger(__name__)

CONCEPT_MIN_CONFIDENCE = 0.4
RELATIONSHIP_MIN_CONFIDENCE = 0.5
CONCEPT_NAME_MIN_LENGTH = 2
CONCEPT_NAME_MAX_LENGTH = 100
EVIDENCE_MIN_LENGTH = 10
VALIDITY_MIN_CONFIDENCE = 0.6


def is_concept_valid(concept: Concept, paper: Paper) -> bool:
    if concept.confidence < CONCEPT_MIN_CONFIDENCE:
        return False
    if not CONCEPT_NAME_MIN_LENGTH <= len(concept.name) <= CONCEPT_NAME_MAX_LENGTH:
        return False
    return concept_is_relevant(concept.name, paper)


def is_relationship_valid(relationship: Relationship, paper: Paper) -> bool:
    if relationship.confidence < RELATIONSHIP_MIN_CONFIDENCE:
        return False
    if len(relationship.evidence) < EVIDENCE_MIN_LENGTH:
        return False
    return evidence_is_sensible(relationship.evidence, paper)


class ValidationAgent:
    """
    Quality gate over concepts and relationships.
    Pure: no I/O, never raises. Methods, datasets and metrics pass through untouched.
    """

    def validate(self, extraction: ExtractionResult, paper: Paper) -> ValidationResult:
        issues: List[str] = []
        retained_confidences: List[float] = []

        valid_concepts: List[Concept] = []
        for concept in extraction.concepts:
            if is_concept_valid(concept, paper):
                valid_concepts.append(concept)
                retained_confidences.append(concept.confidence)
            else:
                issues.append(f"Low-confidence concept: {concept.name}")

        valid_relationships: List[Relationship] = []
        for rel in extraction.relationships:
            if is_relationship_valid(rel, paper):
                valid_relationships.append(rel)
                retained_confidences.append(rel.confidence)
            else:
                issues.append(f"Weak relationship: {rel.relationship_type} -> {rel.target_concept}")

        confidence = sum(retained_confidences) / len(retained_confidences) if retained_confidences else 0.0
        is_valid = bool(valid_concepts) and confidence >= VALIDITY_MIN_CONFIDENCE

        if not is_valid:
            logger.info(f"Validation issues for {paper.arxiv_id}: {', '.join(issues) or 'no retained concepts'}")

        return ValidationResult(
            is_valid=is_valid,
            confidence=confidence,
            issues=issues,
            extraction=extraction.model_copy(update={
                "concepts": valid_concepts,
                "relationships": valid_relationships,
            }),
        )
