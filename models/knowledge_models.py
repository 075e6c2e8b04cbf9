# models/knowledge_models.py
from typing import Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field

ConceptCategory = Literal["method", "technique", "problem", "domain", "application", "framework"]
RelationshipType = Literal["introduces", "extends", "improves_on", "evaluates", "uses", "compares", "applies"]

CONCEPT_CATEGORIES = get_args(ConceptCategory)
RELATIONSHIP_TYPES = get_args(RelationshipType)

FALLBACK_CATEGORY: ConceptCategory = "technique"
FALLBACK_RELATIONSHIP_TYPE: RelationshipType = "uses"


class Paper(BaseModel):
    """An arXiv paper as fetched from the paper source. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    arxiv_id: str = Field(..., description="Stable external identifier without version suffix")
    title: str
    authors: List[str] = Field(..., min_length=1)
    abstract: str
    published_date: Optional[str] = None
    published_year: Optional[int] = None
    pdf_url: str = ""
    categories: List[str] = Field(default_factory=list)

    @property
    def text(self) -> str:
        """Title and abstract, the only text extraction is grounded against."""
        return f"{self.title} {self.abstract}"


class Concept(BaseModel):
    name: str
    category: ConceptCategory
    description: str
    confidence: float = Field(..., ge=0.0, le=1.0)


class Method(BaseModel):
    name: str
    description: str
    is_baseline: bool = False
    confidence: float = Field(..., ge=0.0, le=1.0)


class Dataset(BaseModel):
    name: str
    description: str = ""
    task_type: Optional[str] = None
    size: Optional[str] = None


class Metric(BaseModel):
    name: str
    unit: Optional[str] = None
    higher_is_better: bool = False
    description: Optional[str] = None


class Relationship(BaseModel):
    relationship_type: RelationshipType
    target_concept: str
    evidence: str
    confidence: float = Field(..., ge=0.0, le=1.0)


class ExtractionResult(BaseModel):
    concepts: List[Concept] = Field(default_factory=list)
    methods: List[Method] = Field(default_factory=list)
    datasets: List[Dataset] = Field(default_factory=list)
    metrics: List[Metric] = Field(default_factory=list)
    relationships: List[Relationship] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.concepts or self.methods or self.datasets or self.metrics or self.relationships)


class ValidationResult(BaseModel):
    is_valid: bool
    confidence: float
    issues: List[str] = Field(default_factory=list)
    extraction: ExtractionResult


class DatabaseStats(BaseModel):
    papers: int = 0
    concepts: int = 0
    relationships: int = 0
    methods: int = 0
    datasets: int = 0
    metrics: int = 0


class WriteSummary(BaseModel):
    stored: int = 0
    skipped: int = 0
    failed: int = 0


class BuildReport(BaseModel):
    processed: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
    success_rate: float = 0.0
    stats: DatabaseStats = Field(default_factory=DatabaseStats)
    improvement_relationships: int = 0
    method_introductions: int = 0
    low_quality_extractions: int = 0
