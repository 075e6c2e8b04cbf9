# agents/extraction_agent.py
import asyncio
import json
import logging
import math
import re
from typing import Any, Dict, List, Optional

from clients.llm_client import LLMClient, LLMGenerationError
from models.knowledge_models import (
    CONCEPT_CATEGORIES,
    FALLBACK_CATEGORY,
    FALLBACK_RELATIONSHIP_TYPE,
    RELATIONSHIP_TYPES,
    Concept,
    Dataset,
    ExtractionResult,
    Method,
    Metric,
    Paper,
    Relationship,
)
from services.domain_relevance import evidence_in_paper
from services.pipeline_events import LoggingEventSink, PipelineEventSink
from utils.exceptions import ExtractionFailure
from utils.sanitization import coerce_str

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
DEFAULT_CONFIDENCE = 0.7
REQUIRED_ARRAYS = ("concepts", "methods", "datasets", "metrics", "relationships")

EXTRACTION_PROMPT = """Analyze this computer vision research paper and extract structured knowledge as JSON.

PAPER: "{title}"
AUTHORS: {authors}
ABSTRACT: {abstract}

Extract:
1. CONCEPTS: key technical concepts mentioned, with a confidence between 0 and 1
2. METHODS: specific algorithms or techniques, marking baselines
3. DATASETS: evaluation datasets used
4. METRICS: reported performance metrics
5. RELATIONSHIPS: how this paper relates to concepts, quoting evidence from the abstract

Return ONLY valid JSON with exactly this structure:
{{
  "concepts": [
    {{"name": "concept name", "category": "{categories}", "description": "brief description", "confidence": 0.95}}
  ],
  "methods": [
    {{"name": "method name", "description": "what it does", "is_baseline": false, "confidence": 0.9}}
  ],
  "datasets": [
    {{"name": "dataset name", "description": "what it contains"}}
  ],
  "metrics": [
    {{"name": "metric name", "unit": "optional unit", "higher_is_better": true}}
  ],
  "relationships": [
    {{"relationship_type": "{relationship_types}", "target_concept": "concept name", "evidence": "verbatim text from the abstract", "confidence": 0.9}}
  ]
}}

Focus on computer vision and 3D reconstruction concepts. Be precise and evidence-based."""


def build_extraction_prompt(paper: Paper) -> str:
    return EXTRACTION_PROMPT.format(
        title=paper.title,
        authors=", ".join(paper.authors),
        abstract=paper.abstract,
        categories="|".join(CONCEPT_CATEGORIES),
        relationship_types="|".join(RELATIONSHIP_TYPES),
    )


# ============================================================
#  Response parsing
# ============================================================

def _decode_object(text: str) -> Dict[str, Any]:
    start = text.find("{")
    if start == -1:
        raise ExtractionFailure("No JSON object found in LLM response")

    end = text.rfind("}")
    if end > start:
        try:
            parsed = json.loads(text[start:end + 1])
            if isinstance(parsed, dict):
                return parsed
        except ValueError:
            pass

    # Trailing prose may contain braces; decode just the first object
    try:
        parsed, _ = json.JSONDecoder().raw_decode(text[start:])
    except ValueError as e:
        raise ExtractionFailure(f"Invalid JSON in LLM response: {e}") from e
    if not isinstance(parsed, dict):
        raise ExtractionFailure("LLM response JSON is not an object")
    return parsed


def locate_json_object(text: str) -> Dict[str, Any]:
    """
    Pull the first JSON object out of a reply that may be wrapped in prose
    or markdown fences. The first fence holding a `{` is tried before the
    whole reply.
    Raises:
        ExtractionFailure: no parseable object found.
    """
    text = text.strip()

    candidates = []
    for fence in re.finditer(r"```(?:json)?\s*\n?(.*?)```", text, re.DOTALL):
        body = fence.group(1).strip()
        if "{" in body:
            candidates.append(body)
            break
    candidates.append(text)

    last_error: Optional[ExtractionFailure] = None
    for candidate in candidates:
        try:
            return _decode_object(candidate)
        except ExtractionFailure as e:
            last_error = e
    raise last_error


def _coerce_confidence(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_CONFIDENCE
    if math.isnan(number):
        return DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, number))


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def _coerce_choice(value: Any, choices, fallback: str) -> str:
    lowered = coerce_str(value).lower()
    return lowered if lowered in choices else fallback


def _objects(items: List[Any]) -> List[Dict[str, Any]]:
    return [item for item in items if isinstance(item, dict)]


def coerce_concepts(items: List[Any]) -> List[Concept]:
    concepts = []
    for item in _objects(items):
        name = coerce_str(item.get("name"))
        category = coerce_str(item.get("category"))
        description = coerce_str(item.get("description"))
        if not (name and category and description):
            continue
        if len(name) <= 1:
            continue
        concepts.append(Concept(
            name=name,
            category=_coerce_choice(category, CONCEPT_CATEGORIES, FALLBACK_CATEGORY),
            description=description,
            confidence=_coerce_confidence(item.get("confidence")),
        ))
    return concepts


def coerce_methods(items: List[Any]) -> List[Method]:
    methods = []
    for item in _objects(items):
        name = coerce_str(item.get("name"))
        description = coerce_str(item.get("description"))
        if not (name and description):
            continue
        methods.append(Method(
            name=name,
            description=description,
            is_baseline=_coerce_bool(item.get("is_baseline")),
            confidence=_coerce_confidence(item.get("confidence")),
        ))
    return methods


def coerce_datasets(items: List[Any]) -> List[Dataset]:
    datasets = []
    for item in _objects(items):
        name = coerce_str(item.get("name"))
        if not name:
            continue
        datasets.append(Dataset(
            name=name,
            description=coerce_str(item.get("description")),
            task_type=coerce_str(item.get("task_type")) or None,
            size=coerce_str(item.get("size")) or None,
        ))
    return datasets


def coerce_metrics(items: List[Any]) -> List[Metric]:
    metrics = []
    for item in _objects(items):
        name = coerce_str(item.get("name"))
        if not name:
            continue
        metrics.append(Metric(
            name=name,
            unit=coerce_str(item.get("unit")) or None,
            higher_is_better=_coerce_bool(item.get("higher_is_better")),
            description=coerce_str(item.get("description")) or None,
        ))
    return metrics


def coerce_relationships(items: List[Any], paper: Paper) -> List[Relationship]:
    relationships = []
    for item in _objects(items):
        rel_type = coerce_str(item.get("relationship_type"))
        target = coerce_str(item.get("target_concept"))
        evidence = coerce_str(item.get("evidence"))
        if not (rel_type and target and evidence):
            continue
        if not evidence_in_paper(evidence, paper):
            logger.debug(f"Dropping ungrounded evidence for {paper.arxiv_id}: {evidence[:40]!r}")
            continue
        relationships.append(Relationship(
            relationship_type=_coerce_choice(rel_type, RELATIONSHIP_TYPES, FALLBACK_RELATIONSHIP_TYPE),
            target_concept=target,
            evidence=evidence,
            confidence=_coerce_confidence(item.get("confidence")),
        ))
    return relationships


def parse_extraction(raw: str, paper: Paper) -> ExtractionResult:
    """
    Turn a raw LLM reply into a typed ExtractionResult.
    All five arrays must be present; entities are sanitized, never trusted.
    """
    parsed = locate_json_object(raw)

    missing = [key for key in REQUIRED_ARRAYS if not isinstance(parsed.get(key), list)]
    if missing:
        raise ExtractionFailure(f"Missing required arrays in LLM response: {', '.join(missing)}")

    return ExtractionResult(
        concepts=coerce_concepts(parsed["concepts"]),
        methods=coerce_methods(parsed["methods"]),
        datasets=coerce_datasets(parsed["datasets"]),
        metrics=coerce_metrics(parsed["metrics"]),
        relationships=coerce_relationships(parsed["relationships"], paper),
    )


# ============================================================
#  Agent
# ============================================================

class ExtractionAgent:
    """
    Extracts concepts, methods, datasets, metrics and evidenced relationships
    from a paper's title and abstract with one LLM call per paper.
    """

    def __init__(
        self,
        llm: LLMClient,
        retry_delay: float = 2.0,
        sequential_delay: float = 1.0,
        batch_delay: float = 2.0,
        events: Optional[PipelineEventSink] = None,
    ):
        self.llm = llm
        self.retry_delay = retry_delay
        self.sequential_delay = sequential_delay
        self.batch_delay = batch_delay
        self.events = events or LoggingEventSink()

    async def extract(self, paper: Paper) -> ExtractionResult:
        """
        Raises:
            ExtractionFailure: LLM unreachable after retries, or reply unparseable.
        """
        logger.info(f"🧠 Extracting knowledge from {paper.arxiv_id}")
        raw = await self._call_llm(build_extraction_prompt(paper), paper.arxiv_id)

        try:
            extraction = parse_extraction(raw, paper)
        except ExtractionFailure as e:
            raise ExtractionFailure(f"Failed to parse extraction for {paper.arxiv_id}: {e}") from e

        self.events.emit(
            "extraction_completed",
            arxiv_id=paper.arxiv_id,
            concepts=len(extraction.concepts),
            methods=len(extraction.methods),
            datasets=len(extraction.datasets),
            metrics=len(extraction.metrics),
            relationships=len(extraction.relationships),
        )
        return extraction

    async def _call_llm(self, prompt: str, paper_id: str) -> str:
        last_error: Optional[Exception] = None

        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                content = await asyncio.to_thread(self.llm.complete, prompt)
                logger.debug(f"LLM response received for {paper_id} ({len(content)} chars)")
                return content
            except LLMGenerationError as e:
                last_error = e
                logger.warning(f"⚠️ LLM attempt {attempt}/{MAX_ATTEMPTS} failed for {paper_id}: {e}")

                if attempt < MAX_ATTEMPTS:
                    await asyncio.sleep(self.retry_delay * attempt)

        raise ExtractionFailure(
            f"LLM call failed after {MAX_ATTEMPTS} attempts for {paper_id}. Last error: {last_error}"
        ) from last_error

    async def _extract_or_empty(self, paper: Paper) -> ExtractionResult:
        try:
            return await self.extract(paper)
        except ExtractionFailure as e:
            logger.error(f"❌ Extraction failed for {paper.arxiv_id}: {e}")
            self.events.emit("extraction_failed", arxiv_id=paper.arxiv_id, error=str(e))
            return ExtractionResult()

    async def extract_many_sequential(self, papers: List[Paper]) -> Dict[str, ExtractionResult]:
        """
        One paper at a time with a pause between calls.
        A failed paper maps to an empty ExtractionResult.
        """
        results: Dict[str, ExtractionResult] = {}

        for index, paper in enumerate(papers):
            results[paper.arxiv_id] = await self._extract_or_empty(paper)

            if index < len(papers) - 1:
                await asyncio.sleep(self.sequential_delay)

        logger.info(f"Sequential extraction complete: {len(results)}/{len(papers)} papers")
        return results

    async def extract_many_parallel(self, papers: List[Paper], concurrency: int = 3) -> Dict[str, ExtractionResult]:
        """
        Groups of `concurrency` papers run together, with a pause between groups.
        A failed paper maps to an empty ExtractionResult.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        results: Dict[str, ExtractionResult] = {}

        for start in range(0, len(papers), concurrency):
            batch = papers[start:start + concurrency]
            extractions = await asyncio.gather(*(self._extract_or_empty(p) for p in batch))
            for paper, extraction in zip(batch, extractions):
                results[paper.arxiv_id] = extraction

            if start + concurrency < len(papers):
                await asyncio.sleep(self.batch_delay)

        logger.info(f"Parallel extraction complete: {len(results)}/{len(papers)} papers")
        return results
