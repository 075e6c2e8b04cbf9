# tests/test_workflow.py
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agents.discovery_agent import DiscoveryAgent, KeywordSearchStrategy
from models.knowledge_models import Concept, DatabaseStats, ExtractionResult, Relationship
from services.domain_relevance import DomainProfile
from services.progress_tracker import BuildPhase, BuildProgress
from utils.exceptions import (
    ExtractionFailure,
    FetchFailure,
    PaperProcessingFailure,
    SeedProcessingFailure,
)
from workflow import PipelineOrchestrator, adaptive_delay_ms


def extraction():
    return ExtractionResult(
        concepts=[Concept(name="Gaussian Splatting", category="method", description="d", confidence=0.9)],
        relationships=[Relationship(
            relationship_type="introduces",
            target_concept="Gaussian Splatting",
            evidence="We introduce 3D Gaussian Splatting",
            confidence=0.9,
        )],
    )


def build(store, source=None, extractor=None, discovery=None):
    if extractor is None:
        extractor = MagicMock()
        extractor.extract = AsyncMock(return_value=extraction())
    return PipelineOrchestrator(
        store=store,
        source=source or MagicMock(),
        extractor=extractor,
        discovery=discovery or MagicMock(),
        events=MagicMock(),
        high_delay_ms=0,
        normal_delay_ms=0,
    )


def mock_store():
    store = MagicMock()
    store.get_stats.return_value = DatabaseStats()
    store.count_relationships_by_type.return_value = 0
    store.count_method_introductions.return_value = 0
    return store


# ---------------------------------------------------------
# Adaptive delay
# ---------------------------------------------------------
def test_adaptive_delay_thresholds():
    assert adaptive_delay_ms(4, 2) == 5000
    assert adaptive_delay_ms(8, 1) == 2000
    assert adaptive_delay_ms(7, 3) == 2000
    assert adaptive_delay_ms(0, 0) == 2000


# ---------------------------------------------------------
# process_one
# ---------------------------------------------------------
def test_process_one_is_idempotent(store, paper):
    source = MagicMock()
    source.fetch_paper = AsyncMock(return_value=paper)
    orchestrator = build(store, source=source)

    assert asyncio.run(orchestrator.process_one("2308.04079")) is True
    assert asyncio.run(orchestrator.process_one("2308.04079v2")) is True

    source.fetch_paper.assert_awaited_once_with("2308.04079")
    orchestrator.extractor.extract.assert_awaited_once()
    stats = store.get_stats()
    assert (stats.papers, stats.concepts, stats.relationships) == (1, 1, 1)


def test_irrelevant_paper_is_not_stored(store, make_paper):
    off_topic = make_paper("2401.09999", title="Protein Folding at Scale", abstract="We fold proteins.")
    source = MagicMock()
    source.fetch_paper = AsyncMock(return_value=off_topic)
    orchestrator = build(store, source=source)

    assert asyncio.run(orchestrator.process_one("2401.09999")) is False
    assert store.find_paper_by_external_id("2401.09999") is None
    orchestrator.extractor.extract.assert_not_awaited()


def test_fetch_failure_becomes_paper_failure(store):
    source = MagicMock()
    source.fetch_paper = AsyncMock(side_effect=FetchFailure("HTTP 503"))
    orchestrator = build(store, source=source)

    with pytest.raises(PaperProcessingFailure) as exc_info:
        asyncio.run(orchestrator.process_one("2401.00001"))
    assert exc_info.value.paper_id == "2401.00001"


def test_extraction_failure_leaves_paper_row(store, paper):
    source = MagicMock()
    source.fetch_paper = AsyncMock(return_value=paper)
    extractor = MagicMock()
    extractor.extract = AsyncMock(side_effect=ExtractionFailure("LLM unreachable"))
    orchestrator = build(store, source=source, extractor=extractor)

    with pytest.raises(PaperProcessingFailure):
        asyncio.run(orchestrator.process_one(paper.arxiv_id))
    assert store.find_paper_by_external_id(paper.arxiv_id) is not None


def test_invalid_extraction_is_still_stored(store, paper):
    source = MagicMock()
    source.fetch_paper = AsyncMock(return_value=paper)
    weak = ExtractionResult(
        concepts=[Concept(name="Gaussian Splatting", category="method", description="d", confidence=0.45)],
    )
    extractor = MagicMock()
    extractor.extract = AsyncMock(return_value=weak)
    orchestrator = build(store, source=source, extractor=extractor)

    assert asyncio.run(orchestrator.process_one(paper.arxiv_id)) is True
    assert orchestrator.low_quality_ids == {paper.arxiv_id}
    # below the 0.7 storage threshold
    assert store.get_stats().concepts == 0


# ---------------------------------------------------------
# build_graph
# ---------------------------------------------------------
@pytest.mark.parametrize("seed_outcome", [
    False,
    PaperProcessingFailure("2308.04079", "fetch failed"),
    OverflowError("int too large to convert to float"),
])
def test_seed_failure_aborts_before_discovery(seed_outcome):
    discovery = MagicMock()
    discovery.discover = AsyncMock(return_value=[])
    orchestrator = build(mock_store(), discovery=discovery)

    with patch.object(orchestrator, "process_one", AsyncMock(side_effect=[seed_outcome])):
        with pytest.raises(SeedProcessingFailure):
            asyncio.run(orchestrator.build_graph(10, "2308.04079"))

    discovery.discover.assert_not_awaited()


def test_batches_settle_every_paper(make_paper):
    candidates = [make_paper(f"2401.0000{i}") for i in range(1, 8)]
    outcomes = {
        "2308.04079": True,
        "2401.00001": True,
        "2401.00002": False,
        "2401.00003": PaperProcessingFailure("2401.00003", "fetch failed"),
        "2401.00004": True,
        "2401.00005": RuntimeError("boom"),
        "2401.00006": True,
        "2401.00007": True,
    }

    def fake_process(paper_id):
        outcome = outcomes[paper_id]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    discovery = MagicMock()
    discovery.discover = AsyncMock(return_value=candidates)
    orchestrator = build(mock_store(), discovery=discovery)
    orchestrator.high_delay_ms = 5000

    sleep = AsyncMock()
    with patch.object(orchestrator, "process_one", AsyncMock(side_effect=fake_process)), \
            patch("workflow.asyncio.sleep", sleep):
        report = asyncio.run(orchestrator.build_graph(10, "2308.04079"))

    discovery.discover.assert_awaited_once_with("2308.04079", 9)

    # two batches, one pause; 3 of 6 settled papers had failed after the first batch
    sleep.assert_awaited_once_with(5.0)

    assert report.processed == ["2308.04079", "2401.00001", "2401.00004", "2401.00006", "2401.00007"]
    assert set(report.failed) == {"2401.00002", "2401.00003", "2401.00005"}
    assert report.failed["2401.00002"] == "irrelevant"
    assert report.success_rate == pytest.approx(62.5)


def test_end_to_end_build(store, paper, make_paper):
    candidates = [
        make_paper("2401.00001", title="Real-time Gaussian Splatting for Avatars"),
        make_paper("2401.00002", title="Compressing 3DGS scenes"),
        make_paper("2401.09999", title="Protein Folding at Scale", abstract="We fold proteins."),
    ]
    by_id = {p.arxiv_id: p for p in [paper] + candidates}

    source = MagicMock()
    source.fetch_paper = AsyncMock(side_effect=lambda arxiv_id: by_id[arxiv_id])
    source.search = AsyncMock(return_value=candidates)
    discovery = DiscoveryAgent(KeywordSearchStrategy(source, DomainProfile()), events=MagicMock())

    orchestrator = build(store, source=source, discovery=discovery)
    report = asyncio.run(orchestrator.build_graph(5, "2308.04079"))

    assert report.processed[0] == "2308.04079"
    assert sorted(report.processed[1:]) == ["2401.00001", "2401.00002"]
    assert report.failed == {}
    assert report.stats.papers == 3
    assert report.stats.concepts == 1
    assert report.stats.relationships == 3
    assert report.success_rate == pytest.approx(100.0)


def test_build_progress_rates():
    progress = BuildProgress("2308.04079")
    assert progress.failure_rate() == 0.0

    progress.record_success("2308.04079")
    progress.record_failure("2401.00002", "irrelevant")
    progress.set_phase(BuildPhase.PROCESSING)

    assert progress.failure_rate() == pytest.approx(0.5)
    assert progress.success_rate() == pytest.approx(0.5)
    snapshot = progress.to_dict()
    assert snapshot["phase"] == "PROCESSING"
    assert (snapshot["processed"], snapshot["failed"]) == (1, 1)
