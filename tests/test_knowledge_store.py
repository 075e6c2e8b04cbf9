# tests/test_knowledge_store.py
import pytest
from sqlalchemy import select

from database.models.concept_model import Concept as ConceptRow
from database.models.paper_model import Paper as PaperRow
from models.knowledge_models import Concept, Dataset, Method, Metric, Relationship
from utils.exceptions import StorageFailure


def gs_concept(category="method"):
    return Concept(name="3D Gaussian Splatting", category=category, description="Explicit primitives", confidence=0.9)


def introduces(target="3D Gaussian Splatting"):
    return Relationship(
        relationship_type="introduces",
        target_concept=target,
        evidence="We introduce 3D Gaussian Splatting",
        confidence=0.9,
    )


def test_insert_and_find_paper(store, paper, session_factory):
    assert store.find_paper_by_external_id(paper.arxiv_id) is None

    paper_id = store.insert_paper(paper)

    assert store.find_paper_by_external_id(paper.arxiv_id) == paper_id
    with session_factory() as db:
        row = db.get(PaperRow, paper_id)
        assert row.authors == ["Bernhard Kerbl", "Georgios Kopanas"]
        assert row.published_year == 2023


def test_duplicate_paper_insert_raises_storage_failure(store, paper):
    store.insert_paper(paper)
    with pytest.raises(StorageFailure):
        store.insert_paper(paper)


def test_upsert_concept_bumps_frequency(store, session_factory):
    first = store.upsert_concept(gs_concept())
    second = store.upsert_concept(gs_concept())
    other_category = store.upsert_concept(gs_concept(category="technique"))

    assert first == second
    assert other_category != first
    with session_factory() as db:
        frequency = db.scalar(select(ConceptRow.frequency).where(ConceptRow.id == first))
    assert frequency == 2


def test_concept_link_is_idempotent(store, paper):
    paper_id = store.insert_paper(paper)
    concept_id = store.upsert_concept(gs_concept())

    assert store.link_paper_concept(paper_id, concept_id, "mentions", 0.9) is True
    assert store.link_paper_concept(paper_id, concept_id, "mentions", 0.9) is False


def test_duplicate_relationship_returns_false(store, paper):
    paper_id = store.insert_paper(paper)

    assert store.insert_relationship(paper_id, introduces()) is True
    assert store.insert_relationship(paper_id, introduces()) is False
    assert store.insert_relationship(paper_id, introduces("Radiance Field")) is True


def test_artifacts_are_unique_by_name(store, paper):
    paper_id = store.insert_paper(paper)
    method = Method(name="Tile rasterizer", description="Sorts splats per tile", confidence=0.9)

    method_id = store.upsert_method(method)
    assert store.upsert_method(method) == method_id
    assert store.link_paper_method(paper_id, method_id, True, 0.9) is True
    assert store.link_paper_method(paper_id, method_id, True, 0.9) is False

    dataset_id = store.upsert_dataset(Dataset(name="Mip-NeRF 360"))
    metric_id = store.upsert_metric(Metric(name="PSNR", unit="dB", higher_is_better=True))
    assert store.link_paper_dataset(paper_id, dataset_id) is True
    assert store.link_paper_metric(paper_id, metric_id) is True


def test_stats_and_report_counts(store, paper, make_paper):
    paper_id = store.insert_paper(paper)
    other_id = store.insert_paper(make_paper("2401.00001"))

    store.link_paper_concept(paper_id, store.upsert_concept(gs_concept()), "mentions", 0.9)
    store.insert_relationship(paper_id, introduces())
    store.insert_relationship(other_id, Relationship(
        relationship_type="improves_on",
        target_concept="3D Gaussian Splatting",
        evidence="Improves rendering speed over 3DGS",
        confidence=0.8,
    ))
    store.link_paper_method(paper_id, store.upsert_method(Method(name="3DGS", description="d", confidence=0.9)), True, 0.9)
    store.link_paper_method(other_id, store.upsert_method(Method(name="NeRF", description="d", confidence=0.9)), False, 0.9)

    stats = store.get_stats()

    assert stats.papers == 2
    assert stats.concepts == 1
    assert stats.relationships == 2
    assert stats.methods == 2
    assert stats.datasets == 0
    assert store.count_relationships_by_type("improves_on") == 1
    assert store.count_method_introductions() == 1
