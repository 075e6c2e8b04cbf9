# tests/conftest.py
import pytest

from database.db import build_engine, build_session_factory, init_db
from models.knowledge_models import Paper
from services.knowledge_store import KnowledgeStore

GS_TITLE = "3D Gaussian Splatting for Real-Time Radiance Field Rendering"
GS_ABSTRACT = (
    "We introduce 3D Gaussian Splatting for real-time radiance field rendering. "
    "Our method achieves state-of-the-art visual quality on novel view synthesis benchmarks "
    "while training in minutes."
)


@pytest.fixture
def make_paper():
    def _make(arxiv_id="2308.04079", title=GS_TITLE, abstract=GS_ABSTRACT, **overrides):
        fields = {
            "arxiv_id": arxiv_id,
            "title": title,
            "authors": ["Bernhard Kerbl", "Georgios Kopanas"],
            "abstract": abstract,
            "published_date": "2023-08-08T09:00:00Z",
            "published_year": 2023,
            "pdf_url": f"https://arxiv.org/pdf/{arxiv_id}.pdf",
            "categories": ["cs.CV", "cs.GR"],
        }
        fields.update(overrides)
        return Paper(**fields)

    return _make


@pytest.fixture
def paper(make_paper):
    return make_paper()


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'graph.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return KnowledgeStore(session_factory)
