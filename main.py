# main.py
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from agents.arxiv_agent import ArxivAgent
from agents.discovery_agent import DiscoveryAgent, KeywordSearchStrategy
from agents.extraction_agent import ExtractionAgent
from clients.llm_client import LLMClient
from database.db import build_engine, build_session_factory, init_db
from services.domain_relevance import DomainProfile
from services.knowledge_store import KnowledgeStore
from services.pipeline_events import LoggingEventSink
from services.settings import Settings, load_settings
from utils.exceptions import ConfigError, KnowledgeGraphError, SeedProcessingFailure
from workflow import PipelineOrchestrator

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build a Gaussian Splatting knowledge graph from arXiv")
    parser.add_argument("--papers", type=int, default=None, help="Number of papers to integrate, seed included")
    parser.add_argument("--seed", type=str, default=None, help="arXiv id of the seed paper")
    parser.add_argument("--init-db", action="store_true", help="Create the graph tables and exit")
    return parser.parse_args(argv)


def build_orchestrator(settings: Settings, store: KnowledgeStore) -> PipelineOrchestrator:
    events = LoggingEventSink()
    profile = DomainProfile()
    source = ArxivAgent()

    return PipelineOrchestrator(
        store=store,
        source=source,
        extractor=ExtractionAgent(LLMClient.from_settings(settings), events=events),
        discovery=DiscoveryAgent(KeywordSearchStrategy(source, profile), profile=profile, events=events),
        profile=profile,
        events=events,
    )


def run(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings(paper_limit=args.papers)
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"❌ Configuration error: {e}")
        return 1

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = build_engine(settings.database_url)
    try:
        init_db(engine)
        if args.init_db:
            return 0

        store = KnowledgeStore(build_session_factory(engine))
        orchestrator = build_orchestrator(settings, store)
        seed_id = args.seed or settings.seed_paper_id

        report = asyncio.run(orchestrator.build_graph(settings.paper_limit, seed_id))
        logger.info(
            f"🎉 Knowledge graph complete: {len(report.processed)} processed, "
            f"{len(report.failed)} failed ({report.success_rate:.1f}% success)"
        )
        return 0

    except SeedProcessingFailure as e:
        logger.error(f"❌ {e}")
        return 1
    except KnowledgeGraphError as e:
        logger.error(f"❌ Knowledge graph construction failed: {e}", exc_info=True)
        return 1
    finally:
        engine.dispose()
        logger.info("🛑 Store connection closed")


if __name__ == "__main__":
    sys.exit(run())
