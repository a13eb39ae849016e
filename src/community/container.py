"""Dependency wiring for the engine.

build_container assembles every component from EngineSettings. With a
database URL the knowledge store and the live experience source are
PostgreSQL-backed; without one, the engine runs entirely in memory.
The fallback store is always created because reads fall back to it.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from src.community.config import EngineSettings
from src.community.experience.fallback import FallbackStore
from src.community.experience.repository import PostgresCommunityRepository
from src.community.experience.service import ExperienceService
from src.community.experience.sources import LiveDataSource
from src.community.knowledge.ingestion import GraphIngestionPipeline
from src.community.knowledge.orchestrator import AiOrchestrator
from src.community.knowledge.postgres import PostgresKnowledgeStore
from src.community.knowledge.retrieval import RetrievalPipeline, TermOverlapReranker
from src.community.knowledge.store import InMemoryKnowledgeStore, KnowledgeStore
from src.community.metrics import EngineMetrics, get_metrics
from src.community.storage.database import Database
from src.community.usecases import AskAgentUseCase, CreatePostUseCase


logger = structlog.get_logger(__name__)


@dataclass
class ServiceContainer:
    """All wired engine components."""

    settings: EngineSettings
    metrics: EngineMetrics
    database: Optional[Database]
    knowledge_store: KnowledgeStore
    orchestrator: AiOrchestrator
    fallback_store: FallbackStore
    experience: ExperienceService
    create_post: CreatePostUseCase
    ask_agent: AskAgentUseCase

    async def start(self) -> None:
        if self.database is not None:
            await self.database.connect()

    async def stop(self) -> None:
        if self.database is not None:
            await self.database.disconnect()

    async def is_ready(self) -> bool:
        """True when the durable store, if configured, answers queries."""
        if self.database is None:
            return True
        return await self.database.health_check()


def build_container(
    settings: EngineSettings,
    metrics: Optional[EngineMetrics] = None,
    fallback_store: Optional[FallbackStore] = None,
) -> ServiceContainer:
    """Wire the engine from settings.

    Args:
        settings: Validated engine settings.
        metrics: Metrics instance; defaults to the process-wide one.
        fallback_store: Shared fallback maps; a fresh seeded store if None.
    """
    metrics = metrics or get_metrics()
    fallback_store = fallback_store or FallbackStore()

    database: Optional[Database] = None
    live: Optional[LiveDataSource] = None
    if settings.uses_durable_store:
        database = Database(
            settings.database_url,
            min_pool_size=settings.db_min_pool_size,
            max_pool_size=settings.db_max_pool_size,
        )
        knowledge_store: KnowledgeStore = PostgresKnowledgeStore(database)
        live = LiveDataSource(
            PostgresCommunityRepository(database),
            trending_scan_limit=settings.trending_scan_limit,
        )
    else:
        knowledge_store = InMemoryKnowledgeStore()

    orchestrator = AiOrchestrator(
        retrieval=RetrievalPipeline(
            knowledge_store,
            reranker=TermOverlapReranker(),
            default_top_k=settings.default_top_k,
            metrics=metrics,
        ),
        ingestion=GraphIngestionPipeline(knowledge_store, metrics=metrics),
        default_top_k=settings.default_top_k,
        metrics=metrics,
    )

    experience = ExperienceService(
        fallback_store,
        live=live,
        store_timeout=settings.store_timeout_seconds,
        metrics=metrics,
    )

    logger.info(
        "Engine wired",
        durable_store=settings.uses_durable_store,
        knowledge_store=type(knowledge_store).__name__,
    )

    return ServiceContainer(
        settings=settings,
        metrics=metrics,
        database=database,
        knowledge_store=knowledge_store,
        orchestrator=orchestrator,
        fallback_store=fallback_store,
        experience=experience,
        create_post=CreatePostUseCase(experience, orchestrator),
        ask_agent=AskAgentUseCase(orchestrator),
    )
