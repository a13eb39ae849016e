"""Knowledge ingestion and retrieval for AI guidance.

This package implements:
- A knowledge store with durable (PostgreSQL) and in-memory backends
- A two-stage retrieval pipeline (search, optional rerank)
- A knowledge-graph ingestion pipeline
- The AI orchestrator that synthesizes cited answers
"""

from src.community.knowledge.ingestion import GraphIngestionPipeline
from src.community.knowledge.models import (
    AgentContext,
    AgentInvocation,
    AgentKind,
    AgentResponse,
    KnowledgeIngestionJob,
    KnowledgeMetadata,
    KnowledgeNode,
    KnowledgeSource,
    RetrievalQuery,
    RetrievalResult,
)
from src.community.knowledge.orchestrator import AiOrchestrator
from src.community.knowledge.postgres import PostgresKnowledgeStore
from src.community.knowledge.retrieval import (
    Reranker,
    RetrievalPipeline,
    TermOverlapReranker,
)
from src.community.knowledge.store import InMemoryKnowledgeStore, KnowledgeStore

__all__ = [
    "AgentContext",
    "AgentInvocation",
    "AgentKind",
    "AgentResponse",
    "AiOrchestrator",
    "GraphIngestionPipeline",
    "InMemoryKnowledgeStore",
    "KnowledgeIngestionJob",
    "KnowledgeMetadata",
    "KnowledgeNode",
    "KnowledgeSource",
    "KnowledgeStore",
    "PostgresKnowledgeStore",
    "Reranker",
    "RetrievalPipeline",
    "RetrievalQuery",
    "RetrievalResult",
    "TermOverlapReranker",
]
