"""Two-stage retrieval: store search followed by an optional rerank.

Stage 1 searches the knowledge store with the query text. Stage 2, when
a Reranker is configured, may reorder or drop candidates using the
original query. Relevance is assigned from the final rank with a linear
decay, so scores are always non-increasing down the result list. The
decay stands in for a real similarity score and can be swapped for one
as long as ordering is preserved.
"""

import re
import time
from abc import ABC, abstractmethod
from typing import List, Optional

import structlog

from src.community.knowledge.models import (
    KnowledgeNode,
    RetrievalQuery,
    RetrievalResult,
)
from src.community.knowledge.store import KnowledgeStore
from src.community.metrics import EngineMetrics


logger = structlog.get_logger(__name__)


DEFAULT_TOP_K = 5
RELEVANCE_DECAY = 0.1

_TERM_PATTERN = re.compile(r"\w+")


def relevance_for_rank(rank: int) -> float:
    """Relevance of the result at a zero-based rank, clamped at 0."""
    return max(0.0, 1.0 - rank * RELEVANCE_DECAY)


class Reranker(ABC):
    """Optional second retrieval stage."""

    @abstractmethod
    async def rerank(
        self,
        query: str,
        nodes: List[KnowledgeNode],
    ) -> List[KnowledgeNode]:
        """Reorder or filter candidate nodes for a query.

        Args:
            query: The original query text.
            nodes: Candidates in search order.

        Returns:
            list[KnowledgeNode]: A subset of the candidates in final order.
        """
        pass


class TermOverlapReranker(Reranker):
    """Orders candidates by how many distinct query terms they contain.

    Ties keep the search order, so a query whose terms all appear
    everywhere leaves the ranking unchanged.
    """

    def __init__(self, drop_unmatched: bool = False):
        self.drop_unmatched = drop_unmatched

    async def rerank(
        self,
        query: str,
        nodes: List[KnowledgeNode],
    ) -> List[KnowledgeNode]:
        terms = {term.lower() for term in _TERM_PATTERN.findall(query)}
        if not terms:
            return list(nodes)

        def overlap(node: KnowledgeNode) -> int:
            text = f"{node.title} {node.summary}".lower()
            return sum(1 for term in terms if term in text)

        scored = [(overlap(node), node) for node in nodes]
        if self.drop_unmatched:
            scored = [(score, node) for score, node in scored if score > 0]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [node for _, node in scored]


class RetrievalPipeline:
    """Turns a query into ranked knowledge nodes.

    Attributes:
        store: Knowledge store searched in stage 1.
        reranker: Optional stage 2.
        default_top_k: Result count used when the query does not set one.
    """

    def __init__(
        self,
        store: KnowledgeStore,
        reranker: Optional[Reranker] = None,
        default_top_k: int = DEFAULT_TOP_K,
        metrics: Optional[EngineMetrics] = None,
    ):
        self.store = store
        self.reranker = reranker
        self.default_top_k = default_top_k
        self.metrics = metrics

    @property
    def supports_rerank(self) -> bool:
        return self.reranker is not None

    async def run(self, query: RetrievalQuery) -> List[RetrievalResult]:
        """Search, optionally rerank, then score by rank.

        Raises:
            StoreUnavailable: If the knowledge store cannot be reached.
        """
        started = time.perf_counter()
        top_k = query.top_k or self.default_top_k

        nodes = await self.store.search(query.query, top_k)
        if self.reranker is not None and nodes:
            nodes = await self.reranker.rerank(query.query, nodes)

        results = [
            RetrievalResult(node=node, relevance=relevance_for_rank(rank))
            for rank, node in enumerate(nodes)
        ]

        duration = time.perf_counter() - started
        if self.metrics is not None:
            self.metrics.record_retrieval_duration(duration)
        logger.debug(
            "Retrieval completed",
            top_k=top_k,
            results=len(results),
            reranked=self.supports_rerank,
        )
        return results
