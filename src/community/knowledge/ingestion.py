"""Knowledge-graph ingestion path.

Ingestion is kept apart from retrieval so that normalization rules can
change without touching the query side, and so that an ingestion error
is reported as IngestionFailure instead of leaking store internals.
Whether a failure is fatal is decided by the calling use case.
"""

from typing import Optional

import structlog

from src.community.errors import IngestionFailure
from src.community.knowledge.models import KnowledgeNode
from src.community.knowledge.store import KnowledgeStore
from src.community.metrics import EngineMetrics


logger = structlog.get_logger(__name__)


MAX_TITLE_LENGTH = 120


def normalize_node(node: KnowledgeNode) -> KnowledgeNode:
    """Trim text fields and derive a title when none was given.

    Raises:
        IngestionFailure: If the node has no summary text.
    """
    summary = node.summary.strip()
    if not summary:
        raise IngestionFailure(f"Knowledge node {node.id} has an empty summary")

    title = node.title.strip() or summary
    title = title[:MAX_TITLE_LENGTH].rstrip()

    if title == node.title and summary == node.summary:
        return node
    return node.model_copy(update={"title": title, "summary": summary})


class GraphIngestionPipeline:
    """Normalizes knowledge nodes and upserts them into the store."""

    def __init__(
        self,
        store: KnowledgeStore,
        metrics: Optional[EngineMetrics] = None,
    ):
        self.store = store
        self.metrics = metrics

    async def ingest(self, node: KnowledgeNode) -> None:
        """Normalize and upsert a node.

        Raises:
            IngestionFailure: If normalization or the upsert fails.
        """
        try:
            normalized = normalize_node(node)
            await self.store.upsert(normalized)
        except IngestionFailure:
            self._record("failed")
            raise
        except Exception as e:
            self._record("failed")
            raise IngestionFailure(
                f"Failed to ingest knowledge node {node.id}: {e}",
                original_error=e,
            ) from e

        self._record("succeeded")
        logger.info(
            "Ingested knowledge node",
            node_id=node.id,
            source=node.source.value,
        )

    def _record(self, status: str) -> None:
        if self.metrics is not None:
            self.metrics.record_ingestion(status)
