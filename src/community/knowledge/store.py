"""Knowledge store interface and in-memory implementation.

The KnowledgeStore contract:

- upsert(node) is idempotent by id; the last write wins.
- search("", top_k) returns the top_k most recently created nodes,
  newest first (browse mode).
- search(text, top_k) matches text case-insensitively as a substring of
  the title or summary, newest first, capped at top_k.
- An unreachable backing store raises StoreUnavailable; it is never
  reported as an empty result.

Concrete implementations include:
- InMemoryKnowledgeStore: process-local store used without a database
- PostgresKnowledgeStore: durable store (see postgres.py)
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List

import structlog

from src.community.knowledge.models import KnowledgeNode


logger = structlog.get_logger(__name__)


class KnowledgeStore(ABC):
    """Abstract interface for persisting and searching knowledge nodes."""

    @abstractmethod
    async def upsert(self, node: KnowledgeNode) -> None:
        """Insert or replace a node by id.

        Args:
            node: The node to store.

        Raises:
            StoreUnavailable: If the backing store cannot be reached.
        """
        pass

    @abstractmethod
    async def search(self, query: str, top_k: int) -> List[KnowledgeNode]:
        """Search nodes by substring, or browse the newest when query is blank.

        Args:
            query: Text to match against title and summary.
            top_k: Maximum number of nodes to return.

        Returns:
            list[KnowledgeNode]: Matching nodes, newest first.

        Raises:
            StoreUnavailable: If the backing store cannot be reached.
        """
        pass


class InMemoryKnowledgeStore(KnowledgeStore):
    """Knowledge store backed by a process-local dict.

    Nodes are kept in insertion order; among nodes with the same creation
    time the most recently written one is returned first.
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, KnowledgeNode] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, node: KnowledgeNode) -> None:
        async with self._lock:
            # Re-insert so a rewritten node counts as the newest write
            self._nodes.pop(node.id, None)
            self._nodes[node.id] = node
        logger.debug("Upserted knowledge node", node_id=node.id)

    async def search(self, query: str, top_k: int) -> List[KnowledgeNode]:
        if top_k < 1:
            return []

        async with self._lock:
            newest_write_first = list(reversed(list(self._nodes.values())))

        needle = query.strip().lower()
        if needle:
            newest_write_first = [
                node
                for node in newest_write_first
                if needle in node.title.lower() or needle in node.summary.lower()
            ]

        ordered = sorted(
            newest_write_first,
            key=lambda node: node.created_at,
            reverse=True,
        )
        return ordered[:top_k]

    def __len__(self) -> int:
        return len(self._nodes)
