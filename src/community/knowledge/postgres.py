"""PostgreSQL implementation of the knowledge store.

Expected schema:

    CREATE TABLE knowledge_nodes (
        id          TEXT PRIMARY KEY,
        source      TEXT NOT NULL,
        title       TEXT NOT NULL,
        summary     TEXT NOT NULL,
        metadata    JSONB NOT NULL DEFAULT '{}',
        created_at  TIMESTAMPTZ NOT NULL
    );
"""

import json
from datetime import timezone
from typing import Any, List, Mapping

import structlog

from src.community.knowledge.models import (
    KnowledgeMetadata,
    KnowledgeNode,
    KnowledgeSource,
)
from src.community.knowledge.store import KnowledgeStore
from src.community.storage.database import Database


logger = structlog.get_logger(__name__)


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so user text matches literally.

    The backslash is escaped first so the escapes added for % and _ are
    not themselves doubled.
    """
    return (
        text.replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )


def row_to_node(row: Mapping[str, Any]) -> KnowledgeNode:
    """Map a knowledge_nodes row to a KnowledgeNode."""
    metadata = row["metadata"] or {}
    if isinstance(metadata, str):
        metadata = json.loads(metadata)

    created_at = row["created_at"]
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)

    return KnowledgeNode(
        id=row["id"],
        source=KnowledgeSource(row["source"]),
        title=row["title"] or "",
        summary=row["summary"] or "",
        metadata=KnowledgeMetadata.model_validate(metadata),
        created_at=created_at,
    )


class PostgresKnowledgeStore(KnowledgeStore):
    """Knowledge store backed by the knowledge_nodes table.

    Attributes:
        database: Shared connection pool wrapper.
    """

    def __init__(self, database: Database):
        self.database = database

    async def upsert(self, node: KnowledgeNode) -> None:
        async with self.database.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO knowledge_nodes (
                    id, source, title, summary, metadata, created_at
                ) VALUES ($1, $2, $3, $4, $5::jsonb, $6)
                ON CONFLICT (id) DO UPDATE SET
                    source = EXCLUDED.source,
                    title = EXCLUDED.title,
                    summary = EXCLUDED.summary,
                    metadata = EXCLUDED.metadata,
                    created_at = EXCLUDED.created_at
                """,
                node.id,
                node.source.value,
                node.title,
                node.summary,
                json.dumps(node.metadata.to_json_dict()),
                node.created_at,
            )
        logger.info(
            "Upserted knowledge node",
            node_id=node.id,
            source=node.source.value,
        )

    async def search(self, query: str, top_k: int) -> List[KnowledgeNode]:
        if top_k < 1:
            return []

        trimmed = query.strip()
        async with self.database.acquire() as conn:
            if not trimmed:
                rows = await conn.fetch(
                    """
                    SELECT id, source, title, summary, metadata, created_at
                    FROM knowledge_nodes
                    ORDER BY created_at DESC
                    LIMIT $1
                    """,
                    top_k,
                )
            else:
                rows = await conn.fetch(
                    """
                    SELECT id, source, title, summary, metadata, created_at
                    FROM knowledge_nodes
                    WHERE summary ILIKE $1 ESCAPE '\\'
                       OR title ILIKE $1 ESCAPE '\\'
                    ORDER BY created_at DESC
                    LIMIT $2
                    """,
                    f"%{escape_like(trimmed)}%",
                    top_k,
                )

        return [row_to_node(row) for row in rows]
