"""Application use cases composing the experience and knowledge components.

CreatePostUseCase stores a post and then indexes it for AI guidance. The
indexing step is best effort: an IngestionFailure is logged and the post
is still returned, because losing a search entry must not lose the post.
"""

import uuid
from typing import Any, Dict, List, Optional

import pydantic
import structlog

from src.community.errors import IngestionFailure, ValidationError
from src.community.experience.models import PostRecord
from src.community.experience.service import ExperienceService
from src.community.knowledge.ingestion import MAX_TITLE_LENGTH
from src.community.knowledge.models import (
    AgentInvocation,
    AgentResponse,
    KnowledgeIngestionJob,
    KnowledgeMetadata,
    KnowledgeNode,
    KnowledgeSource,
)
from src.community.knowledge.orchestrator import AiOrchestrator


logger = structlog.get_logger(__name__)


class CreatePostUseCase:
    """Create a post and index it as a knowledge node."""

    def __init__(self, experience: ExperienceService, orchestrator: AiOrchestrator):
        self.experience = experience
        self.orchestrator = orchestrator

    async def execute(
        self,
        user_id: str,
        content: str,
        spiritual_topic: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> PostRecord:
        """Store the post, then ingest it.

        Raises:
            ValidationError: If the author or content is missing.
            StoreUnavailable: If the post itself cannot be stored.
        """
        if not user_id or not user_id.strip():
            raise ValidationError("user_id is required")
        if not content or not content.strip():
            raise ValidationError("content is required")

        post = PostRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            content=content,
            spiritual_topic=spiritual_topic,
            tags=list(tags or []),
            created_at=self.experience.clock(),
        )
        await self.experience.create_post(post)

        node = KnowledgeNode(
            id=post.id,
            source=KnowledgeSource.POST,
            title=content[:MAX_TITLE_LENGTH],
            summary=content,
            metadata=KnowledgeMetadata(
                user_id=user_id,
                spiritual_topic=spiritual_topic,
                tags=post.tags,
            ),
            created_at=post.created_at,
        )
        try:
            await self.orchestrator.ingest(KnowledgeIngestionJob(node=node))
        except IngestionFailure as e:
            logger.error(
                "Post stored but knowledge ingestion failed",
                post_id=post.id,
                error=str(e),
            )

        return post


class AskAgentUseCase:
    """Build an agent invocation from caller input and execute it."""

    def __init__(self, orchestrator: AiOrchestrator):
        self.orchestrator = orchestrator

    async def execute(
        self,
        query: str,
        agent: str = "rag",
        user_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> AgentResponse:
        """Run an agent.

        Raises:
            ValidationError: If the query is empty or the agent or context
                is malformed.
        """
        try:
            invocation = AgentInvocation(
                id=str(uuid.uuid4()),
                agent=agent,
                query=query,
                user_id=user_id,
                context=context,
            )
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid agent invocation: {e}", original_error=e) from e

        return await self.orchestrator.execute_agent(invocation)
