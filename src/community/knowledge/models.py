"""Knowledge and agent models.

This module defines the data models for knowledge retrieval, including:
- KnowledgeSource: Where a knowledge node originated
- KnowledgeMetadata: Typed metadata bag attached to a node
- KnowledgeNode: A unit of searchable knowledge
- RetrievalQuery / RetrievalResult: Input and output of retrieval
- AgentKind / AgentContext / AgentInvocation / AgentResponse: Agent calls
- KnowledgeIngestionJob: A request to (re-)index a node

Metadata and agent context are typed key-value maps. Only the documented
keys are kept; anything else is dropped and logged at debug level.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


logger = structlog.get_logger(__name__)


def _recognized_keys(model: type[BaseModel]) -> FrozenSet[str]:
    keys = set()
    for name, field in model.model_fields.items():
        keys.add(name)
        if field.alias:
            keys.add(field.alias)
    return frozenset(keys)


def _drop_unrecognized(model: type[BaseModel], data: Any) -> Any:
    if not isinstance(data, dict):
        return data
    recognized = _recognized_keys(model)
    unknown = sorted(key for key in data if key not in recognized)
    if not unknown:
        return data
    logger.debug(
        "Ignoring unrecognized keys",
        model=model.__name__,
        keys=unknown,
    )
    return {key: value for key, value in data.items() if key in recognized}


class KnowledgeSource(str, Enum):
    """Origin of a knowledge node."""

    POST = "post"
    COMMENT = "comment"
    EXTERNAL = "external"


class KnowledgeMetadata(BaseModel):
    """Typed metadata attached to a knowledge node.

    Recognized keys (camelCase aliases are accepted on input and used on
    output so stored JSON matches what clients send):

    - userId: Author of the content the node was derived from.
    - spiritualTopic: Primary topic of the originating post.
    - tags: Free-form tags of the originating post.
    - url: Canonical link for external knowledge.
    - objectPath: Storage path of an attached object.
    - embeddingId: Identifier of the node's vector embedding.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    user_id: Optional[str] = Field(default=None, alias="userId")
    spiritual_topic: Optional[str] = Field(default=None, alias="spiritualTopic")
    tags: List[str] = Field(default_factory=list)
    url: Optional[str] = None
    object_path: Optional[str] = Field(default=None, alias="objectPath")
    embedding_id: Optional[str] = Field(default=None, alias="embeddingId")

    @model_validator(mode="before")
    @classmethod
    def drop_unrecognized_keys(cls, data: Any) -> Any:
        return _drop_unrecognized(cls, data)

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, omitting unset values."""
        return self.model_dump(by_alias=True, exclude_none=True)


class KnowledgeNode(BaseModel):
    """A unit of searchable knowledge.

    Nodes are immutable. Re-ingesting a node with the same id replaces the
    stored node as a whole (last write wins).

    Attributes:
        id: Unique node identifier (the source entity id for posts).
        source: Where the content came from.
        title: Short title shown in citations.
        summary: Searchable body text.
        metadata: Typed metadata bag.
        created_at: When the node was created (UTC).
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Unique node identifier",
    )

    source: KnowledgeSource = Field(
        default=KnowledgeSource.EXTERNAL,
        description="Where the content came from",
    )

    title: str = Field(
        default="",
        description="Short title shown in citations",
    )

    summary: str = Field(
        default="",
        description="Searchable body text",
    )

    metadata: KnowledgeMetadata = Field(
        default_factory=KnowledgeMetadata,
        description="Typed metadata bag",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the node was created (UTC timezone)",
    )

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class RetrievalQuery(BaseModel):
    """A retrieval request.

    An empty query string selects browse mode: the most recent nodes.
    """

    query: str = ""
    user_id: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    top_k: Optional[int] = Field(default=None, ge=1, le=50)


class RetrievalResult(BaseModel):
    """A ranked knowledge node. Built per query and never persisted."""

    node: KnowledgeNode
    relevance: float = Field(..., ge=0.0, le=1.0)
    highlights: List[str] = Field(default_factory=list)


class AgentKind(str, Enum):
    """Agents that can be invoked through the orchestrator."""

    RAG = "rag"
    KAG = "kag"
    GUIDANCE = "guidance"


class AgentContext(BaseModel):
    """Typed invocation context.

    Recognized keys:
    - topK: Number of knowledge nodes to retrieve (1-50).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    top_k: Optional[int] = Field(default=None, alias="topK", ge=1, le=50)

    @model_validator(mode="before")
    @classmethod
    def drop_unrecognized_keys(cls, data: Any) -> Any:
        return _drop_unrecognized(cls, data)


class AgentInvocation(BaseModel):
    """A single agent request. Created per request and consumed once."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    agent: AgentKind = AgentKind.RAG
    query: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    context: Optional[AgentContext] = None


class AgentResponse(BaseModel):
    """Synthesized agent answer.

    citations is exactly the result set the output was built from.
    """

    invocation_id: str
    output: str
    citations: List[RetrievalResult] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class KnowledgeIngestionJob(BaseModel):
    """Request to index a knowledge node."""

    node: KnowledgeNode
