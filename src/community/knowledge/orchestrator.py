"""AI orchestrator composing retrieval and ingestion behind one interface.

The orchestrator is stateless; all state lives in the knowledge store.
execute_agent retrieves knowledge for the invocation's query and builds
a plain-text answer with one bullet per cited node. The citations on the
response are exactly the results the answer was built from.

Ingestion errors are propagated unchanged. Callers such as the create
post use case decide whether a failed ingest is fatal.
"""

from typing import List, Optional

import structlog

from src.community.knowledge.ingestion import GraphIngestionPipeline
from src.community.knowledge.models import (
    AgentInvocation,
    AgentKind,
    AgentResponse,
    KnowledgeIngestionJob,
    RetrievalQuery,
    RetrievalResult,
)
from src.community.knowledge.retrieval import DEFAULT_TOP_K, RetrievalPipeline
from src.community.metrics import EngineMetrics


logger = structlog.get_logger(__name__)


def build_empty_answer(query: str) -> str:
    return (
        f"No knowledge available yet for “{query}”. "
        "Try refining your question or share knowledge with the community."
    )


def build_answer(invocation: AgentInvocation, results: List[RetrievalResult]) -> str:
    """Render the agent answer for a set of retrieval results.

    Args:
        invocation: The agent invocation being answered.
        results: Retrieved knowledge, in rank order.

    Returns:
        str: The empty-state message when there are no results, otherwise
            an agent-specific intro line followed by one bullet per result.
    """
    if not results:
        return build_empty_answer(invocation.query)

    if invocation.agent == AgentKind.GUIDANCE:
        intro = (
            f"Here are some guidance highlights for “{invocation.query}” "
            "based on community wisdom:"
        )
    else:
        intro = f"Related knowledge for “{invocation.query}”:"

    bullets = [f"• {result.node.title}: {result.node.summary}" for result in results]
    return "\n".join([intro, *bullets])


class AiOrchestrator:
    """Single entry point for retrieval, agent execution and ingestion.

    Attributes:
        retrieval: Pipeline used for retrieve() and execute_agent().
        ingestion: Pipeline used for ingest().
        default_top_k: Result count when the invocation context has none.
    """

    def __init__(
        self,
        retrieval: RetrievalPipeline,
        ingestion: GraphIngestionPipeline,
        default_top_k: int = DEFAULT_TOP_K,
        metrics: Optional[EngineMetrics] = None,
    ):
        self.retrieval = retrieval
        self.ingestion = ingestion
        self.default_top_k = default_top_k
        self.metrics = metrics

    async def retrieve(self, query: RetrievalQuery) -> List[RetrievalResult]:
        return await self.retrieval.run(query)

    async def execute_agent(self, invocation: AgentInvocation) -> AgentResponse:
        """Retrieve knowledge for an invocation and synthesize an answer.

        Raises:
            StoreUnavailable: If the knowledge store cannot be reached.
        """
        top_k = self.default_top_k
        if invocation.context is not None and invocation.context.top_k is not None:
            top_k = invocation.context.top_k

        try:
            results = await self.retrieve(
                RetrievalQuery(
                    query=invocation.query,
                    user_id=invocation.user_id,
                    top_k=top_k,
                )
            )
        except Exception:
            self._record(invocation.agent, "error")
            raise

        output = build_answer(invocation, results)
        self._record(invocation.agent, "answered" if results else "empty")

        logger.info(
            "Agent invocation completed",
            invocation_id=invocation.id,
            agent=invocation.agent.value,
            citations=len(results),
        )

        return AgentResponse(
            invocation_id=invocation.id,
            output=output,
            citations=results,
            metadata={
                "agent": invocation.agent.value,
                "context": (
                    invocation.context.model_dump(by_alias=True, exclude_none=True)
                    if invocation.context is not None
                    else None
                ),
            },
        )

    async def ingest(self, job: KnowledgeIngestionJob) -> None:
        """Index a knowledge node.

        Raises:
            IngestionFailure: If the node cannot be normalized or stored.
        """
        await self.ingestion.ingest(job.node)

    def _record(self, agent: AgentKind, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.record_agent_invocation(agent.value, outcome)
