"""Prometheus metrics for engine observability.

Metrics Defined:
- community_fallback_reads_total: Reads served from fallback data, by
  operation and reason ("error" or "empty")
- community_agent_invocations_total: Agent invocations by agent and outcome
- community_knowledge_ingestions_total: Ingestion attempts by status
- community_retrieval_duration_seconds: Histogram of retrieval latency

Metrics are exposed at the `/metrics` endpoint in Prometheus format.
"""

from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


# Retrieval is an indexed lookup; buckets cover 5ms to 5s
DEFAULT_RETRIEVAL_BUCKETS = (
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
)


class EngineMetrics:
    """Container for all engine Prometheus metrics.

    Supports custom registries so tests can create isolated instances
    without clashing on metric names in the global registry.

    Attributes:
        registry: The Prometheus registry the metrics are registered with.
        fallback_reads: Counter of reads served by the fallback source.
        agent_invocations: Counter of agent invocations.
        knowledge_ingestions: Counter of ingestion attempts.
        retrieval_duration: Histogram of retrieval latency in seconds.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics.

        Args:
            registry: Registry to register with. Defaults to the global
                Prometheus registry.
        """
        self.registry = registry if registry is not None else REGISTRY

        self.fallback_reads = Counter(
            "community_fallback_reads_total",
            "Reads served from fallback data instead of the live store",
            ["operation", "reason"],
            registry=self.registry,
        )
        self.agent_invocations = Counter(
            "community_agent_invocations_total",
            "Agent invocations",
            ["agent", "outcome"],
            registry=self.registry,
        )
        self.knowledge_ingestions = Counter(
            "community_knowledge_ingestions_total",
            "Knowledge ingestion attempts",
            ["status"],
            registry=self.registry,
        )
        self.retrieval_duration = Histogram(
            "community_retrieval_duration_seconds",
            "Knowledge retrieval duration",
            buckets=DEFAULT_RETRIEVAL_BUCKETS,
            registry=self.registry,
        )

    def record_fallback(self, operation: str, reason: str) -> None:
        """Record a read that was served by the fallback source."""
        self.fallback_reads.labels(operation=operation, reason=reason).inc()

    def record_agent_invocation(self, agent: str, outcome: str) -> None:
        self.agent_invocations.labels(agent=agent, outcome=outcome).inc()

    def record_ingestion(self, status: str) -> None:
        self.knowledge_ingestions.labels(status=status).inc()

    def record_retrieval_duration(self, duration: float) -> None:
        self.retrieval_duration.observe(duration)

    def generate(self) -> bytes:
        """Render all metrics in Prometheus text format."""
        return generate_latest(self.registry)


_default_metrics: Optional[EngineMetrics] = None


def get_metrics() -> EngineMetrics:
    """Return the process-wide metrics instance bound to the global registry."""
    global _default_metrics
    if _default_metrics is None:
        _default_metrics = EngineMetrics()
    return _default_metrics
