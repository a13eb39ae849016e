"""Knowledge retrieval and community experience engine.

This package provides:
- Knowledge ingestion and retrieval for AI guidance (RAG/KAG lookup)
- Agent answer synthesis with citations
- Derived community signals (trending topics, suggested connections,
  devotion streaks, paginated member listings, event RSVP state)
- Automatic fallback between a live PostgreSQL store and in-memory data
"""
