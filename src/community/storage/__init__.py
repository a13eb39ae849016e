"""Durable storage primitives shared by the engine components."""

from src.community.storage.database import Database

__all__ = ["Database"]
