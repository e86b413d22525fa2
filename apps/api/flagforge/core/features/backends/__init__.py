"""
Feature storage backends.

database: SQLAlchemy rows (FEATURE_BACKEND=database, the default)
memory: process-local dict for development and tests
"""

from .database import DatabaseFeatureBackend
from .memory import MemoryFeatureBackend

__all__ = ["DatabaseFeatureBackend", "MemoryFeatureBackend"]
