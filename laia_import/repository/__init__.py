"""Storage back ends for the import pipeline."""

from .base import Repository, RepositoryError
from .memory import InMemoryRepository

__all__ = [
    "InMemoryRepository",
    "Repository",
    "RepositoryError",
]
