"""Persistence layer for program factory sessions, templates and jobs."""

from __future__ import annotations

from typing import Callable, Dict, Optional

from ..config import FactoryConfig, load_config
from .inmemory import InMemoryFactoryRepository
from .models import Decision, JobRecord, PromptTemplate, StepDataRecord, WorkflowSession
from .postgres import PostgresFactoryRepository
from .repository import FactoryRepository
from .sqlite import SQLiteFactoryRepository

# URL scheme to backend constructor; each receives the URL minus ``sqlite://``
# for SQLite and the full DSN for Postgres.
_BACKENDS: Dict[str, Callable[[str], FactoryRepository]] = {
    "sqlite": lambda url: SQLiteFactoryRepository(url[len("sqlite://"):]),
    "postgres": PostgresFactoryRepository,
    "postgresql": PostgresFactoryRepository,
}

_repository_instance: FactoryRepository | None = None


def get_repository(
    database_url: Optional[str] = None, config: Optional[FactoryConfig] = None
) -> FactoryRepository:
    """Return the process-wide repository, creating it on first use.

    ``database_url`` wins over the configured one (which itself honours
    ``PROGRAMFACTORY_DATABASE_URL`` and ``DATABASE_URL``). Without any URL the
    sessions live in memory. Passing a URL or config always builds a new
    repository and makes it the shared one.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    database_url = database_url or (config or load_config()).database_url
    if not database_url:
        _repository_instance = InMemoryFactoryRepository()
        return _repository_instance

    scheme = database_url.split("://", 1)[0]
    backend = _BACKENDS.get(scheme)
    if backend is None:
        raise ValueError(f"Unsupported database backend: {scheme}")
    _repository_instance = backend(database_url)
    return _repository_instance


__all__ = [
    "Decision",
    "FactoryRepository",
    "InMemoryFactoryRepository",
    "JobRecord",
    "PostgresFactoryRepository",
    "PromptTemplate",
    "SQLiteFactoryRepository",
    "StepDataRecord",
    "WorkflowSession",
    "get_repository",
]
