"""Remote mirror of the board -- pluggable persistence adapters.

Provides the BoardPersistence interface with two implementations:
- SQLBoardPersistence: stages/cards tables through BoardRepository
- DemoBoardPersistence: fallback when DATABASE_URL is unset (demo board,
  no-op writes)

create_persistence() picks one from settings. The unconfigured policy is
always the demo fallback, for loads and writes alike.
"""

from __future__ import annotations

import structlog

from src.pipeline.config import Settings
from src.pipeline.persistence.adapter import BoardPersistence
from src.pipeline.persistence.demo import DemoBoardPersistence
from src.pipeline.persistence.repository import BoardRepository
from src.pipeline.persistence.sql import SQLBoardPersistence

logger = structlog.get_logger(__name__)


def create_persistence(settings: Settings) -> BoardPersistence:
    """Build the adapter matching the configured remote store.

    Raises:
        ConfigurationError: If DATABASE_URL is set but unusable.
    """
    if not settings.remote_configured:
        logger.warning("persistence.demo_fallback")
        return DemoBoardPersistence()

    from src.pipeline.core.database import get_engine, get_session

    get_engine(settings)  # validate the URL up front
    repository = BoardRepository(session_factory=get_session)
    logger.info("persistence.sql_configured")
    return SQLBoardPersistence(repository, read_attempts=settings.REMOTE_READ_ATTEMPTS)


__all__ = [
    "BoardPersistence",
    "BoardRepository",
    "DemoBoardPersistence",
    "SQLBoardPersistence",
    "create_persistence",
]
