"""Version Authority Postgres runtime wiring."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from packages.trail_shared.config import TrailSettings
from resources.substrates.postgres import (
    create_postgres_engine,
    create_session_factory,
    ping,
    resolve_postgres_settings,
)


@dataclass(frozen=True)
class VersionPostgresRuntime:
    """Concrete engine and session factory handle for version storage."""

    engine: Engine
    session_factory: sessionmaker[Session]
    health_timeout_seconds: float = 1.0

    @classmethod
    def from_settings(cls, settings: TrailSettings) -> "VersionPostgresRuntime":
        """Build the DB runtime from typed application settings."""
        postgres_config = resolve_postgres_settings(settings)
        engine = create_postgres_engine(postgres_config)
        return cls(
            engine=engine,
            session_factory=create_session_factory(engine),
            health_timeout_seconds=postgres_config.health_timeout_seconds,
        )

    def is_healthy(self) -> bool:
        """Return ``True`` when backing Postgres connection is reachable."""
        return ping(self.engine, timeout_seconds=self.health_timeout_seconds)
