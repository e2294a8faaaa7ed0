import inject

from src.market.domain.repositories import EntityStore
from src.market.infrastructure.postgres.orm import PostgresOrm
from src.market.infrastructure.postgres.repositories import SqlAlchemyEntityStore
from src.setup.db_config import get_database_settings


def _bind_dependencies(binder: inject.Binder) -> None:
    settings = get_database_settings()
    orm = PostgresOrm(
        settings.DATABASE_URL,
        echo=settings.DATABASE_ECHO,
        pool_size=settings.DATABASE_POOL_SIZE,
        pool_pre_ping=settings.DATABASE_POOL_PRE_PING,
    )
    binder.bind(PostgresOrm, orm)
    binder.bind(EntityStore, SqlAlchemyEntityStore(orm))


def configure_di() -> None:
    """Configure the DI container once per process."""
    if inject.is_configured():
        return
    inject.configure(_bind_dependencies)
