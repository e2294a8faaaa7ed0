import asyncio
import logging

import inject

from src.market.application.leasing import LeaseManager
from src.market.infrastructure.celery.app import celery_app
from src.market.infrastructure.postgres.orm import PostgresOrm
from src.setup.app_config import configure_di

logger = logging.getLogger(__name__)


async def _sweep() -> int:
    try:
        return await LeaseManager().sweep_expired()
    finally:
        # Each run gets its own event loop; pooled connections must not outlive it.
        await inject.instance(PostgresOrm).dispose()


@celery_app.task(name="sweep_expired_leases")
def sweep_expired_leases() -> int:
    """Periodic beat job: return tasks with expired leases to the pool."""
    configure_di()
    try:
        released = asyncio.run(_sweep())
    except Exception:
        logger.exception("Lease sweep failed")
        raise
    return released
