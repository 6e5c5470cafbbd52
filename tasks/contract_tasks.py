"""
tasks/contract_tasks.py
Periodic contract housekeeping.
"""

import asyncio
import logging

from config.database import Database
from services.contract.service import ContractService
from tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _expire() -> dict:
    database = Database.from_settings(null_pool=True)
    try:
        async with database.session() as db:
            return await ContractService(db).expire_contracts()
    finally:
        await database.close()


@celery_app.task(bind=True, max_retries=3)
def expire_contracts(self):
    """Beat task: hourly. Open contracts past expires_at become EXPIRED."""
    try:
        return asyncio.run(_expire())
    except Exception as e:
        logger.exception(f"expire_contracts failed: {e}")
        raise self.retry(exc=e, countdown=60)
