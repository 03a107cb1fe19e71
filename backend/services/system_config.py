"""
System configuration history.

The current configuration is the newest ``SystemConfiguration`` row. At
startup the configured ``SERVICE_STATUS`` and ``CONTRACT_END_DATE`` are
recorded as a new row whenever they differ from the current one.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import as_utc
from models import SystemConfiguration

logger = logging.getLogger(__name__)


async def get_current_configuration(db: AsyncSession) -> Optional[SystemConfiguration]:
    result = await db.execute(
        select(SystemConfiguration).order_by(SystemConfiguration.id.desc()).limit(1)
    )
    return result.scalar_one_or_none()


async def sync_configuration_from_settings(db: AsyncSession) -> SystemConfiguration:
    """
    Record the configured values if they differ from the current row.

    Returns the configuration in effect afterwards.
    """
    current = await get_current_configuration(db)
    contract_end = as_utc(settings.CONTRACT_END_DATE)

    if (
        current is not None
        and current.service_status == settings.SERVICE_STATUS
        and as_utc(current.contract_end_date) == contract_end
    ):
        return current

    config = SystemConfiguration(
        service_status=settings.SERVICE_STATUS,
        contract_end_date=contract_end,
    )
    db.add(config)
    await db.commit()
    logger.info(
        f"System configuration recorded: status={config.service_status} "
        f"contract_end_date={config.contract_end_date}"
    )
    return config
