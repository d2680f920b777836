import logging
from typing import Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from busline.models.models import AuditLog
from busline.services.errors import transaction

logger = logging.getLogger("busline.audit")


async def log_audit(db: AsyncSession, actor_id: Optional[int], action: str, object_type: str = None, object_id: str = None, detail: dict = None) -> AuditLog:
    """Stage an audit row in the caller's transaction.

    ``detail`` may hold Decimals and dates; it is stored JSON-encoded.
    """
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        object_type=object_type,
        object_id=object_id,
        detail=jsonable_encoder(detail) if detail is not None else None,
    )
    db.add(entry)
    logger.info("audit %s %s/%s by %s", action, object_type, object_id, actor_id or "system")
    return entry


async def audit_trail(db: AsyncSession, object_type: str, object_id: str):
    stmt = (
        sa_select(AuditLog)
        .where(AuditLog.object_type == object_type)
        .where(AuditLog.object_id == object_id)
        .order_by(AuditLog.id)
    )
    async with transaction(db):
        return list((await db.execute(stmt)).scalars().all())
