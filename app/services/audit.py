from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.models import AuditLog


def client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def log_audit(db: AsyncSession, actor_id: str, action: str, object_type: str = None, object_id: str = None, detail: dict = None, request: Optional[Request] = None) -> AuditLog:
    """Stage an audit row in the caller's transaction; it commits or rolls back with the change it records."""
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        object_type=object_type,
        object_id=object_id,
        detail=detail,
        ip_address=client_ip(request),
    )
    db.add(entry)
    return entry
