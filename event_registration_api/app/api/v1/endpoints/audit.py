"""
Audit log endpoints for API v1.

Administrators can read the trail of registrations, cancellations and
event changes, newest first.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from event_registration_api.app.api.deps import get_audit_service, require_action
from event_registration_api.app.core.security import Identity
from event_registration_api.app.schemas.audit import AuditEntry
from event_registration_api.app.services.audit_service import AuditService
from event_registration_api.app.services.authorization import Action

router = APIRouter()


@router.get("/logs", response_model=List[AuditEntry])
async def list_audit_logs(
    user_id: Optional[str] = Query(None, description="Filter by acting user ID"),
    object_type: Optional[str] = Query(None, description="Filter by object type (registration, event)"),
    limit: int = Query(100, ge=1, le=500, description="Maximum number of logs to return"),
    offset: int = Query(0, ge=0, description="Number of logs to skip"),
    identity: Identity = Depends(require_action(Action.READ_AUDIT)),
    service: AuditService = Depends(get_audit_service),
) -> List[AuditEntry]:
    return await service.list(object_type=object_type, user_id=user_id, limit=limit, offset=offset)
