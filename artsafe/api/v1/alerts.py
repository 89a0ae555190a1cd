from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID
from artsafe.database import get_db
from artsafe.api.deps import require_permission
from artsafe.models.profile import Profile
from artsafe.models.alert import AlertType
from artsafe.schemas.offer import AdminAlertResponse
from artsafe.services.alert_service import AlertService
from artsafe.core.permissions import Permission

router = APIRouter()


@router.get("", response_model=List[AdminAlertResponse])
async def list_alerts(
    unread_only: bool = Query(False),
    unresolved_only: bool = Query(False),
    alert_type: Optional[AlertType] = Query(None),
    current_user: Profile = Depends(require_permission(Permission.MANAGE_ALERTS)),
    db: AsyncSession = Depends(get_db)
):
    return await AlertService.get_admin_alerts(db, unread_only, unresolved_only, alert_type)


@router.post("/{alert_id}/read", response_model=AdminAlertResponse)
async def mark_alert_read(
    alert_id: UUID,
    current_user: Profile = Depends(require_permission(Permission.MANAGE_ALERTS)),
    db: AsyncSession = Depends(get_db)
):
    return await AlertService.mark_alert_as_read(db, alert_id)


@router.post("/{alert_id}/resolve", response_model=AdminAlertResponse)
async def resolve_alert(
    alert_id: UUID,
    current_user: Profile = Depends(require_permission(Permission.MANAGE_ALERTS)),
    db: AsyncSession = Depends(get_db)
):
    return await AlertService.resolve_alert(db, alert_id)
