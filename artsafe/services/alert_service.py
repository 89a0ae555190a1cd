from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID
from artsafe.models.alert import AdminAlert, AlertType, AlertSeverity
from artsafe.core.exceptions import NotFoundException
from artsafe.utils.logger import logger


class AlertService:
    @staticmethod
    async def create_alert(
        db: AsyncSession,
        alert_type: AlertType,
        severity: AlertSeverity,
        title: str,
        message: str,
        offer_id: Optional[UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AdminAlert:
        """Record an advisory alert for the admin dashboard"""
        alert = AdminAlert(
            alert_type=alert_type,
            severity=severity,
            title=title,
            message=message,
            offer_id=offer_id,
            meta_data=metadata or {},
        )

        db.add(alert)
        await db.commit()
        await db.refresh(alert)

        logger.info(f"Admin alert created: {alert.id} ({alert_type.value}/{severity.value})")
        return alert

    @staticmethod
    async def get_admin_alerts(
        db: AsyncSession,
        unread_only: bool = False,
        unresolved_only: bool = False,
        alert_type: Optional[AlertType] = None,
    ) -> List[AdminAlert]:
        query = select(AdminAlert).order_by(AdminAlert.created_at.desc())

        if unread_only:
            query = query.where(AdminAlert.is_read == False)
        if unresolved_only:
            query = query.where(AdminAlert.resolved == False)
        if alert_type:
            query = query.where(AdminAlert.alert_type == alert_type)

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def _get_alert(db: AsyncSession, alert_id: UUID) -> AdminAlert:
        result = await db.execute(select(AdminAlert).where(AdminAlert.id == alert_id))
        alert = result.scalar_one_or_none()

        if not alert:
            raise NotFoundException("Alert", str(alert_id))

        return alert

    @staticmethod
    async def mark_alert_as_read(db: AsyncSession, alert_id: UUID) -> AdminAlert:
        alert = await AlertService._get_alert(db, alert_id)
        alert.is_read = True

        await db.commit()
        await db.refresh(alert)
        return alert

    @staticmethod
    async def resolve_alert(db: AsyncSession, alert_id: UUID) -> AdminAlert:
        alert = await AlertService._get_alert(db, alert_id)
        alert.resolved = True
        alert.resolved_at = datetime.utcnow()

        await db.commit()
        await db.refresh(alert)

        logger.info(f"Admin alert resolved: {alert_id}")
        return alert
