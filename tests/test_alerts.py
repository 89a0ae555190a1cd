import uuid

import pytest

from artsafe.core.exceptions import NotFoundException
from artsafe.models.alert import AlertType, AlertSeverity
from artsafe.services.alert_service import AlertService
from tests.factories import auth_headers


async def seed_alerts(db):
    price = await AlertService.create_alert(
        db, AlertType.PRICE_DEVIATION, AlertSeverity.MEDIUM, "Price deviation detected", "Offer deviates 30%"
    )
    budget = await AlertService.create_alert(
        db, AlertType.AI_BUDGET, AlertSeverity.MEDIUM, "AI budget threshold reached", "AI spend at 85%",
        metadata={"project_id": "p1"},
    )
    return price, budget


class TestAlertService:
    async def test_create_defaults(self, db):
        alert = await AlertService.create_alert(
            db, AlertType.OTHER, AlertSeverity.LOW, "Heads up", "Something happened"
        )
        assert alert.id is not None
        assert alert.is_read is False
        assert alert.resolved is False
        assert alert.meta_data == {}

    async def test_filters(self, db):
        price, budget = await seed_alerts(db)
        await AlertService.mark_alert_as_read(db, price.id)

        unread = await AlertService.get_admin_alerts(db, unread_only=True)
        assert [a.id for a in unread] == [budget.id]

        by_type = await AlertService.get_admin_alerts(db, alert_type=AlertType.PRICE_DEVIATION)
        assert [a.id for a in by_type] == [price.id]

        assert len(await AlertService.get_admin_alerts(db)) == 2

    async def test_resolve_stamps_time(self, db):
        price, _ = await seed_alerts(db)

        resolved = await AlertService.resolve_alert(db, price.id)
        assert resolved.resolved is True
        assert resolved.resolved_at is not None

        unresolved = await AlertService.get_admin_alerts(db, unresolved_only=True)
        assert price.id not in [a.id for a in unresolved]

    async def test_unknown_alert(self, db):
        with pytest.raises(NotFoundException):
            await AlertService.mark_alert_as_read(db, uuid.uuid4())


class TestAlertsApi:
    async def test_admin_only(self, client, buyer):
        response = await client.get("/api/v1/admin/alerts", headers=auth_headers(buyer))
        assert response.status_code == 403

    async def test_list_and_resolve(self, client, db, admin):
        price, budget = await seed_alerts(db)

        response = await client.get("/api/v1/admin/alerts", params={"alert_type": "ai_budget"}, headers=auth_headers(admin))
        assert response.status_code == 200
        body = response.json()
        assert [a["id"] for a in body] == [str(budget.id)]
        assert body[0]["metadata"] == {"project_id": "p1"}

        response = await client.post(f"/api/v1/admin/alerts/{price.id}/resolve", headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["resolved"] is True
