from datetime import datetime, date

import pytest
import pytest_asyncio
from sqlalchemy import select

from artsafe.models.alert import AdminAlert, AlertType
from artsafe.models.founder import AISpendLog, FounderProject, ProjectExpense
from artsafe.models.order import Order, OrderStatus
from artsafe.schemas.founder import SpendSettings, SpendTrend, AnomalyType
from artsafe.services.ai_spend_guard import (
    AISpendGuard,
    default_project_id,
    spend_status,
    buffer_status,
    runway_status,
)
from artsafe.services.ai_spend_smoothing import SpendSmoothingEngine, compute_smoothed_metrics
from tests.factories import auth_headers, make_founder_settings

# Wednesday; the week started Sunday 2026-10-18
NOW = datetime(2026, 10, 21, 12, 0)

SETTINGS = SpendSettings(
    ai_monthly_budget=100,
    ai_daily_spend_cap=10,
    ai_weekly_spend_cap=50,
    ai_budget_buffer_percent=10,
    ai_spend_hard_limit_enabled=True,
    ai_spend_alert_threshold_percentage=80,
)


async def log_spend(db, amount, at, project_id=None):
    db.add(AISpendLog(
        project_id=project_id or default_project_id(),
        amount=amount,
        reason="pricing advisor",
        provider="openai",
        created_at=at,
    ))
    await db.commit()


@pytest_asyncio.fixture
async def project(db):
    project = FounderProject(id=default_project_id(), name="Art Is Safe")
    db.add(project)
    await db.commit()
    return project


class TestSpendCheck:
    async def test_missing_settings_denies(self, db):
        result = await AISpendGuard.check_ai_spend_allowed(db, 1, default_project_id(), None, now=NOW)
        assert result.allowed is False
        assert result.reason == "Settings not found"

    async def test_under_all_limits(self, db, project):
        await log_spend(db, 2, datetime(2026, 10, 21, 9, 0))

        result = await AISpendGuard.check_ai_spend_allowed(db, 1, project.id, SETTINGS, now=NOW)

        assert result.allowed is True
        assert result.limit == pytest.approx(110)
        assert result.current_spend == pytest.approx(2)

    async def test_daily_cap_checked_first(self, db, project):
        await log_spend(db, 8, datetime(2026, 10, 21, 8, 0))

        result = await AISpendGuard.check_ai_spend_allowed(db, 3, project.id, SETTINGS, now=NOW)

        assert result.allowed is False
        assert result.reason.startswith("Daily spend cap exceeded")
        assert result.limit == 10
        assert result.percentage_used == pytest.approx(80)

    async def test_weekly_cap(self, db, project):
        await log_spend(db, 8, datetime(2026, 10, 19, 10, 0))
        await log_spend(db, 8, datetime(2026, 10, 20, 10, 0))
        # Saturday before the week started does not count
        await log_spend(db, 8, datetime(2026, 10, 17, 10, 0))
        settings = SETTINGS.model_copy(update={"ai_weekly_spend_cap": 20})

        result = await AISpendGuard.check_ai_spend_allowed(db, 5, project.id, settings, now=NOW)

        assert result.allowed is False
        assert result.reason.startswith("Weekly spend cap exceeded")
        assert result.current_spend == pytest.approx(16)

    async def test_monthly_budget_includes_buffer(self, db, project):
        await log_spend(db, 105, datetime(2026, 10, 2, 10, 0))

        allowed = await AISpendGuard.check_ai_spend_allowed(db, 5, project.id, SETTINGS, now=NOW)
        assert allowed.allowed is True

        denied = await AISpendGuard.check_ai_spend_allowed(db, 6, project.id, SETTINGS, now=NOW)
        assert denied.allowed is False
        assert denied.reason == "Monthly budget exceeded (110.00 with 10% buffer)"

    async def test_hard_limit_disabled_allows_overspend(self, db, project):
        await log_spend(db, 105, datetime(2026, 10, 2, 10, 0))
        settings = SETTINGS.model_copy(update={"ai_spend_hard_limit_enabled": False})

        result = await AISpendGuard.check_ai_spend_allowed(db, 6, project.id, settings, now=NOW)
        assert result.allowed is True

    async def test_threshold_raises_budget_alert(self, db, project):
        await log_spend(db, 85, datetime(2026, 10, 2, 10, 0))

        result = await AISpendGuard.check_ai_spend_allowed(db, 1, project.id, SETTINGS, now=NOW)

        assert result.allowed is True
        assert result.percentage_used == pytest.approx(85)
        alerts = (await db.execute(select(AdminAlert).where(AdminAlert.alert_type == AlertType.AI_BUDGET))).scalars().all()
        assert len(alerts) == 1
        assert alerts[0].meta_data["project_id"] == str(project.id)

    async def test_project_allocation_overrides_budget(self, db, project):
        project.ai_monthly_budget_allocation = 50
        await db.commit()
        await log_spend(db, 50, datetime(2026, 10, 2, 10, 0))

        result = await AISpendGuard.check_ai_spend_allowed(db, 6, project.id, SETTINGS, now=NOW)

        assert result.allowed is False
        assert result.limit == pytest.approx(55)


class TestStatsAndEconomics:
    async def test_period_sums(self, db, project):
        await log_spend(db, 2, datetime(2026, 10, 21, 9, 0))
        await log_spend(db, 3, datetime(2026, 10, 19, 9, 0))
        await log_spend(db, 4, datetime(2026, 10, 10, 9, 0))
        await log_spend(db, 5, datetime(2026, 9, 30, 9, 0))

        stats = await AISpendGuard.get_ai_spend_stats(db, project.id, SETTINGS, now=NOW)

        assert stats.daily_spend == pytest.approx(2)
        assert stats.weekly_spend == pytest.approx(5)
        assert stats.monthly_spend == pytest.approx(9)
        # only Oct 19 and Oct 21 fall inside the 7 day window
        assert stats.smoothed_daily_average == pytest.approx(2.5)
        assert stats.projected_monthly_spend == pytest.approx(2.5 * 31)

    async def test_project_economics(self, db, project, buyer, artwork):
        await log_spend(db, 9, datetime(2026, 10, 20, 9, 0))
        db.add(Order(
            buyer_id=buyer.id,
            artwork_id=artwork.id,
            amount_cents=1_000_000,
            status=OrderStatus.PAID,
            created_at=datetime(2026, 10, 5),
        ))
        db.add(ProjectExpense(project_id=project.id, amount=3000, description="Hosting", created_at=datetime(2026, 10, 6)))
        await db.commit()

        economics = await AISpendGuard.get_project_economics(db, project.id, SETTINGS, now=NOW)

        assert economics.monthly_revenue == pytest.approx(10_000)
        assert economics.monthly_commission == pytest.approx(2_000)
        assert economics.monthly_expenses == pytest.approx(3_000)
        assert economics.total_monthly_burn == pytest.approx(3_009)
        assert economics.net_income == pytest.approx(-1_009)
        assert economics.runway_months == 4
        assert economics.ai_effective_budget == pytest.approx(110)
        assert economics.ai_buffer_remaining == pytest.approx(101)
        assert runway_status(economics.runway_months) == "warning"

    async def test_numeric_looking_project_id_round_trips(self, db, project, session_factory):
        async with session_factory() as other:
            stored_id = (await other.execute(select(FounderProject.id))).scalar_one()

        assert stored_id == default_project_id()
        assert str(stored_id) == "00000000-0000-0000-0000-000000000002"

    def test_status_bands(self):
        assert spend_status(50) == "healthy"
        assert spend_status(75) == "warning"
        assert spend_status(95) == "critical"
        assert buffer_status(20, 100) == "healthy"
        assert buffer_status(10, 100) == "warning"
        assert buffer_status(2, 100) == "critical"
        assert runway_status(None) == "healthy"
        assert runway_status(2) == "critical"


class TestSmoothing:
    def test_no_data(self):
        metrics = compute_smoothed_metrics({}, 7, NOW)
        assert metrics.daily_average == 0
        assert metrics.trend == SpendTrend.STABLE
        assert metrics.confidence == 0

    def test_increasing_spend(self):
        totals = {date(2026, 10, day): value for day, value in zip(range(15, 21), [1, 1, 1, 3, 3, 3])}

        metrics = compute_smoothed_metrics(totals, 7, NOW)

        assert metrics.daily_average == pytest.approx(2)
        assert metrics.weekly_average == pytest.approx(2)
        assert metrics.trend == SpendTrend.INCREASING
        assert metrics.volatility == pytest.approx(0.5)
        assert metrics.projected_monthly_spend == pytest.approx(62)
        assert metrics.confidence == pytest.approx(6 / 7)

    def test_decreasing_and_single_day(self):
        falling = {date(2026, 10, 18): 10, date(2026, 10, 19): 10, date(2026, 10, 20): 2, date(2026, 10, 21): 2}
        assert compute_smoothed_metrics(falling, 7, NOW).trend == SpendTrend.DECREASING

        single = compute_smoothed_metrics({date(2026, 10, 21): 4}, 7, NOW)
        assert single.trend == SpendTrend.STABLE
        assert single.volatility == 0

    def test_forecast_follows_trend(self):
        metrics = compute_smoothed_metrics(
            {date(2026, 10, day): value for day, value in zip(range(15, 21), [1, 1, 1, 3, 3, 3])}, 7, NOW
        )
        metrics = metrics.model_copy(update={"daily_average": 10, "confidence": 0.8})

        forecast = SpendSmoothingEngine.build_forecast(metrics, 7, NOW)

        assert len(forecast.forecast) == 7
        assert forecast.forecast[0].date == "2026-10-22"
        assert forecast.forecast[0].predicted_spend == pytest.approx(10.5)
        assert forecast.forecast[6].predicted_spend == pytest.approx(13.5)
        assert forecast.forecast[0].confidence == pytest.approx(0.8 * (1 - 1 / 14))
        assert forecast.total_predicted == pytest.approx(84)

    async def test_disabled_smoothing_uses_raw_spend(self, db, project):
        await log_spend(db, 4, datetime(2026, 10, 21, 9, 0))
        await log_spend(db, 10, datetime(2026, 10, 19, 9, 0))
        settings = SETTINGS.model_copy(update={"ai_spend_smoothing_enabled": False})

        metrics = await SpendSmoothingEngine.get_smoothed_metrics(db, project.id, settings, now=NOW)

        assert metrics.daily_average == pytest.approx(4)
        assert metrics.confidence == pytest.approx(0.1)

    async def test_spike_detected(self, db, project):
        for day in range(15, 21):
            await log_spend(db, 1, datetime(2026, 10, day, 13, 0))
        await log_spend(db, 5, datetime(2026, 10, 21, 9, 0))

        report = await SpendSmoothingEngine.detect_spending_anomalies(db, project.id, SETTINGS, now=NOW)

        assert report.has_anomaly is True
        assert report.anomaly_type == AnomalyType.SPIKE
        assert report.severity == "high"

    async def test_budget_recommendation(self, db, project):
        for day, value in zip(range(15, 21), [1, 1, 1, 3, 3, 3]):
            await log_spend(db, value, datetime(2026, 10, day, 13, 0))

        recommendation = await SpendSmoothingEngine.get_smoothed_budget_recommendation(db, project.id, SETTINGS, now=NOW)

        assert recommendation.recommended_monthly_budget == 75
        assert "trending upward" in recommendation.reasoning


class TestFounderApi:
    async def test_requires_admin(self, client, buyer):
        response = await client.post("/api/v1/founder/ai-spend/check", json={"amount": 1}, headers=auth_headers(buyer))
        assert response.status_code == 403

    async def test_log_check_and_dashboard(self, client, db, admin):
        await make_founder_settings(db)
        headers = auth_headers(admin)

        response = await client.post(
            "/api/v1/founder/ai-spend/log",
            json={"amount": 9.5, "reason": "pricing advisor", "provider": "openai", "tokens_used": 1200},
            headers=headers,
        )
        assert response.status_code == 201
        assert response.json()["project_id"] == str(default_project_id())

        response = await client.post("/api/v1/founder/ai-spend/check", json={"amount": 1}, headers=headers)
        assert response.status_code == 200
        check = response.json()
        assert check["allowed"] is False
        assert check["reason"].startswith("Daily")

        response = await client.get("/api/v1/founder/project-economics", headers=headers)
        assert response.status_code == 200
        dashboard = response.json()
        assert dashboard["economics"]["ai_monthly_spend"] == pytest.approx(9.5)
        assert len(dashboard["forecast"]["forecast"]) == 7
        assert dashboard["summary"]["ai_spend_status"] == "healthy"

    async def test_dashboard_without_settings_is_404(self, client, admin):
        response = await client.get("/api/v1/founder/project-economics", headers=auth_headers(admin))
        assert response.status_code == 404
