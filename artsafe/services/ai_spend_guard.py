from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Optional
from datetime import datetime, timedelta
from uuid import UUID
from artsafe.config import settings as app_settings
from artsafe.models.founder import FounderSettings, FounderProject, AISpendLog, ProjectExpense
from artsafe.models.order import Order, OrderStatus
from artsafe.models.alert import AlertType, AlertSeverity
from artsafe.schemas.founder import SpendSettings, AISpendCheckResult, AISpendStats, ProjectEconomics
from artsafe.services.alert_service import AlertService
from artsafe.services.ai_spend_smoothing import sum_spend_since, load_daily_totals
from artsafe.core.exceptions import NotFoundException
from artsafe.utils.helpers import start_of_day, start_of_week, start_of_month, days_in_month
from artsafe.utils.logger import logger


def default_project_id() -> UUID:
    return UUID(app_settings.FOUNDER_PROJECT_ID)


class AISpendGuard:
    @staticmethod
    async def load_spend_settings(db: AsyncSession) -> Optional[SpendSettings]:
        result = await db.execute(select(FounderSettings).limit(1))
        row = result.scalar_one_or_none()
        if not row:
            return None
        return SpendSettings.model_validate(row)

    @staticmethod
    async def get_project_budget(db: AsyncSession, project_id: UUID, settings: SpendSettings) -> float:
        """Project allocation when set, otherwise the global monthly budget"""
        result = await db.execute(
            select(FounderProject.ai_monthly_budget_allocation).where(FounderProject.id == project_id)
        )
        allocation = result.scalar_one_or_none()
        return float(allocation) if allocation else settings.ai_monthly_budget

    @staticmethod
    async def get_ai_spend_stats(
        db: AsyncSession,
        project_id: UUID,
        settings: Optional[SpendSettings] = None,
        now: Optional[datetime] = None,
    ) -> AISpendStats:
        now = now or datetime.utcnow()
        window_days = settings.ai_spend_smoothing_window_days if settings else 7

        daily_totals = await load_daily_totals(db, project_id, now - timedelta(days=window_days))
        smoothed_daily_average = sum(daily_totals.values()) / len(daily_totals) if daily_totals else 0.0

        return AISpendStats(
            daily_spend=await sum_spend_since(db, project_id, start_of_day(now)),
            weekly_spend=await sum_spend_since(db, project_id, start_of_week(now)),
            monthly_spend=await sum_spend_since(db, project_id, start_of_month(now)),
            smoothed_daily_average=smoothed_daily_average,
            projected_monthly_spend=smoothed_daily_average * days_in_month(now),
        )

    @staticmethod
    async def check_ai_spend_allowed(
        db: AsyncSession,
        amount: float,
        project_id: UUID,
        settings: Optional[SpendSettings],
        now: Optional[datetime] = None,
    ) -> AISpendCheckResult:
        """
        Decide whether an AI call costing `amount` may proceed.

        Checks run in order daily cap, weekly cap, monthly budget plus buffer;
        the first one exceeded denies the call. The monthly check only applies
        when the hard limit is enabled. Crossing the alert threshold raises an
        admin alert but still allows the call.
        """
        if settings is None:
            return AISpendCheckResult(
                allowed=False,
                reason="Settings not found",
                current_spend=0,
                limit=0,
                percentage_used=0,
            )

        budget = await AISpendGuard.get_project_budget(db, project_id, settings)
        stats = await AISpendGuard.get_ai_spend_stats(db, project_id, settings, now)

        daily_cap = settings.ai_daily_spend_cap
        if stats.daily_spend + amount > daily_cap:
            return AISpendCheckResult(
                allowed=False,
                reason=f"Daily spend cap exceeded ({daily_cap})",
                current_spend=stats.daily_spend,
                limit=daily_cap,
                percentage_used=_percentage(stats.daily_spend, daily_cap),
            )

        weekly_cap = settings.ai_weekly_spend_cap
        if stats.weekly_spend + amount > weekly_cap:
            return AISpendCheckResult(
                allowed=False,
                reason=f"Weekly spend cap exceeded ({weekly_cap})",
                current_spend=stats.weekly_spend,
                limit=weekly_cap,
                percentage_used=_percentage(stats.weekly_spend, weekly_cap),
            )

        effective_budget = budget * settings.buffer_multiplier
        if settings.ai_spend_hard_limit_enabled and stats.monthly_spend + amount > effective_budget:
            return AISpendCheckResult(
                allowed=False,
                reason=(
                    f"Monthly budget exceeded ({effective_budget:.2f} with "
                    f"{settings.ai_budget_buffer_percent:g}% buffer)"
                ),
                current_spend=stats.monthly_spend,
                limit=effective_budget,
                percentage_used=_percentage(stats.monthly_spend, effective_budget),
            )

        percentage_used = _percentage(stats.monthly_spend, budget)
        if percentage_used >= settings.ai_spend_alert_threshold_percentage:
            await AlertService.create_alert(
                db,
                AlertType.AI_BUDGET,
                AlertSeverity.MEDIUM,
                "AI budget threshold reached",
                f"AI spend at {percentage_used:.1f}% of monthly budget",
                metadata={"project_id": str(project_id), "monthly_spend": stats.monthly_spend, "budget": budget},
            )

        return AISpendCheckResult(
            allowed=True,
            current_spend=stats.monthly_spend,
            limit=effective_budget,
            percentage_used=percentage_used,
        )

    @staticmethod
    async def log_ai_spend(
        db: AsyncSession,
        amount: float,
        reason: str,
        project_id: UUID,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        tokens_used: Optional[int] = None,
    ) -> AISpendLog:
        entry = AISpendLog(
            project_id=project_id,
            amount=amount,
            reason=reason,
            provider=provider,
            model=model,
            tokens_used=tokens_used,
        )
        db.add(entry)
        await db.commit()
        await db.refresh(entry)

        logger.info(f"AI spend logged for project {project_id}: {amount} ({reason})")
        return entry

    @staticmethod
    async def get_project_economics(
        db: AsyncSession,
        project_id: UUID,
        settings: Optional[SpendSettings],
        now: Optional[datetime] = None,
    ) -> ProjectEconomics:
        now = now or datetime.utcnow()

        if settings is None:
            raise NotFoundException("Founder settings", "default")

        result = await db.execute(select(FounderProject).where(FounderProject.id == project_id))
        project = result.scalar_one_or_none()
        if not project:
            raise NotFoundException("Project", str(project_id))

        stats = await AISpendGuard.get_ai_spend_stats(db, project_id, settings, now)
        month_start = start_of_month(now)

        result = await db.execute(
            select(func.coalesce(func.sum(Order.amount_cents), 0)).where(
                Order.status.in_([OrderStatus.COMPLETED, OrderStatus.PAID]),
                Order.created_at >= month_start,
            )
        )
        monthly_revenue = float(result.scalar() or 0) / 100
        monthly_commission = monthly_revenue * app_settings.PLATFORM_COMMISSION_PERCENT / 100

        result = await db.execute(
            select(func.coalesce(func.sum(ProjectExpense.amount), 0)).where(
                ProjectExpense.project_id == project_id,
                ProjectExpense.created_at >= month_start,
            )
        )
        monthly_expenses = float(result.scalar() or 0)

        budget = float(project.ai_monthly_budget_allocation) if project.ai_monthly_budget_allocation else settings.ai_monthly_budget
        effective_budget = budget * settings.buffer_multiplier

        total_monthly_burn = stats.monthly_spend + monthly_expenses
        net_income = monthly_commission - total_monthly_burn
        runway = app_settings.FOUNDER_CASH_RESERVES / abs(net_income) if net_income < 0 else None

        return ProjectEconomics(
            ai_monthly_budget=budget,
            ai_monthly_spend=stats.monthly_spend,
            ai_daily_spend=stats.daily_spend,
            ai_weekly_spend=stats.weekly_spend,
            ai_smoothed_daily_average=stats.smoothed_daily_average,
            ai_projected_monthly_spend=stats.projected_monthly_spend,
            ai_buffer_percent=settings.ai_budget_buffer_percent,
            ai_effective_budget=effective_budget,
            ai_buffer_remaining=effective_budget - stats.monthly_spend,
            ai_budget_percentage_used=_percentage(stats.monthly_spend, budget),
            monthly_revenue=monthly_revenue,
            monthly_commission=monthly_commission,
            monthly_expenses=monthly_expenses,
            total_monthly_burn=total_monthly_burn,
            net_income=net_income,
            runway=runway,
            runway_months=int(runway) if runway is not None else None,
            daily_spend_cap=settings.ai_daily_spend_cap,
            weekly_spend_cap=settings.ai_weekly_spend_cap,
            hard_limit_enabled=settings.ai_spend_hard_limit_enabled,
            alert_threshold=settings.ai_spend_alert_threshold_percentage,
        )


def _percentage(value: float, limit: float) -> float:
    if not limit:
        return 0.0
    return (value / limit) * 100


def spend_status(percentage_used: float) -> str:
    if percentage_used < 70:
        return "healthy"
    if percentage_used < 90:
        return "warning"
    return "critical"


def buffer_status(buffer_remaining: float, effective_budget: float) -> str:
    buffer_percentage = _percentage(buffer_remaining, effective_budget)
    if buffer_percentage > 15:
        return "healthy"
    if buffer_percentage > 5:
        return "warning"
    return "critical"


def runway_status(runway_months: Optional[int]) -> str:
    # no runway means income covers burn
    if runway_months is None or runway_months > 6:
        return "healthy"
    if runway_months > 3:
        return "warning"
    return "critical"
