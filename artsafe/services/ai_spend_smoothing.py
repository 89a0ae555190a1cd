import math
from collections import OrderedDict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Optional, Dict
from datetime import datetime, date, timedelta
from uuid import UUID
from artsafe.models.founder import AISpendLog
from artsafe.schemas.founder import (
    SpendSettings,
    SpendTrend,
    AnomalyType,
    SmoothedMetrics,
    BudgetRecommendation,
    AnomalyReport,
    ForecastDay,
    SpendForecast,
)
from artsafe.utils.helpers import start_of_day, days_in_month

TREND_THRESHOLD = 0.1
RECOMMENDATION_BUFFER = 1.2
RAW_METRICS_CONFIDENCE = 0.1
FORECAST_DAILY_TREND_STEP = 0.05

EMPTY_METRICS = SmoothedMetrics(
    daily_average=0,
    weekly_average=0,
    trend=SpendTrend.STABLE,
    volatility=0,
    projected_monthly_spend=0,
    confidence=0,
)


async def sum_spend_since(db: AsyncSession, project_id: UUID, since: datetime) -> float:
    result = await db.execute(
        select(func.coalesce(func.sum(AISpendLog.amount), 0)).where(
            AISpendLog.project_id == project_id,
            AISpendLog.created_at >= since,
        )
    )
    return float(result.scalar() or 0)


async def load_daily_totals(db: AsyncSession, project_id: UUID, since: datetime) -> Dict[date, float]:
    """Spend per UTC calendar day since `since`, oldest day first. Days without spend are absent."""
    result = await db.execute(
        select(AISpendLog.amount, AISpendLog.created_at)
        .where(AISpendLog.project_id == project_id, AISpendLog.created_at >= since)
        .order_by(AISpendLog.created_at.asc())
    )

    totals: Dict[date, float] = OrderedDict()
    for amount, created_at in result.all():
        day = created_at.date()
        totals[day] = totals.get(day, 0.0) + float(amount)
    return totals


def _mean(values) -> float:
    return sum(values) / len(values)


def compute_smoothed_metrics(daily_totals: Dict[date, float], window_days: int, now: datetime) -> SmoothedMetrics:
    """
    Reduce per-day spend totals to smoothed metrics.

    Averages only count days that have spend. Confidence is the number of such
    days relative to the window, capped at 1.
    """
    values = list(daily_totals.values())
    if not values:
        return EMPTY_METRICS.model_copy()

    daily_average = _mean(values)
    weekly_average = _mean(values[-7:])

    trend = SpendTrend.STABLE
    if len(values) >= 2:
        midpoint = len(values) // 2
        first_half = _mean(values[:midpoint])
        second_half = _mean(values[midpoint:])
        if second_half > first_half * (1 + TREND_THRESHOLD):
            trend = SpendTrend.INCREASING
        elif second_half < first_half * (1 - TREND_THRESHOLD):
            trend = SpendTrend.DECREASING

    variance = sum((v - daily_average) ** 2 for v in values) / len(values)
    volatility = math.sqrt(variance) / daily_average if daily_average > 0 else 0.0

    return SmoothedMetrics(
        daily_average=daily_average,
        weekly_average=weekly_average,
        trend=trend,
        volatility=volatility,
        projected_monthly_spend=daily_average * days_in_month(now),
        confidence=min(len(values) / window_days, 1.0) if window_days > 0 else 1.0,
    )


class SpendSmoothingEngine:
    @staticmethod
    async def get_raw_metrics(db: AsyncSession, project_id: UUID, now: Optional[datetime] = None) -> SmoothedMetrics:
        now = now or datetime.utcnow()
        today = await sum_spend_since(db, project_id, start_of_day(now))
        return SmoothedMetrics(
            daily_average=today,
            weekly_average=today,
            trend=SpendTrend.STABLE,
            volatility=0,
            projected_monthly_spend=today * days_in_month(now),
            confidence=RAW_METRICS_CONFIDENCE,
        )

    @staticmethod
    async def get_smoothed_metrics(
        db: AsyncSession,
        project_id: UUID,
        settings: Optional[SpendSettings],
        window_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> SmoothedMetrics:
        now = now or datetime.utcnow()

        if settings is None or not settings.ai_spend_smoothing_enabled:
            return await SpendSmoothingEngine.get_raw_metrics(db, project_id, now)

        window = window_days or settings.ai_spend_smoothing_window_days or 7
        daily_totals = await load_daily_totals(db, project_id, now - timedelta(days=window))
        return compute_smoothed_metrics(daily_totals, window, now)

    @staticmethod
    async def get_smoothed_budget_recommendation(
        db: AsyncSession,
        project_id: UUID,
        settings: Optional[SpendSettings],
        now: Optional[datetime] = None,
    ) -> BudgetRecommendation:
        metrics = await SpendSmoothingEngine.get_smoothed_metrics(db, project_id, settings, now=now)

        reasoning = f"Based on {round(metrics.confidence * 100)}% data confidence, "
        if metrics.trend == SpendTrend.INCREASING:
            reasoning += "spending is trending upward. Consider increasing budget allocation."
        elif metrics.trend == SpendTrend.DECREASING:
            reasoning += "spending is trending downward. Current budget may be sufficient."
        else:
            reasoning += "spending is stable. Current projection is reliable."

        if metrics.volatility > 0.5:
            reasoning += " High volatility detected - recommend larger buffer."

        return BudgetRecommendation(
            recommended_monthly_budget=math.ceil(metrics.projected_monthly_spend * RECOMMENDATION_BUFFER),
            reasoning=reasoning,
            confidence=metrics.confidence,
        )

    @staticmethod
    async def detect_spending_anomalies(
        db: AsyncSession,
        project_id: UUID,
        settings: Optional[SpendSettings],
        now: Optional[datetime] = None,
    ) -> AnomalyReport:
        now = now or datetime.utcnow()
        metrics = await SpendSmoothingEngine.get_smoothed_metrics(db, project_id, settings, now=now)
        today = await sum_spend_since(db, project_id, start_of_day(now))

        if metrics.daily_average > 0 and today > metrics.daily_average * 2:
            return AnomalyReport(
                has_anomaly=True,
                anomaly_type=AnomalyType.SPIKE,
                severity="high" if today > metrics.daily_average * 3 else "medium",
                message=(
                    f"Today's spend ({today:.2f}) is "
                    f"{today / metrics.daily_average:.1f}x the daily average"
                ),
            )

        if metrics.trend == SpendTrend.INCREASING and metrics.weekly_average > metrics.daily_average * 1.5:
            return AnomalyReport(
                has_anomaly=True,
                anomaly_type=AnomalyType.SUSTAINED_INCREASE,
                severity="medium",
                message="Spending has been consistently increasing over the past week",
            )

        if metrics.volatility > 1.0:
            return AnomalyReport(
                has_anomaly=True,
                anomaly_type=AnomalyType.UNUSUAL_PATTERN,
                severity="low",
                message="Spending pattern is highly volatile and unpredictable",
            )

        return AnomalyReport(has_anomaly=False, severity="low", message="No anomalies detected")

    @staticmethod
    def build_forecast(metrics: SmoothedMetrics, days: int, now: datetime) -> SpendForecast:
        forecast = []
        for i in range(1, days + 1):
            predicted = metrics.daily_average
            if metrics.trend == SpendTrend.INCREASING:
                predicted *= 1 + FORECAST_DAILY_TREND_STEP * i
            elif metrics.trend == SpendTrend.DECREASING:
                predicted *= 1 - FORECAST_DAILY_TREND_STEP * i

            forecast.append(ForecastDay(
                date=(now + timedelta(days=i)).date().isoformat(),
                predicted_spend=max(0.0, predicted),
                confidence=max(0.0, metrics.confidence * (1 - i / (days * 2))),
            ))

        return SpendForecast(forecast=forecast, total_predicted=sum(day.predicted_spend for day in forecast))

    @staticmethod
    async def get_forecast(
        db: AsyncSession,
        project_id: UUID,
        settings: Optional[SpendSettings],
        days: int = 7,
        now: Optional[datetime] = None,
    ) -> SpendForecast:
        now = now or datetime.utcnow()
        metrics = await SpendSmoothingEngine.get_smoothed_metrics(db, project_id, settings, now=now)
        return SpendSmoothingEngine.build_forecast(metrics, days, now)
