from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID
from artsafe.database import get_db
from artsafe.api.deps import require_permission
from artsafe.models.profile import Profile
from artsafe.schemas.founder import (
    AISpendCheckRequest,
    AISpendCheckResult,
    AISpendLogCreate,
    AISpendLogResponse,
    AISpendStats,
    EconomicsSummary,
    ProjectEconomicsDashboard,
)
from artsafe.services.ai_spend_guard import (
    AISpendGuard,
    default_project_id,
    spend_status,
    buffer_status,
    runway_status,
)
from artsafe.services.ai_spend_smoothing import SpendSmoothingEngine
from artsafe.core.permissions import Permission

router = APIRouter()


@router.get("/project-economics", response_model=ProjectEconomicsDashboard)
async def get_project_economics(
    project_id: Optional[UUID] = Query(None),
    current_user: Profile = Depends(require_permission(Permission.VIEW_FOUNDER_ECONOMICS)),
    db: AsyncSession = Depends(get_db)
):
    """Economics, smoothed AI spend, anomalies and a 7-day forecast for the founder dashboard"""
    project_id = project_id or default_project_id()
    spend_settings = await AISpendGuard.load_spend_settings(db)

    economics = await AISpendGuard.get_project_economics(db, project_id, spend_settings)
    metrics = await SpendSmoothingEngine.get_smoothed_metrics(db, project_id, spend_settings)
    anomalies = await SpendSmoothingEngine.detect_spending_anomalies(db, project_id, spend_settings)
    forecast = await SpendSmoothingEngine.get_forecast(db, project_id, spend_settings, days=7)
    recommendation = await SpendSmoothingEngine.get_smoothed_budget_recommendation(db, project_id, spend_settings)

    return ProjectEconomicsDashboard(
        economics=economics,
        smoothed_metrics=metrics,
        anomalies=anomalies,
        forecast=forecast,
        budget_recommendation=recommendation,
        summary=EconomicsSummary(
            ai_spend_status=spend_status(economics.ai_budget_percentage_used),
            buffer_status=buffer_status(economics.ai_buffer_remaining, economics.ai_effective_budget),
            runway_status=runway_status(economics.runway_months),
            trend_status=metrics.trend,
            has_anomalies=anomalies.has_anomaly,
        ),
    )


@router.get("/ai-spend/stats", response_model=AISpendStats)
async def get_ai_spend_stats(
    project_id: Optional[UUID] = Query(None),
    current_user: Profile = Depends(require_permission(Permission.VIEW_FOUNDER_ECONOMICS)),
    db: AsyncSession = Depends(get_db)
):
    spend_settings = await AISpendGuard.load_spend_settings(db)
    return await AISpendGuard.get_ai_spend_stats(db, project_id or default_project_id(), spend_settings)


@router.post("/ai-spend/check", response_model=AISpendCheckResult)
async def check_ai_spend(
    request: AISpendCheckRequest,
    current_user: Profile = Depends(require_permission(Permission.MANAGE_AI_SPEND)),
    db: AsyncSession = Depends(get_db)
):
    """Ask whether an AI call of the given cost is within the caps"""
    spend_settings = await AISpendGuard.load_spend_settings(db)
    return await AISpendGuard.check_ai_spend_allowed(
        db, request.amount, request.project_id or default_project_id(), spend_settings
    )


@router.post("/ai-spend/log", response_model=AISpendLogResponse, status_code=status.HTTP_201_CREATED)
async def log_ai_spend(
    request: AISpendLogCreate,
    current_user: Profile = Depends(require_permission(Permission.MANAGE_AI_SPEND)),
    db: AsyncSession = Depends(get_db)
):
    return await AISpendGuard.log_ai_spend(
        db,
        request.amount,
        request.reason,
        request.project_id or default_project_id(),
        provider=request.provider,
        model=request.model,
        tokens_used=request.tokens_used,
    )
