from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum
from uuid import UUID
from datetime import datetime


class SpendTrend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class AnomalyType(str, Enum):
    SPIKE = "spike"
    SUSTAINED_INCREASE = "sustained_increase"
    UNUSUAL_PATTERN = "unusual_pattern"


class SpendSettings(BaseModel):
    """Snapshot of the founder_settings row, passed explicitly to spend checks."""
    ai_monthly_budget: float
    ai_daily_spend_cap: float
    ai_weekly_spend_cap: float
    ai_budget_buffer_percent: float = 0.0
    ai_spend_hard_limit_enabled: bool = True
    ai_spend_alert_threshold_percentage: float = 80.0
    ai_spend_smoothing_enabled: bool = True
    ai_spend_smoothing_window_days: int = 7

    @property
    def buffer_multiplier(self) -> float:
        return 1 + (self.ai_budget_buffer_percent / 100)

    class Config:
        from_attributes = True


class AISpendCheckResult(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    current_spend: float
    limit: float
    percentage_used: float


class AISpendStats(BaseModel):
    daily_spend: float
    weekly_spend: float
    monthly_spend: float
    smoothed_daily_average: float
    projected_monthly_spend: float


class SmoothedMetrics(BaseModel):
    daily_average: float
    weekly_average: float
    trend: SpendTrend
    volatility: float
    projected_monthly_spend: float
    confidence: float = Field(..., ge=0, le=1)


class BudgetRecommendation(BaseModel):
    recommended_monthly_budget: int
    reasoning: str
    confidence: float


class AnomalyReport(BaseModel):
    has_anomaly: bool
    anomaly_type: Optional[AnomalyType] = None
    severity: str
    message: str


class ForecastDay(BaseModel):
    date: str
    predicted_spend: float
    confidence: float


class SpendForecast(BaseModel):
    forecast: List[ForecastDay]
    total_predicted: float


class ProjectEconomics(BaseModel):
    ai_monthly_budget: float
    ai_monthly_spend: float
    ai_daily_spend: float
    ai_weekly_spend: float
    ai_smoothed_daily_average: float
    ai_projected_monthly_spend: float
    ai_buffer_percent: float
    ai_effective_budget: float
    ai_buffer_remaining: float
    ai_budget_percentage_used: float
    monthly_revenue: float
    monthly_commission: float
    monthly_expenses: float
    total_monthly_burn: float
    net_income: float
    runway: Optional[float] = None
    runway_months: Optional[int] = None
    daily_spend_cap: float
    weekly_spend_cap: float
    hard_limit_enabled: bool
    alert_threshold: float


class AISpendCheckRequest(BaseModel):
    amount: float = Field(..., ge=0)
    project_id: Optional[UUID] = None


class AISpendLogCreate(BaseModel):
    amount: float = Field(..., ge=0)
    reason: str = Field(..., min_length=1)
    project_id: Optional[UUID] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    tokens_used: Optional[int] = None


class EconomicsSummary(BaseModel):
    ai_spend_status: str
    buffer_status: str
    runway_status: str
    trend_status: SpendTrend
    has_anomalies: bool


class ProjectEconomicsDashboard(BaseModel):
    economics: ProjectEconomics
    smoothed_metrics: SmoothedMetrics
    anomalies: AnomalyReport
    forecast: SpendForecast
    budget_recommendation: BudgetRecommendation
    summary: EconomicsSummary


class AISpendLogResponse(BaseModel):
    id: UUID
    project_id: UUID
    amount: float
    reason: str
    provider: Optional[str] = None
    model: Optional[str] = None
    tokens_used: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
