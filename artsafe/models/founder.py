from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey, Boolean, Uuid
from sqlalchemy.sql import func
from artsafe.database import Base
import uuid


class FounderSettings(Base):
    """Single-row table holding the AI spend governance knobs."""
    __tablename__ = "founder_settings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ai_monthly_budget = Column(Numeric(12, 2), default=100, nullable=False)
    ai_daily_spend_cap = Column(Numeric(12, 2), default=10, nullable=False)
    ai_weekly_spend_cap = Column(Numeric(12, 2), default=50, nullable=False)
    ai_budget_buffer_percent = Column(Numeric(5, 2), default=10, nullable=False)
    ai_spend_hard_limit_enabled = Column(Boolean, default=True, nullable=False)
    ai_spend_alert_threshold_percentage = Column(Numeric(5, 2), default=80, nullable=False)
    ai_spend_smoothing_enabled = Column(Boolean, default=True, nullable=False)
    ai_spend_smoothing_window_days = Column(Integer, default=7, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class FounderProject(Base):
    __tablename__ = "founder_projects"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    ai_monthly_budget_allocation = Column(Numeric(12, 2))
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AISpendLog(Base):
    """Append-only record of a single AI provider charge."""
    __tablename__ = "ai_spend_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("founder_projects.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 4), nullable=False)
    reason = Column(String(255), nullable=False)
    provider = Column(String(50))
    model = Column(String(100))
    tokens_used = Column(Integer)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class ProjectExpense(Base):
    __tablename__ = "project_expenses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("founder_projects.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String(255))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
