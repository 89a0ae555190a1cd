from sqlalchemy import Column, String, Integer, BigInteger, Float, Date, DateTime, ForeignKey, Text, Uuid, Enum as SQLEnum
from sqlalchemy.sql import func
from artsafe.database import Base
import uuid
from enum import Enum


class PriceRecommendation(str, Enum):
    UNDERPRICED = "underpriced"
    FAIRLY_PRICED = "fairly_priced"
    OVERPRICED = "overpriced"
    INSUFFICIENT_DATA = "insufficient_data"


class MarketSale(Base):
    """Historical auction/gallery sale used as a comparable. Read-only for the app."""
    __tablename__ = "market_sales"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    artist_name = Column(String(255), nullable=False, index=True)
    artwork_title = Column(String(255))
    sale_price_cents = Column(BigInteger, nullable=False)
    currency = Column(String(3), default="DKK", nullable=False)
    sale_date = Column(Date, nullable=False)
    medium = Column(String(255))
    dimensions = Column(String(100))
    auction_house = Column(String(255))
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PriceEvaluation(Base):
    __tablename__ = "price_evaluations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    artwork_id = Column(Uuid(as_uuid=True), ForeignKey("artworks.id"), nullable=False, index=True)
    current_price_cents = Column(BigInteger, nullable=False)
    market_avg_price_cents = Column(BigInteger)
    market_median_price_cents = Column(BigInteger)
    market_min_price_cents = Column(BigInteger)
    market_max_price_cents = Column(BigInteger)
    comparable_sales_count = Column(Integer, default=0, nullable=False)
    price_deviation_percent = Column(Float)
    recommendation = Column(SQLEnum(PriceRecommendation, name="price_recommendation"), nullable=False)
    confidence_score = Column(Float, nullable=False)
    evaluation_notes = Column(Text)
    evaluated_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
