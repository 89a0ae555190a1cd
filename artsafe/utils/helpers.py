import calendar
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from artsafe.config import settings
from artsafe.schemas.offer import EscrowAmounts


def calculate_percentage(value: Decimal, percentage: Decimal) -> Decimal:
    return (value * percentage) / 100


def round_cents(amount: Decimal) -> int:
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_dkk(amount_cents: int) -> str:
    return f"{Decimal(amount_cents) / 100:,.2f} DKK"


def calculate_escrow_amounts(
    total_price_cents: int,
    commission_percent: Optional[int] = None,
    vat_percent: Optional[int] = None,
) -> EscrowAmounts:
    """
    Split a total price into platform fee, VAT on that fee and the seller payout.

    Fee and VAT are rounded half-up to whole cents; the seller amount absorbs
    the remainder so the three parts always add back up to the total.
    """
    if total_price_cents < 0:
        raise ValueError("total_price_cents must not be negative")

    if commission_percent is None:
        commission_percent = settings.PLATFORM_COMMISSION_PERCENT
    if vat_percent is None:
        vat_percent = settings.COMMISSION_VAT_PERCENT

    platform_fee_cents = round_cents(calculate_percentage(Decimal(total_price_cents), Decimal(commission_percent)))
    vat_cents = round_cents(calculate_percentage(Decimal(platform_fee_cents), Decimal(vat_percent)))

    return EscrowAmounts(
        platform_fee_cents=platform_fee_cents,
        vat_cents=vat_cents,
        seller_amount_cents=total_price_cents - platform_fee_cents - vat_cents,
    )


def percent_deviation(value: float, reference: float) -> Optional[float]:
    if not reference:
        return None
    return ((value - reference) / reference) * 100


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(now: datetime) -> datetime:
    """Weeks start on Sunday."""
    return start_of_day(now) - timedelta(days=(now.weekday() + 1) % 7)


def start_of_month(now: datetime) -> datetime:
    return start_of_day(now).replace(day=1)


def days_in_month(now: datetime) -> int:
    return calendar.monthrange(now.year, now.month)[1]
