"""Integer minor-unit arithmetic shared by the payout services."""
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Optional, Union

from payout_engine.config import settings
from payout_engine.models.withdrawal import UNIT_MAJOR, UNIT_MINOR

Number = Union[int, float, Decimal, str]


def round_half_up(value: Number) -> int:
    return int(Decimal(str(value)).to_integral_value(rounding=ROUND_HALF_UP))


def percent_of(amount: int, fraction: Number) -> int:
    """``round(amount * fraction)`` with halves rounded up, e.g. fee = percent_of(100000, 0.03)."""
    return round_half_up(Decimal(amount) * Decimal(str(fraction)))


def calculate_net(gross: int, platform_fee_percent: Optional[float] = None) -> int:
    """Organizer share of ``gross`` after the platform fee, floored to a whole minor unit."""
    fee_percent = settings.PLATFORM_FEE_PERCENT if platform_fee_percent is None else platform_fee_percent
    net = Decimal(gross) * (Decimal(100) - Decimal(str(fee_percent))) / Decimal(100)
    return int(net.to_integral_value(rounding=ROUND_FLOOR))


def normalize_amount_to_cents(
    raw: Optional[Number],
    unit: Optional[str] = None,
    threshold: Optional[int] = None,
) -> int:
    """
    Convert a stored amount into minor units.

    Tagged amounts are converted by their tag. Untagged amounts come from
    legacy rows and are classified by magnitude: fractional values and
    positive integers below ``threshold`` are treated as major units.
    """
    if raw is None:
        return 0

    value = Decimal(str(raw))
    if unit == UNIT_MINOR:
        return round_half_up(value)
    if unit == UNIT_MAJOR:
        return round_half_up(value * 100)

    if threshold is None:
        threshold = settings.LEGACY_MAJOR_UNIT_THRESHOLD

    if value != value.to_integral_value():
        return round_half_up(value * 100)

    whole = int(value)
    if 0 < whole < threshold:
        return whole * 100
    return whole


def format_minor(amount: int, currency: str) -> str:
    return f"{Decimal(amount) / 100:.2f} {currency}"
