from decimal import Decimal, ROUND_HALF_UP

from src.crimestat_pipeline.core.exceptions import RateCalculationError

_FOUR_DP = Decimal("0.0001")
_TWO_DP = Decimal("0.01")

def round_half_up(value: Decimal | float, exp: Decimal = Decimal(1)) -> Decimal:
    return Decimal(str(value)).quantize(exp, rounding=ROUND_HALF_UP)

def calculate_rate_per_100k(count: int, population: int) -> float:
    """
    (count / population) * 100000, rounded to 4 decimal places.
    """
    if population <= 0:
        raise RateCalculationError("Population must be greater than 0")
    if count < 0:
        raise RateCalculationError("Count cannot be negative")

    rate = Decimal(count) * 100000 / Decimal(population)
    return float(rate.quantize(_FOUR_DP, rounding=ROUND_HALF_UP))

def convert_per_1k_to_100k(rate_per_1k: float) -> float:
    # Some French sources publish "taux pour mille"
    return float(round_half_up(Decimal(str(rate_per_1k)) * 100, _FOUR_DP))

def calculate_percentage_change(old_value: float, new_value: float) -> float:
    if old_value == 0:
        return 0.0 if new_value == 0 else 100.0
    change = (Decimal(str(new_value)) - Decimal(str(old_value))) / Decimal(str(old_value)) * 100
    return float(change.quantize(_TWO_DP, rounding=ROUND_HALF_UP))

def calculate_monthly_average(yearly_total: int, months_available: int = 12) -> float:
    if months_available <= 0:
        raise RateCalculationError("Months available must be greater than 0")
    return float((Decimal(yearly_total) / Decimal(months_available)).quantize(_TWO_DP, rounding=ROUND_HALF_UP))

def extrapolate_to_full_year(count: int, months_with_data: int) -> int:
    """round(count * 12 / months), half-up."""
    if months_with_data <= 0:
        raise RateCalculationError("Months with data must be greater than 0")
    return int((Decimal(count) * 12 / Decimal(months_with_data)).quantize(Decimal(1), rounding=ROUND_HALF_UP))
