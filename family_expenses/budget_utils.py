from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from .errors import InvalidInput

CENT = Decimal("0.01")
MAX_CAPITAL = Decimal("1e10")

@dataclass
class BudgetStatus:
    remaining: Decimal
    percentage_used: Decimal
    is_over_budget: bool


def reconcile_budget(month_total, budget) -> BudgetStatus:
    """Compare a month's spending with the budget's initial capital."""
    total = Decimal(str(month_total))
    capital = Decimal(str(budget.initial_capital))

    remaining = capital - total
    percent = (total / capital) * 100 if capital else Decimal("0")

    return BudgetStatus(
        remaining=remaining,
        percentage_used=percent,
        is_over_budget=remaining < 0,
    )


def validate_initial_capital(value) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise InvalidInput("Initial capital must be a positive number")
    try:
        capital = Decimal(str(value).strip().replace(",", "."))
    except InvalidOperation:
        raise InvalidInput("Initial capital must be a positive number")

    if not capital.is_finite() or capital <= 0:
        raise InvalidInput("Initial capital must be a positive number")
    # stored as Numeric(12, 2)
    if capital >= MAX_CAPITAL:
        raise InvalidInput("Initial capital is too large")
    if capital != capital.quantize(CENT):
        raise InvalidInput("Initial capital can have at most 2 decimal places")
    return capital
