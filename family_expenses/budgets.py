# family_expenses/budgets.py

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from . import crud
from .auth import get_current_user
from .budget_utils import reconcile_budget
from .database import get_db
from .models import User
from .month_utils import group_by_month, parse_month_key
from .schemas import BudgetOut, BudgetSummaryOut, BudgetUpsert

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/budgets", tags=["budgets"])


def get_budget_summary(db: Session, budget):
    """Household spending for the budget's month reconciled against its capital."""
    months = group_by_month(crud.list_expenses(db, budget.month))
    total = months[0].total if months else Decimal("0")
    result = reconcile_budget(total, budget)
    return BudgetSummaryOut(
        total_expenses=total,
        remaining=result.remaining,
        percentage_used=result.percentage_used,
        is_over_budget=result.is_over_budget,
    )


@router.get("")
def get_budget(
    month: str = Query(..., description="YYYY-MM"),
    year: int = Query(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    parse_month_key(month)
    budget = crud.get_budget(db, month, year)
    if budget is None:
        # undefined budget: nothing to reconcile against
        return {"success": True, "budget": None, "summary": None}

    return {
        "success": True,
        "budget": BudgetOut.model_validate(budget).to_json(),
        "summary": get_budget_summary(db, budget).to_json(),
    }


@router.post("")
def save_budget(payload: BudgetUpsert, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    budget, created = crud.upsert_budget(
        db,
        month=payload.month,
        year=payload.year,
        initial_capital=payload.initial_capital,
        description=payload.description,
        user=user,
    )
    logger.info("Budget %s %s by %s (capital=%s)", budget.month, "created" if created else "updated",
                user.username, budget.initial_capital)
    return {
        "success": True,
        "budget": BudgetOut.model_validate(budget).to_json(),
        "summary": get_budget_summary(db, budget).to_json(),
        "message": "Budget created" if created else "Budget updated",
    }


@router.delete("")
def delete_budget(
    month: str = Query(...),
    year: int = Query(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    parse_month_key(month)
    budget = crud.get_budget(db, month, year)
    if budget is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Budget not found")

    crud.delete_budget(db, budget)
    logger.info("Budget %s deleted by %s", month, user.username)
    return {"success": True, "message": "Budget deleted"}
