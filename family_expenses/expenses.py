# family_expenses/expenses.py

import csv
import logging
from io import StringIO
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from . import crud
from .auth import get_current_user
from .database import get_db
from .models import Expense, User
from .month_utils import ExpenseMonth, group_by_month, parse_month_key, sort_months_desc
from .schemas import BulkDeleteRequest, ExpenseBatch, ExpenseCreate, ExpenseMonthOut, ExpenseOut, ExpenseUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/expenses", tags=["expenses"])


def serialize_months(months: List[ExpenseMonth]) -> List[dict]:
    return [
        ExpenseMonthOut(
            month=m.month,
            year=m.year,
            expenses=[ExpenseOut.model_validate(e) for e in m.expenses],
            total=m.total,
            last_modified_at=m.last_modified_at,
            last_modified_by=m.last_modified_by,
        ).to_json()
        for m in months
    ]


def _fetch(db: Session, user: User, month: Optional[str], mine: bool) -> List[Expense]:
    if month:
        parse_month_key(month)
    if mine:
        return crud.list_expenses_by_owner(db, user.id, month)
    return crud.list_expenses(db, month)


def _get_owned_expense(db: Session, user: User, expense_id: int) -> Expense:
    expense = crud.get_expense_by_id(db, expense_id)
    if not expense:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expense not found")
    if not crud.can_modify_expense(user, expense):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to modify this expense")
    return expense


def _bulk_response(results) -> dict:
    failed = sum(1 for r in results if r.status == "failed")
    return {
        "success": failed == 0,
        "successCount": len(results) - failed,
        "errorCount": failed,
        "results": [r.to_json() for r in results],
    }


@router.get("")
def list_expense_months(
    month: Optional[str] = Query(None, description="Restrict to one YYYY-MM month"),
    mine: bool = Query(False, description="Only the caller's own expenses"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    months = sort_months_desc(group_by_month(_fetch(db, user, month, mine)))
    return {"success": True, "expenseMonths": serialize_months(months)}


@router.post("")
def add_expense(payload: ExpenseCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    expense = crud.create_expense(db, user, payload)
    logger.info("Expense %s created by %s", expense.id, user.username)
    return {
        "success": True,
        "expense": ExpenseOut.model_validate(expense).to_json(),
        "message": "Expense created",
    }


@router.post("/batch")
def add_expenses(payload: ExpenseBatch, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    results = crud.create_expenses(db, user, payload.expenses)
    return _bulk_response(results)


@router.post("/bulk-delete")
def bulk_delete_expenses(
    payload: BulkDeleteRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    results = crud.delete_expenses(db, user, payload.ids)
    return _bulk_response(results)


@router.get("/export.csv")
def export_csv(
    month: Optional[str] = Query(None),
    mine: bool = Query(False),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    months = sort_months_desc(group_by_month(_fetch(db, user, month, mine)))

    def generate():
        data = StringIO()
        writer = csv.writer(data)
        writer.writerow(["Month", "Date", "Description", "Category", "Amount", "Created by"])
        for m in months:
            for e in m.expenses:
                writer.writerow([m.month, e.date.isoformat(), e.description, e.category, e.amount, e.created_by])
            writer.writerow([m.month, "", "TOTAL", "", m.total, ""])
        data.seek(0)
        return data

    filename = f"expenses-{month}.csv" if month else "expenses.csv"
    return StreamingResponse(generate(), media_type="text/csv", headers={
        "Content-Disposition": f"attachment; filename={filename}"
    })


@router.put("/{expense_id}")
def edit_expense(
    expense_id: int,
    payload: ExpenseUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    expense = _get_owned_expense(db, user, expense_id)
    expense = crud.update_expense(db, expense, payload)
    return {
        "success": True,
        "expense": ExpenseOut.model_validate(expense).to_json(),
        "message": "Expense updated",
    }


@router.delete("/{expense_id}")
def remove_expense(expense_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    expense = _get_owned_expense(db, user, expense_id)
    crud.delete_expense(db, expense)
    logger.info("Expense %s deleted by %s", expense_id, user.username)
    return {"success": True, "message": "Expense deleted"}
