import logging
import re
from datetime import date
from typing import Iterable, List, Optional

from pydantic import ValidationError
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .budget_utils import validate_initial_capital
from .errors import InvalidInput
from .models import Expense, MonthlyBudget, User, utcnow
from .month_utils import parse_month_key
from .schemas import BulkItemResult, ExpenseCreate, ExpenseUpdate
from .security import hash_password

logger = logging.getLogger(__name__)


def is_valid_email(email: str) -> bool:
    pattern = r"^[\w\.\+-]+@[\w\.-]+\.\w{2,}$"
    return re.match(pattern, email) is not None


# ---------------- Users ----------------

def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_login(db: Session, email_or_username: str) -> Optional[User]:
    login = email_or_username.strip()
    return db.query(User).filter(
        or_(func.lower(User.email) == login.lower(), User.username == login)
    ).first()


def list_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.created_at, User.id).all()


def create_user(db: Session, email: str, username: str, full_name: str, password: str, is_admin: bool = False) -> User:
    email = email.strip().lower()
    if not is_valid_email(email):
        raise InvalidInput("Invalid email format (e.g. name@example.com)")

    if db.query(User).filter(User.email == email).first():
        raise InvalidInput("Email already registered")
    if db.query(User).filter(User.username == username).first():
        raise InvalidInput("Username already taken")

    user = User(
        email=email,
        username=username,
        full_name=full_name,
        password_hash=hash_password(password),
        is_admin=is_admin,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def set_user_admin(db: Session, user: User, is_admin: bool) -> User:
    user.is_admin = is_admin
    user.updated_at = utcnow()
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user: User):
    # budgets are shared, keep them but forget who created them
    db.query(MonthlyBudget).filter(MonthlyBudget.created_by_id == user.id).update(
        {MonthlyBudget.created_by_id: None}, synchronize_session=False
    )
    db.delete(user)
    db.commit()


# ---------------- Expenses ----------------

def _month_bounds(month: str):
    year, month_num = parse_month_key(month)
    start = date(year, month_num, 1)
    end = date(year + 1, 1, 1) if month_num == 12 else date(year, month_num + 1, 1)
    return start, end


def get_expense_by_id(db: Session, expense_id: int) -> Optional[Expense]:
    return db.query(Expense).filter(Expense.id == expense_id).first()


def list_expenses(db: Session, month: Optional[str] = None) -> List[Expense]:
    """Every expense in the household pool, optionally restricted to one YYYY-MM month."""
    query = db.query(Expense).options(joinedload(Expense.owner))
    if month:
        start, end = _month_bounds(month)
        query = query.filter(Expense.date >= start, Expense.date < end)
    return query.order_by(Expense.date, Expense.id).all()


def list_expenses_by_owner(db: Session, user_id: int, month: Optional[str] = None) -> List[Expense]:
    query = db.query(Expense).options(joinedload(Expense.owner)).filter(Expense.user_id == user_id)
    if month:
        start, end = _month_bounds(month)
        query = query.filter(Expense.date >= start, Expense.date < end)
    return query.order_by(Expense.date, Expense.id).all()


def create_expense(db: Session, user: User, data: ExpenseCreate) -> Expense:
    expense = Expense(
        user_id=user.id,
        amount=data.amount,
        description=data.description,
        category=data.category or "general",
        date=data.date,
    )
    db.add(expense)
    db.commit()
    db.refresh(expense)
    return expense


def update_expense(db: Session, expense: Expense, data: ExpenseUpdate) -> Expense:
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(expense, field, value)
    expense.updated_at = utcnow()
    db.commit()
    db.refresh(expense)
    return expense


def delete_expense(db: Session, expense: Expense):
    db.delete(expense)
    db.commit()


def can_modify_expense(user: User, expense: Expense) -> bool:
    return expense.user_id == user.id or user.is_admin


def create_expenses(db: Session, user: User, items: Iterable) -> List[BulkItemResult]:
    """Create each item independently; invalid rows are reported, not raised."""
    results = []
    for index, raw in enumerate(items):
        try:
            data = ExpenseCreate.model_validate(raw)
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            reason = f"{field}: {first['msg']}" if field else first["msg"]
            results.append(BulkItemResult(key=index, status="failed", reason=reason))
            continue
        try:
            expense = create_expense(db, user, data)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Batch create by %s: item %d failed to save", user.username, index)
            results.append(BulkItemResult(key=index, status="failed", reason="Could not save expense"))
            continue
        results.append(BulkItemResult(key=expense.id, status="succeeded"))

    failed = sum(1 for r in results if r.status == "failed")
    logger.info("Batch create by %s: %d created, %d rejected", user.username, len(results) - failed, failed)
    return results


def delete_expenses(db: Session, user: User, expense_ids: Iterable[int]) -> List[BulkItemResult]:
    """Best-effort bulk delete with one tagged result per id."""
    results = []
    for expense_id in expense_ids:
        expense = get_expense_by_id(db, expense_id)
        if expense is None:
            results.append(BulkItemResult(key=expense_id, status="failed", reason="Expense not found"))
            continue
        if not can_modify_expense(user, expense):
            results.append(BulkItemResult(key=expense_id, status="failed", reason="Not allowed to delete this expense"))
            continue
        try:
            delete_expense(db, expense)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Bulk delete by %s: expense %s failed to delete", user.username, expense_id)
            results.append(BulkItemResult(key=expense_id, status="failed", reason="Could not delete expense"))
            continue
        results.append(BulkItemResult(key=expense_id, status="succeeded"))

    failed = sum(1 for r in results if r.status == "failed")
    logger.info("Bulk delete by %s: %d deleted, %d failed", user.username, len(results) - failed, failed)
    return results


# ---------------- Monthly budgets ----------------

def _check_budget_period(month: str, year: int):
    key_year, _ = parse_month_key(month)
    if key_year != year:
        raise InvalidInput(f"Year {year} does not match month {month}")


def get_budget(db: Session, month: str, year: int) -> Optional[MonthlyBudget]:
    return db.query(MonthlyBudget).filter_by(month=month, year=year).first()


def upsert_budget(db: Session, month: str, year: int, initial_capital, description: Optional[str] = None,
                  user: Optional[User] = None):
    """
    Insert or overwrite the household budget for (month, year).

    Last writer wins. Returns (budget, created).
    """
    capital = validate_initial_capital(initial_capital)
    _check_budget_period(month, year)

    budget = get_budget(db, month, year)
    created = budget is None
    if created:
        budget = MonthlyBudget(
            month=month,
            year=year,
            initial_capital=capital,
            description=description or None,
            created_by_id=user.id if user else None,
        )
        db.add(budget)
    else:
        budget.initial_capital = capital
        budget.description = description or None
        budget.updated_at = utcnow()

    db.commit()
    db.refresh(budget)
    return budget, created


def delete_budget(db: Session, budget: MonthlyBudget):
    db.delete(budget)
    db.commit()
