from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from family_expenses import crud
from family_expenses.errors import InvalidInput
from family_expenses.models import MonthlyBudget
from family_expenses.schemas import ExpenseCreate


class TestBudgetUpsert:
    """Tests for the household budget upsert."""

    def test_second_upsert_overwrites_first(self, db, regular_user):
        first, created_first = crud.upsert_budget(db, "2024-03", 2024, 1000, "Capital donné par papa", user=regular_user)
        second, created_second = crud.upsert_budget(db, "2024-03", 2024, "1500.25", None, user=regular_user)

        assert created_first is True
        assert created_second is False
        assert first.id == second.id

        rows = db.query(MonthlyBudget).filter_by(month="2024-03", year=2024).all()
        assert len(rows) == 1
        assert rows[0].initial_capital == Decimal("1500.25")
        assert rows[0].description is None

    def test_other_month_gets_its_own_record(self, db):
        crud.upsert_budget(db, "2024-03", 2024, 1000)
        crud.upsert_budget(db, "2024-04", 2024, 1000)
        assert db.query(MonthlyBudget).count() == 2

    @pytest.mark.parametrize("capital", [0, -5, "abc", None])
    def test_rejects_non_positive_capital(self, db, capital):
        with pytest.raises(InvalidInput):
            crud.upsert_budget(db, "2024-03", 2024, capital)
        assert db.query(MonthlyBudget).count() == 0

    def test_rejects_year_mismatch(self, db):
        with pytest.raises(InvalidInput):
            crud.upsert_budget(db, "2024-03", 2023, 100)

    def test_rejects_malformed_month(self, db):
        with pytest.raises(InvalidInput):
            crud.upsert_budget(db, "2024-3", 2024, 100)


class TestUsers:

    def test_duplicate_email_rejected(self, db, regular_user):
        with pytest.raises(InvalidInput, match="Email already registered"):
            crud.create_user(db, "MARIE@family.com", "marie2", "Marie Bis", "secret-123")

    def test_duplicate_username_rejected(self, db, regular_user):
        with pytest.raises(InvalidInput, match="Username already taken"):
            crud.create_user(db, "other@family.com", "marie", "Marie Bis", "secret-123")

    def test_invalid_email_rejected(self, db):
        with pytest.raises(InvalidInput):
            crud.create_user(db, "not-an-email", "bob", "Bob", "secret-123")

    def test_password_is_hashed(self, db, regular_user):
        assert regular_user.password_hash != "user-pass-1"
        assert regular_user.password_hash.startswith("$2")

    def test_login_lookup_by_email_or_username(self, db, regular_user):
        assert crud.get_user_by_login(db, "marie").id == regular_user.id
        assert crud.get_user_by_login(db, "Marie@Family.com").id == regular_user.id
        assert crud.get_user_by_login(db, "nobody") is None

    def test_deleting_user_removes_expenses_keeps_budget(self, db, regular_user):
        user_id = regular_user.id
        crud.create_expense(db, regular_user, ExpenseCreate(amount=10, description="pain", date=date(2024, 3, 1)))
        budget, _ = crud.upsert_budget(db, "2024-03", 2024, 100, user=regular_user)
        budget_id = budget.id

        crud.delete_user(db, regular_user)
        db.expire_all()

        assert crud.get_user_by_id(db, user_id) is None
        assert crud.list_expenses_by_owner(db, user_id) == []
        remaining = db.query(MonthlyBudget).filter_by(id=budget_id).one()
        assert remaining.created_by_id is None


class TestExpenseBulk:
    """Tests for per-item bulk results."""

    def test_batch_create_reports_each_item(self, db, regular_user):
        results = crud.create_expenses(db, regular_user, [
            {"amount": 12.5, "description": "marché", "date": "2024-03-02"},
            {"amount": -3, "description": "bad", "date": "2024-03-02"},
            {"amount": 7, "description": "bus", "date": "2024-03-04T08:00:00Z", "category": "transport"},
        ])

        assert [r.status for r in results] == ["succeeded", "failed", "succeeded"]
        assert results[1].key == 1
        assert "amount" in results[1].reason
        assert len(crud.list_expenses_by_owner(db, regular_user.id)) == 2

    def test_bulk_delete_continues_past_failures(self, db, regular_user, other_user):
        mine = crud.create_expense(db, regular_user, ExpenseCreate(amount=5, description="a", date=date(2024, 1, 1)))
        theirs = crud.create_expense(db, other_user, ExpenseCreate(amount=5, description="b", date=date(2024, 1, 1)))
        mine_id, theirs_id = mine.id, theirs.id

        results = crud.delete_expenses(db, regular_user, [theirs_id, 9999, mine_id])

        by_key = {r.key: r for r in results}
        assert by_key[theirs_id].status == "failed"
        assert by_key[9999].status == "failed"
        assert by_key[9999].reason == "Expense not found"
        assert by_key[mine_id].status == "succeeded"
        assert crud.get_expense_by_id(db, mine_id) is None
        assert crud.get_expense_by_id(db, theirs_id) is not None

    def test_batch_create_survives_database_error(self, db, regular_user, monkeypatch):
        """A row the database refuses is reported and the rest of the batch is saved."""
        real_create = crud.create_expense
        calls = []

        def flaky_create(db, user, data):
            calls.append(data.description)
            if len(calls) == 2:
                raise OperationalError("INSERT INTO expenses", {}, Exception("disk I/O error"))
            return real_create(db, user, data)

        monkeypatch.setattr(crud, "create_expense", flaky_create)
        results = crud.create_expenses(db, regular_user, [
            {"amount": 1, "description": "a", "date": "2024-03-01"},
            {"amount": 2, "description": "b", "date": "2024-03-02"},
            {"amount": 3, "description": "c", "date": "2024-03-03"},
        ])

        assert [r.status for r in results] == ["succeeded", "failed", "succeeded"]
        assert results[1].key == 1
        assert results[1].reason == "Could not save expense"
        saved = crud.list_expenses_by_owner(db, regular_user.id)
        assert sorted(e.description for e in saved) == ["a", "c"]

    def test_bulk_delete_survives_database_error(self, db, regular_user, monkeypatch):
        first = crud.create_expense(db, regular_user, ExpenseCreate(amount=1, description="a", date=date(2024, 1, 1)))
        second = crud.create_expense(db, regular_user, ExpenseCreate(amount=2, description="b", date=date(2024, 1, 2)))
        first_id, second_id = first.id, second.id
        real_delete = crud.delete_expense

        def flaky_delete(db, expense):
            if expense.id == first_id:
                raise SQLAlchemyError("database is locked")
            return real_delete(db, expense)

        monkeypatch.setattr(crud, "delete_expense", flaky_delete)
        results = crud.delete_expenses(db, regular_user, [first_id, second_id])

        assert [(r.key, r.status) for r in results] == [(first_id, "failed"), (second_id, "succeeded")]
        assert results[0].reason == "Could not delete expense"
        assert crud.get_expense_by_id(db, first_id) is not None
        assert crud.get_expense_by_id(db, second_id) is None

    def test_month_filter(self, db, regular_user):
        crud.create_expense(db, regular_user, ExpenseCreate(amount=1, description="jan", date=date(2024, 1, 31)))
        crud.create_expense(db, regular_user, ExpenseCreate(amount=2, description="feb", date=date(2024, 2, 1)))
        crud.create_expense(db, regular_user, ExpenseCreate(amount=3, description="dec", date=date(2024, 12, 31)))

        assert [e.description for e in crud.list_expenses(db, "2024-02")] == ["feb"]
        assert [e.description for e in crud.list_expenses(db, "2024-12")] == ["dec"]
