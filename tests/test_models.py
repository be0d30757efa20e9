"""Tests for the table models and their derived values."""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from models.debt import (Debt, DebtFilter, DebtPaymentCreate, DebtSort,
                         DebtStatus, DebtType, sort_debts)
from models.goal import Goal, GoalCreate, GoalStatus, months_between
from models.profile import Profile
from models.transaction import Transaction, TransactionType

TODAY = date(2026, 10, 19)


def make_debt(debt_id="d1", amount=1000, paid=(), **fields):
    record = {"id": debt_id, "title": "Debt", "original_amount": amount}
    record.update(fields)
    payments = [
        {"id": f"p{i}", "debt_id": debt_id, "amount": value, "payment_date": "2026-10-01"}
        for i, value in enumerate(paid)
    ]
    return Debt.from_record(record, payments)


class TestDebt:
    """Tests for the values derived from a debt and its payments."""

    def test_pending_and_progress(self):
        """Pending amount and progress come from the payments."""
        debt = make_debt(amount=1000, paid=(250, 150))
        assert debt.total_paid == Decimal("400")
        assert debt.pending_amount == Decimal("600")
        assert debt.progress_percentage == 40.0
        assert debt.is_paid is False

    def test_fully_paid(self):
        """A debt whose payments cover it is paid."""
        debt = make_debt(amount=300, paid=(300,))
        assert debt.is_paid is True
        assert debt.matches(DebtFilter.PAID)
        assert not debt.matches(DebtFilter.ALL)

    def test_recommended_payment(self):
        """Installment debts split the original amount; fixed debts pay the rest."""
        installments = make_debt(
            amount=1200, payment_type="installments", total_installments=12
        )
        assert installments.recommended_payment == Decimal("100")
        assert make_debt(amount=500, paid=(100,)).recommended_payment == Decimal("400")

    def test_due_status(self):
        """Due status by days left; paid debts are always paid."""
        assert make_debt(due_date="2026-10-10").due_status(TODAY) == "overdue"
        assert make_debt(due_date="2026-10-24").due_status(TODAY) == "due-soon"
        assert make_debt(due_date="2026-12-01").due_status(TODAY) == "normal"
        assert make_debt().due_status(TODAY) == "no-due-date"
        paid = make_debt(due_date="2026-10-10", status="paid")
        assert paid.status == DebtStatus.PAID
        assert paid.due_status(TODAY) == "paid"

    def test_filters_by_direction(self):
        """``me_deben`` lists debts owed to me, ``yo_debo`` the ones I owe."""
        owed = make_debt(type="debt_owed")
        owing = make_debt(type="debt_owing")
        assert owed.type == DebtType.OWED
        assert owed.matches(DebtFilter.OWED_TO_ME) and not owed.matches(DebtFilter.I_OWE)
        assert owing.matches(DebtFilter.I_OWE) and not owing.matches(DebtFilter.OWED_TO_ME)

    def test_sort_by_due_date_puts_undated_last(self):
        """Debts without a due date sort after dated ones."""
        debts = [
            make_debt("a"),
            make_debt("b", due_date="2026-12-01"),
            make_debt("c", due_date="2026-11-01"),
        ]
        assert [d.id for d in sort_debts(debts, DebtSort.DUE_DATE)] == ["c", "b", "a"]

    def test_sort_by_amount_and_created_at(self):
        """Amount sorts by pending amount, created_at newest first."""
        debts = [
            make_debt("a", amount=100, created_at="2026-01-01T00:00:00+00:00"),
            make_debt("b", amount=900, paid=(850,), created_at="2026-03-01T00:00:00+00:00"),
            make_debt("c", amount=500, created_at="2026-02-01T00:00:00+00:00"),
        ]
        assert [d.id for d in sort_debts(debts, DebtSort.AMOUNT)] == ["c", "a", "b"]
        assert [d.id for d in sort_debts(debts, DebtSort.CREATED_AT)] == ["b", "c", "a"]

    def test_embedded_payments(self):
        """Payments embedded in the row are picked up."""
        debt = Debt.from_record(
            {
                "id": "d1",
                "original_amount": "50",
                "debt_payments": [{"debt_id": "d1", "amount": "20"}],
            }
        )
        assert debt.pending_amount == Decimal("30")

    def test_response_includes_derived_fields(self):
        """The API view carries the computed values."""
        response = make_debt(amount=1000, paid=(400,)).to_response(TODAY)
        assert response["pending_amount"] == Decimal("600")
        assert response["progress_percentage"] == 40.0
        assert response["due_status"] == "no-due-date"
        assert len(response["payments"]) == 1


class TestDebtPaymentCreate:
    """Tests for new payments."""

    def test_amount_must_be_positive(self):
        """Zero payments are rejected."""
        with pytest.raises(ValidationError):
            DebtPaymentCreate(debt_id="d1", amount=0)

    def test_blank_notes_become_null(self):
        """Whitespace-only notes are not stored."""
        payload = DebtPaymentCreate(
            debt_id="d1", amount="10", payment_date="2026-10-19", notes="  "
        ).to_payload()
        assert payload == {
            "debt_id": "d1",
            "amount": 10.0,
            "payment_date": "2026-10-19",
            "notes": None,
        }


class TestGoal:
    """Tests for savings goal values."""

    def test_progress_and_monthly_required(self):
        """400 of 1000 is 40 %; 600 over 6 months is 100 a month."""
        goal = Goal.from_record(
            {"id": "g1", "name": "Viaje", "target_amount": 1000,
             "current_saved": 400, "target_date": "2027-04-01"}
        )
        assert goal.progress_percentage == 40
        assert goal.months_until_target(TODAY) == 6
        assert goal.monthly_required(TODAY) == 100

    def test_monthly_required_rounds_up(self):
        """Monthly amounts are rounded up to whole units."""
        goal = Goal(name="Fondo", target_amount=1000, current_saved=0,
                    target_date=date(2027, 1, 5))
        assert goal.monthly_required(TODAY) == 334

    def test_past_target_needs_nothing(self):
        """Goals past their date ask for no monthly amount."""
        goal = Goal(name="Old", target_amount=100, target_date=date(2026, 1, 1))
        assert goal.months_until_target(TODAY) == 0
        assert goal.monthly_required(TODAY) == 0

    def test_months_between(self):
        """Months count calendar months, not days."""
        assert months_between(date(2026, 10, 31), date(2026, 11, 1)) == 1

    def test_create_derives_status(self):
        """The status follows the amounts."""
        goal = GoalCreate(
            name="Fondo", target_amount=500, current_saved=500, target_date="2027-01-01"
        )
        assert goal.status == GoalStatus.COMPLETED
        assert goal.to_payload("user-1")["status"] == "completed"


class TestProfile:
    """Tests for profile rows."""

    def test_defaults_from_metadata(self):
        """Sign-up metadata fills the default profile."""
        profile = Profile.default_for(
            "user-1", "ana@example.com", {"full_name": "Ana", "country_code": "MX"}
        )
        assert (profile.full_name, profile.country_code) == ("Ana", "MX")

    def test_defaults_without_metadata(self):
        """Without metadata the email's local part and Colombia are used."""
        profile = Profile.default_for("user-1", "ana@example.com", None)
        assert (profile.full_name, profile.country_code) == ("ana", "CO")
        assert Profile.default_for("user-1", None, None).full_name == "Usuario"

    def test_from_record_ignores_nulls(self):
        """Null columns fall back to the model defaults."""
        profile = Profile.from_record(
            {"id": "user-1", "full_name": None, "current_streak": None,
             "last_activity_date": "2026-10-18T10:00:00+00:00"}
        )
        assert profile.full_name == "Usuario"
        assert profile.current_streak == 0
        assert profile.last_activity_date == date(2026, 10, 18)


class TestTransaction:
    """Tests for transaction rows."""

    def test_from_record(self):
        """Null amounts read as zero."""
        transaction = Transaction.from_record({"amount": None, "type": "income"})
        assert transaction.amount == Decimal("0")
        assert transaction.type == TransactionType.INCOME
