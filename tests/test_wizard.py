"""Tests for the step wizard and the form definitions built on it."""

from datetime import date

import pytest

from models.transaction import TransactionType
from services.errors import BackendError, ErrorKind
from services.forms import (DEBT_FORM, GOAL_FORM, REGISTRATION_FORM,
                            get_form, transaction_form)
from services.wizard import (FieldSpec, StepSpec, StepWizard, WizardError,
                             WizardValidationError)

TODAY = date(2026, 10, 19)


def two_step_wizard(clock):
    steps = [
        StepSpec(id="first", fields=[FieldSpec(name="amount", numeric=True)]),
        StepSpec(id="second", fields=[FieldSpec(name="note")]),
    ]
    return StepWizard(
        steps, defaults={"amount": "", "note": ""}, clock=clock, name="sample"
    )


class TestNavigation:
    """Tests for moving between steps."""

    def test_advance_blocked_until_step_complete(self, clock):
        """Advancing from an incomplete step does nothing."""
        wizard = two_step_wizard(clock)
        assert wizard.advance() is False
        assert wizard.current_step_index == 0
        assert wizard.step_errors(0) == {"amount": "Amount is required"}

    def test_numeric_field_must_be_positive(self, clock):
        """Zero and text do not satisfy a numeric field."""
        wizard = two_step_wizard(clock)
        for value in ("0", "-5", "abc"):
            wizard.update({"amount": value})
            assert wizard.advance() is False
        wizard.update({"amount": "12.50"})
        assert wizard.advance() is True
        assert wizard.current_step_index == 1

    def test_advance_ignored_during_transition(self, clock):
        """A second move inside the transition window is ignored."""
        wizard = two_step_wizard(clock)
        wizard.update({"amount": "10"})
        wizard.advance()
        wizard.retreat()
        assert wizard.current_step_index == 0
        assert wizard.advance() is False

        clock.advance(0.31)
        assert wizard.advance() is True

    def test_retreat_allowed_during_transition(self, clock):
        """Going back never waits for the transition."""
        wizard = two_step_wizard(clock)
        wizard.update({"amount": "10"})
        wizard.advance()
        assert wizard.retreat() is True
        assert wizard.retreat() is False

    def test_jump_out_of_range_raises(self, clock):
        """Jumping outside the step list is an error."""
        wizard = two_step_wizard(clock)
        with pytest.raises(WizardError):
            wizard.jump_to(5)

    def test_jump_does_not_require_complete_steps(self, clock):
        """Jumps skip the completeness gate."""
        wizard = two_step_wizard(clock)
        assert wizard.jump_to(1) is True
        assert wizard.is_last_step

    def test_wizard_needs_steps(self):
        """An empty step list is rejected."""
        with pytest.raises(WizardError):
            StepWizard([])


class TestSubmit:
    """Tests for submitting the finished form."""

    def test_submit_before_last_step_raises(self, clock):
        """Submission is only available on the last step."""
        wizard = two_step_wizard(clock)
        with pytest.raises(WizardError):
            wizard.submit(lambda data: data)

    def test_submit_reports_first_invalid_step(self, clock):
        """Missing fields on an earlier step point back to that step."""
        wizard = two_step_wizard(clock)
        wizard.jump_to(1)
        wizard.update({"note": "lunch"})
        with pytest.raises(WizardValidationError) as exc_info:
            wizard.submit(lambda data: data)
        assert exc_info.value.step_index == 0
        assert "amount" in exc_info.value.errors

    def test_successful_submit_saves_once_and_resets(self, clock):
        """The save callback sees the data once and the wizard starts over."""
        wizard = two_step_wizard(clock)
        wizard.update({"amount": "10", "note": "lunch"})
        wizard.jump_to(1)
        saved = []

        result = wizard.submit(lambda data: saved.append(data) or "row-1")

        assert result == "row-1"
        assert saved == [{"amount": "10", "note": "lunch"}]
        assert wizard.current_step_index == 0
        assert wizard.form_data == {"amount": "", "note": ""}

    def test_backend_failure_keeps_data(self, clock):
        """A rejected save keeps the data and remembers the message."""
        wizard = two_step_wizard(clock)
        wizard.update({"amount": "10", "note": "lunch"})
        wizard.jump_to(1)

        def save(data):
            raise BackendError(ErrorKind.CONSTRAINT_VIOLATION, "check failed")

        with pytest.raises(BackendError):
            wizard.submit(save)

        assert wizard.is_last_step
        assert wizard.form_data["note"] == "lunch"
        assert wizard.last_error == "check failed"

    def test_snapshot_restores_state(self, clock):
        """A snapshot carries step, data and record id."""
        wizard = two_step_wizard(clock)
        wizard.update({"amount": "7"})
        wizard.jump_to(1)
        wizard.record_id = "rec-1"

        restored = two_step_wizard(clock).load(wizard.snapshot())

        assert restored.current_step_index == 1
        assert restored.form_data["amount"] == "7"
        assert restored.record_id == "rec-1"
        assert restored.is_transitioning()


class TestDebtForm:
    """Tests for the debt form."""

    def test_installments_need_count(self):
        """Installment debts require the number of installments."""
        wizard = DEBT_FORM.start()
        wizard.update({"payment_type": "installments", "total_installments": ""})
        assert "total_installments" in wizard.step_errors(2)

        wizard.update({"payment_type": "fixed"})
        assert wizard.step_errors(2) == {}

    def test_installment_payload(self):
        """Installment debts keep frequency and count; remaining equals original."""
        payload = DEBT_FORM.payload_from(
            {
                "title": "Laptop",
                "original_amount": "1200",
                "type": "debt_owing",
                "payment_type": "installments",
                "payment_frequency": "monthly",
                "total_installments": "12",
            },
            "user-1",
            TODAY,
        )
        assert payload["user_id"] == "user-1"
        assert payload["original_amount"] == 1200.0
        assert payload["remaining_amount"] == 1200.0
        assert payload["total_installments"] == 12
        assert payload["payment_frequency"] == "monthly"
        assert payload["due_date"] is None

    def test_fixed_payload_drops_installment_fields(self):
        """Fixed debts carry no frequency and zero installments."""
        payload = DEBT_FORM.payload_from(
            {"title": "Loan", "original_amount": "300", "type": "debt_owed"},
            "user-1",
            TODAY,
        )
        assert payload["payment_frequency"] is None
        assert payload["total_installments"] == 0
        assert payload["type"] == "debt_owed"

    def test_payload_ignores_unknown_keys(self):
        """Fields outside the form never reach the payload."""
        payload = DEBT_FORM.payload_from(
            {"title": "Loan", "original_amount": "300", "user_id": "someone-else"},
            "user-1",
            TODAY,
        )
        assert payload["user_id"] == "user-1"

    def test_edit_seeds_from_record(self):
        """Editing starts on the first step with the record's values."""
        wizard = DEBT_FORM.start(
            {"id": "d1", "title": "Car", "original_amount": 5000, "due_date": "2027-01-31"}
        )
        assert wizard.record_id == "d1"
        assert wizard.current_step_index == 0
        assert wizard.form_data["original_amount"] == "5000"
        assert wizard.form_data["due_date"] == "2027-01-31"


class TestTransactionForm:
    """Tests for the income and expense forms."""

    def test_expense_payload(self):
        """A complete expense becomes an insert payload."""
        payload = transaction_form(TransactionType.EXPENSE).payload_from(
            {
                "amount": "25.5",
                "description": " Almuerzo ",
                "category": "comida",
                "account": "efectivo",
            },
            "user-1",
            TODAY,
        )
        assert payload == {
            "user_id": "user-1",
            "amount": 25.5,
            "type": "expense",
            "description": "Almuerzo",
            "category": "comida",
            "account": "efectivo",
        }

    def test_category_must_match_type(self):
        """Income categories are not valid for expenses."""
        with pytest.raises(WizardValidationError) as exc_info:
            transaction_form(TransactionType.EXPENSE).payload_from(
                {
                    "amount": "10",
                    "description": "Pago",
                    "category": "salario",
                    "account": "efectivo",
                },
                "user-1",
                TODAY,
            )
        assert "category" in exc_info.value.errors
        assert exc_info.value.step_index == 2

    def test_edit_opens_at_last_step(self):
        """Editing a transaction lands on the final step."""
        wizard = get_form("income").start(
            {"id": "t1", "amount": 100, "description": "Pago", "category": "salario"}
        )
        assert wizard.is_last_step
        assert wizard.form_data["amount"] == "100"


class TestGoalForm:
    """Tests for the savings goal form."""

    def values(self, **overrides):
        values = {
            "name": "Viaje",
            "target_amount": "1000",
            "current_saved": "400",
            "target_date": "2027-06-01",
        }
        values.update(overrides)
        return values

    def test_status_is_derived(self):
        """Goals reaching the target are completed."""
        assert GOAL_FORM.payload_from(self.values(), "u", TODAY)["status"] == "active"
        completed = GOAL_FORM.payload_from(self.values(current_saved="1000"), "u", TODAY)
        assert completed["status"] == "completed"

    def test_target_date_must_be_future(self):
        """Today's date is not a valid target."""
        with pytest.raises(WizardValidationError) as exc_info:
            GOAL_FORM.payload_from(self.values(target_date="2026-10-19"), "u", TODAY)
        assert "target_date" in exc_info.value.errors

    def test_current_cannot_exceed_target(self):
        """Saved amount above the target is rejected."""
        with pytest.raises(WizardValidationError) as exc_info:
            GOAL_FORM.payload_from(self.values(current_saved="1500"), "u", TODAY)
        assert "current_saved" in exc_info.value.errors


class TestRegistrationForm:
    """Tests for the registration form."""

    def test_password_rules(self):
        """Registration passwords need mixed case and a digit."""
        wizard = REGISTRATION_FORM.start()
        wizard.update({"password": "password1"})
        assert wizard.step_errors(2) == {
            "password": "Password must contain an uppercase letter"
        }
        wizard.update({"password": "Password1"})
        assert wizard.step_errors(2) == {}

    def test_country_defaults(self):
        """The country step is complete by default."""
        assert REGISTRATION_FORM.start().form_data["country"] == "CO"

    def test_registration_form_builds_no_records(self):
        """The registration form is validated but never saved as a row."""
        with pytest.raises(WizardError):
            REGISTRATION_FORM.validate({}, TODAY)


class TestFormLookup:
    """Tests for looking forms up by name."""

    def test_known_forms(self):
        """Every wizard-backed form is registered."""
        for name in ("debt", "expense", "income", "goal"):
            assert get_form(name).name == name

    def test_unknown_form(self):
        """Unknown names raise a wizard error."""
        with pytest.raises(WizardError):
            get_form("registration")
