"""
Form definitions driven by ``StepWizard``.

Each definition bundles the steps, the default data, how an existing
record seeds the form for editing, extra record-level checks, and how
the finished form becomes a Supabase payload.
"""

from datetime import date
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from models.dates import as_date
from models.debt import DebtCreate, PaymentType
from models.goal import GoalCreate
from models.profile import DEFAULT_COUNTRY
from models.transaction import (TransactionCreate, TransactionType,
                                accounts_for, categories_for)
from services.wizard import (FieldSpec, StepSpec, StepWizard, WizardError,
                             WizardValidationError)
from utils.security import email_error, registration_password_error

RecordCheck = Callable[[Dict[str, Any], date], Dict[str, str]]


def _date_text(value: Any) -> str:
    parsed = as_date(value)
    return parsed.isoformat() if parsed else ""


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _choice(options: Dict[str, str]):
    def validate(value: Any) -> Optional[str]:
        if value not in options:
            return f"Choose one of: {', '.join(options)}"
        return None

    return validate


def pydantic_errors(error: ValidationError) -> Dict[str, str]:
    """Flatten a pydantic ValidationError into ``{field: message}``."""
    errors = {}
    for item in error.errors():
        field = ".".join(str(part) for part in item.get("loc", ())) or "__all__"
        errors.setdefault(field, item.get("msg", "Invalid value"))
    return errors


class FormDefinition(BaseModel):
    name: str
    table: Optional[str] = None
    steps: List[StepSpec]
    defaults: Dict[str, Any]
    model: Optional[type] = None
    seed: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None
    check: Optional[RecordCheck] = None
    edit_opens_at_last_step: bool = False
    fixed_values: Dict[str, Any] = {}

    def start(self, record: Optional[Dict[str, Any]] = None, **kwargs) -> StepWizard:
        """
        New wizard; with ``record`` it is seeded for editing that record.
        """
        data = dict(self.defaults)
        if record is not None:
            if self.seed is None:
                raise WizardError(f"The {self.name} form cannot edit records")
            data.update(self.seed(record))

        wizard = StepWizard(
            self.steps, form_data=data, defaults=self.defaults, name=self.name, **kwargs
        )
        if record is not None:
            wizard.record_id = _text(record.get("id")) or None
            if self.edit_opens_at_last_step:
                wizard.current_step_index = wizard.step_count - 1
        return wizard

    def validate(self, data: Dict[str, Any], today: date) -> BaseModel:
        """
        Run record-level checks and build the typed model.

        Raises:
            WizardValidationError: With ``{field: message}`` details
        """
        if self.model is None:
            raise WizardError(f"The {self.name} form does not build records")

        errors = self.check(data, today) if self.check else {}
        if errors:
            raise WizardValidationError(errors)

        values = {key: value for key, value in data.items() if value != ""}
        values.update(self.fixed_values)
        try:
            return self.model(**values)
        except ValidationError as e:
            raise WizardValidationError(pydantic_errors(e))

    def build_payload(
        self, data: Dict[str, Any], user_id: str, today: date
    ) -> Dict[str, Any]:
        return self.validate(data, today).to_payload(user_id)

    def payload_from(
        self, values: Dict[str, Any], user_id: str, today: date
    ) -> Dict[str, Any]:
        """
        Check a one-shot submission with the same step rules the wizard
        applies, then build its payload. Unknown keys are ignored.
        """
        wizard = self.start()
        wizard.update({key: value for key, value in values.items() if key in self.defaults})
        errors = wizard.errors()
        if errors:
            first_bad_step = min(
                i for i in range(wizard.step_count) if wizard.step_errors(i)
            )
            raise WizardValidationError(errors, step_index=first_bad_step)
        return self.build_payload(wizard.form_data, user_id, today)


def _installments(data: Dict[str, Any]) -> bool:
    return data.get("payment_type") == PaymentType.INSTALLMENTS.value


def _seed_debt(record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "title": record.get("title") or record.get("description") or "",
        "description": record.get("description") or "",
        "original_amount": _text(record.get("original_amount")),
        "type": record.get("type") or "debt_owing",
        "payment_type": record.get("payment_type") or "fixed",
        "payment_frequency": record.get("payment_frequency") or "monthly",
        "total_installments": record.get("total_installments") or 1,
        "due_date": _date_text(record.get("due_date")),
        "creditor_debtor_name": record.get("creditor_debtor_name") or "",
        "status": record.get("status") or "active",
    }


DEBT_FORM = FormDefinition(
    name="debt",
    table="debts",
    model=DebtCreate,
    steps=[
        StepSpec(
            id="basics",
            title="Basic information",
            fields=[
                FieldSpec(name="title"),
                FieldSpec(name="description", required=False),
                FieldSpec(name="original_amount", label="amount", numeric=True),
            ],
        ),
        StepSpec(
            id="type",
            title="Debt type",
            fields=[
                FieldSpec(name="type"),
                FieldSpec(name="creditor_debtor_name", required=False),
            ],
        ),
        StepSpec(
            id="payment",
            title="Payment",
            fields=[
                FieldSpec(name="payment_type"),
                FieldSpec(name="payment_frequency", required_when=_installments),
                FieldSpec(
                    name="total_installments",
                    label="number of installments",
                    numeric=True,
                    required_when=_installments,
                ),
            ],
        ),
        StepSpec(
            id="details",
            title="Final details",
            fields=[
                FieldSpec(name="due_date", required=False),
                FieldSpec(name="status"),
            ],
        ),
    ],
    defaults={
        "title": "",
        "description": "",
        "original_amount": "",
        "type": "debt_owing",
        "payment_type": "fixed",
        "payment_frequency": "monthly",
        "total_installments": 1,
        "due_date": "",
        "creditor_debtor_name": "",
        "status": "active",
    },
    seed=_seed_debt,
)


def _seed_transaction(record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "amount": _text(record.get("amount")),
        "description": record.get("description") or "",
        "category": record.get("category") or "",
        "account": record.get("account") or "",
    }


def transaction_form(transaction_type: TransactionType) -> FormDefinition:
    categories = categories_for(transaction_type)
    accounts = accounts_for(transaction_type)
    return FormDefinition(
        name=transaction_type.value,
        table="transactions",
        model=TransactionCreate,
        steps=[
            StepSpec(
                id="amount", title="Amount", fields=[FieldSpec(name="amount", numeric=True)]
            ),
            StepSpec(
                id="description",
                title="Description",
                fields=[FieldSpec(name="description")],
            ),
            StepSpec(
                id="category",
                title="Category",
                fields=[FieldSpec(name="category", validators=[_choice(categories)])],
            ),
            StepSpec(
                id="account",
                title="Account",
                fields=[FieldSpec(name="account", validators=[_choice(accounts)])],
            ),
        ],
        defaults={"amount": "", "description": "", "category": "", "account": ""},
        seed=_seed_transaction,
        edit_opens_at_last_step=True,
        fixed_values={"type": transaction_type.value},
    )


EXPENSE_FORM = transaction_form(TransactionType.EXPENSE)
INCOME_FORM = transaction_form(TransactionType.INCOME)


def _seed_goal(record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "name": record.get("name") or record.get("title") or "",
        "description": record.get("description") or "",
        "target_amount": _text(record.get("target_amount")),
        "current_saved": _text(record.get("current_saved") or 0),
        "target_date": _date_text(record.get("target_date")),
    }


def _check_goal(data: Dict[str, Any], today: date) -> Dict[str, str]:
    errors = {}
    try:
        current = float(data.get("current_saved") or 0)
        target = float(data.get("target_amount") or 0)
    except (TypeError, ValueError):
        return {"target_amount": "Amounts must be numbers"}

    if current < 0:
        errors["current_saved"] = "Current amount cannot be negative"
    elif current > target:
        errors["current_saved"] = "Current amount cannot exceed the target amount"

    target_date = as_date(data.get("target_date"))
    if target_date is None:
        errors["target_date"] = "Target date is required"
    elif target_date <= today:
        errors["target_date"] = "Target date must be after today"
    return errors


GOAL_FORM = FormDefinition(
    name="goal",
    table="goals",
    model=GoalCreate,
    steps=[
        StepSpec(
            id="details",
            title="Goal",
            fields=[FieldSpec(name="name"), FieldSpec(name="description", required=False)],
        ),
        StepSpec(
            id="amounts",
            title="Amounts",
            fields=[
                FieldSpec(name="target_amount", label="target amount", numeric=True),
                FieldSpec(name="current_saved", required=False),
            ],
        ),
        StepSpec(id="schedule", title="Target date", fields=[FieldSpec(name="target_date")]),
    ],
    defaults={
        "name": "",
        "description": "",
        "target_amount": "",
        "current_saved": "0",
        "target_date": "",
    },
    seed=_seed_goal,
    check=_check_goal,
)


REGISTRATION_FORM = FormDefinition(
    name="registration",
    steps=[
        StepSpec(id="name", title="Your name", fields=[FieldSpec(name="name")]),
        StepSpec(
            id="email",
            title="Email",
            fields=[FieldSpec(name="email", validators=[email_error])],
        ),
        StepSpec(
            id="password",
            title="Password",
            fields=[FieldSpec(name="password", validators=[registration_password_error])],
        ),
        StepSpec(id="country", title="Country", fields=[FieldSpec(name="country")]),
    ],
    defaults={"name": "", "email": "", "password": "", "country": DEFAULT_COUNTRY},
)


FORMS: Dict[str, FormDefinition] = {
    form.name: form
    for form in (DEBT_FORM, EXPENSE_FORM, INCOME_FORM, GOAL_FORM)
}


def get_form(name: str) -> FormDefinition:
    try:
        return FORMS[name]
    except KeyError:
        raise WizardError(f"Unknown form '{name}'")
