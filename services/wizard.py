"""
Generic multi-step form wizard.

A wizard walks a linear list of steps. Each step owns some fields of one
shared ``form_data`` mapping, and forward navigation is gated on the
current step being complete. Steps are plain data (``StepSpec`` with
``FieldSpec`` entries), so the debt, transaction, goal and registration
forms are all the same machine with different definitions.

Navigation starts a short visual transition; while it runs, ``advance``
and ``jump_to`` are ignored so a double click cannot skip a step.
``retreat`` is always allowed.
"""

import time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from services.errors import BackendError
from utils.logging import setup_logger

logger = setup_logger(__name__)

DEFAULT_TRANSITION_SECONDS = 0.3

Validator = Callable[[Any], Optional[str]]


class WizardError(Exception):
    """Navigation or submission attempted from an invalid state."""


class WizardValidationError(WizardError):
    """Submission blocked by incomplete or invalid fields."""

    def __init__(self, errors: Dict[str, str], step_index: Optional[int] = None):
        super().__init__("Form has invalid fields: " + ", ".join(sorted(errors)))
        self.errors = errors
        self.step_index = step_index


def is_empty(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def positive_number(value: Any) -> bool:
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return False
    return number.is_finite() and number > 0


class FieldSpec(BaseModel):
    """
    One form field.

    ``required_when`` makes the requirement conditional on the rest of the
    form data; it only applies when ``required`` is True.
    """

    name: str
    label: Optional[str] = None
    required: bool = True
    required_when: Optional[Callable[[Dict[str, Any]], bool]] = None
    numeric: bool = False
    validators: List[Validator] = Field(default_factory=list)

    def is_required(self, data: Dict[str, Any]) -> bool:
        if not self.required:
            return False
        if self.required_when is not None:
            return bool(self.required_when(data))
        return True

    def error(self, data: Dict[str, Any]) -> Optional[str]:
        """Message explaining why this field blocks its step, or None."""
        if not self.is_required(data):
            return None
        value = data.get(self.name)
        label = self.label or self.name.replace("_", " ")
        if is_empty(value):
            return f"{label.capitalize()} is required"
        if self.numeric and not positive_number(value):
            return f"{label.capitalize()} must be a number greater than 0"
        for validator in self.validators:
            message = validator(value)
            if message:
                return message
        return None


class StepSpec(BaseModel):
    id: str
    title: str = ""
    fields: List[FieldSpec] = Field(default_factory=list)

    @property
    def field_names(self) -> List[str]:
        return [field.name for field in self.fields]


class WizardSnapshot(BaseModel):
    """Serializable wizard state, for drafts kept between requests."""

    form: str
    current_step_index: int = 0
    form_data: Dict[str, Any] = Field(default_factory=dict)
    transition_until: float = 0.0
    record_id: Optional[str] = None
    last_error: Optional[str] = None


class StepWizard:
    """
    Drives ``steps`` over a shared ``form_data`` mapping.

    Args:
        steps: Ordered step definitions (at least one)
        form_data: Initial data; defaults to ``defaults``
        defaults: Data restored by ``reset``
        transition_seconds: Cooldown started by every forward move or jump
        clock: Time source in seconds (defaults to ``time.time``)
    """

    def __init__(
        self,
        steps: List[StepSpec],
        form_data: Optional[Dict[str, Any]] = None,
        defaults: Optional[Dict[str, Any]] = None,
        transition_seconds: float = DEFAULT_TRANSITION_SECONDS,
        clock: Optional[Callable[[], float]] = None,
        name: str = "form",
    ):
        if not steps:
            raise WizardError("A wizard needs at least one step")
        self.steps = steps
        self.name = name
        self.defaults = dict(defaults or {})
        self.form_data: Dict[str, Any] = dict(
            form_data if form_data is not None else self.defaults
        )
        self.current_step_index = 0
        self.transition_seconds = transition_seconds
        self.clock = clock or time.time
        self.transition_until = 0.0
        self.record_id: Optional[str] = None
        self.last_error: Optional[str] = None

    @property
    def step_count(self) -> int:
        return len(self.steps)

    @property
    def current_step(self) -> StepSpec:
        return self.steps[self.current_step_index]

    @property
    def is_last_step(self) -> bool:
        return self.current_step_index == self.step_count - 1

    @property
    def completed_steps(self) -> Set[int]:
        return {i for i in range(self.step_count) if self.is_step_complete(i)}

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.step_count:
            raise WizardError(
                f"Step {index} is out of range for a {self.step_count}-step wizard"
            )

    def step_errors(self, index: int) -> Dict[str, str]:
        self._check_index(index)
        errors = {}
        for field in self.steps[index].fields:
            message = field.error(self.form_data)
            if message:
                errors[field.name] = message
        return errors

    def required_fields(self, index: int) -> List[str]:
        self._check_index(index)
        return [
            field.name
            for field in self.steps[index].fields
            if field.is_required(self.form_data)
        ]

    def is_step_complete(self, index: int) -> bool:
        return not self.step_errors(index)

    def errors(self) -> Dict[str, str]:
        """Errors across every step."""
        errors = {}
        for index in range(self.step_count):
            errors.update(self.step_errors(index))
        return errors

    def update(self, values: Dict[str, Any]) -> None:
        self.form_data.update(values)
        self.last_error = None

    def is_transitioning(self) -> bool:
        return self.clock() < self.transition_until

    def _move_to(self, index: int) -> None:
        self.current_step_index = index
        self.transition_until = self.clock() + self.transition_seconds

    def advance(self) -> bool:
        """Move forward one step if the current step is complete."""
        if self.is_transitioning() or self.is_last_step:
            return False
        if not self.is_step_complete(self.current_step_index):
            return False
        self._move_to(self.current_step_index + 1)
        return True

    def retreat(self) -> bool:
        if self.current_step_index == 0:
            return False
        self.current_step_index -= 1
        return True

    def jump_to(self, index: int) -> bool:
        self._check_index(index)
        if self.is_transitioning():
            return False
        self._move_to(index)
        return True

    def reset(self) -> None:
        self.form_data = dict(self.defaults)
        self.current_step_index = 0
        self.transition_until = 0.0
        self.record_id = None
        self.last_error = None

    def submit(self, save: Callable[[Dict[str, Any]], Any]) -> Any:
        """
        Validate every step and hand the data to ``save`` exactly once.

        Nothing is reset when validation or ``save`` fails, so the user
        stays on the same step with the same data to correct it.

        Raises:
            WizardError: If called before the last step
            WizardValidationError: If any step has errors
            BackendError: Propagated from ``save``; also kept in ``last_error``
        """
        if not self.is_last_step:
            raise WizardError("Submit is only available from the last step")

        errors = self.errors()
        if errors:
            first_bad_step = min(
                i for i in range(self.step_count) if self.step_errors(i)
            )
            raise WizardValidationError(errors, step_index=first_bad_step)

        try:
            record = save(dict(self.form_data))
        except BackendError as e:
            self.last_error = e.message
            logger.warning(
                "Wizard submission rejected by backend",
                extra={"form": self.name, "error_kind": e.kind.value},
            )
            raise

        self.reset()
        return record

    def snapshot(self) -> WizardSnapshot:
        return WizardSnapshot(
            form=self.name,
            current_step_index=self.current_step_index,
            form_data=dict(self.form_data),
            transition_until=self.transition_until,
            record_id=self.record_id,
            last_error=self.last_error,
        )

    def load(self, snapshot: WizardSnapshot) -> "StepWizard":
        self._check_index(snapshot.current_step_index)
        self.current_step_index = snapshot.current_step_index
        self.form_data = dict(snapshot.form_data)
        self.transition_until = snapshot.transition_until
        self.record_id = snapshot.record_id
        self.last_error = snapshot.last_error
        return self

    def describe(self) -> Dict[str, Any]:
        """State summary for API responses."""
        return {
            "form": self.name,
            "record_id": self.record_id,
            "current_step_index": self.current_step_index,
            "current_step": self.current_step.id,
            "steps": [
                {"id": step.id, "title": step.title, "fields": step.field_names}
                for step in self.steps
            ],
            "completed_steps": sorted(self.completed_steps),
            "step_errors": self.step_errors(self.current_step_index),
            "form_data": self.form_data,
            "is_last_step": self.is_last_step,
            "last_error": self.last_error,
        }
