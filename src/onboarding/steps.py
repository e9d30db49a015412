"""
Wizard steps and the step controller.

Every step implements the same capability: `validate()` returns a
StepResult and `commit()` validates then runs the step's post-commit work.
Steps with nothing to check are always valid, so advancement is uniformly
validation-gated.

Edits go straight into the store through `set_value`; the step only tracks
which fields were touched so eager (as-you-type) errors can be reported for
those fields alone.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from .forms import (
    AddressForm,
    BankForm,
    EducationRecordForm,
    EsiForm,
    FamilyMemberForm,
    FieldErrors,
    GmcForm,
    PersonalForm,
    StepForm,
    UanForm,
    validate_form,
)
from .rules import (
    RulesProvider,
    choose_policy_amount,
    edit_address_field,
    edit_personal_field,
    is_gmc_applicable,
)
from .state import OnboardingStore

logger = logging.getLogger(__name__)


class StepId(str, Enum):
    """Wizard steps, in order."""
    PERSONAL = "personal"
    ADDRESS = "address"
    ORGANIZATION = "organization"
    FAMILY = "family"
    EDUCATION = "education"
    BANK = "bank"
    UAN = "uan"
    ESI = "esi"
    GMC = "gmc"
    DOCUMENTS = "documents"
    BIOMETRICS = "biometrics"
    REVIEW = "review"


STEP_ORDER: tuple[StepId, ...] = tuple(StepId)


@dataclass
class StepResult:
    ok: bool
    data: Any = None
    errors: FieldErrors = field(default_factory=dict)
    skipped: bool = False


# =============================================================================
# Steps
# =============================================================================


class Step(ABC):
    """One wizard page."""

    step_id: ClassVar[StepId]
    title: ClassVar[str]

    def __init__(self, store: OnboardingStore, get_rules: RulesProvider):
        self.store = store
        self.get_rules = get_rules
        self.touched: set[str] = set()

    def is_applicable(self) -> bool:
        return True

    @abstractmethod
    def validate(self) -> StepResult:
        ...

    def set_value(self, path: str, value: Any) -> FieldErrors:
        """Write one field into the store; returns errors for touched fields."""
        raise KeyError(f"Step {self.step_id.value} has no field {path}")

    def touched_errors(self) -> FieldErrors:
        errors = self.validate().errors
        return {path: message for path, message in errors.items() if path in self.touched}

    def after_commit(self, result: StepResult) -> None:
        pass

    def commit(self) -> StepResult:
        result = self.validate()
        if result.ok:
            self.after_commit(result)
        else:
            # Everything counts as touched once the user tried to submit
            self.touched.update(result.errors)
        return result


class PassThroughStep(Step):
    """Step with no rules of its own."""

    def validate(self) -> StepResult:
        return StepResult(ok=True)


class OrganizationStep(PassThroughStep):
    step_id = StepId.ORGANIZATION
    title = "Organization Details"


class DocumentsStep(PassThroughStep):
    step_id = StepId.DOCUMENTS
    title = "Documents"


class BiometricsStep(PassThroughStep):
    step_id = StepId.BIOMETRICS
    title = "Biometrics"


class FormStep(Step):
    """Step validated by one StepForm over one record section."""

    form_class: ClassVar[type[StepForm]]
    section: ClassVar[str]

    def read_section(self) -> dict:
        data = getattr(self.store, self.section).to_dict()
        return {name: data[name] for name in self.form_class.model_fields if name in data}

    def validate(self) -> StepResult:
        form, errors = validate_form(self.form_class, self.read_section())
        return StepResult(ok=not errors, data=form, errors=errors)

    def set_value(self, path: str, value: Any) -> FieldErrors:
        if path not in self.form_class.model_fields:
            raise KeyError(f"Step {self.step_id.value} has no field {path}")
        self.write(path, value)
        self.touched.add(path)
        return self.touched_errors()

    def write(self, path: str, value: Any) -> None:
        self.store.update_section(self.section, {path: value})


class PersonalStep(FormStep):
    step_id = StepId.PERSONAL
    title = "Personal Details"
    form_class = PersonalForm
    section = "personal"

    def write(self, path: str, value: Any) -> None:
        edit_personal_field(self.store, path, value)

    def after_commit(self, result: StepResult) -> None:
        # Normalized values (e.g. salary as float) go back to the store
        self.store.update_personal(salary=result.data.salary)
        self.store.upsert_emergency_contact_member()


class AddressStep(FormStep):
    step_id = StepId.ADDRESS
    title = "Address Details"
    form_class = AddressForm
    section = "address"

    def set_value(self, path: str, value: Any) -> FieldErrors:
        kind, _, field_name = path.partition(".")
        if kind in ("present", "permanent") and field_name:
            edit_address_field(self.store, kind, field_name, value)
        elif path == "same_as_present":
            self.store.update_address(same_as_present=bool(value))
        else:
            raise KeyError(f"Step {self.step_id.value} has no field {path}")
        self.touched.add(path)
        return self.touched_errors()


class BankStep(FormStep):
    step_id = StepId.BANK
    title = "Bank Details"
    form_class = BankForm
    section = "bank"


class UanStep(FormStep):
    step_id = StepId.UAN
    title = "UAN Details"
    form_class = UanForm
    section = "personal"


class EsiStep(FormStep):
    step_id = StepId.ESI
    title = "ESI Details"
    form_class = EsiForm
    section = "esi"


class GmcStep(FormStep):
    """Skipped entirely when salary is at or below the threshold."""

    step_id = StepId.GMC
    title = "GMC Details"
    form_class = GmcForm
    section = "gmc"

    def write(self, path: str, value: Any) -> None:
        if path == "policy_amount":
            choose_policy_amount(self.store, value)
        else:
            super().write(path, value)

    def is_applicable(self) -> bool:
        return is_gmc_applicable(self.store.personal.salary, self.get_rules())

    def validate(self) -> StepResult:
        if not self.is_applicable():
            return StepResult(ok=True, skipped=True)
        return super().validate()


class ListStep(Step):
    """Step over a list section; each item validated on its own."""

    item_form: ClassVar[type[StepForm]]
    section: ClassVar[str]

    def validate(self) -> StepResult:
        errors: FieldErrors = {}
        forms = []
        for item in getattr(self.store, self.section):
            form, item_errors = validate_form(self.item_form, item.to_dict())
            forms.append(form)
            errors.update({f"{item.id}.{name}": message for name, message in item_errors.items()})
        return StepResult(ok=not errors, data=forms, errors=errors)

    def set_value(self, path: str, value: Any) -> FieldErrors:
        """Path is "<item id>.<field>"."""
        item_id, _, field_name = path.partition(".")
        if field_name not in self.item_form.model_fields:
            raise KeyError(f"Step {self.step_id.value} has no field {field_name}")
        self.store.update_list_item(self.section, item_id, {field_name: value})
        self.touched.add(path)
        return self.touched_errors()


class FamilyStep(ListStep):
    step_id = StepId.FAMILY
    title = "Family Details"
    item_form = FamilyMemberForm
    section = "family"


class EducationStep(ListStep):
    step_id = StepId.EDUCATION
    title = "Education Details"
    item_form = EducationRecordForm
    section = "education"


class ReviewStep(Step):
    """Final confirmation; the declaration box must be checked."""

    step_id = StepId.REVIEW
    title = "Review & Submit"

    def __init__(self, store: OnboardingStore, get_rules: RulesProvider):
        super().__init__(store, get_rules)
        self.declaration_accepted = False

    def validate(self) -> StepResult:
        if not self.declaration_accepted:
            return StepResult(
                ok=False,
                errors={"declaration_accepted": "Please check the declaration box to proceed."},
            )
        return StepResult(ok=True)

    def set_value(self, path: str, value: Any) -> FieldErrors:
        if path != "declaration_accepted":
            raise KeyError(f"Step {self.step_id.value} has no field {path}")
        self.declaration_accepted = bool(value)
        self.touched.add(path)
        return self.touched_errors()


STEP_CLASSES: dict[StepId, type[Step]] = {
    cls.step_id: cls
    for cls in (
        PersonalStep, AddressStep, OrganizationStep, FamilyStep, EducationStep,
        BankStep, UanStep, EsiStep, GmcStep, DocumentsStep, BiometricsStep, ReviewStep,
    )
}


def build_steps(store: OnboardingStore, get_rules: RulesProvider) -> dict[StepId, Step]:
    return {step_id: STEP_CLASSES[step_id](store, get_rules) for step_id in STEP_ORDER}


# =============================================================================
# Controller
# =============================================================================


class Navigation(str, Enum):
    MOVED = "moved"
    AT_END = "at_end"              # next on the last step
    LEFT_WIZARD = "left_wizard"    # previous on the first step
    BLOCKED = "blocked"            # current step failed validation


@dataclass
class AdvanceResult:
    navigation: Navigation
    result: StepResult


class StepController:
    """
    Fixed, linear step sequence plus the active index.

    go_next/go_previous/go_to_step only move. `advance` is the
    validation-gated "commit current step, then next" the wizard shell uses.
    Inapplicable steps (GMC below threshold) are skipped in both directions.
    """

    def __init__(
        self,
        steps: dict[StepId, Step],
        order: tuple[StepId, ...] = STEP_ORDER,
        start: StepId | str | None = None,
    ):
        missing = [step_id for step_id in order if step_id not in steps]
        if missing:
            raise ValueError(f"No step registered for: {', '.join(s.value for s in missing)}")
        self.steps = steps
        self.order = order
        self.index = 0
        if start is not None:
            self.resume(start)

    @property
    def current_step_id(self) -> StepId:
        return self.order[self.index]

    @property
    def current_step(self) -> Step:
        return self.steps[self.current_step_id]

    @property
    def is_last(self) -> bool:
        return self.index == len(self.order) - 1

    def _find(self, start: int, direction: int) -> int | None:
        index = start + direction
        while 0 <= index < len(self.order):
            if self.steps[self.order[index]].is_applicable():
                return index
            index += direction
        return None

    def go_next(self) -> Navigation:
        target = self._find(self.index, 1)
        if target is None:
            return Navigation.AT_END
        self.index = target
        return Navigation.MOVED

    def go_previous(self) -> Navigation:
        target = self._find(self.index, -1)
        if target is None:
            return Navigation.LEFT_WIZARD
        self.index = target
        return Navigation.MOVED

    def go_to_step(self, step_id: StepId | str) -> Navigation:
        """Jump to a named step (review "edit" links). Unknown id raises ValueError."""
        self.index = self.order.index(StepId(step_id))
        return Navigation.MOVED

    def resume(self, step_id: StepId | str) -> None:
        """Start mid-flow, e.g. from a step name in the URL."""
        self.go_to_step(step_id)

    def commit_current(self) -> StepResult:
        return self.current_step.commit()

    def advance(self) -> AdvanceResult:
        result = self.commit_current()
        if not result.ok:
            logger.debug(f"Step {self.current_step_id.value} blocked: {sorted(result.errors)}")
            return AdvanceResult(Navigation.BLOCKED, result)
        return AdvanceResult(self.go_next(), result)
