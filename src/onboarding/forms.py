"""
Onboarding Forms - per-step validation schemas.

Each wizard step validates its input with one of these models.
Violations are always field-level: `validate_form` returns a mapping of
dotted field path -> message and never raises past the step.
"""

import copy
import logging
import re
from typing import Any, ClassVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from .state import FAMILY_RELATIONS

logger = logging.getLogger(__name__)


# =============================================================================
# Valid Options
# =============================================================================

GENDERS = ["Male", "Female", "Other"]
MARITAL_STATUSES = ["Single", "Married", "Divorced", "Widowed"]
BLOOD_GROUPS = ["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]
ID_PROOF_TYPES = ["Aadhaar", "PAN"]
POLICY_AMOUNTS = ["1L", "2L"]
NOMINEE_RELATIONS = ["Spouse", "Child", "Father", "Mother"]

MOBILE_PATTERN = re.compile(r"^[6-9][0-9]{9}$")
PINCODE_PATTERN = re.compile(r"^[1-9][0-9]{5}$")
IFSC_PATTERN = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
UAN_PATTERN = re.compile(r"^[0-9]{12}$")
YEAR_PATTERN = re.compile(r"^[0-9]{4}$")

FieldErrors = dict[str, str]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_valid_pincode(pincode: str | None) -> bool:
    return bool(pincode) and PINCODE_PATTERN.fullmatch(pincode) is not None


class StepForm(BaseModel):
    """Base for step schemas: defaults are validated too, extra keys ignored."""

    model_config = ConfigDict(
        extra="ignore",
        validate_default=True,
        str_strip_whitespace=True,
    )

    # Field name -> "is required" message
    required_messages: ClassVar[dict[str, str]] = {}

    @classmethod
    def required_message(cls, name: str) -> str:
        return cls.required_messages.get(name) or f"{name.replace('_', ' ').capitalize()} is required"


# =============================================================================
# Personal
# =============================================================================

class PersonalForm(StepForm):
    """Identity, contact and salary."""

    required_messages: ClassVar[dict[str, str]] = {
        "employee_id": "Employee ID is required",
        "first_name": "First name is required",
        "last_name": "Last name is required",
        "dob": "Date of birth is required",
        "gender": "Gender is required",
        "marital_status": "Marital status is required",
        "blood_group": "Blood group is required",
        "mobile": "Mobile number is required",
        "email": "Email is required",
        "emergency_contact_name": "Emergency contact name is required",
        "emergency_contact_number": "Emergency contact number is required",
        "relationship": "Relationship is required",
        "salary": "Salary is required",
    }

    employee_id: str = ""
    first_name: str = ""
    middle_name: str | None = None
    last_name: str = ""
    preferred_name: str | None = None
    dob: str = ""
    gender: str = ""
    marital_status: str = ""
    blood_group: str = ""
    mobile: str = ""
    alternate_mobile: str | None = None
    email: str = ""
    id_proof_type: str = ""
    id_proof_number: str | None = None
    emergency_contact_name: str = ""
    emergency_contact_number: str = ""
    relationship: str = ""
    salary: float | None = None

    @field_validator(
        "employee_id", "first_name", "last_name", "dob",
        "emergency_contact_name",
    )
    @classmethod
    def required(cls, v: str, info: ValidationInfo) -> str:
        if _is_blank(v):
            raise ValueError(cls.required_message(info.field_name))
        return v

    @field_validator("gender", "marital_status", "blood_group", "relationship")
    @classmethod
    def one_of_options(cls, v: str, info: ValidationInfo) -> str:
        options = {
            "gender": GENDERS,
            "marital_status": MARITAL_STATUSES,
            "blood_group": BLOOD_GROUPS,
            "relationship": list(FAMILY_RELATIONS),
        }[info.field_name]
        if _is_blank(v):
            raise ValueError(cls.required_message(info.field_name))
        if v not in options:
            raise ValueError(f"Must be one of: {', '.join(options)}")
        return v

    @field_validator("mobile", "emergency_contact_number")
    @classmethod
    def mobile_number(cls, v: str, info: ValidationInfo) -> str:
        if _is_blank(v):
            raise ValueError(cls.required_message(info.field_name))
        if not MOBILE_PATTERN.fullmatch(v):
            if info.field_name == "mobile":
                raise ValueError("Must be a valid 10-digit Indian mobile number")
            raise ValueError("Must be a valid 10-digit number")
        return v

    @field_validator("email")
    @classmethod
    def valid_email(cls, v: str) -> str:
        if _is_blank(v):
            raise ValueError(cls.required_message("email"))
        if not EMAIL_PATTERN.fullmatch(v):
            raise ValueError("Must be a valid email")
        return v

    @field_validator("id_proof_type")
    @classmethod
    def valid_id_proof_type(cls, v: str) -> str:
        if v and v not in ID_PROOF_TYPES:
            raise ValueError(f"Must be one of: {', '.join(ID_PROOF_TYPES)}")
        return v

    @field_validator("salary", mode="before")
    @classmethod
    def valid_salary(cls, v: Any) -> float:
        if _is_blank(v):
            raise ValueError(cls.required_message("salary"))
        try:
            salary = float(v)
        except (TypeError, ValueError):
            raise ValueError("Salary must be a number")
        if salary < 0:
            raise ValueError("Salary must be greater than or equal to 0")
        return salary


# =============================================================================
# Address
# =============================================================================

class AddressInput(StepForm):
    required_messages: ClassVar[dict[str, str]] = {
        "line1": "Address line 1 is required",
        "city": "City is required",
        "state": "State is required",
        "country": "Country is required",
        "pincode": "Pincode is required",
    }

    line1: str = ""
    line2: str | None = None
    city: str = ""
    state: str = ""
    country: str = "India"
    pincode: str = ""
    verified_status: dict[str, bool] = {}

    @field_validator("line1", "city", "state")
    @classmethod
    def required(cls, v: str, info: ValidationInfo) -> str:
        if _is_blank(v):
            raise ValueError(cls.required_message(info.field_name))
        return v

    @field_validator("country")
    @classmethod
    def india_only(cls, v: str) -> str:
        if _is_blank(v):
            raise ValueError(cls.required_message("country"))
        if v != "India":
            raise ValueError("Country must be India")
        return v

    @field_validator("pincode")
    @classmethod
    def valid_pincode(cls, v: str) -> str:
        if _is_blank(v):
            raise ValueError(cls.required_message("pincode"))
        if not is_valid_pincode(v):
            raise ValueError("Must be a valid 6-digit Indian pincode")
        return v


class AddressForm(StepForm):
    """Present + permanent address; permanent mirrors present when flagged."""

    present: AddressInput = Field(default_factory=dict)
    permanent: AddressInput = Field(default_factory=dict)
    same_as_present: bool = False

    @model_validator(mode="before")
    @classmethod
    def mirror_present(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("same_as_present"):
            data = {**data, "permanent": copy.deepcopy(data.get("present"))}
        return data


# =============================================================================
# Bank
# =============================================================================

class BankForm(StepForm):
    required_messages: ClassVar[dict[str, str]] = {
        "account_holder_name": "Account holder name is required",
        "account_number": "Account number is required",
        "confirm_account_number": "Please confirm your account number",
        "ifsc_code": "IFSC code is required",
        "bank_name": "Bank name is required",
        "branch_name": "Branch name is required",
    }

    account_holder_name: str = ""
    account_number: str = ""
    confirm_account_number: str = ""
    ifsc_code: str = ""
    bank_name: str = ""
    branch_name: str = ""

    @field_validator("account_holder_name", "bank_name", "branch_name")
    @classmethod
    def required(cls, v: str, info: ValidationInfo) -> str:
        if _is_blank(v):
            raise ValueError(cls.required_message(info.field_name))
        return v

    @field_validator("account_number")
    @classmethod
    def digits_only(cls, v: str) -> str:
        if _is_blank(v):
            raise ValueError(cls.required_message("account_number"))
        if not v.isdigit():
            raise ValueError("Must be only digits")
        return v

    @field_validator("confirm_account_number")
    @classmethod
    def matches_account_number(cls, v: str, info: ValidationInfo) -> str:
        if _is_blank(v):
            raise ValueError(cls.required_message("confirm_account_number"))
        # account_number is absent from info.data if it failed itself
        if v != info.data.get("account_number", v):
            raise ValueError("Account numbers must match")
        return v

    @field_validator("ifsc_code")
    @classmethod
    def valid_ifsc(cls, v: str) -> str:
        if _is_blank(v):
            raise ValueError(cls.required_message("ifsc_code"))
        if not IFSC_PATTERN.fullmatch(v):
            raise ValueError("Invalid IFSC code format")
        return v


# =============================================================================
# Statutory: UAN / ESI
# =============================================================================

class UanForm(StepForm):
    has_previous_pf: bool = False
    uan_number: str | None = None
    pf_number: str | None = None

    @field_validator("uan_number")
    @classmethod
    def required_with_previous_pf(cls, v: str | None, info: ValidationInfo) -> str | None:
        if not info.data.get("has_previous_pf"):
            return v
        if _is_blank(v):
            raise ValueError("UAN number is required")
        if not UAN_PATTERN.fullmatch(v):
            raise ValueError("UAN must be 12 digits")
        return v


class EsiForm(StepForm):
    has_esi: bool = False
    esi_number: str | None = None

    @field_validator("esi_number")
    @classmethod
    def required_with_esi(cls, v: str | None, info: ValidationInfo) -> str | None:
        if info.data.get("has_esi") and _is_blank(v):
            raise ValueError("ESI number is required")
        return v


# =============================================================================
# GMC
# =============================================================================

class GmcForm(StepForm):
    """
    Group medical cover.

    Opt-out needs a reason; opt-in needs a policy amount and a nominee.
    Alternate insurance fields are optional on opt-out.
    """

    is_opted_in: bool | None = None
    opt_out_reason: str | None = None
    policy_amount: str = ""
    nominee_name: str | None = None
    nominee_relation: str | None = None
    wants_to_add_dependents: bool | None = None
    selected_spouse_id: str | None = None
    selected_child_ids: list[str] | None = None
    declaration_accepted: bool | None = None
    alternate_insurance_provider: str | None = None
    alternate_insurance_start_date: str | None = None
    alternate_insurance_end_date: str | None = None
    alternate_insurance_coverage: str | None = None

    @field_validator("is_opted_in")
    @classmethod
    def choice_required(cls, v: bool | None) -> bool:
        if v is None:
            raise ValueError("Please select an option")
        return v

    @field_validator("opt_out_reason")
    @classmethod
    def reason_when_opted_out(cls, v: str | None, info: ValidationInfo) -> str | None:
        if info.data.get("is_opted_in") is False and _is_blank(v):
            raise ValueError("Reason for opting out is required")
        return v

    @field_validator("policy_amount")
    @classmethod
    def amount_when_opted_in(cls, v: str, info: ValidationInfo) -> str:
        if info.data.get("is_opted_in") is True:
            if _is_blank(v):
                raise ValueError("Policy amount is required")
            if v not in POLICY_AMOUNTS:
                raise ValueError(f"Must be one of: {', '.join(POLICY_AMOUNTS)}")
        return v

    @field_validator("nominee_name")
    @classmethod
    def nominee_when_opted_in(cls, v: str | None, info: ValidationInfo) -> str | None:
        if info.data.get("is_opted_in") is True and _is_blank(v):
            raise ValueError("Nominee name is required")
        return v

    @field_validator("nominee_relation")
    @classmethod
    def relation_when_opted_in(cls, v: str | None, info: ValidationInfo) -> str | None:
        if info.data.get("is_opted_in") is True:
            if _is_blank(v):
                raise ValueError("Nominee relation is required")
            if v not in NOMINEE_RELATIONS:
                raise ValueError(f"Must be one of: {', '.join(NOMINEE_RELATIONS)}")
        return v

    @field_validator("alternate_insurance_end_date")
    @classmethod
    def end_after_start(cls, v: str | None, info: ValidationInfo) -> str | None:
        start = info.data.get("alternate_insurance_start_date")
        # ISO dates compare correctly as strings
        if v and start and v < start:
            raise ValueError("End date must be after start date")
        return v


# =============================================================================
# List items
# =============================================================================

class FamilyMemberForm(StepForm):
    relation: str = "Spouse"
    name: str = ""
    dob: str = ""
    dependent: bool = False

    @field_validator("relation")
    @classmethod
    def valid_relation(cls, v: str) -> str:
        if v not in FAMILY_RELATIONS:
            raise ValueError(f"Must be one of: {', '.join(FAMILY_RELATIONS)}")
        return v

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        if _is_blank(v):
            raise ValueError("Name is required")
        return v


class EducationRecordForm(StepForm):
    degree: str = ""
    institution: str = ""
    end_year: str = ""

    @field_validator("degree", "institution")
    @classmethod
    def required(cls, v: str, info: ValidationInfo) -> str:
        if _is_blank(v):
            raise ValueError(cls.required_message(info.field_name))
        return v

    @field_validator("end_year")
    @classmethod
    def valid_year(cls, v: str) -> str:
        if v and not YEAR_PATTERN.fullmatch(v):
            raise ValueError("Must be a valid year")
        return v


# =============================================================================
# Validation Entry Point
# =============================================================================

def collect_errors(exc: ValidationError) -> FieldErrors:
    """Flatten a ValidationError to {dotted path: first message}."""
    errors: FieldErrors = {}
    for error in exc.errors():
        path = ".".join(str(part) for part in error["loc"]) or "__root__"
        message = error["msg"].removeprefix("Value error, ")
        errors.setdefault(path, message)
    return errors


def validate_form(form_class: type[StepForm], data: dict) -> tuple[StepForm | None, FieldErrors]:
    """
    Validate step data.

    Returns:
        (form, {}) when valid, (None, field_errors) otherwise
    """
    try:
        return form_class.model_validate(data), {}
    except ValidationError as e:
        errors = collect_errors(e)
        logger.debug(f"{form_class.__name__} failed: {sorted(errors)}")
        return None, errors


# =============================================================================
# API Response Helpers
# =============================================================================

def get_form_options() -> dict:
    """All select options, for frontend rendering."""
    return {
        "genders": GENDERS,
        "marital_statuses": MARITAL_STATUSES,
        "blood_groups": BLOOD_GROUPS,
        "id_proof_types": ID_PROOF_TYPES,
        "relations": list(FAMILY_RELATIONS),
        "nominee_relations": NOMINEE_RELATIONS,
        "policy_amounts": [
            {"id": "1L", "label": "1 Lakh Policy"},
            {"id": "2L", "label": "2 Lakh Policy"},
        ],
    }
