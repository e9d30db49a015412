"""
Onboarding State Management.

Section dataclasses plus the OnboardingStore that owns them.

The store is the single source of truth for everything the wizard collects.
Every mutation builds a new OnboardingSections root and swaps it in with one
assignment, so readers only ever see a whole before- or after-state.
"""

import copy
import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, ClassVar, Literal

logger = logging.getLogger(__name__)


FAMILY_RELATIONS = ("Spouse", "Child", "Father", "Mother", "Sibling", "Other")
FamilyRelation = Literal["Spouse", "Child", "Father", "Mother", "Sibling", "Other"]


# =============================================================================
# Section Records
# =============================================================================


class _Record:
    """Shared (de)serialization for section dataclasses."""

    # Field name -> dataclass type, for fields holding nested records
    _nested: ClassVar[dict[str, type]] = {}

    def to_dict(self) -> dict:
        data = asdict(self)
        for name in self._nested:
            value = getattr(self, name)
            if value is not None:
                data[name] = value.to_dict()
        return data

    @classmethod
    def coerce(cls, name: str, value: Any) -> Any:
        """Turn a plain dict into the nested record type a field expects."""
        nested_type = cls._nested.get(name)
        if nested_type is not None and isinstance(value, dict):
            return nested_type.from_dict(value)
        return value

    @classmethod
    def from_dict(cls, data: dict):
        known = {f.name for f in fields(cls)}
        return cls(**{k: cls.coerce(k, v) for k, v in data.items() if k in known})


@dataclass
class UploadedFile(_Record):
    """
    A document or image attached to a section.

    Before submission `file` holds the local bytes and `url` is unset.
    After a successful upload `url` is set and `file` may be dropped.
    """
    name: str
    type: str = ""
    size: int = 0
    preview: str = ""
    file: bytes | None = None
    progress: int | None = None
    url: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.file is not None and not self.url

    def to_dict(self) -> dict:
        # Raw bytes never go into JSON snapshots
        data = asdict(self)
        data["file"] = None
        return data


@dataclass
class OrganizationSection(_Record):
    """Employer assignment for this enrollment."""
    organization_id: str | None = None
    organization_name: str | None = None
    joining_date: str | None = None
    work_type: str | None = None
    designation: str | None = None
    department: str | None = None
    default_salary: float | None = None


def coerce_salary(value: Any) -> Any:
    """Numeric input becomes a float; blank becomes None; anything else is kept for the validator."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return value


@dataclass
class PersonalSection(_Record):
    """Identity, contact, salary and UAN/PF data."""
    _nested: ClassVar[dict[str, type]] = {"photo": UploadedFile, "id_proof": UploadedFile}

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
    photo: UploadedFile | None = None
    id_proof: UploadedFile | None = None
    emergency_contact_name: str = ""
    emergency_contact_number: str = ""
    relationship: str = ""
    salary: float | None = None
    verified_status: dict[str, bool] = field(default_factory=dict)

    # UAN / PF (collected on the uan step)
    has_previous_pf: bool = False
    uan_number: str | None = None
    pf_number: str | None = None

    @classmethod
    def coerce(cls, name: str, value: Any) -> Any:
        if name == "salary":
            return coerce_salary(value)
        return super().coerce(name, value)


@dataclass
class Address(_Record):
    """One postal address with per-field verification flags."""
    line1: str = ""
    line2: str | None = None
    city: str = ""
    state: str = ""
    country: str = "India"
    pincode: str = ""
    verified_status: dict[str, bool] = field(default_factory=dict)


@dataclass
class AddressSection(_Record):
    _nested: ClassVar[dict[str, type]] = {"present": Address, "permanent": Address}

    present: Address = field(default_factory=Address)
    permanent: Address = field(default_factory=Address)
    same_as_present: bool = False


@dataclass
class EducationRecord(_Record):
    _nested: ClassVar[dict[str, type]] = {"document": UploadedFile}

    id: str
    degree: str = ""
    institution: str = ""
    end_year: str = ""
    document: UploadedFile | None = None


@dataclass
class FamilyMember(_Record):
    id: str
    relation: FamilyRelation = "Spouse"
    name: str = ""
    dob: str = ""
    dependent: bool = False


@dataclass
class BankSection(_Record):
    _nested: ClassVar[dict[str, type]] = {"bank_proof": UploadedFile}

    account_holder_name: str = ""
    account_number: str = ""
    confirm_account_number: str = ""
    ifsc_code: str = ""
    bank_name: str = ""
    branch_name: str = ""
    bank_proof: UploadedFile | None = None


@dataclass
class EsiSection(_Record):
    has_esi: bool = False
    esi_number: str | None = None


@dataclass
class GmcSection(_Record):
    """
    Group medical cover opt-in/opt-out.

    policy_amount_touched marks an explicit user choice; the default-policy
    rule never overwrites a touched amount.
    """
    _nested: ClassVar[dict[str, type]] = {"gmc_policy_copy": UploadedFile}

    is_opted_in: bool | None = None
    opt_out_reason: str | None = None
    policy_amount: str = ""
    nominee_name: str | None = None
    nominee_relation: str | None = None
    wants_to_add_dependents: bool | None = None
    selected_spouse_id: str | None = None
    selected_child_ids: list[str] | None = None
    gmc_policy_copy: UploadedFile | None = None
    declaration_accepted: bool | None = None
    alternate_insurance_provider: str | None = None
    alternate_insurance_start_date: str | None = None
    alternate_insurance_end_date: str | None = None
    alternate_insurance_coverage: str | None = None
    policy_amount_touched: bool = False


# =============================================================================
# Root
# =============================================================================

RECORD_SECTIONS: dict[str, type] = {
    "organization": OrganizationSection,
    "personal": PersonalSection,
    "address": AddressSection,
    "bank": BankSection,
    "esi": EsiSection,
    "gmc": GmcSection,
}

LIST_SECTIONS: dict[str, type] = {
    "education": EducationRecord,
    "family": FamilyMember,
}

# Slots that can hold an UploadedFile, as "section.field"
FILE_SLOTS = ("personal.photo", "personal.id_proof", "bank.bank_proof", "gmc.gmc_policy_copy")


@dataclass
class OnboardingSections:
    """Root object: every section, owned by nobody but the store."""
    organization: OrganizationSection = field(default_factory=OrganizationSection)
    personal: PersonalSection = field(default_factory=PersonalSection)
    address: AddressSection = field(default_factory=AddressSection)
    education: list[EducationRecord] = field(default_factory=list)
    family: list[FamilyMember] = field(default_factory=list)
    bank: BankSection = field(default_factory=BankSection)
    esi: EsiSection = field(default_factory=EsiSection)
    gmc: GmcSection = field(default_factory=GmcSection)

    # Family member mirrored from the personal emergency contact
    emergency_contact_member_id: str | None = None
    # Verification lookups made during this enrollment, by item
    verification_usage: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize for JSON (attachment bytes are dropped)."""
        data: dict[str, Any] = {name: getattr(self, name).to_dict() for name in RECORD_SECTIONS}
        for name in LIST_SECTIONS:
            data[name] = [item.to_dict() for item in getattr(self, name)]
        data["emergency_contact_member_id"] = self.emergency_contact_member_id
        data["verification_usage"] = dict(self.verification_usage)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "OnboardingSections":
        """Deserialize from dict. Missing sections take their initial values."""
        kwargs: dict[str, Any] = {}
        for name, record_type in RECORD_SECTIONS.items():
            if isinstance(data.get(name), dict):
                kwargs[name] = record_type.from_dict(data[name])
        for name, item_type in LIST_SECTIONS.items():
            if isinstance(data.get(name), list):
                kwargs[name] = [item_type.from_dict(item) for item in data[name]]
        if data.get("emergency_contact_member_id"):
            kwargs["emergency_contact_member_id"] = data["emergency_contact_member_id"]
        if isinstance(data.get("verification_usage"), dict):
            kwargs["verification_usage"] = dict(data["verification_usage"])
        return cls(**kwargs)


# (previous, proposed) -> final. Installed by the rule layer.
Derivation = Callable[[OnboardingSections, OnboardingSections], OnboardingSections]
Observer = Callable[["OnboardingStore"], None]


def default_id_factory() -> str:
    return uuid.uuid4().hex


# =============================================================================
# Store
# =============================================================================


class OnboardingStore:
    """
    Owns all onboarding sections.

    - Record sections are updated by shallow merge (`update_section`).
    - List sections expose add/update/remove by item id.
    - No validation happens here; derivations (installed by the rule layer)
      re-derive dependent fields after every mutation.
    """

    def __init__(
        self,
        id_factory: Callable[[], str] | None = None,
        derivations: Iterable[Derivation] = (),
    ):
        self._id_factory = id_factory or default_id_factory
        self._derivations: list[Derivation] = list(derivations)
        self._observers: list[Observer] = []
        self._sections = OnboardingSections()

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def sections(self) -> OnboardingSections:
        return self._sections

    @property
    def organization(self) -> OrganizationSection:
        return self._sections.organization

    @property
    def personal(self) -> PersonalSection:
        return self._sections.personal

    @property
    def address(self) -> AddressSection:
        return self._sections.address

    @property
    def education(self) -> list[EducationRecord]:
        return self._sections.education

    @property
    def family(self) -> list[FamilyMember]:
        return self._sections.family

    @property
    def bank(self) -> BankSection:
        return self._sections.bank

    @property
    def esi(self) -> EsiSection:
        return self._sections.esi

    @property
    def gmc(self) -> GmcSection:
        return self._sections.gmc

    def snapshot(self) -> OnboardingSections:
        """Deep copy of the current state, safe to hand to other code."""
        return copy.deepcopy(self._sections)

    def load(self, sections: OnboardingSections) -> None:
        """Replace all sections (e.g. a resumed draft)."""
        self._sections = copy.deepcopy(sections)
        # Derive against the loaded state itself, not the state it replaced
        self.refresh()

    # -------------------------------------------------------------------------
    # Observers / derivations
    # -------------------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register a change callback. Returns an unsubscribe function."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def add_derivation(self, derivation: Derivation) -> None:
        self._derivations.append(derivation)

    def refresh(self) -> None:
        """Re-run derivations, e.g. after the enrollment rules changed."""
        self._commit(self._sections)

    def _commit(self, proposed: OnboardingSections, derive: bool = True) -> None:
        previous = self._sections
        if derive:
            for derivation in self._derivations:
                proposed = derivation(previous, proposed)
        self._sections = proposed
        for observer in list(self._observers):
            observer(self)

    # -------------------------------------------------------------------------
    # Record sections
    # -------------------------------------------------------------------------

    def update_section(self, section: str, updates: dict | None = None, **fields_: Any) -> None:
        """
        Shallow-merge fields into a record section.

        Raises:
            KeyError: unknown section (list sections included)
            AttributeError: unknown field for that section
        """
        if section not in RECORD_SECTIONS:
            raise KeyError(f"Unknown section: {section}")
        changes = {**(updates or {}), **fields_}
        record_type = RECORD_SECTIONS[section]
        current = getattr(self._sections, section)
        self._commit(replace(self._sections, **{section: _merge(record_type, current, changes)}))

    def update_organization(self, **fields_: Any) -> None:
        self.update_section("organization", **fields_)

    def update_personal(self, **fields_: Any) -> None:
        self.update_section("personal", **fields_)

    def update_address(self, **fields_: Any) -> None:
        self.update_section("address", **fields_)

    def update_bank(self, **fields_: Any) -> None:
        self.update_section("bank", **fields_)

    def update_esi(self, **fields_: Any) -> None:
        self.update_section("esi", **fields_)

    def update_gmc(self, **fields_: Any) -> None:
        self.update_section("gmc", **fields_)

    def set_address_verified_status(self, kind: Literal["present", "permanent"], **flags: bool) -> None:
        """Merge per-field verified flags into one of the two addresses."""
        address = self._sections.address
        target: Address = getattr(address, kind)
        updated = replace(target, verified_status={**target.verified_status, **flags})
        self._commit(replace(self._sections, address=replace(address, **{kind: updated})))

    # -------------------------------------------------------------------------
    # List sections
    # -------------------------------------------------------------------------

    def add_list_item(self, section: str) -> str:
        """Append an item with a fresh id and section defaults. Returns the id."""
        item_type = LIST_SECTIONS[section]
        item = item_type(id=self._id_factory())
        items = [*getattr(self._sections, section), item]
        self._commit(replace(self._sections, **{section: items}))
        return item.id

    def update_list_item(self, section: str, item_id: str, updates: dict | None = None, **fields_: Any) -> None:
        """Merge fields into the item with this id. Unknown id is a no-op."""
        item_type = LIST_SECTIONS[section]
        items = getattr(self._sections, section)
        index = next((i for i, item in enumerate(items) if item.id == item_id), None)
        if index is None:
            logger.debug(f"update_list_item: no {section} item {item_id}")
            return
        changes = {**(updates or {}), **fields_}
        changes.pop("id", None)
        new_items = list(items)
        new_items[index] = _merge(item_type, items[index], changes)
        self._commit(replace(self._sections, **{section: new_items}))

    def remove_list_item(self, section: str, item_id: str) -> None:
        """Remove the first item with this id. Unknown id is a no-op."""
        items = getattr(self._sections, section)
        index = next((i for i, item in enumerate(items) if item.id == item_id), None)
        if index is None:
            return
        new_items = items[:index] + items[index + 1:]
        updates: dict[str, Any] = {section: new_items}
        if section == "family" and item_id == self._sections.emergency_contact_member_id:
            updates["emergency_contact_member_id"] = None
        self._commit(replace(self._sections, **updates))

    def add_education_record(self) -> str:
        return self.add_list_item("education")

    def update_education_record(self, record_id: str, **fields_: Any) -> None:
        self.update_list_item("education", record_id, **fields_)

    def remove_education_record(self, record_id: str) -> None:
        self.remove_list_item("education", record_id)

    def add_family_member(self) -> str:
        return self.add_list_item("family")

    def update_family_member(self, member_id: str, **fields_: Any) -> None:
        self.update_list_item("family", member_id, **fields_)

    def remove_family_member(self, member_id: str) -> None:
        self.remove_list_item("family", member_id)

    def upsert_emergency_contact_member(self) -> str | None:
        """
        Mirror the emergency contact into the family list.

        Only when the contact's relationship is a family relation. The
        mirrored member is tracked so repeated calls update it in place.
        """
        personal = self._sections.personal
        if personal.relationship not in FAMILY_RELATIONS or not personal.emergency_contact_name:
            return None

        sections = self._sections
        family = list(sections.family)
        index = next(
            (i for i, m in enumerate(family) if m.id == sections.emergency_contact_member_id),
            None,
        )
        if index is None:
            member = FamilyMember(
                id=self._id_factory(),
                relation=personal.relationship,
                name=personal.emergency_contact_name,
            )
            family.append(member)
        else:
            member = replace(
                family[index],
                relation=personal.relationship,
                name=personal.emergency_contact_name,
            )
            family[index] = member

        self._commit(replace(sections, family=family, emergency_contact_member_id=member.id))
        return member.id

    # -------------------------------------------------------------------------
    # Attachments
    # -------------------------------------------------------------------------

    def attach_file(self, slot: str, uploaded: UploadedFile | None) -> None:
        """
        Attach (or clear) a file.

        Slots: "personal.photo", "personal.id_proof", "bank.bank_proof",
        "gmc.gmc_policy_copy", "education.<record id>.document".
        """
        parts = slot.split(".")
        if len(parts) == 3 and parts[0] == "education" and parts[2] == "document":
            self.update_education_record(parts[1], document=uploaded)
        elif slot in FILE_SLOTS:
            self.update_section(parts[0], **{parts[1]: uploaded})
        else:
            raise KeyError(f"Unknown file slot: {slot}")

    # -------------------------------------------------------------------------
    # Bookkeeping / lifecycle
    # -------------------------------------------------------------------------

    def log_verification_usage(self, item_name: str) -> None:
        usage = dict(self._sections.verification_usage)
        usage[item_name] = usage.get(item_name, 0) + 1
        self._commit(replace(self._sections, verification_usage=usage), derive=False)

    def reset(self) -> None:
        """Restore every section to its initial value in one swap."""
        self._commit(OnboardingSections(), derive=False)


def _merge(record_type: type, current: Any, changes: dict) -> Any:
    known = {f.name for f in fields(record_type)}
    unknown = set(changes) - known
    if unknown:
        raise AttributeError(f"{record_type.__name__} has no field(s): {', '.join(sorted(unknown))}")
    coerced = {name: record_type.coerce(name, value) for name, value in changes.items()}
    return replace(current, **coerced)
