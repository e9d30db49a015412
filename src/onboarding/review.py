"""
Review summary for the final step.

Read-only rendering of the store: one block per section, each linked to the
step that edits it.
"""

from dataclasses import dataclass, field
from typing import Any

from .state import OnboardingSections, UploadedFile
from .steps import StepId

EMPTY = "-"


def format_value(value: Any) -> str:
    """Display form of one value: files by name, booleans Yes/No, blanks as '-'."""
    if isinstance(value, UploadedFile):
        return value.name or EMPTY
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if value is None or value == "":
        return EMPTY
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass
class ReviewBlock:
    title: str
    step_id: StepId
    rows: list[tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "edit_step": self.step_id.value,
            "rows": [{"label": label, "value": value} for label, value in self.rows],
        }


def _rows(pairs: list[tuple[str, Any]]) -> list[tuple[str, str]]:
    return [(label, format_value(value)) for label, value in pairs]


def build_review(sections: OnboardingSections, gmc_applicable: bool) -> list[ReviewBlock]:
    p = sections.personal
    present = sections.address.present
    permanent = sections.address.permanent

    blocks = [
        ReviewBlock("Personal Details", StepId.PERSONAL, _rows([
            ("Employee ID", p.employee_id),
            ("Name", " ".join(part for part in (p.first_name, p.middle_name, p.last_name) if part)),
            ("Date of Birth", p.dob),
            ("Gender", p.gender),
            ("Marital Status", p.marital_status),
            ("Blood Group", p.blood_group),
            ("Mobile", p.mobile),
            ("Email", p.email),
            ("Photo", p.photo),
            ("ID Proof", p.id_proof),
            ("Emergency Contact", p.emergency_contact_name),
            ("Emergency Number", p.emergency_contact_number),
            ("Salary", p.salary),
        ])),
        ReviewBlock("Address", StepId.ADDRESS, _rows([
            ("Present Address", ", ".join(x for x in (present.line1, present.line2, present.city, present.state, present.pincode) if x)),
            ("Same as Present", sections.address.same_as_present),
            ("Permanent Address", ", ".join(x for x in (permanent.line1, permanent.line2, permanent.city, permanent.state, permanent.pincode) if x)),
        ])),
        ReviewBlock("Family", StepId.FAMILY, _rows([
            (member.relation, f"{member.name}{' (dependent)' if member.dependent else ''}")
            for member in sections.family
        ])),
        ReviewBlock("Education", StepId.EDUCATION, _rows([
            (record.degree or "Qualification", ", ".join(x for x in (record.institution, record.end_year) if x))
            for record in sections.education
        ])),
        ReviewBlock("Bank Details", StepId.BANK, _rows([
            ("Account Holder", sections.bank.account_holder_name),
            ("Account Number", sections.bank.account_number),
            ("IFSC", sections.bank.ifsc_code),
            ("Bank", sections.bank.bank_name),
            ("Branch", sections.bank.branch_name),
            ("Bank Proof", sections.bank.bank_proof),
        ])),
        ReviewBlock("UAN / PF", StepId.UAN, _rows([
            ("Previous PF", p.has_previous_pf),
            ("UAN Number", p.uan_number),
            ("PF Number", p.pf_number),
        ])),
        ReviewBlock("ESI", StepId.ESI, _rows([
            ("Covered under ESI", sections.esi.has_esi),
            ("ESI Number", sections.esi.esi_number),
        ])),
    ]

    if gmc_applicable:
        gmc = sections.gmc
        blocks.append(ReviewBlock("Group Medical Cover", StepId.GMC, _rows([
            ("Opted In", gmc.is_opted_in),
            ("Policy Amount", gmc.policy_amount),
            ("Nominee", gmc.nominee_name),
            ("Nominee Relation", gmc.nominee_relation),
            ("Opt-out Reason", gmc.opt_out_reason),
            ("Policy Copy", gmc.gmc_policy_copy),
        ])))

    return blocks
