"""
Enrollment Payload Definition.

The EnrollmentPayload is the contract between the onboarding engine and the
onboarding_submissions table: one flat record with a JSON object per section
and every attachment flattened to a URL string (or None).
"""

from dataclasses import asdict, dataclass, field
from typing import Any
import json

from .state import OnboardingSections, UploadedFile


DEFAULT_STATUS = "Draft"
DEFAULT_PORTAL_SYNC_STATUS = "Pending"


@dataclass
class EnrollmentPayload:
    """
    Complete record sent to the record-creation service.

    Top-level columns mirror what the submissions table indexes on;
    section data is stored as JSON objects.
    """

    id: str
    user_id: str
    status: str = DEFAULT_STATUS
    portal_sync_status: str = DEFAULT_PORTAL_SYNC_STATUS

    organization_id: str | None = None
    organization_name: str | None = None
    enrollment_date: str | None = None
    requires_manual_verification: bool = False
    forms_generated: bool = False

    # Section JSON
    personal: dict = field(default_factory=dict)
    address: dict = field(default_factory=dict)
    family: list[dict] = field(default_factory=list)
    education: list[dict] = field(default_factory=list)
    bank: dict = field(default_factory=dict)
    uan: dict = field(default_factory=dict)
    esi: dict = field(default_factory=dict)
    gmc: dict = field(default_factory=dict)
    organization: dict = field(default_factory=dict)

    # Collected by later flows; sent empty so the insert has every column
    uniforms: list = field(default_factory=list)
    biometrics: dict = field(default_factory=dict)
    salary_change_request: dict | None = None
    verification_usage: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize for the insert."""
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def file_url(uploaded: UploadedFile | None, slot: str, resolved: dict[str, str | None]) -> str | None:
    """
    URL for an attachment slot.

    Slots that went through upload use the upload outcome (None on failure).
    Otherwise an already-persisted file keeps its URL.
    """
    if slot in resolved:
        return resolved[slot]
    if uploaded is not None and uploaded.url:
        return uploaded.url
    return None


def build_payload(
    sections: OnboardingSections,
    user_id: str,
    submission_id: str,
    resolved: dict[str, str | None],
) -> EnrollmentPayload:
    """
    Build the EnrollmentPayload from a store snapshot.

    Args:
        sections: Snapshot of the store
        user_id: Authenticated user
        submission_id: Client-generated UUID for the record
        resolved: slot -> URL for every attempted upload (None if it failed)
    """
    personal = sections.personal
    organization = sections.organization

    personal_data: dict[str, Any] = asdict(personal)
    personal_data["photo"] = file_url(personal.photo, "personal.photo", resolved)
    personal_data["id_proof"] = file_url(personal.id_proof, "personal.id_proof", resolved)
    personal_data["verified_status"] = dict(personal.verified_status or {})

    bank_data = asdict(sections.bank)
    bank_data["bank_proof"] = file_url(sections.bank.bank_proof, "bank.bank_proof", resolved)

    gmc_data = asdict(sections.gmc)
    gmc_data["gmc_policy_copy"] = file_url(sections.gmc.gmc_policy_copy, "gmc.gmc_policy_copy", resolved)
    # Internal bookkeeping for the default-policy rule
    gmc_data.pop("policy_amount_touched", None)

    education = []
    for record in sections.education:
        record_data = asdict(record)
        record_data["document"] = file_url(record.document, f"education.{record.id}.document", resolved)
        education.append(record_data)

    return EnrollmentPayload(
        id=submission_id,
        user_id=user_id,
        organization_id=organization.organization_id,
        organization_name=organization.organization_name,
        enrollment_date=organization.joining_date,
        personal=personal_data,
        address=asdict(sections.address),
        family=[asdict(member) for member in sections.family],
        education=education,
        bank=bank_data,
        uan={
            "uan_number": personal.uan_number,
            "has_previous_pf": personal.has_previous_pf,
            "pf_number": personal.pf_number,
        },
        esi=asdict(sections.esi),
        gmc=gmc_data,
        organization=asdict(organization),
        verification_usage=dict(sections.verification_usage),
    )
