"""
Pytest configuration and fixtures for enrollment tests.
"""

import itertools
import os
from unittest.mock import MagicMock

import pytest

# Set test environment before importing enrollment modules
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ["ENROLLMENT_ENV"] = "development"

from enrollment.config import EnrollmentRules  # noqa: E402
from onboarding.rules import GmcPolicyDefault, mirror_permanent_address  # noqa: E402
from onboarding.state import OnboardingStore, UploadedFile  # noqa: E402
from onboarding.wizard import OnboardingWizard  # noqa: E402

from fakes import FakePincodeLookup, FakeRecords, FakeUploader  # noqa: E402


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def id_factory():
    """Deterministic ids: id-1, id-2, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def rules():
    return EnrollmentRules()


@pytest.fixture
def store(id_factory):
    """Bare store, no derivations."""
    return OnboardingStore(id_factory=id_factory)


@pytest.fixture
def ruled_store(id_factory, rules):
    """Store with the wizard's derivations installed."""
    return OnboardingStore(
        id_factory=id_factory,
        derivations=[mirror_permanent_address, GmcPolicyDefault(lambda: rules)],
    )


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def records():
    return FakeRecords()


@pytest.fixture
def pincode_lookup():
    return FakePincodeLookup()


@pytest.fixture
def wizard(uploader, records, pincode_lookup, rules, id_factory):
    return OnboardingWizard(
        user_id="user-1",
        uploader=uploader,
        records=records,
        pincode_lookup=pincode_lookup,
        rules=rules,
        id_factory=id_factory,
        submission_id_factory=lambda: "sub-1",
    )


@pytest.fixture
def sample_file():
    def make(name: str = "doc.pdf", content: bytes = b"%PDF-1.4") -> UploadedFile:
        return UploadedFile(name=name, type="application/pdf", size=len(content), file=content)
    return make


VALID_PERSONAL = {
    "employee_id": "EMP001",
    "first_name": "Asha",
    "last_name": "Rao",
    "dob": "1995-04-12",
    "gender": "Female",
    "marital_status": "Single",
    "blood_group": "O+",
    "mobile": "9876543210",
    "email": "asha@example.com",
    "emergency_contact_name": "Ravi Rao",
    "emergency_contact_number": "9123456780",
    "relationship": "Father",
    "salary": 30000.0,
}

VALID_PRESENT_ADDRESS = {
    "line1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
}

VALID_BANK = {
    "account_holder_name": "Asha Rao",
    "account_number": "123456789012",
    "confirm_account_number": "123456789012",
    "ifsc_code": "HDFC0001234",
    "bank_name": "HDFC Bank",
    "branch_name": "MG Road",
}


@pytest.fixture
def valid_personal():
    return dict(VALID_PERSONAL)


@pytest.fixture
def fill_valid():
    """Fill every section of a store with data that passes all steps."""
    def fill(store: OnboardingStore, **personal_overrides) -> None:
        store.update_personal(**{**VALID_PERSONAL, **personal_overrides})
        store.update_address(present=dict(VALID_PRESENT_ADDRESS), same_as_present=True)
        store.update_bank(**VALID_BANK)
        store.update_gmc(is_opted_in=True, nominee_name="Ravi Rao", nominee_relation="Father")
    return fill


@pytest.fixture
def mock_supabase():
    """Mock Supabase client for unit tests."""
    mock_client = MagicMock()

    # Mock table operations
    mock_table = MagicMock()
    mock_table.insert.return_value = mock_table
    mock_table.execute.return_value = MagicMock(data=[{"id": "sub-1"}])
    mock_client.table.return_value = mock_table

    # Mock storage operations
    mock_bucket = MagicMock()
    mock_bucket.upload.side_effect = lambda path, file, file_options=None: MagicMock(path=path)
    mock_bucket.get_public_url.side_effect = lambda path: f"https://test.supabase.co/storage/{path}"
    mock_client.storage.from_.return_value = mock_bucket

    return mock_client
