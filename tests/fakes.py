"""
In-memory stand-ins for the onboarding backend services.
"""

from enrollment.errors import PincodeLookupError
from onboarding.services import PincodeDetails, UploadKind, UploadReceipt


class FakeUploader:
    """FileUploadService that records calls. Names in `fail` return None."""

    def __init__(self, fail: set[str] | None = None, raise_for: set[str] | None = None):
        self.fail = fail or set()
        self.raise_for = raise_for or set()
        self.calls: list[tuple[UploadKind, str, str | None]] = []

    async def upload(self, kind, file, owner_id=None):
        self.calls.append((kind, file.name, owner_id))
        if file.name in self.raise_for:
            raise RuntimeError(f"storage unavailable for {file.name}")
        if file.name in self.fail:
            return None
        return UploadReceipt(url=f"https://files.test/{kind.value}/{file.name}")


class FakeRecords:
    """RecordCreationService. Returns the payload back as the record unless told otherwise."""

    def __init__(self, record: dict | None = None, error: Exception | None = None, empty: bool = False):
        self.record = record
        self.error = error
        self.empty = empty
        self.created: list[dict] = []

    async def create(self, payload):
        self.created.append(payload)
        if self.error is not None:
            raise self.error
        if self.empty:
            return None
        return self.record or {"id": payload["id"]}


class FakePincodeLookup:
    """PincodeLookupService over a fixed table; unknown pincodes raise."""

    def __init__(self, known: dict[str, PincodeDetails] | None = None, before_return=None):
        self.known = known if known is not None else {
            "411045": PincodeDetails(city="Pune", state="Maharashtra"),
            "560001": PincodeDetails(city="Bengaluru", state="Karnataka"),
        }
        self.before_return = before_return
        self.calls: list[str] = []

    async def lookup(self, pincode):
        self.calls.append(pincode)
        if self.before_return:
            self.before_return()
        if pincode not in self.known:
            raise PincodeLookupError(pincode)
        return self.known[pincode]

