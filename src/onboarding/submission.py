"""
Submission Pipeline.

1. Upload every pending attachment (concurrently, best-effort)
2. Build the EnrollmentPayload once every upload attempt has settled
3. Create the record
4. Reset the store - only after creation succeeded

Upload failures are recorded as tagged outcomes and degrade the file
reference to None; they never abort the submission. Creation failures are
returned as a SubmissionResult, never raised, and leave the store untouched.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from .payload import EnrollmentPayload, build_payload
from .services import FileUploadService, RecordCreationService, UploadKind
from .state import OnboardingSections, OnboardingStore, UploadedFile

logger = logging.getLogger(__name__)


class UploadStatus(str, Enum):
    UPLOADED = "uploaded"
    FAILED = "failed"


@dataclass(frozen=True)
class PendingUpload:
    slot: str
    kind: UploadKind
    file: UploadedFile


@dataclass(frozen=True)
class UploadOutcome:
    """Result of one upload attempt. A failure is a value, not an exception."""
    slot: str
    status: UploadStatus
    url: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == UploadStatus.UPLOADED


@dataclass
class SubmissionResult:
    success: bool
    error: str | None = None
    record: dict | None = None
    payload: EnrollmentPayload | None = None
    uploads: list[UploadOutcome] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Shape returned to the wizard shell."""
        data: dict = {"success": self.success}
        if self.error:
            data["error"] = self.error
        failed = [u.slot for u in self.uploads if not u.ok]
        if failed:
            data["failed_uploads"] = failed
        return data


def collect_pending_uploads(sections: OnboardingSections) -> list[PendingUpload]:
    """Every attachment that still holds local bytes and has no URL."""
    candidates: list[tuple[str, UploadKind, UploadedFile | None]] = [
        ("personal.photo", UploadKind.AVATAR, sections.personal.photo),
        ("personal.id_proof", UploadKind.DOCUMENT, sections.personal.id_proof),
        ("bank.bank_proof", UploadKind.DOCUMENT, sections.bank.bank_proof),
        ("gmc.gmc_policy_copy", UploadKind.DOCUMENT, sections.gmc.gmc_policy_copy),
    ]
    candidates.extend(
        (f"education.{record.id}.document", UploadKind.DOCUMENT, record.document)
        for record in sections.education
    )
    return [
        PendingUpload(slot, kind, uploaded)
        for slot, kind, uploaded in candidates
        if uploaded is not None and uploaded.is_pending
    ]


class SubmissionPipeline:
    """
    Turns the store into one enrollment record.

    Services are injected; the pipeline itself has no backend knowledge.
    """

    def __init__(
        self,
        store: OnboardingStore,
        uploader: FileUploadService,
        records: RecordCreationService,
        id_factory: Callable[[], str] | None = None,
    ):
        self.store = store
        self.uploader = uploader
        self.records = records
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))

    async def _upload_one(self, pending: PendingUpload, owner_id: str | None) -> UploadOutcome:
        try:
            receipt = await self.uploader.upload(pending.kind, pending.file, owner_id)
        except Exception as e:
            logger.warning(f"Upload failed for {pending.slot} ({pending.file.name}), continuing: {e}")
            return UploadOutcome(pending.slot, UploadStatus.FAILED, error=str(e))

        if receipt is None:
            logger.warning(f"Upload returned nothing for {pending.slot} ({pending.file.name}), continuing")
            return UploadOutcome(pending.slot, UploadStatus.FAILED, error="No upload result")

        return UploadOutcome(pending.slot, UploadStatus.UPLOADED, url=receipt.url)

    async def upload_all(self, sections: OnboardingSections, owner_id: str | None) -> list[UploadOutcome]:
        """Attempt every pending upload; returns only after all have settled."""
        pending = collect_pending_uploads(sections)
        if not pending:
            return []
        logger.info(f"Uploading {len(pending)} attachment(s)")
        return list(await asyncio.gather(*(self._upload_one(p, owner_id) for p in pending)))

    async def submit(self, user_id: str | None) -> SubmissionResult:
        if not user_id:
            logger.error("No authenticated user found for onboarding submission")
            return SubmissionResult(success=False, error="User not authenticated")

        sections = self.store.snapshot()
        # Avatars are stored under the employee id
        owner_id = sections.personal.employee_id or user_id

        uploads = await self.upload_all(sections, owner_id)
        resolved = {outcome.slot: outcome.url for outcome in uploads}

        payload = build_payload(
            sections,
            user_id=user_id,
            submission_id=self._id_factory(),
            resolved=resolved,
        )

        try:
            record = await self.records.create(payload.to_dict())
        except Exception as e:
            logger.error(f"Onboarding submission failed: {e}")
            return SubmissionResult(
                success=False,
                error=str(e) or "Unknown error",
                payload=payload,
                uploads=uploads,
            )

        if not record:
            logger.error("Onboarding submission returned no record")
            return SubmissionResult(
                success=False,
                error="No data returned from submission",
                payload=payload,
                uploads=uploads,
            )

        self.store.reset()
        logger.info(f"Enrollment {payload.id} created for user {user_id}")
        return SubmissionResult(success=True, record=record, payload=payload, uploads=uploads)
