"""
External services the onboarding engine calls.

The engine only depends on these protocols. Supabase / postal API
implementations live in the enrollment package.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .state import UploadedFile


class UploadKind(Enum):
    """Where an attachment goes."""
    AVATAR = "avatar"      # Profile photo -> avatars bucket
    DOCUMENT = "document"  # Everything else -> documents bucket


@dataclass(frozen=True)
class UploadReceipt:
    url: str
    path: str | None = None


@dataclass(frozen=True)
class PincodeDetails:
    city: str
    state: str


class FileUploadService(Protocol):
    async def upload(
        self,
        kind: UploadKind,
        file: UploadedFile,
        owner_id: str | None = None,
    ) -> UploadReceipt | None:
        """Store the file. Returns None (or raises) on failure."""
        ...


class PincodeLookupService(Protocol):
    async def lookup(self, pincode: str) -> PincodeDetails:
        """Resolve a pincode. Raises PincodeLookupError if unknown."""
        ...


class RecordCreationService(Protocol):
    async def create(self, payload: dict) -> dict | None:
        """Insert the enrollment record. None means nothing was created."""
        ...
