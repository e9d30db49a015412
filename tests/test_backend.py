"""
Tests for the Supabase backend and the postal pincode client.
"""

import asyncio

import httpx
import pytest

from enrollment.config import EnrollmentSettings
from enrollment.db.client import SupabaseEnrollmentBackend, avatar_path
from enrollment.errors import PincodeLookupError, RecordCreationError, StorageUploadError
from enrollment.pincode import PostalPincodeClient
from onboarding.services import UploadKind
from onboarding.state import UploadedFile


@pytest.fixture
def backend(mock_supabase):
    return SupabaseEnrollmentBackend(client=mock_supabase, enrollment_settings=EnrollmentSettings())


def jpeg(name="me.jpg"):
    return UploadedFile(name=name, type="image/jpeg", size=3, file=b"\xff\xd8\xff")


class TestStorageUpload:

    def test_avatar_goes_to_avatars_bucket_under_owner(self, backend, mock_supabase):
        receipt = asyncio.run(backend.upload(UploadKind.AVATAR, jpeg("me.png"), "EMP001"))

        mock_supabase.storage.from_.assert_called_with("avatars")
        path, content = mock_supabase.storage.from_.return_value.upload.call_args[0][:2]
        assert path == "EMP001/avatar.png"
        assert content == b"\xff\xd8\xff"
        assert receipt.url == "https://test.supabase.co/storage/EMP001/avatar.png"

    def test_document_goes_to_uploads_folder(self, backend, mock_supabase):
        receipt = asyncio.run(backend.upload(UploadKind.DOCUMENT, jpeg("cheque.jpg")))

        mock_supabase.storage.from_.assert_called_with("documents")
        assert receipt.path.startswith("uploads/")
        assert receipt.path.endswith("-cheque.jpg")

    def test_upload_is_upsert_with_content_type(self, backend, mock_supabase):
        asyncio.run(backend.upload(UploadKind.DOCUMENT, jpeg()))

        options = mock_supabase.storage.from_.return_value.upload.call_args.kwargs["file_options"]
        assert options == {"content-type": "image/jpeg", "upsert": "true"}

    def test_avatar_without_owner_returns_none(self, backend):
        assert asyncio.run(backend.upload(UploadKind.AVATAR, jpeg(), None)) is None

    def test_file_without_bytes_returns_none(self, backend):
        assert asyncio.run(backend.upload(UploadKind.DOCUMENT, UploadedFile(name="x.pdf"))) is None

    def test_storage_error_is_wrapped(self, backend, mock_supabase):
        mock_supabase.storage.from_.return_value.upload.side_effect = RuntimeError("bucket not found")

        with pytest.raises(StorageUploadError):
            asyncio.run(backend.upload(UploadKind.DOCUMENT, jpeg()))

    def test_avatar_path_without_extension(self):
        assert avatar_path("EMP001", "photo") == "EMP001/avatar.jpg"


class TestRecordCreation:

    def test_insert_into_submissions_table(self, backend, mock_supabase):
        record = asyncio.run(backend.create({"id": "sub-1"}))

        mock_supabase.table.assert_called_with("onboarding_submissions")
        mock_supabase.table.return_value.insert.assert_called_with({"id": "sub-1"})
        assert record == {"id": "sub-1"}

    def test_empty_insert_returns_none(self, backend, mock_supabase):
        mock_supabase.table.return_value.execute.return_value.data = []

        assert asyncio.run(backend.create({"id": "sub-1"})) is None

    def test_insert_error_is_wrapped(self, backend, mock_supabase):
        mock_supabase.table.return_value.execute.side_effect = RuntimeError("duplicate key")

        with pytest.raises(RecordCreationError, match="duplicate key"):
            asyncio.run(backend.create({"id": "sub-1"}))


def pincode_client(handler) -> PostalPincodeClient:
    return PostalPincodeClient(base_url="https://pin.test/pincode", transport=httpx.MockTransport(handler))


class TestPostalPincodeClient:

    def test_success_uses_first_post_office(self):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, json=[{
                "Status": "Success",
                "PostOffice": [
                    {"Name": "Baner", "District": "Pune", "State": "Maharashtra"},
                    {"Name": "Other", "District": "Elsewhere", "State": "Nowhere"},
                ],
            }])

        details = asyncio.run(pincode_client(handler).lookup("411045"))

        assert (details.city, details.state) == ("Pune", "Maharashtra")
        assert requested == ["https://pin.test/pincode/411045"]

    def test_error_status_raises(self):
        def handler(request):
            return httpx.Response(200, json=[{"Status": "Error", "PostOffice": None}])

        with pytest.raises(PincodeLookupError) as exc:
            asyncio.run(pincode_client(handler).lookup("999999"))

        assert exc.value.pincode == "999999"

    def test_http_error_raises(self):
        def handler(request):
            return httpx.Response(503)

        with pytest.raises(PincodeLookupError):
            asyncio.run(pincode_client(handler).lookup("411045"))

    def test_network_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PincodeLookupError):
            asyncio.run(pincode_client(handler).lookup("411045"))

    def test_unexpected_body_raises(self):
        def handler(request):
            return httpx.Response(200, json={"message": "rate limited"})

        with pytest.raises(PincodeLookupError):
            asyncio.run(pincode_client(handler).lookup("411045"))

    @pytest.mark.parametrize("body", [
        [None],
        ["Success"],
        [{"Status": "Success", "PostOffice": {}}],
        [{"Status": "Success", "PostOffice": "Baner"}],
        [{"Status": "Success", "PostOffice": [None]}],
    ])
    def test_malformed_success_body_raises(self, body):
        def handler(request):
            return httpx.Response(200, json=body)

        with pytest.raises(PincodeLookupError):
            asyncio.run(pincode_client(handler).lookup("411045"))

    def test_from_settings(self):
        client = PostalPincodeClient.from_settings(EnrollmentSettings(pincode_api_url="https://pin.test/pincode/"))

        assert client.base_url == "https://pin.test/pincode"
