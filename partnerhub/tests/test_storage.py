from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from factories import make_partner, make_project, make_task
from partnerhub.db.models import ProjectFile
from partnerhub.errors import AppError, NotFound, UpstreamError, ValidationFailed
from partnerhub.services.storage import (
    FileStorageService,
    SupabaseStorageClient,
    file_category,
    file_extension,
    validate_upload,
)
from partnerhub.tenancy import TenantScope


PDF = b"%PDF-1.7\n%fake body"
PNG = b"\x89PNG\r\n\x1a\nrest"
MAX_BYTES = 1024
ALL = TenantScope.all()


class StorageStub:
    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if "/object/sign/" in request.url.path:
            return httpx.Response(
                self.status_code, json={"signedURL": "/object/sign/project-files/key?token=abc"}
            )
        return httpx.Response(self.status_code, json={"Key": "project-files/key"})


def _service(stub: StorageStub, url: str = "https://storage.test") -> FileStorageService:
    client = SupabaseStorageClient(url, "service-key", "project-files", transport=httpx.MockTransport(stub))
    return FileStorageService(client, max_upload_bytes=MAX_BYTES, signed_url_ttl=600)


def test_extension_and_category():
    assert file_extension("Report.Final.PDF") == "pdf"
    assert file_extension("README") == ""
    assert file_category("xlsx") == "document"
    assert file_category("JPG") == "image"
    assert file_category("zip") == "other"


@pytest.mark.parametrize(
    "filename, mime_type, content, code",
    [
        ("big.pdf", "application/pdf", b"%PDF" + b"0" * MAX_BYTES, "FILE_003"),
        ("script.exe", "application/octet-stream", b"MZ\x90\x00", "FILE_004"),
        ("photo.png", "image/jpeg", PNG, "FILE_005"),
        ("empty.pdf", "application/pdf", b"%P", "FILE_006"),
        ("fake.pdf", "application/pdf", b"<html>not a pdf</html>", "FILE_005"),
        ("sheet.xlsx", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", b"\xd0\xcf\x11\xe0xx", "FILE_005"),
    ],
)
def test_validation_rejects(filename, mime_type, content, code):
    with pytest.raises(ValidationFailed) as exc:
        validate_upload(filename, mime_type, content, MAX_BYTES)
    assert exc.value.code == code
    assert exc.value.http_status == 400


def test_validation_accepts_office_formats():
    assert validate_upload("legacy.doc", "application/msword", b"\xd0\xcf\x11\xe0body", MAX_BYTES) == "doc"
    assert validate_upload(
        "notes.docx",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        b"PK\x03\x04body",
        MAX_BYTES,
    ) == "docx"


def test_upload_stores_object_then_row(db):
    partner = make_partner(db)
    project = make_project(db, partner)
    stub = StorageStub()
    service = _service(stub)

    record = asyncio.run(
        service.upload(db, ALL, project.id, "spec.pdf", "application/pdf", PDF, uploader_id="admin-1")
    )

    assert record.category == "document"
    assert record.file_size == len(PDF)
    assert record.storage_path.startswith(f"{project.id}/")
    assert record.storage_path.endswith(".pdf")
    assert record.public_url == f"https://storage.test/storage/v1/object/public/project-files/{record.storage_path}"
    sent = stub.requests[0]
    assert sent.method == "POST"
    assert sent.url.path == f"/storage/v1/object/project-files/{record.storage_path}"
    assert sent.headers["x-upsert"] == "false"
    assert sent.headers["authorization"] == "Bearer service-key"
    assert sent.content == PDF


def test_failed_upload_writes_no_row(db):
    project = make_project(db)
    service = _service(StorageStub(status_code=500))

    with pytest.raises(UpstreamError) as exc:
        asyncio.run(service.upload(db, ALL, project.id, "photo.png", "image/png", PNG))

    assert exc.value.code == "FILE_002"
    assert db.query(ProjectFile).count() == 0


def test_invalid_upload_never_reaches_storage(db):
    project = make_project(db)
    stub = StorageStub()
    service = _service(stub)

    with pytest.raises(ValidationFailed):
        asyncio.run(service.upload(db, ALL, project.id, "fake.png", "image/png", PDF))

    assert stub.requests == []


def test_unconfigured_storage_is_a_system_error(db):
    project = make_project(db)
    service = _service(StorageStub(), url="")

    with pytest.raises(AppError) as exc:
        asyncio.run(service.upload(db, ALL, project.id, "spec.pdf", "application/pdf", PDF))

    assert exc.value.code == "SYSTEM_001"


def test_upload_to_project_outside_scope_is_not_found(db):
    project = make_project(db, organization_id="org-2")
    service = _service(StorageStub())

    with pytest.raises(NotFound) as exc:
        asyncio.run(
            service.upload(db, TenantScope.for_organization("org-1"), project.id, "spec.pdf", "application/pdf", PDF)
        )

    assert exc.value.code == "PROJECT_001"


def test_delete_removes_row_even_when_storage_fails(db):
    project = make_project(db)
    record = asyncio.run(_service(StorageStub()).upload(db, ALL, project.id, "spec.pdf", "application/pdf", PDF))
    failing = StorageStub(status_code=503)

    asyncio.run(_service(failing).delete(db, ALL, record.id))

    assert db.query(ProjectFile).count() == 0
    removal = failing.requests[0]
    assert removal.method == "DELETE"
    assert json.loads(removal.content) == {"prefixes": [record.storage_path]}


def test_signed_url(db):
    project = make_project(db)
    stub = StorageStub()
    service = _service(stub)
    record = asyncio.run(service.upload(db, ALL, project.id, "spec.pdf", "application/pdf", PDF))

    signed = asyncio.run(service.signed_url(db, ALL, record.id))

    assert signed.expires_in == 600
    assert signed.signed_url == "https://storage.test/storage/v1/object/sign/project-files/key?token=abc"
    assert json.loads(stub.requests[-1].content) == {"expiresIn": 600}


def test_listing_by_project_and_task(db):
    partner = make_partner(db)
    project = make_project(db, partner)
    task = make_task(db, project, partner)
    service = _service(StorageStub())
    first = asyncio.run(service.upload(db, ALL, project.id, "a.pdf", "application/pdf", PDF, task_id=task.id))
    asyncio.run(service.upload(db, ALL, project.id, "b.png", "image/png", PNG))

    assert len(service.list_for_project(db, ALL, project.id)) == 2
    assert [f.id for f in service.list_for_task(db, ALL, task.id)] == [first.id]
    assert service.list_for_task(db, ALL, "task-unknown") == []
    with pytest.raises(NotFound) as exc:
        service.get_file(db, ALL, "missing")
    assert exc.value.code == "FILE_001"


def test_upload_for_task_of_another_project_is_rejected(db):
    partner = make_partner(db)
    project = make_project(db, partner)
    other = make_project(db, partner, name="Other")
    task = make_task(db, other, partner)
    stub = StorageStub()

    with pytest.raises(NotFound) as exc:
        asyncio.run(_service(stub).upload(db, ALL, project.id, "a.pdf", "application/pdf", PDF, task_id=task.id))

    assert exc.value.code == "TASK_001"
    assert stub.requests == []
