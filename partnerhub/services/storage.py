"""Project file storage backed by the Supabase Storage REST API."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import httpx
from sqlalchemy.orm import Session

from partnerhub.db.models import Project, ProjectFile, Task
from partnerhub.errors import AppError, NotFound, UpstreamError, ValidationFailed
from partnerhub.services.directory import require_project
from partnerhub.services.http import get_client
from partnerhub.tenancy import TenantScope


logger = logging.getLogger(__name__)

DOCUMENT_EXTENSIONS = ("pdf", "doc", "docx", "xls", "xlsx")
IMAGE_EXTENSIONS = ("png", "jpg", "jpeg", "gif")
ALLOWED_EXTENSIONS = DOCUMENT_EXTENSIONS + IMAGE_EXTENSIONS

EXTENSION_MIME_TYPES: Dict[str, Tuple[str, ...]] = {
    "pdf": ("application/pdf",),
    "doc": ("application/msword",),
    "docx": ("application/vnd.openxmlformats-officedocument.wordprocessingml.document",),
    "xls": ("application/vnd.ms-excel",),
    "xlsx": ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",),
    "png": ("image/png",),
    "jpg": ("image/jpeg",),
    "jpeg": ("image/jpeg",),
    "gif": ("image/gif",),
}

MAGIC_BYTES: Dict[str, bytes] = {
    "pdf": b"%PDF",
    "png": b"\x89PNG",
    "jpg": b"\xff\xd8\xff",
    "jpeg": b"\xff\xd8\xff",
    "gif": b"GIF8",
    "docx": b"PK\x03\x04",
    "xlsx": b"PK\x03\x04",
    "doc": b"\xd0\xcf\x11\xe0",
    "xls": b"\xd0\xcf\x11\xe0",
}


def file_extension(filename: str) -> str:
    parts = filename.rsplit(".", 1)
    return parts[1].lower() if len(parts) == 2 else ""


def file_category(extension: str) -> str:
    extension = extension.lower()
    if extension in DOCUMENT_EXTENSIONS:
        return "document"
    if extension in IMAGE_EXTENSIONS:
        return "image"
    return "other"


def validate_upload(filename: str, mime_type: str, content: bytes, max_bytes: int) -> str:
    """Run the upload checks in order and return the normalized extension."""
    if len(content) > max_bytes:
        raise ValidationFailed(
            "FILE_003",
            user_message=f"ファイルサイズが上限（{max_bytes // (1024 * 1024)}MB）を超えています",
            details={"maxSize": max_bytes, "actualSize": len(content)},
        )
    extension = file_extension(filename)
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationFailed(
            "FILE_004",
            user_message=f"許可されていないファイル形式です。許可される形式: {', '.join(ALLOWED_EXTENSIONS)}",
            details={"allowedExtensions": list(ALLOWED_EXTENSIONS), "actualExtension": extension},
        )
    if mime_type not in EXTENSION_MIME_TYPES[extension]:
        logger.warning("mime type mismatch: extension=%s mimetype=%s", extension, mime_type)
        raise ValidationFailed("FILE_005", details={"extension": extension, "mimetype": mime_type})
    if len(content) < 4:
        raise ValidationFailed("FILE_006")
    if not content.startswith(MAGIC_BYTES[extension]):
        logger.warning("magic bytes mismatch: extension=%s actual=%s", extension, content[:4].hex())
        raise ValidationFailed("FILE_005", details={"extension": extension})
    return extension


@dataclass
class SignedUrl:
    signed_url: str
    expires_in: int


class SupabaseStorageClient:
    def __init__(
        self,
        url: str,
        service_key: str,
        bucket: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.url and self.service_key)

    def _client(self) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self.service_key}", "apikey": self.service_key}
        return get_client(base_url=f"{self.url}/storage/v1", headers=headers, transport=self.transport)

    def public_url(self, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{path}"

    async def upload(self, path: str, content: bytes, content_type: str) -> None:
        async with self._client() as client:
            response = await client.post(
                f"/object/{self.bucket}/{path}",
                content=content,
                headers={"Content-Type": content_type, "x-upsert": "false"},
            )
            response.raise_for_status()

    async def remove(self, paths: List[str]) -> None:
        async with self._client() as client:
            response = await client.request("DELETE", f"/object/{self.bucket}", json={"prefixes": paths})
            response.raise_for_status()

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        async with self._client() as client:
            response = await client.post(f"/object/sign/{self.bucket}/{path}", json={"expiresIn": expires_in})
            response.raise_for_status()
            signed = response.json().get("signedURL")
        if not signed:
            raise ValueError("storage response has no signedURL")
        return f"{self.url}/storage/v1{signed}"


def _storage_unavailable() -> AppError:
    return AppError(
        "SYSTEM_001",
        message="object storage is not configured",
        user_message="ストレージサービスが利用できません",
    )


class FileStorageService:
    def __init__(self, client: SupabaseStorageClient, max_upload_bytes: int, signed_url_ttl: int = 3600) -> None:
        self.client = client
        self.max_upload_bytes = max_upload_bytes
        self.signed_url_ttl = signed_url_ttl

    def _project(self, db: Session, scope: TenantScope, project_id: str) -> Project:
        return require_project(db, scope, project_id)

    async def upload(
        self,
        db: Session,
        scope: TenantScope,
        project_id: str,
        filename: str,
        mime_type: str,
        content: bytes,
        uploader_id: Optional[str] = None,
        task_id: Optional[str] = None,
        category: Optional[str] = None,
    ) -> ProjectFile:
        self._project(db, scope, project_id)
        if task_id:
            task = db.get(Task, task_id)
            if not task or task.project_id != project_id:
                raise NotFound("TASK_001", details={"taskId": task_id})
        extension = validate_upload(filename, mime_type, content, self.max_upload_bytes)
        if not self.client.configured:
            raise _storage_unavailable()

        stored_name = f"{uuid.uuid4()}.{extension}"
        storage_path = f"{project_id}/{stored_name}"
        try:
            await self.client.upload(storage_path, content, mime_type)
        except httpx.HTTPError as exc:
            logger.error("failed to upload file to storage: %s", exc)
            raise UpstreamError(
                "FILE_002",
                message=f"upload failed: {exc}",
                user_message="ファイルのアップロードに失敗しました",
            ) from exc

        record = ProjectFile(
            project_id=project_id,
            task_id=task_id or None,
            uploader_id=uploader_id,
            file_name=stored_name,
            original_name=filename,
            mime_type=mime_type,
            file_size=len(content),
            storage_path=storage_path,
            public_url=self.client.public_url(storage_path),
            category=category or file_category(extension),
        )
        db.add(record)
        db.commit()
        logger.info("file uploaded: %s", filename, extra={"file_id": record.id})
        return record

    def list_for_project(self, db: Session, scope: TenantScope, project_id: str) -> List[ProjectFile]:
        self._project(db, scope, project_id)
        return (
            db.query(ProjectFile)
            .filter(ProjectFile.project_id == project_id)
            .order_by(ProjectFile.created_at.desc())
            .all()
        )

    def list_for_task(self, db: Session, scope: TenantScope, task_id: str) -> List[ProjectFile]:
        files = (
            db.query(ProjectFile)
            .filter(ProjectFile.task_id == task_id)
            .order_by(ProjectFile.created_at.desc())
            .all()
        )
        if files:
            self._project(db, scope, files[0].project_id)
        return files

    def get_file(self, db: Session, scope: TenantScope, file_id: str) -> ProjectFile:
        record = db.get(ProjectFile, file_id)
        if not record:
            raise NotFound.file(file_id)
        self._project(db, scope, record.project_id)
        return record

    async def delete(self, db: Session, scope: TenantScope, file_id: str) -> None:
        record = self.get_file(db, scope, file_id)
        if self.client.configured:
            try:
                await self.client.remove([record.storage_path])
            except httpx.HTTPError as exc:
                logger.warning("failed to delete file from storage: %s", exc, extra={"file_id": file_id})
        db.delete(record)
        db.commit()
        logger.info("file deleted", extra={"file_id": file_id})

    async def signed_url(
        self,
        db: Session,
        scope: TenantScope,
        file_id: str,
        expires_in: Optional[int] = None,
    ) -> SignedUrl:
        record = self.get_file(db, scope, file_id)
        if not self.client.configured:
            raise _storage_unavailable()
        expires_in = expires_in or self.signed_url_ttl
        try:
            url = await self.client.create_signed_url(record.storage_path, expires_in)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("failed to create signed url: %s", exc, extra={"file_id": file_id})
            raise UpstreamError(
                "FILE_002",
                message=f"signed url failed: {exc}",
                user_message="署名付きURLの生成に失敗しました",
            ) from exc
        return SignedUrl(signed_url=url, expires_in=expires_in)
