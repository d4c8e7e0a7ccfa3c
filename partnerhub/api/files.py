from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, Header, Query, UploadFile, status
from sqlalchemy.orm import Session

from partnerhub.api.deps import get_storage_service, require_admin
from partnerhub.api.serializers import file_to_dict
from partnerhub.db.session import get_db
from partnerhub.services.storage import FileStorageService
from partnerhub.tenancy import TenantScope


router = APIRouter(tags=["files"])


@router.post("/projects/{project_id}/files", status_code=status.HTTP_201_CREATED)
async def upload_file(
    project_id: str,
    file: UploadFile = File(...),
    task_id: Optional[str] = Form(default=None, alias="taskId"),
    category: Optional[str] = Form(default=None),
    x_user_id: Optional[str] = Header(default=None),
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: FileStorageService = Depends(get_storage_service),
) -> Dict[str, Any]:
    content = await file.read()
    record = await storage.upload(
        db,
        scope,
        project_id,
        filename=file.filename or "",
        mime_type=file.content_type or "",
        content=content,
        uploader_id=x_user_id,
        task_id=task_id,
        category=category,
    )
    return file_to_dict(record)


@router.get("/projects/{project_id}/files")
def list_project_files(
    project_id: str,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: FileStorageService = Depends(get_storage_service),
) -> List[Dict[str, Any]]:
    return [file_to_dict(f) for f in storage.list_for_project(db, scope, project_id)]


@router.get("/tasks/{task_id}/files")
def list_task_files(
    task_id: str,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: FileStorageService = Depends(get_storage_service),
) -> List[Dict[str, Any]]:
    return [file_to_dict(f) for f in storage.list_for_task(db, scope, task_id)]


@router.get("/files/{file_id}")
def get_file(
    file_id: str,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: FileStorageService = Depends(get_storage_service),
) -> Dict[str, Any]:
    return file_to_dict(storage.get_file(db, scope, file_id))


@router.get("/files/{file_id}/download")
async def download_url(
    file_id: str,
    expires_in: Optional[int] = Query(default=None, alias="expiresIn", ge=60, le=604800),
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: FileStorageService = Depends(get_storage_service),
) -> Dict[str, Any]:
    signed = await storage.signed_url(db, scope, file_id, expires_in)
    return {"signedUrl": signed.signed_url, "expiresIn": signed.expires_in}


@router.delete("/files/{file_id}")
async def delete_file(
    file_id: str,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: FileStorageService = Depends(get_storage_service),
) -> Dict[str, str]:
    await storage.delete(db, scope, file_id)
    return {"message": "ファイルを削除しました"}
