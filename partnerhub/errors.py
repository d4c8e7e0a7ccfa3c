from __future__ import annotations

from typing import Any, Dict, Optional


ERROR_CODES: Dict[str, Dict[str, Any]] = {
    "AUTH_001": {"message": "認証が必要です", "http_status": 401},
    "AUTH_002": {"message": "トークンが無効または期限切れです", "http_status": 401},
    "TOKEN_001": {"message": "トークンが見つかりません", "http_status": 404},
    "PARTNER_001": {"message": "パートナーが見つかりません", "http_status": 404},
    "PARTNER_006": {"message": "このメールアドレスのパートナーは既に登録されています", "http_status": 409},
    "PROJECT_001": {"message": "プロジェクトが見つかりません", "http_status": 404},
    "TASK_001": {"message": "タスクが見つかりません", "http_status": 404},
    "REPORT_001": {"message": "報告が見つかりません", "http_status": 404},
    "SCHEDULE_001": {"message": "報告スケジュールが見つかりません", "http_status": 404},
    "FILE_001": {"message": "ファイルが見つかりません", "http_status": 404},
    "FILE_002": {"message": "ファイルの保存処理に失敗しました", "http_status": 502},
    "FILE_003": {"message": "ファイルサイズが上限を超えています", "http_status": 400},
    "FILE_004": {"message": "許可されていないファイル形式です", "http_status": 400},
    "FILE_005": {"message": "ファイルの内容が拡張子と一致しません", "http_status": 400},
    "FILE_006": {"message": "ファイルが空または破損しています", "http_status": 400},
    "VALIDATION_001": {"message": "入力データが不正です", "http_status": 400},
    "SYSTEM_001": {"message": "システムエラーが発生しました", "http_status": 500},
}


class AppError(Exception):
    default_code = "SYSTEM_001"

    def __init__(
        self,
        code: Optional[str] = None,
        message: Optional[str] = None,
        user_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        http_status: Optional[int] = None,
    ) -> None:
        self.code = code or self.default_code
        definition = ERROR_CODES[self.code]
        self.message = message or definition["message"]
        self.user_message = user_message or definition["message"]
        self.details = details
        self.http_status = http_status or definition["http_status"]
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "userMessage": self.user_message,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationFailed(AppError):
    default_code = "VALIDATION_001"


class NotFound(AppError):
    @classmethod
    def partner(cls, partner_id: str) -> "NotFound":
        return cls("PARTNER_001", details={"partnerId": partner_id})

    @classmethod
    def project(cls, project_id: str) -> "NotFound":
        return cls("PROJECT_001", details={"projectId": project_id})

    @classmethod
    def file(cls, file_id: str) -> "NotFound":
        return cls("FILE_001", details={"fileId": file_id})


class AuthenticationFailed(AppError):
    default_code = "AUTH_001"

    def __init__(self, reason: str, code: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(code, **kwargs)
        self.reason = reason


class Conflict(AppError):
    default_code = "PARTNER_006"


class UpstreamError(AppError):
    default_code = "FILE_002"
