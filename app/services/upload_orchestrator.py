import logging
import aiofiles
from typing import List, Optional, Sequence
from pydantic import BaseModel
from app.services.backend_client import BackendClient, BackendError, MultipartFile
from app.services.image_validation import (
    CandidateFile,
    ValidationConfig,
    check_file_size,
    check_file_type,
    config_from_settings,
)
from app.services.staging_store import StagedFile

logger = logging.getLogger("upload_orchestrator")

class UploadResult(BaseModel):
    success: bool
    token: Optional[str] = None
    error: Optional[str] = None
    image_count: Optional[int] = None

class UploadOrchestrator:
    """
    Submits staged files, plus the existing session token if any, as one
    multipart request. All-or-nothing: the result is either a token or an
    error message. The staging store is left untouched.
    """

    def __init__(self, client: BackendClient, config: Optional[ValidationConfig] = None):
        self.client = client
        self.config = config or config_from_settings()

    def precheck(self, staged: Sequence[StagedFile], existing_token: Optional[str]) -> Optional[str]:
        """
        Return an error message when the submission must not reach the network.
        """
        if not staged and not existing_token:
            return "画像ファイルが選択されていません。"

        if len(staged) > self.config.max_images:
            return f"画像は最大{self.config.max_images}枚まで選択可能です。"

        errors: List[str] = []
        for item in staged:
            candidate = CandidateFile(
                name=item.display_name,
                content_type=item.content_type,
                declared_size=item.byte_size,
            )
            error = check_file_type(candidate, self.config) or check_file_size(candidate, self.config)
            if error:
                errors.append(error.message)
        if errors:
            return " ".join(errors)
        return None

    async def submit(self, staged: Sequence[StagedFile], existing_token: Optional[str] = None) -> UploadResult:
        error = self.precheck(staged, existing_token)
        if error:
            return UploadResult(success=False, error=error)

        if not staged:
            # Nothing new to send; continue with the session already on the backend
            return UploadResult(success=True, token=existing_token, image_count=0)

        try:
            files: List[MultipartFile] = []
            for item in staged:
                async with aiofiles.open(item.path, "rb") as f:
                    files.append(("images[]", (item.display_name, await f.read(), item.content_type)))

            result = await self.client.upload_images(files, existing_token)
        except (BackendError, OSError) as e:
            logger.error(f"Upload error: {str(e)}")
            return UploadResult(success=False, error=f"アップロードエラー: {str(e)}")

        token = result.get("token")
        if not result.get("success") or not token:
            message = result.get("message") or ", ".join(result.get("errors") or []) or "アップロードに失敗しました。"
            return UploadResult(success=False, error=message)

        image_count = len(result.get("images") or [])
        logger.info(f"Images uploaded successfully. Token: {token}, Count: {image_count}")
        return UploadResult(success=True, token=token, image_count=image_count)
