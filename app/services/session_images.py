import logging
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from app.services.backend_client import BackendClient, BackendError, public_image_url

logger = logging.getLogger("session_images")

class SessionImage(BaseModel):
    """
    An image persisted server-side under an upload session token.
    """
    id: str
    url: str
    original_filename: Optional[str] = None
    stored_filename: Optional[str] = None
    file_size: Optional[int] = None

class SessionImagesResult(BaseModel):
    success: bool
    images: List[SessionImage] = Field(default_factory=list)
    error: Optional[str] = None

class OperationResult(BaseModel):
    success: bool
    error: Optional[str] = None

def _to_session_image(raw: Dict[str, Any], session_token: str) -> Optional[SessionImage]:
    stored_filename = raw.get("stored_filename")
    if not stored_filename:
        # Without a stored name the image can neither be shown nor deleted
        logger.warning(f"Skipping session image without stored_filename in session {session_token}: {raw}")
        return None
    image_id = raw.get("id")
    return SessionImage(
        id=str(image_id) if image_id is not None else stored_filename,
        url=public_image_url(session_token, stored_filename),
        original_filename=raw.get("original_filename"),
        stored_filename=stored_filename,
        file_size=raw.get("file_size"),
    )

async def fetch_session_images(client: BackendClient, token: Optional[str]) -> SessionImagesResult:
    """
    List the images of an upload session, with browser-reachable URLs.
    """
    if not token:
        return SessionImagesResult(success=False, error="セッショントークンが指定されていません。")

    try:
        result = await client.get_session(token)
    except BackendError as e:
        return SessionImagesResult(success=False, error=f"画像データ取得エラー: {str(e)}")

    images = result.get("images")
    if not result.get("success") or images is None:
        return SessionImagesResult(
            success=False,
            error=result.get("error") or result.get("message") or "セッションが見つからないか、期限切れです。",
        )

    session_token = (result.get("session") or {}).get("token") or token
    session_images = []
    for raw in images:
        image = _to_session_image(raw, session_token)
        if image is not None:
            session_images.append(image)
    return SessionImagesResult(success=True, images=session_images)

async def delete_session(client: BackendClient, token: Optional[str]) -> OperationResult:
    if not token:
        return OperationResult(success=False, error="セッショントークンが指定されていません。")

    try:
        result = await client.delete_session(token)
    except BackendError as e:
        return OperationResult(success=False, error=f"セッション削除エラー: {str(e)}")

    if result.get("success"):
        return OperationResult(success=True)
    return OperationResult(success=False, error=result.get("message") or "セッションの削除に失敗しました。")

async def delete_image_from_session(client: BackendClient, token: Optional[str], filename: str) -> OperationResult:
    if not token:
        return OperationResult(success=False, error="セッショントークンが指定されていません。")

    try:
        result = await client.delete_image(token, filename)
    except BackendError as e:
        return OperationResult(success=False, error=str(e))

    if result.get("success"):
        return OperationResult(success=True)
    return OperationResult(success=False, error=result.get("error") or "画像削除中にエラーが発生しました。")

class SessionImageReconciler:
    """
    Tracks the active upload session token of one checkout flow and the
    images the backend holds for it.

    States:
        empty   -- no token, no images
        loading -- a fetch for the active token is in flight
        loaded  -- images reflect the last successful (or failed) fetch

    Deletions are two-phase: the backend call is awaited first and local
    state only changes once it reports success. Overlapping deletes are not
    serialized; the last one to resolve wins on local state.
    """

    def __init__(self, client: BackendClient, initial_token: Optional[str] = None):
        self.client = client
        self.active_token: Optional[str] = initial_token
        self.images: List[SessionImage] = []
        self.error: Optional[str] = None
        self.is_loading = False
        self.closed = False
        self._pending = 0
        self._fetched_token: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self._pending > 0

    @property
    def state(self) -> str:
        if not self.active_token:
            return "empty"
        if self.is_loading:
            return "loading"
        return "loaded"

    async def set_active_token(self, token: Optional[str]) -> None:
        """
        Adopt a token; a change to a new non-null token refreshes the images.
        """
        self.active_token = token
        if not token:
            self.images = []
            self.error = None
            self._fetched_token = None
            return
        if token == self._fetched_token:
            return
        await self.refresh(token)

    async def refresh(self, token: Optional[str] = None) -> None:
        token = token or self.active_token
        if not token:
            return

        self.is_loading = True
        self.error = None
        try:
            result = await fetch_session_images(self.client, token)
        finally:
            self.is_loading = False

        # Drop responses that arrive after teardown or after the token moved on
        if self.closed or token != self.active_token:
            logger.info(f"Discarding stale session image response for token {token}")
            return

        self._fetched_token = token
        if result.success:
            self.images = result.images
        else:
            self.images = []
            self.error = result.error

    async def remove_one(self, filename_or_id: str) -> bool:
        token = self.active_token
        if not token:
            return False

        self._pending += 1
        try:
            result = await delete_image_from_session(self.client, token, filename_or_id)
        finally:
            self._pending -= 1

        if self.closed:
            return result.success
        if not result.success:
            self.error = result.error or "画像の削除に失敗しました"
            return False

        self.images = [
            image for image in self.images
            if image.id != filename_or_id and image.stored_filename != filename_or_id
        ]
        return True

    async def remove_all(self) -> bool:
        token = self.active_token
        if not token:
            return False

        self._pending += 1
        try:
            result = await delete_session(self.client, token)
        finally:
            self._pending -= 1

        if self.closed:
            return result.success
        if not result.success:
            self.error = result.error or "サーバー画像の削除に失敗しました"
            return False

        self.images = []
        self.active_token = None
        self.error = None
        self._fetched_token = None
        return True

    def close(self) -> None:
        self.closed = True
