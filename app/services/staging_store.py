import logging
import shutil
import uuid
import aiofiles
from pathlib import Path
from typing import Iterable, List, Optional, Sequence
from pydantic import BaseModel
from app.core.config import settings
from app.services.image_validation import CandidateFile
from app.utils.file_utils import ensure_directory_exists, get_file_extension

logger = logging.getLogger("staging_store")

class StagedFile(BaseModel):
    """
    A file selected locally but not yet confirmed persisted by the backend.
    The bytes live at `path`; the preview URL is served from the same file.
    """
    file_id: str
    display_name: str
    byte_size: int
    content_type: str
    path: Path

    @property
    def preview_url(self) -> str:
        return f"/step1/files/{self.file_id}/preview"

class StagingStore:
    """
    Ordered in-memory list of staged files for one checkout flow.

    Each file's preview handle is allocated once on append and released once,
    on remove, clear or hand-off.
    """

    def __init__(self, flow_id: str, root: Optional[Path] = None):
        self.flow_id = flow_id
        self.directory = (root or settings.STAGING_DIR) / flow_id
        self._files: List[StagedFile] = []
        self._released: set = set()

    @property
    def files(self) -> List[StagedFile]:
        return list(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def get(self, file_id: str) -> Optional[StagedFile]:
        for staged in self._files:
            if staged.file_id == file_id:
                return staged
        return None

    async def append(self, files: Sequence[CandidateFile]) -> List[StagedFile]:
        """
        Stage a batch of already validated files, in order.
        If writing any file fails, everything allocated for this batch is released.
        """
        ensure_directory_exists(self.directory)
        added: List[StagedFile] = []
        try:
            for file in files:
                file_id = uuid.uuid4().hex
                path = self.directory / f"{file_id}{get_file_extension(file.name)}"
                staged = StagedFile(
                    file_id=file_id,
                    display_name=file.name,
                    byte_size=file.size,
                    content_type=file.content_type,
                    path=path,
                )
                added.append(staged)
                async with aiofiles.open(path, "wb") as f:
                    await f.write(file.data)
        except Exception:
            for staged in added:
                self._release(staged)
            raise

        self._files.extend(added)
        logger.info(f"Staged {len(added)} file(s) for flow {self.flow_id} ({len(self._files)} total)")
        return added

    def remove(self, index: int) -> StagedFile:
        """
        Remove the staged file at `index`; raises IndexError when out of range.
        """
        if index < 0 or index >= len(self._files):
            raise IndexError(f"No staged file at index {index}")
        staged = self._files.pop(index)
        self._release(staged)
        return staged

    def clear(self) -> int:
        count = self._release_all()
        logger.info(f"Cleared {count} staged file(s) for flow {self.flow_id}")
        return count

    def hand_off(self, file_ids: Optional[Iterable[str]] = None) -> int:
        """
        Release and forget the submitted files after a successful submission.

        Only the files in `file_ids` are released when given, so anything staged
        while the upload was in flight stays staged.
        """
        if file_ids is None:
            count = self._release_all()
        else:
            submitted = set(file_ids)
            handed_off = [staged for staged in self._files if staged.file_id in submitted]
            self._files = [staged for staged in self._files if staged.file_id not in submitted]
            for staged in handed_off:
                self._release(staged)
            count = len(handed_off)
        logger.info(f"Handed off {count} staged file(s) for flow {self.flow_id}")
        return count

    async def read(self, staged: StagedFile) -> bytes:
        async with aiofiles.open(staged.path, "rb") as f:
            return await f.read()

    def discard(self) -> None:
        """
        Tear the store down: release every file and remove the flow directory.
        """
        self._release_all()
        self._released.clear()
        shutil.rmtree(self.directory, ignore_errors=True)

    def _release_all(self) -> int:
        files, self._files = self._files, []
        for staged in files:
            self._release(staged)
        return len(files)

    def _release(self, staged: StagedFile) -> None:
        if staged.file_id in self._released:
            logger.warning(f"Preview {staged.file_id} already released")
            return
        self._released.add(staged.file_id)
        staged.path.unlink(missing_ok=True)
