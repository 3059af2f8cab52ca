import io
import logging
from collections import Counter
from typing import FrozenSet, List, Literal, Optional, Sequence, Tuple
from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict, Field
from app.core.config import settings
from app.utils.file_utils import format_mb, get_file_extension

logger = logging.getLogger("image_validation")

ErrorType = Literal["file_type", "file_size", "file_count", "duplicate", "corrupted"]

class ValidationConfig(BaseModel):
    """
    Limits applied to a batch of candidate images.
    """
    model_config = ConfigDict(frozen=True)

    max_images: int = 20
    max_file_size: int = 10 * 1024 * 1024  # bytes
    allowed_types: FrozenSet[str] = frozenset({"image/jpeg", "image/jpg", "image/png"})
    allowed_extensions: FrozenSet[str] = frozenset({".jpg", ".jpeg", ".png"})

DEFAULT_VALIDATION_CONFIG = ValidationConfig()

def config_from_settings() -> ValidationConfig:
    return ValidationConfig(
        max_images=settings.MAX_IMAGES,
        max_file_size=settings.MAX_FILE_SIZE_BYTES,
    )

class CandidateFile(BaseModel):
    """
    A file the visitor selected, not yet staged.
    """
    name: str
    content_type: str = ""
    data: bytes = b""
    declared_size: Optional[int] = None

    @property
    def size(self) -> int:
        if self.declared_size is not None:
            return self.declared_size
        return len(self.data)

class ImageValidationError(BaseModel):
    type: ErrorType
    message: str
    file_name: Optional[str] = None

class ValidationResult(BaseModel):
    is_valid: bool
    errors: List[ImageValidationError] = Field(default_factory=list)
    valid_files: List[CandidateFile] = Field(default_factory=list)
    # Files that passed every rule but fell outside the remaining quota
    dropped_files: List[CandidateFile] = Field(default_factory=list)

def _identity(name: str, size: int) -> Tuple[str, int]:
    return name, size

def check_file_type(file: CandidateFile, config: ValidationConfig) -> Optional[ImageValidationError]:
    extension = get_file_extension(file.name)
    if file.content_type in config.allowed_types or extension in config.allowed_extensions:
        return None
    return ImageValidationError(
        type="file_type",
        message=f"{file.name}は対応していない形式です。JPGまたはPNG形式のファイルを選択してください。",
        file_name=file.name,
    )

def check_file_size(file: CandidateFile, config: ValidationConfig) -> Optional[ImageValidationError]:
    if file.size <= config.max_file_size:
        return None
    return ImageValidationError(
        type="file_size",
        message=(
            f"{file.name}のファイルサイズが大きすぎます（{format_mb(file.size)}MB）。"
            f"{format_mb(config.max_file_size)}MB以下のファイルを選択してください。"
        ),
        file_name=file.name,
    )

def validate_files(
    files: Sequence[CandidateFile],
    staged: Sequence,
    config: ValidationConfig = DEFAULT_VALIDATION_CONFIG,
) -> ValidationResult:
    """
    Validate a batch of candidate files against the files already staged.

    `staged` items only need `display_name` and `byte_size` attributes.
    Every file is evaluated independently; the count rule reports once for the
    whole batch and survivors are capped to the remaining quota.
    """
    errors: List[ImageValidationError] = []
    valid_files: List[CandidateFile] = []

    if len(staged) + len(files) > config.max_images:
        errors.append(ImageValidationError(
            type="file_count",
            message=f"最大{config.max_images}枚まで選択可能です。現在{len(staged)}枚選択済みです。",
        ))

    staged_keys = {_identity(item.display_name, item.byte_size) for item in staged}
    seen_keys = set()

    for file in files:
        error = check_file_type(file, config) or check_file_size(file, config)
        if error:
            errors.append(error)
            continue

        key = _identity(file.name, file.size)
        if key in staged_keys:
            errors.append(ImageValidationError(
                type="duplicate",
                message=f"{file.name}は既に選択済みです。",
                file_name=file.name,
            ))
            continue

        if key in seen_keys:
            errors.append(ImageValidationError(
                type="duplicate",
                message=f"{file.name}が重複しています。",
                file_name=file.name,
            ))
            continue

        seen_keys.add(key)
        valid_files.append(file)

    remaining = max(config.max_images - len(staged), 0)
    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        valid_files=valid_files[:remaining],
        dropped_files=valid_files[remaining:],
    )

def is_valid_image_file(data: bytes) -> bool:
    """
    Check that the bytes decode as an image.
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
        return True
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        logger.info(f"Rejecting undecodable image: {str(e)}")
        return False

def corrupted_file_error(file: CandidateFile) -> ImageValidationError:
    return ImageValidationError(
        type="corrupted",
        message=f"{file.name}は破損しているか、画像として読み込めません。",
        file_name=file.name,
    )

def generate_accept_string(config: ValidationConfig = DEFAULT_VALIDATION_CONFIG) -> str:
    """
    Value for an <input type="file" accept="..."> attribute.
    """
    return ",".join(sorted(config.allowed_types) + sorted(config.allowed_extensions))

def filter_errors_by_type(errors: Sequence[ImageValidationError], error_type: ErrorType) -> List[ImageValidationError]:
    return [error for error in errors if error.type == error_type]

_SUMMARY_LABELS = (
    ("file_type", "形式エラー"),
    ("file_size", "サイズエラー"),
    ("duplicate", "重複エラー"),
    ("file_count", "枚数制限エラー"),
    ("corrupted", "破損ファイル"),
)

def get_error_summary(errors: Sequence[ImageValidationError]) -> str:
    """
    Summarise errors per type, e.g. "形式エラー: 2件, 重複エラー: 1件".
    """
    counts = Counter(error.type for error in errors)
    return ", ".join(
        f"{label}: {counts[error_type]}件"
        for error_type, label in _SUMMARY_LABELS
        if counts[error_type]
    )
