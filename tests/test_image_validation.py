import pytest
from app.services.image_validation import (
    DEFAULT_VALIDATION_CONFIG,
    CandidateFile,
    ImageValidationError,
    ValidationConfig,
    filter_errors_by_type,
    generate_accept_string,
    get_error_summary,
    is_valid_image_file,
    validate_files,
)
from app.services.staging_store import StagedFile

MB = 1024 * 1024

def jpeg(name: str, size: int = 1000, content_type: str = "image/jpeg") -> CandidateFile:
    return CandidateFile(name=name, content_type=content_type, declared_size=size)

def staged(name: str, size: int = 1000) -> StagedFile:
    return StagedFile(
        file_id=name,
        display_name=name,
        byte_size=size,
        content_type="image/jpeg",
        path=f"/tmp/{name}",
    )

def test_valid_batch_is_accepted_in_full():
    """Test a batch that passes every rule."""
    files = [jpeg(f"photo_{i}.jpg", size=1000 + i) for i in range(5)]
    result = validate_files(files, [staged("old.jpg")])

    assert result.is_valid
    assert result.errors == []
    assert [f.name for f in result.valid_files] == [f.name for f in files]

def test_batch_filling_quota_exactly_is_valid():
    """Test a batch that fills the remaining quota exactly."""
    files = [jpeg(f"photo_{i}.jpg") for i in range(18)]
    result = validate_files(files, [staged("a.jpg"), staged("b.jpg")])

    assert result.is_valid
    assert len(result.valid_files) == 18

@pytest.mark.parametrize("batch_size", [21, 30, 100])
def test_exceeding_max_images_reports_one_count_error(batch_size):
    """Test that an oversized batch reports a single count error."""
    files = [jpeg(f"photo_{i}.jpg") for i in range(batch_size)]
    result = validate_files(files, [])

    count_errors = filter_errors_by_type(result.errors, "file_count")
    assert len(count_errors) == 1
    assert count_errors[0].message == "最大20枚まで選択可能です。現在0枚選択済みです。"
    assert not result.is_valid

def test_count_error_references_staged_count_and_truncates():
    """Test the count error message and truncation to the remaining quota."""
    already = [staged(f"old_{i}.jpg") for i in range(18)]
    files = [jpeg(f"new_{i}.jpg") for i in range(4)]
    result = validate_files(files, already)

    assert "現在18枚選択済みです" in result.errors[0].message
    assert [f.name for f in result.valid_files] == ["new_0.jpg", "new_1.jpg"]
    assert [f.name for f in result.dropped_files] == ["new_2.jpg", "new_3.jpg"]

def test_count_error_does_not_skip_per_file_checks():
    """Test that per-file rules still run when the count rule fails."""
    files = [jpeg(f"photo_{i}.jpg") for i in range(20)] + [jpeg("anim.gif", content_type="image/gif")]
    result = validate_files(files, [])

    types = [error.type for error in result.errors]
    assert types == ["file_count", "file_type"]

def test_gif_is_rejected_regardless_of_size():
    """Test rejecting GIF files."""
    for size in (1, 5 * MB, 50 * MB):
        result = validate_files([jpeg("anim.gif", size=size, content_type="image/gif")], [])
        assert [error.type for error in result.errors] == ["file_type"]
        assert result.errors[0].file_name == "anim.gif"
        assert result.valid_files == []

def test_extension_alone_is_enough_for_type_rule():
    """Test accepting a file by extension alone."""
    result = validate_files([jpeg("scan.PNG", content_type="application/octet-stream")], [])
    assert result.is_valid

def test_mime_type_alone_is_enough_for_type_rule():
    """Test accepting a file by MIME type alone."""
    result = validate_files([jpeg("no_extension", content_type="image/png")], [])
    assert result.is_valid

def test_size_boundary():
    """Test files at and just over the size limit."""
    config = DEFAULT_VALIDATION_CONFIG
    exact = validate_files([jpeg("exact.jpg", size=config.max_file_size)], [])
    over = validate_files([jpeg("over.jpg", size=config.max_file_size + 1)], [])

    assert exact.is_valid
    assert [error.type for error in over.errors] == ["file_size"]
    assert over.valid_files == []

def test_size_error_message_rounds_to_one_decimal():
    """Test the size shown in the file size error."""
    result = validate_files([jpeg("big.jpg", size=int(11.26 * MB))], [])
    assert result.errors[0].message == (
        "big.jpgのファイルサイズが大きすぎます（11.3MB）。10MB以下のファイルを選択してください。"
    )

def test_type_error_skips_size_check():
    """Test that a type error is the only error for a file."""
    result = validate_files([jpeg("huge.gif", size=50 * MB, content_type="image/gif")], [])
    assert [error.type for error in result.errors] == ["file_type"]

def test_duplicate_against_staged_files():
    """Test a file already staged."""
    result = validate_files([jpeg("same.jpg", size=500)], [staged("same.jpg", size=500)])

    assert result.errors[0].type == "duplicate"
    assert result.errors[0].message == "same.jpgは既に選択済みです。"
    assert result.valid_files == []

def test_same_name_different_size_is_not_duplicate():
    """Test that a same-named file of another size is accepted."""
    result = validate_files([jpeg("same.jpg", size=501)], [staged("same.jpg", size=500)])
    assert result.is_valid

def test_duplicate_within_batch_first_occurrence_wins():
    """Test duplicates inside one batch."""
    first = jpeg("twin.jpg", size=700)
    second = jpeg("twin.jpg", size=700)
    result = validate_files([first, second], [])

    assert len(result.valid_files) == 1
    assert result.valid_files[0] is first
    assert [error.type for error in result.errors] == ["duplicate"]
    assert result.errors[0].message == "twin.jpgが重複しています。"

def test_custom_config():
    """Test validation with custom limits."""
    config = ValidationConfig(max_images=2, max_file_size=100)
    result = validate_files([jpeg("a.jpg", size=100), jpeg("b.jpg", size=101)], [], config)

    assert [f.name for f in result.valid_files] == ["a.jpg"]
    assert result.errors[0].type == "file_size"

def test_candidate_size_defaults_to_data_length():
    """Test the candidate size fallback."""
    candidate = CandidateFile(name="a.jpg", content_type="image/jpeg", data=b"12345")
    assert candidate.size == 5

def test_is_valid_image_file(make_image):
    """Test decoding real and broken image bytes."""
    assert is_valid_image_file(make_image("JPEG"))
    assert is_valid_image_file(make_image("PNG"))
    assert not is_valid_image_file(b"definitely not an image")
    assert not is_valid_image_file(b"")

def test_generate_accept_string():
    """Test the file input accept attribute."""
    assert generate_accept_string() == "image/jpeg,image/jpg,image/png,.jpeg,.jpg,.png"

def test_error_summary_orders_by_type():
    """Test the per-type error summary."""
    errors = [
        ImageValidationError(type="duplicate", message="d"),
        ImageValidationError(type="file_type", message="t1"),
        ImageValidationError(type="file_type", message="t2"),
        ImageValidationError(type="corrupted", message="c"),
    ]
    assert get_error_summary(errors) == "形式エラー: 2件, 重複エラー: 1件, 破損ファイル: 1件"
    assert get_error_summary([]) == ""
