import math
from pathlib import Path

def get_file_extension(file_name: str) -> str:
    """
    Return the lowercase extension of a file name, including the leading dot.

    Everything from the last "." is taken; a name without a dot yields "".
    """
    lowered = file_name.lower()
    index = lowered.rfind(".")
    if index == -1:
        return ""
    return lowered[index:]

def format_file_size(num_bytes: int) -> str:
    """
    Convert a byte count into a human readable string (e.g. "1.5 MB").
    """
    if num_bytes <= 0:
        return "0 Bytes"

    k = 1024
    sizes = ["Bytes", "KB", "MB", "GB"]
    i = 0
    while num_bytes >= k ** (i + 1) and i < len(sizes) - 1:
        i += 1
    value = round(num_bytes / k ** i, 1)
    # Drop a trailing ".0" so 10MB renders as "10 MB"
    text = f"{value:.1f}".rstrip("0").rstrip(".")
    return f"{text} {sizes[i]}"

def size_in_mb(num_bytes: int) -> float:
    """
    Size in MiB rounded to one decimal place.
    """
    return math.floor(num_bytes / (1024 * 1024) * 10 + 0.5) / 10

def format_mb(num_bytes: int) -> str:
    """
    Render a MiB size without a trailing ".0" ("10", "10.5").
    """
    value = size_in_mb(num_bytes)
    return str(int(value)) if value.is_integer() else str(value)

def ensure_directory_exists(directory_path: Path) -> None:
    """
    Ensure that a directory exists, creating it if necessary.
    """
    directory_path.mkdir(parents=True, exist_ok=True)
