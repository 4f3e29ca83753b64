"""
File validation helpers.

Files are checked for size first, then extension.
Both the upload widget and the HTTP intake endpoint use these checks.
"""
import math
import time
from typing import Iterable, List

from cv_tracker.core.exceptions import FileTooLarge, UnsupportedFileType
from cv_tracker.schemas.upload import FileCandidate

BYTES_PER_MB = 1024 * 1024


def get_file_extension(filename: str) -> str:
    """
    Extract the extension of a file name.

    Args:
        filename: Original filename

    Returns:
        Lowercase substring after the final '.', or '' if there is no dot
    """
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def normalize_accept(accept: Iterable[str]) -> List[str]:
    """Lowercase accept entries and strip the leading dot (".PDF" -> "pdf")."""
    normalized = []
    for entry in accept:
        entry = entry.strip().lower()
        if entry.startswith("."):
            entry = entry[1:]
        if entry and entry not in normalized:
            normalized.append(entry)
    return normalized


def is_valid_file_size(size: int, max_size_mb: float) -> bool:
    return size <= max_size_mb * BYTES_PER_MB


def is_valid_file_type(filename: str, accept: Iterable[str]) -> bool:
    return get_file_extension(filename) in normalize_accept(accept)


def validate_file(candidate: FileCandidate, accept: Iterable[str], max_size_mb: float) -> None:
    """
    Validate a selected file.

    Raises:
        FileTooLarge: size exceeds max_size_mb * 1024**2 bytes
        UnsupportedFileType: extension not in the accept list
    """
    if not is_valid_file_size(candidate.size, max_size_mb):
        raise FileTooLarge(max_size_mb, size=candidate.size)

    allowed = normalize_accept(accept)
    extension = get_file_extension(candidate.file_name)
    if extension not in allowed:
        raise UnsupportedFileType([f".{ext}" for ext in allowed], extension=extension)


def format_file_size(size: int) -> str:
    """Human readable size, e.g. 1536 -> '1.5 KB'."""
    if size <= 0:
        return "0 Bytes"

    units = ["Bytes", "KB", "MB", "GB"]
    index = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
    value = round(size / (1024 ** index), 2)
    return f"{value:g} {units[index]}"


def generate_unique_file_name(original_name: str) -> str:
    """Prefix the original name with a millisecond timestamp: '1712345678901_cv.pdf'."""
    return f"{int(time.time() * 1000)}_{original_name}"
