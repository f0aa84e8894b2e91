"""Checks applied to an uploaded file before any import work starts."""

from pathlib import PurePath
from typing import Iterable, Optional

from dealerbooks.domain.errors import UploadValidationError

CSV_EXTENSIONS = frozenset({"csv", "txt"})
JSON_EXTENSIONS = frozenset({"json", "txt"})
DEFAULT_MAX_UPLOAD_KB = 20480


def validate_upload(
    filename: Optional[str],
    size: Optional[int],
    allowed_extensions: Iterable[str] = CSV_EXTENSIONS,
    max_kb: int = DEFAULT_MAX_UPLOAD_KB,
) -> None:
    """Reject a missing, oversized or wrongly typed upload.

    Raises:
        UploadValidationError: With the problems keyed by field ("file")
    """
    if not filename:
        raise UploadValidationError({"file": ["The file field is required."]})

    allowed = sorted(set(allowed_extensions))
    problems = []
    extension = PurePath(filename).suffix.lstrip(".").lower()
    if extension not in allowed:
        problems.append(f"The file must be a file of type: {', '.join(allowed)}.")
    if size is not None and size > max_kb * 1024:
        problems.append(f"The file may not be greater than {max_kb} kilobytes.")
    if problems:
        raise UploadValidationError({"file": problems})
