"""
File utility functions for the ebook index.

Provides common file operations: hashing for change detection, stable
document ids, size and modification-time lookups, timestamp parsing, and
directory management.
"""

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union


def get_content_hash(data: Union[bytes, str]) -> str:
    """
    Compute the MD5 hash of raw content.

    Used to detect whether the manifest (data file) changed between runs.

    Args:
        data: Raw bytes or text. Text is encoded as UTF-8.

    Returns:
        Hexadecimal MD5 hash string.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.md5(data).hexdigest()


def resolve_path(filepath: Union[str, Path]) -> str:
    """Return the absolute, normalized form of a path as a string."""
    return str(Path(filepath).expanduser().resolve())


def compute_document_id(filepath: Union[str, Path]) -> str:
    """
    Derive a stable document id from a file path.

    The path is resolved first, so the same file always maps to the same id.

    Args:
        filepath: Path to the ebook file.

    Returns:
        16-character hexadecimal id.
    """
    return hashlib.md5(resolve_path(filepath).encode("utf-8")).hexdigest()[:16]


def get_file_size_mb(filepath: Union[str, Path]) -> float:
    """
    Get file size in megabytes.

    Args:
        filepath: Path to the file.

    Returns:
        File size in MB, rounded to 2 decimal places.
    """
    filepath = Path(filepath)
    size_bytes = filepath.stat().st_size
    return round(size_bytes / (1024 * 1024), 2)


def get_file_mtime(filepath: Union[str, Path]) -> Optional[str]:
    """
    Get a file's modification time as an ISO-8601 UTC string.

    Returns:
        Timestamp string, or None if the file cannot be accessed.
    """
    try:
        mtime = Path(filepath).stat().st_mtime
    except OSError:
        return None
    return format_timestamp(datetime.fromtimestamp(mtime, tz=timezone.utc))


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return format_timestamp(datetime.now(timezone.utc))


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime as ISO-8601 with a trailing Z."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse a manifest or index timestamp into an aware UTC datetime.

    Accepts ISO-8601 strings (a trailing "Z" is allowed), epoch seconds as
    int/float, and datetime objects. Naive values are treated as UTC.

    Returns:
        Parsed datetime, or None if the value is missing or unparseable.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Create directory tree if it doesn't exist.

    Args:
        path: Directory path to create.

    Returns:
        Path object of the directory.
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
