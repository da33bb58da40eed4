"""SHA-256 and version checks for runtime integrity verification."""

import hashlib
import logging
import re
from pathlib import Path
from typing import Optional

_VERSION_RE = re.compile(r"v?(\d+)\.(\d+)\.(\d+)")


def compute_sha256(file_path: Path, chunk_size: int = 64 * 1024) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to file to hash
        chunk_size: Read buffer size

    Returns:
        64-character hex digest

    Raises:
        FileNotFoundError: If file doesn't exist
        OSError: If file read fails
    """
    logger = logging.getLogger("installer.verification")
    digest = hashlib.sha256()

    with open(file_path, "rb") as f:
        while chunk := f.read(chunk_size):
            digest.update(chunk)

    result = digest.hexdigest()
    logger.debug(f"Computed SHA-256 for {file_path.name}: {result}")
    return result


def verify_sha256(file_path: Path, expected_sha256: str) -> bool:
    """Verify file SHA-256 matches the expected digest.

    Returns:
        True if the digest matches, False on mismatch or unreadable file

    Raises:
        ValueError: If expected_sha256 is not a 64-char hex string
    """
    logger = logging.getLogger("installer.verification")

    if not isinstance(expected_sha256, str) or not re.fullmatch(r"[a-fA-F0-9]{64}", expected_sha256):
        raise ValueError(f"Invalid SHA-256 format: {expected_sha256} (must be 64-char hex)")

    try:
        actual = compute_sha256(file_path)
    except OSError as e:
        logger.error(f"Failed to read {file_path} for verification: {e}")
        return False

    match = actual == expected_sha256.lower()
    if match:
        logger.info(f"SHA-256 verification passed for {file_path.name}")
    else:
        logger.error(
            f"SHA-256 mismatch for {file_path.name}: "
            f"expected {expected_sha256.lower()}, got {actual}"
        )
    return match


def parse_version(text: str) -> Optional[tuple[int, int, int]]:
    """Extract the first ``major.minor.patch`` triple (leading ``v`` allowed)."""
    match = _VERSION_RE.search(text or "")
    if not match:
        return None
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def meets_minimum_version(found: str, minimum: str) -> bool:
    found_v = parse_version(found)
    minimum_v = parse_version(minimum)
    if found_v is None or minimum_v is None:
        return False
    return found_v >= minimum_v
