"""
Utility functions for the backend.

Provides common functionality for:
- Filename and storage key sanitization
- Retry logic with exponential backoff
- Service account credential decoding
"""
from __future__ import annotations

import asyncio
import base64
import json
import random
import re
import unicodedata
from typing import Any, Awaitable, Callable, TypeVar

from app.config import get_logger

logger = get_logger("utils")

T = TypeVar("T")


# =============================================================================
# Input Sanitization
# =============================================================================

_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]')
_UNSAFE_FILENAME_CHARS = re.compile(r'[^\w\-.]')
_REPEATED_UNDERSCORES = re.compile(r'_{2,}')
_FOLDER_PATTERN = re.compile(r'^[A-Za-z0-9_\-]+(/[A-Za-z0-9_\-]+)*$')
_KEY_SEGMENT_PATTERN = re.compile(r'^[A-Za-z0-9_\-.]+$')

MAX_FILENAME_LENGTH = 120


def sanitize_filename(filename: str) -> str:
    """
    Reduce a client-supplied filename to a safe, portable form.

    - Drops any directory component
    - Normalizes Unicode (NFKD) and removes control characters
    - Replaces anything outside [A-Za-z0-9_.-] with underscores
    - Keeps the extension when truncating

    Args:
        filename: Original filename from the client

    Returns:
        Sanitized filename (never empty)
    """
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    name = _CONTROL_CHARS.sub("", name)
    name = _UNSAFE_FILENAME_CHARS.sub("_", name)
    name = _REPEATED_UNDERSCORES.sub("_", name).strip("._")

    if not name:
        return "file"

    if len(name) > MAX_FILENAME_LENGTH:
        stem, dot, ext = name.rpartition(".")
        if dot and len(ext) < 10:
            name = stem[: MAX_FILENAME_LENGTH - len(ext) - 1] + "." + ext
        else:
            name = name[:MAX_FILENAME_LENGTH]
    return name


def is_valid_folder(folder: str) -> bool:
    """Check that a folder is a relative path of plain segments."""
    return bool(folder) and _FOLDER_PATTERN.match(folder) is not None


def is_valid_storage_key(key: str) -> bool:
    """
    Check that a storage key cannot escape its bucket or upload root.

    Rejects absolute paths, empty segments and "." / ".." segments.
    """
    if not key or key.startswith("/"):
        return False
    for segment in key.split("/"):
        if segment in ("", ".", "..") or not _KEY_SEGMENT_PATTERN.match(segment):
            return False
    return True


# =============================================================================
# Credentials
# =============================================================================

def decode_service_account_info(encoded: str) -> dict[str, Any]:
    """
    Decode a base64-encoded service account JSON document.

    Missing base64 padding is tolerated (common when the value is pasted
    into an environment variable).

    Raises:
        ValueError: If the value is not valid base64-encoded JSON
    """
    padded = encoded.strip() + "=" * ((4 - len(encoded.strip()) % 4) % 4)
    try:
        cred_json = base64.b64decode(padded).decode("utf-8")
        return json.loads(cred_json)
    except (ValueError, UnicodeDecodeError) as e:
        raise ValueError(f"Invalid base64 service account credentials: {e}") from e


# =============================================================================
# Retry Logic with Exponential Backoff
# =============================================================================

def is_retryable_error(exc: Exception) -> bool:
    """
    Determine if an exception is retryable.

    Retryable errors include:
    - Timeout errors
    - Connection errors
    - Rate limit errors (429)
    - Server errors (5xx)
    """
    exc_str = str(exc).lower()
    exc_type = type(exc).__name__.lower()

    # Timeout errors
    if "timeout" in exc_str or "timeout" in exc_type:
        return True

    # Connection errors
    if any(term in exc_str for term in ["connection", "connect", "network", "socket"]):
        return True
    if "connection" in exc_type or "disconnected" in exc_type:
        return True

    # Rate limit (429) or server errors (5xx)
    if "429" in exc_str or "rate limit" in exc_str or "throttl" in exc_str:
        return True
    if any(f"{code}" in exc_str for code in range(500, 600)):
        return True

    # Specific exception types
    if isinstance(exc, (asyncio.TimeoutError, ConnectionError, OSError)):
        return True

    return False


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """
    Exponential backoff delay with 10% jitter.

    Args:
        attempt: Zero-based attempt number that just failed
        base_delay: Delay after the first failure
        max_delay: Upper bound before jitter
    """
    delay = min(base_delay * (2 ** attempt), max_delay)
    return delay * (0.9 + random.random() * 0.2)


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_retries: int,
    base_delay: float,
    max_delay: float,
    should_retry: Callable[[Exception], bool] = is_retryable_error,
    **kwargs: Any,
) -> T:
    """
    Execute an async function with retry logic and exponential backoff.

    The last exception is re-raised unchanged once retries are exhausted
    or as soon as a failure is classified as non-retryable.

    Args:
        func: Async function to execute
        *args: Positional arguments for the function
        max_retries: Maximum retry attempts after the first call
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds
        should_retry: Predicate deciding whether a failure is transient
        **kwargs: Keyword arguments for the function

    Returns:
        Result of the function call
    """
    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not should_retry(e) or attempt >= max_retries:
                if attempt:
                    logger.error(
                        "Giving up on %s after %d attempts: %s",
                        getattr(func, "__name__", repr(func)),
                        attempt + 1,
                        e,
                    )
                raise

            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                "Attempt %d/%d failed for %s (%s), retrying in %.2fs",
                attempt + 1,
                max_retries + 1,
                getattr(func, "__name__", repr(func)),
                type(e).__name__,
                delay,
            )
            await asyncio.sleep(delay)

    raise RuntimeError("Unexpected retry loop exit")
