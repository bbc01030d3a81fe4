"""Validation utilities for the statement pipeline."""

import os
from typing import List

from statement_recon.config.settings import (
    MAX_CHUNK_CHARS,
    MAX_FILE_SIZE_MB,
    SUPPORTED_PDF_FORMATS,
)


class ValidationError(Exception):
    """Custom exception for validation errors."""
    pass


def validate_file_path(file_path: str) -> None:
    """Validate that a file path exists and is accessible.

    Args:
        file_path: Path to the file to validate.

    Raises:
        ValidationError: If file path is invalid.
    """
    if not file_path:
        raise ValidationError("File path cannot be empty")

    if not os.path.exists(file_path):
        raise ValidationError(f"File does not exist: {file_path}")

    if not os.path.isfile(file_path):
        raise ValidationError(f"Path is not a file: {file_path}")

    if not os.access(file_path, os.R_OK):
        raise ValidationError(f"File is not readable: {file_path}")


def validate_file_size(file_path: str, max_size_mb: int = MAX_FILE_SIZE_MB) -> None:
    """Validate file size against maximum allowed size.

    Raises:
        ValidationError: If file size exceeds limit.
    """
    file_size_mb = os.path.getsize(file_path) / (1024 * 1024)

    if file_size_mb > max_size_mb:
        raise ValidationError(
            f"File size {file_size_mb:.2f}MB exceeds maximum "
            f"allowed size {max_size_mb}MB"
        )


def validate_file_extension(
    file_path: str,
    supported_formats: List[str] = SUPPORTED_PDF_FORMATS
) -> None:
    """Validate file extension against supported formats.

    Raises:
        ValidationError: If file extension is not supported.
    """
    _, ext = os.path.splitext(file_path.lower())

    if ext not in supported_formats:
        raise ValidationError(
            f"File extension '{ext}' not supported. "
            f"Supported formats: {', '.join(supported_formats)}"
        )


def validate_pdf_file(file_path: str, max_size_mb: int = MAX_FILE_SIZE_MB) -> None:
    """Run the path, size and extension checks for a statement PDF.

    Raises:
        ValidationError: If any validation fails.
    """
    validate_file_path(file_path)
    validate_file_size(file_path, max_size_mb)
    validate_file_extension(file_path)


def validate_directory_path(dir_path: str) -> None:
    """Validate that a directory path exists (creating it if needed) and is writable.

    Raises:
        ValidationError: If directory path is invalid.
    """
    if not dir_path:
        raise ValidationError("Directory path cannot be empty")

    if not os.path.exists(dir_path):
        try:
            os.makedirs(dir_path, exist_ok=True)
        except OSError as e:
            raise ValidationError(f"Cannot create directory {dir_path}: {str(e)}")

    if not os.path.isdir(dir_path):
        raise ValidationError(f"Path is not a directory: {dir_path}")

    if not os.access(dir_path, os.W_OK):
        raise ValidationError(f"Directory is not writable: {dir_path}")


def validate_password(password: str) -> None:
    """Validate a PDF password candidate.

    Raises:
        ValidationError: If password is invalid.
    """
    if not isinstance(password, str):
        raise ValidationError("Password must be a string")

    if len(password.strip()) == 0:
        raise ValidationError("Password cannot be empty or whitespace only")


def validate_chunk_budget(max_chars: int, ceiling: int = MAX_CHUNK_CHARS * 16) -> None:
    """Validate the character budget of one extraction request.

    Raises:
        ValidationError: If the budget is not a positive integer within the ceiling.
    """
    if not isinstance(max_chars, int) or isinstance(max_chars, bool):
        raise ValidationError("Chunk budget must be an integer")

    if max_chars <= 0:
        raise ValidationError("Chunk budget must be positive")

    if max_chars > ceiling:
        raise ValidationError(
            f"Chunk budget {max_chars} exceeds maximum allowed size {ceiling}"
        )


def validate_target_period(month: int, year: int) -> None:
    """Validate the (month, year) a batch is uploaded for.

    Raises:
        ValidationError: If month is outside 1-12 or the year is implausible.
    """
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month!r}")

    if not isinstance(year, int) or not 1900 <= year <= 2100:
        raise ValidationError(f"Year must be between 1900 and 2100, got {year!r}")
