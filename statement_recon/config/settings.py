"""Configuration settings for the statement extraction pipeline."""

import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

# Environment variables
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

# Extraction API Configuration
EXTRACTION_API_KEYS = os.getenv("EXTRACTION_API_KEYS", "")
EXTRACTION_MODEL = os.getenv("EXTRACTION_MODEL", "gemini-2.0-flash")
EXTRACTION_BASE_URL = os.getenv(
    "EXTRACTION_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/"
)
EXTRACTION_TEMPERATURE = float(os.getenv("EXTRACTION_TEMPERATURE", "0.2"))
EXTRACTION_MAX_TOKENS = int(os.getenv("EXTRACTION_MAX_TOKENS", "8192"))
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "120"))

# Chunking Configuration
MAX_CHUNK_CHARS = int(os.getenv("MAX_CHUNK_CHARS", "8000"))
MAX_CHARS_PER_PAGE = int(os.getenv("MAX_CHARS_PER_PAGE", "20000"))
SUPPORTED_PDF_FORMATS = [".pdf"]

# Retry and credential rotation
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
RETRY_BACKOFF_SECONDS = float(os.getenv("RETRY_BACKOFF_SECONDS", "1"))
CREDENTIAL_MAX_FAILURES = int(os.getenv("CREDENTIAL_MAX_FAILURES", "5"))
CREDENTIAL_COOLDOWN_SECONDS = float(os.getenv("CREDENTIAL_COOLDOWN_SECONDS", "60"))
CREDENTIAL_USAGE_WINDOW_SECONDS = float(os.getenv("CREDENTIAL_USAGE_WINDOW_SECONDS", "60"))

# Worker pools
CONCURRENT_WORKERS = int(os.getenv("CONCURRENT_WORKERS", "4"))
EXTRACTION_WORKERS = int(os.getenv("EXTRACTION_WORKERS", "3"))

# Reconciliation
MATCH_THRESHOLD = int(os.getenv("MATCH_THRESHOLD", "5"))

# Celery Configuration
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TIMEZONE = "UTC"

# File Paths
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
REPORTS_DIR = os.getenv("REPORTS_DIR", os.path.join(BASE_DIR, "reports"))
LOGS_DIR = os.getenv("LOGS_DIR", os.path.join(BASE_DIR, "logs"))

# Security
MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB", "100"))

# Logging Configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def parse_api_keys(raw: str) -> List[str]:
    """Split a comma separated credential list, dropping blanks."""
    return [key.strip() for key in raw.split(",") if key.strip()]


@dataclass
class Settings:
    """Configuration settings class."""

    # Extraction API
    extraction_api_keys: List[str] = field(default_factory=lambda: parse_api_keys(EXTRACTION_API_KEYS))
    extraction_model: str = EXTRACTION_MODEL
    extraction_base_url: str = EXTRACTION_BASE_URL
    extraction_temperature: float = EXTRACTION_TEMPERATURE
    extraction_max_tokens: int = EXTRACTION_MAX_TOKENS
    request_timeout_seconds: float = REQUEST_TIMEOUT_SECONDS

    # Chunking
    max_chunk_chars: int = MAX_CHUNK_CHARS
    max_chars_per_page: int = MAX_CHARS_PER_PAGE

    # Retry and credential rotation
    max_retries: int = MAX_RETRIES
    retry_backoff_seconds: float = RETRY_BACKOFF_SECONDS
    credential_max_failures: int = CREDENTIAL_MAX_FAILURES
    credential_cooldown_seconds: float = CREDENTIAL_COOLDOWN_SECONDS
    credential_usage_window_seconds: float = CREDENTIAL_USAGE_WINDOW_SECONDS

    # Worker pools
    concurrent_workers: int = CONCURRENT_WORKERS
    extraction_workers: int = EXTRACTION_WORKERS

    # Reconciliation
    match_threshold: int = MATCH_THRESHOLD

    # Output and logging
    reports_dir: str = REPORTS_DIR
    logs_dir: str = LOGS_DIR
    log_level: str = LOG_LEVEL
    log_format: str = LOG_FORMAT
    log_to_file: bool = True

    # Security
    max_file_size_mb: int = MAX_FILE_SIZE_MB
    supported_pdf_formats: List[str] = field(default_factory=lambda: SUPPORTED_PDF_FORMATS.copy())

    # Celery Configuration
    celery_broker_url: str = CELERY_BROKER_URL
    celery_result_backend: str = CELERY_RESULT_BACKEND

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables."""
        return cls(
            extraction_api_keys=parse_api_keys(os.getenv("EXTRACTION_API_KEYS", "")),
            extraction_model=os.getenv("EXTRACTION_MODEL", "gemini-2.0-flash"),
            extraction_base_url=os.getenv(
                "EXTRACTION_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/"
            ),
            extraction_temperature=float(os.getenv("EXTRACTION_TEMPERATURE", "0.2")),
            extraction_max_tokens=int(os.getenv("EXTRACTION_MAX_TOKENS", "8192")),
            request_timeout_seconds=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "120")),
            max_chunk_chars=int(os.getenv("MAX_CHUNK_CHARS", "8000")),
            max_chars_per_page=int(os.getenv("MAX_CHARS_PER_PAGE", "20000")),
            max_retries=int(os.getenv("MAX_RETRIES", "3")),
            retry_backoff_seconds=float(os.getenv("RETRY_BACKOFF_SECONDS", "1")),
            credential_max_failures=int(os.getenv("CREDENTIAL_MAX_FAILURES", "5")),
            credential_cooldown_seconds=float(os.getenv("CREDENTIAL_COOLDOWN_SECONDS", "60")),
            credential_usage_window_seconds=float(os.getenv("CREDENTIAL_USAGE_WINDOW_SECONDS", "60")),
            concurrent_workers=int(os.getenv("CONCURRENT_WORKERS", "4")),
            extraction_workers=int(os.getenv("EXTRACTION_WORKERS", "3")),
            match_threshold=int(os.getenv("MATCH_THRESHOLD", "5")),
            reports_dir=os.getenv("REPORTS_DIR", REPORTS_DIR),
            logs_dir=os.getenv("LOGS_DIR", LOGS_DIR),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_to_file=os.getenv("LOG_TO_FILE", "True").lower() == "true",
            max_file_size_mb=int(os.getenv("MAX_FILE_SIZE_MB", "100")),
            celery_broker_url=os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0"),
            celery_result_backend=os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0"),
        )

    def validate(self) -> bool:
        """Validate settings."""
        return (
            self.max_chunk_chars > 0 and
            self.max_chars_per_page > 0 and
            self.max_retries >= 1 and
            self.retry_backoff_seconds >= 0 and
            self.credential_max_failures > 0 and
            self.credential_cooldown_seconds >= 0 and
            self.concurrent_workers > 0 and
            self.extraction_workers > 0 and
            self.max_file_size_mb > 0
        )

    def get_log_level(self) -> str:
        """Get log level as string."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() in valid_levels:
            return self.log_level.upper()
        return "INFO"

    def get_retry_delay(self, attempt: int) -> float:
        """Get the pause after a failed attempt (1-based): base, 2x base, 3x base..."""
        return self.retry_backoff_seconds * max(1, attempt)

    def create_directories(self) -> None:
        """Create necessary directories."""
        for directory in [self.reports_dir, self.logs_dir]:
            os.makedirs(directory, exist_ok=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary, with credentials masked."""
        data = asdict(self)
        data["extraction_api_keys"] = [f"...{key[-4:]}" for key in self.extraction_api_keys]
        return data
