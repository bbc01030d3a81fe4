"""Celery application and task definitions for statement batches."""

from typing import Any, Dict, List, Optional

from celery import Celery

from statement_recon.config.settings import (
    CELERY_ACCEPT_CONTENT,
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_RESULT_SERIALIZER,
    CELERY_TASK_SERIALIZER,
    CELERY_TIMEZONE,
    Settings,
)
from statement_recon.excel_generator.converter import ReportConversionError, ReportConverter
from statement_recon.models import BankAccount
from statement_recon.pipeline import StatementBatchPipeline
from statement_recon.registry import load_documents
from statement_recon.utils.exceptions import ConfigurationError
from statement_recon.utils.logger import setup_logger
from statement_recon.utils.validators import ValidationError

celery_app = Celery(
    "statement_recon",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    task_serializer=CELERY_TASK_SERIALIZER,
    result_serializer=CELERY_RESULT_SERIALIZER,
    accept_content=CELERY_ACCEPT_CONTENT,
    timezone=CELERY_TIMEZONE,
)

celery_app.conf.update(
    task_routes={
        "process_statement_batch": {"queue": "statement_batches"},
    },
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=1000,
)

logger = setup_logger("celery_tasks", logs_dir=None)


@celery_app.task(bind=True, name="process_statement_batch")
def process_statement_batch(
    self,
    pdf_paths: List[str],
    accounts: List[Dict[str, Any]],
    month: int,
    year: int,
    passwords: Optional[Dict[str, str]] = None,
    output_filename: Optional[str] = None,
) -> Dict[str, Any]:
    """Run a statement batch and write its review report.

    Args:
        self: Celery task instance.
        pdf_paths: Statement PDF paths.
        accounts: Registry rows accepted by ``BankAccount.from_dict``.
        month: Target month (1-12).
        year: Target year.
        passwords: Optional passwords keyed by file name or path.
        output_filename: Optional report file name.

    Returns:
        Dictionary with the batch summary and report path.
    """
    task_id = self.request.id
    settings = Settings.from_env()

    try:
        settings.create_directories()
        registry = [BankAccount.from_dict(row) for row in accounts]
        documents = load_documents(pdf_paths, passwords, settings.max_file_size_mb)

        pipeline = StatementBatchPipeline(settings)
        result = pipeline.run(documents, registry, month, year, batch_id=task_id)

        output_path = ReportConverter().create_batch_report(
            result.outcomes,
            output_path=settings.reports_dir,
            filename=output_filename,
            metadata={"batch_id": result.batch_id, "month": month, "year": year},
        )

        summary = result.summary()
        summary.update({"success": True, "task_id": task_id, "output_path": output_path})
        return summary

    except (ValidationError, ConfigurationError, ValueError) as e:
        logger.error(f"Batch {task_id} rejected: {str(e)}")
        return {
            "success": False,
            "error": str(e),
            "task_id": task_id,
            "retries": self.request.retries,
        }

    except (ReportConversionError, OSError) as e:
        logger.error(f"Batch {task_id} failed: {str(e)}")

        if self.request.retries < settings.max_retries:
            raise self.retry(countdown=settings.get_retry_delay(self.request.retries + 1), exc=e)

        return {
            "success": False,
            "error": str(e),
            "task_id": task_id,
            "retries": self.request.retries,
        }


def get_task_status(task_id: str) -> Dict[str, Any]:
    """Get status of a Celery task.

    Args:
        task_id: ID of the task to check.

    Returns:
        Dictionary with task status information.
    """
    try:
        result = celery_app.AsyncResult(task_id)

        return {
            "task_id": task_id,
            "status": result.status,
            "result": result.result if result.ready() else None,
            "ready": result.ready(),
            "successful": result.successful(),
            "failed": result.failed(),
        }

    except Exception as e:
        return {
            "task_id": task_id,
            "status": "UNKNOWN",
            "error": str(e),
        }


def revoke_task(task_id: str, terminate: bool = False) -> Dict[str, Any]:
    """Revoke a queued or running batch."""
    try:
        celery_app.control.revoke(task_id, terminate=terminate)
        return {"task_id": task_id, "revoked": True, "terminated": terminate}
    except Exception as e:
        return {"task_id": task_id, "revoked": False, "error": str(e)}
