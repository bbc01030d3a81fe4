#!/usr/bin/env python3
"""Bank statement batch extraction and reconciliation.

Extracts balances from a batch of bank statement PDFs, matches each one to a
known bank account and writes an Excel review report.

Usage:
    python main.py --pdf-file <statement.pdf> --accounts-file <accounts.json> [--password <pwd>]

    python main.py --batch-dir <dir_with_pdfs> --accounts-file <accounts.csv> [--password-file <file>]

    python main.py --daemon  # Run as background worker
"""

import argparse
import os
import sys
from datetime import date
from typing import Dict, List, Optional

from statement_recon.config.settings import REPORTS_DIR, Settings
from statement_recon.excel_generator.converter import ReportConverter
from statement_recon.pipeline import BatchResult, StatementBatchPipeline
from statement_recon.registry import find_statement_files, load_accounts, load_documents
from statement_recon.utils.exceptions import StatementProcessingError
from statement_recon.utils.logger import get_logger
from statement_recon.utils.validators import ValidationError


class StatementBatchProcessor:
    """Command line driver around the batch pipeline."""

    def __init__(self, settings: Optional[Settings] = None, pipeline: Optional[StatementBatchPipeline] = None) -> None:
        """Initialize the processor."""
        self.logger = get_logger(__name__)
        self.settings = settings or Settings.from_env()
        self._pipeline = pipeline
        self.converter = ReportConverter()

    @property
    def pipeline(self) -> StatementBatchPipeline:
        if self._pipeline is None:
            self._pipeline = StatementBatchPipeline(self.settings)
        return self._pipeline

    def process_files(
        self,
        pdf_paths: List[str],
        accounts_file: str,
        month: int,
        year: int,
        passwords: Optional[Dict[str, str]] = None,
        output_dir: Optional[str] = None,
    ) -> Optional[str]:
        """Process statements and write the review report.

        Args:
            pdf_paths: Statement PDF paths.
            accounts_file: Account registry (.json or .csv).
            month: Target month (1-12).
            year: Target year.
            passwords: Optional passwords keyed by file name.
            output_dir: Optional output directory for the report.

        Returns:
            Path to the report, or None if the batch could not run.
        """
        try:
            accounts = load_accounts(accounts_file)
            documents = load_documents(pdf_paths, passwords, self.settings.max_file_size_mb)
            result = self.pipeline.run(documents, accounts, month, year)
            self._log_result(result)

            return self.converter.create_batch_report(
                result.outcomes,
                output_path=output_dir or self.settings.reports_dir,
                metadata={"batch_id": result.batch_id, "month": month, "year": year},
            )

        except (ValidationError, StatementProcessingError) as e:
            self.logger.error(f"Batch failed: {str(e)}")
            return None

    def process_batch_dir(
        self,
        batch_dir: str,
        accounts_file: str,
        month: int,
        year: int,
        password_file: Optional[str] = None,
        output_dir: Optional[str] = None,
    ) -> Optional[str]:
        """Process every PDF in a directory as one batch."""
        self.logger.info(f"Processing batch directory: {batch_dir}")
        pdf_files = find_statement_files(batch_dir)
        if not pdf_files:
            self.logger.warning(f"No PDF files found in {batch_dir}")
            return None

        self.logger.info(f"Found {len(pdf_files)} PDF files")
        passwords = load_password_file(password_file) if password_file else {}
        return self.process_files(pdf_files, accounts_file, month, year, passwords, output_dir)

    def start_daemon(self) -> None:
        """Start a Celery worker for queued batches."""
        self.logger.info("Starting statement batch worker")

        from statement_recon.tasks.celery_app import celery_app

        celery_app.start(["worker", "--loglevel=info", "-Q", "statement_batches"])

    def _log_result(self, result: BatchResult) -> None:
        for outcome in result.needs_review:
            reason = outcome.failure.value if outcome.failure else "no matching account"
            self.logger.warning(f"Review needed for {outcome.filename}: {reason}")
        if result.credentials_degraded:
            self.logger.warning("Extraction credentials were exhausted and reset during this batch")


def load_password_file(password_file: str) -> Dict[str, str]:
    """Read ``filename=password`` lines."""
    passwords = {}
    if not os.path.exists(password_file):
        return passwords
    with open(password_file, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and "=" in line and not line.startswith("#"):
                filename, pwd = line.split("=", 1)
                passwords[filename.strip()] = pwd.strip()
    return passwords


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments namespace.
    """
    today = date.today()
    parser = argparse.ArgumentParser(
        description="Extract bank statement balances and reconcile them against known accounts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Single statement with a known password
    python main.py --pdf-file statement.pdf --accounts-file accounts.json --password 1234

    # Every PDF in a directory, for March 2024
    python main.py --batch-dir ./statements --accounts-file accounts.csv --month 3 --year 2024

    # Run as background worker
    python main.py --daemon
        """
    )

    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        '--pdf-file',
        type=str,
        help='Path to single PDF file to process'
    )
    group.add_argument(
        '--batch-dir',
        type=str,
        help='Directory containing the PDF files of one batch'
    )
    group.add_argument(
        '--daemon',
        action='store_true',
        help='Run as background worker'
    )

    parser.add_argument(
        '--accounts-file',
        type=str,
        help='Account registry (.json list or .csv)'
    )
    parser.add_argument(
        '--month',
        type=int,
        default=today.month,
        help='Month the statements are uploaded for (default: current month)'
    )
    parser.add_argument(
        '--year',
        type=int,
        default=today.year,
        help='Year the statements are uploaded for (default: current year)'
    )
    parser.add_argument(
        '--password',
        type=str,
        help='Password for encrypted PDF (only used with --pdf-file)'
    )
    parser.add_argument(
        '--password-file',
        type=str,
        help='File containing passwords for batch processing (format: filename=password)'
    )
    parser.add_argument(
        '--output-dir',
        type=str,
        default=None,
        help=f'Output directory for reports (default: {REPORTS_DIR})'
    )

    args = parser.parse_args(argv)
    if not args.daemon and not args.accounts_file:
        parser.error("--accounts-file is required with --pdf-file or --batch-dir")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    try:
        args = parse_arguments(argv)
        processor = StatementBatchProcessor()

        if args.daemon:
            processor.start_daemon()
            return 0

        if args.pdf_file:
            passwords = {os.path.basename(args.pdf_file): args.password} if args.password else {}
            output_path = processor.process_files(
                [args.pdf_file], args.accounts_file, args.month, args.year, passwords, args.output_dir
            )
        else:
            output_path = processor.process_batch_dir(
                args.batch_dir, args.accounts_file, args.month, args.year, args.password_file, args.output_dir
            )

        if output_path:
            print(f"Success! Report created: {output_path}")
            return 0
        print("Error: Processing failed. Check logs for details.")
        return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130
    except Exception as e:
        print(f"Unexpected error: {str(e)}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
