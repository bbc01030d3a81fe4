"""Pytest configuration and fixtures for the statement pipeline."""

import shutil
import tempfile
from decimal import Decimal
from io import BytesIO
from pathlib import Path
from typing import List

import pytest
from PyPDF2 import PdfWriter

from statement_recon.config.settings import Settings
from statement_recon.models import BankAccount, ExtractionRecord, MonthlyBalance


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_pdf(pages: int = 1, password: str = None, owner_password: str = None) -> bytes:
    """Build a blank PDF, optionally encrypted with ``password``.

    Passing only ``owner_password`` encrypts with an empty user password.
    """
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=200, height=200)
    if password is not None or owner_password is not None:
        writer.encrypt(user_password=password or "", owner_password=owner_password)
    buffer = BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def sample_settings(temp_dir):
    """Settings with two credentials, no pauses and console-only logging."""
    return Settings(
        extraction_api_keys=["key-alpha-1111", "key-beta-2222"],
        max_retries=3,
        retry_backoff_seconds=0,
        concurrent_workers=2,
        extraction_workers=2,
        reports_dir=str(temp_dir / "reports"),
        logs_dir=str(temp_dir / "logs"),
        log_level="INFO",
        log_to_file=False,
    )


@pytest.fixture
def sample_accounts() -> List[BankAccount]:
    """A small registry of accounts."""
    return [
        BankAccount(
            id="acc-1",
            bank_name="Equity Bank",
            account_number="0170-2938-44512",
            currency="KES",
            company_id="co-1",
            company_name="Acme Traders Limited",
            password="7788",
        ),
        BankAccount(
            id="acc-2",
            bank_name="KCB Bank",
            account_number="1122334455",
            currency="USD",
            company_id="co-2",
            company_name="Blue Horizon Ltd",
            password=None,
        ),
        BankAccount(
            id="acc-3",
            bank_name="Standard Chartered",
            account_number="8800990011",
            currency="GBP",
            company_id="co-3",
            company_name="Northwind Logistics",
            password="nw2024",
        ),
    ]


@pytest.fixture
def pdf_factory():
    return make_pdf


@pytest.fixture
def plain_pdf() -> bytes:
    return make_pdf(pages=3)


@pytest.fixture
def encrypted_pdf() -> bytes:
    return make_pdf(pages=2, password="7788")


@pytest.fixture
def sample_record() -> ExtractionRecord:
    return ExtractionRecord(
        bank_name="Equity Bank",
        company_name="ACME TRADERS LTD",
        account_number="0170293844512",
        currency="KES",
        statement_period="01/01/2024 - 31/03/2024",
        monthly_balances=(
            MonthlyBalance(1, 2024, Decimal("1000.00"), Decimal("1500.00"), 1),
            MonthlyBalance(2, 2024, Decimal("1500.00"), Decimal("1200.50"), 2),
            MonthlyBalance(3, 2024, Decimal("1200.50"), Decimal("900.00"), 3),
        ),
    )
