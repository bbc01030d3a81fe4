"""Records passed between the pipeline stages."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class BankAccount:
    """A known account in the registry."""

    id: str
    bank_name: str
    account_number: str
    currency: Optional[str] = None
    company_id: Optional[str] = None
    company_name: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "BankAccount":
        """Build an account from a registry row.

        Accepts the field names of this class or the legacy column names
        ``acc_password`` and ``bank_currency``.
        """
        def text(*keys: str) -> Optional[str]:
            for key in keys:
                value = row.get(key)
                if value is None:
                    continue
                value = str(value).strip()
                if value and value.lower() != "nan":
                    return value
            return None

        account_id = text("id", "bank_id")
        if account_id is None:
            raise ValueError("Account row has no id")

        return cls(
            id=account_id,
            bank_name=text("bank_name") or "",
            account_number=text("account_number") or "",
            currency=text("currency", "bank_currency"),
            company_id=text("company_id"),
            company_name=text("company_name"),
            password=text("password", "acc_password"),
        )


@dataclass(frozen=True)
class SourceDocument:
    """One uploaded statement file."""

    payload: bytes
    filename: str
    password: Optional[str] = None
    index: Optional[int] = None


@dataclass
class CredentialState:
    """Usage bookkeeping for one extraction API credential."""

    credential: str
    last_used_at: float = 0.0
    failure_count: int = 0
    cooldown_until: float = 0.0


@dataclass(frozen=True)
class MonthlyBalance:
    """Opening and closing balance for one calendar month."""

    month: int
    year: int
    opening_balance: Optional[Decimal] = None
    closing_balance: Optional[Decimal] = None
    statement_page: int = 1

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {self.month}")


@dataclass(frozen=True)
class ExtractionRecord:
    """Structured data extracted from one statement."""

    bank_name: Optional[str] = None
    company_name: Optional[str] = None
    account_number: Optional[str] = None
    currency: Optional[str] = None
    statement_period: Optional[str] = None
    monthly_balances: Tuple[MonthlyBalance, ...] = ()


class FailureReason(Enum):
    PASSWORD_REQUIRED = "password_required"
    CORRUPT_DOCUMENT = "corrupt_document"
    EXTRACTION_API_FAILURE = "extraction_api_failure"
    MALFORMED_EXTRACTION_RESULT = "malformed_extraction_result"
    NO_EXTRACTION_RESULT = "no_extraction_result"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching an extraction against the account registry."""

    account: Optional[BankAccount] = None
    score: int = 0
    reasons: Tuple[str, ...] = ()
    method: str = "none"

    @property
    def matched(self) -> bool:
        return self.account is not None


@dataclass(frozen=True)
class StatementPeriod:
    """An inclusive range of calendar months."""

    start_month: int
    start_year: int
    end_month: int
    end_year: int

    def __post_init__(self) -> None:
        for month in (self.start_month, self.end_month):
            if not 1 <= month <= 12:
                raise ValueError(f"Month must be between 1 and 12, got {month}")
        if (self.end_year, self.end_month) < (self.start_year, self.start_month):
            raise ValueError("Statement period ends before it starts")

    def months(self) -> List[Tuple[int, int]]:
        """List every (month, year) pair in the period, inclusive."""
        result = []
        year, month = self.start_year, self.start_month
        while (year, month) <= (self.end_year, self.end_month):
            result.append((month, year))
            month += 1
            if month > 12:
                month = 1
                year += 1
        return result


@dataclass(frozen=True)
class MonthlyStatementTarget:
    """One month record serviced by a source document."""

    month: int
    year: int
    document_index: int
    balance: Optional[MonthlyBalance] = None


@dataclass
class ExtractionOutcome:
    """Per-document result of a batch run."""

    index: int
    filename: str
    record: Optional[ExtractionRecord] = None
    failure: Optional[FailureReason] = None
    error: Optional[str] = None
    match: Optional[MatchResult] = None
    months: List[Tuple[int, int]] = field(default_factory=list)
    targets: List[MonthlyStatementTarget] = field(default_factory=list)
    period_defaulted: bool = False
    password_source: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.record is not None and self.failure is None

    @property
    def needs_review(self) -> bool:
        """True when the outcome failed or has no matched account."""
        return not self.success or self.match is None or not self.match.matched

    @classmethod
    def failed(
        cls,
        index: int,
        filename: str,
        reason: FailureReason,
        error: str,
    ) -> "ExtractionOutcome":
        return cls(index=index, filename=filename, failure=reason, error=error)

    def to_dict(self) -> Dict[str, Any]:
        """Render the outcome as JSON-serializable data."""
        record = self.record
        return {
            "index": self.index,
            "filename": self.filename,
            "success": self.success,
            "failure": self.failure.value if self.failure else None,
            "error": self.error,
            "bank_name": record.bank_name if record else None,
            "account_number": record.account_number if record else None,
            "company_name": record.company_name if record else None,
            "currency": record.currency if record else None,
            "statement_period": record.statement_period if record else None,
            "matched_account_id": self.match.account.id if self.match and self.match.matched else None,
            "match_score": self.match.score if self.match else None,
            "match_method": self.match.method if self.match else None,
            "months": [list(pair) for pair in self.months],
            "period_defaulted": self.period_defaulted,
            "password_source": self.password_source,
            "needs_review": self.needs_review,
        }
