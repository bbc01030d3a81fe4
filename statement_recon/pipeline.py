"""Batch orchestration: unlock, extract, chunk, call the API, match and expand."""

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from statement_recon.config.settings import Settings
from statement_recon.extraction.client import ExtractionClient
from statement_recon.extraction.credentials import CredentialPool
from statement_recon.extraction.parser import ResultParser
from statement_recon.models import (
    BankAccount,
    ExtractionOutcome,
    FailureReason,
    MatchResult,
    MonthlyStatementTarget,
    SourceDocument,
)
from statement_recon.pdf_processor.chunker import BatchChunker, PreparedDocument, TextChunk
from statement_recon.pdf_processor.decryptor import PasswordResolver
from statement_recon.pdf_processor.extractor import DocumentTextExtractor
from statement_recon.pdf_processor.filename_signals import FilenameSignalDetector
from statement_recon.reconciliation.matcher import BankMatcher
from statement_recon.reconciliation.periods import StatementPeriodExpander
from statement_recon.utils.exceptions import (
    CorruptDocumentError,
    ExtractionAPIError,
    PasswordRequiredError,
)
from statement_recon.utils.logger import BatchLogger, get_logger
from statement_recon.utils.validators import validate_target_period


@dataclass
class _Preparation:
    document: SourceDocument
    prepared: Optional[PreparedDocument] = None
    failure: Optional[ExtractionOutcome] = None
    filename_match: MatchResult = field(default_factory=MatchResult)
    password_source: Optional[str] = None


@dataclass
class BatchResult:
    """Outcome of one batch run."""

    batch_id: str
    outcomes: List[ExtractionOutcome]
    chunk_count: int = 0
    credentials_degraded: bool = False

    @property
    def succeeded(self) -> List[ExtractionOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> List[ExtractionOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def needs_review(self) -> List[ExtractionOutcome]:
        return [o for o in self.outcomes if o.needs_review]

    def summary(self) -> Dict[str, Any]:
        """Return JSON-serializable batch totals and per-document outcomes."""
        return {
            "batch_id": self.batch_id,
            "total_documents": len(self.outcomes),
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "needs_review": len(self.needs_review),
            "chunks": self.chunk_count,
            "credentials_degraded": self.credentials_degraded,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


class UploadCoordinator(Protocol):
    """Receives matched statements for persistence."""

    def upsert_statement(
        self,
        outcome: ExtractionOutcome,
        account: BankAccount,
        targets: Sequence[MonthlyStatementTarget],
    ) -> None:
        ...


class InMemoryUploadCoordinator:
    """Upload coordinator keeping one statement per account, month and year."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.statements: Dict[Tuple[str, int, int], Dict[str, Any]] = {}

    def upsert_statement(
        self,
        outcome: ExtractionOutcome,
        account: BankAccount,
        targets: Sequence[MonthlyStatementTarget],
    ) -> None:
        with self._lock:
            for target in targets:
                balance = target.balance
                self.statements[(account.id, target.month, target.year)] = {
                    "account_id": account.id,
                    "month": target.month,
                    "year": target.year,
                    "document_index": target.document_index,
                    "filename": outcome.filename,
                    "opening_balance": balance.opening_balance if balance else None,
                    "closing_balance": balance.closing_balance if balance else None,
                    "statement_page": balance.statement_page if balance else None,
                }


def deliver(outcomes: Sequence[ExtractionOutcome], coordinator: UploadCoordinator) -> int:
    """Hand every successful, matched outcome to the upload coordinator.

    Returns:
        Number of outcomes delivered.
    """
    delivered = 0
    for outcome in outcomes:
        if outcome.success and outcome.match is not None and outcome.match.matched:
            coordinator.upsert_statement(outcome, outcome.match.account, outcome.targets)
            delivered += 1
    return delivered


class StatementBatchPipeline:
    """Runs a batch of statements through extraction and reconciliation."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        pool: Optional[CredentialPool] = None,
        extraction_client: Optional[ExtractionClient] = None,
        detector: Optional[FilenameSignalDetector] = None,
        resolver: Optional[PasswordResolver] = None,
        text_extractor: Optional[DocumentTextExtractor] = None,
        chunker: Optional[BatchChunker] = None,
        parser: Optional[ResultParser] = None,
        matcher: Optional[BankMatcher] = None,
        period_expander: Optional[StatementPeriodExpander] = None,
    ) -> None:
        """Initialize the pipeline.

        Collaborators default to instances built from ``settings``. The
        credential pool is only created when no extraction client is given.

        Raises:
            ConfigurationError: If a default pool is needed and no credentials are configured.
        """
        self.logger = get_logger(__name__)
        self.settings = settings or Settings.from_env()

        if extraction_client is None:
            pool = pool or CredentialPool(
                self.settings.extraction_api_keys,
                max_failures=self.settings.credential_max_failures,
                cooldown_seconds=self.settings.credential_cooldown_seconds,
                usage_window_seconds=self.settings.credential_usage_window_seconds,
            )
            extraction_client = ExtractionClient(pool, self.settings)

        self.extraction_client = extraction_client
        self.pool = extraction_client.pool
        self.detector = detector or FilenameSignalDetector()
        self.resolver = resolver or PasswordResolver()
        self.text_extractor = text_extractor or DocumentTextExtractor(self.settings.max_chars_per_page)
        self.chunker = chunker or BatchChunker(self.settings.max_chunk_chars)
        self.parser = parser or ResultParser()
        self.matcher = matcher or BankMatcher(self.settings.match_threshold)
        self.period_expander = period_expander or StatementPeriodExpander()

    def run(
        self,
        documents: Sequence[SourceDocument],
        accounts: Sequence[BankAccount],
        target_month: int,
        target_year: int,
        cancel_event: Optional[threading.Event] = None,
        batch_id: Optional[str] = None,
    ) -> BatchResult:
        """Process a batch of statements.

        Args:
            documents: Uploaded statements. Their position becomes their index.
            accounts: Known bank accounts.
            target_month: Month the batch is uploaded for (1-12).
            target_year: Year the batch is uploaded for.
            cancel_event: When set, chunks not yet started are skipped.
            batch_id: Identifier used in logs; generated if omitted.

        Returns:
            BatchResult with exactly one outcome per input document, in input order.

        Raises:
            ValidationError: If the target period is invalid.
        """
        validate_target_period(target_month, target_year)
        batch_id = batch_id or uuid.uuid4().hex[:12]
        batch_logger = BatchLogger(
            batch_id,
            level=self.settings.get_log_level(),
            logs_dir=self.settings.logs_dir if self.settings.log_to_file else None,
        )
        cancel_event = cancel_event or threading.Event()

        try:
            indexed = [replace(document, index=i) for i, document in enumerate(documents)]
            batch_logger.log_start(len(indexed))

            with ThreadPoolExecutor(max_workers=self.settings.concurrent_workers) as executor:
                preparations = list(executor.map(
                    lambda doc: self._prepare(doc, accounts, target_month, target_year, batch_logger),
                    indexed,
                ))

            outcomes: Dict[int, ExtractionOutcome] = {}
            prepared: List[PreparedDocument] = []
            for preparation in preparations:
                if preparation.failure is not None:
                    outcomes[preparation.document.index] = preparation.failure
                else:
                    prepared.append(preparation.prepared)
            batch_logger.log_progress(f"{len(prepared)}/{len(indexed)} documents readable")

            chunks = self.chunker.build_chunks(prepared) if prepared else []
            filenames = {doc.index: doc.filename for doc in indexed}

            with ThreadPoolExecutor(max_workers=self.settings.extraction_workers) as executor:
                futures = [
                    (chunk, executor.submit(self._extract_chunk, chunk, filenames, cancel_event))
                    for chunk in chunks
                ]
                for chunk, future in futures:
                    try:
                        chunk_outcomes = future.result()
                    except Exception as e:
                        batch_logger.log_error(e, f"chunk {list(chunk.indices)}")
                        chunk_outcomes = [
                            ExtractionOutcome.failed(i, filenames[i], FailureReason.EXTRACTION_API_FAILURE, str(e))
                            for i in chunk.indices
                        ]
                    for outcome in chunk_outcomes:
                        outcomes.setdefault(outcome.index, outcome)

            by_index = {p.document.index: p for p in preparations}
            for index, outcome in outcomes.items():
                if outcome.success:
                    self._enrich(outcome, by_index[index], accounts, target_month, target_year)

            for document in indexed:
                if document.index not in outcomes:
                    outcomes[document.index] = ExtractionOutcome.failed(
                        document.index, document.filename,
                        FailureReason.NO_EXTRACTION_RESULT, "No extraction result found",
                    )

            result = BatchResult(
                batch_id=batch_id,
                outcomes=[outcomes[doc.index] for doc in indexed],
                chunk_count=len(chunks),
                credentials_degraded=self.pool.degraded,
            )
            batch_logger.log_completion(len(result.succeeded), len(result.outcomes))
            return result
        finally:
            batch_logger.close()

    def _prepare(
        self,
        document: SourceDocument,
        accounts: Sequence[BankAccount],
        target_month: int,
        target_year: int,
        batch_logger: BatchLogger,
    ) -> _Preparation:
        preparation = _Preparation(document=document)
        try:
            signals = self.detector.detect(document.filename)
            preparation.filename_match = self.matcher.match_filename_signals(signals, accounts)
            unlock = self.resolver.unlock(document, signals, preparation.filename_match.account)
            preparation.password_source = unlock.source
            text = self.text_extractor.extract(document.payload, unlock.password)
            preparation.prepared = PreparedDocument(
                index=document.index,
                filename=document.filename,
                text=text,
                expected_month=target_month,
                expected_year=target_year,
            )
        except PasswordRequiredError as e:
            preparation.failure = ExtractionOutcome.failed(
                document.index, document.filename, FailureReason.PASSWORD_REQUIRED, str(e)
            )
        except CorruptDocumentError as e:
            preparation.failure = ExtractionOutcome.failed(
                document.index, document.filename, FailureReason.CORRUPT_DOCUMENT, str(e)
            )
        except Exception as e:
            batch_logger.log_error(e, f"preparing {document.filename}")
            preparation.failure = ExtractionOutcome.failed(
                document.index, document.filename, FailureReason.CORRUPT_DOCUMENT, str(e)
            )
        if preparation.failure is not None:
            self.logger.warning(
                f"Document {document.index} ({document.filename}) not readable: "
                f"{preparation.failure.failure.value}"
            )
        return preparation

    def _extract_chunk(
        self,
        chunk: TextChunk,
        filenames: Dict[int, str],
        cancel_event: threading.Event,
    ) -> List[ExtractionOutcome]:
        if cancel_event.is_set():
            return [
                ExtractionOutcome.failed(i, filenames[i], FailureReason.CANCELLED, "Batch cancelled")
                for i in chunk.indices
            ]
        try:
            raw = self.extraction_client.extract(chunk.text)
        except ExtractionAPIError as e:
            return [
                ExtractionOutcome.failed(i, filenames[i], FailureReason.EXTRACTION_API_FAILURE, str(e))
                for i in chunk.indices
            ]
        return self.parser.parse(raw, {i: filenames[i] for i in chunk.indices})

    def _enrich(
        self,
        outcome: ExtractionOutcome,
        preparation: _Preparation,
        accounts: Sequence[BankAccount],
        target_month: int,
        target_year: int,
    ) -> None:
        record = outcome.record
        match = self.matcher.match(record, accounts)
        if not match.matched and preparation.filename_match.matched:
            match = preparation.filename_match
        if not match.matched:
            self.logger.info(f"No registry account matched {outcome.filename}; flagged for review")
        outcome.match = match
        outcome.password_source = preparation.password_source

        months, defaulted = self.period_expander.expand_or_default(
            record.statement_period, target_month, target_year
        )
        outcome.months = months
        outcome.period_defaulted = defaulted

        balances = {(b.month, b.year): b for b in record.monthly_balances}
        outcome.targets = [
            MonthlyStatementTarget(month=m, year=y, document_index=outcome.index, balance=balances.get((m, y)))
            for m, y in months
        ]
