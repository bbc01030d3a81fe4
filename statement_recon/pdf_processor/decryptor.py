"""Password recovery for encrypted bank statements."""

from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from typing import List, Optional, Tuple

from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from statement_recon.models import BankAccount, SourceDocument
from statement_recon.pdf_processor.filename_signals import FilenameSignals
from statement_recon.utils.exceptions import CorruptDocumentError, PasswordRequiredError
from statement_recon.utils.logger import get_logger
from statement_recon.utils.validators import ValidationError, validate_password

BANK_PASSWORD_SUFFIXES = ["123", "2023", "2024"]


class UnlockState(Enum):
    UNKNOWN = "unknown"
    CHECKING_PROTECTION = "checking_protection"
    NOT_PROTECTED = "not_protected"
    NEEDS_PASSWORD = "needs_password"
    UNLOCKED = "unlocked"
    EXHAUSTED_CANDIDATES = "exhausted_candidates"


@dataclass
class UnlockResult:
    """Result of a password resolution."""

    state: UnlockState = UnlockState.UNKNOWN
    password: Optional[str] = None
    source: Optional[str] = None
    attempts: int = 0
    tried_sources: List[str] = field(default_factory=list)

    @property
    def readable(self) -> bool:
        return self.state in (UnlockState.NOT_PROTECTED, UnlockState.UNLOCKED)


class PasswordResolver:
    """Finds the password that opens an encrypted statement."""

    def __init__(self) -> None:
        """Initialize password resolver."""
        self.logger = get_logger(__name__)

    def is_encrypted(self, payload: bytes) -> bool:
        """Check whether a PDF payload needs a password to open.

        Documents carrying only an owner password open with an empty user
        password and are not treated as protected.

        Args:
            payload: Raw PDF bytes.

        Returns:
            True if the PDF cannot be opened without a password.

        Raises:
            CorruptDocumentError: If the payload cannot be parsed as a PDF.
        """
        try:
            encrypted = PdfReader(BytesIO(payload)).is_encrypted
        except (PdfReadError, ValueError, OSError) as e:
            raise CorruptDocumentError(f"Failed to read PDF: {str(e)}")
        return encrypted and not self.try_password(payload, "")

    def try_password(self, payload: bytes, password: str) -> bool:
        """Check whether ``password`` opens the document.

        A fresh reader is decrypted and its first page loaded, so the check
        leaves no shared state behind.
        """
        try:
            reader = PdfReader(BytesIO(payload))
            if not reader.decrypt(password):
                return False
            if len(reader.pages) > 0:
                _ = reader.pages[0]
            return True
        except (PdfReadError, ValueError, KeyError, NotImplementedError) as e:
            self.logger.debug(f"Password attempt raised {type(e).__name__}")
            return False

    def candidate_passwords(
        self,
        document: SourceDocument,
        signals: Optional[FilenameSignals] = None,
        matched_account: Optional[BankAccount] = None,
    ) -> List[Tuple[str, str]]:
        """Build the ordered, deduplicated list of (source, password) candidates."""
        candidates: List[Tuple[str, str]] = []

        def add(source: str, value: Optional[str]) -> None:
            if value is None:
                return
            value = str(value).strip()
            try:
                validate_password(value)
            except ValidationError:
                return
            if all(existing != value for _, existing in candidates):
                candidates.append((source, value))

        add("provided", document.password)
        if signals is not None:
            add("filename", signals.password)
        if matched_account is not None:
            add("account_password", matched_account.password)

        account_numbers = []
        if signals is not None and signals.account_number:
            account_numbers.append(signals.account_number)
        if matched_account is not None and matched_account.account_number:
            account_numbers.append(matched_account.account_number)
        for number in account_numbers:
            digits = "".join(ch for ch in number if ch.isdigit())
            if len(digits) > 6:
                add("account_number", digits[-6:])
            add("account_number", digits)

        bank_names = []
        if signals is not None and signals.bank_name:
            bank_names.append(signals.bank_name)
        if matched_account is not None and matched_account.bank_name:
            bank_names.append(matched_account.bank_name)
        for bank_name in bank_names:
            for stem in _bank_stems(bank_name):
                for suffix in BANK_PASSWORD_SUFFIXES:
                    add("bank_name", f"{stem}{suffix}")

        return candidates

    def resolve(
        self,
        document: SourceDocument,
        signals: Optional[FilenameSignals] = None,
        matched_account: Optional[BankAccount] = None,
    ) -> UnlockResult:
        """Work out whether a document is protected and, if so, its password.

        Args:
            document: Statement to unlock.
            signals: Hints detected in the filename.
            matched_account: Registry account pre-matched from the filename.

        Returns:
            UnlockResult whose state is NOT_PROTECTED, UNLOCKED or
            EXHAUSTED_CANDIDATES.

        Raises:
            CorruptDocumentError: If the document is not a readable PDF.
        """
        result = UnlockResult(state=UnlockState.CHECKING_PROTECTION)
        if not self.is_encrypted(document.payload):
            result.state = UnlockState.NOT_PROTECTED
            return result

        result.state = UnlockState.NEEDS_PASSWORD
        for source, password in self.candidate_passwords(document, signals, matched_account):
            result.attempts += 1
            result.tried_sources.append(source)
            if self.try_password(document.payload, password):
                self.logger.info(
                    f"Unlocked {document.filename} with {source} password "
                    f"after {result.attempts} attempt(s)"
                )
                result.state = UnlockState.UNLOCKED
                result.password = password
                result.source = source
                return result

        self.logger.warning(
            f"No password candidate opened {document.filename} ({result.attempts} tried)"
        )
        result.state = UnlockState.EXHAUSTED_CANDIDATES
        return result

    def unlock(
        self,
        document: SourceDocument,
        signals: Optional[FilenameSignals] = None,
        matched_account: Optional[BankAccount] = None,
    ) -> UnlockResult:
        """Like ``resolve`` but raise when no candidate opens the document.

        Raises:
            PasswordRequiredError: If the document stays locked.
            CorruptDocumentError: If the document is not a readable PDF.
        """
        result = self.resolve(document, signals, matched_account)
        if not result.readable:
            raise PasswordRequiredError(
                f"Password required for {document.filename}: "
                f"{result.attempts} candidate(s) failed"
            )
        return result


def _bank_stems(bank_name: str) -> List[str]:
    words = [w for w in "".join(ch if ch.isalnum() else " " for ch in bank_name.lower()).split() if w]
    if not words:
        return []
    stems = [words[0], "".join(words)]
    return list(dict.fromkeys(stems))
