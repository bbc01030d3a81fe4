"""Matching of extracted statement identifiers against the account registry."""

import re
from typing import List, Optional, Sequence, Tuple

from statement_recon.config.settings import MATCH_THRESHOLD
from statement_recon.extraction.parser import normalize_currency
from statement_recon.models import BankAccount, ExtractionRecord, MatchResult
from statement_recon.pdf_processor.filename_signals import FilenameSignals
from statement_recon.utils.logger import get_logger

EXACT_ACCOUNT_SCORE = 100
NEAR_EXACT_ACCOUNT_SCORE = 90
ACCOUNT_CONTAINMENT_POINTS = 8
EXACT_NAME_POINTS = 4
PARTIAL_NAME_POINTS = 3
CURRENCY_POINTS = 2

LEGAL_SUFFIXES = ["limited", "ltd", "llc", "inc", "incorporated", "corporation", "corp", "plc", "co"]

_ACCOUNT_SEPARATORS = re.compile(r"[\s\-.]")


def clean_account_number(value: Optional[str]) -> str:
    """Drop spaces, hyphens and dots from an account number."""
    return _ACCOUNT_SEPARATORS.sub("", value or "").lower()


def clean_company_name(value: Optional[str]) -> str:
    """Lower-case a company name and drop punctuation and legal suffixes."""
    words = re.sub(r"[^\w\s&]", " ", (value or "").lower()).split()
    while words and words[-1] in LEGAL_SUFFIXES:
        words.pop()
    return " ".join(words)


def clean_bank_name(value: Optional[str]) -> str:
    return " ".join(re.sub(r"[^\w\s&]", " ", (value or "").lower()).split())


def _name_points(extracted: str, known: str) -> int:
    if not extracted or not known:
        return 0
    if extracted == known:
        return EXACT_NAME_POINTS
    if extracted in known or known in extracted:
        return PARTIAL_NAME_POINTS
    return 0


class BankMatcher:
    """Scores registry accounts against an extracted statement."""

    def __init__(self, threshold: int = MATCH_THRESHOLD) -> None:
        """Initialize bank matcher.

        Args:
            threshold: Minimum score accepted for a scored match.
        """
        self.logger = get_logger(__name__)
        self.threshold = threshold

    def match(self, record: ExtractionRecord, accounts: Sequence[BankAccount]) -> MatchResult:
        """Find the registry account an extraction belongs to.

        Exact account numbers win, then numbers where one contains the other
        and the last six digits agree; otherwise every account is scored and
        the best one at or above the threshold is accepted. Ties go to the
        account listed first.

        Args:
            record: Extracted statement data.
            accounts: Registry accounts.

        Returns:
            MatchResult, unmatched when nothing reaches the threshold.
        """
        extracted_number = clean_account_number(record.account_number)

        if extracted_number:
            for account in accounts:
                if clean_account_number(account.account_number) == extracted_number:
                    return MatchResult(account, EXACT_ACCOUNT_SCORE, ("account number exact",), "exact_account")

            for account in accounts:
                known = clean_account_number(account.account_number)
                if known and (known in extracted_number or extracted_number in known) and known[-6:] == extracted_number[-6:]:
                    return MatchResult(
                        account, NEAR_EXACT_ACCOUNT_SCORE, ("account number near exact",), "near_exact_account"
                    )

        best: Optional[Tuple[BankAccount, int, List[str]]] = None
        for account in accounts:
            score, reasons = self.score(record, account)
            if score > 0 and (best is None or score > best[1]):
                best = (account, score, reasons)

        if best is not None and best[1] >= self.threshold:
            account, score, reasons = best
            self.logger.debug(f"Matched account {account.id} with score {score}: {', '.join(reasons)}")
            return MatchResult(account, score, tuple(reasons), "scored")

        if best is not None:
            self.logger.info(f"Best candidate {best[0].id} scored {best[1]}, below threshold {self.threshold}")
            return MatchResult(None, best[1], tuple(best[2]), "none")
        return MatchResult()

    def score(self, record: ExtractionRecord, account: BankAccount) -> Tuple[int, List[str]]:
        """Score one account against an extraction."""
        score = 0
        reasons: List[str] = []

        extracted_number = clean_account_number(record.account_number)
        known_number = clean_account_number(account.account_number)
        if extracted_number and known_number and (
            extracted_number in known_number or known_number in extracted_number
        ):
            score += ACCOUNT_CONTAINMENT_POINTS
            reasons.append("account number partial")

        points = _name_points(clean_bank_name(record.bank_name), clean_bank_name(account.bank_name))
        if points:
            score += points
            reasons.append("bank name exact" if points == EXACT_NAME_POINTS else "bank name partial")

        points = _name_points(clean_company_name(record.company_name), clean_company_name(account.company_name))
        if points:
            score += points
            reasons.append("company name exact" if points == EXACT_NAME_POINTS else "company name partial")

        extracted_currency = normalize_currency(record.currency)
        if extracted_currency and extracted_currency == normalize_currency(account.currency):
            score += CURRENCY_POINTS
            reasons.append("currency")

        return score, reasons

    def match_filename_signals(
        self,
        signals: Optional[FilenameSignals],
        accounts: Sequence[BankAccount],
    ) -> MatchResult:
        """Pre-match an account from filename hints.

        An account number hint contained in (or containing) a registry
        number wins; otherwise a bank name hint shared by exactly one
        registry account.
        """
        if signals is None:
            return MatchResult()

        hinted_number = clean_account_number(signals.account_number)
        if hinted_number:
            for account in accounts:
                known = clean_account_number(account.account_number)
                if known and (hinted_number in known or known in hinted_number):
                    return MatchResult(account, ACCOUNT_CONTAINMENT_POINTS, ("filename account number",), "filename")

        hinted_bank = clean_bank_name(signals.bank_name)
        if hinted_bank:
            hits = [
                account for account in accounts
                if _name_points(hinted_bank, clean_bank_name(account.bank_name))
            ]
            if len(hits) == 1:
                return MatchResult(hits[0], PARTIAL_NAME_POINTS, ("filename bank name",), "filename")

        return MatchResult()
