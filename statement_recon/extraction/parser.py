"""Tolerant parsing of extraction API responses into typed records."""

import json
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from statement_recon.models import (
    ExtractionOutcome,
    ExtractionRecord,
    FailureReason,
    MonthlyBalance,
)
from statement_recon.reconciliation.periods import month_number
from statement_recon.utils.exceptions import MalformedExtractionResultError
from statement_recon.utils.logger import get_logger

CURRENCY_ALIASES = {
    "EURO": "EUR",
    "EUROS": "EUR",
    "€": "EUR",
    "US DOLLAR": "USD",
    "US DOLLARS": "USD",
    "USDOLLAR": "USD",
    "DOLLAR": "USD",
    "DOLLARS": "USD",
    "$": "USD",
    "US$": "USD",
    "POUND": "GBP",
    "POUNDS": "GBP",
    "STERLING": "GBP",
    "POUND STERLING": "GBP",
    "£": "GBP",
    "KENYA SHILLING": "KES",
    "KENYA SHILLINGS": "KES",
    "KENYAN SHILLING": "KES",
    "KENYAN SHILLINGS": "KES",
    "KSH": "KES",
    "K.SH": "KES",
    "KSHS": "KES",
    "K.SHS": "KES",
    "SH": "KES",
    "SHS": "KES",
}

_ANCHOR = re.compile(r'\{\s*"document_index"')
_INDEX = re.compile(r'"document_index"\s*:\s*"?(\d+)')
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_NULL_TEXT = {"", "null", "none", "n/a", "na", "unknown", "-"}
_CLOSERS = {"{": "}", "[": "]"}
_AMOUNT_TOKEN = re.compile(r"\d[\d,.]*")


def parse_amount(value: Any) -> Optional[Decimal]:
    """Parse a currency formatted amount into a Decimal.

    Args:
        value: Amount as text (``"KES 1,234.56"``, ``"(50.00)"``) or a number.

    Returns:
        Parsed Decimal, or None if the value cannot be read as an amount.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return None
        return amount if amount.is_finite() else None

    text = str(value).strip()
    match = _AMOUNT_TOKEN.search(text)
    if match is None:
        return None

    prefix = text[:match.start()]
    suffix = text[match.end():].strip().upper()
    negative = (
        (text.startswith("(") and text.endswith(")"))
        or "-" in prefix
        or suffix.startswith("-")
        or suffix.startswith("DR")
    )

    clean_amount = _normalize_separators(match.group(0).rstrip(".,"))
    if clean_amount is None:
        return None

    try:
        amount = Decimal(clean_amount)
    except InvalidOperation:
        return None

    return -abs(amount) if negative else amount


def _normalize_separators(token: str) -> Optional[str]:
    """Turn a digit run with thousands and decimal separators into plain decimal text."""
    if "," in token and "." in token:
        # Whichever separator comes last is the decimal point
        if token.rfind(",") > token.rfind("."):
            return token.replace(".", "").replace(",", ".")
        return token.replace(",", "")

    if "," in token:
        groups = token.split(",")
        if len(groups) == 2 and len(groups[1]) <= 2:
            return ".".join(groups)
        return token.replace(",", "")

    if token.count(".") > 1:
        groups = token.split(".")
        if all(len(group) == 3 for group in groups[1:]):
            return token.replace(".", "")
        return None

    return token


def normalize_currency(value: Optional[str]) -> Optional[str]:
    """Map a currency name or symbol to its ISO code where known."""
    if value is None:
        return None
    key = re.sub(r"\s+", " ", str(value).strip().upper())
    if key.lower() in _NULL_TEXT:
        return None
    return CURRENCY_ALIASES.get(key, key)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return None if text.lower() in _NULL_TEXT else text


def _int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        try:
            return int(float(str(value).strip()))
        except ValueError:
            return None


def extract_candidates(raw: str) -> List[str]:
    """Cut every ``{"document_index": ...}`` object out of a raw response.

    Objects cut short by the next anchor or the end of the text are closed
    with the brackets still open at the cut.
    """
    anchors = [m.start() for m in _ANCHOR.finditer(raw or "")]
    candidates = []

    for position, start in enumerate(anchors):
        limit = anchors[position + 1] if position + 1 < len(anchors) else len(raw)
        stack: List[str] = []
        in_string = False
        escaped = False
        end = None

        for i in range(start, limit):
            ch = raw[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch in _CLOSERS:
                stack.append(ch)
            elif ch in "}]":
                if stack:
                    stack.pop()
                if not stack:
                    end = i + 1
                    break

        if end is not None:
            candidates.append(raw[start:end])
            continue

        fragment = raw[start:limit].rstrip()
        if in_string:
            fragment += '"'
        fragment = fragment.rstrip().rstrip(",")
        fragment += "".join(_CLOSERS[opener] for opener in reversed(stack))
        candidates.append(fragment)

    return candidates


class ResultParser:
    """Turns raw extraction responses into per-document outcomes."""

    def __init__(self) -> None:
        """Initialize result parser."""
        self.logger = get_logger(__name__)

    def parse_candidate(self, candidate: str) -> Tuple[int, ExtractionRecord]:
        """Parse one candidate object.

        Args:
            candidate: JSON text of a single document object.

        Returns:
            Tuple of document index and record.

        Raises:
            MalformedExtractionResultError: If the candidate is not usable.
        """
        index_match = _INDEX.search(candidate)
        index = int(index_match.group(1)) if index_match else None

        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            try:
                data = json.loads(_TRAILING_COMMA.sub(r"\1", candidate))
            except json.JSONDecodeError as e:
                raise MalformedExtractionResultError(
                    f"Failed to parse extraction result: {e.msg}", document_index=index
                )

        if not isinstance(data, dict):
            raise MalformedExtractionResultError("Extraction result is not an object", document_index=index)

        parsed_index = _int(data.get("document_index"))
        if parsed_index is None:
            raise MalformedExtractionResultError("Extraction result has no document index", document_index=index)

        return parsed_index, self._record(data)

    def _record(self, data: Dict[str, Any]) -> ExtractionRecord:
        balances = []
        raw_balances = data.get("monthly_balances") or []
        if not isinstance(raw_balances, list):
            raw_balances = []

        for entry in raw_balances:
            if not isinstance(entry, dict):
                continue
            month = entry.get("month")
            month = month_number(month) if isinstance(month, str) and not month.strip().isdigit() else _int(month)
            year = _int(entry.get("year"))
            if month is None or not 1 <= month <= 12 or year is None:
                self.logger.debug(f"Dropping balance entry with month={entry.get('month')!r} year={entry.get('year')!r}")
                continue
            page = _int(entry.get("statement_page"))
            balances.append(
                MonthlyBalance(
                    month=month,
                    year=year,
                    opening_balance=parse_amount(entry.get("opening_balance")),
                    closing_balance=parse_amount(entry.get("closing_balance")),
                    statement_page=page if page and page > 0 else 1,
                )
            )

        return ExtractionRecord(
            bank_name=_text(data.get("bank_name")),
            company_name=_text(data.get("company_name")),
            account_number=_text(data.get("account_number")),
            currency=normalize_currency(_text(data.get("currency"))),
            statement_period=_text(data.get("statement_period")),
            monthly_balances=tuple(balances),
        )

    def parse(
        self,
        raw: str,
        expected_indices: Union[Mapping[int, str], Iterable[int]],
    ) -> List[ExtractionOutcome]:
        """Map a raw response back to the documents that were sent.

        Args:
            raw: Response text from the extraction API.
            expected_indices: Indices sent in the chunk, or a mapping of
                index to filename.

        Returns:
            One outcome per expected index, ordered by index.
        """
        if isinstance(expected_indices, Mapping):
            filenames = dict(expected_indices)
        else:
            filenames = {index: "" for index in expected_indices}

        outcomes: Dict[int, ExtractionOutcome] = {}
        for candidate in extract_candidates(raw):
            try:
                index, record = self.parse_candidate(candidate)
            except MalformedExtractionResultError as e:
                index = e.document_index
                if index in filenames and index not in outcomes:
                    self.logger.warning(f"Malformed extraction result for document {index}: {str(e)}")
                    outcomes[index] = ExtractionOutcome.failed(
                        index, filenames[index], FailureReason.MALFORMED_EXTRACTION_RESULT, str(e)
                    )
                continue

            if index not in filenames:
                self.logger.debug(f"Ignoring extraction result for unexpected document {index}")
                continue
            existing = outcomes.get(index)
            if existing is not None and existing.success:
                continue
            outcomes[index] = ExtractionOutcome(index=index, filename=filenames[index], record=record)

        for index, filename in filenames.items():
            if index not in outcomes:
                outcomes[index] = ExtractionOutcome.failed(
                    index, filename, FailureReason.NO_EXTRACTION_RESULT, "No extraction result found"
                )

        return [outcomes[index] for index in sorted(outcomes)]
