"""Password, account number and bank hints read from statement filenames."""

import os
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

PASSWORD_INDICATORS = [
    "password", "passcode", "pass", "pwd", "pw",
    "pin", "code", "access", "key", "secure",
]

ACCOUNT_INDICATORS = ["account", "acct", "acc", "a/c", "#", "no"]

# Fragment -> canonical bank name. Longer fragments are tried first.
BANK_GAZETTEER = {
    "standard chartered": "Standard Chartered",
    "stanchart": "Standard Chartered",
    "diamond trust": "Diamond Trust Bank",
    "dtb": "Diamond Trust Bank",
    "cooperative": "Cooperative Bank",
    "co op": "Cooperative Bank",
    "coop": "Cooperative Bank",
    "equity": "Equity Bank",
    "kcb": "KCB Bank",
    "absa": "ABSA Bank",
    "barclays": "ABSA Bank",
    "ncba": "NCBA Bank",
    "family": "Family Bank",
    "stanbic": "Stanbic Bank",
    "i&m": "I&M Bank",
    "i and m": "I&M Bank",
    "gulf": "Gulf African Bank",
    "uob": "UOB Bank",
    "prime": "Prime Bank",
    "bank of africa": "Bank of Africa",
    "boa": "Bank of Africa",
    "credit bank": "Credit Bank",
    "ecobank": "Ecobank",
    "hsbc": "HSBC",
    "citibank": "Citibank",
    "citi": "Citibank",
    "national bank": "National Bank",
    "spire": "Spire Bank",
}

_YEAR_PREFIX = re.compile(r"^202\d")
_LONG_DIGITS = re.compile(r"(?<!\d)\d{6,12}(?!\d)")
_SHORT_DIGITS = re.compile(r"(?<!\d)\d{4,8}(?!\d)")
_BARE_ACCOUNT = re.compile(r"(?<!\d)\d{6,16}(?!\d)")


def _fragment_pattern(fragment: str) -> re.Pattern:
    # Short fragments such as "boa" or "dtb" must stand alone.
    if len(fragment) <= 4:
        return re.compile(rf"(?<![a-z]){re.escape(fragment)}(?![a-z])")
    return re.compile(re.escape(fragment))


@dataclass(frozen=True)
class FilenameSignals:
    """Hints detected in a filename. Any of them may be missing."""

    password: Optional[str] = None
    account_number: Optional[str] = None
    bank_name: Optional[str] = None


class FilenameSignalDetector:
    """Detects password, account number and bank name hints in filenames."""

    def __init__(self) -> None:
        self._password_patterns = [
            re.compile(rf"(?<![a-z]){re.escape(indicator)}[-_:\s]*([0-9a-z]{{4,12}})(?![0-9a-z])", re.IGNORECASE)
            for indicator in PASSWORD_INDICATORS
        ]
        self._account_patterns = [
            re.compile(rf"(?<![a-z]){re.escape(indicator)}[-_:.\s]*(\d{{6,16}})(?!\d)", re.IGNORECASE)
            for indicator in ACCOUNT_INDICATORS
        ]
        self._banks: List[Tuple[re.Pattern, str]] = [
            (_fragment_pattern(fragment), canonical)
            for fragment, canonical in sorted(
                BANK_GAZETTEER.items(), key=lambda item: len(item[0]), reverse=True
            )
        ]

    def detect(self, filename: str) -> FilenameSignals:
        """Detect all hints in a filename.

        Args:
            filename: File name, with or without directory and extension.

        Returns:
            FilenameSignals with whatever could be detected.
        """
        stem = os.path.splitext(os.path.basename(filename or ""))[0]
        return FilenameSignals(
            password=self.detect_password(stem),
            account_number=self.detect_account_number(stem),
            bank_name=self.detect_bank_name(stem),
        )

    def detect_password(self, name: str) -> Optional[str]:
        """Find a password hint.

        Labeled tokens such as ``pwd-1234`` win; otherwise the last long
        non-year digit run (reduced to its last six digits), then the last
        four to eight digit group that does not look like a year.
        """
        for pattern in self._password_patterns:
            match = pattern.search(name)
            if match:
                return match.group(1)

        long_runs = [run for run in _LONG_DIGITS.findall(name) if not _YEAR_PREFIX.match(run)]
        if long_runs:
            return long_runs[-1][-6:]

        short_runs = [run for run in _SHORT_DIGITS.findall(name) if not _YEAR_PREFIX.match(run)]
        if short_runs:
            return short_runs[-1]

        return None

    def detect_account_number(self, name: str) -> Optional[str]:
        """Find an account number, preferring labeled digit runs."""
        for pattern in self._account_patterns:
            match = pattern.search(name)
            if match:
                return match.group(1)

        match = _BARE_ACCOUNT.search(name)
        return match.group(0) if match else None

    def detect_bank_name(self, name: str) -> Optional[str]:
        """Return the canonical bank name whose fragment appears in the name."""
        normalized = re.sub(r"[_\-.]+", " ", name.lower())
        for pattern, canonical in self._banks:
            if pattern.search(normalized):
                return canonical
        return None
