"""Tests for account matching and statement period expansion."""

import pytest

from statement_recon.models import BankAccount, ExtractionRecord, StatementPeriod
from statement_recon.pdf_processor.filename_signals import FilenameSignals
from statement_recon.reconciliation.matcher import (
    BankMatcher,
    clean_account_number,
    clean_company_name,
)
from statement_recon.reconciliation.periods import StatementPeriodExpander, month_number


class TestBankMatcher:
    """Test cases for BankMatcher."""

    def test_exact_after_cleaning(self, sample_accounts):
        """Test that separators are ignored for exact matches."""
        record = ExtractionRecord(account_number="0170 2938.44512")
        result = BankMatcher().match(record, sample_accounts)
        assert result.matched
        assert result.account.id == "acc-1"
        assert result.method == "exact_account"

    def test_exact_beats_earlier_partial(self):
        """Test that an exact number anywhere wins over containment earlier in the list."""
        accounts = [
            BankAccount(id="partial", bank_name="KCB", account_number="99112233445566"),
            BankAccount(id="exact", bank_name="KCB", account_number="112233445566"),
        ]
        result = BankMatcher().match(ExtractionRecord(account_number="112233445566"), accounts)
        assert result.account.id == "exact"

    def test_near_exact_account(self, sample_accounts):
        """Test containment with equal last six digits."""
        record = ExtractionRecord(account_number="90170293844512")
        result = BankMatcher().match(record, sample_accounts)
        assert result.account.id == "acc-1"
        assert result.method == "near_exact_account"

    def test_scored_match(self, sample_accounts):
        """Test a match found by name and currency."""
        record = ExtractionRecord(
            bank_name="KCB Bank", company_name="BLUE HORIZON LIMITED", currency="US Dollars",
        )
        result = BankMatcher().match(record, sample_accounts)
        assert result.account.id == "acc-2"
        assert result.method == "scored"
        assert result.score == 4 + 4 + 2
        assert "currency" in result.reasons

    def test_containment_points(self, sample_accounts):
        """Test partial account numbers score without being accepted outright."""
        record = ExtractionRecord(account_number="88009900")
        matcher = BankMatcher()
        score, reasons = matcher.score(record, sample_accounts[2])
        assert score == 8
        assert reasons == ["account number partial"]
        assert matcher.match(record, sample_accounts).account.id == "acc-3"

    def test_below_threshold_not_forced(self, sample_accounts):
        """Test that weak evidence leaves the record unmatched."""
        record = ExtractionRecord(bank_name="Some Other Bank", currency="KES")
        result = BankMatcher().match(record, sample_accounts)
        assert not result.matched
        assert result.method == "none"
        assert result.score == 2

    def test_no_evidence(self, sample_accounts):
        """Test an empty record."""
        result = BankMatcher().match(ExtractionRecord(), sample_accounts)
        assert not result.matched
        assert result.score == 0

    def test_tie_goes_to_first_account(self):
        """Test that equal scores keep registry order."""
        accounts = [
            BankAccount(id="first", bank_name="Equity Bank", account_number="111111111", currency="KES"),
            BankAccount(id="second", bank_name="Equity Bank", account_number="222222222", currency="KES"),
        ]
        record = ExtractionRecord(bank_name="Equity Bank", currency="KES")
        assert BankMatcher().match(record, accounts).account.id == "first"

    def test_custom_threshold(self, sample_accounts):
        """Test a stricter threshold."""
        record = ExtractionRecord(bank_name="KCB Bank", currency="USD")
        assert BankMatcher(threshold=5).match(record, sample_accounts).matched
        assert not BankMatcher(threshold=7).match(record, sample_accounts).matched

    def test_filename_account_hint(self, sample_accounts):
        """Test pre-matching from a filename account number."""
        signals = FilenameSignals(account_number="1122334455")
        result = BankMatcher().match_filename_signals(signals, sample_accounts)
        assert result.account.id == "acc-2"
        assert result.method == "filename"

    def test_filename_bank_hint_must_be_unique(self, sample_accounts):
        """Test pre-matching from a bank name hint."""
        matcher = BankMatcher()
        assert matcher.match_filename_signals(FilenameSignals(bank_name="Standard Chartered"), sample_accounts).account.id == "acc-3"

        duplicated = sample_accounts + [
            BankAccount(id="acc-4", bank_name="Standard Chartered Bank", account_number="5555555555"),
        ]
        assert not matcher.match_filename_signals(FilenameSignals(bank_name="Standard Chartered"), duplicated).matched

    def test_filename_no_hints(self, sample_accounts):
        """Test absent hints."""
        assert not BankMatcher().match_filename_signals(None, sample_accounts).matched
        assert not BankMatcher().match_filename_signals(FilenameSignals(), sample_accounts).matched

    def test_cleaners(self):
        """Test account and company normalization."""
        assert clean_account_number("01-70 29.38") == "01702938"
        assert clean_company_name("Acme Traders Limited") == "acme traders"
        assert clean_company_name("ACME TRADERS LTD.") == "acme traders"


class TestMonthNumber:
    """Test cases for month name resolution."""

    @pytest.mark.parametrize("name,expected", [
        ("January", 1), ("jan", 1), ("Sept", 9), ("sep", 9), ("DECEMBER", 12), ("octob", 10),
    ])
    def test_valid_names(self, name, expected):
        assert month_number(name) == expected

    @pytest.mark.parametrize("name", ["ju", "xyz", "", None, "3"])
    def test_invalid_names(self, name):
        assert month_number(name) is None


class TestStatementPeriodExpander:
    """Test cases for StatementPeriodExpander."""

    def test_single_month(self):
        """Test a single month period."""
        assert StatementPeriodExpander().expand("January 2024") == [(1, 2024)]

    def test_same_year_range(self):
        """Test a range within one year."""
        assert StatementPeriodExpander().expand("January - March 2024") == [(1, 2024), (2, 2024), (3, 2024)]

    def test_cross_year_range(self):
        """Test a range spanning a year end."""
        assert StatementPeriodExpander().expand("November 2023 - February 2024") == [
            (11, 2023), (12, 2023), (1, 2024), (2, 2024),
        ]

    @pytest.mark.parametrize("text", [
        "01/01/2024 - 31/03/2024",
        "01-01-2024 - 31-03-2024",
        "01.01.2024 – 31.03.2024",
        "1/1/2024 to 31/3/2024",
    ])
    def test_date_ranges(self, text):
        """Test numeric date ranges."""
        assert StatementPeriodExpander().expand(text) == [(1, 2024), (2, 2024), (3, 2024)]

    @pytest.mark.parametrize("text", [
        "Jan to Mar 2024",
        "jan–mar, 2024",
        "JANUARY — MARCH 2024",
    ])
    def test_separators_and_abbreviations(self, text):
        """Test separator and month name variants."""
        assert StatementPeriodExpander().expand(text) == [(1, 2024), (2, 2024), (3, 2024)]

    @pytest.mark.parametrize("text", [
        "01/2024 - 03/2024",
        "Statement period: January 2024 - March 2024",
        "01 Jan 2024 - 31 Mar 2024",
        "From January 2024 to March 2024",
        "Period 01/01/2024 to 31/03/2024 (3 months)",
    ])
    def test_periods_within_surrounding_text(self, text):
        """Test that periods are found inside labels and other wording."""
        assert StatementPeriodExpander().expand(text) == [(1, 2024), (2, 2024), (3, 2024)]

    @pytest.mark.parametrize("text, expected", [
        ("03/2024", [(3, 2024)]),
        ("Statement period: March 2024", [(3, 2024)]),
        ("Statement for the month of October 2024", [(10, 2024)]),
    ])
    def test_single_month_within_text(self, text, expected):
        """Test single months given numerically or inside a sentence."""
        assert StatementPeriodExpander().expand(text) == expected

    def test_reversed_range_swapped(self):
        """Test that ranges given backwards are swapped."""
        period = StatementPeriodExpander().parse("March 2024 - January 2024")
        assert period == StatementPeriod(1, 2024, 3, 2024)

    @pytest.mark.parametrize("text", [None, "", "Q1 2024", "Smarch 2024", "13/01/2024 - 31/13/2024", "January 1850"])
    def test_unparsable(self, text):
        """Test text that is not a period."""
        assert StatementPeriodExpander().parse(text) is None
        assert StatementPeriodExpander().expand(text) == []

    def test_expand_or_default(self, caplog):
        """Test the fallback to the target month."""
        expander = StatementPeriodExpander()
        assert expander.expand_or_default("February 2024", 5, 2024) == ([(2, 2024)], False)
        with caplog.at_level("WARNING"):
            assert expander.expand_or_default("garbage", 5, 2024) == ([(5, 2024)], True)
        assert "Unparsable statement period" in caplog.text

    def test_long_period(self):
        """Test a period of more than a year."""
        months = StatementPeriodExpander().expand("01/12/2022 - 31/01/2024")
        assert len(months) == 14
        assert months[0] == (12, 2022)
        assert months[-1] == (1, 2024)
