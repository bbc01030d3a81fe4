"""Excel review report for a batch of extracted statements."""

import calendar
import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.dataframe import dataframe_to_rows

from statement_recon.config.settings import REPORTS_DIR
from statement_recon.models import ExtractionOutcome
from statement_recon.utils.logger import get_logger
from statement_recon.utils.validators import ValidationError, validate_directory_path

REPORT_EXTENSION = "xlsx"


class ReportConversionError(Exception):
    """Custom exception for report generation errors."""
    pass


class ReportConverter:
    """Writes batch outcomes to a styled Excel workbook."""

    def __init__(self) -> None:
        """Initialize report converter."""
        self.logger = get_logger(__name__)

        self.header_font = Font(bold=True, color="FFFFFF")
        self.header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        self.header_alignment = Alignment(horizontal="center", vertical="center")
        self.review_fill = PatternFill(start_color="FCE4D6", end_color="FCE4D6", fill_type="solid")
        self.amount_format = "#,##0.00"

    def generate_filename(self, base_name: str, timestamp: bool = True) -> str:
        """Generate report filename, optionally timestamped."""
        parts = [base_name]
        if timestamp:
            parts.append(datetime.now().strftime("%Y%m%d_%H%M%S"))
        return f"{'_'.join(parts)}.{REPORT_EXTENSION}"

    def outcomes_to_dataframe(self, outcomes: Sequence[ExtractionOutcome]) -> pd.DataFrame:
        """One row per document."""
        rows = []
        for outcome in outcomes:
            record = outcome.record
            match = outcome.match
            rows.append({
                "Index": outcome.index,
                "Filename": outcome.filename,
                "Status": "Extracted" if outcome.success else "Failed",
                "Failure": outcome.failure.value if outcome.failure else "",
                "Error": outcome.error or "",
                "Bank": record.bank_name if record else "",
                "Account Number": record.account_number if record else "",
                "Company": record.company_name if record else "",
                "Currency": record.currency if record else "",
                "Statement Period": record.statement_period if record else "",
                "Matched Account": match.account.id if match and match.matched else "",
                "Match Score": match.score if match else None,
                "Match Reasons": ", ".join(match.reasons) if match else "",
                "Months": ", ".join(f"{calendar.month_abbr[m]} {y}" for m, y in outcome.months),
                "Period Defaulted": "Yes" if outcome.period_defaulted else "",
                "Needs Review": "Yes" if outcome.needs_review else "",
            })
        return pd.DataFrame(rows)

    def balances_to_dataframe(self, outcomes: Sequence[ExtractionOutcome]) -> pd.DataFrame:
        """One row per extracted month."""
        rows = []
        for outcome in outcomes:
            if not outcome.success:
                continue
            for balance in outcome.record.monthly_balances:
                rows.append({
                    "Index": outcome.index,
                    "Filename": outcome.filename,
                    "Month": calendar.month_name[balance.month],
                    "Year": balance.year,
                    "Opening Balance": float(balance.opening_balance) if balance.opening_balance is not None else None,
                    "Closing Balance": float(balance.closing_balance) if balance.closing_balance is not None else None,
                    "Statement Page": balance.statement_page,
                })
        return pd.DataFrame(rows)

    def write_sheet(self, workbook: Workbook, df: pd.DataFrame, sheet_name: str) -> None:
        """Write a DataFrame to a new sheet with styled headers and sized columns."""
        worksheet = workbook.create_sheet(title=sheet_name)

        headers = list(df.columns)
        for col_num, header in enumerate(headers, 1):
            cell = worksheet.cell(row=1, column=col_num, value=header)
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.alignment = self.header_alignment

        review_col = headers.index("Needs Review") + 1 if "Needs Review" in headers else None
        amount_cols = {i for i, h in enumerate(headers, 1) if "Balance" in h}

        for row_num, row in enumerate(dataframe_to_rows(df, index=False, header=False), 2):
            for col_num, value in enumerate(row, 1):
                if isinstance(value, float) and pd.isna(value):
                    value = None
                cell = worksheet.cell(row=row_num, column=col_num, value=value)
                if col_num in amount_cols and isinstance(value, (int, float)):
                    cell.number_format = self.amount_format
            if review_col and worksheet.cell(row=row_num, column=review_col).value == "Yes":
                for col_num in range(1, len(headers) + 1):
                    worksheet.cell(row=row_num, column=col_num).fill = self.review_fill

        for col_idx in range(1, worksheet.max_column + 1):
            max_length = max(
                (len(str(worksheet.cell(row=r, column=col_idx).value or "")) for r in range(1, worksheet.max_row + 1)),
                default=0,
            )
            worksheet.column_dimensions[get_column_letter(col_idx)].width = min(max_length + 2, 50)

        self.logger.info(f"Created {sheet_name} sheet with {len(df)} rows")

    def create_batch_report(
        self,
        outcomes: Sequence[ExtractionOutcome],
        output_path: Optional[str] = None,
        filename: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Write the review workbook for a batch.

        Args:
            outcomes: Batch outcomes.
            output_path: Output directory; defaults to the reports directory.
            filename: Report file name; generated if omitted.
            metadata: Optional key/value pairs for a Metadata sheet.

        Returns:
            Path to the created workbook.

        Raises:
            ReportConversionError: If the workbook cannot be written.
        """
        try:
            output_path = output_path or REPORTS_DIR
            validate_directory_path(output_path)

            filename = filename or self.generate_filename("statement_batch")
            if not filename.endswith(f".{REPORT_EXTENSION}"):
                filename = f"{filename}.{REPORT_EXTENSION}"
            full_path = os.path.join(output_path, filename)

            workbook = Workbook()
            workbook.remove(workbook.active)

            self.write_sheet(workbook, self.outcomes_to_dataframe(outcomes), "Statements")
            balances_df = self.balances_to_dataframe(outcomes)
            if balances_df.empty:
                balances_df = pd.DataFrame(columns=[
                    "Index", "Filename", "Month", "Year",
                    "Opening Balance", "Closing Balance", "Statement Page",
                ])
            self.write_sheet(workbook, balances_df, "Monthly Balances")

            if metadata:
                metadata_df = pd.DataFrame(
                    [{"Key": str(k), "Value": str(v)} for k, v in metadata.items()]
                )
                self.write_sheet(workbook, metadata_df, "Metadata")

            workbook.save(full_path)
            self.logger.info(f"Batch report written to {full_path}")
            return full_path

        except (ValidationError, OSError) as e:
            raise ReportConversionError(f"Failed to create batch report: {str(e)}")

    def summary_rows(self, outcomes: Sequence[ExtractionOutcome]) -> List[Dict[str, Any]]:
        """Statements sheet rows as plain dictionaries."""
        return self.outcomes_to_dataframe(outcomes).to_dict(orient="records")
