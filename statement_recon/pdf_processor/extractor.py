"""Text extraction from the first and last page of bank statements."""

from dataclasses import dataclass, field
from io import BytesIO
from typing import Dict, List, Optional

import pdfplumber
from pdfminer.pdfdocument import PDFPasswordIncorrect

from statement_recon.config.settings import MAX_CHARS_PER_PAGE
from statement_recon.utils.exceptions import CorruptDocumentError, PasswordRequiredError
from statement_recon.utils.logger import get_logger


@dataclass
class PageText:
    """Text of the examined pages, keyed by 1-based page number."""

    pages: Dict[int, str] = field(default_factory=dict)
    total_pages: int = 0

    @property
    def page_numbers(self) -> List[int]:
        return sorted(self.pages)

    @property
    def char_count(self) -> int:
        return sum(len(text) for text in self.pages.values())


def _is_password_error(error: BaseException) -> bool:
    # pdfplumber may wrap pdfminer errors, so look through causes and args.
    seen = set()
    pending = [error]
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, PDFPasswordIncorrect):
            return True
        for nested in (current.__cause__, current.__context__):
            if nested is not None:
                pending.append(nested)
        for arg in getattr(current, "args", ()):
            if isinstance(arg, BaseException):
                pending.append(arg)
    return False


class DocumentTextExtractor:
    """Reads the text of a statement's first and last page."""

    def __init__(self, max_chars_per_page: int = MAX_CHARS_PER_PAGE) -> None:
        """Initialize text extractor.

        Args:
            max_chars_per_page: Cap on the characters kept from each page.
        """
        self.logger = get_logger(__name__)
        self.max_chars_per_page = max_chars_per_page

    def extract(self, payload: bytes, password: Optional[str] = None) -> PageText:
        """Extract text from page 1 and the last page.

        Args:
            payload: Raw PDF bytes.
            password: Password for encrypted documents.

        Returns:
            PageText with one or two entries.

        Raises:
            PasswordRequiredError: If the password is missing or wrong.
            CorruptDocumentError: If the PDF cannot be read.
        """
        try:
            with pdfplumber.open(BytesIO(payload), password=password or "") as pdf:
                total_pages = len(pdf.pages)
                if total_pages == 0:
                    raise CorruptDocumentError("PDF has no pages")

                result = PageText(total_pages=total_pages)
                for page_number in sorted({1, total_pages}):
                    result.pages[page_number] = self._page_text(pdf.pages[page_number - 1], page_number)

                self.logger.debug(
                    f"Extracted {result.char_count} characters from pages "
                    f"{result.page_numbers} of {total_pages}"
                )
                return result

        except CorruptDocumentError:
            raise
        except Exception as e:
            if _is_password_error(e):
                raise PasswordRequiredError("Password missing or incorrect")
            raise CorruptDocumentError(f"Failed to extract text from PDF: {str(e)}")

    def _page_text(self, page, page_number: int) -> str:
        try:
            text = page.extract_text() or ""
        except Exception as e:
            self.logger.warning(f"Failed to extract text from page {page_number}: {str(e)}")
            return ""

        if not text.strip():
            self.logger.warning(f"No text found on page {page_number}")
        if len(text) > self.max_chars_per_page:
            text = text[:self.max_chars_per_page]
        return text
