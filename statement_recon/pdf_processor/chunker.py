"""Packing of extracted statement text into bounded-size extraction requests."""

import calendar
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from statement_recon.config.settings import MAX_CHUNK_CHARS
from statement_recon.pdf_processor.extractor import PageText
from statement_recon.utils.logger import get_logger
from statement_recon.utils.validators import validate_chunk_budget

CHUNK_SEPARATOR = "\n\n"


@dataclass
class PreparedDocument:
    """A document that has been unlocked and had its text extracted."""

    index: int
    filename: str
    text: PageText
    expected_month: Optional[int] = None
    expected_year: Optional[int] = None


@dataclass(frozen=True)
class TextChunk:
    """Text for one extraction request and the documents it carries."""

    indices: Tuple[int, ...]
    text: str


class BatchChunker:
    """Packs prepared documents into chunks of at most ``max_chars`` characters."""

    def __init__(self, max_chars: int = MAX_CHUNK_CHARS) -> None:
        """Initialize batch chunker.

        Args:
            max_chars: Character budget per chunk.

        Raises:
            ValidationError: If the budget is not a positive integer.
        """
        validate_chunk_budget(max_chars)
        self.logger = get_logger(__name__)
        self.max_chars = max_chars

    def format_document(self, document: PreparedDocument) -> str:
        """Render one document as a delimited block."""
        page_text = document.text
        pages = ", ".join(str(n) for n in page_text.page_numbers)
        lines = [
            f"----- DOCUMENT INDEX: {document.index} -----",
            f"FILENAME: {document.filename}",
            f"PAGES EXAMINED: {pages} of {page_text.total_pages}",
        ]
        if document.expected_month and document.expected_year:
            month_name = calendar.month_name[document.expected_month]
            lines.append(f"EXPECTED MONTH/YEAR: {month_name} {document.expected_year}")
        for page_number in page_text.page_numbers:
            lines.append(f"--- PAGE {page_number} ---")
            lines.append(page_text.pages[page_number])
        lines.append(f"----- END OF DOCUMENT {document.index} -----")
        return "\n".join(lines)

    def build_chunks(self, documents: Sequence[PreparedDocument]) -> List[TextChunk]:
        """Pack documents into chunks, in input order.

        A document is never split. One that is larger than the budget on its
        own becomes a chunk by itself.

        Args:
            documents: Prepared documents.

        Returns:
            List of chunks covering every document exactly once.
        """
        chunks: List[TextChunk] = []
        current_indices: List[int] = []
        current_blocks: List[str] = []
        current_size = 0

        def flush() -> None:
            nonlocal current_indices, current_blocks, current_size
            if current_blocks:
                chunks.append(TextChunk(tuple(current_indices), CHUNK_SEPARATOR.join(current_blocks)))
            current_indices, current_blocks, current_size = [], [], 0

        for document in documents:
            block = self.format_document(document)
            added = len(block) + (len(CHUNK_SEPARATOR) if current_blocks else 0)
            if current_blocks and current_size + added > self.max_chars:
                flush()
                added = len(block)
            if len(block) > self.max_chars:
                self.logger.warning(
                    f"Document {document.index} ({document.filename}) is {len(block)} characters, "
                    f"over the {self.max_chars} budget; sending it alone"
                )
            current_indices.append(document.index)
            current_blocks.append(block)
            current_size += added

        flush()
        self.logger.info(f"Packed {len(documents)} documents into {len(chunks)} chunks")
        return chunks
