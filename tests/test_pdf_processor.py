"""Tests for PDF processing modules."""

import pytest
from unittest.mock import Mock, patch

from pdfminer.pdfdocument import PDFPasswordIncorrect

from statement_recon.models import BankAccount, SourceDocument
from statement_recon.pdf_processor.chunker import BatchChunker, PreparedDocument
from statement_recon.pdf_processor.decryptor import PasswordResolver, UnlockState
from statement_recon.pdf_processor.extractor import DocumentTextExtractor, PageText
from statement_recon.pdf_processor.filename_signals import FilenameSignals
from statement_recon.utils.exceptions import CorruptDocumentError, PasswordRequiredError
from statement_recon.utils.validators import ValidationError


class TestPasswordResolver:
    """Test cases for PasswordResolver."""

    def test_plain_document_not_protected(self, plain_pdf):
        """Test that unencrypted documents need no password."""
        result = PasswordResolver().resolve(SourceDocument(plain_pdf, "plain.pdf"))
        assert result.state == UnlockState.NOT_PROTECTED
        assert result.password is None
        assert result.attempts == 0
        assert result.readable

    def test_owner_password_only_not_protected(self, pdf_factory):
        """Test that a PDF opening with an empty user password needs no candidates."""
        payload = pdf_factory(pages=2, owner_password="owner-secret")
        resolver = PasswordResolver()

        assert resolver.is_encrypted(payload) is False
        result = resolver.resolve(SourceDocument(payload, "restricted.pdf"))
        assert result.state == UnlockState.NOT_PROTECTED
        assert result.readable
        assert result.attempts == 0
        assert DocumentTextExtractor().extract(payload, result.password).total_pages == 2

    def test_user_password_is_protected(self, encrypted_pdf):
        """Test that a real user password still counts as protection."""
        assert PasswordResolver().is_encrypted(encrypted_pdf) is True

    def test_unlock_with_filename_password(self, encrypted_pdf):
        """Test that the filename hint opens the document."""
        document = SourceDocument(encrypted_pdf, "Statement_pass-7788.pdf")
        signals = FilenameSignals(password="7788")
        result = PasswordResolver().resolve(document, signals)
        assert result.state == UnlockState.UNLOCKED
        assert result.password == "7788"
        assert result.source == "filename"
        assert result.attempts == 1

    def test_caller_password_tried_first(self, encrypted_pdf):
        """Test candidate order when several sources are available."""
        document = SourceDocument(encrypted_pdf, "statement.pdf", password="0000")
        signals = FilenameSignals(password="7788")
        result = PasswordResolver().resolve(document, signals)
        assert result.state == UnlockState.UNLOCKED
        assert result.tried_sources == ["provided", "filename"]
        assert result.attempts == 2

    def test_unlock_with_account_password(self, encrypted_pdf, sample_accounts):
        """Test that the matched account's stored password is used."""
        document = SourceDocument(encrypted_pdf, "statement.pdf")
        result = PasswordResolver().resolve(document, FilenameSignals(), sample_accounts[0])
        assert result.state == UnlockState.UNLOCKED
        assert result.source == "account_password"

    def test_exhausted_candidates(self, encrypted_pdf):
        """Test that wrong candidates leave the document locked."""
        document = SourceDocument(encrypted_pdf, "statement.pdf", password="nope")
        resolver = PasswordResolver()
        result = resolver.resolve(document, FilenameSignals(password="1111"))
        assert result.state == UnlockState.EXHAUSTED_CANDIDATES
        assert result.attempts == 2
        assert not result.readable

        with pytest.raises(PasswordRequiredError):
            resolver.unlock(document, FilenameSignals(password="1111"))

    def test_no_candidates(self, encrypted_pdf):
        """Test an encrypted document with no hints at all."""
        result = PasswordResolver().resolve(SourceDocument(encrypted_pdf, "statement.pdf"))
        assert result.state == UnlockState.EXHAUSTED_CANDIDATES
        assert result.attempts == 0

    def test_corrupt_document(self):
        """Test that garbage bytes are corrupt rather than protected."""
        with pytest.raises(CorruptDocumentError):
            PasswordResolver().resolve(SourceDocument(b"not a pdf at all", "junk.pdf"))

    def test_candidate_order_and_dedup(self):
        """Test the full candidate list."""
        account = BankAccount(
            id="a", bank_name="Equity Bank", account_number="0170-2938-44512", password="7788",
        )
        document = SourceDocument(b"", "x.pdf", password="7788")
        signals = FilenameSignals(password="  ", account_number="44512999", bank_name="Equity Bank")
        candidates = PasswordResolver().candidate_passwords(document, signals, account)

        assert candidates[0] == ("provided", "7788")
        values = [value for _, value in candidates]
        assert len(values) == len(set(values))
        assert "" not in values
        assert ("account_number", "512999") in candidates
        assert ("account_number", "44512999") in candidates
        assert ("account_number", "844512") in candidates
        assert ("account_number", "0170293844512") in candidates
        assert ("bank_name", "equity123") in candidates
        assert ("bank_name", "equitybank2024") in candidates
        assert values.index("512999") < values.index("equity123")

    def test_try_password_handles_reader_errors(self, encrypted_pdf):
        """Test that decrypt errors count as a wrong password."""
        mock_reader = Mock()
        mock_reader.decrypt.side_effect = NotImplementedError("unsupported algorithm")
        with patch("statement_recon.pdf_processor.decryptor.PdfReader", return_value=mock_reader):
            assert PasswordResolver().try_password(encrypted_pdf, "7788") is False


class TestDocumentTextExtractor:
    """Test cases for DocumentTextExtractor."""

    def test_reads_first_and_last_page(self, plain_pdf):
        """Test that only pages 1 and N are read."""
        result = DocumentTextExtractor().extract(plain_pdf)
        assert result.total_pages == 3
        assert result.page_numbers == [1, 3]

    def test_single_page(self, pdf_factory):
        """Test a one-page document."""
        result = DocumentTextExtractor().extract(pdf_factory(pages=1))
        assert result.page_numbers == [1]
        assert result.total_pages == 1

    def test_encrypted_with_password(self, encrypted_pdf):
        """Test reading an encrypted document with its password."""
        result = DocumentTextExtractor().extract(encrypted_pdf, "7788")
        assert result.total_pages == 2
        assert result.page_numbers == [1, 2]

    def test_encrypted_without_password(self, encrypted_pdf):
        """Test that a missing password is reported as such."""
        with pytest.raises(PasswordRequiredError):
            DocumentTextExtractor().extract(encrypted_pdf)

    def test_wrapped_password_error(self):
        """Test detection of password errors wrapped by pdfplumber."""
        wrapped = Exception(PDFPasswordIncorrect())
        with patch("statement_recon.pdf_processor.extractor.pdfplumber.open", side_effect=wrapped):
            with pytest.raises(PasswordRequiredError):
                DocumentTextExtractor().extract(b"%PDF-1.4", "bad")

    def test_corrupt_payload(self):
        """Test that unreadable bytes raise CorruptDocumentError."""
        with pytest.raises(CorruptDocumentError):
            DocumentTextExtractor().extract(b"definitely not a pdf")

    def test_page_text_capped(self):
        """Test the per-page character cap."""
        page = Mock()
        page.extract_text.return_value = "x" * 50
        pdf = Mock()
        pdf.pages = [page]
        pdf.__enter__ = Mock(return_value=pdf)
        pdf.__exit__ = Mock(return_value=False)

        with patch("statement_recon.pdf_processor.extractor.pdfplumber.open", return_value=pdf):
            result = DocumentTextExtractor(max_chars_per_page=10).extract(b"%PDF-1.4")

        assert result.pages == {1: "x" * 10}

    def test_page_extraction_failure_yields_empty_text(self):
        """Test that a failing page does not fail the document."""
        first, last = Mock(), Mock()
        first.extract_text.return_value = "Opening balance 100.00"
        last.extract_text.side_effect = RuntimeError("bad font")
        pdf = Mock()
        pdf.pages = [first, Mock(), last]
        pdf.__enter__ = Mock(return_value=pdf)
        pdf.__exit__ = Mock(return_value=False)

        with patch("statement_recon.pdf_processor.extractor.pdfplumber.open", return_value=pdf):
            result = DocumentTextExtractor().extract(b"%PDF-1.4")

        assert result.pages == {1: "Opening balance 100.00", 3: ""}


def prepared(index, text_size, filename=None):
    return PreparedDocument(
        index=index,
        filename=filename or f"doc{index}.pdf",
        text=PageText(pages={1: "a" * text_size}, total_pages=1),
        expected_month=3,
        expected_year=2024,
    )


class TestBatchChunker:
    """Test cases for BatchChunker."""

    def test_invalid_budget(self):
        """Test budget validation."""
        with pytest.raises(ValidationError):
            BatchChunker(max_chars=0)

    def test_document_block_format(self):
        """Test the delimiters and header lines of a block."""
        document = PreparedDocument(
            index=4,
            filename="kcb.pdf",
            text=PageText(pages={1: "first page", 5: "last page"}, total_pages=5),
            expected_month=3,
            expected_year=2024,
        )
        block = BatchChunker().format_document(document)
        lines = block.splitlines()
        assert lines[0] == "----- DOCUMENT INDEX: 4 -----"
        assert lines[-1] == "----- END OF DOCUMENT 4 -----"
        assert "FILENAME: kcb.pdf" in lines
        assert "PAGES EXAMINED: 1, 5 of 5" in lines
        assert "EXPECTED MONTH/YEAR: March 2024" in lines
        assert lines.index("--- PAGE 1 ---") < lines.index("--- PAGE 5 ---")

    def test_small_documents_share_a_chunk(self):
        """Test packing of documents under the budget."""
        chunks = BatchChunker(max_chars=8000).build_chunks([prepared(i, 100) for i in range(3)])
        assert len(chunks) == 1
        assert chunks[0].indices == (0, 1, 2)

    def test_chunks_respect_budget_and_order(self):
        """Test that chunks stay within budget and keep input order."""
        chunker = BatchChunker(max_chars=1000)
        documents = [prepared(i, 300) for i in range(6)]
        chunks = chunker.build_chunks(documents)

        assert [i for chunk in chunks for i in chunk.indices] == list(range(6))
        assert all(len(chunk.text) <= 1000 for chunk in chunks)
        assert len(chunks) > 1

    def test_oversized_document_alone(self):
        """Test that a document over the budget is never split or merged."""
        chunker = BatchChunker(max_chars=500)
        chunks = chunker.build_chunks([prepared(0, 50), prepared(1, 2000), prepared(2, 50)])
        assert [chunk.indices for chunk in chunks] == [(0,), (1,), (2,)]
        assert "a" * 2000 in chunks[1].text

    def test_empty_input(self):
        """Test that no documents produce no chunks."""
        assert BatchChunker().build_chunks([]) == []
