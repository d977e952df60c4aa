"""
Document Processor Service

Text extraction for uploaded RFQ and Bid documents (TXT, PDF, DOCX).
"""

import io
import logging
import re
from pathlib import Path

# PDF Processing
from PyPDF2 import PdfReader
from PyPDF2.errors import PyPdfError

# DOCX Processing
from docx import Document

from services.errors import ExtractionError, UnsupportedFormat

logger = logging.getLogger("bid_audit.services.documents")


class DocumentProcessor:
    """
    Extracts plain text from uploaded documents.

    Supported formats:
    - .txt (UTF-8, undecodable bytes replaced)
    - .pdf via PyPDF2
    - .docx via python-docx, including table cells
    """

    SUPPORTED_SUFFIXES = (".txt", ".pdf", ".docx")

    def process_bytes(self, file_bytes: bytes, filename: str) -> str:
        """
        Extract text from document bytes.

        Args:
            file_bytes: Document content
            filename: Original filename (for format detection)

        Raises:
            UnsupportedFormat: If the extension is not supported
            ExtractionError: If the document cannot be read or holds no text
        """
        suffix = Path(filename).suffix.lower()

        if suffix == ".txt":
            text = file_bytes.decode("utf-8", errors="replace")
        elif suffix == ".pdf":
            text = self._process_pdf_bytes(file_bytes)
        elif suffix == ".docx":
            text = self._process_docx_bytes(file_bytes)
        else:
            raise UnsupportedFormat(f"Unsupported file type: {suffix or filename}")

        if not text.strip():
            raise ExtractionError(f"No text could be extracted from {filename}")

        logger.debug(f"Extracted {len(text)} chars from {filename}")
        return text

    def _process_pdf_bytes(self, pdf_bytes: bytes) -> str:
        try:
            reader = PdfReader(io.BytesIO(pdf_bytes))
            pages = [self._clean_text(page.extract_text() or "") for page in reader.pages]
        except (PyPdfError, ValueError, KeyError, OSError) as e:
            raise ExtractionError(f"PDF processing error: {e}") from e
        return "\n\n".join(pages)

    def _process_docx_bytes(self, docx_bytes: bytes) -> str:
        try:
            doc = Document(io.BytesIO(docx_bytes))
        except Exception as e:
            # python-docx surfaces zip and xml errors of many types
            raise ExtractionError(f"DOCX processing error: {e}") from e

        paragraphs = [para.text.strip() for para in doc.paragraphs if para.text.strip()]
        text = "\n\n".join(paragraphs)

        table_text = []
        for table in doc.tables:
            for row in table.rows:
                row_text = " | ".join(cell.text.strip() for cell in row.cells)
                if row_text.strip(" |"):
                    table_text.append(row_text)

        if table_text:
            text += "\n\n[Table Content]\n" + "\n".join(table_text)
        return text

    def _clean_text(self, text: str) -> str:
        """Normalise whitespace inside a page."""
        if not text:
            return ""
        return re.sub(r"\s+", " ", text).strip()


_processor = None


def get_processor() -> DocumentProcessor:
    """Get or create the document processor instance."""
    global _processor
    if _processor is None:
        _processor = DocumentProcessor()
    return _processor


def extract_text(filename: str, file_bytes: bytes) -> str:
    """
    Convenience function to extract text from document bytes.

    Raises:
        UnsupportedFormat: If the file type is not supported
        ExtractionError: If extraction fails
    """
    return get_processor().process_bytes(file_bytes, filename)
