"""Text extraction plugin for uploaded claim documents."""

import asyncio
import csv
import io
import json
import logging
from typing import List, Optional

from semantic_kernel.functions import kernel_function

from ..models.claim import ClaimDocument
from ..utils.errors import DocumentProcessingError, handle_document_processing_error
from .library_loader import DocumentLibraries, document_libraries

logger = logging.getLogger(__name__)

SUPPORTED_FILE_TYPES = (
    ".txt",
    ".pdf",
    ".docx",
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".bmp",
    ".tiff",
    ".webp",
    ".json",
    ".csv",
)

_MEDIA_TYPES = {
    "text/plain": "text",
    "application/pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "word",
    "application/json": "json",
    "text/csv": "csv",
    "application/csv": "csv",
}

_EXTENSIONS = {
    ".txt": "text",
    ".pdf": "pdf",
    ".docx": "word",
    ".json": "json",
    ".csv": "csv",
    ".jpg": "image",
    ".jpeg": "image",
    ".png": "image",
    ".gif": "image",
    ".bmp": "image",
    ".tiff": "image",
    ".webp": "image",
}


class TextExtractorPlugin:
    """
    Semantic Kernel plugin that turns an uploaded claim document into plain text.

    Supported inputs: plain text, PDF (PyPDF2 with pdfplumber as fallback),
    Word .docx (python-docx), images (pytesseract OCR), JSON and CSV.
    Library handles come from an injected DocumentLibraries instance, which
    loads them once per process.
    """

    def __init__(self, libraries: Optional[DocumentLibraries] = None):
        self.libraries = libraries or document_libraries
        logger.info("Initialized TextExtractorPlugin")

    @staticmethod
    def detect_format(document: ClaimDocument) -> Optional[str]:
        """Resolve the extraction format from media type, falling back to extension."""
        media_type = (document.media_type or "").split(";")[0].strip().lower()
        if media_type in _MEDIA_TYPES:
            return _MEDIA_TYPES[media_type]
        if media_type.startswith("image/"):
            return "image"
        return _EXTENSIONS.get(document.extension)

    @kernel_function(
        name="extract_text",
        description="Extract plain text from an uploaded claim document (text, PDF, Word, image, JSON or CSV)."
    )
    async def extract_text(self, document: ClaimDocument) -> str:
        """
        Extract text from a claim document.

        Args:
            document: Uploaded file with name, content and media type

        Returns:
            Extracted text. Image documents whose OCR finds nothing yield "".

        Raises:
            DocumentProcessingError: Unsupported format or extraction failure
        """
        doc_format = self.detect_format(document)
        if doc_format is None:
            raise DocumentProcessingError.unsupported_format(
                document.name, document.media_type or document.extension
            )

        logger.info(f"Extracting text from {document.name} as {doc_format} ({document.size} bytes)")

        try:
            if doc_format == "text":
                return document.as_text()
            if doc_format == "json":
                return self._extract_json(document)
            if doc_format == "csv":
                return self._extract_csv(document)
            if doc_format == "pdf":
                return await asyncio.to_thread(self._extract_pdf, document)
            if doc_format == "word":
                return await asyncio.to_thread(self._extract_word, document)
            return await self._extract_image(document)
        except Exception as e:
            handle_document_processing_error(e, document.name, doc_format, logger)

    def _extract_json(self, document: ClaimDocument) -> str:
        data = json.loads(document.as_text())
        return json.dumps(data, indent=2, ensure_ascii=False)

    def _extract_csv(self, document: ClaimDocument) -> str:
        text = document.as_text()
        rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
        headers = rows[0] if rows else []
        data_rows = max(len(rows) - 1, 0)
        return f"CSV Data ({data_rows} rows):\nHeaders: {', '.join(headers)}\n\n{text}"

    def _extract_pdf(self, document: ClaimDocument) -> str:
        libs = self.libraries.load()
        if libs.pypdf2 is None and libs.pdfplumber is None:
            raise DocumentProcessingError.library_unavailable(
                "PyPDF2/pdfplumber", ImportError("Install at least one: pip install PyPDF2 pdfplumber")
            )

        raw = document.as_bytes()
        pages: List[str] = []

        # PyPDF2 first (faster), pdfplumber for complex layouts
        if libs.pypdf2 is not None:
            try:
                title, author, pages = self._read_pdf_pypdf2(libs.pypdf2, raw)
                if any(page.strip() for page in pages):
                    return self._format_pdf(document.name, title, author, pages)
                logger.warning("PyPDF2 returned empty text, trying pdfplumber")
            except Exception as e:
                if libs.pdfplumber is None:
                    raise
                logger.warning(f"PyPDF2 extraction failed: {str(e)}, trying pdfplumber")

        if libs.pdfplumber is not None:
            title, author, pages = self._read_pdf_pdfplumber(libs.pdfplumber, raw)
            return self._format_pdf(document.name, title, author, pages)

        return self._format_pdf(document.name, None, None, pages)

    @staticmethod
    def _read_pdf_pypdf2(pypdf2, raw: bytes):
        reader = pypdf2.PdfReader(io.BytesIO(raw))
        metadata = reader.metadata
        title = getattr(metadata, "title", None) if metadata else None
        author = getattr(metadata, "author", None) if metadata else None
        pages = [page.extract_text() or "" for page in reader.pages]
        return title, author, pages

    @staticmethod
    def _read_pdf_pdfplumber(pdfplumber, raw: bytes):
        with pdfplumber.open(io.BytesIO(raw)) as pdf:
            metadata = pdf.metadata or {}
            pages = [page.extract_text() or "" for page in pdf.pages]
        return metadata.get("Title"), metadata.get("Author"), pages

    @staticmethod
    def _format_pdf(name: str, title: Optional[str], author: Optional[str], pages: List[str]) -> str:
        parts = [
            f"PDF Document: {name}",
            f"Title: {title or 'Unknown'}",
            f"Author: {author or 'Unknown'}",
            f"Pages: {len(pages)}",
            "",
        ]
        for page_num, page_text in enumerate(pages, start=1):
            if page_text.strip():
                parts.append(f"--- Page {page_num} ---")
                parts.append(page_text.strip())
                parts.append("")
        return "\n".join(parts).strip()

    def _extract_word(self, document: ClaimDocument) -> str:
        libs = self.libraries.load()
        if libs.docx is None:
            raise DocumentProcessingError.library_unavailable(
                "python-docx", ImportError("pip install python-docx")
            )

        word_doc = libs.docx.Document(io.BytesIO(document.as_bytes()))
        paragraphs = [p.text for p in word_doc.paragraphs if p.text.strip()]
        for table in getattr(word_doc, "tables", []):
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    paragraphs.append(" | ".join(cells))

        properties = getattr(word_doc, "core_properties", None)
        title = getattr(properties, "title", None) or "Unknown"
        author = getattr(properties, "author", None) or "Unknown"

        header = f"Word Document: {document.name}\nTitle: {title}\nAuthor: {author}\n\n"
        return header + "\n".join(paragraphs)

    async def _extract_image(self, document: ClaimDocument) -> str:
        engine = self.libraries.ocr_engine()
        text = await asyncio.to_thread(engine.recognize, document.as_bytes())
        text = (text or "").strip()
        if not text:
            # An unreadable photo should not abort the claim
            logger.warning(f"OCR found no text in image {document.name}")
            return ""
        logger.info(f"OCR extracted {len(text)} characters from {document.name}")
        return text

    def cleanup(self) -> None:
        self.libraries.cleanup()
