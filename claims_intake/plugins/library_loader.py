"""Lazily loaded, process-wide handles to the document parsing libraries."""

import importlib
import io
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..utils.errors import DocumentProcessingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedLibraries:
    """Module handles resolved on first use. A None entry means not installed."""
    pypdf2: Any = None
    pdfplumber: Any = None
    docx: Any = None


class OCREngine:
    """
    Reusable OCR worker over pytesseract and Pillow.

    Created once by DocumentLibraries and shared by all extraction calls
    until DocumentLibraries.cleanup() is called.
    """

    def __init__(self, tesseract: Any, image_module: Any, language: str = "eng"):
        self._tesseract = tesseract
        self._image = image_module
        self.language = language

    def recognize(self, image_bytes: bytes) -> str:
        with self._image.open(io.BytesIO(image_bytes)) as image:
            if getattr(image, "mode", "RGB") not in ("RGB", "L"):
                image = image.convert("RGB")
            return self._tesseract.image_to_string(image, lang=self.language) or ""


class DocumentLibraries:
    """
    Init-once loader for PDF, Word and OCR libraries.

    The parsing libraries are imported on the first call to ``load()`` and
    the OCR engine on the first call to ``ocr_engine()``. Both paths are
    guarded by a lock so concurrent callers never import twice; after
    initialization the handles are read-only and shared.
    """

    def __init__(self, importer: Callable[[str], Any] = importlib.import_module, ocr_language: str = "eng"):
        self._import = importer
        self._ocr_language = ocr_language
        self._lock = threading.Lock()
        self._libraries: Optional[LoadedLibraries] = None
        self._ocr: Optional[OCREngine] = None
        self.load_count = 0
        self.ocr_load_count = 0

    @property
    def is_loaded(self) -> bool:
        return self._libraries is not None

    def load(self) -> LoadedLibraries:
        """Import the PDF and Word libraries once and return the cached handles."""
        if self._libraries is not None:
            return self._libraries

        with self._lock:
            if self._libraries is None:
                self.load_count += 1
                self._libraries = LoadedLibraries(
                    pypdf2=self._optional_import("PyPDF2"),
                    pdfplumber=self._optional_import("pdfplumber"),
                    docx=self._optional_import("docx"),
                )
                logger.info("Document processing libraries loaded")
        return self._libraries

    def ocr_engine(self) -> OCREngine:
        """
        Return the shared OCR engine, creating it on first use.

        Raises:
            DocumentProcessingError: If pytesseract or Pillow cannot be imported
        """
        if self._ocr is not None:
            return self._ocr

        with self._lock:
            if self._ocr is None:
                self.ocr_load_count += 1
                try:
                    tesseract = self._import("pytesseract")
                    image_module = self._import("PIL.Image")
                except ImportError as e:
                    raise DocumentProcessingError.library_unavailable("pytesseract", e) from e
                self._ocr = OCREngine(tesseract, image_module, language=self._ocr_language)
                logger.info("OCR engine initialized")
        return self._ocr

    def cleanup(self) -> None:
        """Release the OCR engine and library handles. The next call reloads them."""
        with self._lock:
            if self._ocr is not None:
                logger.info("OCR engine released")
            self._ocr = None
            self._libraries = None

    def _optional_import(self, name: str) -> Any:
        try:
            return self._import(name)
        except ImportError as e:
            logger.warning(f"{name} not available: {e}")
            return None


# Process-wide instance used when no handle is injected
document_libraries = DocumentLibraries()
