"""Tests for document text extraction and the init-once library loader."""

import asyncio
import json
import threading
from types import SimpleNamespace

import pytest

from claims_intake.models.claim import ClaimDocument
from claims_intake.plugins.library_loader import DocumentLibraries
from claims_intake.plugins.text_extractor import SUPPORTED_FILE_TYPES, TextExtractorPlugin
from claims_intake.utils.errors import DocumentProcessingError, ErrorType
from conftest import fake_importer


def fake_pdf_module(pages, title="Incident Report", author="Jane Doe"):
    reader = SimpleNamespace(
        metadata=SimpleNamespace(title=title, author=author),
        pages=[SimpleNamespace(extract_text=lambda text=text: text) for text in pages],
    )
    return SimpleNamespace(PdfReader=lambda stream: reader)


def fake_docx_module(paragraphs):
    document = SimpleNamespace(
        paragraphs=[SimpleNamespace(text=text) for text in paragraphs],
        tables=[],
        core_properties=SimpleNamespace(title="Claim Form", author=None),
    )
    return SimpleNamespace(Document=lambda stream: document)


def importer_with(modules, calls=None):
    base = fake_importer(calls=calls)

    def importer(name):
        if name in modules:
            if calls is not None:
                calls.append(name)
            module = modules[name]
            if module is None:
                raise ImportError(f"No module named {name!r}")
            return module
        return base(name)

    return importer


@pytest.mark.asyncio
async def test_plain_text_passes_through(libraries):
    extractor = TextExtractorPlugin(libraries=libraries)
    document = ClaimDocument(name="notes.txt", content="Rear bumper damage".encode("utf-8"), media_type="text/plain")

    assert await extractor.extract_text(document) == "Rear bumper damage"


@pytest.mark.asyncio
async def test_json_is_pretty_printed(libraries):
    extractor = TextExtractorPlugin(libraries=libraries)
    document = ClaimDocument(name="claim.json", content=b'{"claimNumber":"CLM-001","amount":150000}')

    text = await extractor.extract_text(document)

    assert json.loads(text) == {"claimNumber": "CLM-001", "amount": 150000}
    assert '\n  "claimNumber": "CLM-001"' in text


@pytest.mark.asyncio
async def test_csv_gets_header_summary(libraries):
    extractor = TextExtractorPlugin(libraries=libraries)
    content = "item,amount\nbumper,100000\npaint,50000\n"
    document = ClaimDocument(name="estimate.csv", content=content.encode("utf-8"), media_type="text/csv")

    text = await extractor.extract_text(document)

    assert text.startswith("CSV Data (2 rows):\nHeaders: item, amount\n\n")
    assert text.endswith(content)


@pytest.mark.asyncio
async def test_invalid_json_is_an_extraction_failure(libraries):
    extractor = TextExtractorPlugin(libraries=libraries)

    with pytest.raises(DocumentProcessingError) as exc_info:
        await extractor.extract_text(ClaimDocument(name="claim.json", content=b"{not json"))
    assert exc_info.value.error_type == ErrorType.TEXT_EXTRACTION_FAILED
    assert exc_info.value.context.details == {"filename": "claim.json", "doc_type": "json"}


@pytest.mark.asyncio
@pytest.mark.parametrize("name,media_type", [
    ("archive.zip", "application/zip"),
    ("spreadsheet.xlsx", ""),
    ("README", ""),
])
async def test_unsupported_formats_are_rejected(libraries, name, media_type):
    extractor = TextExtractorPlugin(libraries=libraries)

    with pytest.raises(DocumentProcessingError) as exc_info:
        await extractor.extract_text(ClaimDocument(name=name, content=b"data", media_type=media_type))
    assert exc_info.value.error_type == ErrorType.UNSUPPORTED_FORMAT


def test_format_detection_prefers_media_type():
    detect = TextExtractorPlugin.detect_format
    assert detect(ClaimDocument(name="scan.bin", content=b"", media_type="image/png")) == "image"
    assert detect(ClaimDocument(name="upload", content=b"", media_type="application/pdf; charset=binary")) == "pdf"
    assert detect(ClaimDocument(name="Report.DOCX", content=b"")) == "word"
    assert ".pdf" in SUPPORTED_FILE_TYPES and ".zip" not in SUPPORTED_FILE_TYPES


@pytest.mark.asyncio
async def test_image_ocr_text_is_stripped(libraries):
    extractor = TextExtractorPlugin(libraries=libraries)
    document = ClaimDocument(name="report.png", content=b"\x89PNG", media_type="image/png")

    assert await extractor.extract_text(document) == "Police report 12345"


@pytest.mark.asyncio
async def test_image_without_text_yields_empty_string():
    libraries = DocumentLibraries(importer=fake_importer(ocr_text="   \n"))
    extractor = TextExtractorPlugin(libraries=libraries)

    assert await extractor.extract_text(ClaimDocument(name="photo.jpg", content=b"\xff\xd8")) == ""


@pytest.mark.asyncio
async def test_missing_ocr_library_is_reported():
    libraries = DocumentLibraries(importer=fake_importer(missing=("pytesseract",)))
    extractor = TextExtractorPlugin(libraries=libraries)

    with pytest.raises(DocumentProcessingError) as exc_info:
        await extractor.extract_text(ClaimDocument(name="photo.jpg", content=b"\xff\xd8"))
    assert exc_info.value.error_type == ErrorType.LIBRARY_LOAD_FAILED


@pytest.mark.asyncio
async def test_pdf_pages_are_formatted():
    libraries = DocumentLibraries(importer=importer_with({
        "PyPDF2": fake_pdf_module(["Page one text", "", "Page three text"]),
        "pdfplumber": None,
    }))
    extractor = TextExtractorPlugin(libraries=libraries)

    text = await extractor.extract_text(ClaimDocument(name="report.pdf", content=b"%PDF-1.4"))

    assert text == (
        "PDF Document: report.pdf\n"
        "Title: Incident Report\n"
        "Author: Jane Doe\n"
        "Pages: 3\n"
        "\n"
        "--- Page 1 ---\n"
        "Page one text\n"
        "\n"
        "--- Page 3 ---\n"
        "Page three text"
    )


@pytest.mark.asyncio
async def test_pdf_without_any_library_is_reported():
    libraries = DocumentLibraries(importer=importer_with({"PyPDF2": None, "pdfplumber": None}))
    extractor = TextExtractorPlugin(libraries=libraries)

    with pytest.raises(DocumentProcessingError) as exc_info:
        await extractor.extract_text(ClaimDocument(name="report.pdf", content=b"%PDF-1.4"))
    assert exc_info.value.error_type == ErrorType.LIBRARY_LOAD_FAILED


@pytest.mark.asyncio
async def test_word_document_paragraphs():
    libraries = DocumentLibraries(importer=importer_with({
        "docx": fake_docx_module(["Claimant: Jane Doe", "  ", "Damage: rear bumper"]),
    }))
    extractor = TextExtractorPlugin(libraries=libraries)

    text = await extractor.extract_text(ClaimDocument(name="form.docx", content=b"PK"))

    assert text == (
        "Word Document: form.docx\nTitle: Claim Form\nAuthor: Unknown\n\n"
        "Claimant: Jane Doe\nDamage: rear bumper"
    )


@pytest.mark.asyncio
async def test_libraries_load_once_across_documents():
    calls = []
    libraries = DocumentLibraries(importer=importer_with({
        "PyPDF2": fake_pdf_module(["Some text"]),
    }, calls=calls))
    extractor = TextExtractorPlugin(libraries=libraries)

    await asyncio.gather(*[
        extractor.extract_text(ClaimDocument(name=f"r{i}.pdf", content=b"%PDF")) for i in range(5)
    ])
    await extractor.extract_text(ClaimDocument(name="a.png", content=b"x"))
    await extractor.extract_text(ClaimDocument(name="b.png", content=b"x"))

    assert libraries.load_count == 1
    assert libraries.ocr_load_count == 1
    assert calls.count("PyPDF2") == 1
    assert calls.count("pytesseract") == 1


def test_concurrent_threads_share_one_load():
    libraries = DocumentLibraries(importer=fake_importer())
    barrier = threading.Barrier(8)
    loaded = []

    def worker():
        barrier.wait()
        loaded.append(libraries.load())
        libraries.ocr_engine()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert libraries.load_count == 1
    assert libraries.ocr_load_count == 1
    assert all(handle is loaded[0] for handle in loaded)


def test_cleanup_releases_and_next_use_reloads():
    libraries = DocumentLibraries(importer=fake_importer())
    first = libraries.ocr_engine()
    libraries.load()

    libraries.cleanup()
    assert libraries.is_loaded is False

    second = libraries.ocr_engine()
    libraries.load()
    assert second is not first
    assert libraries.load_count == 2
    assert libraries.ocr_load_count == 2
