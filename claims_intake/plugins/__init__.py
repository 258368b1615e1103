"""Semantic Kernel plugins for claim document processing."""

from .library_loader import DocumentLibraries, document_libraries
from .text_extractor import TextExtractorPlugin, SUPPORTED_FILE_TYPES

__all__ = [
    'DocumentLibraries',
    'document_libraries',
    'TextExtractorPlugin',
    'SUPPORTED_FILE_TYPES'
]
