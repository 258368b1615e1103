"""
Claims intake system entry points.

This module wires configuration, the AI client, the text extractor, the
orchestrator and the claims assistant together, and exposes the functions
a host (the FastAPI server, a script) calls:

- process_claim_complete(text, options) -> ProcessingResult
- extract_text_from_file(document) -> str
- generate_analytics() -> dict
"""

import logging
from typing import Any, Dict, List, Optional, Union

from .agents.assistant import ClaimsAssistantAgent
from .models.claim import ClaimDocument
from .models.result import ProcessingOptions, ProcessingResult, StageOutcome
from .orchestration.pipeline import ClaimsOrchestrator
from .plugins.library_loader import DocumentLibraries
from .plugins.text_extractor import SUPPORTED_FILE_TYPES, TextExtractorPlugin
from .storage.claim_repository import ClaimRepository
from .storage.record_store import FileRecordStore, InMemoryRecordStore, RecordStore
from .utils.bedrock_client import BedrockClient
from .utils.config import Config, StorageConfig
from .utils.errors import ClaimsProcessingError, ErrorContext, ErrorType
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)


def build_record_store(storage: StorageConfig) -> RecordStore:
    if storage.backend == "file":
        return FileRecordStore(data_dir=storage.data_dir)
    if storage.backend != "memory":
        logger.warning(f"Unknown storage backend '{storage.backend}', using in-memory store")
    return InMemoryRecordStore()


class ClaimsProcessingSystem:
    """
    Facade over the claims intake pipeline.

    Holds one AI client, one text extractor (with its lazily loaded
    libraries), one orchestrator and one assistant. Call ``cleanup()``
    once when the host shuts down, not after each claim.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        client: Optional[Any] = None,
        record_store: Optional[RecordStore] = None,
        repository: Optional[ClaimRepository] = None,
        libraries: Optional[DocumentLibraries] = None,
    ):
        self.config = config or Config.load()
        self.client = client or BedrockClient(config=self.config.ai, region=self.config.aws_region)
        self.record_store = record_store or build_record_store(self.config.storage)

        self.extractor = TextExtractorPlugin(libraries=libraries)
        self.orchestrator = ClaimsOrchestrator(
            client=self.client,
            config=self.config,
            record_store=self.record_store,
            repository=repository,
        )
        self.assistant = ClaimsAssistantAgent(
            self.client, history_limit=self.config.processing.chat_history_limit
        )
        logger.info("ClaimsProcessingSystem initialized")

    @property
    def ai_enabled(self) -> bool:
        return bool(getattr(self.client, "is_enabled", True))

    async def process_claim_complete(
        self,
        document_text: str,
        options: Union[ProcessingOptions, Dict[str, Any], None] = None,
    ) -> ProcessingResult:
        if not isinstance(options, ProcessingOptions):
            options = ProcessingOptions.from_dict(options)
        return await self.orchestrator.process_claim_complete(document_text, options)

    async def extract_text_from_file(self, document: ClaimDocument) -> str:
        """
        Extract plain text from one uploaded document.

        Raises:
            DocumentProcessingError: Unsupported format or extraction failure
        """
        return await self.extractor.extract_text(document)

    async def process_claim_documents(
        self,
        documents: List[ClaimDocument],
        additional_info: str = "",
        options: Union[ProcessingOptions, Dict[str, Any], None] = None,
    ) -> ProcessingResult:
        """
        Extract text from several documents and process them as one claim.

        A document that cannot be read is skipped with a warning; the run
        only fails (at extraction) when no text at all could be gathered.
        """
        sections = []
        for document in documents:
            try:
                text = await self.extract_text_from_file(document)
            except ClaimsProcessingError as e:
                logger.warning(f"Skipping document {document.name}: {str(e)}")
                continue
            if text.strip():
                sections.append(f"--- Document: {document.name} ---\n{text.strip()}")

        if additional_info and additional_info.strip():
            sections.append(f"--- Additional Information ---\n{additional_info.strip()}")

        logger.info(f"Combined text from {len(sections)} sections of {len(documents)} documents")
        return await self.process_claim_complete("\n\n".join(sections), options)

    def generate_analytics(self) -> Dict[str, Any]:
        return self.orchestrator.generate_analytics()

    async def chat_query(self, query: str, processing_id: Optional[str] = None) -> StageOutcome:
        """Answer a question, using a processed claim as context when its id is given."""
        claim_context = None
        if processing_id:
            result = self.get_claim(processing_id)
            if result is not None:
                claim_context = result.to_dict()
        return await self.assistant.process_query(query, claim_context)

    def get_chat_history(self) -> List[Dict[str, str]]:
        return self.assistant.get_history()

    def get_claim(self, processing_id: str) -> Optional[ProcessingResult]:
        return self.orchestrator.get_claim(processing_id)

    def get_all_claims(self) -> List[ProcessingResult]:
        return self.orchestrator.get_all_claims()

    def clear_all_claims(self) -> None:
        self.orchestrator.clear_all_claims()
        self.assistant.clear_history()

    @staticmethod
    def supported_file_types() -> List[str]:
        return list(SUPPORTED_FILE_TYPES)

    async def test_connection(self) -> Dict[str, Any]:
        return await self.client.test_connection()

    def cleanup(self) -> None:
        """Release the OCR engine and document library handles."""
        self.extractor.cleanup()
        logger.info("ClaimsProcessingSystem cleaned up")


# Global instance (initialized on first use)
_system: Optional[ClaimsProcessingSystem] = None


def _initialize_system() -> ClaimsProcessingSystem:
    """
    Initialize the process-wide system on first use.

    Import stays cheap: nothing is configured until an entry point is called.
    """
    global _system

    if _system is not None:
        return _system

    try:
        config = Config.load()
        setup_logging(level=config.logging.level, log_format=config.logging.format, log_file=config.logging.file or None)
        logger.info(f"Initializing claims intake system: region={config.aws_region}, model={config.ai.model_id}")
        _system = ClaimsProcessingSystem(config=config)
        logger.info("System initialization complete")
        return _system

    except Exception as e:
        logger.error(f"System initialization failed: {str(e)}", exc_info=True)
        raise ClaimsProcessingError(
            ErrorContext(
                error_type=ErrorType.INITIALIZATION_FAILED,
                message=f"Failed to initialize claims intake system: {str(e)}",
                recoverable=False,
                original_exception=e,
            )
        ) from e


def get_system() -> ClaimsProcessingSystem:
    return _initialize_system()


def set_system(system: Optional[ClaimsProcessingSystem]) -> None:
    """Replace (or with None, drop) the process-wide system."""
    global _system
    _system = system


async def process_claim_complete(
    document_text: str,
    options: Union[ProcessingOptions, Dict[str, Any], None] = None,
) -> ProcessingResult:
    return await get_system().process_claim_complete(document_text, options)


async def extract_text_from_file(document: ClaimDocument) -> str:
    return await get_system().extract_text_from_file(document)


def generate_analytics() -> Dict[str, Any]:
    return get_system().generate_analytics()


def shutdown_system() -> None:
    """Release shared resources of the process-wide system, if it was started."""
    if _system is not None:
        _system.cleanup()
