"""Tests for the system facade and the module-level entry points."""

import logging

import pytest

from claims_intake import service
from claims_intake.models.claim import ClaimDocument
from claims_intake.service import ClaimsProcessingSystem, build_record_store
from claims_intake.storage import FileRecordStore, InMemoryRecordStore
from claims_intake.utils.config import StorageConfig
from claims_intake.utils.logging import reset_context, set_context, setup_logging
from conftest import SAMPLE_CLAIM_TEXT, ScriptedAIClient, good_responses


@pytest.fixture
def system(config, libraries):
    return ClaimsProcessingSystem(config=config, client=ScriptedAIClient(good_responses()), libraries=libraries)


@pytest.mark.asyncio
async def test_options_dict_is_accepted(system):
    result = await system.process_claim_complete(
        SAMPLE_CLAIM_TEXT, {"generate_internal_memo": False, "user_id": "u-1"}
    )

    assert result.status == "completed"
    assert result.internal_memo is None
    assert result.user_id == "u-1"


@pytest.mark.asyncio
async def test_unreadable_documents_are_skipped(system):
    documents = [
        ClaimDocument(name="claim.txt", content=SAMPLE_CLAIM_TEXT.encode("utf-8")),
        ClaimDocument(name="archive.zip", content=b"PK"),
    ]

    result = await system.process_claim_documents(documents)

    assert result.status == "completed"
    prompt = system.client.calls[0]["messages"][-1]["content"]
    assert "--- Document: claim.txt ---" in prompt
    assert "archive.zip" not in prompt


@pytest.mark.asyncio
async def test_no_readable_documents_fails_at_extraction(system):
    result = await system.process_claim_documents([ClaimDocument(name="archive.zip", content=b"PK")])

    assert result.status == "failed"
    assert result.failed_stage == "extracting"
    assert system.client.calls == []


@pytest.mark.asyncio
async def test_chat_without_known_claim_has_no_context(system):
    outcome = await system.chat_query("How long does a claim take?", processing_id="claim_unknown")

    assert outcome.success is True
    assert "CLAIM CONTEXT" not in system.client.calls[-1]["messages"][-1]["content"]


@pytest.mark.asyncio
async def test_clear_all_claims_resets_history(system):
    await system.process_claim_complete(SAMPLE_CLAIM_TEXT)
    await system.chat_query("Hello?")

    system.clear_all_claims()

    assert system.get_all_claims() == []
    assert system.assistant.history == []


def test_build_record_store(tmp_path):
    assert isinstance(build_record_store(StorageConfig(backend="memory")), InMemoryRecordStore)
    assert isinstance(build_record_store(StorageConfig(backend="unknown")), InMemoryRecordStore)
    store = build_record_store(StorageConfig(backend="file", data_dir=str(tmp_path)))
    assert isinstance(store, FileRecordStore)


@pytest.mark.asyncio
async def test_module_entry_points_use_the_installed_system(system):
    service.set_system(system)
    try:
        result = await service.process_claim_complete(SAMPLE_CLAIM_TEXT)
        text = await service.extract_text_from_file(ClaimDocument(name="n.txt", content=b"hello"))

        assert result.status == "completed"
        assert text == "hello"
        assert service.generate_analytics()["total_claims"] == 1
        assert service.get_system() is system
    finally:
        service.shutdown_system()
        service.set_system(None)


def test_setup_logging_stamps_processing_id(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    log_file = tmp_path / "logs" / "claims.log"
    try:
        setup_logging(level="INFO", log_file=str(log_file))
        logger = logging.getLogger("claims_intake.test")
        logger.info("outside a run")
        token = set_context(processing_id="claim_1_abc")
        try:
            logger.info("inside a run")
        finally:
            reset_context(token)
        for handler in root.handlers:
            handler.flush()

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert lines[0].endswith("[-] outside a run")
        assert lines[1].endswith("[claim_1_abc] inside a run")
        assert logging.getLogger("botocore").level == logging.WARNING
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
