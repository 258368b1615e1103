"""Tests for the FastAPI host."""

import pytest
from fastapi.testclient import TestClient

from claims_intake import service
from claims_intake.service import ClaimsProcessingSystem
from conftest import SAMPLE_CLAIM_TEXT, ScriptedAIClient, good_responses
from server import app


@pytest.fixture
def ai_client():
    return ScriptedAIClient(good_responses())


@pytest.fixture
def api(config, ai_client, libraries):
    service.set_system(ClaimsProcessingSystem(config=config, client=ai_client, libraries=libraries))
    yield TestClient(app)
    service.set_system(None)


def test_process_claim_from_text(api):
    response = api.post("/api/claims/process", data={"document_text": SAMPLE_CLAIM_TEXT, "user_id": "u-7"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["claim_data"]["claim_number"] == "CLM-001"
    assert body["fraud_assessment"]["risk_level"] == "medium"
    assert body["user_id"] == "u-7"
    assert body["persisted"] is True


def test_process_claim_from_uploaded_documents(api, ai_client):
    response = api.post(
        "/api/claims/process",
        data={"additional_info": "Claimant called on Monday"},
        files=[
            ("documents", ("claim.txt", SAMPLE_CLAIM_TEXT.encode("utf-8"), "text/plain")),
            ("documents", ("photo.png", b"\x89PNG", "image/png")),
        ],
    )

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    prompt = ai_client.calls[0]["messages"][-1]["content"]
    assert "--- Document: claim.txt ---" in prompt
    assert "--- Document: photo.png ---\nPolice report 12345" in prompt
    assert "--- Additional Information ---\nClaimant called on Monday" in prompt


def test_failed_run_is_still_a_200_with_status(api):
    response = api.post("/api/claims/process", data={"document_text": ""})

    assert response.status_code == 200
    assert response.json()["status"] == "failed"
    assert response.json()["error"] == "Document text is empty or invalid"


def test_extract_document(api):
    response = api.post("/api/documents/extract", files={"file": ("notes.txt", b"Rear bumper", "text/plain")})

    assert response.status_code == 200
    assert response.json() == {"filename": "notes.txt", "characters": 11, "text": "Rear bumper"}


def test_extract_unsupported_document(api):
    response = api.post("/api/documents/extract", files={"file": ("archive.zip", b"PK", "application/zip")})

    assert response.status_code == 415
    assert "Unsupported file format" in response.json()["detail"]


def test_extract_empty_upload(api):
    response = api.post("/api/documents/extract", files={"file": ("notes.txt", b"", "text/plain")})

    assert response.status_code == 400


def test_claim_lookup_listing_and_clear(api):
    processing_id = api.post("/api/claims/process", data={"document_text": SAMPLE_CLAIM_TEXT}).json()["processing_id"]

    response = api.get(f"/api/claims/{processing_id}")
    assert response.status_code == 200
    assert response.json()["processing_id"] == processing_id

    claims = api.get("/api/claims").json()["claims"]
    assert claims == [{
        "processing_id": processing_id,
        "timestamp": response.json()["timestamp"],
        "status": "completed",
        "claim_number": "CLM-001",
        "risk_level": "medium",
    }]

    assert api.get("/api/claims/claim_missing").status_code == 404

    assert api.delete("/api/claims").json() == {"status": "ok"}
    assert api.get("/api/claims").json() == {"claims": []}


def test_analytics(api):
    api.post("/api/claims/process", data={"document_text": SAMPLE_CLAIM_TEXT})

    analytics = api.get("/api/analytics").json()

    assert analytics["total_claims"] == 1
    assert analytics["risk_distribution"] == {"medium": 1}


def test_chat(api, ai_client):
    processing_id = api.post("/api/claims/process", data={"document_text": SAMPLE_CLAIM_TEXT}).json()["processing_id"]

    response = api.post("/api/chat", data={"query": "What happens next?", "processing_id": processing_id})

    assert response.json() == {"success": True, "response": "Your claim is being reviewed."}
    assert "CLM-001" in ai_client.calls[-1]["messages"][-1]["content"]

    history = api.get("/api/chat/history").json()["history"]
    assert history == [
        {"role": "user", "content": "What happens next?"},
        {"role": "assistant", "content": "Your claim is being reviewed."},
    ]


def test_chat_failure_is_reported(api):
    response = api.post("/api/chat", data={"query": "   "})

    assert response.json() == {"success": False, "error": "Query is empty or invalid"}


def test_health(api):
    body = api.get("/api/health").json()

    assert body["status"] == "ok"
    assert body["ai_enabled"] is True
    assert body["ai_connection"] == {"success": True, "response": "Hello"}
    assert ".pdf" in body["supported_file_types"]
    assert api.get("/healthz").json() == {"status": "ok"}
