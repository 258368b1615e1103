"""FastAPI host for the claims intake pipeline (JSON API only)."""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from claims_intake import service
from claims_intake.models.claim import ClaimDocument
from claims_intake.models.result import ProcessingOptions
from claims_intake.utils.errors import DocumentProcessingError, ErrorType

APP_TITLE = "Claims Intake API"
MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB", "10"))
MAX_FILES = int(os.getenv("MAX_FILES", "10"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    service.shutdown_system()


app = FastAPI(title=APP_TITLE, lifespan=lifespan)


async def _read_upload(file: UploadFile) -> ClaimDocument:
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail=f"{file.filename} is empty.")
    if len(data) > MAX_FILE_SIZE_MB * 1024 * 1024:
        raise HTTPException(
            status_code=413,
            detail=f"{file.filename} exceeds the per-file limit of {MAX_FILE_SIZE_MB} MB.",
        )
    return ClaimDocument(name=file.filename or "upload", content=data, media_type=file.content_type or "")


def _json(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(jsonable_encoder(data), status_code=status_code)


@app.post("/api/claims/process")
async def process_claim(
    document_text: str = Form(default=""),
    additional_info: str = Form(default=""),
    customer_friendly: bool = Form(default=True),
    user_id: Optional[str] = Form(default=None),
    documents: List[UploadFile] = File(default=[]),
) -> JSONResponse:
    if len(documents) > MAX_FILES:
        raise HTTPException(status_code=400, detail=f"Too many files. Max {MAX_FILES} allowed.")

    options = ProcessingOptions(
        additional_context=additional_info if not documents else "",
        customer_friendly=customer_friendly,
        user_id=user_id,
    )
    system = service.get_system()

    if documents:
        uploads = [await _read_upload(file) for file in documents]
        extra = "\n\n".join(part for part in (document_text.strip(), additional_info.strip()) if part)
        result = await system.process_claim_documents(uploads, additional_info=extra, options=options)
    else:
        result = await system.process_claim_complete(document_text, options)

    # A failed run is still a well-formed result; the caller reads status/error
    return _json(result.to_dict())


@app.post("/api/documents/extract")
async def extract_document(file: UploadFile = File(...)) -> JSONResponse:
    document = await _read_upload(file)
    try:
        text = await service.get_system().extract_text_from_file(document)
    except DocumentProcessingError as e:
        status = 415 if e.error_type == ErrorType.UNSUPPORTED_FORMAT else 422
        raise HTTPException(status_code=status, detail=str(e)) from e
    return _json({"filename": document.name, "characters": len(text), "text": text})


@app.get("/api/analytics")
async def analytics() -> JSONResponse:
    return _json(service.get_system().generate_analytics())


@app.get("/api/claims")
async def list_claims() -> JSONResponse:
    claims = [
        {
            "processing_id": r.processing_id,
            "timestamp": r.timestamp,
            "status": r.status,
            "claim_number": r.claim_data.claim_number if r.claim_data else None,
            "risk_level": r.fraud_assessment.risk_level if r.fraud_assessment else None,
        }
        for r in service.get_system().get_all_claims()
    ]
    return _json({"claims": claims})


@app.get("/api/claims/{processing_id}")
async def get_claim(processing_id: str) -> JSONResponse:
    result = service.get_system().get_claim(processing_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Claim not found.")
    return _json(result.to_dict())


@app.delete("/api/claims")
async def clear_claims() -> JSONResponse:
    service.get_system().clear_all_claims()
    return _json({"status": "ok"})


@app.post("/api/chat")
async def chat(
    query: str = Form(...),
    processing_id: Optional[str] = Form(default=None),
) -> JSONResponse:
    outcome = await service.get_system().chat_query(query, processing_id)
    body: Dict[str, Any] = {"success": outcome.success}
    if outcome.success:
        body["response"] = outcome.data
    else:
        body["error"] = outcome.error
    return _json(body)


@app.get("/api/chat/history")
async def chat_history() -> JSONResponse:
    return _json({"history": service.get_system().get_chat_history()})


@app.get("/api/health")
async def health() -> JSONResponse:
    system = service.get_system()
    connection = await system.test_connection()
    return _json({
        "status": "ok",
        "ai_enabled": system.ai_enabled,
        "ai_connection": connection,
        "supported_file_types": system.supported_file_types(),
    })


@app.get("/healthz")
async def healthz() -> Dict[str, str]:
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
