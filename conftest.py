"""Shared fixtures: a scripted AI client and fake document libraries."""

import asyncio
import json
from types import SimpleNamespace

import pytest

from claims_intake.plugins.library_loader import DocumentLibraries
from claims_intake.utils.config import Config
from claims_intake.utils.errors import AIClientError, ErrorType

# First line of each stage prompt -> stage key
STAGE_PREFIXES = (
    ("Extract the claim information", "extraction"),
    ("Assess the fraud risk", "fraud"),
    ("Categorize and route", "categorization"),
    ("Write an executive summary", "summary"),
    ("Write a message to the claimant", "customer_response"),
    ("Write an internal memo", "memo"),
    ("Compare this claim with the historical", "anomalies"),
    ("Determine the insurance claim type", "claim_type"),
)

SAMPLE_CLAIM_TEXT = (
    "Claim Number: CLM-001\nClaimant: Jane Doe\nDamage: rear bumper\nEstimated Amount: 150000"
)

EXTRACTION_RESPONSE = {
    "claimNumber": "CLM-001",
    "policyNumber": None,
    "claimantName": "Jane Doe",
    "incidentDate": None,
    "claimDate": None,
    "claimType": "auto",
    "incidentLocation": None,
    "damageDescription": "rear bumper",
    "estimatedAmount": 150000,
    "witnessInfo": None,
    "medicalTreatment": None,
    "vehicleInfo": {"make": None, "model": None, "year": None, "plateNumber": None},
    "injuries": [],
}

FRAUD_RESPONSE = {
    "riskLevel": "medium",
    "riskScore": 40,
    "fraudIndicators": [
        {"indicator": "No incident date", "weight": "medium", "explanation": "Date of loss missing"}
    ],
    "legitimacyIndicators": [{"indicator": "Specific damage described", "explanation": "Rear bumper"}],
    "recommendedActions": ["Request incident date"],
    "investigationAreas": ["Incident timeline"],
    "overallAssessment": "Plausible claim with missing details.",
    "confidence": "medium",
}

CATEGORIZATION_RESPONSE = {
    "category": {"primary": "auto_collision", "secondary": None, "complexity": "standard", "confidence": "high"},
    "priority": {"level": "normal", "score": 5, "reasoning": "Routine collision", "factors": ["amount"]},
    "routing": {
        "department": "auto_claims",
        "assignmentType": "junior_adjuster",
        "specialHandling": [],
        "estimatedHandlingTime": "3-5 business days",
    },
    "processingRecommendations": ["Verify repair estimate"],
    "nextSteps": ["Contact claimant", "Schedule inspection"],
}

SUMMARY_RESPONSE = {
    "executiveSummary": "Auto claim CLM-001 from Jane Doe for rear bumper damage of 150000.",
    "keyDetails": {
        "claimant": "Jane Doe",
        "incident": "Rear bumper damage",
        "damages": "150000",
        "riskFactors": "Missing incident date",
    },
    "processingStatus": "Under review",
    "recommendations": ["Request incident date"],
    "timeline": "3-5 business days",
    "specialNotes": [],
}

MEMO_RESPONSE = {
    "to": "Auto Claims Team",
    "from": "Claims Intake System",
    "date": "2026-01-01",
    "subject": "CLM-001 rear bumper claim",
    "priority": "normal",
    "summary": "Medium-risk auto claim awaiting incident date.",
    "keyFindings": ["Incident date missing"],
    "recommendations": ["Request incident date"],
    "requiredActions": [{"action": "Call claimant", "responsible": "Adjuster", "deadline": "2 days"}],
    "attachments": [],
}


def stage_of(messages):
    user_turns = [m["content"] for m in messages if m["role"] == "user"]
    last = user_turns[-1] if user_turns else ""
    for prefix, stage in STAGE_PREFIXES:
        if last.startswith(prefix):
            return stage
    return "chat"


class ScriptedAIClient:
    """
    In-process stand-in for BedrockClient.

    ``responses`` maps a stage key to a string (returned), an exception
    (raised) or an async callable taking the messages (awaited).
    """

    def __init__(self, responses=None, enabled=True):
        self.responses = dict(responses or {})
        self.calls = []
        self.is_enabled = enabled

    async def complete(self, messages, temperature=None, max_tokens=None):
        stage = stage_of(messages)
        self.calls.append({"stage": stage, "messages": messages, "temperature": temperature})
        response = self.responses.get(stage)
        if response is None:
            raise AIClientError.of_type(ErrorType.AI_PROVIDER_ERROR, operation=f"no scripted {stage} response")
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return await response(messages)
        return response

    async def test_connection(self):
        return {"success": True, "response": "Hello"}

    def stages_called(self):
        return [call["stage"] for call in self.calls]


def good_responses():
    return {
        "extraction": "```json\n" + json.dumps(EXTRACTION_RESPONSE) + "\n```",
        "fraud": json.dumps(FRAUD_RESPONSE),
        "categorization": "Here is the categorization:\n" + json.dumps(CATEGORIZATION_RESPONSE),
        "summary": json.dumps(SUMMARY_RESPONSE),
        "customer_response": "Dear Jane Doe,\n\nWe have received your claim CLM-001.",
        "memo": json.dumps(MEMO_RESPONSE),
        "chat": "Your claim is being reviewed.",
    }


def network_error():
    return AIClientError.of_type(ErrorType.AI_NETWORK_ERROR, operation="complete", error=ConnectionError("down"))


async def slow_response(messages):
    await asyncio.sleep(5)
    return json.dumps(MEMO_RESPONSE)


class FakeImage:
    mode = "RGB"

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def convert(self, mode):
        return self


def fake_importer(ocr_text="", calls=None, missing=()):
    """Importer for DocumentLibraries that returns stand-in modules."""

    def importer(name):
        if calls is not None:
            calls.append(name)
        if name in missing:
            raise ImportError(f"No module named {name!r}")
        if name == "pytesseract":
            return SimpleNamespace(image_to_string=lambda image, lang="eng": ocr_text)
        if name == "PIL.Image":
            return SimpleNamespace(open=lambda buffer: FakeImage())
        return SimpleNamespace(__name__=name)

    return importer


@pytest.fixture
def config():
    cfg = Config()
    cfg.processing.memo_timeout_seconds = 0.2
    return cfg


@pytest.fixture
def client():
    return ScriptedAIClient(good_responses())


@pytest.fixture
def libraries():
    return DocumentLibraries(importer=fake_importer(ocr_text="  Police report 12345  "))
