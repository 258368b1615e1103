"""Claim input and extracted claim data models."""

import re
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..utils.errors import StageValidationError

CLAIM_TYPES = ("auto", "health", "property", "life", "other")

# Older intake forms say "general" where "other" is meant
_CLAIM_TYPE_ALIASES = {"general": "other", "vehicle": "auto", "medical": "health", "home": "property"}

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%m-%d-%Y",
    "%m/%d/%Y",
    "%Y/%m/%d",
    "%d.%m.%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d %Y",
)

_CURRENCY_PATTERN = re.compile(r"[₦$£€¥,\s]|NGN|naira|USD|EUR|GBP", re.IGNORECASE)
_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class ClaimDocument:
    """
    An uploaded file handed to the text extractor.

    Attributes:
        name: Original file name
        content: Raw bytes (or already-decoded text)
        media_type: Declared MIME type, may be empty
    """
    name: str
    content: Any
    media_type: str = ""

    @property
    def extension(self) -> str:
        _, dot, ext = self.name.lower().rpartition(".")
        return f".{ext}" if dot else ""

    @property
    def size(self) -> int:
        return len(self.content or b"")

    def as_bytes(self) -> bytes:
        if isinstance(self.content, str):
            return self.content.encode("utf-8")
        return bytes(self.content or b"")

    def as_text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        raw = bytes(self.content or b"")
        try:
            return raw.decode("utf-8-sig")
        except UnicodeDecodeError:
            return raw.decode("latin-1")


@dataclass(frozen=True)
class VehicleInfo:
    """Vehicle sub-record for auto claims."""
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[str] = None
    plate_number: Optional[str] = None

    def is_empty(self) -> bool:
        return not any((self.make, self.model, self.year, self.plate_number))


@dataclass(frozen=True)
class ExtractedClaimData:
    """
    Structured claim fields pulled out of free-form document text.

    Every field is optional. ``extracted_fields`` and ``missing_fields`` list
    the core fields that were / were not found, and ``confidence`` is the
    tier computed from the weighted field coverage.
    """
    claim_number: Optional[str] = None
    policy_number: Optional[str] = None
    claimant_name: Optional[str] = None
    incident_date: Optional[str] = None
    claim_date: Optional[str] = None
    claim_type: Optional[str] = None  # "auto" | "health" | "property" | "life" | "other"
    incident_location: Optional[str] = None
    damage_description: Optional[str] = None
    estimated_amount: Optional[float] = None
    witness_info: Optional[str] = None
    medical_treatment: Optional[str] = None
    vehicle: Optional[VehicleInfo] = None
    claimant_address: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    police_report_number: Optional[str] = None
    injuries: List[str] = field(default_factory=list)
    additional_info: Optional[str] = None
    extracted_fields: List[str] = field(default_factory=list)
    missing_fields: List[str] = field(default_factory=list)
    confidence: str = "low"  # "high" | "medium" | "low"
    confidence_score: float = 0.0

    CORE_FIELDS = (
        "claim_number",
        "policy_number",
        "claimant_name",
        "incident_date",
        "claim_date",
        "claim_type",
        "incident_location",
        "damage_description",
        "estimated_amount",
        "witness_info",
        "medical_treatment",
        "vehicle",
    )

    DETAIL_FIELDS = (
        "claimant_address",
        "contact_phone",
        "contact_email",
        "police_report_number",
        "injuries",
        "additional_info",
    )

    # AI key -> field name; later aliases only fill gaps
    KEY_MAP = (
        ("claimNumber", "claim_number"),
        ("policyNumber", "policy_number"),
        ("claimantName", "claimant_name"),
        ("incidentDate", "incident_date"),
        ("dateOfIncident", "incident_date"),
        ("claimDate", "claim_date"),
        ("claimType", "claim_type"),
        ("incidentLocation", "incident_location"),
        ("damageDescription", "damage_description"),
        ("incidentDescription", "damage_description"),
        ("estimatedAmount", "estimated_amount"),
        ("claimAmount", "estimated_amount"),
        ("witnessInfo", "witness_info"),
        ("medicalTreatment", "medical_treatment"),
        ("claimantAddress", "claimant_address"),
        ("contactPhone", "contact_phone"),
        ("contactEmail", "contact_email"),
        ("policeReportNumber", "police_report_number"),
        ("additionalInfo", "additional_info"),
    )

    @classmethod
    def from_ai_response(cls, data: Dict[str, Any]) -> "ExtractedClaimData":
        """
        Validate and clean the extraction stage's parsed JSON.

        Args:
            data: Parsed JSON object from the model

        Returns:
            ExtractedClaimData with normalised values and coverage metadata

        Raises:
            StageValidationError: If data is not an object or has no known fields
        """
        if not isinstance(data, dict):
            raise StageValidationError.invalid("claim extraction", "expected a JSON object")

        known_keys = {key for key, _ in cls.KEY_MAP} | {"vehicleInfo", "injuries", "witnesses"}
        if not known_keys.intersection(data.keys()):
            raise StageValidationError.invalid("claim extraction", "no recognised claim fields")

        raw: Dict[str, Any] = {}
        for key, name in cls.KEY_MAP:
            if raw.get(name) is None and data.get(key) is not None:
                raw[name] = data.get(key)

        witness_info = clean_string(raw.get("witness_info"))
        witnesses = data.get("witnesses")
        if witness_info is None and isinstance(witnesses, list):
            names = [w.strip() for w in witnesses if isinstance(w, str) and w.strip()]
            witness_info = ", ".join(names) or None

        vehicle = None
        vehicle_data = data.get("vehicleInfo")
        if isinstance(vehicle_data, dict):
            candidate = VehicleInfo(
                make=clean_string(vehicle_data.get("make")),
                model=clean_string(vehicle_data.get("model")),
                year=clean_string(vehicle_data.get("year")),
                plate_number=clean_string(vehicle_data.get("plateNumber")),
            )
            vehicle = None if candidate.is_empty() else candidate

        injuries = data.get("injuries")
        cleaned = {
            "claim_number": clean_string(raw.get("claim_number")),
            "policy_number": clean_string(raw.get("policy_number")),
            "claimant_name": clean_string(raw.get("claimant_name")),
            "incident_date": parse_date(raw.get("incident_date")),
            "claim_date": parse_date(raw.get("claim_date")),
            "claim_type": normalize_claim_type(raw.get("claim_type")),
            "incident_location": clean_string(raw.get("incident_location")),
            "damage_description": clean_string(raw.get("damage_description")),
            "estimated_amount": parse_amount(raw.get("estimated_amount")),
            "witness_info": witness_info,
            "medical_treatment": clean_string(raw.get("medical_treatment")),
            "vehicle": vehicle,
            "claimant_address": clean_string(raw.get("claimant_address")),
            "contact_phone": clean_phone(raw.get("contact_phone")),
            "contact_email": validate_email(raw.get("contact_email")),
            "police_report_number": clean_string(raw.get("police_report_number")),
            "injuries": [i.strip() for i in injuries if isinstance(i, str) and i.strip()]
            if isinstance(injuries, list) else [],
            "additional_info": clean_string(raw.get("additional_info")),
        }

        return cls._with_coverage(cleaned)

    @classmethod
    def _with_coverage(cls, cleaned: Dict[str, Any]) -> "ExtractedClaimData":
        extracted = [name for name in cls.CORE_FIELDS if cleaned[name] is not None]
        missing = [name for name in cls.CORE_FIELDS if cleaned[name] is None]
        score = extraction_confidence(cleaned)

        return cls(
            **cleaned,
            extracted_fields=extracted,
            missing_fields=missing,
            confidence=confidence_tier(score),
            confidence_score=round(score, 3),
        )

    @classmethod
    def merge(cls, results: List[Optional["ExtractedClaimData"]]) -> "ExtractedClaimData":
        """
        Combine the extractions of several documents belonging to one claim.

        Results are taken in order and each field keeps the first non-empty
        value seen. Coverage and confidence are recomputed for the merged claim.
        """
        names = cls.CORE_FIELDS + cls.DETAIL_FIELDS
        merged: Dict[str, Any] = {name: None for name in names}
        for result in results:
            if result is None:
                continue
            for name in names:
                value = getattr(result, name)
                if merged[name] in (None, []) and value not in (None, []):
                    merged[name] = value
        merged["injuries"] = list(merged["injuries"] or [])
        return cls._with_coverage(merged)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_prompt_dict(self) -> Dict[str, Any]:
        """Compact camelCase view embedded in downstream prompts."""
        data = {
            "claimNumber": self.claim_number,
            "policyNumber": self.policy_number,
            "claimantName": self.claimant_name,
            "incidentDate": self.incident_date,
            "claimDate": self.claim_date,
            "claimType": self.claim_type,
            "incidentLocation": self.incident_location,
            "damageDescription": self.damage_description,
            "estimatedAmount": self.estimated_amount,
            "witnessInfo": self.witness_info,
            "medicalTreatment": self.medical_treatment,
            "policeReportNumber": self.police_report_number,
            "injuries": list(self.injuries),
            "additionalInfo": self.additional_info,
            "missingFields": list(self.missing_fields),
            "extractionConfidence": self.confidence,
        }
        if self.vehicle:
            data["vehicleInfo"] = {
                "make": self.vehicle.make,
                "model": self.vehicle.model,
                "year": self.vehicle.year,
                "plateNumber": self.vehicle.plate_number,
            }
        return data


@dataclass(frozen=True)
class ClaimValidation:
    """
    Local completeness check of extracted claim data.

    Attributes:
        status: "complete" or "incomplete"
        missing_critical_fields: Critical fields the extraction did not find
        required_actions: What the claimant or handler must supply
    """
    status: str
    missing_critical_fields: List[str] = field(default_factory=list)
    required_actions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Field cleaning helpers

def clean_string(value: Any) -> Optional[str]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    if not cleaned or cleaned.lower() in ("null", "none", "n/a", "unknown"):
        return None
    return cleaned


def parse_amount(value: Any) -> Optional[float]:
    """Parse a monetary amount, dropping currency symbols and separators."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = _CURRENCY_PATTERN.sub("", value).strip()
        match = re.match(r"^-?\d+(\.\d+)?", cleaned)
        return float(match.group(0)) if match else None
    return None


def parse_date(value: Any) -> Optional[str]:
    """Normalise a date string to YYYY-MM-DD, or None when unparseable."""
    text = clean_string(value)
    if text is None:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def normalize_claim_type(value: Any) -> Optional[str]:
    text = clean_string(value)
    if text is None:
        return None
    text = text.lower()
    text = _CLAIM_TYPE_ALIASES.get(text, text)
    return text if text in CLAIM_TYPES else None


def clean_phone(value: Any) -> Optional[str]:
    text = clean_string(value)
    if text is None:
        return None
    cleaned = re.sub(r"[^\d+]", "", text)
    if len(re.sub(r"\D", "", cleaned)) < 10:
        return None
    return cleaned


def validate_email(value: Any) -> Optional[str]:
    text = clean_string(value)
    if text is None or not _EMAIL_PATTERN.match(text):
        return None
    return text.lower()


def extraction_confidence(cleaned: Dict[str, Any]) -> float:
    """Weighted share of key fields present, between 0 and 1."""
    critical = (
        ("claim_type", 2.0),
        ("incident_date", 2.0),
        ("damage_description", 2.0),
        ("estimated_amount", 1.5),
    )
    regular = ("incident_location", "claimant_name", "contact_phone", "policy_number", "claim_number")

    score = 0.0
    total = 0.0
    for name, weight in critical:
        total += weight
        if cleaned.get(name) is not None:
            score += weight
    for name in regular:
        total += 1.0
        if cleaned.get(name) is not None:
            score += 1.0
    return score / total


def confidence_tier(score: float) -> str:
    if score >= 0.8:
        return "high"
    if score >= 0.5:
        return "medium"
    return "low"
