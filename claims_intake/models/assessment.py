"""Fraud assessment and categorization data models."""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from .claim import CLAIM_TYPES
from ..utils.errors import StageValidationError

RISK_LEVELS = ("low", "medium", "high", "critical")
INDICATOR_WEIGHTS = ("low", "medium", "high")
CATEGORIES = (
    "auto_collision",
    "auto_comprehensive",
    "health_medical",
    "health_dental",
    "property_damage",
    "property_theft",
    "life",
    "other",
)
COMPLEXITY_LEVELS = ("simple", "standard", "complex", "exceptional")
PRIORITY_LEVELS = ("urgent", "high", "normal", "low")
DEPARTMENTS = ("auto_claims", "health_claims", "property_claims", "special_investigations", "fraud_unit")
ASSIGNMENT_TYPES = ("automated", "junior_adjuster", "senior_adjuster", "specialist", "investigation_team")

# Used when the model names a level but omits the numeric score
_LEVEL_SCORES = {"low": 15, "medium": 45, "high": 70, "critical": 90}


def _choice(value: Any, allowed: tuple, default: Optional[str]) -> Optional[str]:
    if isinstance(value, str) and value.strip().lower() in allowed:
        return value.strip().lower()
    return default


def _text(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value.strip()
    if value is None:
        return default
    return str(value)


def text_list(value: Any) -> List[str]:
    """Normalise a model-supplied list of strings, numbers or ``{"action": ...}`` objects."""
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        return []
    items = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("action") or item.get("description") or item.get("text")
        if isinstance(item, (int, float)) and not isinstance(item, bool):
            item = str(item)
        if isinstance(item, str) and item.strip():
            items.append(item.strip())
    return items


def _clamp(value: Any, low: int, high: int, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))


@dataclass(frozen=True)
class FraudIndicator:
    """A single red flag found in the claim."""
    indicator: str
    weight: str = "medium"  # "low" | "medium" | "high"
    explanation: str = ""


@dataclass(frozen=True)
class LegitimacyIndicator:
    """Evidence that supports the claim being genuine."""
    indicator: str
    explanation: str = ""


def _indicators(value: Any) -> List[Dict[str, str]]:
    if not isinstance(value, list):
        return []
    rows = []
    for item in value:
        if isinstance(item, str) and item.strip():
            rows.append({"indicator": item.strip()})
        elif isinstance(item, dict):
            name = item.get("indicator") or item.get("description") or item.get("name")
            if isinstance(name, str) and name.strip():
                rows.append({
                    "indicator": name.strip(),
                    "weight": item.get("weight") or item.get("severity"),
                    "explanation": _text(item.get("explanation") or item.get("details")),
                })
    return rows


@dataclass(frozen=True)
class FraudAssessment:
    """
    Risk assessment of a claim.

    Attributes:
        risk_level: "low" | "medium" | "high" | "critical"
        risk_score: 0-100
        fraud_indicators: Red flags with weights
        legitimacy_indicators: Evidence that the claim is genuine
        recommended_actions: Follow-up actions suggested by the assessment
        investigation_areas: Areas that warrant a closer look
        overall_assessment: Narrative summary
        confidence: "high" | "medium" | "low"
        is_fallback: True when produced locally because the AI stage failed
    """
    risk_level: str
    risk_score: int
    fraud_indicators: List[FraudIndicator] = field(default_factory=list)
    legitimacy_indicators: List[LegitimacyIndicator] = field(default_factory=list)
    recommended_actions: List[str] = field(default_factory=list)
    investigation_areas: List[str] = field(default_factory=list)
    overall_assessment: str = ""
    confidence: str = "medium"
    is_fallback: bool = False

    @classmethod
    def from_ai_response(cls, data: Dict[str, Any]) -> "FraudAssessment":
        """
        Build an assessment from the fraud stage's parsed JSON.

        Raises:
            StageValidationError: If the risk level is missing or not a known level
        """
        if not isinstance(data, dict):
            raise StageValidationError.invalid("fraud assessment", "expected a JSON object")
        if data.get("riskLevel") is None:
            raise StageValidationError.missing_fields("fraud assessment", ["riskLevel"])

        risk_level = _choice(data.get("riskLevel"), RISK_LEVELS, None)
        if risk_level is None:
            raise StageValidationError.invalid(
                "fraud assessment", f"unknown riskLevel {data.get('riskLevel')!r}"
            )

        fraud_indicators = [
            FraudIndicator(
                indicator=row["indicator"],
                weight=_choice(row.get("weight"), INDICATOR_WEIGHTS, "medium"),
                explanation=row.get("explanation", ""),
            )
            for row in _indicators(data.get("fraudIndicators"))
        ]
        legitimacy_indicators = [
            LegitimacyIndicator(indicator=row["indicator"], explanation=row.get("explanation", ""))
            for row in _indicators(data.get("legitimacyIndicators"))
        ]

        return cls(
            risk_level=risk_level,
            risk_score=_clamp(data.get("riskScore"), 0, 100, _LEVEL_SCORES[risk_level]),
            fraud_indicators=fraud_indicators,
            legitimacy_indicators=legitimacy_indicators,
            recommended_actions=text_list(data.get("recommendedActions")),
            investigation_areas=text_list(data.get("investigationAreas")),
            overall_assessment=_text(data.get("overallAssessment")),
            confidence=_choice(data.get("confidence"), ("high", "medium", "low"), "medium"),
        )

    @property
    def high_weight_indicators(self) -> List[FraudIndicator]:
        return [i for i in self.fraud_indicators if i.weight == "high"]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AnomalyReport:
    """Result of comparing a claim against historical claims."""
    anomalies_detected: bool
    anomalies: List[Dict[str, str]] = field(default_factory=list)
    pattern_analysis: str = ""
    risk_assessment: str = "low"

    @classmethod
    def from_ai_response(cls, data: Dict[str, Any]) -> "AnomalyReport":
        if not isinstance(data, dict):
            raise StageValidationError.invalid("anomaly detection", "expected a JSON object")
        if data.get("anomaliesDetected") is None:
            raise StageValidationError.missing_fields("anomaly detection", ["anomaliesDetected"])

        anomalies = []
        for item in data.get("anomalies") or []:
            if isinstance(item, dict):
                anomalies.append({
                    "type": _text(item.get("type")),
                    "description": _text(item.get("description")),
                    "severity": _choice(item.get("severity"), INDICATOR_WEIGHTS, "medium"),
                })
        return cls(
            anomalies_detected=bool(data.get("anomaliesDetected")),
            anomalies=anomalies,
            pattern_analysis=_text(data.get("patternAnalysis")),
            risk_assessment=_choice(data.get("riskAssessment"), RISK_LEVELS, "low"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CategoryInfo:
    primary: str  # one of CATEGORIES
    secondary: Optional[str] = None
    complexity: str = "standard"  # "simple" | "standard" | "complex" | "exceptional"
    confidence: str = "medium"


@dataclass(frozen=True)
class PriorityInfo:
    level: str  # "urgent" | "high" | "normal" | "low"
    score: int = 5
    reasoning: str = ""
    factors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RoutingInfo:
    department: str
    assignment_type: str = "junior_adjuster"
    special_handling: List[str] = field(default_factory=list)
    estimated_handling_time: str = ""


@dataclass(frozen=True)
class Categorization:
    """
    Category, priority and routing assigned to a claim.

    Attributes:
        category: Primary/secondary category and complexity
        priority: Priority level with a 1-10 score and reasoning
        routing: Department and assignment for the handler
        processing_recommendations: Free-form handling advice
        next_steps: Ordered next steps for the handler
    """
    category: CategoryInfo
    priority: PriorityInfo
    routing: RoutingInfo
    processing_recommendations: List[str] = field(default_factory=list)
    next_steps: List[str] = field(default_factory=list)

    @classmethod
    def from_ai_response(cls, data: Dict[str, Any]) -> "Categorization":
        """
        Build a categorization from the categorizer stage's parsed JSON.

        Raises:
            StageValidationError: If category, priority or routing are missing
        """
        if not isinstance(data, dict):
            raise StageValidationError.invalid("categorization", "expected a JSON object")

        missing = [
            name for name in ("category", "priority", "routing")
            if not isinstance(data.get(name), dict)
        ]
        if missing:
            raise StageValidationError.missing_fields("categorization", missing)

        category_data = data["category"]
        priority_data = data["priority"]
        routing_data = data["routing"]

        primary = _choice(category_data.get("primary"), CATEGORIES, None)
        if primary is None:
            raise StageValidationError.invalid(
                "categorization", f"unknown category {category_data.get('primary')!r}"
            )
        level = _choice(priority_data.get("level"), PRIORITY_LEVELS, None)
        if level is None:
            raise StageValidationError.invalid(
                "categorization", f"unknown priority level {priority_data.get('level')!r}"
            )

        return cls(
            category=CategoryInfo(
                primary=primary,
                secondary=_choice(category_data.get("secondary"), CATEGORIES, None),
                complexity=_choice(category_data.get("complexity"), COMPLEXITY_LEVELS, "standard"),
                confidence=_choice(category_data.get("confidence"), ("high", "medium", "low"), "medium"),
            ),
            priority=PriorityInfo(
                level=level,
                score=_clamp(priority_data.get("score"), 1, 10, 5),
                reasoning=_text(priority_data.get("reasoning")),
                factors=text_list(priority_data.get("factors")),
            ),
            routing=RoutingInfo(
                department=_choice(routing_data.get("department"), DEPARTMENTS, default_department(primary)),
                assignment_type=_choice(routing_data.get("assignmentType"), ASSIGNMENT_TYPES, "junior_adjuster"),
                special_handling=text_list(routing_data.get("specialHandling")),
                estimated_handling_time=_text(routing_data.get("estimatedHandlingTime")),
            ),
            processing_recommendations=text_list(data.get("processingRecommendations")),
            next_steps=text_list(data.get("nextSteps")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ClaimTypeGuess:
    """Quick claim-type classification of raw text."""
    claim_type: str
    confidence: str = "medium"
    keywords: List[str] = field(default_factory=list)
    reasoning: str = ""

    @classmethod
    def from_ai_response(cls, data: Dict[str, Any]) -> "ClaimTypeGuess":
        if not isinstance(data, dict) or data.get("claimType") is None:
            raise StageValidationError.missing_fields("claim type", ["claimType"])
        claim_type = _choice(data.get("claimType"), CLAIM_TYPES, None)
        if claim_type is None:
            raise StageValidationError.invalid("claim type", f"unknown claimType {data.get('claimType')!r}")
        return cls(
            claim_type=claim_type,
            confidence=_choice(data.get("confidence"), ("high", "medium", "low"), "medium"),
            keywords=text_list(data.get("keywords")),
            reasoning=_text(data.get("reasoning")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def default_department(category: str) -> str:
    if category.startswith("auto"):
        return "auto_claims"
    if category.startswith("health"):
        return "health_claims"
    if category.startswith("property"):
        return "property_claims"
    # life and uncategorised claims have no dedicated desk
    return "special_investigations"
