"""Summary, memo, action plan and processing result models."""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from .claim import ClaimValidation, ExtractedClaimData
from .assessment import Categorization, FraudAssessment, text_list
from ..utils.errors import ClaimsProcessingError, StageValidationError


@dataclass(frozen=True)
class ClaimSummary:
    """
    Executive summary of a processed claim.

    Attributes:
        executive_summary: Two or three sentence overview
        key_details: Claimant / incident / damages / risk factors
        processing_status: Where the claim stands
        recommendations: Suggested handling
        timeline: Expected processing timeline
        special_notes: Anything the handler must not miss
        is_fallback: True when templated locally instead of AI-generated
    """
    executive_summary: str
    key_details: Dict[str, str] = field(default_factory=dict)
    processing_status: str = ""
    recommendations: List[str] = field(default_factory=list)
    timeline: str = ""
    special_notes: List[str] = field(default_factory=list)
    is_fallback: bool = False

    @classmethod
    def from_ai_response(cls, data: Dict[str, Any]) -> "ClaimSummary":
        if not isinstance(data, dict):
            raise StageValidationError.invalid("claim summary", "expected a JSON object")
        summary = data.get("executiveSummary")
        if not isinstance(summary, str) or not summary.strip():
            raise StageValidationError.missing_fields("claim summary", ["executiveSummary"])

        key_details = data.get("keyDetails") if isinstance(data.get("keyDetails"), dict) else {}
        return cls(
            executive_summary=summary.strip(),
            key_details={
                str(k): str(v) for k, v in key_details.items()
                if v is not None and not isinstance(v, (dict, list))
            },
            processing_status=str(data.get("processingStatus") or ""),
            recommendations=text_list(data.get("recommendations")),
            timeline=str(data.get("timeline") or ""),
            special_notes=text_list(data.get("specialNotes")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RequiredAction:
    action: str
    responsible: str = ""
    deadline: str = ""


@dataclass(frozen=True)
class InternalMemo:
    """Internal memo addressed to the claims team."""
    subject: str
    summary: str
    to: str = "Claims Processing Team"
    sender: str = "Claims Intake System"
    date: str = ""
    priority: str = "normal"
    key_findings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    required_actions: List[RequiredAction] = field(default_factory=list)
    attachments: List[str] = field(default_factory=list)
    is_fallback: bool = False

    @classmethod
    def from_ai_response(cls, data: Dict[str, Any]) -> "InternalMemo":
        if not isinstance(data, dict):
            raise StageValidationError.invalid("internal memo", "expected a JSON object")
        missing = [
            name for name in ("subject", "summary")
            if not isinstance(data.get(name), str) or not data.get(name).strip()
        ]
        if missing:
            raise StageValidationError.missing_fields("internal memo", missing)

        actions = []
        for item in data.get("requiredActions") or []:
            if isinstance(item, dict) and isinstance(item.get("action"), str):
                actions.append(RequiredAction(
                    action=item["action"].strip(),
                    responsible=str(item.get("responsible") or ""),
                    deadline=str(item.get("deadline") or ""),
                ))
            elif isinstance(item, str) and item.strip():
                actions.append(RequiredAction(action=item.strip()))

        priority = str(data.get("priority") or "normal").lower()
        return cls(
            subject=data["subject"].strip(),
            summary=data["summary"].strip(),
            to=str(data.get("to") or "Claims Processing Team"),
            sender=str(data.get("from") or "Claims Intake System"),
            date=str(data.get("date") or ""),
            priority=priority if priority in ("urgent", "high", "normal", "low") else "normal",
            key_findings=text_list(data.get("keyFindings")),
            recommendations=text_list(data.get("recommendations")),
            required_actions=actions,
            attachments=text_list(data.get("attachments")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ActionItem:
    """
    One entry of the locally derived action plan.

    Attributes:
        type: "validation" | "fraud_review" | "routing" | "next_step"
        priority: "urgent" | "high" | "normal" | "low"
        action: What needs to happen
        details: Supporting details (missing fields, investigation areas, ...)
    """
    type: str
    priority: str
    action: str
    details: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class StageOutcome:
    """
    Uniform envelope returned by every AI stage.

    Stages never raise to their caller: a failure is reported as
    ``success=False`` with a human-readable ``error``.
    """
    success: bool
    data: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def ok(cls, data: Any) -> "StageOutcome":
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, error: Exception) -> "StageOutcome":
        if isinstance(error, ClaimsProcessingError):
            return cls(success=False, error=str(error), error_type=error.error_type.value)
        return cls(success=False, error=str(error) or error.__class__.__name__, error_type="UNKNOWN_ERROR")


@dataclass
class ProcessingOptions:
    """Caller options for one orchestration run."""
    additional_context: str = ""
    generate_customer_response: Optional[bool] = None
    customer_friendly: bool = True
    generate_internal_memo: Optional[bool] = None
    user_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ProcessingOptions":
        data = data or {}
        return cls(
            additional_context=str(data.get("additional_context") or ""),
            generate_customer_response=data.get("generate_customer_response"),
            customer_friendly=bool(data.get("customer_friendly", True)),
            generate_internal_memo=data.get("generate_internal_memo"),
            user_id=data.get("user_id"),
        )


@dataclass(frozen=True)
class ProcessingResult:
    """
    Terminal record of one orchestration run.

    ``status`` is "completed" or "failed". A failed result carries ``error``
    and leaves every payload field as None. ``fallbacks`` names the stages
    whose output was substituted locally. ``persisted`` is False when the
    record store rejected the result; ``persistence_error`` then says why.
    """
    processing_id: str
    timestamp: str
    processing_time_ms: float
    status: str  # "completed" | "failed"
    claim_data: Optional[ExtractedClaimData] = None
    validation: Optional[ClaimValidation] = None
    fraud_assessment: Optional[FraudAssessment] = None
    categorization: Optional[Categorization] = None
    action_plan: Optional[List[ActionItem]] = None
    summary: Optional[ClaimSummary] = None
    customer_response: Optional[str] = None
    internal_memo: Optional[InternalMemo] = None
    error: Optional[str] = None
    failed_stage: Optional[str] = None
    fallbacks: List[str] = field(default_factory=list)
    persisted: bool = False
    persistence_error: Optional[str] = None
    stage_timings: Dict[str, float] = field(default_factory=dict)
    user_id: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
