"""Claims processing orchestrator: one end-to-end run per claim."""

import asyncio
import logging
import time
import uuid
from collections import Counter
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, List, Optional

from ..agents.categorizer import ClaimCategorizationAgent
from ..agents.extractor import ClaimExtractionAgent
from ..agents.fraud import FraudAssessmentAgent
from ..agents.responder import ResponseGenerationAgent
from ..models.result import ProcessingOptions, ProcessingResult, StageOutcome
from ..storage.claim_repository import ClaimRepository, InMemoryClaimRepository
from ..storage.record_store import InMemoryRecordStore, RecordStore
from ..utils.config import Config
from ..utils.errors import ErrorType
from ..utils.logging import reset_context, set_context
from .fallbacks import fallback_customer_response, fallback_fraud_assessment, fallback_memo, fallback_summary
from .planning import generate_action_plan, validate_claim

logger = logging.getLogger(__name__)

# Run states, in order
EXTRACTING = "extracting"
ASSESSING_FRAUD = "assessing_fraud"
CATEGORIZING = "categorizing"
PLANNING = "planning"
SUMMARIZING = "summarizing"
GENERATING_RESPONSES = "generating_responses"
PERSISTING = "persisting"
COMPLETED = "completed"
FAILED = "failed"


class ClaimsOrchestrator:
    """
    Sequences the AI stages into one claim-processing run.

    start -> extracting -> assessing_fraud -> categorizing -> planning
          -> summarizing -> generating_responses -> persisting -> completed

    Extraction and categorization failures are fatal and end the run as
    ``failed``. Fraud assessment, summary, customer response and memo
    failures are replaced by locally built fallbacks and listed in
    ``ProcessingResult.fallbacks``. Memo generation runs under a timeout.
    A record-store failure leaves the run completed with ``persisted=False``.

    ``process_claim_complete`` never raises. Runs share no mutable state
    except the repository, so they may execute concurrently.
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        config: Optional[Config] = None,
        record_store: Optional[RecordStore] = None,
        repository: Optional[ClaimRepository] = None,
        extractor: Optional[ClaimExtractionAgent] = None,
        fraud_agent: Optional[FraudAssessmentAgent] = None,
        categorizer: Optional[ClaimCategorizationAgent] = None,
        responder: Optional[ResponseGenerationAgent] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            client: AI client shared by all stages (BedrockClient or a compatible fake)
            config: Configuration; loaded from config.yaml when omitted
            record_store: Store the processing session is persisted to
            repository: In-process repository backing lookups and analytics
            extractor, fraud_agent, categorizer, responder: Optional stage overrides
        """
        self.config = config or Config.load()
        processing = self.config.processing

        self.extractor = extractor or ClaimExtractionAgent(client, max_document_chars=processing.max_document_chars)
        self.fraud_agent = fraud_agent or FraudAssessmentAgent(client)
        self.categorizer = categorizer or ClaimCategorizationAgent(client)
        self.responder = responder or ResponseGenerationAgent(client)

        self.record_store = record_store or InMemoryRecordStore()
        self.repository = repository or InMemoryClaimRepository()
        self.sessions_collection = self.config.storage.sessions_collection
        self.memo_timeout = processing.memo_timeout_seconds

        logger.info(
            f"Initialized ClaimsOrchestrator: memo_timeout={self.memo_timeout}s, "
            f"max_document_chars={processing.max_document_chars}"
        )

    @staticmethod
    def new_processing_id() -> str:
        return f"claim_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"

    async def process_claim_complete(
        self,
        document_text: str,
        options: Optional[ProcessingOptions] = None,
    ) -> ProcessingResult:
        """
        Run the full pipeline on claim document text.

        Args:
            document_text: Plain text of the claim documents
            options: Per-run options (additional context, outputs to generate, user id)

        Returns:
            ProcessingResult with status "completed" or "failed"
        """
        options = options or ProcessingOptions()
        processing_id = self.new_processing_id()
        started = time.perf_counter()
        timings: Dict[str, float] = {}
        fallbacks: List[str] = []
        state = EXTRACTING

        token = set_context(processing_id=processing_id)
        logger.info(f"Starting claim processing ({len(document_text or '')} characters)")

        try:
            # Fatal: nothing downstream can run without claim data
            outcome = await self._run_state(EXTRACTING, timings, self.extractor.extract_claim_data(
                document_text, options.additional_context
            ))
            if not outcome.success:
                return self._failed(processing_id, started, timings, EXTRACTING, outcome.error, options)
            claim_data = outcome.data
            validation = validate_claim(claim_data)

            state = ASSESSING_FRAUD
            outcome = await self._run_state(ASSESSING_FRAUD, timings, self.fraud_agent.assess_fraud_risk(
                claim_data, options.additional_context
            ))
            if outcome.success:
                fraud_assessment = outcome.data
            else:
                logger.warning(f"Fraud assessment failed, using low-risk fallback: {outcome.error}")
                fraud_assessment = fallback_fraud_assessment(outcome.error)
                fallbacks.append("fraud_assessment")

            # Fatal: routing and priority are required for the claim to be actionable
            state = CATEGORIZING
            outcome = await self._run_state(
                CATEGORIZING, timings, self.categorizer.categorize_claim(claim_data, fraud_assessment)
            )
            if not outcome.success:
                return self._failed(processing_id, started, timings, CATEGORIZING, outcome.error, options)
            categorization = outcome.data

            state = PLANNING
            plan_started = time.perf_counter()
            action_plan = generate_action_plan(validation, fraud_assessment, categorization)
            timings[PLANNING] = _elapsed_ms(plan_started)

            state = SUMMARIZING
            outcome = await self._run_state(SUMMARIZING, timings, self.responder.generate_claim_summary(
                claim_data, fraud_assessment, categorization
            ))
            if outcome.success:
                summary = outcome.data
            else:
                logger.warning(f"Summary generation failed, using templated summary: {outcome.error}")
                summary = fallback_summary(claim_data, fraud_assessment)
                fallbacks.append("summary")

            state = GENERATING_RESPONSES
            responses_started = time.perf_counter()
            customer_response = None
            if self._enabled(options.generate_customer_response, self.config.processing.generate_customer_response):
                outcome = await self.responder.generate_customer_response(
                    claim_data, categorization, customer_friendly=options.customer_friendly
                )
                if outcome.success:
                    customer_response = outcome.data
                else:
                    logger.warning(f"Customer response generation failed, using acknowledgment: {outcome.error}")
                    customer_response = fallback_customer_response(claim_data)
                    fallbacks.append("customer_response")

            internal_memo = None
            if self._enabled(options.generate_internal_memo, self.config.processing.generate_internal_memo):
                outcome = await self._memo_with_timeout(
                    processing_id, claim_data, fraud_assessment, categorization, action_plan
                )
                if outcome.success:
                    internal_memo = outcome.data
                else:
                    logger.warning(f"Internal memo generation failed, using templated memo: {outcome.error}")
                    internal_memo = fallback_memo(processing_id, fraud_assessment, action_plan)
                    fallbacks.append("internal_memo")
            timings[GENERATING_RESPONSES] = _elapsed_ms(responses_started)

            state = PERSISTING
            result = ProcessingResult(
                processing_id=processing_id,
                timestamp=_now(),
                processing_time_ms=_elapsed_ms(started),
                status=COMPLETED,
                claim_data=claim_data,
                validation=validation,
                fraud_assessment=fraud_assessment,
                categorization=categorization,
                action_plan=action_plan,
                summary=summary,
                customer_response=customer_response,
                internal_memo=internal_memo,
                fallbacks=fallbacks,
                stage_timings=dict(timings),
                user_id=options.user_id,
            )
            result = self._persist(result, started, timings)

            self.repository.save(result)
            logger.info(
                f"Claim processing completed in {result.processing_time_ms:.1f}ms "
                f"(fallbacks={fallbacks or 'none'}, persisted={result.persisted})"
            )
            return result

        except Exception as e:
            logger.error(f"Claim processing failed during {state}: {str(e)}", exc_info=True)
            return self._failed(processing_id, started, timings, state, str(e) or e.__class__.__name__, options)

        finally:
            reset_context(token)

    async def _run_state(self, state: str, timings: Dict[str, float], work: Awaitable[StageOutcome]) -> StageOutcome:
        logger.info(f"State -> {state}")
        started = time.perf_counter()
        try:
            return await work
        finally:
            timings[state] = _elapsed_ms(started)
            logger.info(f"State {state} finished in {timings[state]:.1f}ms")

    async def _memo_with_timeout(self, processing_id, claim_data, fraud_assessment, categorization, action_plan) -> StageOutcome:
        try:
            # wait_for cancels the memo call on timeout, so a late memo is never applied
            return await asyncio.wait_for(
                self.responder.generate_internal_memo(
                    processing_id, claim_data, fraud_assessment, categorization, action_plan
                ),
                timeout=self.memo_timeout,
            )
        except asyncio.TimeoutError:
            return StageOutcome(
                success=False,
                error=f"Internal memo generation timed out after {self.memo_timeout}s",
                error_type=ErrorType.STAGE_TIMEOUT.value,
            )

    def _persist(self, result: ProcessingResult, run_started: float, timings: Dict[str, float]) -> ProcessingResult:
        logger.info(f"State -> {PERSISTING}")
        started = time.perf_counter()
        persisted = replace(result, persisted=True)
        record = persisted.to_dict()
        record["id"] = result.processing_id
        record["created_at"] = result.timestamp

        try:
            self.record_store.create(self.sessions_collection, record)
        except Exception as e:
            # The claim was processed; report that it is not durably saved
            logger.error(f"Failed to persist processing session: {str(e)}")
            timings[PERSISTING] = _elapsed_ms(started)
            return replace(
                result,
                persisted=False,
                persistence_error=str(e) or e.__class__.__name__,
                stage_timings=dict(timings),
                processing_time_ms=_elapsed_ms(run_started),
            )

        timings[PERSISTING] = _elapsed_ms(started)
        return replace(persisted, stage_timings=dict(timings), processing_time_ms=_elapsed_ms(run_started))

    def _failed(
        self,
        processing_id: str,
        started: float,
        timings: Dict[str, float],
        stage: str,
        error: Optional[str],
        options: ProcessingOptions,
    ) -> ProcessingResult:
        result = ProcessingResult(
            processing_id=processing_id,
            timestamp=_now(),
            processing_time_ms=_elapsed_ms(started),
            status=FAILED,
            error=error or f"Claim processing failed during {stage}",
            failed_stage=stage,
            stage_timings=dict(timings),
            user_id=options.user_id,
        )
        self.repository.save(result)
        logger.error(f"Claim processing failed during {stage}: {result.error}")
        return result

    @staticmethod
    def _enabled(option: Optional[bool], default: bool) -> bool:
        return default if option is None else bool(option)

    # Repository queries

    def get_claim(self, processing_id: str) -> Optional[ProcessingResult]:
        return self.repository.get(processing_id)

    def get_all_claims(self) -> List[ProcessingResult]:
        return self.repository.all()

    def clear_all_claims(self) -> None:
        self.repository.clear()

    def generate_analytics(self) -> Dict[str, Any]:
        """
        Aggregate statistics over every processed claim in the repository.

        Returns:
            Dictionary with counts, average processing time and distributions
        """
        results = self.repository.all()
        completed = [r for r in results if r.is_completed]

        risk = Counter(r.fraud_assessment.risk_level for r in completed if r.fraud_assessment)
        claim_types = Counter((r.claim_data.claim_type or "unknown") for r in completed if r.claim_data)
        priorities = Counter(r.categorization.priority.level for r in completed if r.categorization)
        categories = Counter(r.categorization.category.primary for r in completed if r.categorization)
        fallback_counts = Counter(stage for r in completed for stage in r.fallbacks)

        total_time = sum(r.processing_time_ms for r in results)
        return {
            "total_claims": len(results),
            "successfully_processed": len(completed),
            "failed_processing": len(results) - len(completed),
            "average_processing_time_ms": round(total_time / len(results), 2) if results else 0.0,
            "risk_distribution": dict(risk),
            "claim_type_distribution": dict(claim_types),
            "priority_distribution": dict(priorities),
            "category_distribution": dict(categories),
            "fallback_counts": dict(fallback_counts),
            "not_persisted": sum(1 for r in completed if not r.persisted),
        }


def _elapsed_ms(started: float) -> float:
    return max((time.perf_counter() - started) * 1000.0, 0.0)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
