"""
Trust Run Coordinator - one scoring run over a batch of subjects.

Flow:
1. Precondition: the record store must be reachable (else abort)
2. Read the working set and its signals once
3. Optionally probe poster URLs (bounded pool, per-probe timeout)
4. Evaluate every subject in parallel: derive classifications, check them
   against the update policy, score the resulting record
5. Write each subject's changes as one statement, sequentially
6. Collect counters, review cases and accepted values for the audit report

All run state lives on the coordinator instance. Evaluation is pure, so a
dry run makes exactly the same decisions as a real run and only skips step 5.
"""

import copy
import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional

from ..config import TrustEngineConfig
from ..errors import RecordStoreUnavailableError, StoreIOError
from ..models.outcomes import ClassificationOutcome, ConfidenceResult, ConfidenceTier, OutcomeKind, Signal
from ..models.run import FilledClassification, ReviewCase, RunResult, RunStats
from ..models.subject import Subject, is_populated
from ..scorers.confidence_composer import ConfidenceComposer
from ..scorers.source_registry import SourceRegistry
from ..utils.logger import PipelineLogger
from ..utils.worker_pool import WorkerPool
from .classification_consensus import ClassificationConsensusDeriver
from .image_probe import ImageProbe
from .update_policy import UpdatePolicyGuard, WriteDecision

logger = logging.getLogger(__name__)


@dataclass
class SubjectEvaluation:
    """Pure result of evaluating one subject."""

    subject: Subject
    confidence: ConfidenceResult
    outcomes: list[ClassificationOutcome] = field(default_factory=list)
    decisions: dict[str, WriteDecision] = field(default_factory=dict)
    updates: dict[str, Any] = field(default_factory=dict)
    unchanged: bool = False

    @property
    def accepted(self) -> list[WriteDecision]:
        return [d for d in self.decisions.values() if d.allowed]


class TrustRunCoordinator:
    """Owns the state of a single run."""

    def __init__(
        self,
        repository,
        registry: SourceRegistry,
        config: Optional[TrustEngineConfig] = None,
        fields: Optional[list[str]] = None,
        dry_run: bool = False,
        verbose: bool = False,
        image_probe: Optional[ImageProbe] = None,
        run_logger: Optional[PipelineLogger] = None,
        as_of: Optional[datetime] = None,
    ):
        """
        Args:
            repository: Record store (SubjectRepository or a compatible object)
            registry: Source registry
            config: Engine configuration
            fields: Categorical fields to evaluate (default: all configured)
            dry_run: Compute everything, write nothing
            verbose: Log a per-subject trace at INFO
            image_probe: Optional poster probe run before scoring
            run_logger: Optional PipelineLogger for run start/complete lines
            as_of: Run clock (default: now, UTC)
        """
        self.repository = repository
        self.config = config or TrustEngineConfig()
        self.fields = list(fields) if fields else list(self.config.categorical_fields)
        unknown = set(self.fields) - set(self.config.categorical_fields)
        if unknown:
            raise ValueError(
                f"Unknown categorical fields {sorted(unknown)}; expected some of {self.config.categorical_fields}"
            )
        self.dry_run = dry_run
        self.verbose = verbose
        self.image_probe = image_probe
        self.run_logger = run_logger
        self.as_of = as_of or datetime.now(timezone.utc)

        self.composer = ConfidenceComposer(registry, self.config)
        self.deriver = ClassificationConsensusDeriver(registry, self.config)
        self.guard = UpdatePolicyGuard(self.config)

        self.stats = RunStats()
        self.review_cases: list[ReviewCase] = []
        self.filled: list[FilledClassification] = []

    # ------------------------------------------------------------------
    # Pure evaluation
    # ------------------------------------------------------------------

    def evaluate_subject(
        self, subject: Subject, signals: list[Signal], image_reachable: Optional[bool] = None
    ) -> SubjectEvaluation:
        """Derive classifications and score one subject. No I/O."""
        outcomes = []
        decisions = {}
        accepted_values = {}
        meta = copy.deepcopy(subject.classification_meta or {})

        for name in self.fields:
            current = subject.value_of(name)
            recorded_tier = subject.field_tier(name)
            current_tier = self.guard.current_tier(current, recorded_tier)
            if current_tier.rank >= ConfidenceTier.HIGH.rank:
                outcomes.append(
                    ClassificationOutcome(
                        field=name,
                        value=str(current),
                        confidence_tier=current_tier,
                        outcome=OutcomeKind.ALREADY_AUTHORITATIVE,
                    )
                )
                continue

            outcome = self.deriver.derive(name, signals)
            outcomes.append(outcome)
            if not outcome.filled:
                continue

            decision = self.guard.check(name, current, recorded_tier, outcome.value, outcome.confidence_tier)
            decisions[name] = decision
            if decision.allowed:
                accepted_values[name] = decision.value
                meta[name] = {"tier": decision.tier.value, "sources": list(outcome.contributing_sources)}

        # Score the record as it will be after the accepted writes
        projected = replace(subject, **accepted_values) if accepted_values else subject
        confidence = self.composer.compose(projected, self.as_of, image_reachable)

        breakdown = confidence.breakdown.to_store()
        updates: dict[str, Any] = {
            "confidence_score": confidence.score,
            "confidence_breakdown": breakdown,
            "trust_badge": confidence.badge.value,
        }
        if accepted_values:
            updates.update(accepted_values)
            updates["classification_meta"] = meta

        unchanged = (
            not accepted_values
            and subject.confidence_score is not None
            and round(float(subject.confidence_score), 2) == confidence.score
            and subject.trust_badge == confidence.badge.value
            and subject.confidence_breakdown == breakdown
        )
        return SubjectEvaluation(
            subject=subject,
            confidence=confidence,
            outcomes=outcomes,
            decisions=decisions,
            updates=updates,
            unchanged=unchanged,
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, limit: Optional[int] = None, filters=None, include_all: bool = False) -> RunResult:
        """
        Execute one run.

        Raises:
            RecordStoreUnavailableError: If the store is unreachable or the
                initial batch read fails
        """
        start_time = time.time()
        self.repository.check_connection()

        limit = limit or self.config.batch_limit
        try:
            subjects = self.repository.fetch_batch(limit, self.fields, filters, include_all)
            signals = self.repository.fetch_signals([s.id for s in subjects], self.fields)
        except StoreIOError as e:
            raise RecordStoreUnavailableError(f"Initial read failed: {e}") from e

        self.stats.total = len(subjects)
        if self.run_logger:
            self.run_logger.log_run_start(len(subjects), dry_run=self.dry_run)
        logger.info(f"Run clock fixed at {self.as_of.isoformat()} for {len(subjects)} subjects")

        image_results: dict[str, bool] = {}
        if self.image_probe is not None and subjects:
            image_results = self.image_probe.probe_subjects(subjects)

        pool = WorkerPool(max_workers=self.config.workers, logger=logger, label=lambda s: s.label)
        results = pool.map(
            lambda s: self.evaluate_subject(s, signals.get(s.id, []), image_results.get(s.id)),
            subjects,
            desc="Scoring",
        )

        for success, subject, payload in results:
            if not success:
                self.stats.errors += 1
                if self.run_logger:
                    self.run_logger.error(f"Evaluation failed for {subject.label}", exception=payload)
                continue
            self._settle(payload)

        duration = time.time() - start_time
        if self.run_logger:
            self.run_logger.log_run_complete(self.stats.scored, self.stats.failed_io + self.stats.errors, duration)

        return RunResult(
            as_of=self.as_of,
            dry_run=self.dry_run,
            fields=list(self.fields),
            stats=self.stats,
            review_cases=list(self.review_cases),
            filled=list(self.filled),
            duration_seconds=duration,
        )

    def _settle(self, evaluation: SubjectEvaluation) -> None:
        """Write one subject (unless dry run or unchanged) and record its outcomes."""
        subject = evaluation.subject
        if evaluation.unchanged:
            self.stats.unchanged += 1
        elif not self.dry_run:
            try:
                self.repository.apply_update(subject.id, evaluation.updates)
            except StoreIOError as e:
                self.stats.failed_io += 1
                logger.error(f"Write failed for {subject.label}, will retry next run: {e}")
                return
            self.stats.written += 1

        self.stats.scored += 1
        self.stats.badge_distribution[evaluation.confidence.badge.value] += 1
        self._record_outcomes(evaluation)
        self._trace(evaluation)

    def _record_outcomes(self, evaluation: SubjectEvaluation) -> None:
        subject = evaluation.subject
        for outcome in evaluation.outcomes:
            if outcome.outcome == OutcomeKind.FILLED:
                decision = evaluation.decisions.get(outcome.field)
                if decision is None or not decision.allowed:
                    # The persisted value holds
                    reason = decision.reason if decision else "not checked"
                    logger.info(f"{subject.label}: {outcome.field} write rejected ({reason})")
                    self.stats.count_skip(OutcomeKind.ALREADY_AUTHORITATIVE)
                    continue
                self.stats.count_fill(decision.tier)
                self.filled.append(
                    FilledClassification(
                        subject_id=subject.id,
                        title=subject.title_en or subject.id,
                        year=subject.release_year,
                        field=outcome.field,
                        value=decision.value,
                        tier=decision.tier,
                        sources=list(outcome.contributing_sources),
                    )
                )
                continue

            current = subject.value_of(outcome.field)
            if outcome.outcome != OutcomeKind.ALREADY_AUTHORITATIVE and is_populated(current):
                # Not left null: the persisted lower-tier value holds
                reason = outcome.ambiguity_reason or outcome.outcome.value
                logger.info(f"{subject.label}: {outcome.field} keeps {current!r} ({reason})")
                self.stats.count_skip(OutcomeKind.ALREADY_AUTHORITATIVE)
                continue

            self.stats.count_skip(outcome.outcome)
            if outcome.outcome == OutcomeKind.ALREADY_AUTHORITATIVE:
                continue
            if outcome.candidates:
                logger.info(f"{subject.label}: {outcome.field} left empty ({outcome.ambiguity_reason})")
                self.review_cases.append(
                    ReviewCase(
                        subject_id=subject.id,
                        title=subject.title_en or subject.id,
                        year=subject.release_year,
                        field=outcome.field,
                        outcome=outcome.outcome,
                        reason=outcome.ambiguity_reason or outcome.outcome.value,
                        candidates=list(outcome.candidates),
                    )
                )

    def _trace(self, evaluation: SubjectEvaluation) -> None:
        level = logging.INFO if self.verbose else logging.DEBUG
        if not logger.isEnabledFor(level):
            return
        confidence = evaluation.confidence
        parts = [
            f"{evaluation.subject.label}: {confidence.score:.2f} {confidence.badge.value}",
            confidence.breakdown.explanation,
        ]
        for outcome in evaluation.outcomes:
            if outcome.filled:
                parts.append(f"{outcome.field}={outcome.value} ({outcome.confidence_tier.value})")
            else:
                parts.append(f"{outcome.field}: {outcome.outcome.value}")
        if evaluation.unchanged:
            parts.append("unchanged")
        logger.log(level, " | ".join(parts))
