"""Exceptions raised by the trust engine.

Only two conditions are exceptional. Skipped classifications and rejected
writes are ordinary outcomes and are reported as values:
- InsufficientEvidence -> OutcomeKind.INSUFFICIENT_EVIDENCE on a ClassificationOutcome
- WriteRejected -> WriteDecision(allowed=False) from UpdatePolicyGuard
"""


class TrustEngineError(Exception):
    """Base class for trust engine errors."""


class RecordStoreUnavailableError(TrustEngineError):
    """The record store cannot be reached at the start of a run.

    This is the only condition that aborts a batch.
    """


class StoreIOError(TrustEngineError):
    """A read or write against the record store failed for one subject.

    The subject is counted as failed-io and picked up again on the next run.
    """

    def __init__(self, message: str, subject_id: str | None = None):
        super().__init__(message)
        self.subject_id = subject_id
