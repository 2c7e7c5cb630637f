"""Classification consensus, update policy and run coordination."""

from .classification_consensus import ClassificationConsensusDeriver
from .image_probe import ImageProbe, ProbeResult
from .trust_coordinator import SubjectEvaluation, TrustRunCoordinator
from .update_policy import UpdatePolicyGuard, WriteDecision

__all__ = [
    "ClassificationConsensusDeriver",
    "ImageProbe",
    "ProbeResult",
    "SubjectEvaluation",
    "TrustRunCoordinator",
    "UpdatePolicyGuard",
    "WriteDecision",
]
