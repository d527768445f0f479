"""
Email classification.

- two_stage.py: TwoStageClassifier (gate, extraction, fallback chain, same-job check)
- service.py: ClassificationService (cache, single-flight, admission control)
"""

from .service import ClassificationService
from .two_stage import ClassificationTrace, ClassifierState, TwoStageClassifier

__all__ = [
    "ClassificationService",
    "ClassificationTrace",
    "ClassifierState",
    "TwoStageClassifier",
]
