"""
Rule-based fallback classification.

- classifier.py: FallbackClassifier (ordered rules + field extraction)
- patterns.py: Domain, keyword and regex pattern families
- indeed.py: Indeed application confirmation extractor
"""

from .classifier import FallbackClassifier, FallbackDecision

__all__ = ["FallbackClassifier", "FallbackDecision"]
