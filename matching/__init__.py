"""
Matching package for the roster system.

Duplicate detection, order-line attendee correlation and age classification.
"""

from .identity_matcher import IdentityMatcher
from .eligibility import (
    AgeBracket, EligibilityClassification, EligibilityClassifier, calculate_age, classify
)

__all__ = [
    'IdentityMatcher', 'AgeBracket', 'EligibilityClassification',
    'EligibilityClassifier', 'calculate_age', 'classify'
]
