"""
Age and eligibility classification for player records.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

TODDLER_INELIGIBLE = 'toddler-ineligible'
ADULT_INELIGIBLE = 'adult-ineligible'
DEFAULT_CUTOFF_AGE = 14


@dataclass
class AgeBracket:
    """An inclusive age range used for event eligibility."""
    name: str
    min_age: int
    max_age: int

    def contains(self, age: int) -> bool:
        return self.min_age <= age <= self.max_age

    @staticmethod
    def from_config(entries: Sequence[Dict[str, Any]]) -> List['AgeBracket']:
        """Build brackets from configuration, ordered by lower bound."""
        brackets = []
        for entry in entries or []:
            min_age = int(entry['min_age'])
            max_age = int(entry['max_age'])
            if min_age > max_age:
                raise ValueError(f"Age bracket '{entry.get('name')}' has min_age above max_age")
            brackets.append(AgeBracket(name=str(entry['name']), min_age=min_age, max_age=max_age))
        return sorted(brackets, key=lambda bracket: bracket.min_age)


@dataclass
class EligibilityClassification:
    age: int
    age_group: Optional[str]
    ineligible: bool


def calculate_age(date_of_birth: date, reference_date: date) -> int:
    """Full elapsed years, counting a birthday only once its month and day are reached."""
    before_birthday = (reference_date.month, reference_date.day) < (date_of_birth.month, date_of_birth.day)
    return reference_date.year - date_of_birth.year - (1 if before_birthday else 0)


def classify(date_of_birth: date, reference_date: date, brackets: Sequence[AgeBracket],
             cutoff_age: int = DEFAULT_CUTOFF_AGE) -> EligibilityClassification:
    """
    Classify a date of birth against the configured brackets.

    Ages below the first bracket are toddler-ineligible, ages above the last
    one adult-ineligible. An age in a gap between two brackets has no group.
    The ineligible flag is set once the age exceeds cutoff_age.
    """
    age = calculate_age(date_of_birth, reference_date)
    age_group = None

    if brackets:
        if age < brackets[0].min_age:
            age_group = TODDLER_INELIGIBLE
        elif age > brackets[-1].max_age:
            age_group = ADULT_INELIGIBLE
        else:
            for bracket in brackets:
                if bracket.contains(age):
                    age_group = bracket.name
                    break

    return EligibilityClassification(age=age, age_group=age_group, ineligible=age > cutoff_age)


class EligibilityClassifier:
    """Classifier bound to the brackets and cutoff from configuration."""

    def __init__(self, config: Dict[str, Any]):
        self.brackets = AgeBracket.from_config(config.get('age_groups', []))
        self.cutoff_age = int(config.get('ineligible_cutoff_age', DEFAULT_CUTOFF_AGE))

    def classify(self, date_of_birth: Optional[date],
                 reference_date: Optional[date] = None) -> Optional[EligibilityClassification]:
        """Classify, or return None for a record without a usable date of birth."""
        if date_of_birth is None:
            return None
        return classify(date_of_birth, reference_date or date.today(), self.brackets, self.cutoff_age)

    def group_names(self) -> List[str]:
        return [TODDLER_INELIGIBLE] + [bracket.name for bracket in self.brackets] + [ADULT_INELIGIBLE]
