"""
Player data models for the roster system.
"""

import re
import time
import uuid
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Any, Dict, Optional

from .errors import ValidationError

DEFAULT_INSURANCE_NUMBER = "0000"
DEFAULT_MEDICAL_CONDITIONS = "no known medical conditions"
GENDERS = ('male', 'female', 'other')
MAX_NAME_LENGTH = 50
MAX_MEDICAL_LENGTH = 500

NAME_PATTERN = re.compile(r"^[A-Za-zÀ-ÿ\s'\-]+$")
DOB_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
INSURANCE_PATTERN = re.compile(r"^(756\.\d{4}\.\d{4}\.\d{2}|[A-Za-z0-9]{4,50})$")

# Submission fields a guardian or administrator may change
EDITABLE_FIELDS = (
    'first_name', 'last_name', 'date_of_birth', 'gender',
    'national_insurance_number', 'medical_conditions', 'region'
)

# Keys written by older releases of the roster
LEGACY_ALIASES = {
    'dob': 'date_of_birth',
    'avs_number': 'national_insurance_number',
    'medical': 'medical_conditions',
}


def parse_date_of_birth(value: Any, today: Optional[date] = None) -> date:
    """Parse and check a date of birth given as YYYY-MM-DD or a date."""
    if isinstance(value, datetime):
        dob = value.date()
    elif isinstance(value, date):
        dob = value
    else:
        text = str(value or '').strip()
        if not text:
            raise ValidationError('date_of_birth', 'Date of birth is required.')
        if not DOB_PATTERN.match(text):
            raise ValidationError('date_of_birth', 'Invalid date of birth format. Use YYYY-MM-DD.')
        try:
            dob = datetime.strptime(text, '%Y-%m-%d').date()
        except ValueError:
            raise ValidationError('date_of_birth', f"'{text}' is not a valid calendar date.")

    if dob > (today or date.today()):
        raise ValidationError('date_of_birth', 'Date of birth cannot be in the future.')
    return dob


def _clean_name(field_name: str, value: Any) -> str:
    name = str(value or '').strip()
    if not name:
        raise ValidationError(field_name, 'This field is required.')
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(field_name, f"Must be at most {MAX_NAME_LENGTH} characters.")
    if not NAME_PATTERN.match(name):
        raise ValidationError(field_name, 'Only letters, spaces, apostrophes and hyphens are allowed.')
    return name


def _clean_gender(value: Any) -> str:
    gender = str(value or '').strip().lower()
    if gender not in GENDERS:
        raise ValidationError('gender', f"Gender must be one of: {', '.join(GENDERS)}.")
    return gender


def _clean_insurance_number(value: Any) -> str:
    number = str(value or '').strip()
    if not number or number == DEFAULT_INSURANCE_NUMBER:
        return DEFAULT_INSURANCE_NUMBER
    if not INSURANCE_PATTERN.match(number):
        raise ValidationError(
            'national_insurance_number',
            "Use at least 4 characters, '0000', or the Swiss AVS format (756.XXXX.XXXX.XX)."
        )
    return number


def _clean_medical(value: Any) -> str:
    medical = str(value or '').strip()
    if not medical:
        return DEFAULT_MEDICAL_CONDITIONS
    if len(medical) > MAX_MEDICAL_LENGTH:
        raise ValidationError('medical_conditions', f"Must be at most {MAX_MEDICAL_LENGTH} characters.")
    return medical


def _clean_region(value: Any) -> Optional[str]:
    region = str(value or '').strip()
    return region or None


@dataclass
class PlayerRecord:
    """A child attendee registered by a guardian."""
    first_name: str
    last_name: str
    date_of_birth: Optional[date]
    gender: str
    national_insurance_number: str = DEFAULT_INSURANCE_NUMBER
    medical_conditions: str = DEFAULT_MEDICAL_CONDITIONS
    region: Optional[str] = None
    creation_timestamp: int = 0
    ineligible: bool = False
    player_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def identity_key(self):
        """Case-insensitive (first, last, dob) triple used for duplicate detection."""
        dob = self.date_of_birth.isoformat() if self.date_of_birth else ''
        return (self.first_name.strip().lower(), self.last_name.strip().lower(), dob)

    @classmethod
    def from_submission(cls, data: Dict[str, Any], creation_timestamp: Optional[int] = None,
                        player_id: Optional[str] = None, ineligible: bool = False,
                        today: Optional[date] = None) -> 'PlayerRecord':
        """
        Build a validated record from submitted fields.
        Raises ValidationError naming the first offending field.
        """
        data = normalize_keys(data)
        unknown = [key for key in data if key not in EDITABLE_FIELDS]
        if unknown:
            raise ValidationError(unknown[0], 'Unknown or read-only field.')

        return cls(
            first_name=_clean_name('first_name', data.get('first_name')),
            last_name=_clean_name('last_name', data.get('last_name')),
            date_of_birth=parse_date_of_birth(data.get('date_of_birth'), today),
            gender=_clean_gender(data.get('gender')),
            national_insurance_number=_clean_insurance_number(data.get('national_insurance_number')),
            medical_conditions=_clean_medical(data.get('medical_conditions')),
            region=_clean_region(data.get('region')),
            creation_timestamp=int(creation_timestamp if creation_timestamp is not None else time.time()),
            ineligible=ineligible,
            player_id=player_id or uuid.uuid4().hex
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any], fallback_id: Optional[str] = None) -> 'PlayerRecord':
        """Load a stored record without re-validating it."""
        data = normalize_keys(data)
        dob = data.get('date_of_birth')
        if isinstance(dob, str):
            try:
                dob = datetime.strptime(dob.strip(), '%Y-%m-%d').date()
            except ValueError:
                dob = None
        elif not isinstance(dob, date):
            dob = None

        try:
            created = int(data.get('creation_timestamp') or 0)
        except (TypeError, ValueError):
            created = 0

        return cls(
            first_name=str(data.get('first_name') or ''),
            last_name=str(data.get('last_name') or ''),
            date_of_birth=dob,
            gender=str(data.get('gender') or 'other').lower(),
            national_insurance_number=str(data.get('national_insurance_number') or DEFAULT_INSURANCE_NUMBER),
            medical_conditions=str(data.get('medical_conditions') or DEFAULT_MEDICAL_CONDITIONS),
            region=data.get('region') or None,
            creation_timestamp=created,
            ineligible=bool(data.get('ineligible', False)),
            player_id=str(data.get('player_id') or fallback_id or uuid.uuid4().hex)
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['date_of_birth'] = self.date_of_birth.isoformat() if self.date_of_birth else None
        return data

    def to_submission(self) -> Dict[str, Any]:
        """Editable fields in submission form, used as the base of a patch."""
        data = self.to_dict()
        return {key: data[key] for key in EDITABLE_FIELDS}


@dataclass
class GuardianAccount:
    """Host user account that owns a list of player records."""
    guardian_id: int
    email: str
    display_name: str = ''
    billing_state: Optional[str] = None
    billing_city: Optional[str] = None

    @property
    def region(self) -> str:
        return self.billing_state or 'Unknown'


@dataclass
class EditResult:
    """Outcome of an edit: the stored record and whether anything changed."""
    record: PlayerRecord
    index: int
    changed: bool


def normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map legacy keys onto current field names."""
    normalized = {}
    for key, value in (data or {}).items():
        normalized[LEGACY_ALIASES.get(key, key)] = value
    return normalized
