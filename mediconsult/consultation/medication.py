"""
Medication entries held inside a consultation draft.

Dosage and duration are kept as the doctor (or the extractor) phrased them;
nothing here parses quantities.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from mediconsult.exceptions import ValidationFailed


class TimingDetail(str, Enum):
    BEFORE_BREAKFAST = 'before_breakfast'
    AFTER_BREAKFAST = 'after_breakfast'
    BEFORE_LUNCH = 'before_lunch'
    AFTER_LUNCH = 'after_lunch'
    BEFORE_DINNER = 'before_dinner'
    AFTER_DINNER = 'after_dinner'
    BEDTIME = 'bedtime'
    ANYTIME = 'anytime'

    @classmethod
    def parse(cls, value) -> Optional['TimingDetail']:
        if value is None or value == '':
            return None
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace(' ', '_').replace('-', '_')
        try:
            return cls(normalized)
        except ValueError:
            allowed = ', '.join(t.value for t in cls)
            raise ValidationFailed(f'Invalid timing_detail "{value}". Must be one of: {allowed}')


def _required_text(value, field_name: str) -> str:
    text = str(value).strip() if value is not None else ''
    if not text:
        raise ValidationFailed(f'{field_name} is required')
    return text


@dataclass(frozen=True)
class MedicationEntry:
    name: str
    dosage: str
    duration: str
    morning: bool = False
    afternoon: bool = False
    evening: bool = False
    timing_detail: Optional[TimingDetail] = None
    instructions: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'name', _required_text(self.name, 'name'))
        object.__setattr__(self, 'dosage', _required_text(self.dosage, 'dosage'))
        object.__setattr__(self, 'duration', _required_text(self.duration, 'duration'))
        object.__setattr__(self, 'timing_detail', TimingDetail.parse(self.timing_detail))
        object.__setattr__(self, 'morning', bool(self.morning))
        object.__setattr__(self, 'afternoon', bool(self.afternoon))
        object.__setattr__(self, 'evening', bool(self.evening))
        instructions = self.instructions.strip() if isinstance(self.instructions, str) else self.instructions
        object.__setattr__(self, 'instructions', instructions or None)

    @property
    def has_schedule(self) -> bool:
        """At least one daily slot is set. Entries without one are allowed but flagged."""
        return self.morning or self.afternoon or self.evening

    def with_changes(self, **changes) -> 'MedicationEntry':
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'MedicationEntry':
        """
        Build an entry from either the nested ``frequency`` shape
        ({"morning": true, ...}) or the flat ``frequency_morning`` column shape.
        """
        if not isinstance(data, Mapping):
            raise ValidationFailed('Medication must be an object')

        frequency = data.get('frequency') or {}
        if not isinstance(frequency, Mapping):
            raise ValidationFailed('frequency must be an object with morning/afternoon/evening flags')

        def slot(name):
            if name in frequency:
                return bool(frequency.get(name))
            return bool(data.get(f'frequency_{name}', False))

        return cls(
            name=data.get('name'),
            dosage=data.get('dosage'),
            duration=data.get('duration'),
            morning=slot('morning'),
            afternoon=slot('afternoon'),
            evening=slot('evening'),
            timing_detail=data.get('timing_detail'),
            instructions=data.get('instructions'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'dosage': self.dosage,
            'duration': self.duration,
            'frequency': {
                'morning': self.morning,
                'afternoon': self.afternoon,
                'evening': self.evening,
            },
            'timing_detail': self.timing_detail.value if self.timing_detail else None,
            'instructions': self.instructions,
        }
