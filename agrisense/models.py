"""
Record shapes shared by the gateway, the store and the insight requester.

Field names follow the APEX soil table so `to_dict()` output can be handed
to the dashboard front end unchanged.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum


def _as_float(v):
    try:
        return float(v) if v is not None else None
    except (ValueError, TypeError):
        return None


def _as_str(v):
    return str(v) if v is not None else None


@dataclass(frozen=True)
class SensorReading:
    group_id: int | None
    moisture: float | None
    temperature: float | None
    ec: float | None
    ph: float | None
    nitrogen: float | None
    phosphorus: float | None
    potassium: float | None
    valid: str | None
    captured_at: str

    @classmethod
    def from_item(cls, item: dict) -> "SensorReading":
        """Build a reading from one row of the APEX `items` array.

        APEX returns lowercase column names; the older uppercase names are
        accepted too.
        """
        def pick(*keys):
            for k in keys:
                if k in item and item[k] is not None:
                    return item[k]
            return None

        gid = pick('group_id', 'GROUP_ID')
        try:
            gid = int(gid) if gid is not None else None
        except (ValueError, TypeError):
            gid = None

        return cls(
            group_id=gid,
            moisture=_as_float(pick('moisture', 'MOISTURE')),
            temperature=_as_float(pick('temperature', 'TEMPERATURE')),
            ec=_as_float(pick('ec', 'EC')),
            ph=_as_float(pick('ph', 'PH')),
            nitrogen=_as_float(pick('nitrogen', 'NITROGEN')),
            phosphorus=_as_float(pick('phosphorus', 'PHOSPHORUS')),
            potassium=_as_float(pick('potassium', 'POTASSIUM')),
            valid=_as_str(pick('valid', 'VALID')),
            captured_at=_as_str(pick('corrected_created_at', 'CORRECTED_CREATED_AT')) or '',
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        d['corrected_created_at'] = d.pop('captured_at')
        return d


@dataclass(frozen=True)
class ForecastDay:
    day: str
    temp: int
    icon: str
    description: str
    humidity: int
    wind_speed: int

    def to_dict(self) -> dict:
        return {
            'day': self.day,
            'temp': self.temp,
            'icon': self.icon,
            'description': self.description,
            'humidity': self.humidity,
            'windSpeed': self.wind_speed,
        }


@dataclass(frozen=True)
class WeatherSnapshot:
    temperature: int
    humidity: float
    rainfall: float  # mm, today's total
    wind_speed: int  # km/h
    description: str
    icon: str
    forecast: tuple[ForecastDay, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            'temperature': self.temperature,
            'humidity': self.humidity,
            'rainfall': self.rainfall,
            'windSpeed': self.wind_speed,
            'description': self.description,
            'icon': self.icon,
            'forecast': [f.to_dict() for f in self.forecast],
        }


class Priority(str, Enum):
    HIGH = 'High'
    MEDIUM = 'Medium'
    LOW = 'Low'


@dataclass(frozen=True)
class Recommendation:
    title: str
    description: str
    priority: Priority

    @classmethod
    def from_dict(cls, data: dict) -> "Recommendation":
        """Raises ValueError/KeyError/TypeError on a malformed entry."""
        title = data['title']
        description = data['description']
        if not isinstance(title, str) or not isinstance(description, str):
            raise TypeError("title and description must be strings")
        return cls(title=title, description=description, priority=Priority(data['priority']))

    def to_dict(self) -> dict:
        return {'title': self.title, 'description': self.description, 'priority': self.priority.value}


class Role(str, Enum):
    USER = 'user'
    ASSISTANT = 'assistant'


@dataclass(frozen=True)
class ChatTurn:
    role: Role
    text: str

    def to_dict(self) -> dict:
        return {'role': self.role.value, 'text': self.text}
