from dataclasses import asdict, dataclass, field, fields
from typing import Any, TypeVar

T = TypeVar("T")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _camelize(value: Any) -> Any:
    if isinstance(value, dict):
        return {_camel(k): _camelize(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_camelize(v) for v in value]
    return value


def to_record(obj: Any) -> dict:
    """Serialize a model (nested models included) to its camelCase JSON record.

    Unset optionals are omitted, the way the JSON store has always been written.
    """
    return _camelize(asdict(obj))


def from_record(cls: type[T], record: dict) -> T:
    """Build a model from a camelCase record, ignoring unknown keys."""
    kwargs = {}
    for f in fields(cls):
        key = _camel(f.name)
        if key in record:
            kwargs[f.name] = record[key]
    return cls(**kwargs)


@dataclass
class Doctor:
    id: str
    name: str
    specialty: str
    email: str = ""
    phone: str = ""
    sessions: int = 0
    avg_engagement: int = 0
    last_session: str | None = None
    total_time: str = "0h 0m"
    total_seconds: float = 0.0
    engagement_sum: int = 0
    status: str = "active"  # active | inactive


@dataclass
class Presentation:
    id: str
    title: str
    description: str = ""
    slides: int = 0
    sessions: int = 0
    avg_engagement: int = 0
    last_used: str | None = None
    status: str = "active"  # active | draft
    created_at: str = ""
    engagement_sum: int = 0


@dataclass
class Slide:
    id: str
    presentation_id: str
    title: str
    content: str = ""
    image_url: str = ""
    order: int = 0


@dataclass
class Session:
    id: str
    doctor_id: str
    presentation_id: str
    start_time: str
    end_time: str | None = None
    total_time: float | None = None  # seconds
    avg_engagement: int | None = None

    @property
    def is_ended(self) -> bool:
        return self.end_time is not None


@dataclass
class SlideAnalytic:
    id: str
    session_id: str
    slide_id: str
    time_spent: float  # milliseconds


@dataclass
class Database:
    doctors: list[Doctor] = field(default_factory=list)
    presentations: list[Presentation] = field(default_factory=list)
    slides: list[Slide] = field(default_factory=list)
    sessions: list[Session] = field(default_factory=list)
    slide_analytics: list[SlideAnalytic] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.doctors or self.presentations or self.slides)

    def to_document(self) -> dict:
        return {
            "doctors": [to_record(d) for d in self.doctors],
            "presentations": [to_record(p) for p in self.presentations],
            "slides": [to_record(s) for s in self.slides],
            "sessions": [to_record(s) for s in self.sessions],
            "slideAnalytics": [to_record(a) for a in self.slide_analytics],
        }

    @classmethod
    def from_document(cls, document: dict) -> "Database":
        return cls(
            doctors=[from_record(Doctor, r) for r in document.get("doctors", [])],
            presentations=[
                from_record(Presentation, r) for r in document.get("presentations", [])
            ],
            slides=[from_record(Slide, r) for r in document.get("slides", [])],
            sessions=[from_record(Session, r) for r in document.get("sessions", [])],
            slide_analytics=[
                from_record(SlideAnalytic, r)
                for r in document.get("slideAnalytics", [])
            ],
        )


@dataclass
class RecentSession:
    """A completed session joined with its doctor and presentation."""

    session: Session
    doctor: Doctor
    presentation: Presentation
    slides: int  # distinct slides visited
    duration: float  # seconds


@dataclass
class SlideStats:
    slide: Slide
    total_time_spent: float
    avg_time_spent: float
    views: int
