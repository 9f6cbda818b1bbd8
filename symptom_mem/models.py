# symptom_mem/models.py

from collections import deque
from datetime import datetime
from enum import Enum
from typing import Annotated, Deque, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

MAX_SPECIFIC_DATES = 20


def _new_id() -> str:
    return str(uuid4())


# ---------------------------------------------------------------------- #
# Enums
# ---------------------------------------------------------------------- #


class MemoryKind(str, Enum):
    TRIGGER = "trigger"                # "Dairy causes bloating"
    WORKED_REMEDY = "worked_remedy"    # "Magnesium helped headache"
    FAILED_REMEDY = "failed_remedy"    # "Ibuprofen didn't help"
    PATTERN = "pattern"                # "Headaches on low pressure days"
    CORRELATION = "correlation"        # "Sleep < 6hrs -> fatigue"
    PREFERENCE = "preference"          # "User prefers natural remedies"

    @property
    def is_remedy(self) -> bool:
        return self in (MemoryKind.WORKED_REMEDY, MemoryKind.FAILED_REMEDY)


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_scores(cls, confidence: float, occurrences: int) -> "ConfidenceLevel":
        if occurrences >= 10 and confidence >= 0.7:
            return cls.HIGH
        if occurrences >= 5 and confidence >= 0.5:
            return cls.MEDIUM
        return cls.LOW

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class UserFeedback(str, Enum):
    HELPED = "helped"
    DIDNT_HELP = "didnt_help"
    NOT_SURE_YET = "not_sure_yet"
    NOT_RELEVANT = "not_relevant"

    @property
    def confidence_adjustment(self) -> float:
        return {
            "helped": 0.1,
            "didnt_help": -0.15,
            "not_sure_yet": 0.0,
            "not_relevant": -0.25,
        }[self.value]


class MemoryDetailLevel(str, Enum):
    DETAILED = "detailed"    # keep contributing dates
    PATTERNS = "patterns"    # pattern-level memory only
    MINIMAL = "minimal"


class SuggestionLevel(str, Enum):
    MINIMAL = "minimal"
    STANDARD = "standard"
    PROACTIVE = "proactive"

    @property
    def confidence_threshold(self) -> float:
        return _LEVEL_POLICY[self.value][0]

    @property
    def minimum_occurrences(self) -> int:
        return _LEVEL_POLICY[self.value][1]

    @property
    def max_questions(self) -> int:
        return _LEVEL_POLICY[self.value][2]

    @property
    def show_needs_more_data(self) -> bool:
        return _LEVEL_POLICY[self.value][3]


# level -> (confidence threshold, min occurrences, max questions, show needs-more-data)
_LEVEL_POLICY = {
    "minimal": (0.7, 5, 1, False),
    "standard": (0.5, 3, 2, True),
    "proactive": (0.3, 2, 3, True),
}


class UserPreferences(BaseModel):
    suggestion_level: SuggestionLevel = SuggestionLevel.STANDARD
    memory_level: MemoryDetailLevel = MemoryDetailLevel.PATTERNS


# ---------------------------------------------------------------------- #
# Events (read-only input)
# ---------------------------------------------------------------------- #


class TreatmentUse(BaseModel):
    name: str
    effectiveness: Optional[int] = Field(default=None, ge=1, le=10)


class Event(BaseModel):
    id: str = Field(default_factory=_new_id)
    timestamp: datetime
    symptoms: List[str] = []
    food: Optional[str] = None
    severity: int = Field(default=3, ge=1, le=5)
    category: str = ""
    pressure: str = ""             # "Low" | "Falling" | "Normal" | "Rising" | "High"
    moon_phase: str = ""
    season: str = ""
    notes: str = ""
    treatments: List[TreatmentUse] = []
    protocol_id: Optional[str] = None
    protocol_effectiveness: Optional[int] = Field(default=None, ge=1, le=10)

    @property
    def food_item(self) -> Optional[str]:
        if self.food and self.food.strip():
            return self.food
        return None


# ---------------------------------------------------------------------- #
# Memory record
# ---------------------------------------------------------------------- #


class TriggerContext(BaseModel):
    kind: Literal["trigger"] = "trigger"
    trigger: str
    symptom: str


class RemedyContext(BaseModel):
    kind: Literal["worked_remedy", "failed_remedy"]
    resolution: str
    symptom: str
    resolution_time: Optional[str] = None   # "within 2 hours", "next day"


class PatternContext(BaseModel):
    kind: Literal["pattern"] = "pattern"
    symptom: str
    environmental_factor: Optional[str] = None   # "Low", "Moon: Full Moon", "Season: Winter"
    time_of_day: Optional[str] = None            # "Morning" | "Afternoon" | "Evening" | "Night"

    @model_validator(mode="after")
    def _one_factor(self) -> "PatternContext":
        if (self.environmental_factor is None) == (self.time_of_day is None):
            raise ValueError("pattern needs exactly one of environmental_factor / time_of_day")
        return self


class CorrelationContext(BaseModel):
    kind: Literal["correlation"] = "correlation"
    trigger: str
    symptom: str


class PreferenceContext(BaseModel):
    kind: Literal["preference"] = "preference"
    preference: str
    symptom: Optional[str] = None


MemoryContext = Annotated[
    Union[TriggerContext, RemedyContext, PatternContext, CorrelationContext, PreferenceContext],
    Field(discriminator="kind"),
]


class MemoryModel(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    context: MemoryContext
    notes: Optional[str] = None

    occurrence_count: int = Field(default=1, ge=1)
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    last_occurrence: datetime
    specific_dates: Deque[datetime] = Field(
        default_factory=lambda: deque(maxlen=MAX_SPECIFIC_DATES)
    )

    confidence: float = 0.5        # clamped by the engine, NaN is a health issue
    user_confirmed: bool = False
    user_denied: bool = False

    is_active: bool = True
    created_date: datetime
    last_updated: datetime

    # cooldown
    last_shown_date: Optional[datetime] = None
    consecutive_ignores: int = Field(default=0, ge=0)
    cooldown_until: Optional[datetime] = None

    @field_validator("specific_dates", mode="after")
    @classmethod
    def _bounded_dates(cls, v: Deque[datetime]) -> Deque[datetime]:
        return deque(sorted(v)[-MAX_SPECIFIC_DATES:], maxlen=MAX_SPECIFIC_DATES)

    @property
    def kind(self) -> MemoryKind:
        return MemoryKind(self.context.kind)

    @property
    def symptom(self) -> Optional[str]:
        return self.context.symptom

    @property
    def trigger(self) -> Optional[str]:
        return getattr(self.context, "trigger", None)

    @property
    def resolution(self) -> Optional[str]:
        return getattr(self.context, "resolution", None)

    @property
    def resolution_time(self) -> Optional[str]:
        return getattr(self.context, "resolution_time", None)

    @property
    def environmental_factor(self) -> Optional[str]:
        return getattr(self.context, "environmental_factor", None)

    @property
    def time_of_day(self) -> Optional[str]:
        return getattr(self.context, "time_of_day", None)

    @property
    def effectiveness_score(self) -> float:
        total = self.success_count + self.failure_count
        return self.success_count / total if total > 0 else 0.5

    @property
    def effectiveness_percentage(self) -> int:
        return int(self.effectiveness_score * 100)


# ---------------------------------------------------------------------- #
# Response (output of one insight pass)
# ---------------------------------------------------------------------- #


class WarningSeverity(str, Enum):
    INFO = "info"
    CAUTION = "caution"
    ALERT = "alert"


class Observation(BaseModel):
    text: str
    confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM
    source: str = "pattern"        # environment | trigger | screening | time_of_day | correlation
    memory_id: Optional[str] = None


class Suggestion(BaseModel):
    text: str
    effectiveness: Optional[int] = None      # percentage if known
    last_helped: Optional[datetime] = None
    occurrence_count: Optional[int] = None
    memory_id: Optional[str] = None


class HealthWarning(BaseModel):
    text: str
    severity: WarningSeverity
    action_required: bool = False
    source: str = "safety"         # safety | escalation


class Question(BaseModel):
    text: str
    options: List[str] = ["Yes", "No"]
    context: Optional[str] = None
    related_to: Optional[str] = None


class NeedsMoreData(BaseModel):
    text: str
    data_needed: List[str] = []
    current_progress: Optional[str] = None

    @classmethod
    def default(cls) -> "NeedsMoreData":
        return cls(
            text="I'm still learning your patterns. Keep logging and I'll start spotting trends soon!",
            data_needed=["More symptom logs", "Food/trigger tracking", "Time to observe patterns"],
        )

    @classmethod
    def for_symptom(cls, symptom: str, occurrences: int, minimum_needed: int) -> "NeedsMoreData":
        name = symptom.lower()
        return cls(
            text=(
                f"I don't have enough data about your {name} yet to identify patterns. "
                "I'll keep tracking as you log."
            ),
            data_needed=[f"More {name} logs", "Potential trigger info", "What helped or didn't"],
            current_progress=(
                f"{occurrences} of ~{minimum_needed} logs for reliable patterns"
                if occurrences > 0
                else None
            ),
        )

    @classmethod
    def general_low_confidence(cls) -> "NeedsMoreData":
        return cls(
            text=(
                "I have some early observations, but need more data to be confident. "
                "I'll keep learning as you log more."
            ),
            data_needed=["Continue logging symptoms", "Note what you eat and do", "Track what helps"],
        )


class InsightResponse(BaseModel):
    observations: List[Observation] = []
    suggestions: List[Suggestion] = []
    warnings: List[HealthWarning] = []
    questions: List[Question] = []
    needs_more_data: Optional[NeedsMoreData] = None
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def has_content(self) -> bool:
        return bool(
            self.observations
            or self.suggestions
            or self.warnings
            or self.questions
            or self.needs_more_data is not None
        )

    @property
    def total_character_count(self) -> int:
        count = sum(len(o.text) for o in self.observations)
        count += sum(len(s.text) for s in self.suggestions)
        count += sum(len(q.text) for q in self.questions)
        count += sum(len(w.text) for w in self.warnings)
        if self.needs_more_data is not None:
            count += len(self.needs_more_data.text)
        return count

    def memory_ids(self) -> List[str]:
        ids = [o.memory_id for o in self.observations if o.memory_id]
        ids += [s.memory_id for s in self.suggestions if s.memory_id]
        return list(dict.fromkeys(ids))


# ---------------------------------------------------------------------- #
# Collaborator payloads
# ---------------------------------------------------------------------- #


class SafetyStatus(str, Enum):
    SAFE = "safe"
    CAUTION = "caution"
    AVOID = "avoid"


class Allergy(BaseModel):
    name: str                                 # "Shellfish", "Dairy", "Birch Pollen"
    allergy_type: str = "allergy"             # "allergy" | "intolerance" | "sensitivity"
    severity: str = "moderate"                # "mild" | "moderate" | "severe"
    cross_reactive_items: List[str] = []
    known_reactions: List[str] = []


class SafetyResult(BaseModel):
    status: SafetyStatus
    food: str
    explanation: str
    notes: List[str] = []


class Screening(BaseModel):
    name: str                                 # "Thyroid Panel", "Blood Pressure Check"
    next_due_date: Optional[datetime] = None
    is_enabled: bool = True

    def is_overdue(self, now: datetime) -> bool:
        return self.is_enabled and self.next_due_date is not None and now > self.next_due_date
