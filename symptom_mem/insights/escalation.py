# symptom_mem/insights/escalation.py

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, Field

from ..models import Event, WarningSeverity

ANY_SYMPTOM = "Any"


class Urgency(str, Enum):
    URGENT = "urgent"
    IMPORTANT = "important"
    RECOMMENDED = "recommended"
    INFORMATIONAL = "informational"

    @property
    def sort_order(self) -> int:
        return {"urgent": 0, "important": 1, "recommended": 2, "informational": 3}[self.value]

    @property
    def severity(self) -> WarningSeverity:
        match self:
            case Urgency.URGENT:
                return WarningSeverity.ALERT
            case Urgency.IMPORTANT:
                return WarningSeverity.CAUTION
            case _:
                return WarningSeverity.INFO

    @property
    def action_required(self) -> bool:
        return self in (Urgency.URGENT, Urgency.IMPORTANT)


class EscalationRule(BaseModel):
    symptom_filter: str                     # substring of a symptom label, or "Any"
    occurrence_threshold: int = Field(ge=1)
    severity_threshold: int = Field(ge=1, le=5)
    window_days: int = Field(ge=1)
    message: str
    urgency: Urgency

    def matches(self, event: Event) -> bool:
        if not event.symptoms:
            return False
        if self.symptom_filter == ANY_SYMPTOM:
            return True
        needle = self.symptom_filter.lower()
        return any(needle in s.lower() for s in event.symptoms)


class Escalation(BaseModel):
    rule: EscalationRule
    occurrences: int
    max_severity: int

    @property
    def message(self) -> str:
        return self.rule.message

    @property
    def urgency(self) -> Urgency:
        return self.rule.urgency


DEFAULT_RULES: list[EscalationRule] = [
    EscalationRule(
        symptom_filter="Headache",
        occurrence_threshold=8,
        window_days=30,
        severity_threshold=3,
        message=(
            "You've logged 8+ headaches this month. This doesn't necessarily mean something is "
            "wrong, but frequent headaches are often worth discussing with a doctor who can help "
            "identify causes and solutions."
        ),
        urgency=Urgency.RECOMMENDED,
    ),
    EscalationRule(
        symptom_filter=ANY_SYMPTOM,
        occurrence_threshold=3,
        window_days=14,
        severity_threshold=5,
        message=(
            "You've experienced several intense symptoms recently. While there may be simple "
            "explanations, patterns like this are usually worth running by a healthcare provider "
            "to rule out underlying causes."
        ),
        urgency=Urgency.IMPORTANT,
    ),
    EscalationRule(
        symptom_filter=ANY_SYMPTOM,
        occurrence_threshold=14,
        window_days=21,
        severity_threshold=2,
        message=(
            "This symptom has persisted for over 2 weeks. Persistent symptoms can have many causes "
            "- a quick check-in with your doctor could help identify what's going on and find "
            "relief faster."
        ),
        urgency=Urgency.RECOMMENDED,
    ),
    EscalationRule(
        symptom_filter="Chest Pain",
        occurrence_threshold=1,
        window_days=7,
        severity_threshold=3,
        message=(
            "Chest pain has many causes (muscle strain, acid reflux, anxiety), but it's one "
            "symptom that's always worth getting checked promptly. Please consider contacting a "
            "healthcare provider."
        ),
        urgency=Urgency.URGENT,
    ),
    EscalationRule(
        symptom_filter="Breathing",
        occurrence_threshold=2,
        window_days=7,
        severity_threshold=3,
        message=(
            "Breathing difficulties can stem from many things including allergies, anxiety, or "
            "deconditioning. Since you've logged this a few times, it may be helpful to discuss "
            "with your doctor."
        ),
        urgency=Urgency.IMPORTANT,
    ),
    EscalationRule(
        symptom_filter="Digestive",
        occurrence_threshold=10,
        window_days=30,
        severity_threshold=2,
        message=(
            "Frequent digestive issues are very common and often manageable, but ongoing symptoms "
            "could benefit from evaluation. A doctor or dietitian can help identify triggers and "
            "solutions."
        ),
        urgency=Urgency.RECOMMENDED,
    ),
    EscalationRule(
        symptom_filter="Sleep",
        occurrence_threshold=14,
        window_days=21,
        severity_threshold=3,
        message=(
            "Sleep difficulties over time can affect overall wellbeing. If lifestyle changes "
            "haven't helped, a healthcare provider can offer additional strategies or check for "
            "underlying causes."
        ),
        urgency=Urgency.RECOMMENDED,
    ),
    EscalationRule(
        symptom_filter="Mood",
        occurrence_threshold=7,
        window_days=14,
        severity_threshold=3,
        message=(
            "Your recent logs suggest you've been going through a difficult stretch. Talking to "
            "someone - whether a counselor, therapist, or your doctor - can provide support and "
            "helpful perspectives."
        ),
        urgency=Urgency.RECOMMENDED,
    ),
]


def evaluate(events: list[Event], rules: list[EscalationRule], now: datetime) -> list[Escalation]:
    """Fired rules, most urgent first (stable within the same urgency)."""
    fired: list[Escalation] = []
    for rule in rules:
        window_start = now - timedelta(days=rule.window_days)
        relevant = [e for e in events if window_start <= e.timestamp <= now and rule.matches(e)]
        if not relevant:
            continue
        max_severity = max(e.severity for e in relevant)
        if len(relevant) >= rule.occurrence_threshold and max_severity >= rule.severity_threshold:
            fired.append(
                Escalation(rule=rule, occurrences=len(relevant), max_severity=max_severity)
            )
    return sorted(fired, key=lambda esc: esc.urgency.sort_order)
