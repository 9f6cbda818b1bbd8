# symptom_mem/insights/__init__.py

from .engine import InsightEngine
from .escalation import DEFAULT_RULES, Escalation, EscalationRule, Urgency
from .trimmer import ResponseTrimmer
from .windows import context_window_hours, time_of_day

__all__ = [
    "DEFAULT_RULES",
    "Escalation",
    "EscalationRule",
    "InsightEngine",
    "ResponseTrimmer",
    "Urgency",
    "context_window_hours",
    "time_of_day",
]
