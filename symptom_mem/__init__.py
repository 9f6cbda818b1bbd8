# symptom_mem/__init__.py

from .memory import SymptomMemory
from .models import (
    Allergy,
    Event,
    InsightResponse,
    MemoryKind,
    MemoryModel,
    Screening,
    SuggestionLevel,
    TreatmentUse,
    UserFeedback,
)

__all__ = [
    "Allergy",
    "Event",
    "InsightResponse",
    "MemoryKind",
    "MemoryModel",
    "Screening",
    "SuggestionLevel",
    "SymptomMemory",
    "TreatmentUse",
    "UserFeedback",
]
