# symptom_mem/learning/queries.py

from ..models import MemoryKind, MemoryModel

MIN_LOOKUP_CONFIDENCE = 0.4


def same_label(a: str | None, b: str | None) -> bool:
    """Case-insensitive label match; None never matches."""
    return a is not None and b is not None and a.lower() == b.lower()


def memories_for_symptom(memories: list[MemoryModel], symptom: str) -> list[MemoryModel]:
    found = [m for m in memories if m.is_active and same_label(m.symptom, symptom)]
    return sorted(found, key=lambda m: m.confidence, reverse=True)


def what_worked(
    memories: list[MemoryModel],
    symptom: str,
    min_confidence: float = MIN_LOOKUP_CONFIDENCE,
) -> list[MemoryModel]:
    found = [
        m
        for m in memories
        if m.is_active
        and m.kind == MemoryKind.WORKED_REMEDY
        and same_label(m.symptom, symptom)
        and m.confidence >= min_confidence
    ]
    return sorted(found, key=lambda m: m.effectiveness_score, reverse=True)


def triggers_for_symptom(
    memories: list[MemoryModel],
    symptom: str,
    min_confidence: float = MIN_LOOKUP_CONFIDENCE,
) -> list[MemoryModel]:
    found = [
        m
        for m in memories
        if m.is_active
        and m.kind == MemoryKind.TRIGGER
        and same_label(m.symptom, symptom)
        and m.confidence >= min_confidence
    ]
    return sorted(found, key=lambda m: m.confidence, reverse=True)


def all_triggers(memories: list[MemoryModel]) -> list[MemoryModel]:
    return [m for m in memories if m.is_active and m.kind == MemoryKind.TRIGGER]


def environmental_patterns(memories: list[MemoryModel]) -> list[MemoryModel]:
    found = [
        m
        for m in memories
        if m.is_active and m.kind == MemoryKind.PATTERN and m.environmental_factor is not None
    ]
    return sorted(found, key=lambda m: m.confidence, reverse=True)
