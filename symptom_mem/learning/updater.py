# symptom_mem/learning/updater.py

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from ..models import (
    Event,
    MemoryDetailLevel,
    MemoryKind,
    MemoryModel,
    PatternContext,
    RemedyContext,
    TriggerContext,
)
from ..temporal.engine import TemporalEngine
from .queries import same_label

SEED_CONFIDENCE = 0.3
NEUTRAL_EFFECTIVENESS = 5


@dataclass
class UpdateResult:
    created: list[MemoryModel] = field(default_factory=list)
    updated: list[MemoryModel] = field(default_factory=list)

    def is_new(self, mem: MemoryModel) -> bool:
        return any(m.id == mem.id for m in self.created)

    def is_known(self, mem: MemoryModel) -> bool:
        return any(m.id == mem.id for m in self.touched)

    @property
    def touched(self) -> list[MemoryModel]:
        return self.created + self.updated


class MemoryUpdater:
    """
    Incremental, single-event counterpart of MemoryBuilder.

    For each new event:
    - food x symptom       -> find-or-create Trigger
    - treatment x symptom  -> find-or-create remedy (+ success/failure)
    - pressure x symptom   -> find-or-create Pattern (non-"Normal" only)

    Time-of-day patterns are left to the batch builder. Records are mutated in
    place; persisting them is the caller's job.
    """

    def __init__(self, engine: TemporalEngine) -> None:
        self.engine = engine

    def update(
        self,
        user_id: str,
        event: Event,
        existing: list[MemoryModel],
        memory_level: MemoryDetailLevel = MemoryDetailLevel.PATTERNS,
    ) -> UpdateResult:
        result = UpdateResult()
        pool = [m for m in existing if m.is_active]

        food = event.food_item
        if food:
            for symptom in event.symptoms:
                self._upsert(
                    user_id,
                    pool,
                    result,
                    event.timestamp,
                    memory_level,
                    match=lambda m, s=symptom: (
                        m.kind == MemoryKind.TRIGGER
                        and same_label(m.trigger, food)
                        and same_label(m.symptom, s)
                    ),
                    make=lambda s=symptom: TriggerContext(trigger=food, symptom=s),
                )

        for treatment in event.treatments:
            effectiveness = (
                treatment.effectiveness
                if treatment.effectiveness is not None
                else NEUTRAL_EFFECTIVENESS
            )
            effective = effectiveness > NEUTRAL_EFFECTIVENESS
            for symptom in event.symptoms:
                mem = self._upsert(
                    user_id,
                    pool,
                    result,
                    event.timestamp,
                    memory_level,
                    match=lambda m, s=symptom, name=treatment.name: (
                        m.kind.is_remedy and same_label(m.resolution, name) and same_label(m.symptom, s)
                    ),
                    make=lambda s=symptom, name=treatment.name: RemedyContext(
                        kind=(MemoryKind.WORKED_REMEDY if effective else MemoryKind.FAILED_REMEDY).value,
                        resolution=name,
                        symptom=s,
                    ),
                )
                if result.is_new(mem):
                    if effective:
                        mem.success_count += 1
                    else:
                        mem.failure_count += 1
                elif effective:
                    self.engine.record_success(mem)
                else:
                    self.engine.record_failure(mem)

        pressure = event.pressure
        if pressure and pressure != "Normal":
            for symptom in event.symptoms:
                self._upsert(
                    user_id,
                    pool,
                    result,
                    event.timestamp,
                    memory_level,
                    match=lambda m, s=symptom: (
                        m.kind == MemoryKind.PATTERN
                        and m.environmental_factor == pressure
                        and same_label(m.symptom, s)
                    ),
                    make=lambda s=symptom: PatternContext(symptom=s, environmental_factor=pressure),
                    notes_for=lambda s=symptom: f"{s} observed during {pressure}",
                )

        print(
            f"[MemoryUpdater] user={user_id} created={len(result.created)} "
            f"updated={len(result.updated)}"
        )
        return result

    def _upsert(
        self,
        user_id: str,
        pool: list[MemoryModel],
        result: UpdateResult,
        when: datetime,
        memory_level: MemoryDetailLevel,
        match: Callable[[MemoryModel], bool],
        make: Callable[[], TriggerContext | RemedyContext | PatternContext],
        notes_for: Callable[[], str] | None = None,
    ) -> MemoryModel:
        for mem in pool:
            if match(mem):
                self.engine.record_occurrence(mem, when)
                if not result.is_known(mem):
                    result.updated.append(mem)
                return mem

        now = self.engine.now()
        mem = MemoryModel(
            user_id=user_id,
            context=make(),
            notes=notes_for() if notes_for else None,
            occurrence_count=1,
            last_occurrence=when,
            confidence=SEED_CONFIDENCE,
            created_date=now,
            last_updated=now,
        )
        if memory_level == MemoryDetailLevel.DETAILED:
            mem.specific_dates.append(when)

        pool.append(mem)
        result.created.append(mem)
        return mem
