# symptom_mem/learning/builder.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ..insights.windows import time_of_day
from ..models import (
    MAX_SPECIFIC_DATES,
    Event,
    MemoryDetailLevel,
    MemoryKind,
    MemoryModel,
    PatternContext,
    RemedyContext,
    TriggerContext,
)
from ..temporal.engine import TemporalEngine, tier_confidence

MIN_OCCURRENCES = 2
CORRELATION_WINDOW_HOURS = 24
SUCCESS_ABOVE = 5
MOON_DISCOUNT = 0.8


@dataclass
class _Tally:
    count: int = 0
    successes: int = 0
    failures: int = 0
    dates: list[datetime] = field(default_factory=list)

    def hit(self, when: datetime) -> None:
        self.count += 1
        self.dates.append(when)


class MemoryBuilder:
    """
    Batch pass over a user's event history.

    Produces fresh MemoryModel objects (not persisted) for:
    - food -> symptom triggers within a trailing 24h window
    - treatment / protocol effectiveness per symptom
    - pressure, moon phase and season patterns
    - time-of-day patterns

    Every tally is keyed by an explicit (factor, symptom) tuple, so the same
    history and the same engine clock always yield the same records.
    """

    def __init__(self, engine: TemporalEngine, minimum_occurrences: int = MIN_OCCURRENCES) -> None:
        self.engine = engine
        self.minimum_occurrences = minimum_occurrences

    def build(
        self,
        user_id: str,
        events: Iterable[Event],
        memory_level: MemoryDetailLevel = MemoryDetailLevel.PATTERNS,
    ) -> list[MemoryModel]:
        ordered = sorted(events, key=lambda e: e.timestamp)

        memories: list[MemoryModel] = []
        memories.extend(self._build_triggers(user_id, ordered, memory_level))
        memories.extend(self._build_effectiveness(user_id, ordered, memory_level))
        memories.extend(self._build_environmental(user_id, ordered, memory_level))
        memories.extend(self._build_time_of_day(user_id, ordered, memory_level))

        print(f"[MemoryBuilder] Built {len(memories)} memories from {len(ordered)} events for user={user_id}")
        return memories

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _new(
        self,
        user_id: str,
        context: TriggerContext | RemedyContext | PatternContext,
        tally: _Tally,
        confidence: float,
        memory_level: MemoryDetailLevel,
        occurrences: int | None = None,
        notes: str | None = None,
    ) -> MemoryModel:
        now = self.engine.now()
        mem = MemoryModel(
            user_id=user_id,
            context=context,
            notes=notes,
            occurrence_count=occurrences if occurrences is not None else tally.count,
            last_occurrence=tally.dates[-1] if tally.dates else now,
            confidence=confidence,
            created_date=now,
            last_updated=now,
        )
        if memory_level == MemoryDetailLevel.DETAILED:
            mem.specific_dates.extend(tally.dates[-MAX_SPECIFIC_DATES:])
        return mem

    # ------------------------------------------------------------------ #
    # Triggers
    # ------------------------------------------------------------------ #

    def _build_triggers(
        self, user_id: str, events: list[Event], memory_level: MemoryDetailLevel
    ) -> list[MemoryModel]:
        tallies: dict[tuple[str, str], _Tally] = {}
        food_events = [e for e in events if e.food_item]
        window = timedelta(hours=CORRELATION_WINDOW_HOURS)

        for event in events:
            if not event.symptoms:
                continue

            window_start = event.timestamp - window
            # the event's own food is one of the candidates, counted once
            candidates = [
                f for f in food_events if window_start <= f.timestamp <= event.timestamp
            ]
            if event.food_item and all(f.id != event.id for f in candidates):
                candidates.append(event)

            for food_event in candidates:
                food_key = food_event.food_item.lower()
                for symptom in event.symptoms:
                    tallies.setdefault((food_key, symptom), _Tally()).hit(event.timestamp)

        memories = []
        for (food, symptom), tally in tallies.items():
            if tally.count < self.minimum_occurrences:
                continue
            memories.append(
                self._new(
                    user_id,
                    TriggerContext(trigger=food, symptom=symptom),
                    tally,
                    tier_confidence(tally.count),
                    memory_level,
                )
            )
        return memories

    # ------------------------------------------------------------------ #
    # Treatment / protocol effectiveness
    # ------------------------------------------------------------------ #

    def _build_effectiveness(
        self, user_id: str, events: list[Event], memory_level: MemoryDetailLevel
    ) -> list[MemoryModel]:
        tallies: dict[tuple[str, str], _Tally] = {}

        def score(key: str, symptom: str, effectiveness: int | None, when: datetime) -> None:
            tally = tallies.setdefault((key, symptom), _Tally())
            if effectiveness is not None:
                if effectiveness > SUCCESS_ABOVE:
                    tally.successes += 1
                else:
                    tally.failures += 1
            tally.dates.append(when)

        for event in events:
            if not event.symptoms:
                continue

            for treatment in event.treatments:
                for symptom in event.symptoms:
                    score(treatment.name.lower(), symptom, treatment.effectiveness, event.timestamp)

            if event.protocol_effectiveness is not None:
                protocol_key = f"protocol_{(event.protocol_id or 'unknown')[:8]}"
                for symptom in event.symptoms:
                    score(protocol_key, symptom, event.protocol_effectiveness, event.timestamp)

        memories = []
        for (resolution, symptom), tally in tallies.items():
            trials = tally.successes + tally.failures
            if trials < self.minimum_occurrences:
                continue

            kind = (
                MemoryKind.WORKED_REMEDY
                if tally.successes > tally.failures
                else MemoryKind.FAILED_REMEDY
            )
            mem = self._new(
                user_id,
                RemedyContext(kind=kind.value, resolution=resolution, symptom=symptom),
                tally,
                tier_confidence(trials),
                memory_level,
                occurrences=trials,
            )
            mem.success_count = tally.successes
            mem.failure_count = tally.failures
            memories.append(mem)
        return memories

    # ------------------------------------------------------------------ #
    # Environmental patterns
    # ------------------------------------------------------------------ #

    def _build_environmental(
        self, user_id: str, events: list[Event], memory_level: MemoryDetailLevel
    ) -> list[MemoryModel]:
        pressure: dict[tuple[str, str], _Tally] = {}
        moon: dict[tuple[str, str], _Tally] = {}
        season: dict[tuple[str, str], _Tally] = {}

        for event in events:
            for symptom in event.symptoms:
                if event.pressure and event.pressure != "Normal":
                    pressure.setdefault((event.pressure, symptom), _Tally()).hit(event.timestamp)
                if event.moon_phase:
                    moon.setdefault((event.moon_phase, symptom), _Tally()).hit(event.timestamp)
                if event.season:
                    season.setdefault((event.season, symptom), _Tally()).hit(event.timestamp)

        memories = []

        for (value, symptom), tally in pressure.items():
            if tally.count < self.minimum_occurrences:
                continue
            memories.append(
                self._new(
                    user_id,
                    PatternContext(symptom=symptom, environmental_factor=value),
                    tally,
                    tier_confidence(tally.count),
                    memory_level,
                    notes=f"{symptom} often occurs during {value} pressure",
                )
            )

        for (value, symptom), tally in moon.items():
            if tally.count < self.minimum_occurrences + 1:
                continue
            memories.append(
                self._new(
                    user_id,
                    PatternContext(symptom=symptom, environmental_factor=f"Moon: {value}"),
                    tally,
                    tier_confidence(tally.count) * MOON_DISCOUNT,
                    memory_level,
                    notes=f"{symptom} observed during {value}",
                )
            )

        for (value, symptom), tally in season.items():
            if tally.count < self.minimum_occurrences + 2:
                continue
            memories.append(
                self._new(
                    user_id,
                    PatternContext(symptom=symptom, environmental_factor=f"Season: {value}"),
                    tally,
                    tier_confidence(tally.count),
                    memory_level,
                    notes=f"{symptom} more common in {value}",
                )
            )

        return memories

    # ------------------------------------------------------------------ #
    # Time of day
    # ------------------------------------------------------------------ #

    def _build_time_of_day(
        self, user_id: str, events: list[Event], memory_level: MemoryDetailLevel
    ) -> list[MemoryModel]:
        tallies: dict[tuple[str, str], _Tally] = {}

        for event in events:
            bucket = time_of_day(event.timestamp)
            for symptom in event.symptoms:
                tallies.setdefault((bucket, symptom), _Tally()).hit(event.timestamp)

        memories = []
        for (bucket, symptom), tally in tallies.items():
            if tally.count < self.minimum_occurrences + 1:
                continue
            memories.append(
                self._new(
                    user_id,
                    PatternContext(symptom=symptom, time_of_day=bucket),
                    tally,
                    tier_confidence(tally.count),
                    memory_level,
                    notes=f"{symptom} often occurs in the {bucket.lower()}",
                )
            )
        return memories
