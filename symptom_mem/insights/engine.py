# symptom_mem/insights/engine.py

from __future__ import annotations

from ..learning.queries import all_triggers, environmental_patterns, same_label, what_worked
from ..models import (
    Allergy,
    ConfidenceLevel,
    Event,
    HealthWarning,
    InsightResponse,
    MemoryKind,
    MemoryModel,
    NeedsMoreData,
    Observation,
    Question,
    SafetyStatus,
    Screening,
    Suggestion,
    SuggestionLevel,
    UserPreferences,
    WarningSeverity,
)
from ..safety import FoodSafetyChecker, LearnedTriggerChecker
from ..temporal.engine import TemporalEngine
from .escalation import DEFAULT_RULES, EscalationRule, evaluate
from .windows import context_window_hours, max_window_hours, time_of_day

LOW_PRESSURE = ("Low", "Falling")

# absolute floors that apply on top of the level's threshold
WHAT_WORKED_MIN = 0.4
DIRECT_TRIGGER_MIN = 0.4
RECENT_TRIGGER_MIN = 0.5
MOON_MIN = 0.5
SEASON_MIN = 0.6
PATTERN_MIN = 0.5
PROACTIVE_PRESSURE_MIN = 0.6

MAX_REMEDIES_PER_SYMPTOM = 2
MAX_RECENT_FOODS = 3
MAX_CORRELATIONS = 2
MAX_ESCALATIONS = 2
MIN_TRIALS_FOR_PERCENTAGE = 3
WELL_ESTABLISHED = 0.5


class InsightEngine:
    """
    Turns one new event + the user's active memories into an InsightResponse.

    Stages run in a fixed order:
      1. environmental observations     6. clinical escalation warnings
      2. what-worked suggestions        7. screening reminders
      3. trigger detection              8. time-of-day / correlation observations
      4. food-safety warnings           9. needs-more-data fallback
      5. adaptive questions

    Food-safety and escalation warnings ignore the suggestion level. Everything
    else is filtered by the level's confidence threshold (and, for pattern
    observations, its minimum occurrence count). The response is not trimmed
    here; see ResponseTrimmer.
    """

    def __init__(
        self,
        engine: TemporalEngine,
        food_safety: FoodSafetyChecker | None = None,
        escalation_rules: list[EscalationRule] | None = None,
    ) -> None:
        self.engine = engine
        self.food_safety = food_safety or LearnedTriggerChecker()
        self.escalation_rules = escalation_rules if escalation_rules is not None else DEFAULT_RULES

    def generate(
        self,
        event: Event,
        memories: list[MemoryModel],
        preferences: UserPreferences,
        recent_events: list[Event] | None = None,
        allergies: list[Allergy] | None = None,
        screenings: list[Screening] | None = None,
        current_pressure: str | None = None,
    ) -> InsightResponse:
        active = [m for m in memories if m.is_active]
        recent = [e for e in (recent_events or []) if e.id != event.id]
        level = preferences.suggestion_level

        response = InsightResponse(timestamp=self.engine.now())

        environment = self._environmental(event, active, level, current_pressure)
        remedies = self._what_worked(event, active, level)
        triggers = self._triggers(event, active, level, recent)
        response.observations += environment
        response.suggestions += remedies
        response.observations += triggers
        response.warnings += self._food_safety(event, active, allergies or [])
        response.questions += self._questions(event, active, level)
        response.warnings += self._escalations(event, recent)
        response.observations += self._screening_reminders(event, level, screenings or [])
        patterns = self._patterns(event, active, level)
        response.observations += patterns

        # screenings, questions and warnings do not count as learned content
        learned = environment or remedies or triggers or patterns
        if level.show_needs_more_data and not learned:
            response.needs_more_data = self._needs_more_data(event, active, level)

        return response

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _level_of(self, mem: MemoryModel) -> ConfidenceLevel:
        return self.engine.confidence_level(mem, decayed=True)

    @staticmethod
    def _logged(event: Event, mem: MemoryModel) -> bool:
        return any(same_label(mem.symptom, s) for s in event.symptoms)

    # ------------------------------------------------------------------ #
    # 1. Environment
    # ------------------------------------------------------------------ #

    def _environmental(
        self,
        event: Event,
        memories: list[MemoryModel],
        level: SuggestionLevel,
        current_pressure: str | None,
    ) -> list[Observation]:
        observations: list[Observation] = []

        def pattern_for(factor: str, floor: float) -> MemoryModel | None:
            for mem in memories:
                if (
                    mem.kind == MemoryKind.PATTERN
                    and mem.environmental_factor == factor
                    and self._logged(event, mem)
                    and mem.occurrence_count >= level.minimum_occurrences
                    and mem.confidence >= max(floor, level.confidence_threshold)
                ):
                    return mem
            return None

        pressure = current_pressure or event.pressure
        if pressure and pressure != "Normal":
            mem = pattern_for(pressure, 0.0)
            if mem is not None:
                observations.append(
                    Observation(
                        text=(
                            f"Atmospheric pressure is {pressure.lower()} today - this has triggered "
                            f"your {mem.symptom} {mem.occurrence_count} times before."
                        ),
                        confidence=self._level_of(mem),
                        source="environment",
                        memory_id=mem.id,
                    )
                )
            elif pressure in LOW_PRESSURE:
                observations.append(
                    Observation(
                        text=(
                            f"Atmospheric pressure is {pressure.lower()} today, which can trigger "
                            "headaches and fatigue in some people."
                        ),
                        confidence=ConfidenceLevel.LOW,
                        source="environment",
                    )
                )

        if event.moon_phase:
            mem = pattern_for(f"Moon: {event.moon_phase}", MOON_MIN)
            if mem is not None:
                observations.append(
                    Observation(
                        text=(
                            f"It's a {event.moon_phase} - you've noticed {mem.symptom} during this "
                            f"phase {mem.occurrence_count} times."
                        ),
                        confidence=self._level_of(mem),
                        source="environment",
                        memory_id=mem.id,
                    )
                )

        if event.season:
            mem = pattern_for(f"Season: {event.season}", SEASON_MIN)
            if mem is not None:
                observations.append(
                    Observation(
                        text=f"Your {mem.symptom} tend to be more common in {event.season}.",
                        confidence=self._level_of(mem),
                        source="environment",
                        memory_id=mem.id,
                    )
                )

        return observations

    # ------------------------------------------------------------------ #
    # 2. What worked
    # ------------------------------------------------------------------ #

    def _what_worked(
        self, event: Event, memories: list[MemoryModel], level: SuggestionLevel
    ) -> list[Suggestion]:
        suggestions: list[Suggestion] = []
        seen: set[str] = set()
        floor = max(WHAT_WORKED_MIN, level.confidence_threshold)

        for symptom in event.symptoms:
            ranked = [
                m
                for m in what_worked(memories, symptom, min_confidence=floor)
                if m.resolution and not self.engine.should_suppress(m) and m.id not in seen
            ]
            for mem in ranked[:MAX_REMEDIES_PER_SYMPTOM]:
                seen.add(mem.id)
                trials = mem.success_count + mem.failure_count
                pct = mem.effectiveness_percentage if trials >= MIN_TRIALS_FOR_PERCENTAGE else None
                when = mem.resolution_time or "usually"
                tail = f" ({pct}% effective for you)" if pct else ""
                suggestions.append(
                    Suggestion(
                        text=f"Last time you had {symptom.lower()}, {mem.resolution} helped {when}.{tail}",
                        effectiveness=pct,
                        last_helped=mem.last_occurrence,
                        occurrence_count=mem.occurrence_count,
                        memory_id=mem.id,
                    )
                )

        return suggestions

    # ------------------------------------------------------------------ #
    # 3. Triggers
    # ------------------------------------------------------------------ #

    def _trigger_memory(
        self,
        memories: list[MemoryModel],
        food: str,
        symptom: str,
        floor: float,
    ) -> MemoryModel | None:
        best: MemoryModel | None = None
        best_score = -1.0
        for mem in memories:
            if not (
                mem.kind == MemoryKind.TRIGGER
                and same_label(mem.trigger, food)
                and same_label(mem.symptom, symptom)
            ):
                continue
            if self.engine.is_stale(mem) or self.engine.should_suppress(mem):
                continue
            score = self.engine.decayed_confidence(mem)
            if score >= floor and score > best_score:
                best, best_score = mem, score
        return best

    def _triggers(
        self,
        event: Event,
        memories: list[MemoryModel],
        level: SuggestionLevel,
        recent: list[Event],
    ) -> list[Observation]:
        observations: list[Observation] = []
        seen: set[str] = set()

        food = event.food_item
        if food:
            floor = max(DIRECT_TRIGGER_MIN, level.confidence_threshold)
            for symptom in event.symptoms:
                mem = self._trigger_memory(memories, food, symptom, floor)
                if mem is None or mem.id in seen:
                    continue
                seen.add(mem.id)
                mem_level = self._level_of(mem)
                how = {ConfidenceLevel.HIGH: "often", ConfidenceLevel.MEDIUM: "sometimes"}.get(
                    mem_level, "may"
                )
                observations.append(
                    Observation(
                        text=(
                            f"{food.title()} {how} triggers {symptom.lower()} for you "
                            f"(seen {mem.occurrence_count} times)."
                        ),
                        confidence=mem_level,
                        source="trigger",
                        memory_id=mem.id,
                    )
                )

        # scan with the widest window, then hold each symptom to its own
        scan_hours = max_window_hours(event.symptoms)
        candidates = sorted(
            (
                e
                for e in recent
                if e.food_item
                and e.timestamp < event.timestamp
                and (event.timestamp - e.timestamp).total_seconds() / 3600 <= scan_hours
            ),
            key=lambda e: e.timestamp,
            reverse=True,
        )[:MAX_RECENT_FOODS]

        floor = max(RECENT_TRIGGER_MIN, level.confidence_threshold)
        for food_event in candidates:
            hours_ago = (event.timestamp - food_event.timestamp).total_seconds() / 3600
            for symptom in event.symptoms:
                if hours_ago > context_window_hours(symptom):
                    continue
                mem = self._trigger_memory(memories, food_event.food_item, symptom, floor)
                if mem is None or mem.id in seen:
                    continue
                seen.add(mem.id)
                observations.append(
                    Observation(
                        text=(
                            f"You had {food_event.food_item} {int(hours_ago)} hours ago - this is a "
                            f"known trigger for your {symptom.lower()}."
                        ),
                        confidence=self._level_of(mem),
                        source="trigger",
                        memory_id=mem.id,
                    )
                )

        return observations

    # ------------------------------------------------------------------ #
    # 4. Food safety
    # ------------------------------------------------------------------ #

    def _food_safety(
        self, event: Event, memories: list[MemoryModel], allergies: list[Allergy]
    ) -> list[HealthWarning]:
        food = event.food_item
        if not food:
            return []

        result = self.food_safety.check_food(food, allergies, all_triggers(memories))
        match result.status:
            case SafetyStatus.AVOID:
                return [
                    HealthWarning(
                        text=result.explanation,
                        severity=WarningSeverity.ALERT,
                        action_required=True,
                        source="safety",
                    )
                ]
            case SafetyStatus.CAUTION:
                return [
                    HealthWarning(
                        text=result.explanation,
                        severity=WarningSeverity.CAUTION,
                        source="safety",
                    )
                ]
        return []

    # ------------------------------------------------------------------ #
    # 5. Questions
    # ------------------------------------------------------------------ #

    def _questions(
        self, event: Event, memories: list[MemoryModel], level: SuggestionLevel
    ) -> list[Question]:
        questions: list[Question] = []
        labels = [s.lower() for s in event.symptoms]

        def mentions(*words: str) -> bool:
            return any(w in s for s in labels for w in words)

        sleep_correlated = any(
            m.kind == MemoryKind.CORRELATION
            and m.trigger is not None
            and "sleep" in m.trigger.lower()
            and self._logged(event, m)
            for m in memories
        )
        if sleep_correlated or mentions("fatigue", "headache"):
            questions.append(
                Question(
                    text="How was your sleep last night?",
                    options=["Less than 6 hrs", "6-7 hrs", "7-8 hrs", "8+ hrs"],
                    context="Sleep often correlates with these symptoms",
                    related_to="sleep",
                )
            )

        if "mental" in event.category.lower() or mentions("anxiety", "stress"):
            questions.append(
                Question(
                    text="How's your stress level today?",
                    options=["Low", "Moderate", "High", "Very High"],
                    related_to="stress",
                )
            )

        if mentions("headache", "fatigue"):
            questions.append(
                Question(
                    text="Have you had enough water today?",
                    options=["Yes, plenty", "Some", "Not much", "Barely any"],
                    context="Dehydration can cause headaches and fatigue",
                    related_to="hydration",
                )
            )

        supplement = next(
            (
                m
                for m in memories
                if m.kind == MemoryKind.WORKED_REMEDY
                and m.resolution
                and self._logged(event, m)
                and m.confidence >= level.confidence_threshold
            ),
            None,
        )
        if supplement is not None:
            questions.append(
                Question(
                    text=f"Did you take your {supplement.resolution} today?",
                    options=["Yes", "No", "Not yet"],
                    context=f"It usually helps with your {supplement.symptom}",
                    related_to="supplement",
                )
            )

        return questions[: level.max_questions]

    # ------------------------------------------------------------------ #
    # 6. Clinical escalation
    # ------------------------------------------------------------------ #

    def _escalations(self, event: Event, recent: list[Event]) -> list[HealthWarning]:
        fired = evaluate([event, *recent], self.escalation_rules, self.engine.now())
        return [
            HealthWarning(
                text=esc.message,
                severity=esc.urgency.severity,
                action_required=esc.urgency.action_required,
                source="escalation",
            )
            for esc in fired[:MAX_ESCALATIONS]
        ]

    # ------------------------------------------------------------------ #
    # 7. Screening reminders
    # ------------------------------------------------------------------ #

    def _screening_reminders(
        self, event: Event, level: SuggestionLevel, screenings: list[Screening]
    ) -> list[Observation]:
        if level == SuggestionLevel.MINIMAL:
            return []

        now = self.engine.now()
        overdue = [s for s in screenings if s.is_overdue(now)]
        if not overdue:
            return []

        labels = [s.lower() for s in event.symptoms]
        observations: list[Observation] = []

        if any("fatigue" in s or "tired" in s for s in labels):
            relevant = next(
                (s for s in overdue if any(k in s.name for k in ("Thyroid", "B12", "Iron"))),
                None,
            )
            if relevant is not None:
                observations.append(
                    Observation(
                        text=(
                            f"Your {relevant.name} is overdue. Persistent fatigue can sometimes be "
                            "related to these levels."
                        ),
                        confidence=ConfidenceLevel.LOW,
                        source="screening",
                    )
                )

        if any("headache" in s for s in labels):
            if any("Blood Pressure" in s.name for s in overdue):
                observations.append(
                    Observation(
                        text=(
                            "Your blood pressure check is overdue. Regular headaches can sometimes "
                            "be related to blood pressure."
                        ),
                        confidence=ConfidenceLevel.LOW,
                        source="screening",
                    )
                )

        return observations

    # ------------------------------------------------------------------ #
    # 8. Time of day / correlations
    # ------------------------------------------------------------------ #

    def _patterns(
        self, event: Event, memories: list[MemoryModel], level: SuggestionLevel
    ) -> list[Observation]:
        observations: list[Observation] = []
        floor = max(PATTERN_MIN, level.confidence_threshold)

        def qualifies(mem: MemoryModel) -> bool:
            return mem.confidence >= floor and mem.occurrence_count >= level.minimum_occurrences

        bucket = time_of_day(event.timestamp)
        for symptom in event.symptoms:
            mem = next(
                (
                    m
                    for m in memories
                    if m.kind == MemoryKind.PATTERN
                    and m.time_of_day == bucket
                    and same_label(m.symptom, symptom)
                    and qualifies(m)
                ),
                None,
            )
            if mem is not None:
                observations.append(
                    Observation(
                        text=(
                            f"Your {symptom.lower()} tends to occur in the {bucket.lower()} "
                            f"({mem.occurrence_count} times)."
                        ),
                        confidence=self._level_of(mem),
                        source="time_of_day",
                        memory_id=mem.id,
                    )
                )

        correlations = [
            m
            for m in memories
            if m.kind == MemoryKind.CORRELATION and self._logged(event, m) and qualifies(m)
        ]
        for mem in correlations[:MAX_CORRELATIONS]:
            observations.append(
                Observation(
                    text=f"Pattern: {mem.trigger} often leads to {mem.symptom.lower()} for you.",
                    confidence=self._level_of(mem),
                    source="correlation",
                    memory_id=mem.id,
                )
            )

        return observations

    # ------------------------------------------------------------------ #
    # 9. Needs more data
    # ------------------------------------------------------------------ #

    def _needs_more_data(
        self, event: Event, memories: list[MemoryModel], level: SuggestionLevel
    ) -> NeedsMoreData | None:
        if not event.symptoms:
            return None

        matching: list[MemoryModel] = []
        for symptom in event.symptoms:
            related = [m for m in memories if same_label(m.symptom, symptom)]
            total = sum(m.occurrence_count for m in related)
            if total < level.minimum_occurrences:
                return NeedsMoreData.for_symptom(symptom, total, level.minimum_occurrences)
            matching.extend(related)

        if all(self.engine.decayed_confidence(m) < WELL_ESTABLISHED for m in matching):
            return NeedsMoreData.general_low_confidence()
        return None

    # ------------------------------------------------------------------ #
    # Proactive check-in / summary
    # ------------------------------------------------------------------ #

    def proactive_message(
        self,
        current_pressure: str | None,
        memories: list[MemoryModel],
        screenings: list[Screening] | None = None,
    ) -> str | None:
        messages: list[str] = []

        if current_pressure in LOW_PRESSURE:
            sensitive = next(
                (
                    m
                    for m in environmental_patterns(memories)
                    if m.environmental_factor == current_pressure
                    and m.confidence >= PROACTIVE_PRESSURE_MIN
                ),
                None,
            )
            if sensitive is not None:
                messages.append(
                    f"{current_pressure} pressure today - you might experience "
                    f"{sensitive.symptom.lower()}. Consider taking preventive measures."
                )

        now = self.engine.now()
        overdue = next((s for s in screenings or [] if s.is_overdue(now)), None)
        if overdue is not None:
            messages.append(f"Reminder: Your {overdue.name} is overdue.")

        return messages[0] if messages else None

    def summary(self, memories: list[MemoryModel]) -> str:
        """Plain-text digest of what has been learned so far."""
        active = [m for m in memories if m.is_active]
        triggers = [m for m in active if m.kind == MemoryKind.TRIGGER]
        helps = [m for m in active if m.kind == MemoryKind.WORKED_REMEDY]
        patterns = [m for m in active if m.kind == MemoryKind.PATTERN]

        if not (triggers or helps or patterns):
            return (
                "I'm still learning about your patterns. Keep logging your symptoms and what you "
                "try, and I'll start noticing correlations!"
            )

        lines = ["Based on your logs, I've learned:", ""]
        if triggers:
            lines.append("Triggers:")
            for mem in triggers[:5]:
                level = self.engine.confidence_level(mem).value
                lines.append(f"- {mem.trigger} may trigger {mem.symptom} ({level} confidence)")
            lines.append("")
        if helps:
            lines.append("What helps:")
            for mem in helps[:5]:
                lines.append(
                    f"- {mem.resolution} for {mem.symptom} ({mem.effectiveness_percentage}% effective)"
                )
            lines.append("")
        if patterns:
            lines.append("Patterns:")
            for mem in patterns[:3]:
                lines.append(f"- {mem.notes or mem.symptom}")

        return "\n".join(lines).rstrip() + "\n"

