# symptom_mem/temporal/engine.py

from __future__ import annotations

import math
from collections import deque
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from ..models import MAX_SPECIFIC_DATES, ConfidenceLevel, MemoryModel, UserFeedback

# Confidence recompute
BASE_CONFIDENCE = 0.3
CONFIDENCE_FLOOR = 0.15

# Decay
DECAY_SCALE_DAYS = 180.0
STALE_AFTER_DAYS = 180
RECENT_WITHIN_DAYS = 90

# Cooldown
BASE_COOLDOWN_HOURS = 24
MAX_COOLDOWN_HOURS = 14 * 24
IGNORES_BEFORE_COOLDOWN = 3
SHOWN_RECENTLY_HOURS = 4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def tier_confidence(occurrences: int) -> float:
    """Occurrence-tier confidence used when a memory is materialized in bulk."""
    if occurrences < 2:
        return 0.2
    if occurrences < 5:
        return 0.4
    if occurrences < 10:
        return 0.6
    if occurrences < 20:
        return 0.8
    return 0.9


def cooldown_hours(consecutive_ignores: int) -> int:
    """
    Exponential backoff: 1 day, 2 days, 4 days, 8 days, capped at 14 days.
    Zero below the ignore threshold.
    """
    if consecutive_ignores < IGNORES_BEFORE_COOLDOWN:
        return 0
    exponent = min(consecutive_ignores - IGNORES_BEFORE_COOLDOWN, 3)
    return min(BASE_COOLDOWN_HOURS * 2**exponent, MAX_COOLDOWN_HOURS)


class TemporalEngine:
    """
    Responsible for:
    - Confidence bookkeeping on a MemoryModel (occurrences, success/failure, user feedback)
    - Time decay / staleness on read
    - The suggestion cooldown state machine (Active -> Shown -> Ignored -> InCooldown)

    Every mutating call stamps ``last_updated``. ``clock`` is injectable so that
    builders and tests can run against a fixed "now".
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self.clock = clock or _utcnow

    def now(self) -> datetime:
        return self.clock()

    # ------------------------------------------------------------------ #
    # Recording
    # ------------------------------------------------------------------ #

    def record_occurrence(self, mem: MemoryModel, date: datetime | None = None) -> MemoryModel:
        date = date or self.now()
        mem.occurrence_count += 1
        mem.last_occurrence = date
        dates = mem.specific_dates
        if dates and date < dates[-1]:
            # late arrival: keep the most recent dates, not the last appended
            merged = sorted([*dates, date])
            mem.specific_dates = deque(merged[-MAX_SPECIFIC_DATES:], maxlen=MAX_SPECIFIC_DATES)
        else:
            dates.append(date)
        mem.last_updated = self.now()
        self._recompute(mem)
        return mem

    def record_success(self, mem: MemoryModel) -> MemoryModel:
        mem.success_count += 1
        mem.last_updated = self.now()
        self._recompute(mem)
        return mem

    def record_failure(self, mem: MemoryModel) -> MemoryModel:
        mem.failure_count += 1
        mem.last_updated = self.now()
        self._recompute(mem)
        return mem

    def confirm_by_user(self, mem: MemoryModel) -> MemoryModel:
        mem.user_confirmed = True
        mem.user_denied = False
        mem.confidence = min(1.0, mem.confidence + 0.1)
        mem.last_updated = self.now()
        return mem

    def deny_by_user(self, mem: MemoryModel) -> MemoryModel:
        mem.user_denied = True
        mem.user_confirmed = False
        mem.confidence = max(0.0, mem.confidence - 0.2)
        mem.last_updated = self.now()
        return mem

    def apply_feedback(self, mem: MemoryModel, feedback: UserFeedback) -> MemoryModel:
        mem.last_updated = self.now()

        match feedback:
            case UserFeedback.HELPED:
                self.record_success(mem)
                self.confirm_by_user(mem)
                self.reset_cooldown(mem)
            case UserFeedback.DIDNT_HELP:
                self.record_failure(mem)
                self.record_ignored(mem)
            case UserFeedback.NOT_SURE_YET:
                pass
            case UserFeedback.NOT_RELEVANT:
                mem.user_denied = True
                mem.user_confirmed = False
                mem.confidence = clamp(mem.confidence + feedback.confidence_adjustment)
                self.record_ignored(mem)
                if mem.confidence <= 0.2:
                    mem.is_active = False
        return mem

    def _recompute(self, mem: MemoryModel) -> None:
        confidence = BASE_CONFIDENCE

        if mem.occurrence_count >= 10:
            confidence += 0.3
        elif mem.occurrence_count >= 5:
            confidence += 0.2
        elif mem.occurrence_count >= 3:
            confidence += 0.1

        if mem.kind.is_remedy:
            ratio = mem.effectiveness_score
            if ratio >= 0.7:
                confidence += 0.3
            elif ratio >= 0.5:
                confidence += 0.15

        if mem.user_confirmed:
            confidence += 0.1
        if mem.user_denied:
            confidence -= 0.2

        mem.confidence = clamp(confidence)

    # ------------------------------------------------------------------ #
    # Decay
    # ------------------------------------------------------------------ #

    def days_since_last_occurrence(self, mem: MemoryModel) -> int:
        return max(0, (self.now() - mem.last_occurrence).days)

    def decayed_confidence(self, mem: MemoryModel) -> float:
        days = self.days_since_last_occurrence(mem)
        decayed = mem.confidence * math.exp(-days / DECAY_SCALE_DAYS)
        return max(CONFIDENCE_FLOOR, decayed)

    def is_stale(self, mem: MemoryModel) -> bool:
        return self.days_since_last_occurrence(mem) > STALE_AFTER_DAYS

    def has_recent_data(self, mem: MemoryModel) -> bool:
        return self.days_since_last_occurrence(mem) <= RECENT_WITHIN_DAYS

    def recent_occurrence_count(self, mem: MemoryModel) -> int:
        cutoff = self.now() - timedelta(days=RECENT_WITHIN_DAYS)
        recent = sum(1 for d in mem.specific_dates if d >= cutoff)
        return max(recent, min(mem.occurrence_count, 3))

    # ------------------------------------------------------------------ #
    # Cooldown
    # ------------------------------------------------------------------ #

    def record_shown(self, mem: MemoryModel) -> MemoryModel:
        now = self.now()
        mem.last_shown_date = now
        mem.last_updated = now
        return mem

    def record_ignored(self, mem: MemoryModel) -> MemoryModel:
        mem.consecutive_ignores += 1
        mem.last_updated = self.now()
        if mem.consecutive_ignores >= IGNORES_BEFORE_COOLDOWN:
            self.apply_cooldown(mem)
        return mem

    def apply_cooldown(self, mem: MemoryModel) -> MemoryModel:
        hours = max(cooldown_hours(mem.consecutive_ignores), BASE_COOLDOWN_HOURS)
        now = self.now()
        mem.cooldown_until = now + timedelta(hours=hours)
        mem.last_updated = now
        return mem

    def reset_cooldown(self, mem: MemoryModel) -> MemoryModel:
        mem.consecutive_ignores = 0
        mem.cooldown_until = None
        mem.last_updated = self.now()
        return mem

    def clear_cooldown(self, mem: MemoryModel) -> MemoryModel:
        mem.cooldown_until = None
        mem.last_updated = self.now()
        return mem

    def is_in_cooldown(self, mem: MemoryModel) -> bool:
        return mem.cooldown_until is not None and self.now() < mem.cooldown_until

    def cooldown_hours_remaining(self, mem: MemoryModel) -> int | None:
        if not self.is_in_cooldown(mem):
            return None
        return int((mem.cooldown_until - self.now()).total_seconds() // 3600)

    def was_shown_recently(self, mem: MemoryModel) -> bool:
        if mem.last_shown_date is None:
            return False
        return self.now() - mem.last_shown_date < timedelta(hours=SHOWN_RECENTLY_HOURS)

    def should_suppress(self, mem: MemoryModel) -> bool:
        return self.is_in_cooldown(mem) or self.was_shown_recently(mem)

    # ------------------------------------------------------------------ #
    # Read helpers
    # ------------------------------------------------------------------ #

    def confidence_level(self, mem: MemoryModel, decayed: bool = False) -> ConfidenceLevel:
        if decayed:
            return ConfidenceLevel.from_scores(self.decayed_confidence(mem), mem.occurrence_count)
        return ConfidenceLevel.from_scores(mem.confidence, mem.occurrence_count)
