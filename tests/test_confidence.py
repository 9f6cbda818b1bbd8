"""Tests for temporal/engine.py - confidence, decay and cooldown bookkeeping."""

import math
import random
from datetime import timedelta

import pytest

from conftest import NOW


class TestRecompute:
    """Tests for the occurrence / effectiveness confidence formula."""

    def test_worked_remedy_high_success_ratio(self, engine, make_memory):
        """6 successes / 1 failure with 7 occurrences -> 0.3 + 0.2 + 0.3."""
        mem = make_memory(
            kind="worked_remedy",
            resolution="magnesium",
            occurrence_count=7,
            success_count=5,
            failure_count=1,
        )

        engine.record_success(mem)

        assert mem.success_count == 6
        assert mem.confidence == pytest.approx(0.8)

    def test_occurrence_tiers(self, engine, make_memory):
        """Trigger confidence only moves with occurrence tiers."""
        mem = make_memory(occurrence_count=1, confidence=0.3)

        engine.record_occurrence(mem, NOW)  # 2
        assert mem.confidence == pytest.approx(0.3)
        engine.record_occurrence(mem, NOW)  # 3
        assert mem.confidence == pytest.approx(0.4)
        for _ in range(2):
            engine.record_occurrence(mem, NOW)  # 5
        assert mem.confidence == pytest.approx(0.5)
        for _ in range(5):
            engine.record_occurrence(mem, NOW)  # 10
        assert mem.confidence == pytest.approx(0.6)

    def test_remedy_with_no_trials_scores_neutral(self, engine, make_memory):
        """No trials yet means a 0.5 ratio, which still earns the middle bonus."""
        mem = make_memory(kind="worked_remedy", occurrence_count=1)

        engine.record_occurrence(mem, NOW)

        # ratio defaults to 0.5 -> +0.15
        assert mem.effectiveness_score == 0.5
        assert mem.confidence == pytest.approx(0.45)

    def test_denied_memory_is_penalised_on_recompute(self, engine, make_memory):
        """userDenied subtracts 0.2 in the formula."""
        mem = make_memory(occurrence_count=4, user_denied=True)

        engine.record_occurrence(mem, NOW)

        assert mem.confidence == pytest.approx(0.3 + 0.2 - 0.2)

    def test_confidence_is_clamped(self, engine, make_memory):
        """Confirmed + every bonus never exceeds 1.0."""
        mem = make_memory(
            kind="worked_remedy",
            occurrence_count=20,
            success_count=20,
            user_confirmed=True,
        )

        engine.record_success(mem)

        assert mem.confidence <= 1.0
        assert mem.confidence == pytest.approx(1.0)


class TestUserFeedback:
    """Tests for confirm / deny / feedback transitions."""

    def test_confirm_and_deny_are_mutually_exclusive(self, engine, make_memory):
        mem = make_memory(confidence=0.5)

        engine.deny_by_user(mem)
        assert mem.user_denied and not mem.user_confirmed
        assert mem.confidence == pytest.approx(0.3)

        engine.confirm_by_user(mem)
        assert mem.user_confirmed and not mem.user_denied
        assert mem.confidence == pytest.approx(0.4)

    def test_helped_resets_cooldown(self, engine, make_memory):
        """Helped returns an ignored memory to Active."""
        mem = make_memory(kind="worked_remedy", consecutive_ignores=4)
        engine.apply_cooldown(mem)
        assert engine.is_in_cooldown(mem)

        from symptom_mem.models import UserFeedback

        engine.apply_feedback(mem, UserFeedback.HELPED)

        assert mem.success_count == 1
        assert mem.user_confirmed
        assert mem.consecutive_ignores == 0
        assert mem.cooldown_until is None

    def test_didnt_help_records_failure_and_ignore(self, engine, make_memory):
        from symptom_mem.models import UserFeedback

        mem = make_memory(kind="worked_remedy")

        engine.apply_feedback(mem, UserFeedback.DIDNT_HELP)

        assert mem.failure_count == 1
        assert mem.consecutive_ignores == 1

    def test_not_sure_yet_is_noop(self, engine, make_memory):
        from symptom_mem.models import UserFeedback

        mem = make_memory(confidence=0.55)

        engine.apply_feedback(mem, UserFeedback.NOT_SURE_YET)

        assert mem.confidence == 0.55
        assert mem.consecutive_ignores == 0
        assert mem.is_active

    def test_not_relevant_lowers_confidence_once(self, engine, make_memory):
        """0.6 - 0.25 = 0.35: denied but still active."""
        from symptom_mem.models import UserFeedback

        mem = make_memory(confidence=0.6, last_updated=NOW - timedelta(days=2))

        engine.apply_feedback(mem, UserFeedback.NOT_RELEVANT)

        assert mem.confidence == pytest.approx(0.35)
        assert mem.user_denied
        assert not mem.user_confirmed
        assert mem.is_active
        assert mem.last_updated == NOW

    def test_not_relevant_deactivates_weak_memory(self, engine, make_memory):
        """0.4 - 0.25 = 0.15 <= 0.2 -> inactive."""
        from symptom_mem.models import UserFeedback

        mem = make_memory(confidence=0.4)

        engine.apply_feedback(mem, UserFeedback.NOT_RELEVANT)

        assert mem.confidence == pytest.approx(0.15)
        assert not mem.is_active

    def test_not_relevant_keeps_strong_memory(self, engine, make_memory):
        from symptom_mem.models import UserFeedback

        mem = make_memory(confidence=0.9, user_confirmed=True)

        engine.apply_feedback(mem, UserFeedback.NOT_RELEVANT)

        assert mem.confidence == pytest.approx(0.65)
        assert not mem.user_confirmed
        assert mem.is_active


class TestDecay:
    """Tests for decayed confidence, staleness and recency."""

    def test_decay_floors_at_015(self, engine, make_memory):
        """0.8 * exp(-2) ~= 0.108 is floored to 0.15."""
        mem = make_memory(confidence=0.8, days_ago=360)

        assert 0.8 * math.exp(-2) == pytest.approx(0.108, abs=1e-3)
        assert engine.decayed_confidence(mem) == pytest.approx(0.15)

    def test_decay_is_identity_for_fresh_memory(self, engine, make_memory):
        mem = make_memory(confidence=0.6, days_ago=0)

        assert engine.decayed_confidence(mem) == pytest.approx(0.6)

    @pytest.mark.parametrize("days", [0, 10, 90, 180, 365, 1000])
    def test_decayed_never_above_confidence_or_below_floor(self, engine, make_memory, days):
        mem = make_memory(confidence=0.7, days_ago=days)

        decayed = engine.decayed_confidence(mem)

        assert 0.15 <= decayed <= mem.confidence

    def test_stale_and_recent_boundaries(self, engine, make_memory):
        assert engine.has_recent_data(make_memory(days_ago=90))
        assert not engine.has_recent_data(make_memory(days_ago=91))
        assert not engine.is_stale(make_memory(days_ago=180))
        assert engine.is_stale(make_memory(days_ago=181))

    def test_recent_occurrence_count(self, engine, make_memory):
        """Counts dates inside 90 days, but never below min(occurrences, 3)."""
        mem = make_memory(occurrence_count=8)
        mem.specific_dates.extend(
            [NOW - timedelta(days=200), NOW - timedelta(days=10), NOW - timedelta(days=5)]
        )

        assert engine.recent_occurrence_count(mem) == 3

        mem.specific_dates.extend(NOW - timedelta(days=d) for d in (1, 2, 3))
        assert engine.recent_occurrence_count(mem) == 5


class TestCooldown:
    """Tests for the ignore -> cooldown state machine."""

    def test_three_ignores_start_a_day_long_cooldown(self, engine, make_memory):
        mem = make_memory()

        engine.record_ignored(mem)
        engine.record_ignored(mem)
        assert mem.cooldown_until is None

        engine.record_ignored(mem)
        assert mem.cooldown_until == NOW + timedelta(hours=24)
        assert engine.is_in_cooldown(mem)
        assert engine.cooldown_hours_remaining(mem) == 24

    def test_six_ignores_reach_192_hours(self, engine, make_memory):
        mem = make_memory()

        for _ in range(6):
            engine.record_ignored(mem)

        assert mem.cooldown_until == NOW + timedelta(hours=192)

    def test_cooldown_is_monotonic_and_capped(self):
        from symptom_mem.temporal.engine import cooldown_hours

        durations = [cooldown_hours(n) for n in range(0, 30)]

        assert durations == sorted(durations)
        assert max(durations) <= 336
        assert durations[:3] == [0, 0, 0]
        assert durations[3:7] == [24, 48, 96, 192]

    def test_shown_recently_suppresses(self, engine, make_memory):
        mem = make_memory()
        assert not engine.should_suppress(mem)

        engine.record_shown(mem)
        assert engine.was_shown_recently(mem)
        assert engine.should_suppress(mem)

        mem.last_shown_date = NOW - timedelta(hours=5)
        assert not engine.should_suppress(mem)

    def test_clear_cooldown_keeps_ignore_count(self, engine, make_memory):
        mem = make_memory(consecutive_ignores=2)
        engine.record_ignored(mem)

        engine.clear_cooldown(mem)

        assert mem.cooldown_until is None
        assert mem.consecutive_ignores == 3
        assert engine.cooldown_hours_remaining(mem) is None


class TestSpecificDates:
    """Tests for the bounded date history."""

    def test_capped_at_twenty_most_recent(self, engine, make_memory):
        mem = make_memory(occurrence_count=1)
        dates = [NOW - timedelta(days=30 - i) for i in range(25)]

        for d in dates:
            engine.record_occurrence(mem, d)

        assert len(mem.specific_dates) == 20
        assert list(mem.specific_dates) == dates[-20:]

    def test_append_order_does_not_change_final_set(self, engine, make_memory):
        dates = [NOW - timedelta(hours=h) for h in range(30)]
        shuffled = dates[:]
        random.Random(7).shuffle(shuffled)

        ordered_mem = make_memory(occurrence_count=1)
        shuffled_mem = make_memory(occurrence_count=1)
        for d in sorted(dates):
            engine.record_occurrence(ordered_mem, d)
        for d in shuffled:
            engine.record_occurrence(shuffled_mem, d)

        assert set(shuffled_mem.specific_dates) == set(ordered_mem.specific_dates)
        assert set(ordered_mem.specific_dates) == set(sorted(dates)[-20:])

    def test_loaded_dates_are_rewrapped(self, make_memory):
        mem = make_memory(specific_dates=[NOW - timedelta(days=i) for i in range(40)])

        assert len(mem.specific_dates) == 20
        assert mem.specific_dates.maxlen == 20


class TestConfidenceLevel:
    """Tests for the high / medium / low bands."""

    def test_bands(self):
        from symptom_mem.models import ConfidenceLevel

        assert ConfidenceLevel.from_scores(0.7, 10) == ConfidenceLevel.HIGH
        assert ConfidenceLevel.from_scores(0.69, 10) == ConfidenceLevel.MEDIUM
        assert ConfidenceLevel.from_scores(0.9, 9) == ConfidenceLevel.MEDIUM
        assert ConfidenceLevel.from_scores(0.5, 5) == ConfidenceLevel.MEDIUM
        assert ConfidenceLevel.from_scores(0.9, 4) == ConfidenceLevel.LOW

    def test_decayed_level_can_drop(self, engine, make_memory):
        mem = make_memory(confidence=0.8, occurrence_count=12, days_ago=200)

        assert engine.confidence_level(mem).value == "high"
        assert engine.confidence_level(mem, decayed=True).value == "low"
