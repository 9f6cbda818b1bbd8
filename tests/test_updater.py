"""Tests for learning/updater.py - incremental find-or-create-and-update."""

import pytest

from conftest import NOW


@pytest.fixture
def updater(engine):
    from symptom_mem.learning.updater import MemoryUpdater

    return MemoryUpdater(engine)


class TestTriggers:
    """Tests for food x symptom updates."""

    def test_first_sighting_seeds_a_trigger(self, updater, make_event):
        event = make_event(food="Peanuts", symptoms=["Hives"])

        result = updater.update("u1", event, [])

        assert len(result.created) == 1
        assert result.updated == []
        mem = result.created[0]
        assert (mem.trigger, mem.symptom) == ("Peanuts", "Hives")
        assert mem.occurrence_count == 1
        assert mem.confidence == pytest.approx(0.3)
        assert mem.last_occurrence == NOW

    def test_existing_trigger_matches_case_insensitively(self, updater, make_event, make_memory):
        existing = make_memory(trigger="Wine", symptom="headache", occurrence_count=6)

        result = updater.update("u1", make_event(food="wine", symptoms=["Headache"]), [existing])

        assert result.created == []
        assert result.updated == [existing]
        assert existing.occurrence_count == 7
        assert existing.confidence == pytest.approx(0.5)

    def test_inactive_records_are_not_reused(self, updater, make_event, make_memory):
        existing = make_memory(is_active=False)

        result = updater.update("u1", make_event(food="wine", symptoms=["Headache"]), [existing])

        assert len(result.created) == 1
        assert existing.occurrence_count == 6

    def test_food_without_symptoms_learns_nothing(self, updater, make_event):
        result = updater.update("u1", make_event(food="wine"), [])

        assert result.touched == []

    def test_blank_food_is_ignored(self, updater, make_event):
        result = updater.update("u1", make_event(food="   ", symptoms=["Headache"]), [])

        assert result.touched == []


class TestRemedies:
    """Tests for treatment x symptom updates."""

    def test_new_effective_treatment(self, updater, make_event):
        event = make_event(symptoms=["Headache"], treatments=[("Magnesium", 8)])

        mem = updater.update("u1", event, []).created[0]

        assert mem.kind.value == "worked_remedy"
        assert (mem.success_count, mem.failure_count) == (1, 0)
        assert mem.confidence == pytest.approx(0.3)

    @pytest.mark.parametrize("effectiveness", [1, 5, None])
    def test_new_ineffective_or_unrated_treatment(self, updater, make_event, effectiveness):
        event = make_event(symptoms=["Headache"], treatments=[("Ibuprofen", effectiveness)])

        mem = updater.update("u1", event, []).created[0]

        assert mem.kind.value == "failed_remedy"
        assert (mem.success_count, mem.failure_count) == (0, 1)

    def test_existing_remedy_records_outcome(self, updater, make_event, make_memory):
        existing = make_memory(
            kind="worked_remedy",
            resolution="Magnesium",
            occurrence_count=4,
            success_count=4,
            failure_count=1,
        )

        result = updater.update(
            "u1",
            make_event(symptoms=["Headache"], treatments=[("magnesium", 9)]),
            [existing],
        )

        assert result.updated == [existing]
        assert existing.occurrence_count == 5
        assert existing.success_count == 5
        # 0.3 + 0.2 (>=5 occurrences) + 0.3 (ratio 5/6)
        assert existing.confidence == pytest.approx(0.8)

    def test_failed_remedy_record_is_matched_too(self, updater, make_event, make_memory):
        existing = make_memory(kind="failed_remedy", resolution="ibuprofen", failure_count=3)

        updater.update(
            "u1",
            make_event(symptoms=["Headache"], treatments=[("Ibuprofen", 2)]),
            [existing],
        )

        assert existing.failure_count == 4

    def test_repeated_treatment_in_one_event(self, updater, make_event):
        event = make_event(symptoms=["Cough"], treatments=[("Honey", 8), ("honey", 7)])

        result = updater.update("u1", event, [])

        assert len(result.created) == 1
        assert result.updated == []
        mem = result.created[0]
        assert mem.occurrence_count == 2
        assert mem.success_count == 2


class TestPressurePatterns:
    """Tests for environmental updates."""

    def test_normal_pressure_is_ignored(self, updater, make_event):
        result = updater.update("u1", make_event(symptoms=["Headache"], pressure="Normal"), [])

        assert result.touched == []

    def test_low_pressure_creates_pattern(self, updater, make_event):
        result = updater.update("u1", make_event(symptoms=["Headache"], pressure="Low"), [])

        mem = result.created[0]
        assert mem.environmental_factor == "Low"
        assert mem.time_of_day is None
        assert mem.notes == "Headache observed during Low"

    def test_existing_pressure_pattern_is_bumped(self, updater, make_event, make_memory):
        existing = make_memory(kind="pattern", environmental_factor="Falling", occurrence_count=2)

        updater.update("u1", make_event(symptoms=["headache"], pressure="Falling"), [existing])

        assert existing.occurrence_count == 3

    def test_no_time_of_day_updates(self, updater, make_event, make_memory):
        existing = make_memory(kind="pattern", time_of_day="Afternoon", occurrence_count=4)

        result = updater.update("u1", make_event(symptoms=["Headache"]), [existing])

        assert result.touched == []
        assert existing.occurrence_count == 4


class TestDetailLevel:
    """Dates follow the configured memory detail level."""

    def test_detailed_seeds_with_event_date(self, updater, make_event):
        from symptom_mem.models import MemoryDetailLevel

        event = make_event(hours_ago=3, food="wine", symptoms=["Headache"])

        mem = updater.update("u1", event, [], MemoryDetailLevel.DETAILED).created[0]

        assert list(mem.specific_dates) == [event.timestamp]

    def test_patterns_level_seeds_without_dates(self, updater, make_event):
        mem = updater.update("u1", make_event(food="wine", symptoms=["Headache"]), []).created[0]

        assert len(mem.specific_dates) == 0


class TestUpdateResult:
    def test_touched_combines_created_and_updated(self, updater, make_event, make_memory):
        existing = make_memory(trigger="wine")
        event = make_event(food="wine", symptoms=["Headache", "Nausea"])

        result = updater.update("u1", event, [existing])

        assert result.updated == [existing]
        assert [m.symptom for m in result.created] == ["Nausea"]
        assert len(result.touched) == 2
        assert result.is_known(existing)
        assert not result.is_new(existing)
