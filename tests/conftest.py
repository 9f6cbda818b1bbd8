"""Shared fixtures for the symptom_mem test suite.

- Fixed clock: every engine in a test sees the same "now"
- Fresh SQLite file per test under tmp_path
- Event / memory factories
- No mocking of core logic; only the remote LLM client is faked
"""

from datetime import datetime, timedelta

import pytest

NOW = datetime(2025, 6, 15, 12, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def engine(clock):
    from symptom_mem.temporal.engine import TemporalEngine

    return TemporalEngine(clock=clock)


@pytest.fixture
def store(tmp_path):
    """Fresh on-disk SQLite store per test."""
    from symptom_mem.storage.sqlite_store import SqliteStore

    s = SqliteStore(path=str(tmp_path / "memories.db"))
    yield s
    s.close()


@pytest.fixture
def make_event():
    """Event factory. ``hours_ago`` is relative to NOW."""
    from symptom_mem.models import Event, TreatmentUse

    def _make(hours_ago: float = 0, treatments=None, **kwargs):
        kwargs.setdefault("symptoms", [])
        return Event(
            timestamp=NOW - timedelta(hours=hours_ago),
            treatments=[TreatmentUse(name=n, effectiveness=e) for n, e in (treatments or [])],
            **kwargs,
        )

    return _make


@pytest.fixture
def make_memory():
    """MemoryModel factory. Pass a context dict via ``context=`` or use the kind shortcuts."""
    from symptom_mem.models import MemoryModel

    def _make(
        kind: str = "trigger",
        symptom: str = "Headache",
        trigger: str | None = "wine",
        resolution: str | None = None,
        environmental_factor: str | None = None,
        time_of_day: str | None = None,
        days_ago: float = 0,
        **kwargs,
    ):
        if kind in ("trigger", "correlation"):
            context = {"kind": kind, "trigger": trigger, "symptom": symptom}
        elif kind in ("worked_remedy", "failed_remedy"):
            context = {"kind": kind, "resolution": resolution or "magnesium", "symptom": symptom}
        elif kind == "pattern":
            context = {
                "kind": kind,
                "symptom": symptom,
                "environmental_factor": environmental_factor,
                "time_of_day": time_of_day,
            }
        else:
            context = {"kind": kind, "preference": "natural remedies", "symptom": symptom}

        kwargs.setdefault("user_id", "u1")
        kwargs.setdefault("confidence", 0.6)
        kwargs.setdefault("occurrence_count", 6)
        kwargs.setdefault("created_date", NOW - timedelta(days=days_ago))
        kwargs.setdefault("last_updated", NOW - timedelta(days=days_ago))
        return MemoryModel(
            context=context,
            last_occurrence=NOW - timedelta(days=days_ago),
            **kwargs,
        )

    return _make
