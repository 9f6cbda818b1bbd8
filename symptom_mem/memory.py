# symptom_mem/memory.py

from __future__ import annotations

import sqlite3
import traceback
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import builtins

from .insights.engine import InsightEngine
from .insights.escalation import EscalationRule
from .insights.trimmer import ResponseTrimmer
from .learning.builder import MemoryBuilder
from .learning.maintenance import MaintenanceScheduler, SystemStatus
from .learning.updater import MemoryUpdater
from .llm.polisher import InsightPolisher, PolishResult
from .models import (
    Allergy,
    Event,
    InsightResponse,
    MemoryDetailLevel,
    MemoryModel,
    Screening,
    SuggestionLevel,
    UserFeedback,
    UserPreferences,
)
from .notifications import NotificationSink
from .safety import FoodSafetyChecker
from .storage.sqlite_store import SqliteStore
from .temporal.engine import TemporalEngine


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


class SymptomMemory:
    """
    Public facade.

    - build()       batch-learn memories from an event history
    - log_event()   incremental update -> insight pass -> trim -> mark shown -> notify
    - feedback()    apply a user's reaction to a surfaced memory
    - list()/get()  read back stored memories
    - run_maintenance()/status()/summary()
    - polish()      optional LLM prose for an event (never required)

    Collaborators are injected; config is a plain dict read with .get().
    """

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
        food_safety: FoodSafetyChecker | None = None,
        notification_sink: NotificationSink | None = None,
        escalation_rules: builtins.list[EscalationRule] | None = None,
        polisher_client: Any | None = None,
    ) -> None:
        config = config or {}

        sqlite_path = config.get("sqlite_path", "~/.symptom_mem/memories.db")
        self.preferences = UserPreferences(
            suggestion_level=SuggestionLevel(config.get("suggestion_level", "standard")),
            memory_level=MemoryDetailLevel(config.get("memory_level", "patterns")),
        )
        self.learning_paused = bool(config.get("learning_paused", False))
        self.paused_at: datetime | None = None

        openai_api_key = config.get("openai_api_key")
        llm_model = config.get("llm_model", "gpt-4o-mini")
        llm_temp = float(config.get("llm_temperature", 0.3))
        polish_enabled = bool(config.get("polish_enabled", False))
        maintenance_hours = int(config.get("maintenance_interval_hours", 24))

        # Core components
        self.store = SqliteStore(path=sqlite_path)
        self.temporal_engine = TemporalEngine(clock=clock)
        self.builder = MemoryBuilder(self.temporal_engine)
        self.updater = MemoryUpdater(self.temporal_engine)
        self.insight_engine = InsightEngine(
            self.temporal_engine,
            food_safety=food_safety,
            escalation_rules=escalation_rules,
        )
        self.trimmer = ResponseTrimmer()
        self.maintenance = MaintenanceScheduler(
            self.store,
            self.temporal_engine,
            interval_hours=maintenance_hours,
        )
        self.notification_sink = notification_sink

        # Optional prose (off unless configured)
        self.polisher = InsightPolisher(
            api_key=openai_api_key,
            model=llm_model,
            temperature=llm_temp,
            enabled=polish_enabled,
            client=polisher_client,
        )

    # ------------------------------------------------------------------ #
    # Persistence helper
    # ------------------------------------------------------------------ #

    def _save(self, mems: builtins.list[MemoryModel], created: bool, where: str) -> int:
        """Write records; returns how many writes failed. In-memory state is kept either way."""
        failed = 0
        for mem in mems:
            try:
                if created:
                    self.store.create(mem)
                else:
                    self.store.update(mem)
            except sqlite3.Error as e:
                print(f"[SymptomMemory.{where}] Save failed for {mem.id}: {e}")
                traceback.print_exc()
                failed += 1
        return failed

    # ------------------------------------------------------------------ #
    # BUILD
    # ------------------------------------------------------------------ #

    def build(self, user_id: str, events: builtins.list[Event]) -> dict[str, Any]:
        """
        Batch pass over the full history. New records are added alongside any
        existing ones; duplicates are cleaned up by maintenance.
        """
        mems = self.builder.build(user_id, events, self.preferences.memory_level)
        failed = self._save(mems, created=True, where="build")
        print(f"[SymptomMemory.build] Stored {len(mems) - failed}/{len(mems)} memories")
        return {
            "results": [self._serialize_memory(m) for m in mems],
            "failed": failed,
        }

    # ------------------------------------------------------------------ #
    # LOG EVENT
    # ------------------------------------------------------------------ #

    def log_event(
        self,
        user_id: str,
        event: Event,
        recent_events: builtins.list[Event] | None = None,
        allergies: builtins.list[Allergy] | None = None,
        screenings: builtins.list[Screening] | None = None,
        current_pressure: str | None = None,
    ) -> dict[str, Any]:
        """
        Pipeline:
        1. Incremental update of trigger / remedy / pressure memories
           (skipped while learning is paused).
        2. Insight pass over the in-memory set (does not wait on the store).
        3. Trim to the display budget.
        4. Stamp surfaced memories as shown.
        5. Hand the response to the notification sink, if any.
        """
        existing = self.store.query_active(user_id)
        failed = 0
        touched: builtins.list[MemoryModel] = []

        if self.learning_paused:
            print(f"[SymptomMemory.log_event] Learning paused; not updating memories for user={user_id}")
            memories = existing
        else:
            result = self.updater.update(
                user_id,
                event,
                existing,
                self.preferences.memory_level,
            )
            failed += self._save(result.created, created=True, where="log_event")
            failed += self._save(result.updated, created=False, where="log_event")
            touched = result.touched
            memories = existing + result.created

        raw = self.insight_engine.generate(
            event,
            memories,
            self.preferences,
            recent_events=recent_events,
            allergies=allergies,
            screenings=screenings,
            current_pressure=current_pressure,
        )
        response = self.trimmer.trim(raw)

        shown_ids = set(response.memory_ids())
        shown = [m for m in memories if m.id in shown_ids]
        for mem in shown:
            self.temporal_engine.record_shown(mem)
        failed += self._save(shown, created=False, where="log_event")

        self._notify(user_id, response)

        return {
            "response": response,
            "results": [self._serialize_memory(m) for m in touched],
            "failed": failed,
        }

    def _notify(self, user_id: str, response: InsightResponse) -> None:
        if self.notification_sink is None or not response.has_content:
            return
        try:
            self.notification_sink.notify(user_id, response)
        except Exception as e:
            print(f"[SymptomMemory.notify] Notification failed for user={user_id}: {e}")
            traceback.print_exc()

    # ------------------------------------------------------------------ #
    # FEEDBACK
    # ------------------------------------------------------------------ #

    def feedback(self, memory_id: str, feedback: UserFeedback | str) -> dict[str, Any] | None:
        mem = self.store.get(memory_id)
        if mem is None:
            return None

        self.temporal_engine.apply_feedback(mem, UserFeedback(feedback))
        self._save([mem], created=False, where="feedback")
        print(
            f"[SymptomMemory.feedback] {UserFeedback(feedback).value} on {memory_id} "
            f"-> confidence={mem.confidence:.2f} active={mem.is_active}"
        )
        return self._serialize_memory(mem)

    # ------------------------------------------------------------------ #
    # READ
    # ------------------------------------------------------------------ #

    def list(self, user_id: str, active_only: bool = True) -> dict[str, Any]:
        memories = self.store.list_by_user(user_id, active_only=active_only)
        return {"results": [self._serialize_memory(m) for m in memories]}

    def get(self, memory_id: str) -> dict[str, Any] | None:
        mem = self.store.get(memory_id)
        return self._serialize_memory(mem) if mem else None

    def summary(self, user_id: str) -> str:
        return self.insight_engine.summary(self.store.query_active(user_id))

    def proactive_message(
        self,
        user_id: str,
        current_pressure: str | None,
        screenings: builtins.list[Screening] | None = None,
    ) -> str | None:
        return self.insight_engine.proactive_message(
            current_pressure,
            self.store.query_active(user_id),
            screenings,
        )

    # ------------------------------------------------------------------ #
    # LEARNING PAUSE
    # ------------------------------------------------------------------ #

    def pause_learning(self) -> None:
        self.learning_paused = True
        self.paused_at = self.temporal_engine.now()
        print(f"[SymptomMemory] Learning paused at {self.paused_at.isoformat()}")

    def resume_learning(self) -> None:
        self.learning_paused = False
        self.paused_at = None
        print("[SymptomMemory] Learning resumed")

    # ------------------------------------------------------------------ #
    # MAINTENANCE
    # ------------------------------------------------------------------ #

    def run_maintenance(self, user_id: str, force: bool = False) -> int | None:
        return self.maintenance.run(user_id, force=force)

    def status(self, user_id: str) -> SystemStatus:
        memories = self.store.list_by_user(user_id, active_only=False)
        return SystemStatus.generate(memories, self.temporal_engine)

    # ------------------------------------------------------------------ #
    # POLISH (optional)
    # ------------------------------------------------------------------ #

    async def polish(self, user_id: str, event: Event) -> PolishResult:
        return await self.polisher.polish(event, self.store.query_active(user_id))

    def close(self) -> None:
        self.store.close()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _serialize_memory(self, mem: MemoryModel) -> dict[str, Any]:
        return {
            "id": mem.id,
            "user_id": mem.user_id,
            "kind": mem.kind.value,
            "symptom": mem.symptom,
            "trigger": mem.trigger,
            "resolution": mem.resolution,
            "resolution_time": mem.resolution_time,
            "environmental_factor": mem.environmental_factor,
            "time_of_day": mem.time_of_day,
            "notes": mem.notes,
            "occurrence_count": mem.occurrence_count,
            "success_count": mem.success_count,
            "failure_count": mem.failure_count,
            "confidence": mem.confidence,
            "decayed_confidence": self.temporal_engine.decayed_confidence(mem),
            "confidence_level": self.temporal_engine.confidence_level(mem).value,
            "user_confirmed": mem.user_confirmed,
            "user_denied": mem.user_denied,
            "is_active": mem.is_active,
            "last_occurrence": _iso(mem.last_occurrence),
            "specific_dates": [_iso(d) for d in mem.specific_dates],
            "created_date": _iso(mem.created_date),
            "last_updated": _iso(mem.last_updated),
            "last_shown_date": _iso(mem.last_shown_date),
            "consecutive_ignores": mem.consecutive_ignores,
            "cooldown_until": _iso(mem.cooldown_until),
        }
