# symptom_mem/learning/maintenance.py

from __future__ import annotations

import math
from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel

from ..models import MemoryModel
from ..storage.base import MemoryStore
from ..temporal.engine import TemporalEngine

STUCK_AFTER_DAYS = 90
STUCK_BELOW_OCCURRENCES = 3
STALE_HIGH_CONFIDENCE = 0.8
RESET_CONFIDENCE = 0.5

PRUNE_AFTER_DAYS = 180
PRUNE_BELOW_CONFIDENCE = 0.3
PRUNE_BELOW_OCCURRENCES = 3

LAST_RUN_KEY = "maintenance_last_run"


# ---------------------------------------------------------------------- #
# Health check
# ---------------------------------------------------------------------- #


class IssueType(str, Enum):
    INVALID_CONFIDENCE = "invalid_confidence"
    STUCK_NEEDS_MORE_DATA = "stuck_needs_more_data"
    STALE_HIGH_CONFIDENCE = "stale_high_confidence"
    DUPLICATE = "duplicate"


class HealthIssue(BaseModel):
    memory_id: str
    issue_type: IssueType
    description: str
    auto_fixable: bool = True


def _has_invalid_confidence(mem: MemoryModel) -> bool:
    c = mem.confidence
    return math.isnan(c) or c < 0.0 or c > 1.0


def _duplicate_key(mem: MemoryModel) -> tuple:
    return (
        mem.kind.value,
        (mem.symptom or "").lower(),
        (mem.trigger or "").lower(),
        (mem.resolution or "").lower(),
        mem.environmental_factor or "",
        mem.time_of_day or "",
    )


def check_health(memories: list[MemoryModel], engine: TemporalEngine) -> list[HealthIssue]:
    """
    Detect data-health problems. Nothing here raises; bad records are reported
    as issues for auto_fix() to repair.
    """
    issues: list[HealthIssue] = []
    now = engine.now()

    for mem in memories:
        if _has_invalid_confidence(mem):
            issues.append(
                HealthIssue(
                    memory_id=mem.id,
                    issue_type=IssueType.INVALID_CONFIDENCE,
                    description=f"Memory has invalid confidence value: {mem.confidence}",
                )
            )

        days_since_creation = (now - mem.created_date).days
        if (
            mem.is_active
            and days_since_creation > STUCK_AFTER_DAYS
            and mem.occurrence_count < STUCK_BELOW_OCCURRENCES
        ):
            issues.append(
                HealthIssue(
                    memory_id=mem.id,
                    issue_type=IssueType.STUCK_NEEDS_MORE_DATA,
                    description=(
                        f"Memory created {days_since_creation} days ago with only "
                        f"{mem.occurrence_count} occurrences"
                    ),
                )
            )

        if engine.is_stale(mem) and mem.confidence > STALE_HIGH_CONFIDENCE:
            issues.append(
                HealthIssue(
                    memory_id=mem.id,
                    issue_type=IssueType.STALE_HIGH_CONFIDENCE,
                    description=(
                        "Memory is stale but still has high confidence "
                        f"({int(mem.confidence * 100)}%)"
                    ),
                )
            )

    # first record of a group wins, later ones are duplicates
    seen: set[tuple] = set()
    for mem in memories:
        if not mem.is_active:
            continue
        key = _duplicate_key(mem)
        if key in seen:
            issues.append(
                HealthIssue(
                    memory_id=mem.id,
                    issue_type=IssueType.DUPLICATE,
                    description="Duplicate memory found",
                )
            )
        else:
            seen.add(key)

    return issues


def auto_fix(mem: MemoryModel, issue: HealthIssue, engine: TemporalEngine) -> MemoryModel:
    match issue.issue_type:
        case IssueType.INVALID_CONFIDENCE:
            mem.confidence = RESET_CONFIDENCE
            print(f"[Maintenance] Fixed invalid confidence for memory {mem.id}")
        case IssueType.STUCK_NEEDS_MORE_DATA:
            mem.is_active = False
            print(f"[Maintenance] Deactivated stuck memory {mem.id}")
        case IssueType.STALE_HIGH_CONFIDENCE:
            mem.confidence = engine.decayed_confidence(mem)
            print(f"[Maintenance] Applied decay to stale memory {mem.id}")
        case IssueType.DUPLICATE:
            mem.is_active = False
            print(f"[Maintenance] Deactivated duplicate memory {mem.id}")
    mem.last_updated = engine.now()
    return mem


def run_health_check(memories: list[MemoryModel], engine: TemporalEngine) -> list[MemoryModel]:
    """Check and auto-fix in place. Returns the records that were changed."""
    by_id = {m.id: m for m in memories}
    fixed: dict[str, MemoryModel] = {}

    for issue in check_health(memories, engine):
        if not issue.auto_fixable:
            continue
        mem = by_id.get(issue.memory_id)
        if mem is None:
            continue
        fixed[mem.id] = auto_fix(mem, issue, engine)

    if fixed:
        print(f"[Maintenance] Health check fixed {len(fixed)} memories")
    return list(fixed.values())


# ---------------------------------------------------------------------- #
# Prune
# ---------------------------------------------------------------------- #


def prune(memories: list[MemoryModel], engine: TemporalEngine) -> list[MemoryModel]:
    """Deactivate old, unconfirmed, weak memories. Returns the deactivated ones."""
    cutoff = engine.now() - timedelta(days=PRUNE_AFTER_DAYS)
    pruned = []
    for mem in memories:
        if (
            mem.is_active
            and mem.last_occurrence < cutoff
            and not mem.user_confirmed
            and mem.confidence < PRUNE_BELOW_CONFIDENCE
            and mem.occurrence_count < PRUNE_BELOW_OCCURRENCES
        ):
            mem.is_active = False
            mem.last_updated = engine.now()
            pruned.append(mem)
    return pruned


# ---------------------------------------------------------------------- #
# Scheduler
# ---------------------------------------------------------------------- #


class MaintenanceScheduler:
    """
    Runs health check + auto-fix + prune for one user at most once per
    ``interval_hours``. The last run time lives in the store's meta table so the
    gate survives restarts. ``force=True`` ignores the gate.
    """

    def __init__(
        self,
        store: MemoryStore,
        engine: TemporalEngine,
        interval_hours: int = 24,
    ) -> None:
        self.store = store
        self.engine = engine
        self.interval_hours = interval_hours

    def _key(self, user_id: str) -> str:
        return f"{LAST_RUN_KEY}:{user_id}"

    def last_run(self, user_id: str) -> datetime | None:
        raw = self.store.get_meta(self._key(user_id))
        return datetime.fromisoformat(raw) if raw else None

    def should_run(self, user_id: str) -> bool:
        last = self.last_run(user_id)
        if last is None:
            return True
        return self.engine.now() - last >= timedelta(hours=self.interval_hours)

    def reset(self, user_id: str) -> None:
        self.store.set_meta(self._key(user_id), "")

    def run(self, user_id: str, force: bool = False) -> int | None:
        """
        Returns the number of records changed, or None when the run was
        skipped because the previous one is too recent.
        """
        if not force and not self.should_run(user_id):
            print(f"[Maintenance] Skipping user={user_id}: last run was recent")
            return None

        print(f"[Maintenance] Running for user={user_id} (force={force})")
        memories = self.store.list_by_user(user_id, active_only=False)

        changed = {m.id: m for m in run_health_check(memories, self.engine)}
        for mem in prune(memories, self.engine):
            changed[mem.id] = mem

        for mem in changed.values():
            self.store.update(mem)

        self.store.set_meta(self._key(user_id), self.engine.now().isoformat())
        print(f"[Maintenance] Done for user={user_id}: {len(changed)} memories changed")
        return len(changed)


# ---------------------------------------------------------------------- #
# Status
# ---------------------------------------------------------------------- #


class SystemHealth(str, Enum):
    HEALTHY = "Healthy"
    DEGRADED = "Degraded"
    NEEDS_ATTENTION = "Needs Attention"


class SystemStatus(BaseModel):
    status: SystemHealth
    active_count: int
    total_count: int
    issue_count: int
    in_cooldown: int
    stale_count: int
    oldest: datetime | None = None
    newest: datetime | None = None

    @property
    def summary(self) -> str:
        if self.issue_count == 0:
            tail = "No issues detected"
        else:
            tail = f"{self.issue_count} issue{'' if self.issue_count == 1 else 's'}"
        return f"Memory system: {self.status.value} | {self.active_count} active memories | {tail}"

    @classmethod
    def generate(cls, memories: list[MemoryModel], engine: TemporalEngine) -> "SystemStatus":
        issues = check_health(memories, engine)
        if not issues:
            status = SystemHealth.HEALTHY
        elif len(issues) <= 3:
            status = SystemHealth.DEGRADED
        else:
            status = SystemHealth.NEEDS_ATTENTION

        created = [m.created_date for m in memories]
        return cls(
            status=status,
            active_count=sum(1 for m in memories if m.is_active),
            total_count=len(memories),
            issue_count=len(issues),
            in_cooldown=sum(1 for m in memories if engine.is_in_cooldown(m)),
            stale_count=sum(1 for m in memories if m.is_active and engine.is_stale(m)),
            oldest=min(created) if created else None,
            newest=max(created) if created else None,
        )
