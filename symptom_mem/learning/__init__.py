# symptom_mem/learning/__init__.py

from .builder import MemoryBuilder
from .maintenance import MaintenanceScheduler, SystemStatus, check_health, prune, run_health_check
from .updater import MemoryUpdater, UpdateResult

__all__ = [
    "MaintenanceScheduler",
    "MemoryBuilder",
    "MemoryUpdater",
    "SystemStatus",
    "UpdateResult",
    "check_health",
    "prune",
    "run_health_check",
]
