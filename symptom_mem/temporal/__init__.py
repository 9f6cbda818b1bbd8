# symptom_mem/temporal/__init__.py

from .engine import TemporalEngine, cooldown_hours, tier_confidence

__all__ = ["TemporalEngine", "cooldown_hours", "tier_confidence"]
