# symptom_mem/prompts/__init__.py

from .insight_prompt import INSIGHT_SYSTEM_PROMPT, build_insight_prompt

__all__ = ["INSIGHT_SYSTEM_PROMPT", "build_insight_prompt"]
