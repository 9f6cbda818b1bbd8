# symptom_mem/llm/__init__.py

from .polisher import InsightPolisher, PolishResult

__all__ = ["InsightPolisher", "PolishResult"]
