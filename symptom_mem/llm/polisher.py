# symptom_mem/llm/polisher.py

from __future__ import annotations

import asyncio
import traceback
from typing import Any

from openai import AsyncOpenAI
from pydantic import BaseModel

from ..models import Event, MemoryKind, MemoryModel
from ..prompts.insight_prompt import INSIGHT_SYSTEM_PROMPT, build_insight_prompt


class PolishResult(BaseModel):
    text: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.text is not None


class InsightPolisher:
    """
    Optional prose rewrite of an insight pass via the OpenAI chat API.

    Purely presentational: the structured InsightResponse is complete without
    it. Disabled or failing calls come back as PolishResult(error=...), never
    as exceptions. Cancellation of the task returned by start() propagates.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        enabled: bool = False,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.enabled = enabled
        self.client = client
        if self.client is None and enabled and api_key:
            self.client = AsyncOpenAI(api_key=api_key)

    @property
    def is_enabled(self) -> bool:
        return self.enabled and self.client is not None

    @staticmethod
    def build_prompt(event: Event, memories: list[MemoryModel]) -> str:
        active = [m for m in memories if m.is_active]
        triggers = [m.trigger for m in active if m.kind == MemoryKind.TRIGGER and m.trigger]
        what_worked = [
            f"{m.resolution} helped with {m.symptom}"
            for m in active
            if m.kind == MemoryKind.WORKED_REMEDY and m.resolution and m.symptom
        ]
        patterns = [
            m.notes
            for m in active
            if m.kind in (MemoryKind.PATTERN, MemoryKind.CORRELATION) and m.notes
        ]
        return build_insight_prompt(
            symptoms=event.symptoms,
            severity=event.severity,
            triggers=triggers,
            what_worked=what_worked,
            recent_patterns=patterns,
            user_context=event.notes,
        )

    async def polish(self, event: Event, memories: list[MemoryModel]) -> PolishResult:
        if not self.is_enabled:
            return PolishResult(error="polishing disabled")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": INSIGHT_SYSTEM_PROMPT.strip()},
                    {"role": "user", "content": self.build_prompt(event, memories)},
                ],
                temperature=self.temperature,
            )
            content = response.choices[0].message.content
        except Exception as e:
            print(f"[InsightPolisher] Request failed: {e}")
            traceback.print_exc()
            return PolishResult(error=str(e))

        if not content or not content.strip():
            return PolishResult(error="empty completion")
        return PolishResult(text=content.strip())

    def start(self, event: Event, memories: list[MemoryModel]) -> asyncio.Task[PolishResult]:
        """Schedule polish() on the running loop; the caller may cancel it."""
        return asyncio.get_running_loop().create_task(self.polish(event, memories))
