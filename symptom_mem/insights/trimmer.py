# symptom_mem/insights/trimmer.py

from ..models import ConfidenceLevel, InsightResponse, WarningSeverity

MAX_CHARACTERS = 600
MAX_WARNINGS = 2
MAX_OBSERVATIONS = 3
MAX_SUGGESTIONS = 2
MAX_QUESTIONS = 2

_SEVERITY_RANK = {WarningSeverity.ALERT: 3, WarningSeverity.CAUTION: 2, WarningSeverity.INFO: 1}


class ResponseTrimmer:
    """
    Bounds an InsightResponse for display.

    1. Count caps: warnings (most severe first), observations (most confident
       first), suggestions (most effective first), questions (original order).
    2. Over the character budget: if more than one observation remains, drop
       every low-confidence one, then drop every question.
    3. Still over: drop suggestions, then observations, from the end, then the
       needs-more-data note.

    Warnings are never dropped for length.
    """

    def __init__(self, max_characters: int = MAX_CHARACTERS) -> None:
        self.max_characters = max_characters

    def trim(self, response: InsightResponse) -> InsightResponse:
        out = response.model_copy(deep=True)

        out.warnings = sorted(
            out.warnings, key=lambda w: _SEVERITY_RANK[w.severity], reverse=True
        )[:MAX_WARNINGS]
        out.observations = sorted(
            out.observations, key=lambda o: o.confidence.rank, reverse=True
        )[:MAX_OBSERVATIONS]
        out.suggestions = sorted(
            out.suggestions,
            key=lambda s: s.effectiveness if s.effectiveness is not None else -1,
            reverse=True,
        )[:MAX_SUGGESTIONS]
        out.questions = out.questions[:MAX_QUESTIONS]

        if self._fits(out):
            return out

        if len(out.observations) > 1:
            out.observations = [
                o for o in out.observations if o.confidence != ConfidenceLevel.LOW
            ]
        if self._fits(out):
            return out

        out.questions = []

        while not self._fits(out) and out.suggestions:
            out.suggestions.pop()
        while not self._fits(out) and out.observations:
            out.observations.pop()
        if not self._fits(out):
            out.needs_more_data = None

        if not self._fits(out):
            print(
                f"[ResponseTrimmer] warnings alone use {out.total_character_count} characters "
                f"(budget {self.max_characters})"
            )
        return out

    def _fits(self, response: InsightResponse) -> bool:
        return response.total_character_count <= self.max_characters
