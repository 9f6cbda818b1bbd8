# symptom_mem/safety.py

from typing import Protocol

from .models import Allergy, MemoryKind, MemoryModel, SafetyResult, SafetyStatus

OFTEN_CONFIDENCE = 0.7


class FoodSafetyChecker(Protocol):
    def check_food(
        self,
        food: str,
        allergies: list[Allergy],
        learned_triggers: list[MemoryModel],
    ) -> SafetyResult: ...


def _overlaps(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


class LearnedTriggerChecker:
    """
    Default food-safety collaborator.

    Checks, in order:
    1. direct allergy name or the allergy's own cross-reactive list -> avoid
    2. learned Trigger memories                                      -> caution
    Anything else is safe. Cross-reactivity tables are not consulted here.
    """

    def check_food(
        self,
        food: str,
        allergies: list[Allergy],
        learned_triggers: list[MemoryModel],
    ) -> SafetyResult:
        normalized = food.strip().lower()

        direct = self._direct_allergy(normalized, allergies)
        if direct is not None:
            return direct

        learned = self._learned_trigger(normalized, learned_triggers)
        if learned is not None:
            return learned

        return SafetyResult(
            status=SafetyStatus.SAFE,
            food=food,
            explanation=f"No known allergies or sensitivities to {food} in your profile.",
        )

    def _direct_allergy(self, food: str, allergies: list[Allergy]) -> SafetyResult | None:
        for allergy in allergies:
            if _overlaps(food, allergy.name.lower()):
                return SafetyResult(
                    status=SafetyStatus.AVOID,
                    food=food,
                    explanation=(
                        f"You have a {allergy.severity.lower()} {allergy.allergy_type.lower()} "
                        f"to {allergy.name}."
                    ),
                    notes=self._allergy_notes(allergy),
                )
            for item in allergy.cross_reactive_items:
                if _overlaps(food, item.lower()):
                    return SafetyResult(
                        status=SafetyStatus.AVOID,
                        food=food,
                        explanation=(
                            f"{food.title()} is in your {allergy.name} cross-reactive foods list."
                        ),
                        notes=self._allergy_notes(allergy),
                    )
        return None

    def _learned_trigger(self, food: str, triggers: list[MemoryModel]) -> SafetyResult | None:
        matches = [
            m
            for m in triggers
            if m.kind == MemoryKind.TRIGGER and m.trigger and _overlaps(food, m.trigger.lower())
        ]
        if not matches:
            return None

        best = max(matches, key=lambda m: m.confidence)
        how_often = "often" if best.confidence >= OFTEN_CONFIDENCE else "sometimes"
        return SafetyResult(
            status=SafetyStatus.CAUTION,
            food=food,
            explanation=(
                f"{food.title()} {how_often} triggers {best.symptom or 'symptoms'} "
                "for you based on your history."
            ),
            notes=[
                f"This is based on {best.occurrence_count} logged occurrence(s)",
                f"Confidence: {int(best.confidence * 100)}%",
                "You confirmed this trigger"
                if best.user_confirmed
                else "Consider confirming or dismissing this pattern",
            ],
        )

    @staticmethod
    def _allergy_notes(allergy: Allergy) -> list[str]:
        notes = []
        if allergy.severity.lower() == "severe":
            notes.append("This is a SEVERE allergy - avoid completely")
        if allergy.known_reactions:
            notes.append(f"Known reactions: {', '.join(allergy.known_reactions)}")
        return notes
