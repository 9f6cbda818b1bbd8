# symptom_mem/prompts/insight_prompt.py

INSIGHT_SYSTEM_PROMPT = """
    You are a helpful health assistant providing personalized insights based on the
    user's symptom history. Be empathetic, concise, and actionable. Never diagnose
    conditions or recommend stopping medications. Always suggest consulting a
    healthcare provider for serious concerns.
    """


def build_insight_prompt(
    symptoms: list[str],
    severity: int,
    triggers: list[str],
    what_worked: list[str],
    recent_patterns: list[str],
    user_context: str = "",
) -> str:
    lines = [
        "Current situation:",
        f"- Symptoms: {', '.join(symptoms)}",
        f"- Severity: {severity}/5",
    ]
    if triggers:
        lines.append(f"- Known triggers for this user: {', '.join(triggers)}")
    if what_worked:
        lines.append(f"- What has helped before: {', '.join(what_worked)}")
    if recent_patterns:
        lines.append(f"- Recent patterns observed: {'; '.join(recent_patterns)}")
    if user_context:
        lines.append(f"- Additional context: {user_context}")

    lines += [
        "",
        "Provide a brief, personalized response (2-3 sentences) that:",
        "1. Acknowledges the symptoms",
        "2. References what has worked for them before (if applicable)",
        "3. Offers one practical suggestion",
        "",
        "Keep the tone warm and supportive.",
    ]
    return "\n".join(lines)
