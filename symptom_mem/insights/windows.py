# symptom_mem/insights/windows.py

from datetime import datetime

DEFAULT_WINDOW_HOURS = 24

# Checked in order; the first category with a matching keyword wins.
# Headache/migraine sits first so "stress headache" is not read as mental.
_WINDOW_RULES: list[tuple[tuple[str, ...], int]] = [
    (("headache", "migraine"), 48),
    (
        (
            "bloat",
            "nausea",
            "diarrhea",
            "constipation",
            "stomach",
            "gas",
            "abdominal",
            "reflux",
            "heartburn",
            "digest",
            "indigestion",
        ),
        24,
    ),
    (("rash", "hives", "itch", "eczema", "acne", "skin"), 72),
    (("joint", "muscle", "arthritis", "stiff", "back pain"), 48),
    (("fatigue", "tired", "energy", "exhaust", "letharg"), 48),
    (("anxiety", "mood", "depress", "irritab", "stress", "brain fog"), 36),
]


def context_window_hours(symptom: str) -> int:
    """Trailing hours within which a food can still be blamed for this symptom."""
    name = symptom.lower()
    for keywords, hours in _WINDOW_RULES:
        if any(k in name for k in keywords):
            return hours
    return DEFAULT_WINDOW_HOURS


def max_window_hours(symptoms: list[str]) -> int:
    if not symptoms:
        return DEFAULT_WINDOW_HOURS
    return max(context_window_hours(s) for s in symptoms)


def time_of_day(ts: datetime) -> str:
    hour = ts.hour
    if 5 <= hour < 12:
        return "Morning"
    if 12 <= hour < 17:
        return "Afternoon"
    if 17 <= hour < 21:
        return "Evening"
    return "Night"
