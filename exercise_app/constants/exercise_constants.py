"""Exercise-related constants shared across the engine and the API."""

TICK_INTERVAL_SECONDS: float = 1.0
DEFAULT_QUESTION_POINTS: int = 1

# Checked top-down; the first threshold the percentage reaches wins.
GRADE_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (90.0, "A"),
    (80.0, "B"),
    (70.0, "C"),
    (60.0, "D"),
)
FAILING_GRADE: str = "F"
