import pytest

from exercise_app.core.exercise_manager import ExerciseManager
from exercise_app.core.models import (
    Exercise,
    MultipleChoiceQuestion,
    MultipleSelectQuestion,
    ShortAnswerQuestion,
    TrueFalseQuestion,
)


@pytest.fixture
def manager():
    # Timers are ticked by hand so tests never sleep.
    return ExerciseManager(background_timers=False)


@pytest.fixture
def mixed_exercise():
    return Exercise(
        id="mixed",
        title="Mixed bag",
        questions=(
            MultipleChoiceQuestion(prompt="2 + 2?", options=("3", "4", "5"), correct_index=1, points=2),
            TrueFalseQuestion(prompt="The sky is green.", correct_index=1, points=1),
            MultipleSelectQuestion(
                prompt="Pick the primes.",
                options=("2", "4", "5", "9"),
                correct_indexes=frozenset({0, 2}),
                points=3,
            ),
            ShortAnswerQuestion(prompt="Explain photosynthesis.", points=4),
        ),
    )
