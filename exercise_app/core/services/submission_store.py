"""In-memory submission storage with single-attempt uniqueness."""

from __future__ import annotations

from threading import Lock

from exercise_app.core.errors import DuplicateSubmissionError, StateError
from exercise_app.core.models import Submission


class SubmissionStore:
    """Keeps one submission per (exercise_id, student_id) pair."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._submissions: dict[tuple[str, str], Submission] = {}

    def add(self, submission: Submission) -> None:
        with self._lock:
            if submission.key in self._submissions:
                raise DuplicateSubmissionError(
                    f"Student {submission.student_id!r} already submitted "
                    f"exercise {submission.exercise_id!r}."
                )
            self._submissions[submission.key] = submission

    def replace(self, submission: Submission) -> None:
        """Overwrite an existing record; used only by manual review corrections."""
        with self._lock:
            if submission.key not in self._submissions:
                raise StateError(
                    f"No submission for exercise {submission.exercise_id!r} "
                    f"and student {submission.student_id!r}."
                )
            self._submissions[submission.key] = submission

    def get(self, exercise_id: str, student_id: str) -> Submission | None:
        with self._lock:
            return self._submissions.get((exercise_id, student_id))

    def list_for_exercise(self, exercise_id: str) -> list[Submission]:
        with self._lock:
            matches = [s for s in self._submissions.values() if s.exercise_id == exercise_id]
        return sorted(matches, key=lambda s: s.submitted_at, reverse=True)

    def list_for_student(self, student_id: str) -> list[Submission]:
        with self._lock:
            matches = [s for s in self._submissions.values() if s.student_id == student_id]
        return sorted(matches, key=lambda s: s.submitted_at, reverse=True)

    def delete_for_exercise(self, exercise_id: str) -> int:
        with self._lock:
            keys = [key for key in self._submissions if key[0] == exercise_id]
            for key in keys:
                del self._submissions[key]
        return len(keys)
