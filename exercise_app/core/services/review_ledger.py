"""Ledger of answers awaiting teacher review and the corrections applied to them."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
import logging
from threading import Lock

from exercise_app.core.aggregation import aggregate
from exercise_app.core.errors import StateError, ValidationError
from exercise_app.core.models import AnswerResult, Exercise, Submission, requires_manual_grading
from exercise_app.core.services.submission_store import SubmissionStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _ReviewEntry:
    manual_indexes: frozenset[int]
    question_points: tuple[int, ...]
    corrected: set[int] = field(default_factory=set)
    lock: Lock = field(default_factory=Lock)


@dataclass(frozen=True, slots=True)
class PendingReview:
    """Snapshot of one manual item that has not been corrected yet."""

    exercise_id: str
    student_id: str
    question_index: int
    max_points: int


class ManualReviewLedger:
    """Tracks manual items per submission and re-derives scores after corrections."""

    def __init__(self, store: SubmissionStore) -> None:
        self._store = store
        self._lock = Lock()
        self._entries: dict[tuple[str, str], _ReviewEntry] = {}

    def register(self, submission: Submission, exercise: Exercise) -> None:
        manual = frozenset(
            index
            for index, question in enumerate(exercise.questions)
            if requires_manual_grading(question)
        )
        entry = _ReviewEntry(
            manual_indexes=manual,
            question_points=tuple(question.points for question in exercise.questions),
        )
        with self._lock:
            self._entries[submission.key] = entry
        if manual:
            logger.info(
                "Queued %d answer(s) for review: exercise=%s student=%s",
                len(manual),
                submission.exercise_id,
                submission.student_id,
            )

    def apply_correction(
        self,
        submission: Submission,
        question_index: int,
        earned_points: int,
        is_correct: bool,
    ) -> Submission:
        """Write a teacher's score for a manual item and re-aggregate the whole submission."""
        entry = self._get_entry(submission.key)
        if question_index not in entry.manual_indexes:
            raise ValidationError(
                f"Question {question_index} is not awaiting manual grading."
            )
        max_points = entry.question_points[question_index]
        if (
            isinstance(earned_points, bool)
            or not isinstance(earned_points, int)
            or not 0 <= earned_points <= max_points
        ):
            raise ValidationError(f"Earned points must be between 0 and {max_points}.")

        with entry.lock:
            current = self._store.get(submission.exercise_id, submission.student_id)
            if current is None:
                raise StateError("Submission no longer exists.")

            results = list(current.results)
            results[question_index] = AnswerResult(
                is_correct=is_correct,
                earned_points=earned_points,
                needs_manual_grading=False,
            )
            totals = aggregate(results, current.total_points)
            updated = replace(
                current,
                results=tuple(results),
                score=totals.score,
                percentage=totals.percentage,
                graded_at=datetime.now(timezone.utc),
            )
            self._store.replace(updated)
            entry.corrected.add(question_index)

        logger.info(
            "Correction applied: exercise=%s student=%s question=%d points=%d",
            submission.exercise_id,
            submission.student_id,
            question_index,
            earned_points,
        )
        return updated

    def pending_items(self, exercise_id: str | None = None) -> list[PendingReview]:
        with self._lock:
            entries = list(self._entries.items())
        pending: list[PendingReview] = []
        for (entry_exercise_id, student_id), entry in entries:
            if exercise_id is not None and entry_exercise_id != exercise_id:
                continue
            with entry.lock:
                open_indexes = sorted(entry.manual_indexes - entry.corrected)
            pending.extend(
                PendingReview(
                    exercise_id=entry_exercise_id,
                    student_id=student_id,
                    question_index=index,
                    max_points=entry.question_points[index],
                )
                for index in open_indexes
            )
        return pending

    def forget_exercise(self, exercise_id: str) -> None:
        with self._lock:
            for key in [key for key in self._entries if key[0] == exercise_id]:
                del self._entries[key]

    def _get_entry(self, key: tuple[str, str]) -> _ReviewEntry:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            raise StateError(
                f"No submission for exercise {key[0]!r} and student {key[1]!r}."
            )
        return entry
