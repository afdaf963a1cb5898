"""FastAPI server that exposes the exercise endpoints."""

from __future__ import annotations

from datetime import datetime
import logging
from threading import Thread
from typing import Literal, Optional, Union

from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr
import uvicorn

from exercise_app.constants.about import APP_NAME, APP_VERSION
from exercise_app.constants.network_constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    STUDENT_ID_HEADER,
)
from exercise_app.core.aggregation import letter_grade
from exercise_app.core.errors import (
    ExerciseError,
    ExerciseNotFoundError,
    ValidationError,
)
from exercise_app.core.exercise_manager import ExerciseManager, ExerciseStatus
from exercise_app.core.markdown_math_renderer import renderer
from exercise_app.core.models import (
    UNANSWERED,
    AnswerResult,
    AnswerValue,
    Exercise,
    MultiSelectAnswer,
    MultipleChoiceQuestion,
    MultipleSelectQuestion,
    Question,
    ScalarAnswer,
    ShortAnswerQuestion,
    Submission,
    TextAnswer,
    TrueFalseQuestion,
)

logger = logging.getLogger(__name__)

WireAnswer = Optional[Union[StrictInt, list[StrictInt], StrictStr]]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class QuestionPayload(_CamelModel):
    """One question of an exercise definition."""

    type: Literal["mcq", "true-false", "multiple-select", "short-answer"]
    prompt: str = ""
    options: list[str] | None = None
    correct_index: int | None = Field(default=None, alias="correctIndex")
    correct_indexes: list[int] | None = Field(default=None, alias="correctIndexes")
    points: int = 1


class ExercisePayload(_CamelModel):
    """Payload schema for creating an exercise."""

    id: str = ""
    title: str
    description: str = ""
    category: str = "General"
    difficulty: str = "medium"
    time_limit_minutes: int | None = Field(default=None, alias="timeLimitMinutes")
    due_date: datetime | None = Field(default=None, alias="dueDate")
    questions: list[QuestionPayload]
    published: bool = False


class PublishPayload(BaseModel):
    published: bool


class AnswerPayload(_CamelModel):
    """Payload schema for recording one in-progress answer."""

    question_index: int = Field(alias="questionIndex")
    answer: WireAnswer = None


class SubmitPayload(_CamelModel):
    """Payload schema for the submit request."""

    # Omitted answers fall back to those recorded through the answers endpoint.
    answers: list[WireAnswer] | None = None
    time_spent_seconds: StrictInt = Field(alias="timeSpentSeconds")


class CorrectionPayload(_CamelModel):
    """Payload schema for a teacher's manual grade."""

    question_index: StrictInt = Field(alias="questionIndex")
    earned_points: StrictInt = Field(alias="earnedPoints")
    is_correct: bool = Field(alias="isCorrect")


# --- Wire conversion ---


def decode_answer(raw: WireAnswer) -> AnswerValue:
    if raw is None:
        return UNANSWERED
    if isinstance(raw, str):
        return TextAnswer(raw)
    if isinstance(raw, list):
        return MultiSelectAnswer(frozenset(raw))
    return ScalarAnswer(raw)


def encode_answer(answer: AnswerValue) -> WireAnswer:
    if isinstance(answer, ScalarAnswer):
        return answer.index
    if isinstance(answer, MultiSelectAnswer):
        return sorted(answer.indexes)
    if isinstance(answer, TextAnswer):
        return answer.text
    return None


def build_question(payload: QuestionPayload) -> Question:
    if payload.type == "short-answer":
        return ShortAnswerQuestion(prompt=payload.prompt, points=payload.points)
    if payload.type == "true-false":
        if payload.correct_index is None:
            raise ValidationError("True/false questions need correctIndex.")
        return TrueFalseQuestion(
            prompt=payload.prompt,
            correct_index=payload.correct_index,
            points=payload.points,
        )
    options = tuple(payload.options or ())
    if payload.type == "multiple-select":
        return MultipleSelectQuestion(
            prompt=payload.prompt,
            options=options,
            correct_indexes=frozenset(payload.correct_indexes or ()),
            points=payload.points,
        )
    if payload.correct_index is None:
        raise ValidationError("Multiple choice questions need correctIndex.")
    return MultipleChoiceQuestion(
        prompt=payload.prompt,
        options=options,
        correct_index=payload.correct_index,
        points=payload.points,
    )


def result_to_wire(result: AnswerResult) -> dict[str, object]:
    return {
        "isCorrect": result.is_correct,
        "earnedPoints": result.earned_points,
        "needsManualGrading": result.needs_manual_grading,
    }


def submission_to_wire(submission: Submission) -> dict[str, object]:
    return {
        "exerciseId": submission.exercise_id,
        "studentId": submission.student_id,
        "studentAnswers": [encode_answer(answer) for answer in submission.answers],
        "answers": [result_to_wire(result) for result in submission.results],
        "score": submission.score,
        "totalPoints": submission.total_points,
        "percentage": submission.percentage,
        "grade": letter_grade(submission.percentage),
        "timeSpentSeconds": submission.time_spent_seconds,
        "submittedAt": submission.submitted_at.isoformat(),
        "trigger": submission.trigger,
        "needsGrading": submission.needs_grading,
        "gradedAt": submission.graded_at.isoformat() if submission.graded_at else None,
    }


def exercise_to_student_view(exercise: Exercise) -> dict[str, object]:
    return {
        "id": exercise.id,
        "title": exercise.title,
        "description": exercise.description,
        "category": exercise.category,
        "difficulty": exercise.difficulty,
        "timeLimitMinutes": exercise.time_limit_minutes,
        "dueDate": exercise.due_date.isoformat() if exercise.due_date else None,
        "totalPoints": exercise.total_points,
        "questions": [renderer.render_question(question) for question in exercise.questions],
    }


def exercise_to_summary(exercise: Exercise, published: bool) -> dict[str, object]:
    return {
        "id": exercise.id,
        "title": exercise.title,
        "description": exercise.description,
        "category": exercise.category,
        "difficulty": exercise.difficulty,
        "timeLimitMinutes": exercise.time_limit_minutes,
        "dueDate": exercise.due_date.isoformat() if exercise.due_date else None,
        "questionCount": len(exercise.questions),
        "totalPoints": exercise.total_points,
        "published": published,
    }


def _http_error(exc: ExerciseError) -> HTTPException:
    if isinstance(exc, ExerciseNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=409, detail=str(exc))


def _get_exercise_manager_dependency(exercise_manager: ExerciseManager):
    def dependency() -> ExerciseManager:
        return exercise_manager

    return dependency


def _require_student_id(
    student_id: str | None = Header(default=None, alias=STUDENT_ID_HEADER),
) -> str:
    if not student_id or not student_id.strip():
        raise HTTPException(status_code=401, detail=f"{STUDENT_ID_HEADER} header required.")
    return student_id.strip()


def create_api_app(exercise_manager: ExerciseManager) -> FastAPI:
    """Create a FastAPI application wired to the provided exercise manager."""
    app = FastAPI(title=APP_NAME, version=APP_VERSION)
    manager_dep = _get_exercise_manager_dependency(exercise_manager)

    def _published_exercise(manager: ExerciseManager, exercise_id: str) -> Exercise:
        try:
            exercise = manager.get_exercise(exercise_id)
        except ExerciseError as exc:
            raise _http_error(exc) from exc
        if not manager.is_published(exercise_id):
            raise HTTPException(status_code=403, detail="Exercise not published")
        return exercise

    @app.post("/exercises", status_code=201)
    def create_exercise(
        payload: ExercisePayload,
        manager: ExerciseManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            exercise = Exercise(
                id=payload.id,
                title=payload.title,
                questions=tuple(build_question(q) for q in payload.questions),
                time_limit_minutes=payload.time_limit_minutes,
                due_date=payload.due_date,
                description=payload.description,
                category=payload.category,
                difficulty=payload.difficulty,
            )
            stored = manager.create_exercise(exercise, published=payload.published)
        except ExerciseError as exc:
            raise _http_error(exc) from exc
        return {"id": stored.id, "totalPoints": stored.total_points}

    @app.get("/exercises")
    def list_exercises(
        category: str | None = None,
        difficulty: str | None = None,
        status: ExerciseStatus = "all",
        student_id: str | None = Header(default=None, alias=STUDENT_ID_HEADER),
        manager: ExerciseManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        # Students only ever see published exercises.
        exercises = manager.get_exercises(
            published_only=bool(student_id and student_id.strip()),
            category=category,
            difficulty=difficulty,
            status=status,
        )
        return [exercise_to_summary(e, manager.is_published(e.id)) for e in exercises]

    @app.get("/exercises/meta/categories")
    def list_categories(manager: ExerciseManager = Depends(manager_dep)) -> list[str]:
        return manager.get_categories()

    @app.delete("/exercises/{exercise_id}")
    def delete_exercise(
        exercise_id: str,
        manager: ExerciseManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            removed = manager.delete_exercise(exercise_id)
        except ExerciseError as exc:
            raise _http_error(exc) from exc
        return {"id": exercise_id, "deletedSubmissions": removed}

    @app.post("/exercises/{exercise_id}/publish")
    def publish_exercise(
        exercise_id: str,
        payload: PublishPayload,
        manager: ExerciseManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            manager.set_published(exercise_id, payload.published)
        except ExerciseError as exc:
            raise _http_error(exc) from exc
        return {"id": exercise_id, "published": payload.published}

    @app.get("/exercises/{exercise_id}")
    def get_exercise(
        exercise_id: str,
        student_id: str = Depends(_require_student_id),
        manager: ExerciseManager = Depends(manager_dep),
    ) -> dict[str, object]:
        exercise = _published_exercise(manager, exercise_id)
        view = exercise_to_student_view(exercise)
        submission = manager.get_submission(exercise_id, student_id)
        view["submission"] = submission_to_wire(submission) if submission else None
        return view

    @app.post("/exercises/{exercise_id}/start")
    def start_exercise(
        exercise_id: str,
        student_id: str = Depends(_require_student_id),
        manager: ExerciseManager = Depends(manager_dep),
    ) -> dict[str, object]:
        _published_exercise(manager, exercise_id)
        try:
            session = manager.start_attempt(exercise_id, student_id)
        except ExerciseError as exc:
            raise _http_error(exc) from exc
        return {"remainingSeconds": session.get_remaining_seconds()}

    @app.post("/exercises/{exercise_id}/answers")
    def record_answer(
        exercise_id: str,
        payload: AnswerPayload,
        student_id: str = Depends(_require_student_id),
        manager: ExerciseManager = Depends(manager_dep),
    ) -> dict[str, object]:
        _published_exercise(manager, exercise_id)
        try:
            session = manager.get_session(exercise_id, student_id)
            session.record_answer(payload.question_index, decode_answer(payload.answer))
        except ExerciseError as exc:
            raise _http_error(exc) from exc
        return {
            "answered": session.get_answered_count(),
            "remainingSeconds": session.get_remaining_seconds(),
        }

    @app.post("/exercises/{exercise_id}/submit", status_code=201)
    def submit_exercise(
        exercise_id: str,
        payload: SubmitPayload,
        student_id: str = Depends(_require_student_id),
        manager: ExerciseManager = Depends(manager_dep),
    ) -> dict[str, object]:
        _published_exercise(manager, exercise_id)
        answers = None
        if payload.answers is not None:
            answers = [decode_answer(raw) for raw in payload.answers]
        try:
            submission = manager.submit(
                exercise_id,
                student_id,
                answers=answers,
                time_spent_seconds=payload.time_spent_seconds,
                trigger="user",
            )
        except ExerciseError as exc:
            raise _http_error(exc) from exc
        return {
            "score": submission.score,
            "totalPoints": submission.total_points,
            "percentage": submission.percentage,
            "answers": [result_to_wire(result) for result in submission.results],
        }

    @app.get("/exercises/{exercise_id}/submissions")
    def list_submissions(
        exercise_id: str,
        manager: ExerciseManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        try:
            submissions = manager.get_submissions_for_exercise(exercise_id)
        except ExerciseError as exc:
            raise _http_error(exc) from exc
        return [submission_to_wire(s) for s in submissions]

    @app.get("/exercises/{exercise_id}/statistics")
    def exercise_statistics(
        exercise_id: str,
        manager: ExerciseManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            stats = manager.get_exercise_statistics(exercise_id)
        except ExerciseError as exc:
            raise _http_error(exc) from exc
        return {
            "exerciseId": stats.exercise_id,
            "totalAttempts": stats.total_attempts,
            "averageScore": stats.average_percentage,
            "needsGrading": stats.needs_grading,
        }

    @app.post("/exercises/{exercise_id}/submissions/{student_id}/corrections")
    def apply_correction(
        exercise_id: str,
        student_id: str,
        payload: CorrectionPayload,
        manager: ExerciseManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            submission = manager.apply_correction(
                exercise_id,
                student_id,
                question_index=payload.question_index,
                earned_points=payload.earned_points,
                is_correct=payload.is_correct,
            )
        except ExerciseError as exc:
            raise _http_error(exc) from exc
        return {"score": submission.score, "percentage": submission.percentage}

    @app.get("/reviews/pending")
    def pending_reviews(
        exercise_id: str | None = None,
        manager: ExerciseManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        return [
            {
                "exerciseId": item.exercise_id,
                "studentId": item.student_id,
                "questionIndex": item.question_index,
                "maxPoints": item.max_points,
            }
            for item in manager.get_pending_reviews(exercise_id)
        ]

    @app.get("/students/me/submissions")
    def my_submissions(
        student_id: str = Depends(_require_student_id),
        manager: ExerciseManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        return [submission_to_wire(s) for s in manager.get_submissions_for_student(student_id)]

    return app


def start_api_server(
    exercise_manager: ExerciseManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(exercise_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="ExerciseApiServer", daemon=True)
    thread.start()
    logger.info("API server listening on %s:%d", host, port)
    return thread
