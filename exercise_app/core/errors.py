"""Error taxonomy for the exercise assessment engine."""

from __future__ import annotations


class ExerciseError(Exception):
    """Base class for all engine errors."""


class ValidationError(ExerciseError, ValueError):
    """Raised for malformed exercises, answers, or corrections."""


class DuplicateSubmissionError(ExerciseError, RuntimeError):
    """Raised when a finalized attempt is re-finalized with diverging content."""


class StateError(ExerciseError, RuntimeError):
    """Raised when an operation is not valid in the current lifecycle state."""


class ExerciseNotFoundError(ExerciseError, LookupError):
    """Raised when an exercise or submission id is unknown."""
