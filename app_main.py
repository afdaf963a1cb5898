"""Application entry point for the exercise assessment server."""

from __future__ import annotations

from pathlib import Path
import sys

from exercise_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exercise_app.core.errors import ExerciseError
from exercise_app.core.exercise_importer import ExerciseImportError
from exercise_app.core.exercise_manager import ExerciseManager
from exercise_app.server.api_server import start_api_server
from exercise_app.utils.logging_config import configure_logging


def main(argv: list[str] | None = None) -> None:
    """Initialize logging, publish any exercise files given on the command line, and serve."""
    logger = configure_logging()
    logger.info("Starting exercise assessment server…")

    exercise_manager = ExerciseManager()
    for raw_path in argv if argv is not None else sys.argv[1:]:
        try:
            exercise = exercise_manager.import_exercise(Path(raw_path), published=True)
        except (OSError, ExerciseError, ExerciseImportError) as exc:
            logger.error("Could not import %s: %s", raw_path, exc)
            continue
        logger.info("Published %s as exercise %s", raw_path, exercise.id)

    server_thread = start_api_server(exercise_manager, host=DEFAULT_HOST, port=DEFAULT_PORT)
    server_thread.join()


if __name__ == "__main__":
    main()
