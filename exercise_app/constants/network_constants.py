"""Network configuration constants for the exercise server."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000
STUDENT_ID_HEADER: str = "X-Student-Id"
