"""Static metadata describing the exercise engine."""

APP_NAME = "Exercise Assessment Engine"
APP_VERSION = "0.1.0"
