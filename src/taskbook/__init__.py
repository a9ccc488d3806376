"""Project/task tracker core with AI task suggestions and webhook notifications."""

__version__ = "0.1.0"
