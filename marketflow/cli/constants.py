"""Exit codes shared by CLI commands."""

VALIDATION_EXIT_CODE = 10
SOURCE_EXIT_CODE = 20
SYSTEM_EXIT_CODE = 30
STORAGE_EXIT_CODE = 40
TIMEOUT_EXIT_CODE = 50

__all__ = [
    "SOURCE_EXIT_CODE",
    "STORAGE_EXIT_CODE",
    "SYSTEM_EXIT_CODE",
    "TIMEOUT_EXIT_CODE",
    "VALIDATION_EXIT_CODE",
]
