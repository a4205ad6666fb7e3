"""Status and error code constants for normledger.

These constants prevent stringly-typed status values and ensure
client code compares against the values the summarizer emits.
"""

from enum import Enum


class DirectoryStatus(str, Enum):
    """Migration status of a directory."""

    MIGRATED = "migrated"
    IN_PROGRESS = "in-progress"
    NOT_STARTED = "not-started"


class StatusFilter(str, Enum):
    """Status filter accepted by norm capture."""

    MIGRATED = "migrated"
    IN_PROGRESS = "in-progress"
    ALL = "all"


class ErrorCode(str, Enum):
    """Error codes reported by the CLI alongside the exception message."""

    NO_CHECKPOINTS = "NO_CHECKPOINTS"
    CHECKPOINT_NOT_FOUND = "CHECKPOINT_NOT_FOUND"
    CORRUPT_ARTIFACT = "CORRUPT_ARTIFACT"
    STORAGE_ERROR = "STORAGE_ERROR"
    INVALID_DIRECTORY = "INVALID_DIRECTORY"
    NORM_DETECTION_FAILED = "NORM_DETECTION_FAILED"
    SUMMARY_WRITE_FAILED = "SUMMARY_WRITE_FAILED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
