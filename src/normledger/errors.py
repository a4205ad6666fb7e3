"""Error taxonomy for normledger.

Low-level I/O failures are translated into these categories before they cross
a component boundary. Callers decide whether a failure is fatal or advisory.
"""

from typing import Optional


class NormLedgerError(Exception):
    """Base exception for all normledger failures."""
    pass


class ConfigurationError(NormLedgerError):
    """Raised when settings cannot be built from the supplied values."""
    pass


class StorageError(NormLedgerError):
    """Raised when a named blob cannot be read or written."""
    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{message}: {path}")


class CorruptArtifactError(StorageError):
    """Raised when a persisted artifact is not valid JSON or fails its schema."""
    def __init__(self, path: str, reason: str):
        self.reason = reason
        super().__init__(path, f"Corrupt artifact ({reason})")


class CheckpointNotFoundError(NormLedgerError):
    """Raised when a checkpoint body does not exist in the output directory."""
    def __init__(self, output_dir: str, checkpoint_id: str):
        self.output_dir = output_dir
        self.checkpoint_id = checkpoint_id
        super().__init__(f"Checkpoint '{checkpoint_id}' not found in {output_dir}")


class NoCheckpointsError(NormLedgerError):
    """Raised when a directory summary is requested but no history exists."""
    def __init__(self, output_dir: str, reason: Optional[str] = None):
        self.output_dir = output_dir
        self.reason = reason
        msg = f"No checkpoints found in {output_dir}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InvalidDirectoryError(NormLedgerError):
    """Raised when the directory to analyze is not a usable relative path."""
    def __init__(self, directory: str, reason: Optional[str] = None):
        self.directory = directory
        self.reason = reason
        msg = f"Invalid directory '{directory}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class NormDetectionError(NormLedgerError):
    """Raised when norm detection or result conversion fails.

    The underlying exception is chained as ``__cause__``.
    """
    def __init__(self, message: str, directory: Optional[str] = None):
        self.directory = directory
        if directory is not None:
            message = f"{message} (directory: {directory})"
        super().__init__(message)


class SummaryWriteError(NormLedgerError):
    """Raised when a norm summary cannot be written."""
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Failed to write norm summary: {path}")


class CheckpointIdCollisionError(StorageError):
    """Raised when a checkpoint body with the same id already exists."""
    def __init__(self, path: str):
        super().__init__(path, "Checkpoint already exists, refusing to overwrite")
