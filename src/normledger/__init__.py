"""normledger: longitudinal migration audit history and directory norm detection."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("normledger")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
from normledger.api import (
    AuditRecord,
    CaptureResult,
    capture_norms,
    compute_metrics,
    list_checkpoints,
    read_audit_context,
    record_audit,
    summarize_directory,
)
from normledger.codes import DirectoryStatus, ErrorCode, StatusFilter
from normledger.contracts import DirectoryFiles, DirectorySummary, Norm
from normledger.errors import NormLedgerError
from normledger.settings import LedgerSettings

__all__ = [
    "__version__",
    "record_audit",
    "list_checkpoints",
    "summarize_directory",
    "capture_norms",
    "compute_metrics",
    "read_audit_context",
    "AuditRecord",
    "CaptureResult",
    "DirectoryStatus",
    "StatusFilter",
    "ErrorCode",
    "Norm",
    "DirectoryFiles",
    "DirectorySummary",
    "NormLedgerError",
    "LedgerSettings",
]
