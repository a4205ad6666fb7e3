"""Installed package metadata."""

from importlib.metadata import version, PackageNotFoundError


def get_tool_version() -> str:
    """Installed normledger version, or "dev" when running from a checkout."""
    try:
        return version("normledger")
    except PackageNotFoundError:
        return "dev"
