"""Runtime settings for normledger.

Rule configuration and preset merging live outside this package; these
settings only cover where history is stored and how it is analyzed.
"""

import os
from typing import List, Mapping, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from normledger.errors import ConfigurationError
from normledger.kernel.findings import Severity

DEFAULT_OUTPUT_DIR = ".amp/normledger"

# Environment variable -> settings field
ENV_VARS = {
    "NORMLEDGER_OUTPUT_DIR": "output_dir",
    "NORMLEDGER_LOOKBACK": "lookback_window",
    "NORMLEDGER_CHECKPOINT_LIMIT": "checkpoint_limit",
    "NORMLEDGER_READ_CONCURRENCY": "read_concurrency",
}


class LedgerSettings(BaseModel):
    """Settings shared by the store, summarizer and CLI."""
    output_dir: str = DEFAULT_OUTPUT_DIR
    lookback_window: int = Field(5, ge=1, description="Consecutive zero checkpoints required for a norm (K)")
    checkpoint_limit: int = Field(50, ge=1, description="Most recent checkpoints loaded for analysis")
    read_concurrency: int = Field(4, ge=1, description="Concurrent checkpoint body reads")
    project_root: str = "."
    fail_on: List[Severity] = Field(default_factory=lambda: ["error"])

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "LedgerSettings":
        """Build settings from NORMLEDGER_* environment variables.

        Explicit keyword overrides win over the environment.

        Raises:
            ConfigurationError: If a value fails validation
        """
        env = os.environ if environ is None else environ
        values = {
            field: env[var]
            for var, field in ENV_VARS.items()
            if env.get(var)
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e
